# db/models_bronze.py
"""
Bronze Layer Schemas - Raw CRM and ERP extracts, coarsely typed.
Layer: bronze
"""

from sqlalchemy import Integer, String, Date, DateTime

LAYER = "bronze"

# Source CRM

CRM_CUST_INFO = {
    "cst_id": Integer,
    "cst_key": String(50),
    "cst_firstname": String(50),
    "cst_lastname": String(50),
    "cst_marital_status": String(50),
    "cst_gndr": String(50),
    "cst_create_date": Date,
}

CRM_PRD_INFO = {
    "prd_id": Integer,
    "prd_key": String(50),
    "prd_nm": String(50),
    "prd_cost": Integer,
    "prd_line": String(50),
    "prd_start_dt": DateTime,
    "prd_end_dt": DateTime,
}

# Order/ship/due dates arrive as YYYYMMDD integers
CRM_SALES_DETAILS = {
    "sls_ord_num": String(50),
    "sls_prd_key": String(50),
    "sls_cust_id": Integer,
    "sls_order_dt": Integer,
    "sls_ship_dt": Integer,
    "sls_due_dt": Integer,
    "sls_sales": Integer,
    "sls_quantity": Integer,
    "sls_price": Integer,
}

# Source ERP

ERP_CUST_AZ12 = {
    "cid": String(50),
    "bdate": Date,
    "gen": String(50),
}

ERP_LOC_A101 = {
    "cid": String(50),
    "cntry": String(50),
}

ERP_PX_CAT_G1V2 = {
    "id": String(50),
    "cat": String(50),
    "subcat": String(50),
    "maintenance": String(50),
}

BRONZE_RELATIONS = {
    "crm_cust_info": CRM_CUST_INFO,
    "crm_prd_info": CRM_PRD_INFO,
    "crm_sales_details": CRM_SALES_DETAILS,
    "erp_cust_az12": ERP_CUST_AZ12,
    "erp_loc_a101": ERP_LOC_A101,
    "erp_px_cat_g1v2": ERP_PX_CAT_G1V2,
}
