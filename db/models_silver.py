# db/models_silver.py
"""
Silver Layer Schemas - Conformed, deduplicated and cleansed relations.
Layer: silver
"""

from sqlalchemy import Integer, String, Date, Float

LAYER = "silver"

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
    "cat_id": String(50),
    "prd_key": String(50),
    "prd_nm": String(50),
    "prd_cost": Integer,
    "prd_line": String(50),
    "prd_start_dt": Date,
    "prd_end_dt": Date,
}

CRM_SALES_DETAILS = {
    "sls_ord_num": String(50),
    "sls_prd_key": String(50),
    "sls_cust_id": Integer,
    "sls_order_dt": Date,
    "sls_ship_dt": Date,
    "sls_due_dt": Date,
    "sls_sales": Float,
    "sls_quantity": Integer,
    "sls_price": Float,
}

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

SILVER_RELATIONS = {
    "crm_cust_info": CRM_CUST_INFO,
    "crm_prd_info": CRM_PRD_INFO,
    "crm_sales_details": CRM_SALES_DETAILS,
    "erp_cust_az12": ERP_CUST_AZ12,
    "erp_loc_a101": ERP_LOC_A101,
    "erp_px_cat_g1v2": ERP_PX_CAT_G1V2,
}

# One conformed record per business key
BUSINESS_KEYS = {
    "crm_cust_info": ["cst_id"],
    "crm_prd_info": ["prd_id"],
    "crm_sales_details": ["sls_ord_num", "sls_prd_key"],
    "erp_cust_az12": ["cid"],
    "erp_loc_a101": ["cid"],
    "erp_px_cat_g1v2": ["id"],
}
