# db/models_gold.py
"""
Gold Layer Schemas - Published star schema (dimensions + sales fact).
Layer: gold
"""

from sqlalchemy import Integer, String, Date, Float

LAYER = "gold"

DIM_CUSTOMERS = {
    "customer_key": Integer,
    "customer_id": Integer,
    "customer_number": String(50),
    "first_name": String(50),
    "last_name": String(50),
    "country": String(50),
    "marital_status": String(50),
    "gender": String(50),
    "birthdate": Date,
    "create_date": Date,
}

DIM_PRODUCTS = {
    "product_key": Integer,
    "product_id": Integer,
    "product_number": String(50),
    "product_name": String(50),
    "category_id": String(50),
    "category": String(50),
    "subcategory": String(50),
    "maintenance": String(50),
    "cost": Integer,
    "product_line": String(50),
    "start_date": Date,
}

FACT_SALES = {
    "order_number": String(50),
    "product_key": Integer,
    "customer_key": Integer,
    "order_date": Date,
    "shipping_date": Date,
    "due_date": Date,
    "sales_amount": Float,
    "quantity": Integer,
    "price": Float,
}

GOLD_RELATIONS = {
    "dim_customers": DIM_CUSTOMERS,
    "dim_products": DIM_PRODUCTS,
    "fact_sales": FACT_SALES,
}
