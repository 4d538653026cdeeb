"""
Gold Layer - Dimensional model for analytics and reporting.
Creates customer and product dimensions and the sales fact table.
"""

from DWH.gold.loader import (
    run_gold_load,
    transform_dim_customers,
    transform_dim_products,
    transform_fact_sales,
    load_silver_relations,
    assign_surrogate_keys,
)

__all__ = [
    "run_gold_load",
    "transform_dim_customers",
    "transform_dim_products",
    "transform_fact_sales",
    "load_silver_relations",
    "assign_surrogate_keys",
]
