"""
Silver Layer - Deduplication, cleansing, code mapping and derivation.
Rebuilds every conformed relation in full on each run.
"""

from DWH.silver.transformer import (
    run_silver_transform,
    conform_relation,
    clean_customer_info,
    clean_product_info,
    clean_sales_details,
    clean_erp_customers,
    clean_erp_locations,
    clean_erp_categories,
    CONFORMERS,
)
from DWH.silver.validator import run_silver_validation, ValidationReport, ValidationResult
from DWH.silver.utils import (
    clean_string_column,
    clean_date_column,
    parse_int_date,
    deduplicate,
    derive_end_dates,
    repair_sales_measures,
    customer_match_key,
    CodeMapping,
    MARITAL_STATUS,
    GENDER,
    PRODUCT_LINE,
    COUNTRY,
    UNKNOWN_LABEL,
)

__all__ = [
    "run_silver_transform",
    "conform_relation",
    "clean_customer_info",
    "clean_product_info",
    "clean_sales_details",
    "clean_erp_customers",
    "clean_erp_locations",
    "clean_erp_categories",
    "CONFORMERS",
    "run_silver_validation",
    "ValidationReport",
    "ValidationResult",
    "clean_string_column",
    "clean_date_column",
    "parse_int_date",
    "deduplicate",
    "derive_end_dates",
    "repair_sales_measures",
    "customer_match_key",
    "CodeMapping",
    "MARITAL_STATUS",
    "GENDER",
    "PRODUCT_LINE",
    "COUNTRY",
    "UNKNOWN_LABEL",
]
