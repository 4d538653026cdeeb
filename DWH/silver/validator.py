# DWH/silver/validator.py
"""
Silver Layer Validation - Quality checks for conformed data before modeling.
Findings are reported, never corrected; the run continues either way.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd

from db.models_silver import BUSINESS_KEYS
from DWH.silver.utils import (
    CodeMapping,
    MARITAL_STATUS,
    GENDER,
    PRODUCT_LINE,
    labels_outside,
)

logger = logging.getLogger(__name__)

# Categorical columns that must only carry labels of their mapping table
MAPPED_COLUMNS: Dict[str, Dict[str, CodeMapping]] = {
    "crm_cust_info": {"cst_marital_status": MARITAL_STATUS, "cst_gndr": GENDER},
    "crm_prd_info": {"prd_line": PRODUCT_LINE},
    "erp_cust_az12": {"gen": GENDER},
}


@dataclass
class ValidationResult:
    """Single validation check result."""
    check_name: str
    passed: bool
    message: str
    severity: str = "ERROR"  # ERROR, WARNING, INFO


@dataclass
class ValidationReport:
    """Collection of validation results."""
    layer: str
    results: List[ValidationResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results if r.severity == "ERROR")

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.passed and r.severity == "ERROR")

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.results if not r.passed and r.severity == "WARNING")

    def add(self, result: ValidationResult):
        self.results.append(result)
        status = "✓" if result.passed else "✗"
        log_fn = logger.info if result.passed else (logger.error if result.severity == "ERROR" else logger.warning)
        log_fn(f"  [{status}] {result.check_name}: {result.message}")


def validate_conformed_relation(name: str, df: pd.DataFrame) -> ValidationReport:
    """
    Validate one conformed relation.

    Checks:
    - Row count > 0
    - No null business key
    - No duplicate business key
    - Categorical columns only carry mapped labels
    """
    report = ValidationReport(layer=f"Silver - {name}")
    logger.info(f"Validating conformed {name}...")
    keys = BUSINESS_KEYS[name]

    report.add(ValidationResult(
        check_name="Row Count",
        passed=len(df) > 0,
        message=f"{len(df)} records",
        severity="WARNING",
    ))

    null_keys = int(df[keys].isna().any(axis=1).sum())
    report.add(ValidationResult(
        check_name="Null Business Key",
        passed=null_keys == 0,
        message=f"{null_keys} null values found in {keys}",
    ))

    dup_count = int(df.duplicated(subset=keys).sum())
    report.add(ValidationResult(
        check_name="Duplicate Business Key",
        passed=dup_count == 0,
        message=f"{dup_count} duplicates found on {keys}",
    ))

    for column, mapping in MAPPED_COLUMNS.get(name, {}).items():
        unexpected = labels_outside(df[column], mapping)
        report.add(ValidationResult(
            check_name=f"Mapped Labels ({column})",
            passed=not unexpected,
            message=f"unexpected labels {unexpected}" if unexpected else "all labels mapped",
        ))

    return report


def validate_product_intervals(df: pd.DataFrame) -> ValidationReport:
    """End of validity must not precede the start (same-day restatements do)."""
    report = ValidationReport(layer="Silver - Product Intervals")
    logger.info("Validating product validity intervals...")

    inverted = int((df["prd_end_dt"] < df["prd_start_dt"]).sum())
    report.add(ValidationResult(
        check_name="End Before Start",
        passed=inverted == 0,
        message=f"{inverted} records end before they start",
        severity="WARNING",
    ))

    open_ended = int(df["prd_end_dt"].isna().sum())
    report.add(ValidationResult(
        check_name="Open-Ended Products",
        passed=True,
        message=f"{open_ended} records have no end date",
        severity="INFO",
    ))
    return report


def validate_sales_references(sales_df: pd.DataFrame, cust_df: pd.DataFrame) -> ValidationReport:
    """
    Validate references between conformed sales and customers.

    Checks:
    - All sales customer ids exist in the customer relation
    - Unknown order dates (informational)
    """
    report = ValidationReport(layer="Silver - Referential Integrity")
    logger.info("Validating conformed sales references...")

    cust_ids = set(cust_df["cst_id"].dropna().unique())
    sales_ids = set(sales_df["sls_cust_id"].dropna().unique())
    orphan_ids = sales_ids - cust_ids
    orphan_count = int(sales_df["sls_cust_id"].isin(orphan_ids).sum())

    report.add(ValidationResult(
        check_name="Orphan Sales Records",
        passed=len(orphan_ids) == 0,
        message=f"{len(orphan_ids)} customer IDs ({orphan_count} records) not found in customer relation",
        severity="WARNING",
    ))

    unknown_dates = int(sales_df["sls_order_dt"].isna().sum())
    report.add(ValidationResult(
        check_name="Unknown Order Dates",
        passed=True,
        message=f"{unknown_dates} order dates resolved to unknown",
        severity="INFO",
    ))
    return report


def run_silver_validation(relations: Dict[str, pd.DataFrame]) -> List[ValidationReport]:
    """
    Run all Silver layer validations.

    Args:
        relations: Conformed frames keyed by relation name

    Returns:
        List of ValidationReport objects
    """
    logger.info("=" * 60)
    logger.info("SILVER LAYER VALIDATION")
    logger.info("=" * 60)

    reports = [validate_conformed_relation(name, df) for name, df in relations.items()]
    if "crm_prd_info" in relations:
        reports.append(validate_product_intervals(relations["crm_prd_info"]))
    if "crm_sales_details" in relations and "crm_cust_info" in relations:
        reports.append(validate_sales_references(
            relations["crm_sales_details"], relations["crm_cust_info"]
        ))

    # Summary
    total_errors = sum(r.error_count for r in reports)
    total_warnings = sum(r.warning_count for r in reports)

    logger.info("=" * 60)
    if total_errors > 0:
        logger.error(f"VALIDATION FAILED: {total_errors} errors, {total_warnings} warnings")
    else:
        logger.info(f"VALIDATION PASSED: {total_warnings} warnings")
    logger.info("=" * 60)

    return reports
