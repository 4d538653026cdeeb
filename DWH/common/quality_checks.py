"""
Reconciliation & Quality Control Module
- Orphan fact detection (customer and product keys)
- Row count parity between published and conformed relations
- Dimension key uniqueness and null checks
- Distinct-value summaries for categorical attributes
- Measure, range and date sanity checks

Everything here is read-only: findings are reported, never corrected, and
the report is returned to the caller rather than persisted.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from datetime import datetime

import numpy as np
import pandas as pd

from DWH.common.exceptions import ETLError, ValidationError
from DWH.common.run_context import RunContext
from DWH.common.store import RelationStore, silver_store, gold_store
from DWH.silver.utils import CodeMapping, MARITAL_STATUS, GENDER, PRODUCT_LINE, labels_outside

logger = logging.getLogger(__name__)

ERROR = "ERROR"
WARNING = "WARNING"
INFO = "INFO"

LAYER = "reconciliation"


@dataclass
class QCResult:
    """Single reconciliation finding."""
    check_name: str
    table_name: str
    passed: bool
    message: str
    details: Optional[Dict[str, Any]] = None
    severity: str = ERROR


@dataclass
class QCReport:
    """Aggregated reconciliation report for a pipeline run."""
    run_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    results: List[QCResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results if r.severity == ERROR)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def findings(self) -> List[QCResult]:
        return [r for r in self.results if not r.passed]

    def get(self, check_name: str, table_name: Optional[str] = None) -> Optional[QCResult]:
        for r in self.results:
            if r.check_name == check_name and (table_name is None or r.table_name == table_name):
                return r
        return None

    def add(self, result: QCResult) -> None:
        self.results.append(result)
        status = "PASS" if result.passed else "FAIL"
        log_fn = logger.info if result.passed or result.severity == INFO else (
            logger.error if result.severity == ERROR else logger.warning
        )
        log_fn(f"[QC {status}] {result.table_name}: {result.check_name} - {result.message}")

    def summary(self) -> str:
        lines = [
            "=" * 60,
            f"RECONCILIATION REPORT {self.run_id or ''} - {self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}",
            "=" * 60,
            f"Total Checks: {len(self.results)}",
            f"Passed: {self.passed_count}",
            f"Failed: {self.failed_count}",
            "-" * 60,
        ]
        for r in self.results:
            status = "PASS" if r.passed else "FAIL"
            lines.append(f"[{status}] [{r.severity}] {r.table_name}.{r.check_name}: {r.message}")
        lines.append("=" * 60)
        return "\n".join(lines)


# INDIVIDUAL CHECK FUNCTIONS

def check_row_count(df: pd.DataFrame, table_name: str, min_rows: int = 1) -> QCResult:
    """Check that DataFrame has minimum required rows."""
    row_count = len(df)
    passed = row_count >= min_rows
    return QCResult(
        check_name="row_count",
        table_name=table_name,
        passed=passed,
        message=f"Row count: {row_count} (min: {min_rows})",
        details={"row_count": row_count, "min_required": min_rows},
        severity=WARNING,
    )


def check_nulls(df: pd.DataFrame, table_name: str, critical_columns: List[str]) -> QCResult:
    """Check for null values in critical columns."""
    null_counts = {}
    for col in critical_columns:
        if col in df.columns:
            null_counts[col] = int(df[col].isna().sum())

    total_nulls = sum(null_counts.values())
    passed = total_nulls == 0

    return QCResult(
        check_name="null_check",
        table_name=table_name,
        passed=passed,
        message=f"Nulls in critical columns: {total_nulls}" + (f" ({null_counts})" if not passed else ""),
        details={"null_counts": null_counts}
    )


def check_duplicates(df: pd.DataFrame, table_name: str, key_columns: List[str]) -> QCResult:
    """Check for duplicate records based on key columns."""
    existing_cols = [c for c in key_columns if c in df.columns]
    if not existing_cols:
        return QCResult(
            check_name="duplicate_check",
            table_name=table_name,
            passed=True,
            message="No key columns found to check"
        )

    duplicate_count = int(df.duplicated(subset=existing_cols, keep=False).sum())
    passed = duplicate_count == 0

    return QCResult(
        check_name="duplicate_check",
        table_name=table_name,
        passed=passed,
        message=f"Duplicates on {existing_cols}: {duplicate_count}",
        details={"duplicate_count": duplicate_count, "key_columns": existing_cols}
    )


def check_numeric_range(
    df: pd.DataFrame,
    table_name: str,
    column: str,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None
) -> QCResult:
    """Check that numeric values fall within expected range."""
    col_data = pd.to_numeric(df[column], errors="coerce").astype("float64")
    issues = []

    if min_val is not None:
        below_min = int((col_data < min_val).sum())
        if below_min > 0:
            issues.append(f"{below_min} values below {min_val}")

    if max_val is not None:
        above_max = int((col_data > max_val).sum())
        if above_max > 0:
            issues.append(f"{above_max} values above {max_val}")

    passed = len(issues) == 0
    actual_min = float(col_data.min()) if not col_data.isna().all() else None
    actual_max = float(col_data.max()) if not col_data.isna().all() else None

    return QCResult(
        check_name=f"range_check_{column}",
        table_name=table_name,
        passed=passed,
        message=f"Range [{actual_min}, {actual_max}]" + (f" - Issues: {', '.join(issues)}" if issues else " OK"),
        details={"min": actual_min, "max": actual_max, "expected_min": min_val, "expected_max": max_val},
        severity=WARNING,
    )


def check_date_range(
    df: pd.DataFrame,
    table_name: str,
    column: str,
    min_date: Optional[str] = None,
    max_date: Optional[str] = None
) -> QCResult:
    """Check that known date values fall within expected range."""
    col_data = pd.to_datetime(df[column], errors="coerce")
    issues = []

    if min_date:
        before_min = int((col_data < pd.to_datetime(min_date)).sum())
        if before_min > 0:
            issues.append(f"{before_min} dates before {min_date}")

    if max_date:
        after_max = int((col_data > pd.to_datetime(max_date)).sum())
        if after_max > 0:
            issues.append(f"{after_max} dates after {max_date}")

    passed = len(issues) == 0
    return QCResult(
        check_name=f"date_range_{column}",
        table_name=table_name,
        passed=passed,
        message=f"Date range [{col_data.min()}] to [{col_data.max()}]" + (f" - {', '.join(issues)}" if issues else " OK"),
        details={"min_date": str(col_data.min()), "max_date": str(col_data.max()), "unknown": int(col_data.isna().sum())},
        severity=WARNING,
    )


def _unresolved(child_df: pd.DataFrame, parent_df: pd.DataFrame, child_key: str, parent_key: str) -> pd.Series:
    parent_keys = set(parent_df[parent_key].dropna().unique())
    return child_df[child_key].isna() | ~child_df[child_key].isin(parent_keys)


def check_referential_integrity(
    child_df: pd.DataFrame,
    parent_df: pd.DataFrame,
    child_table: str,
    parent_table: str,
    child_key: str,
    parent_key: str
) -> QCResult:
    """Check that every child row's key (null included) resolves in the parent table."""
    unresolved = _unresolved(child_df, parent_df, child_key, parent_key)
    orphan_rows = int(unresolved.sum())
    orphan_keys = child_df.loc[unresolved, child_key].dropna().unique().tolist()

    return QCResult(
        check_name=f"ref_integrity_{child_key}",
        table_name=child_table,
        passed=orphan_rows == 0,
        message=f"Unresolved {child_key}: {orphan_rows} rows" + (f" (missing in {parent_table})" if orphan_rows else ""),
        details={
            "orphan_rows": orphan_rows,
            "null_keys": int(child_df[child_key].isna().sum()),
            "sample_orphans": [int(k) if isinstance(k, (int, np.integer)) else k for k in orphan_keys[:10]],
        }
    )


def check_orphan_facts(
    fact_df: pd.DataFrame,
    dim_customers: pd.DataFrame,
    dim_products: pd.DataFrame,
    table_name: str = "fact_sales",
) -> QCResult:
    """Flag every fact row whose customer key or product key does not resolve."""
    missing_customer = _unresolved(fact_df, dim_customers, "customer_key", "customer_key")
    missing_product = _unresolved(fact_df, dim_products, "product_key", "product_key")
    orphans = missing_customer | missing_product
    orphan_count = int(orphans.sum())

    return QCResult(
        check_name="orphan_facts",
        table_name=table_name,
        passed=orphan_count == 0,
        message=f"Orphan fact rows: {orphan_count} of {len(fact_df)}",
        details={
            "orphan_count": orphan_count,
            "missing_customer": int(missing_customer.sum()),
            "missing_product": int(missing_product.sum()),
            "missing_both": int((missing_customer & missing_product).sum()),
            "sample_orders": fact_df.loc[orphans, "order_number"].head(10).tolist(),
        }
    )


def check_row_count_parity(
    source_df: pd.DataFrame,
    target_df: pd.DataFrame,
    source_table: str,
    target_table: str,
) -> QCResult:
    """Published relation must carry exactly one row per conformed source row."""
    source_rows = len(source_df)
    target_rows = len(target_df)
    difference = source_rows - target_rows

    return QCResult(
        check_name="row_count_parity",
        table_name=target_table,
        passed=difference == 0,
        message=(
            f"{target_rows} rows vs {source_rows} in {source_table}"
            + (f" - count mismatch of {abs(difference)}" if difference else " OK")
        ),
        details={
            "source_table": source_table,
            "source_rows": source_rows,
            "target_rows": target_rows,
            "difference": difference,
        }
    )


def check_distinct_values(
    df: pd.DataFrame,
    table_name: str,
    column: str,
    mapping: Optional[CodeMapping] = None,
) -> QCResult:
    """
    Summarize the distinct values of a categorical column.
    With a mapping, values the mapping can never produce are flagged.
    """
    values = sorted(str(v) for v in df[column].dropna().unique())
    unexpected = labels_outside(df[column], mapping) if mapping is not None else []

    return QCResult(
        check_name=f"distinct_values_{column}",
        table_name=table_name,
        passed=not unexpected,
        message=f"{len(values)} distinct values: {values}" + (f" - unexpected: {unexpected}" if unexpected else ""),
        details={"values": values, "unexpected": unexpected},
        severity=ERROR if unexpected else INFO,
    )


def check_measure_consistency(df: pd.DataFrame, table_name: str = "fact_sales", tolerance: float = 1e-6) -> QCResult:
    """sales_amount must equal quantity * price wherever all three are known."""
    amount = pd.to_numeric(df["sales_amount"], errors="coerce").astype("float64")
    quantity = pd.to_numeric(df["quantity"], errors="coerce").astype("float64")
    price = pd.to_numeric(df["price"], errors="coerce").astype("float64")

    known = amount.notna() & quantity.notna() & price.notna()
    inconsistent = known & ((amount - quantity * price).abs() > tolerance)
    count = int(inconsistent.sum())

    return QCResult(
        check_name="measure_consistency",
        table_name=table_name,
        passed=count == 0,
        message=f"Rows where sales_amount != quantity * price: {count}; unknown measures: {int((~known).sum())}",
        details={"inconsistent": count, "unknown": int((~known).sum())},
        severity=WARNING,
    )


# AGGREGATE VALIDATION FUNCTIONS

def run_quality_checks(
    dim_customers: pd.DataFrame,
    dim_products: pd.DataFrame,
    fact_sales: pd.DataFrame,
    silver_customers: pd.DataFrame,
    silver_sales: pd.DataFrame,
    as_of: Optional[Any] = None,
    run_id: Optional[str] = None,
) -> QCReport:
    """Run all reconciliation checks on the published model and return report."""
    report = QCReport(run_id=run_id)

    logger.info("=" * 60)
    logger.info("RUNNING RECONCILIATION CHECKS")
    logger.info("=" * 60)

    # ---- DIMENSION: CUSTOMERS ----
    report.add(check_row_count(dim_customers, "dim_customers", min_rows=1))
    report.add(check_nulls(dim_customers, "dim_customers", ["customer_key", "customer_id"]))
    report.add(check_duplicates(dim_customers, "dim_customers", ["customer_key"]))
    report.add(check_row_count_parity(silver_customers, dim_customers, "silver.crm_cust_info", "dim_customers"))
    report.add(check_distinct_values(dim_customers, "dim_customers", "gender", GENDER))
    report.add(check_distinct_values(dim_customers, "dim_customers", "marital_status", MARITAL_STATUS))
    report.add(check_distinct_values(dim_customers, "dim_customers", "country"))
    report.add(check_date_range(
        dim_customers, "dim_customers", "birthdate",
        min_date="1900-01-01", max_date=str(as_of) if as_of else None,
    ))

    # ---- DIMENSION: PRODUCTS ----
    report.add(check_row_count(dim_products, "dim_products", min_rows=1))
    report.add(check_nulls(dim_products, "dim_products", ["product_key", "product_number"]))
    report.add(check_duplicates(dim_products, "dim_products", ["product_key"]))
    report.add(check_distinct_values(dim_products, "dim_products", "product_line", PRODUCT_LINE))
    report.add(check_distinct_values(dim_products, "dim_products", "category"))

    # ---- FACT: SALES ----
    report.add(check_row_count(fact_sales, "fact_sales", min_rows=1))
    report.add(check_row_count_parity(silver_sales, fact_sales, "silver.crm_sales_details", "fact_sales"))
    report.add(check_referential_integrity(
        fact_sales, dim_customers,
        "fact_sales", "dim_customers",
        "customer_key", "customer_key"
    ))
    report.add(check_referential_integrity(
        fact_sales, dim_products,
        "fact_sales", "dim_products",
        "product_key", "product_key"
    ))
    report.add(check_orphan_facts(fact_sales, dim_customers, dim_products))
    report.add(check_measure_consistency(fact_sales))
    report.add(check_numeric_range(fact_sales, "fact_sales", "quantity", min_val=0))
    report.add(check_numeric_range(fact_sales, "fact_sales", "sales_amount", min_val=0))

    # Log summary
    logger.info(report.summary())

    return report


def run_reconciliation(
    ctx: Optional[RunContext] = None,
    silver: Optional[RelationStore] = None,
    gold: Optional[RelationStore] = None,
    fail_on_findings: bool = False,
) -> QCReport:
    """
    Reconcile the published gold relations against themselves and silver.

    The run is recorded on the context as one ``reconciliation`` outcome:
    rows_in is the fact row count, rows_out the number of checks run.

    Args:
        ctx: Run context (run id and reference date)
        silver: Conformed store
        gold: Published store
        fail_on_findings: Raise when any check fails instead of only reporting

    Returns:
        QCReport with one result per check

    Raises:
        ValidationError: If the relations to reconcile cannot be read, or
            findings were reported and ``fail_on_findings`` is set
    """
    ctx = ctx or RunContext()
    silver = silver or silver_store()
    gold = gold or gold_store(silver.engine)

    with ctx.track(LAYER, "fact_sales") as outcome:
        try:
            dim_customers = gold.read("dim_customers")
            dim_products = gold.read("dim_products")
            fact_sales = gold.read("fact_sales")
            silver_customers = silver.read("crm_cust_info")
            silver_sales = silver.read("crm_sales_details")
        except ETLError as e:
            logger.error(f"Reconciliation inputs could not be read: {e}")
            raise ValidationError(
                "Reconciliation inputs could not be read",
                validation_type="reconciliation",
                original_error=e,
            ) from e

        outcome.rows_in = len(fact_sales)
        report = run_quality_checks(
            dim_customers,
            dim_products,
            fact_sales,
            silver_customers,
            silver_sales,
            as_of=ctx.as_of,
            run_id=ctx.run_id,
        )
        outcome.rows_out = len(report.results)

        if not report.passed:
            outcome.message = f"{report.failed_count} findings"
            if fail_on_findings:
                raise ValidationError(
                    f"Run {ctx.run_id} failed reconciliation with {report.failed_count} findings",
                    validation_type="reconciliation",
                    failed_checks=report.failed_count,
                )

    return report
