import pandas as pd
import pytest

from DWH.common.exceptions import ValidationError
from DWH.common.quality_checks import (
    ERROR,
    INFO,
    QCReport,
    QCResult,
    check_distinct_values,
    check_duplicates,
    check_measure_consistency,
    check_nulls,
    check_orphan_facts,
    check_referential_integrity,
    check_row_count_parity,
    run_reconciliation,
)
from DWH.common.run_context import FAILURE
from DWH.gold.loader import run_gold_load
from DWH.silver.transformer import run_silver_transform
from DWH.silver.utils import GENDER


@pytest.fixture
def dims():
    customers = pd.DataFrame({"customer_key": pd.array([1, 2], dtype="Int64")})
    products = pd.DataFrame({"product_key": pd.array([1, 2, 3], dtype="Int64")})
    return customers, products


def test_row_count_parity_reports_difference():
    source = pd.DataFrame({"x": range(1000)})
    target = pd.DataFrame({"x": range(998)})

    result = check_row_count_parity(source, target, "silver.crm_sales_details", "fact_sales")

    assert not result.passed
    assert result.details["difference"] == 2
    assert "count mismatch of 2" in result.message


def test_row_count_parity_passes_on_equal_counts():
    df = pd.DataFrame({"x": range(5)})
    assert check_row_count_parity(df, df.copy(), "a", "b").passed


def test_orphan_facts_flags_each_unresolved_row(dims):
    customers, products = dims
    fact = pd.DataFrame({
        "order_number": ["SO1", "SO2", "SO3", "SO4"],
        "customer_key": pd.array([1, 9, None, 2], dtype="Int64"),
        "product_key": pd.array([1, 1, 3, 7], dtype="Int64"),
    })

    result = check_orphan_facts(fact, customers, products)

    assert not result.passed
    assert result.details["orphan_count"] == 3
    assert result.details["missing_customer"] == 2
    assert result.details["missing_product"] == 1
    assert result.details["sample_orders"] == ["SO2", "SO3", "SO4"]


def test_orphan_facts_passes_when_all_keys_resolve(dims):
    customers, products = dims
    fact = pd.DataFrame({
        "order_number": ["SO1"],
        "customer_key": pd.array([2], dtype="Int64"),
        "product_key": pd.array([3], dtype="Int64"),
    })
    assert check_orphan_facts(fact, customers, products).passed


def test_referential_integrity_counts_null_keys(dims):
    customers, _ = dims
    fact = pd.DataFrame({"customer_key": pd.array([1, None, 5], dtype="Int64")})

    result = check_referential_integrity(
        fact, customers, "fact_sales", "dim_customers", "customer_key", "customer_key"
    )

    assert result.details["orphan_rows"] == 2
    assert result.details["null_keys"] == 1
    assert result.details["sample_orphans"] == [5]


def test_distinct_values_summary_and_unexpected_labels():
    ok = check_distinct_values(pd.DataFrame({"gender": ["Male", "n/a"]}), "dim_customers", "gender", GENDER)
    assert ok.passed
    assert ok.severity == INFO
    assert ok.details["values"] == ["Male", "n/a"]

    bad = check_distinct_values(pd.DataFrame({"gender": ["Male", "X"]}), "dim_customers", "gender", GENDER)
    assert not bad.passed
    assert bad.severity == ERROR
    assert bad.details["unexpected"] == ["X"]


def test_nulls_and_duplicates():
    df = pd.DataFrame({"key": [1, 1, None]})

    assert check_nulls(df, "t", ["key"]).details["null_counts"] == {"key": 1}
    assert check_duplicates(df, "t", ["key"]).details["duplicate_count"] == 2


def test_measure_consistency_ignores_unknown_measures():
    df = pd.DataFrame({
        "sales_amount": [70.0, 10.0, 99.0],
        "quantity": [2, 0, 1],
        "price": [35.0, None, 50.0],
    })
    result = check_measure_consistency(df)

    assert result.details == {"inconsistent": 1, "unknown": 1}


def test_report_passes_when_only_warnings_fail():
    report = QCReport(run_id="r1")
    report.add(QCResult("row_count", "t", passed=False, message="empty", severity="WARNING"))
    report.add(QCResult("null_check", "t", passed=True, message="ok"))

    assert report.passed
    assert report.failed_count == 1
    assert report.get("row_count").message == "empty"
def test_run_reconciliation_reports_orphan_facts(loaded_bronze, silver, gold, ctx):
    run_silver_transform(ctx=ctx, bronze=loaded_bronze, silver=silver)
    run_gold_load(ctx=ctx, silver=silver, gold=gold)

    report = run_reconciliation(ctx=ctx, silver=silver, gold=gold)

    assert report.run_id == ctx.run_id
    assert not report.passed

    orphans = report.get("orphan_facts", "fact_sales")
    assert orphans.details["orphan_count"] == 2
    assert sorted(orphans.details["sample_orders"]) == ["SO43700", "SO43701"]

    assert report.get("row_count_parity", "fact_sales").passed
    assert report.get("row_count_parity", "dim_customers").passed
    assert report.get("duplicate_check", "dim_customers").passed
    assert report.get("distinct_values_gender", "dim_customers").passed

    [outcome] = ctx.outcomes_for("reconciliation")
    assert outcome.succeeded
    assert outcome.entity == "fact_sales"
    assert outcome.rows_in == 5
    assert outcome.rows_out == len(report.results)
    assert outcome.message == f"{report.failed_count} findings"


def test_run_reconciliation_gates_on_findings(loaded_bronze, silver, gold, ctx):
    run_silver_transform(ctx=ctx, bronze=loaded_bronze, silver=silver)
    run_gold_load(ctx=ctx, silver=silver, gold=gold)

    with pytest.raises(ValidationError) as exc_info:
        run_reconciliation(ctx=ctx, silver=silver, gold=gold, fail_on_findings=True)

    assert exc_info.value.details["failed_checks"] >= 1
    [outcome] = ctx.outcomes_for("reconciliation")
    assert outcome.status == FAILURE
    assert outcome.rows_out > 0


def test_run_reconciliation_without_model_fails(silver, gold, ctx):
    with pytest.raises(ValidationError):
        run_reconciliation(ctx=ctx, silver=silver, gold=gold)

    [outcome] = ctx.outcomes_for("reconciliation")
    assert outcome.status == FAILURE
    assert "could not be read" in outcome.message
    assert not ctx.succeeded
