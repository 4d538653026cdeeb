import logging
from datetime import date

import pandas as pd
import pytest

from DWH.common.config import PipelineConfig
from DWH.common.exceptions import ValidationError
from DWH.common.run_context import FAILURE, RunContext
from DWH.orchestrator import main, run_etl_medallion

AS_OF = date(2024, 1, 1)


@pytest.fixture
def config(database_url, extract_dir):
    return PipelineConfig(
        database_url=database_url,
        data_dir=str(extract_dir),
        as_of=AS_OF,
        load_bronze=True,
    )


def test_pipeline_runs_end_to_end(config, gold):
    results = run_etl_medallion(config)

    assert results["bronze"]["relations"]["crm_sales_details"] == 6
    assert results["silver"]["relations"]["crm_sales_details"] == 5
    assert results["gold"]["fact_sales"] == 5
    assert results["reconciliation"].get("orphan_facts").details["orphan_count"] == 2

    ctx = results["context"]
    assert ctx.succeeded
    assert ctx.as_of == AS_OF
    assert {row["layer"] for row in ctx.summary()} == {"bronze", "silver", "gold", "reconciliation"}
    assert len(gold.read("dim_customers")) == 3


def test_pipeline_is_idempotent(config, gold):
    run_etl_medallion(config)
    first = gold.read_all()

    run_etl_medallion(config, ctx=RunContext(as_of=AS_OF, max_workers=3))
    second = gold.read_all()

    for name, df in first.items():
        pd.testing.assert_frame_equal(df, second[name])
    assert gold.current_version("fact_sales") == 2


def test_findings_gate_the_run_when_configured(config):
    config.fail_on_findings = True
    ctx = RunContext(as_of=AS_OF)

    with pytest.raises(ValidationError) as exc_info:
        run_etl_medallion(config, ctx=ctx)

    assert exc_info.value.details["validation_type"] == "reconciliation"
    [outcome] = ctx.outcomes_for("reconciliation")
    assert outcome.status == FAILURE
    assert outcome.rows_in == 5
    assert not ctx.succeeded


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    # configure_logging swaps the root handlers; drop the ones it added
    for handler in root.handlers[:]:
        if handler not in handlers and type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_cli_exit_codes(database_url, extract_dir, tmp_path, restore_logging):
    args = [
        "--log-dir", str(tmp_path / "logs"),
        "--database-url", database_url,
        "--data-dir", str(extract_dir),
        "--load-bronze",
        "--as-of", AS_OF.isoformat(),
    ]

    assert main(args) == 0
    assert main(args + ["--fail-on-findings"]) == 1
    assert len(list((tmp_path / "logs").glob("dwh_run_*_*.log"))) == 2


def test_cli_log_file_carries_run_id(database_url, extract_dir, tmp_path, restore_logging):
    log_dir = tmp_path / "logs"
    assert main(["--log-dir", str(log_dir), "--database-url", database_url,
                 "--data-dir", str(extract_dir), "--load-bronze", "--as-of", AS_OF.isoformat()]) == 0

    [log_file] = log_dir.glob("dwh_run_*.log")
    run_id = log_file.stem.rsplit("_", 1)[1]
    text = log_file.read_text(encoding="utf-8")
    assert f"[run {run_id}]" in text
    assert f"Run {run_id} summary" in text


def test_cli_fails_on_empty_extract(database_url, extract_dir, tmp_path, restore_logging):
    (extract_dir / "source_erp" / "LOC_A101.csv").write_text("")

    args = [
        "--database-url", database_url,
        "--data-dir", str(extract_dir),
        "--load-bronze",
        "--as-of", AS_OF.isoformat(),
    ]
    assert main(args) == 1
