from datetime import date

import pytest

from DWH.common.config import PipelineConfig
from DWH.common.run_context import FAILURE, SUCCESS, RunContext, StepOutcome


def test_track_records_success():
    ctx = RunContext()
    with ctx.track("silver", "crm_cust_info", rows_in=5) as outcome:
        outcome.rows_out = 3

    assert ctx.outcomes == [outcome]
    assert outcome.status == SUCCESS
    assert outcome.duration >= 0
    assert ctx.summary("silver")[0]["rows_out"] == 3


def test_track_records_failure_and_reraises():
    ctx = RunContext()
    with pytest.raises(RuntimeError):
        with ctx.track("gold", "fact_sales"):
            raise RuntimeError("boom")

    outcome = ctx.outcomes_for("gold")[0]
    assert outcome.status == FAILURE
    assert outcome.message == "boom"
    assert not ctx.succeeded


def test_elapsed_time_is_carried_over():
    ctx = RunContext()
    with ctx.track("silver", "erp_loc_a101", elapsed=2.5):
        pass

    assert ctx.outcomes[0].duration >= 2.5


def test_contexts_do_not_share_outcomes():
    first, second = RunContext(), RunContext()
    first.record(StepOutcome(entity="x", layer="bronze"))

    assert second.outcomes == []
    assert first.run_id != second.run_id


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("DWH_DATABASE_URL", "sqlite:///elsewhere.db")
    monkeypatch.setenv("DWH_AS_OF", "2024-01-01")
    monkeypatch.setenv("DWH_MAX_WORKERS", "0")
    monkeypatch.setenv("DWH_FAIL_ON_FINDINGS", "yes")

    config = PipelineConfig.from_env()

    assert config.database_url == "sqlite:///elsewhere.db"
    assert config.as_of == date(2024, 1, 1)
    assert config.max_workers == 1
    assert config.fail_on_findings
    assert not config.load_bronze
