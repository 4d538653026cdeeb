# DWH/orchestrator.py
"""
Medallion Architecture Warehouse Orchestrator.
Runs Bronze → Silver → Gold data flow followed by reconciliation.
"""

import sys
import logging
import argparse
from datetime import date
from typing import Dict, Any, List, Optional

from db.db_utils import get_engine
from DWH.bronze.loader import run_bronze_load
from DWH.silver.transformer import run_silver_transform
from DWH.gold.loader import run_gold_load
from DWH.common.config import PipelineConfig
from DWH.common.exceptions import ETLError
from DWH.common.logging import configure_logging, create_run_log_file
from DWH.common.quality_checks import run_reconciliation
from DWH.common.run_context import RunContext
from DWH.common.store import bronze_store, silver_store, gold_store

logger = logging.getLogger(__name__)


def run_etl_medallion(
    config: Optional[PipelineConfig] = None,
    ctx: Optional[RunContext] = None,
) -> Dict[str, Any]:
    """
    Run the complete warehouse pipeline.

    Pipeline Flow:
        [Bronze (CSV load)] → Silver (Conformed) → Gold (Dimensional Model) → Reconciliation

    Each stage starts only after the previous one committed every relation;
    a failed stage stops the run and leaves later layers untouched.

    Args:
        config: Pipeline settings (default: from environment)
        ctx: Run context (default: built from config)

    Returns:
        dict: Results from each layer, the reconciliation report and the run context

    Raises:
        ETLError: If a layer fails, or findings are gating and reconciliation failed
    """
    config = config or PipelineConfig.from_env()
    ctx = ctx or RunContext(
        as_of=config.as_of or date.today(),
        max_workers=config.max_workers,
    )

    engine = get_engine(config.database_url)
    bronze = bronze_store(engine)
    silver = silver_store(engine)
    gold = gold_store(engine)

    results: Dict[str, Any] = {
        "run_id": ctx.run_id,
        "bronze": None,
        "silver": None,
        "gold": None,
        "reconciliation": None,
        "context": ctx,
    }

    try:
        # STEP 1: BRONZE LAYER - Load raw extracts (optional)
        if config.load_bronze:
            logger.info("")
            logger.info("=" * 70)
            logger.info("  STEP 1: BRONZE LAYER - Loading raw extracts")
            logger.info("=" * 70)
            results["bronze"] = run_bronze_load(config.data_dir, ctx=ctx, bronze=bronze)

        # STEP 2: SILVER LAYER - Conform
        logger.info("")
        logger.info("=" * 70)
        logger.info("  STEP 2: SILVER LAYER - Conforming raw relations")
        logger.info("=" * 70)

        silver_result = run_silver_transform(ctx=ctx, bronze=bronze, silver=silver, validate=True)
        results["silver"] = silver_result

        if any(not report.passed for report in silver_result["validation"]):
            logger.warning("Silver layer validation found issues - proceeding with Gold build")

        # STEP 3: GOLD LAYER - Build dimensional model
        logger.info("")
        logger.info("=" * 70)
        logger.info("  STEP 3: GOLD LAYER - Building dimensional model")
        logger.info("=" * 70)

        results["gold"] = run_gold_load(ctx=ctx, silver=silver, gold=gold)

        # STEP 4: RECONCILIATION
        logger.info("")
        logger.info("=" * 70)
        logger.info("  STEP 4: RECONCILIATION")
        logger.info("=" * 70)

        report = run_reconciliation(
            ctx=ctx, silver=silver, gold=gold, fail_on_findings=config.fail_on_findings
        )
        results["reconciliation"] = report

        if not report.passed:
            logger.error(f"Reconciliation found {report.failed_count} issues")
        else:
            logger.info("Reconciliation passed!")

    except ETLError as e:
        logger.error(f"PIPELINE FAILED (run {ctx.run_id}): {e}")
        log_run_summary(ctx)
        raise

    logger.info("")
    logger.info("=" * 70)
    logger.info("PIPELINE COMPLETED SUCCESSFULLY")
    logger.info("=" * 70)
    log_run_summary(ctx)

    return results


def log_run_summary(ctx: RunContext) -> List[dict]:
    """Log and return the per-relation outcomes of a run."""
    summary = ctx.summary()
    logger.info("")
    logger.info(f"Run {ctx.run_id} summary (as of {ctx.as_of}):")
    for row in summary:
        logger.info(
            f"  {row['layer']:<7} {row['entity']:<20} {row['status']:<8} "
            f"in={row['rows_in']:<7} out={row['rows_out']:<7} {row['duration']:.2f}s"
        )
    logger.info("")
    return summary


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the sales warehouse pipeline")
    parser.add_argument("--database-url", help="SQLAlchemy URL (default: DWH_DATABASE_URL)")
    parser.add_argument("--data-dir", help="Directory with source_crm/ and source_erp/ extracts")
    parser.add_argument("--load-bronze", action="store_true", help="Reload raw staging from CSV extracts first")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Reference date (YYYY-MM-DD)")
    parser.add_argument("--max-workers", type=int, help="Threads for per-relation conformance")
    parser.add_argument("--fail-on-findings", action="store_true", help="Exit non-zero on reconciliation errors")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--log-dir", help="Write logs to a timestamped file in this directory")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    config = PipelineConfig.from_env()
    if args.database_url:
        config.database_url = args.database_url
    if args.data_dir:
        config.data_dir = args.data_dir
    if args.load_bronze:
        config.load_bronze = True
    if args.as_of:
        config.as_of = args.as_of
    if args.max_workers:
        config.max_workers = max(1, args.max_workers)
    if args.fail_on_findings:
        config.fail_on_findings = True

    ctx = RunContext(as_of=config.as_of or date.today(), max_workers=config.max_workers)
    if args.log_file:
        config.log_file = args.log_file
    elif args.log_dir:
        config.log_file = create_run_log_file(args.log_dir, run_id=ctx.run_id)

    configure_logging(config.log_level, config.log_file, run_id=ctx.run_id)
    try:
        run_etl_medallion(config, ctx=ctx)
    except ETLError:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
