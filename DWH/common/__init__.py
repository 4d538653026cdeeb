"""
Common utilities shared across warehouse layers.
Includes the relation store, run context, reconciliation checks,
configuration, logging, and custom exceptions.
"""

from DWH.common.quality_checks import (
    QCResult,
    QCReport,
    run_quality_checks,
    run_reconciliation,
    check_row_count,
    check_nulls,
    check_duplicates,
    check_numeric_range,
    check_date_range,
    check_referential_integrity,
    check_orphan_facts,
    check_row_count_parity,
    check_distinct_values,
    check_measure_consistency,
)
from DWH.common.exceptions import (
    ETLError,
    BronzeLoadError,
    SilverTransformError,
    GoldLoadError,
    ValidationError,
    StoreError,
    StoreReadError,
    StoreWriteError,
    SchemaMismatchError,
)
from DWH.common.run_context import RunContext, StepOutcome
from DWH.common.store import RelationStore, bronze_store, silver_store, gold_store
from DWH.common.config import PipelineConfig
from DWH.common.logging import configure_logging, create_run_log_file

__all__ = [
    # Reconciliation
    "QCResult",
    "QCReport",
    "run_quality_checks",
    "run_reconciliation",
    "check_row_count",
    "check_nulls",
    "check_duplicates",
    "check_numeric_range",
    "check_date_range",
    "check_referential_integrity",
    "check_orphan_facts",
    "check_row_count_parity",
    "check_distinct_values",
    "check_measure_consistency",
    # Exceptions
    "ETLError",
    "BronzeLoadError",
    "SilverTransformError",
    "GoldLoadError",
    "ValidationError",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "SchemaMismatchError",
    # Run context and stores
    "RunContext",
    "StepOutcome",
    "RelationStore",
    "bronze_store",
    "silver_store",
    "gold_store",
    "PipelineConfig",
    # Logging
    "configure_logging",
    "create_run_log_file",
]
