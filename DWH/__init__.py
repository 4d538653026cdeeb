# DWH/__init__.py
"""
Sales Data Warehouse pipeline (Medallion Architecture).

This package implements a three-layer data pipeline:
- Bronze: Raw CRM/ERP extracts, coarsely typed
- Silver: Deduplication, cleansing, code mapping and derivation
- Gold: Dimensional model (customers, products, sales) for analytics

followed by reconciliation of the published model.

Usage:
    from DWH import run_etl_medallion
    results = run_etl_medallion()
    
    # Or run individual layers:
    from DWH.silver import run_silver_transform
    from DWH.gold import run_gold_load
    from DWH.common import run_reconciliation
"""

__version__ = "1.0.0"

# Main entry point
from DWH.orchestrator import run_etl_medallion

# Layer-specific exports
from DWH.bronze import run_bronze_load
from DWH.silver import run_silver_transform, run_silver_validation
from DWH.gold import run_gold_load
from DWH.common import run_reconciliation, QCReport, QCResult, RunContext, StepOutcome

__all__ = [
    # Version
    "__version__",
    # Main orchestrator
    "run_etl_medallion",
    # Bronze layer
    "run_bronze_load",
    # Silver layer
    "run_silver_transform",
    "run_silver_validation",
    # Gold layer
    "run_gold_load",
    # Reconciliation and run reporting
    "run_reconciliation",
    "QCReport",
    "QCResult",
    "RunContext",
    "StepOutcome",
]
