"""
Pipeline configuration resolved from environment variables.
"""

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from db.db_utils import get_database_url

TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_date(name: str) -> Optional[date]:
    value = os.getenv(name)
    if not value:
        return None
    return date.fromisoformat(value.strip())


@dataclass
class PipelineConfig:
    """
    Settings for one warehouse run.

    Attributes:
        database_url: SQLAlchemy URL hosting all three layers
        data_dir: Directory holding the source_crm/ and source_erp/ extracts
        as_of: Reference date for "current" products and future birth dates
        max_workers: Thread pool size for per-entity conformance
        log_level: Logging level name
        log_file: Optional log file path
        fail_on_findings: Raise when reconciliation reports ERROR findings
        load_bronze: Reload raw staging from data_dir before conformance
    """
    database_url: str = field(default_factory=get_database_url)
    data_dir: str = "datasets"
    as_of: Optional[date] = None
    max_workers: int = 1
    log_level: str = "INFO"
    log_file: Optional[str] = None
    fail_on_findings: bool = False
    load_bronze: bool = False

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a configuration from DWH_* environment variables."""
        return cls(
            database_url=get_database_url(),
            data_dir=os.getenv("DWH_DATA_DIR", "datasets"),
            as_of=_env_date("DWH_AS_OF"),
            max_workers=max(1, int(os.getenv("DWH_MAX_WORKERS", "1"))),
            log_level=os.getenv("DWH_LOG_LEVEL", "INFO"),
            log_file=os.getenv("DWH_LOG_FILE") or None,
            fail_on_findings=_env_bool("DWH_FAIL_ON_FINDINGS"),
            load_bronze=_env_bool("DWH_LOAD_BRONZE"),
        )
