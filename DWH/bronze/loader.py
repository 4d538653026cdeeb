# DWH/bronze/loader.py
"""
Bronze Layer Loader - Bulk load CRM/ERP CSV extracts into raw staging.
Each run replaces every bronze relation with the current extract.
"""

import os
import logging
from typing import Any, Dict, Optional

import pandas as pd

from db.models_bronze import LAYER, BRONZE_RELATIONS
from DWH.common.exceptions import BronzeLoadError, ETLError
from DWH.common.run_context import RunContext
from DWH.common.store import RelationStore, bronze_store, coerce_frame

logger = logging.getLogger(__name__)

# Relation -> extract path relative to the data directory
SOURCE_FILES = {
    "crm_cust_info": os.path.join("source_crm", "cust_info.csv"),
    "crm_prd_info": os.path.join("source_crm", "prd_info.csv"),
    "crm_sales_details": os.path.join("source_crm", "sales_details.csv"),
    "erp_cust_az12": os.path.join("source_erp", "CUST_AZ12.csv"),
    "erp_loc_a101": os.path.join("source_erp", "LOC_A101.csv"),
    "erp_px_cat_g1v2": os.path.join("source_erp", "PX_CAT_G1V2.csv"),
}


def read_extract(file_path: str, relation: str) -> pd.DataFrame:
    """
    Read a CSV extract and coerce it to the bronze schema.

    Columns are matched case-insensitively; values that don't parse as the
    column's type become null.

    Raises:
        BronzeLoadError: If the file is missing, unreadable or lacks schema columns
    """
    if not os.path.exists(file_path):
        raise BronzeLoadError(f"Extract not found for {relation}", file_path=file_path)

    try:
        # Read with all columns as strings (no type conversion)
        df = pd.read_csv(file_path, sep=",", dtype=str, low_memory=False, quotechar='"')
    except (OSError, pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise BronzeLoadError(f"Failed to read extract for {relation}", file_path=file_path, original_error=e) from e

    df.columns = df.columns.str.strip().str.replace('"', '').str.lower()
    schema = BRONZE_RELATIONS[relation]
    missing = [c for c in schema if c not in df.columns]
    if missing:
        raise BronzeLoadError(
            f"Extract for {relation} is missing columns {missing}",
            file_path=file_path,
        )

    return coerce_frame(df, schema)


def load_csv_to_bronze(
    file_path: str,
    relation: str,
    bronze: RelationStore,
    ctx: RunContext,
) -> int:
    """
    Load a single CSV extract into a bronze relation.

    Args:
        file_path: Path to the CSV file
        relation: Bronze relation name
        bronze: Raw staging store
        ctx: Run context receiving the outcome

    Returns:
        Number of records loaded

    Raises:
        BronzeLoadError: If reading or replacing fails
    """
    file_name = os.path.basename(file_path)
    logger.info(f"Loading file: {file_name}")

    with ctx.track(LAYER, relation) as outcome:
        df = read_extract(file_path, relation)
        outcome.rows_in = len(df)
        try:
            outcome.rows_out = bronze.replace(relation, df, run_id=ctx.run_id)
        except ETLError as e:
            raise BronzeLoadError(
                f"Failed to stage {relation}", file_path=file_path, original_error=e
            ) from e

    logger.info(f"  Total: {outcome.rows_out} records loaded from {file_name}")
    return outcome.rows_out


# MAIN ETL FUNCTION

def run_bronze_load(
    data_dir: str = "datasets",
    ctx: Optional[RunContext] = None,
    bronze: Optional[RelationStore] = None,
) -> Dict[str, Any]:
    """
    Run the complete Bronze layer load.

    Args:
        data_dir: Directory containing source_crm/ and source_erp/ extracts
        ctx: Run context
        bronze: Raw staging store

    Returns:
        dict: Records loaded per relation
    """
    ctx = ctx or RunContext()
    bronze = bronze or bronze_store()

    logger.info("=" * 60)
    logger.info(f"BRONZE LAYER: Loading raw extracts from {data_dir}")
    logger.info("=" * 60)

    counts = {}
    for relation, rel_path in SOURCE_FILES.items():
        counts[relation] = load_csv_to_bronze(os.path.join(data_dir, rel_path), relation, bronze, ctx)

    logger.info("=" * 60)
    logger.info(f"BRONZE LAYER COMPLETE: {sum(counts.values())} records in {len(counts)} relations")
    logger.info("=" * 60)

    return {"run_id": ctx.run_id, "relations": counts}


if __name__ == "__main__":
    from DWH.common.logging import configure_logging
    configure_logging()
    run_bronze_load()
