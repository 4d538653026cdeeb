# DWH/silver/transformer.py
"""
Silver Layer ETL - Conform bronze extracts into one clean record per business key.
Every run rebuilds each silver relation in full.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from db.models_silver import LAYER, SILVER_RELATIONS, BUSINESS_KEYS
from DWH.common.exceptions import ETLError, SilverTransformError
from DWH.common.run_context import RunContext, StepOutcome, FAILURE
from DWH.common.store import RelationStore, bronze_store, silver_store
from DWH.silver.validator import run_silver_validation
from DWH.silver.utils import (
    clean_string_column,
    clean_date_column,
    parse_int_date,
    strip_prefix,
    remove_separators,
    split_product_key,
    deduplicate,
    derive_end_dates,
    repair_sales_measures,
    MARITAL_STATUS,
    GENDER,
    PRODUCT_LINE,
    COUNTRY,
)

logger = logging.getLogger(__name__)


def _dedup(df: pd.DataFrame, name: str, order_by: Optional[str] = None) -> pd.DataFrame:
    before = len(df)
    df, dropped = deduplicate(df, BUSINESS_KEYS[name], order_by=order_by)
    if dropped:
        logger.warning(f"{name}: dropped {dropped} records with a null business key")
    removed = before - dropped - len(df)
    if removed:
        logger.info(f"{name}: removed {removed} duplicate records")
    return df


# =============================================================================
# CRM CLEANING FUNCTIONS
# =============================================================================

def clean_customer_info(df: pd.DataFrame, ctx: RunContext) -> pd.DataFrame:
    """
    Conform CRM customers.
    Latest record per cst_id by create date; trimmed names; mapped labels.
    """
    df = df.copy()
    df["cst_create_date"] = clean_date_column(df["cst_create_date"])
    df = _dedup(df, "crm_cust_info", order_by="cst_create_date")

    df["cst_key"] = clean_string_column(df["cst_key"])
    df["cst_firstname"] = clean_string_column(df["cst_firstname"])
    df["cst_lastname"] = clean_string_column(df["cst_lastname"])
    df["cst_marital_status"] = MARITAL_STATUS.apply(df["cst_marital_status"])
    df["cst_gndr"] = GENDER.apply(df["cst_gndr"])

    logger.info(f"Customer data cleaned: {len(df)} records")
    return df[list(SILVER_RELATIONS["crm_cust_info"])]


def clean_product_info(df: pd.DataFrame, ctx: RunContext) -> pd.DataFrame:
    """
    Conform CRM products.
    Splits the raw key into category id and product key and derives each
    version's end of validity from the next version's start.
    """
    df = df.copy()
    df["prd_start_dt"] = clean_date_column(df["prd_start_dt"])
    df = _dedup(df, "crm_prd_info", order_by="prd_start_dt")

    df["cat_id"], df["prd_key"] = split_product_key(df["prd_key"])
    df["prd_nm"] = clean_string_column(df["prd_nm"])
    df["prd_cost"] = pd.to_numeric(df["prd_cost"], errors="coerce").astype("float64").fillna(0).round().astype("Int64")
    df["prd_line"] = PRODUCT_LINE.apply(df["prd_line"])
    df["prd_end_dt"] = derive_end_dates(df, "prd_key", "prd_start_dt")

    logger.info(f"Product data cleaned: {len(df)} records")
    return df[list(SILVER_RELATIONS["crm_prd_info"])]


def clean_sales_details(df: pd.DataFrame, ctx: RunContext) -> pd.DataFrame:
    """
    Conform CRM order lines.
    Decodes YYYYMMDD dates and repairs inconsistent amounts and prices.
    """
    df = df.copy()
    df["sls_ord_num"] = clean_string_column(df["sls_ord_num"])
    df["sls_prd_key"] = clean_string_column(df["sls_prd_key"])
    df = _dedup(df, "crm_sales_details")

    df["sls_order_dt"] = parse_int_date(df["sls_order_dt"])
    df["sls_ship_dt"] = parse_int_date(df["sls_ship_dt"])
    df["sls_due_dt"] = parse_int_date(df["sls_due_dt"])

    df["sls_sales"], df["sls_price"] = repair_sales_measures(
        df["sls_sales"], df["sls_quantity"], df["sls_price"]
    )

    logger.info(f"Sales data cleaned: {len(df)} records")
    return df[list(SILVER_RELATIONS["crm_sales_details"])]


# =============================================================================
# ERP CLEANING FUNCTIONS
# =============================================================================

def clean_erp_customers(df: pd.DataFrame, ctx: RunContext) -> pd.DataFrame:
    """Conform ERP demographics: NAS-prefixed ids, future birth dates unknown."""
    df = df.copy()
    df["cid"] = strip_prefix(df["cid"], "NAS")
    df = _dedup(df, "erp_cust_az12")

    df["bdate"] = clean_date_column(df["bdate"], not_after=pd.Timestamp(ctx.as_of))
    df["gen"] = GENDER.apply(df["gen"])

    logger.info(f"ERP customer data cleaned: {len(df)} records")
    return df[list(SILVER_RELATIONS["erp_cust_az12"])]


def clean_erp_locations(df: pd.DataFrame, ctx: RunContext) -> pd.DataFrame:
    """Conform ERP locations: dash-free ids, country aliases expanded."""
    df = df.copy()
    df["cid"] = remove_separators(df["cid"], "-")
    df = _dedup(df, "erp_loc_a101")

    df["cntry"] = COUNTRY.apply(df["cntry"])

    logger.info(f"ERP location data cleaned: {len(df)} records")
    return df[list(SILVER_RELATIONS["erp_loc_a101"])]


def clean_erp_categories(df: pd.DataFrame, ctx: RunContext) -> pd.DataFrame:
    """Conform ERP product categories (trim only)."""
    df = df.copy()
    for col in ("id", "cat", "subcat", "maintenance"):
        df[col] = clean_string_column(df[col])
    df = _dedup(df, "erp_px_cat_g1v2")

    logger.info(f"ERP category data cleaned: {len(df)} records")
    return df[list(SILVER_RELATIONS["erp_px_cat_g1v2"])]


CONFORMERS: Dict[str, Callable[[pd.DataFrame, RunContext], pd.DataFrame]] = {
    "crm_cust_info": clean_customer_info,
    "crm_prd_info": clean_product_info,
    "crm_sales_details": clean_sales_details,
    "erp_cust_az12": clean_erp_customers,
    "erp_loc_a101": clean_erp_locations,
    "erp_px_cat_g1v2": clean_erp_categories,
}


# =============================================================================
# MAIN ETL FUNCTION
# =============================================================================

def conform_relation(name: str, bronze: RelationStore, ctx: RunContext) -> Tuple[pd.DataFrame, int, float]:
    """
    Read one bronze relation and conform it. Returns (frame, rows_in, seconds).

    A failure is recorded on the context with the rows read and the time spent
    before it is re-raised.
    """
    start = time.perf_counter()
    rows_in = 0
    try:
        raw = bronze.read(name)
        rows_in = len(raw)
        conformed = CONFORMERS[name](raw, ctx)
    except Exception as e:
        ctx.record(StepOutcome(
            entity=name,
            layer=LAYER,
            rows_in=rows_in,
            duration=time.perf_counter() - start,
            status=FAILURE,
            message=str(e),
        ))
        raise
    return conformed, rows_in, time.perf_counter() - start


def run_silver_transform(
    ctx: Optional[RunContext] = None,
    bronze: Optional[RelationStore] = None,
    silver: Optional[RelationStore] = None,
    relations: Optional[List[str]] = None,
    validate: bool = True,
) -> Dict[str, Any]:
    """
    Run the complete Silver layer conformance.

    Relations are read and conformed independently (in parallel when
    ctx.max_workers > 1). Nothing is written unless every relation
    conformed; each write then replaces its relation atomically.

    Args:
        ctx: Run context receiving one outcome per relation
        bronze: Raw staging store
        silver: Conformed store
        relations: Subset of relations to conform (default: all)
        validate: If True, run validation checks on the conformed data

    Returns:
        dict: Row counts per relation and validation reports

    Raises:
        SilverTransformError: If a relation cannot be read, conformed or written
    """
    ctx = ctx or RunContext()
    bronze = bronze or bronze_store()
    silver = silver or silver_store(bronze.engine)
    names = relations or list(CONFORMERS)

    logger.info("=" * 60)
    logger.info(f"SILVER LAYER: Conforming {len(names)} relations (run {ctx.run_id})")
    logger.info("=" * 60)

    # Conform
    results: Dict[str, Tuple[pd.DataFrame, int, float]] = {}
    with ThreadPoolExecutor(max_workers=max(1, ctx.max_workers)) as pool:
        futures = {name: pool.submit(conform_relation, name, bronze, ctx) for name in names}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except Exception as e:
                for pending in futures.values():
                    pending.cancel()
                logger.error(f"Failed to conform {name}: {e}")
                raise SilverTransformError(
                    f"Conformance of {name} failed",
                    table_name=name,
                    run_id=ctx.run_id,
                    original_error=e,
                ) from e

    # Publish
    counts: Dict[str, int] = {}
    logger.info("-" * 40)
    logger.info("Replacing silver relations...")
    for name in names:
        conformed, rows_in, elapsed = results[name]
        try:
            with ctx.track(LAYER, name, rows_in=rows_in, elapsed=elapsed) as outcome:
                outcome.rows_out = silver.replace(name, conformed, run_id=ctx.run_id)
                counts[name] = outcome.rows_out
        except ETLError as e:
            raise SilverTransformError(
                f"Could not publish silver.{name}",
                table_name=name,
                run_id=ctx.run_id,
                original_error=e,
            ) from e

    # Validation
    validation_reports = []
    if validate:
        validation_reports = run_silver_validation({name: results[name][0] for name in names})

    logger.info("=" * 60)
    logger.info(f"SILVER LAYER COMPLETE: {sum(counts.values())} records in {len(counts)} relations")
    logger.info("=" * 60)

    return {
        "run_id": ctx.run_id,
        "relations": counts,
        "validation": validation_reports,
    }


if __name__ == "__main__":
    from DWH.common.logging import configure_logging
    configure_logging()
    run_silver_transform()
