"""
Gold Layer ETL - Build the published star schema from conformed silver relations.
Creates the customer and product dimensions and the sales fact table.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

import pandas as pd

from db.models_gold import LAYER, DIM_CUSTOMERS, DIM_PRODUCTS, FACT_SALES
from DWH.common.exceptions import ETLError, GoldLoadError
from DWH.common.run_context import RunContext
from DWH.common.store import RelationStore, silver_store, gold_store
from DWH.silver.utils import UNKNOWN_LABEL, customer_match_key

logger = logging.getLogger(__name__)


def assign_surrogate_keys(df: pd.DataFrame, key_name: str, sort_by: list) -> pd.DataFrame:
    """Sort deterministically and number rows 1..n into ``key_name``."""
    df = df.sort_values(sort_by, kind="mergesort", na_position="last").reset_index(drop=True)
    df.insert(0, key_name, pd.array(range(1, len(df) + 1), dtype="Int64"))
    return df


# DATA LOADING FROM SILVER

def load_silver_relations(silver: RelationStore) -> Dict[str, pd.DataFrame]:
    """Load every conformed relation the model needs."""
    names = [
        "crm_cust_info", "crm_prd_info", "crm_sales_details",
        "erp_cust_az12", "erp_loc_a101", "erp_px_cat_g1v2",
    ]
    frames = {}
    for name in names:
        frames[name] = silver.read(name)
        logger.info(f"Loaded {len(frames[name])} {name} records from silver")
    return frames


# DIMENSION TRANSFORMATIONS

def transform_dim_customers(
    cust_df: pd.DataFrame,
    erp_cust_df: pd.DataFrame,
    erp_loc_df: pd.DataFrame,
) -> pd.DataFrame:
    """
    Create the customer dimension.

    CRM customers are the primary source; ERP demographics and locations are
    matched on the normalized customer key. Gender comes from CRM unless
    CRM has no usable value, then from ERP.

    Args:
        cust_df: Conformed CRM customers
        erp_cust_df: Conformed ERP demographics (cid, bdate, gen)
        erp_loc_df: Conformed ERP locations (cid, cntry)

    Returns:
        Customer dimension DataFrame
    """
    df = cust_df.copy()
    df["_match"] = customer_match_key(df["cst_key"])

    erp_cust = erp_cust_df.assign(_match=customer_match_key(erp_cust_df["cid"]))
    erp_cust = erp_cust.dropna(subset=["_match"]).drop_duplicates("_match", keep="first")
    erp_loc = erp_loc_df.assign(_match=customer_match_key(erp_loc_df["cid"]))
    erp_loc = erp_loc.dropna(subset=["_match"]).drop_duplicates("_match", keep="first")

    df = df.merge(erp_cust[["_match", "bdate", "gen"]], on="_match", how="left")
    df = df.merge(erp_loc[["_match", "cntry"]], on="_match", how="left")

    primary = df["cst_gndr"].where(df["cst_gndr"].notna(), UNKNOWN_LABEL)
    secondary = df["gen"].where(df["gen"].notna(), UNKNOWN_LABEL)
    df["gender"] = primary.where(primary != UNKNOWN_LABEL, secondary)
    df["country"] = df["cntry"].where(df["cntry"].notna(), UNKNOWN_LABEL)

    df = df.rename(columns={
        "cst_id": "customer_id",
        "cst_key": "customer_number",
        "cst_firstname": "first_name",
        "cst_lastname": "last_name",
        "cst_marital_status": "marital_status",
        "bdate": "birthdate",
        "cst_create_date": "create_date",
    })
    df = assign_surrogate_keys(df, "customer_key", ["customer_id"])
    return df[list(DIM_CUSTOMERS)]


def transform_dim_products(
    prd_df: pd.DataFrame,
    cat_df: pd.DataFrame,
    as_of: date,
) -> pd.DataFrame:
    """
    Create the product dimension from currently valid product versions.

    A version is current unless its end of validity is known and before
    ``as_of``. Category attributes are joined on the category id.

    Args:
        prd_df: Conformed CRM products
        cat_df: Conformed ERP categories
        as_of: Run reference date

    Returns:
        Product dimension DataFrame
    """
    cutoff = pd.Timestamp(as_of)
    current = prd_df[prd_df["prd_end_dt"].isna() | (prd_df["prd_end_dt"] >= cutoff)]
    retired = len(prd_df) - len(current)
    if retired:
        logger.info(f"  Excluded {retired} product versions ended before {as_of}")

    categories = cat_df.dropna(subset=["id"]).drop_duplicates("id", keep="first")
    df = current.merge(
        categories[["id", "cat", "subcat", "maintenance"]],
        left_on="cat_id",
        right_on="id",
        how="left",
    )

    df = df.rename(columns={
        "prd_id": "product_id",
        "prd_key": "product_number",
        "prd_nm": "product_name",
        "cat_id": "category_id",
        "cat": "category",
        "subcat": "subcategory",
        "prd_cost": "cost",
        "prd_line": "product_line",
        "prd_start_dt": "start_date",
    })
    df = assign_surrogate_keys(df, "product_key", ["start_date", "product_number", "product_id"])
    return df[list(DIM_PRODUCTS)]


# FACT TRANSFORMATION

def transform_fact_sales(
    sales_df: pd.DataFrame,
    dim_customers: pd.DataFrame,
    dim_products: pd.DataFrame,
) -> pd.DataFrame:
    """
    Create the sales fact table.

    Every conformed order line is kept. Business keys are swapped for
    dimension keys; a key that does not resolve stays null so reconciliation
    can report it.

    Args:
        sales_df: Conformed CRM order lines
        dim_customers: Customer dimension (for key lookup)
        dim_products: Product dimension (for key lookup)

    Returns:
        Sales fact DataFrame
    """
    customer_lookup = dim_customers[["customer_id", "customer_key"]].dropna(subset=["customer_id"])
    customer_lookup = customer_lookup.drop_duplicates("customer_id", keep="first")

    # One member per product number: the latest-starting current version
    product_lookup = dim_products.sort_values(
        ["product_number", "start_date", "product_key"], kind="mergesort", na_position="first"
    )
    product_lookup = product_lookup.dropna(subset=["product_number"]).drop_duplicates(
        "product_number", keep="last"
    )[["product_number", "product_key"]]

    df = sales_df.merge(
        customer_lookup, left_on="sls_cust_id", right_on="customer_id", how="left"
    )
    df = df.merge(
        product_lookup, left_on="sls_prd_key", right_on="product_number", how="left"
    )

    df = df.rename(columns={
        "sls_ord_num": "order_number",
        "sls_order_dt": "order_date",
        "sls_ship_dt": "shipping_date",
        "sls_due_dt": "due_date",
        "sls_sales": "sales_amount",
        "sls_quantity": "quantity",
        "sls_price": "price",
    })
    df["customer_key"] = df["customer_key"].astype("Int64")
    df["product_key"] = df["product_key"].astype("Int64")
    return df[list(FACT_SALES)]


# MAIN ETL FUNCTION

def run_gold_load(
    ctx: Optional[RunContext] = None,
    silver: Optional[RelationStore] = None,
    gold: Optional[RelationStore] = None,
) -> Dict[str, Any]:
    """
    Run the complete Gold layer build.
    Transforms conformed silver relations into the dimensional model and
    replaces each gold relation.

    Args:
        ctx: Run context receiving one outcome per gold relation
        silver: Conformed store
        gold: Published store

    Returns:
        dict: Row counts for each gold relation

    Raises:
        GoldLoadError: If silver cannot be read or a gold relation cannot be written
    """
    ctx = ctx or RunContext()
    silver = silver or silver_store()
    gold = gold or gold_store(silver.engine)

    logger.info("=" * 60)
    logger.info(f"GOLD LAYER: Building dimensional model (run {ctx.run_id}, as of {ctx.as_of})")
    logger.info("=" * 60)

    try:
        logger.info("-" * 40)
        logger.info("Loading data from silver...")
        frames = load_silver_relations(silver)
    except ETLError as e:
        logger.error(f"Could not read silver layer: {e}")
        raise GoldLoadError("Silver layer could not be read", run_id=ctx.run_id, original_error=e) from e

    results: Dict[str, Any] = {"run_id": ctx.run_id}
    relation = None
    try:
        relation = "dim_customers"
        with ctx.track(LAYER, relation, rows_in=len(frames["crm_cust_info"])) as outcome:
            df_customers = transform_dim_customers(
                frames["crm_cust_info"], frames["erp_cust_az12"], frames["erp_loc_a101"]
            )
            outcome.rows_out = gold.replace(relation, df_customers, run_id=ctx.run_id)
        results[relation] = outcome.rows_out

        relation = "dim_products"
        with ctx.track(LAYER, relation, rows_in=len(frames["crm_prd_info"])) as outcome:
            df_products = transform_dim_products(
                frames["crm_prd_info"], frames["erp_px_cat_g1v2"], ctx.as_of
            )
            outcome.rows_out = gold.replace(relation, df_products, run_id=ctx.run_id)
        results[relation] = outcome.rows_out

        relation = "fact_sales"
        with ctx.track(LAYER, relation, rows_in=len(frames["crm_sales_details"])) as outcome:
            df_sales = transform_fact_sales(frames["crm_sales_details"], df_customers, df_products)
            outcome.rows_out = gold.replace(relation, df_sales, run_id=ctx.run_id)
        results[relation] = outcome.rows_out
    except Exception as e:
        # transform bugs surface as GoldLoadError like store failures
        logger.error(f"Could not publish gold.{relation}: {e}")
        raise GoldLoadError(
            f"Could not publish gold.{relation}",
            dimension_table=relation,
            run_id=ctx.run_id,
            original_error=e,
        ) from e

    logger.info("=" * 60)
    logger.info(
        f"GOLD LAYER COMPLETE: {results['dim_customers']} customers, "
        f"{results['dim_products']} products, {results['fact_sales']} sales"
    )
    logger.info("=" * 60)

    results["status"] = "success"
    return results


if __name__ == "__main__":
    from DWH.common.logging import configure_logging
    configure_logging()
    run_gold_load()
