# DWH/silver/utils.py
"""
Silver Layer Utilities - Cleansing, code mapping and derivation rules.
Contains the reusable building blocks of conformance: null handling,
enumerated code-to-label tables, date decoding, deduplication, validity
intervals and sales measure repair.

None of these functions raise on bad field values; a defect degrades to
None/NaT/NaN or to the UNKNOWN_LABEL sentinel.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

# Label used for every unmapped, empty or null categorical code
UNKNOWN_LABEL = "n/a"

# Placeholder values that should be treated as null
NULL_PLACEHOLDERS = {"", "NULL", "null", "None", "none", "nan", "NaN", "[NULL]", "[null]"}

# Hidden ordering column used to keep ties in raw ingestion order
_SEQ = "__seq"


def clean_string_column(series: pd.Series, default_value: Optional[str] = None) -> pd.Series:
    """
    Trim a string column and turn null placeholders into missing values.

    Args:
        series: Pandas Series to clean
        default_value: Value to use for nulls (None = keep as null)

    Returns:
        Cleaned object Series
    """
    def _clean(value):
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return default_value
        text = str(value).strip()
        if text in NULL_PLACEHOLDERS:
            return default_value
        return text

    return pd.Series([_clean(v) for v in series], index=series.index, dtype=object)


# CODE MAPPING TABLES

@dataclass(frozen=True)
class CodeMapping:
    """
    Explicit code-to-label table for one categorical field.

    Codes are matched after trimming and upper-casing. Anything not listed,
    including null and empty input, maps to ``default``. With ``passthrough``
    an unlisted non-empty value is kept (trimmed) instead; only open-ended
    fields such as country use it.
    """
    name: str
    labels: Dict[str, str]
    default: str = UNKNOWN_LABEL
    passthrough: bool = False

    @property
    def allowed_labels(self) -> Set[str]:
        return set(self.labels.values()) | {self.default}

    def translate(self, value) -> str:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return self.default
        text = str(value).strip()
        if not text:
            return self.default
        label = self.labels.get(text.upper())
        if label is not None:
            return label
        return text if self.passthrough else self.default

    def apply(self, series: pd.Series) -> pd.Series:
        return pd.Series([self.translate(v) for v in series], index=series.index, dtype=object)


MARITAL_STATUS = CodeMapping(
    name="marital_status",
    labels={"S": "Single", "M": "Married"},
)

GENDER = CodeMapping(
    name="gender",
    labels={"M": "Male", "F": "Female", "MALE": "Male", "FEMALE": "Female"},
)

PRODUCT_LINE = CodeMapping(
    name="product_line",
    labels={"M": "Mountain", "R": "Road", "S": "Other Sales", "T": "Touring"},
)

COUNTRY = CodeMapping(
    name="country",
    labels={"DE": "Germany", "US": "United States", "USA": "United States"},
    passthrough=True,
)


# DATE DECODING

def parse_int_date(series: pd.Series) -> pd.Series:
    """
    Decode YYYYMMDD integer dates.

    Zero, null, non-integral, wrong-width and impossible calendar values
    all become NaT.
    """
    numeric = pd.to_numeric(series, errors="coerce").astype("float64")
    # exactly 8 digits: 10000000..99999999
    valid = (numeric >= 1e7) & (numeric < 1e8) & (numeric == numeric.round())
    text = numeric.where(valid).astype("Int64").astype(str)
    return pd.to_datetime(text.where(valid), format="%Y%m%d", errors="coerce")


def clean_date_column(series: pd.Series, not_after: Optional[pd.Timestamp] = None) -> pd.Series:
    """
    Convert a column to normalized dates, optionally nulling dates after a cutoff.
    """
    result = pd.to_datetime(series, errors="coerce").dt.normalize()
    if not_after is not None:
        result = result.where(~(result > pd.Timestamp(not_after)))
    return result


# KEY NORMALIZATION

def strip_prefix(series: pd.Series, prefix: str) -> pd.Series:
    cleaned = clean_string_column(series)
    return pd.Series(
        [v[len(prefix):] if v is not None and v.startswith(prefix) else v for v in cleaned],
        index=series.index,
        dtype=object,
    )


def remove_separators(series: pd.Series, separator: str = "-") -> pd.Series:
    cleaned = clean_string_column(series)
    return pd.Series(
        [v.replace(separator, "") if v is not None else None for v in cleaned],
        index=series.index,
        dtype=object,
    )


def customer_match_key(series: pd.Series) -> pd.Series:
    """Normalize a customer identifier from any source for cross-source matching."""
    upper = clean_string_column(series).map(lambda v: v.upper() if v is not None else None)
    return remove_separators(strip_prefix(upper, "NAS"))


def split_product_key(series: pd.Series) -> Tuple[pd.Series, pd.Series]:
    """
    Split a raw product key into (category id, product key).

    "CO-RF-FR-R92B-58" -> ("CO_RF", "FR-R92B-58")
    """
    cleaned = clean_string_column(series)
    category = [v[:5].replace("-", "_") if v is not None else None for v in cleaned]
    product = [v[6:] if v is not None else None for v in cleaned]
    return (
        pd.Series(category, index=series.index, dtype=object),
        pd.Series(product, index=series.index, dtype=object),
    )


# DEDUPLICATION AND DERIVATION

def deduplicate(
    df: pd.DataFrame,
    key_columns: Sequence[str],
    order_by: Optional[str] = None,
) -> Tuple[pd.DataFrame, int]:
    """
    Keep exactly one record per business key.

    The record with the latest ``order_by`` value wins; null recency loses to
    any known value. Ties, and entities without a recency column, keep the
    record ingested first. Records with a null key are dropped.

    Returns:
        (deduplicated frame in ingestion order, number of null-key rows dropped)
    """
    key_columns = list(key_columns)
    work = df.copy()
    work[_SEQ] = np.arange(len(work))

    has_key = work[key_columns].notna().all(axis=1)
    dropped = int((~has_key).sum())
    work = work[has_key]

    if order_by is not None:
        work = work.sort_values(
            [order_by, _SEQ], ascending=[False, True], na_position="last", kind="mergesort"
        )
    work = work.drop_duplicates(subset=key_columns, keep="first")
    work = work.sort_values(_SEQ, kind="mergesort")
    return work.drop(columns=[_SEQ]).reset_index(drop=True), dropped


def derive_end_dates(df: pd.DataFrame, natural_key: str, start_column: str) -> pd.Series:
    """
    Derive the end of validity for each record of a natural key.

    The end is one day before the next record's start in chronological
    order; the latest record stays open-ended (NaT). Records without a start
    date take no part in the ordering and stay open-ended.
    """
    start = pd.to_datetime(df[start_column], errors="coerce")
    known = df[natural_key].notna() & start.notna()

    ordered = pd.DataFrame({
        "key": df.loc[known, natural_key],
        "start": start[known],
        _SEQ: np.arange(len(df))[known.to_numpy()],
    }).sort_values(["key", "start", _SEQ], kind="mergesort")

    next_start = ordered.groupby("key", sort=False)["start"].shift(-1)
    end = next_start - pd.Timedelta(days=1)

    result = pd.Series(pd.NaT, index=df.index, dtype="datetime64[ns]")
    result.loc[end.index] = end
    return result


def repair_sales_measures(
    sales: pd.Series,
    quantity: pd.Series,
    price: pd.Series,
) -> Tuple[pd.Series, pd.Series]:
    """
    Repair the sales amount and unit price of order lines.

    - amount missing, non-positive, or different from quantity * |price|
      (when that product is known) -> quantity * |price|
    - price missing or non-positive -> repaired amount / quantity; a zero or
      missing quantity leaves the price unknown (NaN)

    Returns:
        (repaired amount, repaired price) as float Series
    """
    amount = pd.to_numeric(sales, errors="coerce").astype("float64")
    qty = pd.to_numeric(quantity, errors="coerce").astype("float64")
    unit = pd.to_numeric(price, errors="coerce").astype("float64")

    expected = qty * unit.abs()
    bad_amount = amount.isna() | (amount <= 0) | (expected.notna() & (amount != expected))
    repaired_amount = amount.where(~bad_amount, expected)

    bad_price = unit.isna() | (unit <= 0)
    derived_price = repaired_amount / qty.where(qty != 0)
    repaired_price = unit.where(~bad_price, derived_price)

    return repaired_amount, repaired_price


def labels_outside(series: pd.Series, mapping: CodeMapping) -> List[str]:
    """Distinct non-null values of a column that the mapping can never produce."""
    values = {v for v in series.dropna().unique()}
    if mapping.passthrough:
        return []
    return sorted(str(v) for v in values - mapping.allowed_labels)
