import numpy as np
import pandas as pd
import pytest

from DWH.silver.utils import (
    COUNTRY,
    GENDER,
    MARITAL_STATUS,
    PRODUCT_LINE,
    UNKNOWN_LABEL,
    clean_date_column,
    clean_string_column,
    customer_match_key,
    deduplicate,
    derive_end_dates,
    labels_outside,
    parse_int_date,
    repair_sales_measures,
    split_product_key,
)


# ---- code mapping ----

@pytest.mark.parametrize("mapping", [MARITAL_STATUS, GENDER, PRODUCT_LINE])
def test_mapping_never_leaves_its_label_set(mapping):
    raw = pd.Series([None, np.nan, "", "   ", "X", "unknown", " s ", "m", "F", "r", "NULL"])
    mapped = mapping.apply(raw)
    assert set(mapped) <= mapping.allowed_labels


def test_marital_status_trims_and_upper_cases():
    mapped = MARITAL_STATUS.apply(pd.Series([" s ", "m", "M", "x", None]))
    assert mapped.tolist() == ["Single", "Married", "Married", UNKNOWN_LABEL, UNKNOWN_LABEL]


def test_gender_accepts_codes_and_words():
    mapped = GENDER.apply(pd.Series(["M", "female", " Male ", "", "U"]))
    assert mapped.tolist() == ["Male", "Female", "Male", UNKNOWN_LABEL, UNKNOWN_LABEL]


def test_product_line_codes():
    mapped = PRODUCT_LINE.apply(pd.Series(["M", "R ", "s", "T", "Z"]))
    assert mapped.tolist() == ["Mountain", "Road", "Other Sales", "Touring", UNKNOWN_LABEL]


def test_country_expands_aliases_and_keeps_other_names():
    mapped = COUNTRY.apply(pd.Series([" DE", "US", "usa", "France ", "", None]))
    assert mapped.tolist() == [
        "Germany", "United States", "United States", "France", UNKNOWN_LABEL, UNKNOWN_LABEL,
    ]


def test_labels_outside_reports_foreign_labels():
    assert labels_outside(pd.Series(["Male", "n/a", "Other"]), GENDER) == ["Other"]
    assert labels_outside(pd.Series(["Atlantis"]), COUNTRY) == []


def test_clean_string_column_nulls_placeholders():
    cleaned = clean_string_column(pd.Series(["  a ", "", "NULL", None, "b"]))
    assert cleaned.tolist() == ["a", None, None, None, "b"]


# ---- dates ----

def test_parse_int_date_accepts_only_valid_eight_digit_codes():
    raw = pd.Series([20101229, 0, 2010122, 20101332, None, 201012290, 20120229])
    parsed = parse_int_date(raw)

    assert parsed.iloc[0] == pd.Timestamp("2010-12-29")
    assert parsed.iloc[6] == pd.Timestamp("2012-02-29")
    assert parsed.iloc[1:6].isna().all()


def test_clean_date_column_nulls_dates_after_cutoff():
    cleaned = clean_date_column(
        pd.Series(["1971-10-06", "2030-01-01", "garbage"]),
        not_after=pd.Timestamp("2024-01-01"),
    )
    assert cleaned.iloc[0] == pd.Timestamp("1971-10-06")
    assert cleaned.iloc[1:].isna().all()


# ---- keys ----

def test_customer_match_key_normalizes_all_sources():
    keys = customer_match_key(pd.Series(["nasAW-001 ", "AW001", "AW-0-01", None]))
    assert keys.tolist() == ["AW001", "AW001", "AW001", None]


def test_split_product_key():
    category, product = split_product_key(pd.Series(["CO-RF-FR-R92B-58", None]))
    assert category.tolist() == ["CO_RF", None]
    assert product.tolist() == ["FR-R92B-58", None]


# ---- deduplication ----

def test_deduplicate_keeps_latest_record():
    df = pd.DataFrame({
        "id": [1, 1, 2],
        "name": ["old", "new", "only"],
        "ts": pd.to_datetime(["2020-01-01", "2021-01-01", "2020-06-01"]),
    })
    result, dropped = deduplicate(df, ["id"], order_by="ts")

    assert dropped == 0
    assert result["name"].tolist() == ["new", "only"]


def test_deduplicate_tie_keeps_first_ingested():
    df = pd.DataFrame({
        "id": [7, 7, 7],
        "name": ["first", "second", "third"],
        "ts": pd.to_datetime(["2021-01-01", "2021-01-01", "2020-01-01"]),
    })
    result, _ = deduplicate(df, ["id"], order_by="ts")
    assert result["name"].tolist() == ["first"]


def test_deduplicate_unknown_recency_loses():
    df = pd.DataFrame({
        "id": [1, 1],
        "name": ["undated", "dated"],
        "ts": pd.to_datetime([None, "2019-01-01"]),
    })
    result, _ = deduplicate(df, ["id"], order_by="ts")
    assert result["name"].tolist() == ["dated"]


def test_deduplicate_drops_null_keys():
    df = pd.DataFrame({"id": [1, None, 1], "name": ["a", "b", "c"]})
    result, dropped = deduplicate(df, ["id"])

    assert dropped == 1
    assert result["name"].tolist() == ["a"]


# ---- derived intervals ----

def test_derive_end_dates_chains_versions():
    df = pd.DataFrame({
        "key": ["A", "A", "A", "B"],
        "start": pd.to_datetime(["2013-07-01", "2011-07-01", "2012-07-01", "2011-01-01"]),
    })
    end = derive_end_dates(df, "key", "start")

    assert end.iloc[1] == pd.Timestamp("2012-06-30")
    assert end.iloc[2] == pd.Timestamp("2013-06-30")
    assert pd.isna(end.iloc[0])
    assert pd.isna(end.iloc[3])


def test_derive_end_dates_ignores_undated_versions():
    df = pd.DataFrame({
        "key": ["A", "A", "A"],
        "start": pd.to_datetime(["2011-07-01", None, "2012-07-01"]),
    })
    end = derive_end_dates(df, "key", "start")

    assert end.iloc[0] == pd.Timestamp("2012-06-30")
    assert pd.isna(end.iloc[1])
    assert pd.isna(end.iloc[2])


# ---- measure repair ----

def test_repair_sales_measures():
    sales = pd.Series([None, -5, 100, 40, 30, 10, 3578])
    quantity = pd.Series([2, 1, 2, 2, 3, 0, 1])
    price = pd.Series([35, 10, 40, None, -10, None, 3578])

    amount, unit = repair_sales_measures(sales, quantity, price)

    assert amount.tolist()[:5] == [70.0, 10.0, 80.0, 40.0, 30.0]
    assert amount.iloc[5] == 10.0
    assert amount.iloc[6] == 3578.0

    assert unit.tolist()[:5] == [35.0, 10.0, 40.0, 20.0, 10.0]
    assert np.isnan(unit.iloc[5])
    assert unit.iloc[6] == 3578.0


def test_repair_negative_price_with_missing_amount():
    amount, unit = repair_sales_measures(pd.Series([None]), pd.Series([3]), pd.Series([-10]))

    assert amount.iloc[0] == 30.0
    assert unit.iloc[0] == 10.0


def test_repair_zero_quantity_leaves_price_unknown():
    amount, unit = repair_sales_measures(pd.Series([50]), pd.Series([0]), pd.Series([None]))

    assert amount.iloc[0] == 50.0
    assert np.isnan(unit.iloc[0])
