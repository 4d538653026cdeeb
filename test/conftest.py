"""
Shared fixtures: a throwaway SQLite warehouse per test and a small
CRM/ERP extract with the usual source defects baked in.
"""

from datetime import date

import pandas as pd
import pytest

from db.db_utils import get_engine, dispose_engines
from db.models_bronze import BRONZE_RELATIONS
from DWH.common.run_context import RunContext
from DWH.common.store import bronze_store, silver_store, gold_store, coerce_frame

AS_OF = date(2024, 1, 1)


def _frame(relation, rows):
    return pd.DataFrame(rows, columns=list(BRONZE_RELATIONS[relation]))


@pytest.fixture
def raw_frames():
    """Raw extracts keyed by bronze relation."""
    return {
        "crm_cust_info": _frame("crm_cust_info", [
            (1, "AW00011000", " Jon ", "Yang ", "M", "M", "2025-10-06"),
            (1, "AW00011000", "Jon", "Yang", "S", "M", "2025-10-07"),
            (2, "AW00011001", "Eugene", "Huang", "S", None, "2025-10-06"),
            (3, "AW00011002", "Ruben", "Torres", "m", "f", "2025-10-06"),
            (None, "AW00099999", "Ghost", "Record", "S", "M", "2025-10-06"),
        ]),
        "crm_prd_info": _frame("crm_prd_info", [
            (210, "CO-RF-FR-R92B-58", "HL Road Frame - Black- 58", None, "R ", "2003-07-01", None),
            (211, "CO-RF-FR-R92R-58", "HL Road Frame - Red- 58", 1431, "R", "2003-07-01", None),
            (212, "AC-HE-HL-U509-R", "Sport-100 Helmet- Red", 12, "S", "2011-07-01", None),
            (213, "AC-HE-HL-U509-R", "Sport-100 Helmet- Red", 14, "S", "2012-07-01", None),
            (214, "AC-HE-HL-U509-R", "Sport-100 Helmet- Red", 13, "S", "2013-07-01", None),
        ]),
        "crm_sales_details": _frame("crm_sales_details", [
            ("SO43697", "FR-R92R-58", 1, 20101229, 20110105, 20110110, 3578, 1, 3578),
            ("SO43697", "FR-R92R-58", 1, 20101229, 20110105, 20110110, 3578, 1, 3578),
            ("SO43698", "HL-U509-R", 2, 20101229, 20110105, 20110110, None, 2, 35),
            ("SO43699", "HL-U509-R", 3, 0, 20110105, 20110110, 40, 2, None),
            ("SO43700", "FR-R92B-58", 99, 20101229, 20110105, 20110110, 10, 0, None),
            ("SO43701", "BK-M82B-42", 1, 20101229, 20110105, 20110110, 50, 1, 50),
        ]),
        "erp_cust_az12": _frame("erp_cust_az12", [
            ("NASAW00011000", "1971-10-06", "Male"),
            ("AW00011001", "1976-05-10", "F"),
            ("AW00011002", "2030-01-01", "M"),
        ]),
        "erp_loc_a101": _frame("erp_loc_a101", [
            ("AW-00011000", "DE"),
            ("AW-00011001", "USA"),
            ("AW-00011002", " "),
        ]),
        "erp_px_cat_g1v2": _frame("erp_px_cat_g1v2", [
            ("CO_RF", "Components", "Road Frames", "Yes"),
            ("AC_HE", "Accessories", "Helmets", "No"),
        ]),
    }


@pytest.fixture
def database_url(tmp_path):
    yield f"sqlite:///{tmp_path / 'dwh.db'}"
    dispose_engines()


@pytest.fixture
def engine(database_url):
    return get_engine(database_url)


@pytest.fixture
def bronze(engine):
    return bronze_store(engine)


@pytest.fixture
def silver(engine):
    return silver_store(engine)


@pytest.fixture
def gold(engine):
    return gold_store(engine)


@pytest.fixture
def ctx():
    return RunContext(as_of=AS_OF)


@pytest.fixture
def loaded_bronze(bronze, raw_frames):
    """Bronze store holding the raw extracts."""
    for relation, df in raw_frames.items():
        bronze.replace(relation, coerce_frame(df, BRONZE_RELATIONS[relation]))
    return bronze


@pytest.fixture
def extract_dir(tmp_path, raw_frames):
    """The raw extracts written as CSV files in the source_crm/source_erp layout."""
    from DWH.bronze.loader import SOURCE_FILES

    root = tmp_path / "datasets"
    for relation, rel_path in SOURCE_FILES.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        df = raw_frames[relation]
        if relation.startswith("erp_"):
            # ERP extracts ship upper-case headers
            df = df.rename(columns=str.upper)
        df.to_csv(path, index=False)
    return root
