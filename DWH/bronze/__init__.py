from DWH.bronze.loader import (
    run_bronze_load,
    load_csv_to_bronze,
    read_extract,
    SOURCE_FILES,
)

__all__ = [
    "run_bronze_load",
    "load_csv_to_bronze",
    "read_extract",
    "SOURCE_FILES",
]
