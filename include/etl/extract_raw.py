from pathlib import Path
from typing import Mapping, Union

import pandas as pd

from include.etl.layers import LayerSnapshot, TableBuild, build_layer
from include.etl.tables import BRONZE
from include.logger import setup_logger
from include.utils import build_raw_path

logger = setup_logger("etl.extract_raw")


def read_raw_extract(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read one comma-delimited raw extract (header row first).

    Every value is read as text; typing happens against the bronze catalog so
    a malformed value becomes null instead of failing the whole file.
    Normalizes column names to lowercase with underscores.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raw extract not found: {path}")

    logger.info(f"Extracting raw data from {path}")
    df = pd.read_csv(path, sep=",", header=0, dtype=str, keep_default_na=False, na_values=[""])
    logger.info(f"Successfully extracted {len(df)} rows from {path.name}")

    df.columns = df.columns.str.strip().str.lower().str.replace(" ", "_")
    logger.info(f"Normalized columns: {list(df.columns)}")
    return df


def extract_raw_tables(
    raw_dir: Union[str, Path],
    files: Mapping[str, str],
    max_workers: int = 1,
) -> LayerSnapshot:
    """
    Truncate-and-reload the bronze layer from the raw extract files.

    ``files`` maps each bronze table to its file relative to ``raw_dir``.
    A missing or unreadable file fails only that table.
    """
    builds = [
        TableBuild(name=table, build=lambda _, path=build_raw_path(raw_dir, relative): read_raw_extract(path))
        for table, relative in files.items()
    ]
    return build_layer(BRONZE, builds, max_workers=max_workers)


# Raw extract layout (default config):
# datasets/csv-files
# │
# ├── source_crm/
# │   ├── cust_info.csv
# │   ├── prd_info.csv
# │   └── sales_details.csv
# │
# └── source_erp/
#     ├── CUST_AZ12.csv
#     ├── LOC_A101.csv
#     └── PX_CAT_G1V2.csv
