"""
Warehouse path helpers.

Raw extracts and layer tables are addressed in one place so the DAG, the
runner and the tests agree on where every table lives.
"""

from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def _strip_leading_slash(path: str) -> str:
    return path.lstrip("/") if path else ""


def build_raw_path(raw_dir: PathLike, relative_file: str) -> Path:
    """
    Build the full path of a raw extract file.

    Example:
        build_raw_path("datasets/csv-files", "/source_crm/cust_info.csv")
        -> Path("datasets/csv-files/source_crm/cust_info.csv")
    """

    return Path(raw_dir) / _strip_leading_slash(relative_file)


def build_layer_path(warehouse_dir: PathLike, layer: str, table: str) -> Path:
    """
    Build the CSV path of a layer table.

    Example:
        build_layer_path("warehouse", "silver", "crm_cust_info")
        -> Path("warehouse/silver/crm_cust_info.csv")
    """

    if not layer or not table:
        raise ValueError("Layer and table must not be empty")
    return Path(warehouse_dir) / layer / f"{table}.csv"
