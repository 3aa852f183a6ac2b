import os
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd

from include.etl.layers import LayerSnapshot, render_csv
from include.etl.tables import LAYER_TABLES, apply_table_schema
from include.logger import setup_logger
from include.utils import build_layer_path

logger = setup_logger("etl.load_layer")


def write_layer(snapshot: LayerSnapshot, warehouse_dir: Union[str, Path]) -> list:
    """
    Write every table of a snapshot as CSV, fully replacing the previous file.

    Files are written to a temporary name first and swapped in, so readers
    never observe a half-written table.
    """
    written = []
    logger.info(f"Writing {snapshot.layer} layer ({len(snapshot.tables)} tables) to {warehouse_dir}")

    for table, df in snapshot.tables.items():
        path = build_layer_path(warehouse_dir, snapshot.layer, table)
        tmp_path = path.parent / f"{path.name}.tmp"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            csv_data = render_csv(df)
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(csv_data)
            os.replace(tmp_path, path)
            logger.info(f"Successfully written {len(df)} rows to {path}")
            written.append(path)

        except OSError as e:
            logger.error(f"Failed to write {snapshot.layer}.{table} to {path}: {str(e)}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise RuntimeError(
                f"Failed to write table {snapshot.layer}.{table}: {str(e)}"
            ) from e

    return written


def read_table(warehouse_dir: Union[str, Path], layer: str, table: str) -> pd.DataFrame:
    """Read a persisted layer table back with its catalog dtypes."""
    path = build_layer_path(warehouse_dir, layer, table)
    if not path.exists():
        raise FileNotFoundError(f"Table {layer}.{table} has not been loaded yet: {path}")

    # Only empty cells are null: "n/a" is a real value in cleansed tables
    df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])
    return apply_table_schema(df, layer, table)


def read_layer(
    warehouse_dir: Union[str, Path],
    layer: str,
    tables: Optional[Iterable[str]] = None,
) -> LayerSnapshot:
    """Load a persisted layer as a snapshot."""
    names = list(tables) if tables is not None else list(LAYER_TABLES[layer])
    frames = {name: read_table(warehouse_dir, layer, name) for name in names}
    logger.info(f"Read {layer} layer from {warehouse_dir}: {sum(len(df) for df in frames.values())} rows")
    return LayerSnapshot.create(layer, frames)
