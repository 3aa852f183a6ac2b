"""
Configuration loading.

Settings come from ``include/config.yaml`` (or the file named by the
``WAREHOUSE_ETL_CONFIG`` environment variable) merged over the defaults below.
"""

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from include.logger import setup_logger

logger = setup_logger("etl.config")

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = Path(__file__).parent / "config.yaml"
CONFIG_ENV_VAR = "WAREHOUSE_ETL_CONFIG"

DEFAULT_CONFIG: dict = {
    "raw": {
        "directory": "datasets/csv-files",
        "files": {
            "crm_cust_info": "source_crm/cust_info.csv",
            "crm_prd_info": "source_crm/prd_info.csv",
            "crm_sales_details": "source_crm/sales_details.csv",
            "erp_cust_az12": "source_erp/CUST_AZ12.csv",
            "erp_loc_a101": "source_erp/LOC_A101.csv",
            "erp_px_cat_g1v2": "source_erp/PX_CAT_G1V2.csv",
        },
    },
    "warehouse": {"directory": "warehouse"},
    "conformance": {"max_workers": 1, "as_of": None},
    "quality": {"min_birthdate": "1924-01-01", "fail_on_violation": False},
    "logging": {"level": "INFO"},
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Path] = None) -> dict:
    """
    Load the pipeline configuration.

    Lookup order: explicit ``path``, ``$WAREHOUSE_ETL_CONFIG``, then
    ``include/config.yaml``. A missing default file falls back to defaults.
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    config_path = Path(explicit) if explicit else CONFIG_PATH

    if not config_path.exists():
        if explicit:
            raise ValueError(f"Config file not found: {config_path}")
        logger.warning(f"No config file at {config_path}, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path) as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    config = _merge(DEFAULT_CONFIG, loaded)
    _validate(config)
    logger.info(f"Loaded configuration from {config_path}")
    return config


def _validate(config: dict) -> None:
    workers = config["conformance"].get("max_workers", 1)
    if not isinstance(workers, int) or workers < 1:
        raise ValueError(f"conformance.max_workers must be a positive integer, got {workers!r}")
    if not config["raw"].get("files"):
        raise ValueError("raw.files must list at least one raw extract")


def resolve_path(value: Any) -> Path:
    """Resolve a configured path against the project root."""
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path
