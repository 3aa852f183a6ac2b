"""
Pipeline entry points.

``run_conformance`` and ``run_curation`` are parameterless and idempotent:
each truncates and fully rebuilds its layer from the previous one. The
``build_*`` functions are the pure layer-to-layer transformations they use.
"""

from typing import Optional

import pandas as pd

from include.config import load_config, resolve_path
from include.etl.conform import (
    conform_crm_customers,
    conform_crm_products,
    conform_crm_sales,
    conform_erp_categories,
    conform_erp_customers,
    conform_erp_locations,
)
from include.etl.curate import build_dim_customers, build_dim_products, build_fact_sales
from include.etl.extract_raw import extract_raw_tables
from include.etl.layers import LayerSnapshot, TableBuild, build_layer
from include.etl.load_layer import read_layer, write_layer
from include.etl.tables import GOLD, SILVER
from include.logger import log_duration, set_log_level, setup_logger
from include.validations.quality_checks import QualityReport, run_quality_checks
from include.validations.validate_inputs import validate_raw_layer
from include.validations.validate_outputs import validate_layer

logger = setup_logger("etl.pipeline")


def build_silver(
    bronze: LayerSnapshot,
    as_of: Optional[pd.Timestamp] = None,
    max_workers: int = 1,
) -> LayerSnapshot:
    """Conformance: one cleansed table per raw table."""
    builds = [
        TableBuild("crm_cust_info", lambda raw: conform_crm_customers(raw["crm_cust_info"])),
        TableBuild("crm_prd_info", lambda raw: conform_crm_products(raw["crm_prd_info"])),
        TableBuild("crm_sales_details", lambda raw: conform_crm_sales(raw["crm_sales_details"])),
        TableBuild("erp_cust_az12", lambda raw: conform_erp_customers(raw["erp_cust_az12"], as_of=as_of)),
        TableBuild("erp_loc_a101", lambda raw: conform_erp_locations(raw["erp_loc_a101"])),
        TableBuild("erp_px_cat_g1v2", lambda raw: conform_erp_categories(raw["erp_px_cat_g1v2"])),
    ]
    return build_layer(SILVER, builds, source=bronze, max_workers=max_workers)


def build_gold(silver: LayerSnapshot) -> LayerSnapshot:
    """
    Curation: dimensions first, then the fact that looks them up.

    The fact depends on both dimensions, so the two steps run as separate
    batches; a failed dimension leaves its fact keys null.
    """
    dimensions = build_layer(
        GOLD,
        [
            TableBuild("dim_customers", build_dim_customers),
            TableBuild("dim_products", build_dim_products),
        ],
        source=silver,
    )
    facts = build_layer(
        GOLD,
        [
            TableBuild(
                "fact_sales",
                lambda _: build_fact_sales(
                    silver["crm_sales_details"],
                    dimensions["dim_customers"],
                    dimensions["dim_products"],
                ),
            )
        ],
        source=silver,
    )
    return LayerSnapshot.create(
        GOLD,
        {**dimensions.tables, **facts.tables},
        reports=[*dimensions.reports, *facts.reports],
        source=silver,
    )


def _settings(config: Optional[dict]) -> dict:
    config = config if config is not None else load_config()
    set_log_level(config["logging"].get("level", "INFO"))
    return config


def _as_of(config: dict) -> Optional[pd.Timestamp]:
    value = config["conformance"].get("as_of")
    return pd.Timestamp(value) if value else None


def run_conformance(config: Optional[dict] = None) -> LayerSnapshot:
    """
    Reload bronze from the raw extracts, rebuild silver and persist both.

    Table failures are reported in the snapshot, never raised.
    """
    config = _settings(config)
    warehouse_dir = resolve_path(config["warehouse"]["directory"])
    max_workers = config["conformance"]["max_workers"]

    with log_duration(logger, "Conformance run"):
        bronze = extract_raw_tables(
            resolve_path(config["raw"]["directory"]),
            config["raw"]["files"],
            max_workers=max_workers,
        )
        validate_raw_layer(dict(bronze.tables))
        write_layer(bronze, warehouse_dir)

        silver = build_silver(bronze, as_of=_as_of(config), max_workers=max_workers)
        validate_layer(SILVER, dict(silver.tables))
        write_layer(silver, warehouse_dir)

    logger.info(f"Silver snapshot {silver.fingerprint[:12]} built from bronze {bronze.fingerprint[:12]}")
    return silver


def run_curation(config: Optional[dict] = None) -> LayerSnapshot:
    """Rebuild gold from the persisted silver layer and persist it."""
    config = _settings(config)
    warehouse_dir = resolve_path(config["warehouse"]["directory"])

    with log_duration(logger, "Curation run"):
        silver = read_layer(warehouse_dir, SILVER)
        gold = build_gold(silver)
        validate_layer(GOLD, dict(gold.tables))
        write_layer(gold, warehouse_dir)

    logger.info(f"Gold snapshot {gold.fingerprint[:12]} built from silver {silver.fingerprint[:12]}")
    return gold


def run_quality(config: Optional[dict] = None, include_gold: bool = True) -> QualityReport:
    """Run the quality-check suite over the persisted silver (and gold) layers."""
    config = _settings(config)
    warehouse_dir = resolve_path(config["warehouse"]["directory"])
    quality = config["quality"]

    silver = read_layer(warehouse_dir, SILVER)
    gold = read_layer(warehouse_dir, GOLD) if include_gold else None
    return run_quality_checks(
        silver.tables,
        gold.tables if gold is not None else None,
        as_of=_as_of(config),
        min_birthdate=quality.get("min_birthdate", "1924-01-01"),
    )
