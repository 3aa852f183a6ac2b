"""
Layer snapshots and the per-table load runner.

A layer is rebuilt wholesale on every run: each table build receives the
previous layer's snapshot and returns a complete new frame. The result is an
immutable ``LayerSnapshot`` identified by a content fingerprint, so two runs
over identical input produce snapshots with identical fingerprints.
"""

from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence

import pandas as pd

from include.etl.tables import apply_table_schema, empty_table
from include.logger import log_duration, setup_logger

logger = setup_logger("etl.layers")

CSV_DATE_FORMAT = "%Y-%m-%d"

STATUS_SUCCESS = "SUCCESS"
STATUS_FAILED = "FAILED"


def render_csv(df: pd.DataFrame) -> str:
    """Canonical CSV rendering shared by persistence and fingerprints."""
    return df.to_csv(index=False, date_format=CSV_DATE_FORMAT, lineterminator="\n")


def fingerprint_tables(tables: Mapping[str, pd.DataFrame]) -> str:
    digest = hashlib.sha256()
    for name in sorted(tables):
        digest.update(name.encode())
        digest.update(render_csv(tables[name]).encode())
    return digest.hexdigest()


@dataclass(frozen=True)
class TableBuild:
    """One table of a layer and the function that produces it from the source snapshot."""

    name: str
    build: Callable[[Mapping[str, pd.DataFrame]], pd.DataFrame]


@dataclass(frozen=True)
class LayerSnapshot:
    layer: str
    tables: Mapping[str, pd.DataFrame]
    reports: Sequence[dict] = field(default_factory=tuple)
    source_fingerprint: Optional[str] = None
    built_at: Optional[datetime] = None
    fingerprint: str = ""

    @classmethod
    def create(
        cls,
        layer: str,
        tables: Mapping[str, pd.DataFrame],
        reports: Sequence[dict] = (),
        source: Optional["LayerSnapshot"] = None,
        built_at: Optional[datetime] = None,
    ) -> "LayerSnapshot":
        ordered = dict(tables)
        return cls(
            layer=layer,
            tables=MappingProxyType(ordered),
            reports=tuple(reports),
            source_fingerprint=source.fingerprint if source is not None else None,
            built_at=built_at or datetime.now(),
            fingerprint=fingerprint_tables(ordered),
        )

    def __getitem__(self, table: str) -> pd.DataFrame:
        return self.tables[table]

    @property
    def failed_tables(self) -> list:
        return [report["table"] for report in self.reports if report["status"] == STATUS_FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed_tables

    def summary(self) -> pd.DataFrame:
        """Per-table load report as a frame (status, rows, timings, errors)."""
        return pd.DataFrame(list(self.reports))


def run_table_build(layer: str, build: TableBuild, source: Mapping[str, pd.DataFrame]) -> tuple:
    """
    Build one table with timing and error capture.

    A failing build never raises: the table is emitted empty (its previous
    contents are already truncated) and the error is reported with its
    message, code and the step that failed.
    """
    label = f"{layer}.{build.name}"
    report = {
        "layer": layer,
        "table": build.name,
        "status": "PENDING",
        "rows": 0,
        "started_at": None,
        "finished_at": None,
        "duration_seconds": 0.0,
        "error_message": None,
        "error_code": None,
        "error_state": None,
    }

    state = "build"
    with log_duration(logger, f"Loading table {label}") as timing:
        try:
            df = build.build(source)
            state = "schema"
            df = apply_table_schema(df, layer, build.name)
            report["status"] = STATUS_SUCCESS
            report["rows"] = len(df)
        except Exception as e:
            logger.error(f"✗ Error occurred during loading of {label}", exc_info=True)
            logger.error(f"  Error message: {str(e)}")
            logger.error(f"  Error code: {type(e).__name__}")
            logger.error(f"  Error state: {state}")
            report["status"] = STATUS_FAILED
            report["error_message"] = str(e)
            report["error_code"] = type(e).__name__
            report["error_state"] = state
            df = empty_table(layer, build.name)

    report.update(timing)
    return df, report


def build_layer(
    layer: str,
    builds: Sequence[TableBuild],
    source: Optional[LayerSnapshot] = None,
    max_workers: int = 1,
) -> LayerSnapshot:
    """
    Run every table build of a layer and return the new snapshot.

    Builds write disjoint tables, so with ``max_workers > 1`` they run on a
    thread pool. Either way all of them finish before the snapshot exists.
    """
    source_tables = source.tables if source is not None else MappingProxyType({})
    tables = {}
    reports = []

    logger.info("=" * 60)
    logger.info(f"LOADING THE {layer.upper()} LAYER ({len(builds)} tables)")
    logger.info("=" * 60)

    with log_duration(logger, f"{layer.capitalize()} layer batch"):
        if max_workers > 1 and len(builds) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = [
                    executor.submit(run_table_build, layer, build, source_tables)
                    for build in builds
                ]
                results = [future.result() for future in futures]
        else:
            results = [run_table_build(layer, build, source_tables) for build in builds]

    for build, (df, report) in zip(builds, results):
        tables[build.name] = df
        reports.append(report)

    snapshot = LayerSnapshot.create(layer, tables, reports, source=source)
    if snapshot.succeeded:
        logger.info(f"✓ {layer.capitalize()} layer loaded: {len(tables)} tables")
    else:
        logger.warning(f"⚠ {layer.capitalize()} layer loaded with failures: {snapshot.failed_tables}")
    return snapshot
