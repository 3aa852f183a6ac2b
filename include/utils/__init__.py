"""
Shared utilities for the warehouse pipeline.

Keep helpers here small and dependency-free so DAG parsing stays reliable.
"""

from .layer_paths import build_layer_path, build_raw_path

__all__ = ["build_raw_path", "build_layer_path"]
