"""
Pytest configuration and fixtures for warehouse ETL tests.

This file is automatically discovered by pytest and provides
shared fixtures and configuration for all test modules.
"""

import pytest
import sys
from pathlib import Path

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from include.config import DEFAULT_CONFIG, _merge


@pytest.fixture
def raw_tables():
    """
    A small bronze layer covering the known defect patterns:
    duplicate customers, product history, bad dates and amounts,
    prefixed ERP ids and dashed location ids.
    """
    return {
        "crm_cust_info": pd.DataFrame({
            "cst_id": [1, 1, 2, None, 3],
            "cst_key": ["AW00001", "AW00001", "AW00002", "AW00099", "AW00003"],
            "cst_firstname": [" Jon", "Jon ", "Elisabeth", "Ghost", "Ruben"],
            "cst_lastname": ["Yang ", "Yang", " Johnson", "Row", "Torres"],
            "cst_marital_status": ["S", "M", "m ", "S", None],
            "cst_gndr": ["M", "M", "f", "F", "x"],
            "cst_create_date": pd.to_datetime(
                ["2023-01-01", "2023-06-01", "2022-03-10", "2022-01-01", "2021-07-07"]
            ),
        }),
        "crm_prd_info": pd.DataFrame({
            "prd_id": [210, 211, 212, 313],
            "prd_key": ["CO-RF-FR-R92B-58", "CO-RF-FR-R92B-58", "CO-RF-FR-R92B-58", "AC-HE-HL-U509"],
            "prd_nm": ["Road Frame", "Road Frame", "Road Frame", "Sport Helmet"],
            "prd_cost": [10.0, 12.0, None, 13.0],
            "prd_line": ["R ", "r", "R", None],
            "prd_start_dt": pd.to_datetime(["2011-07-01", "2012-07-01", "2013-07-01", "2013-07-01"]),
            "prd_end_dt": [pd.NaT] * 4,
        }),
        "crm_sales_details": pd.DataFrame({
            "sls_ord_num": ["SO1", "SO2", "SO3", "SO4"],
            "sls_prd_key": ["FR-R92B-58", "HL-U509", "HL-U509", "XX-MISSING"],
            "sls_cust_id": [1, 2, 3, 2],
            "sls_order_dt": [20230105, 0, 2023010, 20230301],
            "sls_ship_dt": [20230110, 20230112, 20230113, 20230305],
            "sls_due_dt": [20230115, 20230117, 20230118, 20230310],
            "sls_sales": [None, 100.0, 50.0, 40.0],
            "sls_quantity": [3, 5, 1, 2],
            "sls_price": [10.0, -20.0, None, 20.0],
        }),
        "erp_cust_az12": pd.DataFrame({
            "cid": ["NASAW00001", "AW00002", "AW00003"],
            "bdate": pd.to_datetime(["1980-05-05", "2050-01-01", "1975-02-02"]),
            "gen": ["Male", " F", None],
        }),
        "erp_loc_a101": pd.DataFrame({
            "cid": ["AW-00001", "AW-00002", "AW-00003"],
            "cntry": ["DE", "USA ", ""],
        }),
        "erp_px_cat_g1v2": pd.DataFrame({
            "id": ["CO_RF", "AC_HE"],
            "cat": ["Components", "Accessories"],
            "subcat": ["Road Frames", "Helmets"],
            "maintenance": ["Yes", "No"],
        }),
    }


@pytest.fixture
def raw_extract_dir(tmp_path, raw_tables):
    """
    Write the raw tables as CSV extracts the way the source systems deliver
    them (header row, comma delimiter, integer-encoded sales dates).
    """
    raw_dir = tmp_path / "raw"
    files = {}
    for table, df in raw_tables.items():
        relative = f"{table.split('_')[0]}/{table}.csv"
        path = raw_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        out = df.copy()
        for column in ("sls_cust_id", "sls_order_dt", "sls_ship_dt", "sls_due_dt", "cst_id"):
            if column in out.columns:
                out[column] = out[column].astype("Int64")
        out.to_csv(path, index=False, date_format="%Y-%m-%d")
        files[table] = relative
    return raw_dir, files


@pytest.fixture
def sample_config(tmp_path, raw_extract_dir):
    """
    Provide a configuration pointing at temporary raw and warehouse directories.
    """
    raw_dir, files = raw_extract_dir
    return _merge(DEFAULT_CONFIG, {
        "raw": {"directory": str(raw_dir), "files": files},
        "warehouse": {"directory": str(tmp_path / "warehouse")},
        "conformance": {"max_workers": 1, "as_of": "2026-01-01"},
    })


# Add pytest CLI options
def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires an Airflow installation)"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs --integration to run")


def pytest_collection_modifyitems(config, items):
    """Mark integration tests for conditional execution."""
    if config.getoption("--integration"):
        # Run all tests
        return

    # Skip integration tests if flag not provided
    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
