"""
Unit tests for the conformance (silver) rules.

Each raw entity has its own rule set; tests check the row-level invariants
the cleansed layer must guarantee.
"""

import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from include.etl.conform import (
    conform_crm_customers,
    conform_crm_products,
    conform_crm_sales,
    conform_erp_categories,
    conform_erp_customers,
    conform_erp_locations,
    derive_validity_end,
    parse_int_date,
    recompute_sales_and_price,
)


def _sales(sales, quantity, price):
    return pd.DataFrame({
        "sls_sales": sales,
        "sls_quantity": quantity,
        "sls_price": price,
    })


class TestCustomerConformance:
    """Test suite for conform_crm_customers."""

    def test_keeps_latest_version_per_customer(self):
        """Two versions of id 1 -> only the most recently created survives."""
        raw = pd.DataFrame({
            "cst_id": [1, 1],
            "cst_key": ["AW1", "AW1"],
            "cst_firstname": ["A", "A"],
            "cst_lastname": ["B", "B"],
            "cst_marital_status": ["S", "S"],
            "cst_gndr": ["M", "M"],
            "cst_create_date": pd.to_datetime(["2023-01-01", "2023-06-01"]),
        })
        result = conform_crm_customers(raw)
        assert len(result) == 1
        assert result.iloc[0]["cst_id"] == 1
        assert result.iloc[0]["cst_create_date"] == pd.Timestamp("2023-06-01")

    def test_customer_id_is_unique(self, raw_tables):
        result = conform_crm_customers(raw_tables["crm_cust_info"])
        assert result["cst_id"].is_unique
        assert list(result["cst_id"]) == [1, 2, 3]

    def test_latest_version_holds_max_create_date(self, raw_tables):
        raw = raw_tables["crm_cust_info"]
        result = conform_crm_customers(raw).set_index("cst_id")
        expected = raw.dropna(subset=["cst_id"]).groupby("cst_id")["cst_create_date"].max()
        for cst_id, created in expected.items():
            assert result.loc[int(cst_id), "cst_create_date"] == created

    def test_null_customer_id_dropped(self, raw_tables):
        result = conform_crm_customers(raw_tables["crm_cust_info"])
        assert "AW00099" not in result["cst_key"].tolist()
        assert not result["cst_id"].isna().any()

    def test_names_are_trimmed(self, raw_tables):
        result = conform_crm_customers(raw_tables["crm_cust_info"]).set_index("cst_id")
        assert result.loc[1, "cst_firstname"] == "Jon"
        assert result.loc[1, "cst_lastname"] == "Yang"
        assert result.loc[2, "cst_lastname"] == "Johnson"

    def test_codes_are_mapped(self, raw_tables):
        result = conform_crm_customers(raw_tables["crm_cust_info"]).set_index("cst_id")
        # Latest version of customer 1 is married
        assert result.loc[1, "cst_marital_status"] == "Married"
        assert result.loc[2, "cst_marital_status"] == "Married"
        assert result.loc[3, "cst_marital_status"] == "n/a"
        assert result.loc[1, "cst_gndr"] == "Male"
        assert result.loc[2, "cst_gndr"] == "Female"
        assert result.loc[3, "cst_gndr"] == "n/a"

    def test_null_create_date_ranks_last(self):
        raw = pd.DataFrame({
            "cst_id": [7, 7],
            "cst_key": ["old", "undated"],
            "cst_firstname": ["A", "A"],
            "cst_lastname": ["B", "B"],
            "cst_marital_status": ["S", "S"],
            "cst_gndr": ["F", "F"],
            "cst_create_date": [pd.NaT, pd.Timestamp("2020-01-01")],
        })
        result = conform_crm_customers(raw)
        assert len(result) == 1
        assert result.iloc[0]["cst_create_date"] == pd.Timestamp("2020-01-01")


class TestProductConformance:
    """Test suite for conform_crm_products."""

    def test_composite_key_is_split(self, raw_tables):
        result = conform_crm_products(raw_tables["crm_prd_info"])
        assert set(result["cat_id"]) == {"CO_RF", "AC_HE"}
        assert set(result["prd_key"]) == {"FR-R92B-58", "HL-U509"}

    def test_missing_cost_defaults_to_zero(self, raw_tables):
        result = conform_crm_products(raw_tables["crm_prd_info"]).set_index("prd_id")
        assert result.loc[212, "prd_cost"] == 0
        assert result.loc[210, "prd_cost"] == 10

    def test_product_line_mapped(self, raw_tables):
        result = conform_crm_products(raw_tables["crm_prd_info"]).set_index("prd_id")
        assert result.loc[210, "prd_line"] == "Road"
        assert result.loc[211, "prd_line"] == "Road"
        assert result.loc[313, "prd_line"] == "n/a"

    def test_validity_chain(self, raw_tables):
        """Each end date is the next start date minus one day; the last is open."""
        result = conform_crm_products(raw_tables["crm_prd_info"])
        for _, versions in result.groupby("prd_key"):
            versions = versions.sort_values("prd_start_dt")
            starts = list(versions["prd_start_dt"])
            ends = list(versions["prd_end_dt"])
            for end, next_start in zip(ends, starts[1:]):
                assert end == next_start - pd.Timedelta(days=1)
            assert pd.isna(ends[-1])

    def test_single_version_is_active(self, raw_tables):
        result = conform_crm_products(raw_tables["crm_prd_info"]).set_index("prd_id")
        assert pd.isna(result.loc[313, "prd_end_dt"])
        assert result.loc[210, "prd_end_dt"] == pd.Timestamp("2012-06-30")

    def test_tied_start_dates_break_on_product_id(self):
        raw = pd.DataFrame({
            "prd_id": [9, 8],
            "prd_key": ["AB-CD-KEY", "AB-CD-KEY"],
            "prd_nm": ["x", "x"],
            "prd_cost": [1, 1],
            "prd_line": ["M", "M"],
            "prd_start_dt": pd.to_datetime(["2020-01-01", "2020-01-01"]),
        })
        result = conform_crm_products(raw).set_index("prd_id")
        # Lower id is treated as the earlier version
        assert result.loc[8, "prd_end_dt"] == pd.Timestamp("2019-12-31")
        assert pd.isna(result.loc[9, "prd_end_dt"])


class TestValidityReconstruction:
    """Test derive_validity_end directly."""

    def test_end_dates_align_with_input_order(self):
        df = pd.DataFrame({
            "key": ["a", "b", "a"],
            "start": pd.to_datetime(["2021-01-10", "2021-01-01", "2021-01-01"]),
            "id": [1, 2, 3],
        })
        ends = derive_validity_end(df, key="key", start="start", tiebreak="id")
        assert pd.isna(ends.iloc[0])
        assert pd.isna(ends.iloc[1])
        assert ends.iloc[2] == pd.Timestamp("2021-01-09")

    def test_null_start_sorts_first(self):
        """The undated version is closed; only the latest dated one stays open."""
        df = pd.DataFrame({
            "key": ["a", "a"],
            "start": [pd.Timestamp("2021-01-01"), pd.NaT],
            "id": [1, 2],
        })
        ends = derive_validity_end(df, key="key", start="start", tiebreak="id")
        assert pd.isna(ends.iloc[0])
        assert ends.iloc[1] == pd.Timestamp("2020-12-31")


class TestSalesConformance:
    """Test suite for sales date validation and amount recomputation."""

    def test_null_sales_recomputed(self):
        result = recompute_sales_and_price(_sales([None], [3], [10.0]))
        assert result.iloc[0]["sls_sales"] == 30
        assert result.iloc[0]["sls_price"] == 10

    def test_negative_price_made_positive(self):
        """5 x |-20| = 100, so sales is accepted and price recomputed as 20."""
        result = recompute_sales_and_price(_sales([100.0], [5], [-20.0]))
        assert result.iloc[0]["sls_sales"] == 100
        assert result.iloc[0]["sls_price"] == 20

    def test_inconsistent_sales_recomputed(self):
        result = recompute_sales_and_price(_sales([90.0], [5], [20.0]))
        assert result.iloc[0]["sls_sales"] == 100
        assert result.iloc[0]["sls_price"] == 20

    def test_non_positive_sales_recomputed(self):
        result = recompute_sales_and_price(_sales([-50.0, 0.0], [2, 2], [25.0, 25.0]))
        assert list(result["sls_sales"]) == [50, 50]

    def test_null_price_derived_from_sales(self):
        result = recompute_sales_and_price(_sales([50.0], [2], [None]))
        assert result.iloc[0]["sls_sales"] == 50
        assert result.iloc[0]["sls_price"] == 25

    def test_zero_quantity_yields_null_price(self):
        result = recompute_sales_and_price(_sales([50.0], [0], [None]))
        assert np.isnan(result.iloc[0]["sls_price"])

    def test_negative_quantity_preserved(self):
        """Quantity keeps its sign, so sales follows it: -2 x |20| = -40."""
        result = recompute_sales_and_price(_sales([40.0], [-2], [20.0]))
        assert result.iloc[0]["sls_quantity"] == -2
        assert result.iloc[0]["sls_sales"] == -40
        assert result.iloc[0]["sls_price"] == 20
        assert result.iloc[0]["sls_sales"] == result.iloc[0]["sls_quantity"] * abs(result.iloc[0]["sls_price"])

    def test_zero_price_recomputed_to_zero_sales(self):
        result = recompute_sales_and_price(_sales([50.0], [2], [0.0]))
        assert result.iloc[0]["sls_sales"] == 0
        assert result.iloc[0]["sls_price"] == 0

    def test_sales_equals_quantity_times_price(self, raw_tables):
        result = conform_crm_sales(raw_tables["crm_sales_details"])
        quantity = result["sls_quantity"].astype("float64")
        assert (result["sls_sales"] == quantity * result["sls_price"].abs()).all()

    def test_malformed_dates_nulled(self, raw_tables):
        result = conform_crm_sales(raw_tables["crm_sales_details"]).set_index("sls_ord_num")
        assert result.loc["SO1", "sls_order_dt"] == pd.Timestamp("2023-01-05")
        assert pd.isna(result.loc["SO2", "sls_order_dt"])  # zero
        assert pd.isna(result.loc["SO3", "sls_order_dt"])  # seven digits
        assert result.loc["SO3", "sls_ship_dt"] == pd.Timestamp("2023-01-13")


class TestParseIntDate:
    """Test the YYYYMMDD integer date parser."""

    @pytest.mark.parametrize("value", [0, -20230101, 2023010, 202301011, 20231340, None])
    def test_rejected_values(self, value):
        assert pd.isna(parse_int_date(pd.Series([value], dtype="object")).iloc[0])

    def test_valid_values(self):
        parsed = parse_int_date(pd.Series([20101229, "20110105", 20240229.0], dtype="object"))
        assert list(parsed) == [
            pd.Timestamp("2010-12-29"),
            pd.Timestamp("2011-01-05"),
            pd.Timestamp("2024-02-29"),
        ]


class TestErpConformance:
    """Test suite for ERP customers, locations and categories."""

    def test_nas_prefix_removed(self, raw_tables):
        result = conform_erp_customers(raw_tables["erp_cust_az12"], as_of="2026-01-01")
        assert list(result["cid"]) == ["AW00001", "AW00002", "AW00003"]

    def test_future_birthdate_nulled(self, raw_tables):
        result = conform_erp_customers(raw_tables["erp_cust_az12"], as_of="2026-01-01")
        assert result.iloc[0]["bdate"] == pd.Timestamp("1980-05-05")
        assert pd.isna(result.iloc[1]["bdate"])

    def test_erp_gender_mapped(self, raw_tables):
        result = conform_erp_customers(raw_tables["erp_cust_az12"], as_of="2026-01-01")
        assert list(result["gen"]) == ["Male", "Female", "n/a"]

    def test_location_ids_and_countries(self, raw_tables):
        result = conform_erp_locations(raw_tables["erp_loc_a101"])
        assert list(result["cid"]) == ["AW00001", "AW00002", "AW00003"]
        assert list(result["cntry"]) == ["Germany", "United States", "n/a"]

    def test_categories_copied_unchanged(self, raw_tables):
        raw = raw_tables["erp_px_cat_g1v2"]
        result = conform_erp_categories(raw)
        assert result.astype(object).equals(raw.astype(object))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
