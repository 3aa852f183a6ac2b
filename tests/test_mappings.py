"""
Unit tests for the enumerated code mappings.
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from include.etl.mappings import (
    NOT_APPLICABLE,
    map_country,
    map_crm_gender,
    map_erp_gender,
    map_marital_status,
    map_product_line,
)


class TestCodeMappings:
    """Each mapping is case-insensitive, trims input and defaults to n/a."""

    @pytest.mark.parametrize("raw, expected", [
        ("S", "Single"), (" m ", "Married"), ("X", NOT_APPLICABLE), (None, NOT_APPLICABLE),
    ])
    def test_marital_status(self, raw, expected):
        assert map_marital_status(pd.Series([raw], dtype="object")).iloc[0] == expected

    @pytest.mark.parametrize("raw, expected", [
        ("F", "Female"), ("m", "Male"), ("Female", NOT_APPLICABLE), ("", NOT_APPLICABLE),
    ])
    def test_crm_gender(self, raw, expected):
        assert map_crm_gender(pd.Series([raw], dtype="object")).iloc[0] == expected

    @pytest.mark.parametrize("raw, expected", [
        ("F", "Female"), (" female", "Female"), ("MALE ", "Male"), ("m", "Male"), ("U", NOT_APPLICABLE),
    ])
    def test_erp_gender(self, raw, expected):
        assert map_erp_gender(pd.Series([raw], dtype="object")).iloc[0] == expected

    @pytest.mark.parametrize("raw, expected", [
        ("R", "Road"), ("s", "Other Sales"), ("M ", "Mobile"), ("T", "Touring"), ("Z", NOT_APPLICABLE),
    ])
    def test_product_line(self, raw, expected):
        assert map_product_line(pd.Series([raw], dtype="object")).iloc[0] == expected


class TestCountryMapping:
    """Country names are expanded from codes; anything else passes through trimmed."""

    def test_known_codes_expanded(self):
        result = map_country(pd.Series(["DE", " US", "USA "]))
        assert list(result) == ["Germany", "United States", "United States"]

    def test_blank_and_null_become_not_applicable(self):
        result = map_country(pd.Series(["", "   ", None], dtype="object"))
        assert list(result) == [NOT_APPLICABLE] * 3

    def test_other_values_pass_through_trimmed(self):
        result = map_country(pd.Series([" Australia ", "France"]))
        assert list(result) == ["Australia", "France"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
