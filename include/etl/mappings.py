"""
Enumerated code mappings used by the conformance rules.

Each mapping is an explicit table from the trimmed, upper-cased source code to
its descriptive label. Anything not in the table falls back to ``NOT_APPLICABLE``.
"""

import pandas as pd

NOT_APPLICABLE = "n/a"

MARITAL_STATUS_CODES = {
    "S": "Single",
    "M": "Married",
}

CRM_GENDER_CODES = {
    "F": "Female",
    "M": "Male",
}

ERP_GENDER_CODES = {
    "F": "Female",
    "FEMALE": "Female",
    "M": "Male",
    "MALE": "Male",
}

PRODUCT_LINE_CODES = {
    "R": "Road",
    "S": "Other Sales",
    "M": "Mobile",
    "T": "Touring",
}

COUNTRY_CODES = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}


def normalize_code(series: pd.Series) -> pd.Series:
    """Trim and upper-case raw codes; nulls stay null."""
    return series.astype("string").str.strip().str.upper()


def map_codes(series: pd.Series, mapping: dict, default: str = NOT_APPLICABLE) -> pd.Series:
    """Map raw codes through ``mapping``, using ``default`` for unmapped or null codes."""
    mapped = normalize_code(series).map(mapping)
    return mapped.fillna(default).astype("string")


def map_marital_status(series: pd.Series) -> pd.Series:
    return map_codes(series, MARITAL_STATUS_CODES)


def map_crm_gender(series: pd.Series) -> pd.Series:
    return map_codes(series, CRM_GENDER_CODES)


def map_erp_gender(series: pd.Series) -> pd.Series:
    return map_codes(series, ERP_GENDER_CODES)


def map_product_line(series: pd.Series) -> pd.Series:
    return map_codes(series, PRODUCT_LINE_CODES)


def map_country(series: pd.Series) -> pd.Series:
    """
    Normalize country values.

    Known codes are expanded, blank or null values become ``n/a`` and any other
    value is passed through trimmed with its original case.
    """
    trimmed = series.astype("string").str.strip()
    expanded = trimmed.str.upper().map(COUNTRY_CODES)
    result = expanded.fillna(trimmed.astype("object"))
    blank = trimmed.isna() | (trimmed == "")
    return result.mask(blank.fillna(True).astype(bool), NOT_APPLICABLE).astype("string")
