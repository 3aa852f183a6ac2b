"""
Quality checks over the cleansed (silver) and curated (gold) layers.

Each check is a read-only query returning the rows that violate an invariant
the conformance rules are supposed to guarantee. An empty result is a pass.
Surveys (``informational=True``) list distinct values for manual review and
never fail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

import pandas as pd

from include.etl.curate import active_products, enrich_customers, resolve_gender
from include.logger import setup_logger

logger = setup_logger("validation.quality")

DEFAULT_MIN_BIRTHDATE = "1924-01-01"

STATUS_PASSED = "PASSED"
STATUS_FAILED = "FAILED"
STATUS_INFO = "INFO"
STATUS_ERROR = "ERROR"
STATUS_SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class QualityCheck:
    name: str
    layer: str
    description: str
    query: Callable[..., pd.DataFrame]
    informational: bool = False


@dataclass
class CheckResult:
    check: QualityCheck
    status: str
    rows: pd.DataFrame = field(default_factory=pd.DataFrame)
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status in (STATUS_PASSED, STATUS_INFO, STATUS_SKIPPED)


@dataclass
class QualityReport:
    results: list

    @property
    def failures(self) -> list:
        return [result for result in self.results if not result.passed]

    @property
    def passed(self) -> bool:
        return not self.failures

    def result(self, name: str) -> CheckResult:
        for result in self.results:
            if result.check.name == name:
                return result
        raise KeyError(name)

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "check": result.check.name,
                    "layer": result.check.layer,
                    "status": result.status,
                    "rows": len(result.rows),
                    "error": result.error,
                }
                for result in self.results
            ]
        )


QUALITY_CHECKS: list = []


def quality_check(name: str, layer: str, description: str, informational: bool = False):
    """Register a check function in ``QUALITY_CHECKS``."""

    def register(func: Callable[..., pd.DataFrame]) -> Callable[..., pd.DataFrame]:
        QUALITY_CHECKS.append(QualityCheck(name, layer, description, func, informational))
        return func

    return register


def _silver(layers: Mapping) -> Mapping[str, pd.DataFrame]:
    return layers["silver"]


def _untrimmed(series: pd.Series) -> pd.Series:
    text = series.astype("string")
    return (text != text.str.strip()).fillna(False).astype(bool)


def _distinct(df: pd.DataFrame, columns: list) -> pd.DataFrame:
    return (
        df[columns]
        .drop_duplicates()
        .sort_values(columns, na_position="first", kind="mergesort")
        .reset_index(drop=True)
    )


def _duplicated_keys(df: pd.DataFrame, key: str, include_null: bool = False) -> pd.DataFrame:
    counts = df.groupby(key, dropna=False).size().reset_index(name="count")
    bad = counts["count"] > 1
    if include_null:
        bad = bad | counts[key].isna()
    return counts[bad].reset_index(drop=True)


# --------------------------------------------------
# Silver: primary keys
# --------------------------------------------------

@quality_check("silver_customer_primary_key", "silver", "cst_id must be non-null and unique")
def check_customer_primary_key(layers, **_):
    return _duplicated_keys(_silver(layers)["crm_cust_info"], "cst_id", include_null=True)


@quality_check("silver_product_primary_key", "silver", "prd_id must be non-null and unique")
def check_product_primary_key(layers, **_):
    return _duplicated_keys(_silver(layers)["crm_prd_info"], "prd_id", include_null=True)


# --------------------------------------------------
# Silver: unwanted spaces
# --------------------------------------------------

@quality_check("silver_customer_name_whitespace", "silver", "Customer names must be trimmed")
def check_customer_name_whitespace(layers, **_):
    customers = _silver(layers)["crm_cust_info"]
    bad = _untrimmed(customers["cst_firstname"]) | _untrimmed(customers["cst_lastname"])
    return customers.loc[bad, ["cst_id", "cst_firstname", "cst_lastname"]].reset_index(drop=True)


@quality_check("silver_product_name_whitespace", "silver", "Product names must be trimmed")
def check_product_name_whitespace(layers, **_):
    products = _silver(layers)["crm_prd_info"]
    return products.loc[_untrimmed(products["prd_nm"]), ["prd_id", "prd_nm"]].reset_index(drop=True)


@quality_check("silver_category_whitespace", "silver", "Category fields must be trimmed")
def check_category_whitespace(layers, **_):
    categories = _silver(layers)["erp_px_cat_g1v2"]
    bad = (
        _untrimmed(categories["cat"])
        | _untrimmed(categories["subcat"])
        | _untrimmed(categories["maintenance"])
    )
    return categories[bad].reset_index(drop=True)


# --------------------------------------------------
# Silver: values and dates
# --------------------------------------------------

@quality_check("silver_product_cost", "silver", "Product cost must be present and non-negative")
def check_product_cost(layers, **_):
    products = _silver(layers)["crm_prd_info"]
    bad = products["prd_cost"].isna() | (products["prd_cost"] < 0)
    return products.loc[bad, ["prd_id", "prd_cost"]].reset_index(drop=True)


@quality_check("silver_product_date_order", "silver", "Product end date must not precede its start date")
def check_product_date_order(layers, **_):
    products = _silver(layers)["crm_prd_info"]
    return products[products["prd_end_dt"] < products["prd_start_dt"]].reset_index(drop=True)


@quality_check("silver_sales_date_order", "silver", "Order date must not follow ship or due date")
def check_sales_date_order(layers, **_):
    sales = _silver(layers)["crm_sales_details"]
    bad = (sales["sls_order_dt"] > sales["sls_ship_dt"]) | (sales["sls_order_dt"] > sales["sls_due_dt"])
    return sales[bad].reset_index(drop=True)


@quality_check(
    "silver_sales_consistency",
    "silver",
    "sales = quantity * price, all present and strictly positive",
)
def check_sales_consistency(layers, **_):
    sales = _silver(layers)["crm_sales_details"]
    amount = sales["sls_sales"]
    quantity = sales["sls_quantity"].astype("float64")
    price = sales["sls_price"]
    bad = (
        (amount != quantity * price)
        | amount.isna() | quantity.isna() | price.isna()
        | (amount <= 0) | (quantity <= 0) | (price <= 0)
    )
    return _distinct(sales[bad], ["sls_sales", "sls_quantity", "sls_price"])


@quality_check("silver_birthdate_range", "silver", "Birthdates must be plausible and not in the future")
def check_birthdate_range(layers, as_of=None, min_birthdate=DEFAULT_MIN_BIRTHDATE, **_):
    demographics = _silver(layers)["erp_cust_az12"]
    as_of = pd.Timestamp.now() if as_of is None else pd.Timestamp(as_of)
    bdate = demographics["bdate"]
    bad = (bdate < pd.Timestamp(min_birthdate)) | (bdate > as_of)
    return _distinct(demographics[bad], ["bdate"])


# --------------------------------------------------
# Silver: standardization surveys
# --------------------------------------------------

def _register_survey(table: str, column: str) -> None:
    def survey(layers, **_):
        return _distinct(_silver(layers)[table], [column])

    quality_check(
        f"silver_distinct_{column}",
        "silver",
        f"Distinct values of {table}.{column}",
        informational=True,
    )(survey)


for _table, _column in (
    ("crm_cust_info", "cst_marital_status"),
    ("crm_cust_info", "cst_gndr"),
    ("crm_prd_info", "prd_line"),
    ("erp_cust_az12", "gen"),
    ("erp_loc_a101", "cntry"),
    ("erp_px_cat_g1v2", "cat"),
    ("erp_px_cat_g1v2", "subcat"),
    ("erp_px_cat_g1v2", "maintenance"),
):
    _register_survey(_table, _column)


# --------------------------------------------------
# Gold: integration checks
# --------------------------------------------------

@quality_check("gold_duplicate_customers", "silver", "Each customer appears once after enrichment joins")
def check_duplicate_customers(layers, **_):
    return _duplicated_keys(enrich_customers(_silver(layers)), "cst_id")


@quality_check(
    "gold_gender_sources",
    "silver",
    "Distinct CRM/ERP gender pairs",
    informational=True,
)
def survey_gender_sources(layers, **_):
    return _distinct(enrich_customers(_silver(layers)), ["cst_gndr", "gen"])


@quality_check(
    "gold_gender_fallback",
    "silver",
    "Derived gender for each CRM/ERP gender pair",
    informational=True,
)
def survey_gender_fallback(layers, **_):
    pairs = _distinct(enrich_customers(_silver(layers)), ["cst_gndr", "gen"])
    pairs["new_cst_gndr"] = resolve_gender(pairs["cst_gndr"], pairs["gen"])
    return pairs


@quality_check("gold_duplicate_active_products", "silver", "Each active product key appears once")
def check_duplicate_active_products(layers, **_):
    return _duplicated_keys(active_products(_silver(layers)), "prd_key")


def _orphans(layers, key: str, dimension: str) -> pd.DataFrame:
    gold = layers["gold"]
    fact = gold["fact_sales"]
    known = fact[key].isin(gold[dimension][key]).fillna(False).astype(bool)
    return fact[~known].reset_index(drop=True)


@quality_check("gold_fact_product_integrity", "gold", "Every sale resolves to a product dimension row")
def check_fact_product_integrity(layers, **_):
    return _orphans(layers, "product_key", "dim_products")


@quality_check("gold_fact_customer_integrity", "gold", "Every sale resolves to a customer dimension row")
def check_fact_customer_integrity(layers, **_):
    return _orphans(layers, "customer_key", "dim_customers")


def run_check(check: QualityCheck, layers: Mapping, **params) -> CheckResult:
    if check.layer not in layers:
        return CheckResult(check, STATUS_SKIPPED)
    try:
        rows = check.query(layers, **params)
    except Exception as e:
        logger.error(f"✗ Check {check.name} errored: {str(e)}", exc_info=True)
        return CheckResult(check, STATUS_ERROR, error=str(e))

    if check.informational:
        status = STATUS_INFO
    else:
        status = STATUS_PASSED if rows.empty else STATUS_FAILED
    return CheckResult(check, status, rows)


def run_quality_checks(
    silver: Mapping[str, pd.DataFrame],
    gold: Optional[Mapping[str, pd.DataFrame]] = None,
    as_of=None,
    min_birthdate: str = DEFAULT_MIN_BIRTHDATE,
) -> QualityReport:
    """
    Run every registered check whose layer is available.

    Advisory: violations are logged and returned, never raised. A check that
    errors is reported and the suite continues.
    """
    layers = {"silver": silver}
    if gold is not None:
        layers["gold"] = gold

    logger.info(f"Running {len(QUALITY_CHECKS)} quality checks on layers {sorted(layers)}")
    results = []
    for check in QUALITY_CHECKS:
        result = run_check(check, layers, as_of=as_of, min_birthdate=min_birthdate)
        results.append(result)
        if result.status == STATUS_FAILED:
            logger.warning(f"⚠ {check.name}: {len(result.rows)} violating rows - {check.description}")
        elif result.status == STATUS_INFO:
            logger.info(f"  {check.name} ({len(result.rows)} values):\n{result.rows.to_string(index=False)}")
        elif result.status == STATUS_PASSED:
            logger.info(f"✓ {check.name}")

    report = QualityReport(results)
    logger.info(f"Quality checks finished: {len(report.failures)} failing of {len(results)}")
    return report
