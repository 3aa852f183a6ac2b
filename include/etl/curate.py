from typing import Mapping

import pandas as pd

from include.etl.mappings import NOT_APPLICABLE
from include.etl.tables import GOLD, apply_table_schema
from include.logger import setup_logger

logger = setup_logger("etl.curate")


def _with_key(df: pd.DataFrame, column: str) -> pd.DataFrame:
    # Null keys never match in a join
    return df[df[column].notna()]


def assign_surrogate_keys(df: pd.DataFrame, sort_by: list, key_column: str) -> pd.DataFrame:
    """
    Number rows 1..n in ``sort_by`` order.

    The sort is stable, so identical input always yields identical keys.
    """
    ordered = df.sort_values(sort_by, na_position="last", kind="mergesort").reset_index(drop=True)
    ordered.insert(0, key_column, pd.array(list(range(1, len(ordered) + 1)), dtype="Int64"))
    return ordered


def enrich_customers(silver: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """
    Join CRM customers with ERP demographics and locations on the customer number.

    Left joins: every CRM customer survives, duplicated ERP ids multiply rows.
    """
    customers = silver["crm_cust_info"]
    demographics = _with_key(silver["erp_cust_az12"], "cid")[["cid", "bdate", "gen"]]
    locations = _with_key(silver["erp_loc_a101"], "cid")[["cid", "cntry"]]

    enriched = customers.merge(
        demographics, left_on="cst_key", right_on="cid", how="left"
    ).drop(columns="cid")
    enriched = enriched.merge(
        locations, left_on="cst_key", right_on="cid", how="left"
    ).drop(columns="cid")
    return enriched


def resolve_gender(crm_gender: pd.Series, erp_gender: pd.Series) -> pd.Series:
    """CRM gender wins unless it is n/a; then ERP gender; then n/a."""
    crm = crm_gender.astype("string")
    erp = erp_gender.astype("string").fillna(NOT_APPLICABLE)
    use_crm = (crm.notna() & (crm != NOT_APPLICABLE)).fillna(False).astype(bool)
    return crm.where(use_crm, erp)


def build_dim_customers(silver: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    logger.info("Building customer dimension")
    enriched = enrich_customers(silver)

    # --------------------------------------------------
    # Gender fallback and business column names
    # --------------------------------------------------
    enriched["gender"] = resolve_gender(enriched["cst_gndr"], enriched["gen"])
    dim = enriched.rename(
        columns={
            "cst_id": "customer_id",
            "cst_key": "customer_number",
            "cst_firstname": "first_name",
            "cst_lastname": "last_name",
            "cntry": "country",
            "cst_marital_status": "marital_status",
            "bdate": "birthdate",
            "cst_create_date": "create_date",
        }
    )

    dim = assign_surrogate_keys(dim, sort_by=["customer_id"], key_column="customer_key")
    result = apply_table_schema(dim, GOLD, "dim_customers")
    logger.info(f"Customer dimension built: {len(result)} customers")
    return result


def active_products(silver: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """
    Current product versions (open validity interval) with their category.

    Superseded history rows stay in silver but never reach reporting.
    """
    products = silver["crm_prd_info"]
    categories = _with_key(silver["erp_px_cat_g1v2"], "id")

    current = products[products["prd_end_dt"].isna()]
    enriched = current.merge(categories, left_on="cat_id", right_on="id", how="left")
    return enriched.drop(columns="id")


def build_dim_products(silver: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    logger.info("Building product dimension")
    current = active_products(silver)
    excluded = len(silver["crm_prd_info"]) - len(current)
    logger.info(f"Active-only filter: {excluded} historical product versions excluded")

    dim = current.rename(
        columns={
            "prd_id": "product_id",
            "prd_key": "product_number",
            "prd_nm": "product_name",
            "cat_id": "category_id",
            "cat": "category",
            "subcat": "subcategory",
            "prd_cost": "cost",
            "prd_line": "product_line",
            "prd_start_dt": "start_date",
        }
    )

    dim = assign_surrogate_keys(dim, sort_by=["product_number", "product_id"], key_column="product_key")
    result = apply_table_schema(dim, GOLD, "dim_products")
    logger.info(f"Product dimension built: {len(result)} products")
    return result


def build_fact_sales(
    sales: pd.DataFrame,
    dim_customers: pd.DataFrame,
    dim_products: pd.DataFrame,
) -> pd.DataFrame:
    """
    Resolve surrogate keys for every cleansed sale.

    Unmatched lookups leave a null key; orphans are reported by the
    quality checks, never dropped here.
    """
    logger.info(f"Building sales fact from {len(sales)} transactions")

    fact = sales.merge(
        _with_key(dim_customers, "customer_id")[["customer_id", "customer_key"]],
        left_on="sls_cust_id",
        right_on="customer_id",
        how="left",
    )
    fact = fact.merge(
        _with_key(dim_products, "product_number")[["product_number", "product_key"]],
        left_on="sls_prd_key",
        right_on="product_number",
        how="left",
    )

    fact = fact.rename(
        columns={
            "sls_ord_num": "order_number",
            "sls_order_dt": "order_date",
            "sls_ship_dt": "shipping_date",
            "sls_due_dt": "due_date",
            "sls_sales": "sales_amount",
            "sls_quantity": "quantity",
            "sls_price": "price",
        }
    )

    result = apply_table_schema(fact, GOLD, "fact_sales")
    if len(result) != len(sales):
        logger.warning(
            f"Sales fact has {len(result)} rows for {len(sales)} transactions: "
            f"duplicate dimension keys fanned out the lookups"
        )
    orphans = int(result["product_key"].isna().sum() + result["customer_key"].isna().sum())
    if orphans > 0:
        logger.warning(f"Sales fact has {orphans} unresolved dimension keys")
    logger.info(f"Sales fact built: {len(result)} rows")
    return result
