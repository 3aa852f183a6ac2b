from typing import Optional

import pandas as pd

from include.etl.mappings import (
    map_country,
    map_crm_gender,
    map_erp_gender,
    map_marital_status,
    map_product_line,
)
from include.etl.tables import SILVER, apply_table_schema
from include.logger import setup_logger

logger = setup_logger("etl.conform")

ONE_DAY = pd.Timedelta(days=1)
BAD_CUSTOMER_PREFIX = "NAS"


def conform_crm_customers(raw_df: pd.DataFrame) -> pd.DataFrame:
    """
    Deduplicate and standardize CRM customers.

    Keeps exactly one row per ``cst_id``: the most recently created version.
    """
    logger.info(f"Conforming CRM customers: {len(raw_df)} raw rows")
    df = raw_df.copy()

    # --------------------------------------------------
    # 1. Rows without an id cannot be deduplicated or joined
    # --------------------------------------------------
    df["cst_id"] = pd.to_numeric(df["cst_id"], errors="coerce").astype("Int64")
    dropped = int(df["cst_id"].isna().sum())
    df = df[df["cst_id"].notna()].copy()
    if dropped > 0:
        logger.warning(f"Filtered: {dropped} customers without cst_id")

    # --------------------------------------------------
    # 2. Trim names and normalize coded attributes
    # --------------------------------------------------
    df["cst_firstname"] = df["cst_firstname"].astype("string").str.strip()
    df["cst_lastname"] = df["cst_lastname"].astype("string").str.strip()
    df["cst_marital_status"] = map_marital_status(df["cst_marital_status"])
    df["cst_gndr"] = map_crm_gender(df["cst_gndr"])
    df["cst_create_date"] = pd.to_datetime(df["cst_create_date"], errors="coerce")

    # --------------------------------------------------
    # 3. Keep the latest version per customer
    # --------------------------------------------------
    # Stable sort: equal timestamps keep input order, null timestamps rank last
    ranked = df.sort_values(
        ["cst_id", "cst_create_date"],
        ascending=[True, False],
        na_position="last",
        kind="mergesort",
    )
    deduped = ranked.drop_duplicates(subset="cst_id", keep="first")

    removed = len(df) - len(deduped)
    if removed > 0:
        logger.warning(f"Dedup: removed {removed} superseded customer versions")

    result = apply_table_schema(deduped, SILVER, "crm_cust_info")
    logger.info(f"CRM customers conformed: {len(result)} rows")
    return result


def derive_validity_end(
    df: pd.DataFrame,
    key: str,
    start: str,
    tiebreak: str,
) -> pd.Series:
    """
    Reconstruct type-2 validity end dates from a flat extract.

    Rows are grouped by ``key`` and ordered by ``start`` (then ``tiebreak``),
    null start dates first. Each row ends one day before its successor
    starts; the last row of a group stays open (NaT). Returns a Series
    aligned with ``df.index``.
    """
    ordered = df.sort_values([key, start, tiebreak], na_position="first", kind="mergesort")
    end_dates = pd.Series(pd.NaT, index=df.index, dtype="datetime64[ns]")

    for _, versions in ordered.groupby(key, sort=False, dropna=False):
        starts = list(versions[start])
        successors = starts[1:] + [pd.NaT]
        for row, successor in zip(versions.index, successors):
            if not pd.isna(successor):
                end_dates.at[row] = successor - ONE_DAY

    return end_dates


def conform_crm_products(raw_df: pd.DataFrame) -> pd.DataFrame:
    """
    Split the composite product key, normalize attributes and rebuild
    the validity history of every product.
    """
    logger.info(f"Conforming CRM products: {len(raw_df)} raw rows")
    df = raw_df.copy().reset_index(drop=True)
    raw_key = df["prd_key"].astype("string")

    # --------------------------------------------------
    # 1. Decompose composite key: "CO-RF-FR-R92B-58"
    #    -> cat_id "CO_RF", prd_key "FR-R92B-58"
    # --------------------------------------------------
    df["cat_id"] = raw_key.str.slice(0, 5).str.replace("-", "_", regex=False)
    df["prd_key"] = raw_key.str.slice(6)

    # --------------------------------------------------
    # 2. Defaults and code mappings
    # --------------------------------------------------
    df["prd_nm"] = df["prd_nm"].astype("string")
    df["prd_cost"] = pd.to_numeric(df["prd_cost"], errors="coerce").astype("float64").fillna(0)
    df["prd_line"] = map_product_line(df["prd_line"])
    df["prd_id"] = pd.to_numeric(df["prd_id"], errors="coerce").astype("Int64")

    # --------------------------------------------------
    # 3. Validity intervals from consecutive start dates
    # --------------------------------------------------
    df["prd_start_dt"] = pd.to_datetime(df["prd_start_dt"], errors="coerce")
    df["prd_end_dt"] = derive_validity_end(df, key="prd_key", start="prd_start_dt", tiebreak="prd_id")

    active = int(df["prd_end_dt"].isna().sum())
    logger.info(f"Validity reconstructed: {active} active of {len(df)} product versions")

    result = apply_table_schema(df, SILVER, "crm_prd_info")
    logger.info(f"CRM products conformed: {len(result)} rows")
    return result


def parse_int_date(series: pd.Series) -> pd.Series:
    """
    Convert integer-encoded YYYYMMDD dates.

    A value is accepted only if it is a positive whole number of exactly
    eight digits forming a real calendar date; anything else becomes NaT.
    """
    numeric = pd.to_numeric(series, errors="coerce").astype("float64")
    numeric = numeric.where((numeric > 0) & (numeric % 1 == 0))

    digits = numeric.astype("Int64").astype("string")
    eight_digits = (digits.str.len() == 8).fillna(False).astype(bool)
    candidates = digits.astype("object").where(eight_digits, None)

    return pd.to_datetime(candidates, format="%Y%m%d", errors="coerce")


def recompute_sales_and_price(df: pd.DataFrame) -> pd.DataFrame:
    """
    Repair the sales / quantity / price relationship row by row.

    * sales is replaced by quantity * |price| when it is null, non-positive or
      inconsistent, provided that product is known
    * price is replaced by sales / quantity when it is null or non-positive;
      zero quantity yields a null price
    * quantity is never altered
    """
    sales = pd.to_numeric(df["sls_sales"], errors="coerce").astype("float64")
    quantity = pd.to_numeric(df["sls_quantity"], errors="coerce").astype("float64")
    price = pd.to_numeric(df["sls_price"], errors="coerce").astype("float64")

    derived_sales = quantity * price.abs()
    invalid_sales = sales.isna() | (sales <= 0) | (sales != derived_sales)
    fix_sales = invalid_sales & derived_sales.notna()
    clean_sales = sales.where(~fix_sales, derived_sales)

    invalid_price = price.isna() | (price <= 0)
    safe_quantity = quantity.where(quantity != 0)
    clean_price = price.where(~invalid_price, clean_sales / safe_quantity)

    if fix_sales.any():
        logger.warning(f"Recomputed sales amount on {int(fix_sales.sum())} rows")
    if invalid_price.any():
        logger.warning(f"Recomputed price on {int(invalid_price.sum())} rows")

    df = df.copy()
    df["sls_sales"] = clean_sales
    df["sls_price"] = clean_price
    return df


def conform_crm_sales(raw_df: pd.DataFrame) -> pd.DataFrame:
    """Validate sales dates and repair monetary fields. No cross-row state."""
    logger.info(f"Conforming CRM sales: {len(raw_df)} raw rows")
    df = raw_df.copy()

    for column in ("sls_order_dt", "sls_ship_dt", "sls_due_dt"):
        parsed = parse_int_date(df[column])
        rejected = int(parsed.isna().sum() - df[column].isna().sum())
        if rejected > 0:
            logger.warning(f"{column}: {rejected} malformed dates set to null")
        df[column] = parsed

    df = recompute_sales_and_price(df)

    result = apply_table_schema(df, SILVER, "crm_sales_details")
    logger.info(f"CRM sales conformed: {len(result)} rows")
    return result


def conform_erp_customers(raw_df: pd.DataFrame, as_of: Optional[pd.Timestamp] = None) -> pd.DataFrame:
    """
    Clean ERP customer demographics.

    ``as_of`` is the processing time used to reject future birthdates.
    """
    as_of = pd.Timestamp.now() if as_of is None else pd.Timestamp(as_of)
    logger.info(f"Conforming ERP customers: {len(raw_df)} raw rows (as of {as_of.date()})")
    df = raw_df.copy()

    cid = df["cid"].astype("string")
    has_prefix = cid.str.startswith(BAD_CUSTOMER_PREFIX).fillna(False).astype(bool)
    df["cid"] = cid.where(~has_prefix, cid.str.slice(len(BAD_CUSTOMER_PREFIX)))

    bdate = pd.to_datetime(df["bdate"], errors="coerce")
    in_future = bdate > as_of
    if in_future.any():
        logger.warning(f"Nulled {int(in_future.sum())} birthdates in the future")
    df["bdate"] = bdate.where(~in_future)

    df["gen"] = map_erp_gender(df["gen"])

    result = apply_table_schema(df, SILVER, "erp_cust_az12")
    logger.info(f"ERP customers conformed: {len(result)} rows")
    return result


def conform_erp_locations(raw_df: pd.DataFrame) -> pd.DataFrame:
    logger.info(f"Conforming ERP locations: {len(raw_df)} raw rows")
    df = raw_df.copy()

    df["cid"] = df["cid"].astype("string").str.replace("-", "", regex=False)
    df["cntry"] = map_country(df["cntry"])

    result = apply_table_schema(df, SILVER, "erp_loc_a101")
    logger.info(f"Country normalization: {result['cntry'].nunique()} distinct countries")
    return result


def conform_erp_categories(raw_df: pd.DataFrame) -> pd.DataFrame:
    # Category data is already clean: direct copy
    result = apply_table_schema(raw_df, SILVER, "erp_px_cat_g1v2")
    logger.info(f"ERP categories copied: {len(result)} rows")
    return result
