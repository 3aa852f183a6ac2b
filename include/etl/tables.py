"""
Table catalog for the bronze, silver and gold layers.

Every table is declared once as an ordered column -> pandas dtype mapping.
Stages cast their output with ``apply_table_schema`` so the same input always
produces the same frame, and a failed table is still emitted with its columns.
"""

import pandas as pd

BRONZE = "bronze"
SILVER = "silver"
GOLD = "gold"

BRONZE_TABLES = {
    "crm_cust_info": {
        "cst_id": "Int64",
        "cst_key": "string",
        "cst_firstname": "string",
        "cst_lastname": "string",
        "cst_marital_status": "string",
        "cst_gndr": "string",
        "cst_create_date": "datetime64[ns]",
    },
    "crm_prd_info": {
        "prd_id": "Int64",
        "prd_key": "string",
        "prd_nm": "string",
        "prd_cost": "float64",
        "prd_line": "string",
        "prd_start_dt": "datetime64[ns]",
        "prd_end_dt": "datetime64[ns]",
    },
    # Dates arrive as integers (YYYYMMDD) and are validated in silver
    "crm_sales_details": {
        "sls_ord_num": "string",
        "sls_prd_key": "string",
        "sls_cust_id": "Int64",
        "sls_order_dt": "Int64",
        "sls_ship_dt": "Int64",
        "sls_due_dt": "Int64",
        "sls_sales": "float64",
        "sls_quantity": "Int64",
        "sls_price": "float64",
    },
    "erp_cust_az12": {
        "cid": "string",
        "bdate": "datetime64[ns]",
        "gen": "string",
    },
    "erp_loc_a101": {
        "cid": "string",
        "cntry": "string",
    },
    "erp_px_cat_g1v2": {
        "id": "string",
        "cat": "string",
        "subcat": "string",
        "maintenance": "string",
    },
}

SILVER_TABLES = {
    "crm_cust_info": dict(BRONZE_TABLES["crm_cust_info"]),
    "crm_prd_info": {
        "prd_id": "Int64",
        "cat_id": "string",
        "prd_key": "string",
        "prd_nm": "string",
        "prd_cost": "float64",
        "prd_line": "string",
        "prd_start_dt": "datetime64[ns]",
        "prd_end_dt": "datetime64[ns]",
    },
    "crm_sales_details": {
        "sls_ord_num": "string",
        "sls_prd_key": "string",
        "sls_cust_id": "Int64",
        "sls_order_dt": "datetime64[ns]",
        "sls_ship_dt": "datetime64[ns]",
        "sls_due_dt": "datetime64[ns]",
        "sls_sales": "float64",
        "sls_quantity": "Int64",
        "sls_price": "float64",
    },
    "erp_cust_az12": dict(BRONZE_TABLES["erp_cust_az12"]),
    "erp_loc_a101": dict(BRONZE_TABLES["erp_loc_a101"]),
    "erp_px_cat_g1v2": dict(BRONZE_TABLES["erp_px_cat_g1v2"]),
}

GOLD_TABLES = {
    "dim_customers": {
        "customer_key": "Int64",
        "customer_id": "Int64",
        "customer_number": "string",
        "first_name": "string",
        "last_name": "string",
        "country": "string",
        "marital_status": "string",
        "gender": "string",
        "birthdate": "datetime64[ns]",
        "create_date": "datetime64[ns]",
    },
    "dim_products": {
        "product_key": "Int64",
        "product_id": "Int64",
        "product_number": "string",
        "product_name": "string",
        "category_id": "string",
        "category": "string",
        "subcategory": "string",
        "maintenance": "string",
        "cost": "float64",
        "product_line": "string",
        "start_date": "datetime64[ns]",
    },
    "fact_sales": {
        "order_number": "string",
        "product_key": "Int64",
        "customer_key": "Int64",
        "order_date": "datetime64[ns]",
        "shipping_date": "datetime64[ns]",
        "due_date": "datetime64[ns]",
        "sales_amount": "float64",
        "quantity": "Int64",
        "price": "float64",
    },
}

LAYER_TABLES = {
    BRONZE: BRONZE_TABLES,
    SILVER: SILVER_TABLES,
    GOLD: GOLD_TABLES,
}


def table_columns(layer: str, table: str) -> dict:
    try:
        return LAYER_TABLES[layer][table]
    except KeyError:
        raise ValueError(f"Unknown table {layer}.{table}") from None


def _cast_column(series: pd.Series, dtype: str) -> pd.Series:
    if dtype == "Int64":
        numeric = pd.to_numeric(series, errors="coerce").astype("float64")
        # Fractional values cannot be identifiers or counts
        return numeric.where(numeric % 1 == 0).astype("Int64")
    if dtype == "float64":
        return pd.to_numeric(series, errors="coerce").astype("float64")
    if dtype == "datetime64[ns]":
        return pd.to_datetime(series, errors="coerce").astype("datetime64[ns]")
    return series.astype(dtype)


def apply_table_schema(df: pd.DataFrame, layer: str, table: str) -> pd.DataFrame:
    """
    Select, order and cast ``df`` to the catalog definition of ``layer.table``.

    Missing columns are added as nulls, unknown columns are dropped and the
    index is reset.
    """
    columns = table_columns(layer, table)
    result = pd.DataFrame(index=df.index)
    for column, dtype in columns.items():
        source = df[column] if column in df.columns else pd.Series(None, index=df.index, dtype="object")
        result[column] = _cast_column(source, dtype)
    return result.reset_index(drop=True)


def empty_table(layer: str, table: str) -> pd.DataFrame:
    """Return a zero-row frame with the catalog columns of ``layer.table``."""
    return apply_table_schema(pd.DataFrame(), layer, table)
