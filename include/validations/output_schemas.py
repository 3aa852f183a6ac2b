from pandera.pandas import Check, Column, DataFrameSchema

from include.etl.mappings import (
    CRM_GENDER_CODES,
    ERP_GENDER_CODES,
    MARITAL_STATUS_CODES,
    NOT_APPLICABLE,
    PRODUCT_LINE_CODES,
)


def _labels(mapping: dict) -> list:
    return sorted(set(mapping.values()) | {NOT_APPLICABLE})


# --------------------------------------------------
# Silver (cleansed) tables
# --------------------------------------------------

silver_customers_schema = DataFrameSchema(
    {
        # Primary key after dedup
        "cst_id": Column("Int64", nullable=False, unique=True),
        "cst_key": Column("string", nullable=True),
        "cst_firstname": Column("string", nullable=True),
        "cst_lastname": Column("string", nullable=True),
        "cst_marital_status": Column("string", Check.isin(_labels(MARITAL_STATUS_CODES)), nullable=False),
        "cst_gndr": Column("string", Check.isin(_labels(CRM_GENDER_CODES)), nullable=False),
        "cst_create_date": Column("datetime64[ns]", nullable=True),
    },
    strict=True,
)


silver_products_schema = DataFrameSchema(
    {
        "prd_id": Column("Int64", nullable=True),
        "cat_id": Column("string", nullable=True),
        "prd_key": Column("string", nullable=True),
        "prd_nm": Column("string", nullable=True),
        "prd_cost": Column(float, Check.ge(0), nullable=False),
        "prd_line": Column("string", Check.isin(_labels(PRODUCT_LINE_CODES)), nullable=False),
        "prd_start_dt": Column("datetime64[ns]", nullable=True),
        "prd_end_dt": Column("datetime64[ns]", nullable=True),  # null = currently active
    },
    strict=True,
)


silver_sales_schema = DataFrameSchema(
    {
        "sls_ord_num": Column("string", nullable=True),
        "sls_prd_key": Column("string", nullable=True),
        "sls_cust_id": Column("Int64", nullable=True),
        "sls_order_dt": Column("datetime64[ns]", nullable=True),
        "sls_ship_dt": Column("datetime64[ns]", nullable=True),
        "sls_due_dt": Column("datetime64[ns]", nullable=True),
        "sls_sales": Column(float, nullable=True),
        "sls_quantity": Column("Int64", nullable=True),
        "sls_price": Column(float, nullable=True),
    },
    strict=True,
)


silver_erp_customers_schema = DataFrameSchema(
    {
        "cid": Column("string", nullable=True),
        "bdate": Column("datetime64[ns]", nullable=True),
        "gen": Column("string", Check.isin(_labels(ERP_GENDER_CODES)), nullable=False),
    },
    strict=True,
)


silver_locations_schema = DataFrameSchema(
    {
        "cid": Column("string", nullable=True),
        "cntry": Column("string", Check.str_length(min_value=1), nullable=False),
    },
    strict=True,
)


silver_categories_schema = DataFrameSchema(
    {
        "id": Column("string", nullable=True),
        "cat": Column("string", nullable=True),
        "subcat": Column("string", nullable=True),
        "maintenance": Column("string", nullable=True),
    },
    strict=True,
)


# --------------------------------------------------
# Gold (curated) tables
# --------------------------------------------------

dim_customers_schema = DataFrameSchema(
    {
        "customer_key": Column("Int64", Check.gt(0), nullable=False, unique=True),
        "customer_id": Column("Int64", nullable=False),
        "customer_number": Column("string", nullable=True),
        "first_name": Column("string", nullable=True),
        "last_name": Column("string", nullable=True),
        "country": Column("string", nullable=True),  # null when no location row
        "marital_status": Column("string", nullable=False),
        "gender": Column("string", Check.isin(_labels(CRM_GENDER_CODES)), nullable=False),
        "birthdate": Column("datetime64[ns]", nullable=True),
        "create_date": Column("datetime64[ns]", nullable=True),
    },
    strict=True,
)


dim_products_schema = DataFrameSchema(
    {
        "product_key": Column("Int64", Check.gt(0), nullable=False, unique=True),
        "product_id": Column("Int64", nullable=True),
        "product_number": Column("string", nullable=True),
        "product_name": Column("string", nullable=True),
        "category_id": Column("string", nullable=True),
        "category": Column("string", nullable=True),
        "subcategory": Column("string", nullable=True),
        "maintenance": Column("string", nullable=True),
        "cost": Column(float, nullable=False),
        "product_line": Column("string", nullable=False),
        "start_date": Column("datetime64[ns]", nullable=True),
    },
    strict=True,
)


fact_sales_schema = DataFrameSchema(
    {
        "order_number": Column("string", nullable=True),

        # Nullable: orphaned transactions are kept and flagged by quality checks
        "product_key": Column("Int64", nullable=True),
        "customer_key": Column("Int64", nullable=True),

        "order_date": Column("datetime64[ns]", nullable=True),
        "shipping_date": Column("datetime64[ns]", nullable=True),
        "due_date": Column("datetime64[ns]", nullable=True),
        "sales_amount": Column(float, nullable=True),
        "quantity": Column("Int64", nullable=True),
        "price": Column(float, nullable=True),
    },
    strict=True,
)


OUTPUT_SCHEMAS = {
    "silver": {
        "crm_cust_info": silver_customers_schema,
        "crm_prd_info": silver_products_schema,
        "crm_sales_details": silver_sales_schema,
        "erp_cust_az12": silver_erp_customers_schema,
        "erp_loc_a101": silver_locations_schema,
        "erp_px_cat_g1v2": silver_categories_schema,
    },
    "gold": {
        "dim_customers": dim_customers_schema,
        "dim_products": dim_products_schema,
        "fact_sales": fact_sales_schema,
    },
}
