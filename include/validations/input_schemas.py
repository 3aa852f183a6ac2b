from pandera.pandas import Column, DataFrameSchema


# Raw extracts are defect-laden by nature: schemas only pin structure
# (required columns and their bronze types). Row defects are repaired in silver.

crm_cust_info_schema = DataFrameSchema(
    {
        "cst_id": Column("Int64", nullable=True),
        "cst_key": Column("string", nullable=True),
        "cst_firstname": Column("string", nullable=True),
        "cst_lastname": Column("string", nullable=True),
        "cst_marital_status": Column("string", nullable=True),
        "cst_gndr": Column("string", nullable=True),
        "cst_create_date": Column("datetime64[ns]", nullable=True),
    },
    strict=False,
)


crm_prd_info_schema = DataFrameSchema(
    {
        "prd_id": Column("Int64", nullable=True),
        "prd_key": Column("string", nullable=True),
        "prd_nm": Column("string", nullable=True),
        "prd_cost": Column(float, nullable=True),  # Missing cost defaults to 0 in silver
        "prd_line": Column("string", nullable=True),
        "prd_start_dt": Column("datetime64[ns]", nullable=True),
    },
    strict=False,
)


crm_sales_details_schema = DataFrameSchema(
    {
        "sls_ord_num": Column("string", nullable=True),
        "sls_prd_key": Column("string", nullable=True),
        "sls_cust_id": Column("Int64", nullable=True),

        # Integer-encoded YYYYMMDD dates, validated in silver
        "sls_order_dt": Column("Int64", nullable=True),
        "sls_ship_dt": Column("Int64", nullable=True),
        "sls_due_dt": Column("Int64", nullable=True),

        # Allow negative/zero/null for data cleaning
        "sls_sales": Column(float, nullable=True),
        "sls_quantity": Column("Int64", nullable=True),
        "sls_price": Column(float, nullable=True),
    },
    strict=False,
)


erp_cust_az12_schema = DataFrameSchema(
    {
        "cid": Column("string", nullable=True),
        "bdate": Column("datetime64[ns]", nullable=True),
        "gen": Column("string", nullable=True),
    },
    strict=False,
)


erp_loc_a101_schema = DataFrameSchema(
    {
        "cid": Column("string", nullable=True),
        "cntry": Column("string", nullable=True),
    },
    strict=False,
)


erp_px_cat_g1v2_schema = DataFrameSchema(
    {
        "id": Column("string", nullable=True),
        "cat": Column("string", nullable=True),
        "subcat": Column("string", nullable=True),
        "maintenance": Column("string", nullable=True),
    },
    strict=False,
)


BRONZE_SCHEMAS = {
    "crm_cust_info": crm_cust_info_schema,
    "crm_prd_info": crm_prd_info_schema,
    "crm_sales_details": crm_sales_details_schema,
    "erp_cust_az12": erp_cust_az12_schema,
    "erp_loc_a101": erp_loc_a101_schema,
    "erp_px_cat_g1v2": erp_px_cat_g1v2_schema,
}
