import pandas as pd
from pandera.errors import SchemaErrors

from .input_schemas import BRONZE_SCHEMAS
from include.logger import setup_logger

logger = setup_logger('validation.input')


def validate_raw_table(table: str, df: pd.DataFrame) -> tuple[pd.DataFrame, int]:
    """
    Validate one bronze table against its input schema.

    Advisory: rows are never dropped here, defects are repaired by the
    conformance rules. Returns the frame and the number of issues found.
    """
    schema = BRONZE_SCHEMAS.get(table)
    if schema is None:
        raise ValueError(f"No input schema registered for bronze table '{table}'")

    logger.info(f"Starting {table} validation on {len(df)} rows")
    try:
        validated_df = schema.validate(df, lazy=True)
        logger.info(f"{table} validation passed")
        return validated_df, 0

    except SchemaErrors as err:
        failed = err.failure_cases
        invalid_count = len(failed)
        logger.warning(f"{table} validation failed: {invalid_count} issues")
        logger.warning(f"Errors summary:\n{failed.groupby(['column', 'check']).size()}")
        return df, invalid_count


def validate_raw_layer(tables: dict) -> dict:
    """Validate every bronze table present; returns issue counts per table."""
    issues = {}
    for table, df in tables.items():
        _, issues[table] = validate_raw_table(table, df)
    return issues
