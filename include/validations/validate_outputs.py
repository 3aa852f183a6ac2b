import pandas as pd
from pandera.errors import SchemaErrors

from .output_schemas import OUTPUT_SCHEMAS
from include.logger import setup_logger

logger = setup_logger("validation.output")


def validate_layer_table(layer: str, table: str, df: pd.DataFrame) -> tuple[pd.DataFrame, int]:
    """
    Validate a cleansed or curated table before it is written.

    Failures are logged with a per-column/check summary but rows are kept:
    one row per source record is itself an invariant of both layers.
    """
    try:
        schema = OUTPUT_SCHEMAS[layer][table]
    except KeyError:
        raise ValueError(f"No output schema registered for {layer}.{table}") from None

    logger.info(f"Starting output validation of {layer}.{table} on {len(df)} records")

    try:
        validated_df = schema.validate(df, lazy=True)
        logger.info(f"{layer}.{table} output validation passed")
        return validated_df, 0

    except SchemaErrors as err:
        failed = err.failure_cases
        invalid_count = len(failed)

        logger.error(
            f"{layer}.{table} output validation failed with {invalid_count} issues"
        )
        logger.error(
            f"Failure summary:\n{failed.groupby(['column', 'check']).size()}"
        )
        return df, invalid_count


def validate_layer(layer: str, tables: dict) -> dict:
    """Validate every table of a layer snapshot; returns issue counts per table."""
    issues = {}
    for table, df in tables.items():
        _, issues[table] = validate_layer_table(layer, table, df)
    total = sum(issues.values())
    if total > 0:
        logger.warning(f"{layer} layer output validation: {total} issues across {len(issues)} tables")
    return issues
