import logging
from typing import Optional
from sqlalchemy import column, func, table

from datagrid.models.schema_def import DatasetSchema

logger = logging.getLogger(__name__)

SOFT_DELETE_COLUMN = "del"

def dataset_table(schema: DatasetSchema, table_name: str):
    """
    Lightweight table construct limited to the schema's columns plus the
    soft-delete flag. Identifiers are quoted by the dialect at compile time.
    """
    columns = [column(name) for name in schema.column_names()]
    if SOFT_DELETE_COLUMN not in schema.column_names():
        columns.append(column(SOFT_DELETE_COLUMN))
    return table(table_name, *columns)

def not_deleted(tbl):
    return func.coalesce(tbl.c[SOFT_DELETE_COLUMN], 0) != 1

def resolve_read_table(schema: DatasetSchema, requested: Optional[str]) -> str:
    allowed = {schema.table_name, schema.write_table}
    if requested and requested not in allowed:
        logger.warning("Ignoring undeclared table '%s'; using '%s'", requested, schema.table_name)
    return requested if requested in allowed else schema.table_name

def resolve_write_table(schema: DatasetSchema, requested: Optional[str]) -> str:
    allowed = {schema.table_name, schema.write_table}
    if requested and requested not in allowed:
        logger.warning("Ignoring undeclared table '%s'; using '%s'", requested, schema.write_table)
    # Writes always go to the edit table when one is declared
    return schema.write_table
