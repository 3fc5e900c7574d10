import logging
from typing import Any, Dict, Optional

from sqlalchemy import insert, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from datagrid.db import database
from datagrid.db.tables import SOFT_DELETE_COLUMN, dataset_table
from datagrid.models.errors import RecordValidationError, StorageError
from datagrid.models.schema_def import DatasetSchema
from datagrid.services import validator
from datagrid.services.field_types import handler_for

logger = logging.getLogger(__name__)

def _get_db() -> Session:
    return database.SessionLocal()

def has_identifier(value: Any) -> bool:
    """
    A record id counts only when it is non-blank and not the literal "0".
    """
    if value is None:
        return False
    text = str(value).strip()
    return text != "" and text != "0"

def prepare_values(schema: DatasetSchema, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keeps only schema-declared columns and converts each value to its stored form.
    """
    dropped = validator.unknown_fields(schema, data)
    if dropped:
        logger.debug("Dropping unknown columns %s from write", dropped)

    values: Dict[str, Any] = {}
    for name, raw in data.items():
        if name in dropped:
            continue
        field = schema.field_by_name(name)
        # The primary key may be undeclared as a field; it is stored as-is
        values[name] = handler_for(field).to_storage(raw) if field else raw
    return values

def insert_values(schema: DatasetSchema, table_name: str, values: Dict[str, Any]) -> None:
    tbl = dataset_table(schema, table_name)
    db = _get_db()
    try:
        db.execute(insert(tbl).values(**values))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Insert into '{table_name}' failed: {e}") from e
    finally:
        db.close()

def update_values(schema: DatasetSchema, table_name: str, record_id: Any, values: Dict[str, Any]) -> int:
    """
    Updates the row matched by primary key; returns the number of rows matched.
    """
    tbl = dataset_table(schema, table_name)
    stmt = update(tbl).where(tbl.c[schema.primary_key] == record_id).values(**values)
    db = _get_db()
    try:
        result = db.execute(stmt)
        db.commit()
        return result.rowcount
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Update of '{table_name}' failed: {e}") from e
    finally:
        db.close()

def save_record(
    schema: DatasetSchema,
    record_id: Optional[Any],
    data: Dict[str, Any],
    table_name: Optional[str] = None,
) -> None:
    """
    Validates then inserts (no id) or updates (id present) exactly the submitted fields.
    Raises RecordValidationError or StorageError; nothing is written on failure.
    """
    is_insert = not has_identifier(record_id)
    validator.validate_record(schema, data, is_insert=is_insert)

    target = table_name or schema.write_table
    values = prepare_values(schema, data)
    pk = schema.primary_key

    if is_insert:
        # A blank id lets the store assign one
        if pk in values and not has_identifier(values[pk]):
            values.pop(pk)
        if not values:
            raise RecordValidationError("Nothing to save.")
        insert_values(schema, target, values)
        logger.info("Inserted record into '%s'", target)
    else:
        values.pop(pk, None)
        if not values:
            raise RecordValidationError("Nothing to save.")
        update_values(schema, target, record_id, values)
        logger.info("Updated record %s in '%s'", record_id, target)

def soft_delete_record(schema: DatasetSchema, record_id: Any, table_name: Optional[str] = None) -> None:
    """
    Marks the row as deleted (del = 1). Deleting an already deleted row is a no-op success.
    """
    if not has_identifier(record_id):
        raise RecordValidationError("No record selected.")

    target = table_name or schema.write_table
    update_values(schema, target, record_id, {SOFT_DELETE_COLUMN: 1})
    logger.info("Soft-deleted record %s in '%s'", record_id, target)
