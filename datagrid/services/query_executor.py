import logging
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from datagrid.db import database
from datagrid.db.tables import dataset_table, not_deleted
from datagrid.models.actions import QueryResult
from datagrid.models.schema_def import DatasetSchema
from datagrid.services.predicate_builder import Predicate

logger = logging.getLogger(__name__)

def _get_db() -> Session:
    return database.SessionLocal()

def is_paginated(page: Optional[int], limit: Optional[int], export: bool) -> bool:
    # Export always returns the full result set
    if export:
        return False
    return bool(page) and bool(limit) and page > 0 and limit > 0

def list_records(
    schema: DatasetSchema,
    table_name: str,
    predicate: Predicate,
    sort: Optional[str] = None,
    direction: str = "ASC",
    page: Optional[int] = None,
    limit: Optional[int] = None,
    export: bool = False,
) -> QueryResult:
    """
    Runs the filtered read against a single table.
    Paginated calls also return the total count of matching rows.
    Storage failures degrade to an empty result with `error` set.
    """
    tbl = dataset_table(schema, table_name)
    where = (not_deleted(tbl), predicate.clause())
    paginated = is_paginated(page, limit, export)

    stmt = select(*[tbl.c[name] for name in schema.column_names()]).where(*where)

    if sort and sort in schema.field_names():
        sort_col = tbl.c[sort]
        stmt = stmt.order_by(sort_col.desc() if str(direction).upper() == "DESC" else sort_col.asc())
    elif sort:
        logger.debug("Ignoring sort on unknown field '%s'", sort)

    db = _get_db()
    try:
        total = None
        if paginated:
            count_stmt = select(func.count()).select_from(tbl).where(*where)
            total = db.execute(count_stmt).scalar_one()
            stmt = stmt.limit(limit).offset((page - 1) * limit)

        rows = [dict(r) for r in db.execute(stmt).mappings().all()]
        return QueryResult(rows=rows, total=total, paginated=paginated)
    except SQLAlchemyError as e:
        logger.error("List query on '%s' failed: %s", table_name, e)
        return QueryResult(rows=[], total=0 if paginated else None, paginated=paginated, error=str(e))
    finally:
        db.close()

def to_response(result: QueryResult) -> Any:
    """
    Wire shape: {pagination, data, total} for paged reads, a flat list otherwise.
    """
    if result.paginated:
        body: Dict[str, Any] = {"pagination": True, "data": result.rows, "total": result.total}
        if result.error:
            body["error"] = result.error
        return body
    return result.rows
