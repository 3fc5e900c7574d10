import logging
from typing import Dict, List

from sqlalchemy import column, func, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from datagrid.db import database
from datagrid.db.tables import SOFT_DELETE_COLUMN
from datagrid.models.actions import OptionItem
from datagrid.models.schema_def import get_option_source

logger = logging.getLogger(__name__)

def _get_db() -> Session:
    return database.SessionLocal()

def resolve(source_key: str) -> List[OptionItem]:
    """
    Returns the id/label choices of a lookup source, ordered by label.
    Unknown sources and storage failures both yield an empty list.
    """
    source = get_option_source(source_key)
    if source is None:
        logger.debug("Unknown option source '%s'", source_key)
        return []

    extra_columns = list(source.extra_filter)
    tbl = table(
        source.table_name,
        column(source.id_column),
        column(source.value_column),
        column(SOFT_DELETE_COLUMN),
        *[column(c) for c in extra_columns if c not in (source.id_column, source.value_column)],
    )
    label_col = tbl.c[source.value_column]
    stmt = (
        select(tbl.c[source.id_column].label("id"), label_col.label("label"))
        .where(func.coalesce(tbl.c[SOFT_DELETE_COLUMN], 0) != 1)
        .where(*[tbl.c[c] == v for c, v in source.extra_filter.items()])
        .order_by(label_col.asc())
    )

    db = _get_db()
    try:
        rows = db.execute(stmt).mappings().all()
        # Value columns may be numeric; labels are always text
        return [OptionItem(id=r["id"], label=None if r["label"] is None else str(r["label"])) for r in rows]
    except SQLAlchemyError as e:
        logger.error("Option source '%s' failed: %s", source_key, e)
        return []
    finally:
        db.close()

def resolve_many(sources: str) -> Dict[str, List[OptionItem]]:
    """
    Resolves a comma-separated list of source keys: "customers, countries".
    """
    response: Dict[str, List[OptionItem]] = {}
    for source in (sources or "").split(","):
        source = source.strip()
        if source and source not in response:
            response[source] = resolve(source)
    return response

def label_map(source_key: str) -> Dict[str, str]:
    return {str(item.id): item.label or "" for item in resolve(source_key)}
