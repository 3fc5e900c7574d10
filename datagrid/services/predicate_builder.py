"""
Translates request filters into a conjunctive SQL predicate.

Filter shape is inferred from the value:
  {"start": ..., "end": ...}  -> range    (field >= start AND field <= end)
  [v1, v2, ...]               -> multi    (field IN (...)); empty list = no filter
  scalar                      -> exact match, or substring match for free text

Only schema-declared field names ever reach the query; other keys are dropped.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from sqlalchemy import and_, true

from datagrid.models.schema_def import DatasetSchema
from datagrid.services.field_types import handler_for, is_blank, is_calendar_date

logger = logging.getLogger(__name__)

END_OF_DAY = " 23:59:59"

@dataclass(frozen=True)
class RangeFilter:
    start: Optional[str] = None
    end: Optional[str] = None

@dataclass(frozen=True)
class MultiFilter:
    values: Tuple[Any, ...] = ()

@dataclass(frozen=True)
class ScalarFilter:
    value: Any = None

FilterValue = Union[RangeFilter, MultiFilter, ScalarFilter]

@dataclass
class Predicate:
    clauses: List[Any] = field(default_factory=list)

    def add(self, clause) -> None:
        self.clauses.append(clause)

    def clause(self):
        return and_(*self.clauses) if self.clauses else true()

def parse_filter_value(raw: Any) -> Optional[FilterValue]:
    if isinstance(raw, dict):
        if "start" in raw or "end" in raw:
            return RangeFilter(start=raw.get("start"), end=raw.get("end"))
        return None
    if isinstance(raw, (list, tuple, set)):
        return MultiFilter(values=tuple(raw))
    if is_blank(raw):
        return None
    return ScalarFilter(value=raw)

def widen_end_of_day(end: str) -> str:
    """
    A date-only upper bound covers the whole day: "2024-01-31" -> "2024-01-31 23:59:59".
    """
    return end + END_OF_DAY if is_calendar_date(end) else end

def build(schema: DatasetSchema, tbl, filters: Dict[str, Any]) -> Predicate:
    predicate = Predicate()

    for name, raw in (filters or {}).items():
        # Security boundary: only schema fields are allowed into the query
        field_def = schema.field_by_name(name)
        if field_def is None:
            logger.debug("Dropping filter on unknown field '%s'", name)
            continue

        value = parse_filter_value(raw)
        if value is None:
            continue

        column = tbl.c[name]

        # 1. Date periods / numeric ranges, bounds coerced like any other filter value
        if isinstance(value, RangeFilter):
            handler = handler_for(field_def)
            if not is_blank(value.start):
                predicate.add(column >= handler.filter_value(str(value.start).strip()))
            if not is_blank(value.end):
                predicate.add(column <= handler.filter_value(widen_end_of_day(str(value.end).strip())))

        # 2. Multi-select
        elif isinstance(value, MultiFilter):
            if value.values:
                handler = handler_for(field_def)
                predicate.add(column.in_([handler.filter_value(v) for v in value.values]))

        # 3. Single value: exact for closed types, substring for free text
        else:
            predicate.add(handler_for(field_def).scalar_predicate(column, value.value))

    return predicate
