"""
Per-type field behaviour.

Every FieldKind maps to exactly one handler that knows how the type is
filtered, validated, stored and displayed. The engine never branches on
field.type directly; it asks the handler.
"""
import math
from typing import Any, Dict, Optional
from datetime import datetime
import pandas as pd

from datagrid.models.schema_def import FieldKind, FieldSchema

ISO_DATE_FORMAT = "%Y-%m-%d"

TRUE_STRINGS = ("true", "1", "t", "yes", "y", "on")
FALSE_STRINGS = ("false", "0", "f", "no", "n", "off")

# Parsing helpers
#----------------------------------------------------------------
def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""

def is_calendar_date(value: Any) -> bool:
    """
    True for a bare YYYY-MM-DD date (exactly 10 characters, no time part).
    """
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        datetime.strptime(value, ISO_DATE_FORMAT)
    except ValueError:
        return False
    return True

def parse_bool(value: Any) -> Optional[bool]:
    """
    Public helper to parse boolean values.
    """
    if isinstance(value, bool):
        return value
    if is_blank(value):
        return None

    s = str(value).lower().strip()
    if s in TRUE_STRINGS:
        return True
    if s in FALSE_STRINGS:
        return False
    return None

def parse_number(value: Any) -> Optional[float]:
    """
    Parses a numeric value, accepting a decimal comma ("3,14" -> 3.14).
    Returns None when the value is blank or not a finite number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if is_blank(value):
        return None

    text = str(value).strip().replace(",", ".")
    try:
        number = pd.to_numeric(text, errors="raise")
    except (ValueError, TypeError):
        return None

    number = number.item() if hasattr(number, "item") else number
    if not math.isfinite(number):
        return None
    return number

# Handlers
#----------------------------------------------------------------
class FieldHandler:
    # Scalar filters use equality unless the type is free text
    exact_match = True

    def filter_value(self, value: Any) -> Any:
        return value

    def scalar_predicate(self, column, value: Any):
        return column == self.filter_value(value)

    def validate(self, field: FieldSchema, text: str) -> Optional[str]:
        """Returns an error message for a non-blank submitted value, or None."""
        return None

    def to_storage(self, value: Any) -> Any:
        return value

    def display(self, field: FieldSchema, value: Any, source_labels: Dict[str, str]) -> str:
        if value is None:
            return ""
        return str(value)

class TextHandler(FieldHandler):
    exact_match = False

    def scalar_predicate(self, column, value: Any):
        # Case-insensitive substring; % and _ in the value match literally
        return column.icontains(str(value), autoescape=True)

class NumericHandler(FieldHandler):
    def filter_value(self, value: Any) -> Any:
        number = parse_number(value)
        return value if number is None else number

    def validate(self, field: FieldSchema, text: str) -> Optional[str]:
        if parse_number(text) is None:
            return f"Field '{field.label}' must be a valid number."
        return None

    def to_storage(self, value: Any) -> Any:
        if is_blank(value):
            return None
        number = parse_number(value)
        return value if number is None else number

class HiddenNumericHandler(NumericHandler):
    pass

class DateHandler(FieldHandler):
    def to_storage(self, value: Any) -> Any:
        if is_blank(value):
            return None
        return str(value).strip()

class DateTimeHandler(DateHandler):
    pass

class CheckboxHandler(FieldHandler):
    def filter_value(self, value: Any) -> Any:
        flag = parse_bool(value)
        return value if flag is None else int(flag)

    def to_storage(self, value: Any) -> Any:
        return 1 if parse_bool(value) else 0

    def display(self, field: FieldSchema, value: Any, source_labels: Dict[str, str]) -> str:
        if is_blank(value):
            return ""
        return "Yes" if parse_bool(value) else "No"

class SelectHandler(FieldHandler):
    def display(self, field: FieldSchema, value: Any, source_labels: Dict[str, str]) -> str:
        if value is None:
            return ""
        key = str(value)
        if field.options and key in field.options:
            return field.options[key]
        return source_labels.get(key, key)

class HiddenHandler(FieldHandler):
    pass

HANDLERS: Dict[FieldKind, FieldHandler] = {
    FieldKind.TEXT: TextHandler(),
    FieldKind.TEXTAREA: TextHandler(),
    FieldKind.NUMERIC: NumericHandler(),
    FieldKind.HIDDEN_NUMERIC: HiddenNumericHandler(),
    FieldKind.DATE: DateHandler(),
    FieldKind.DATETIME: DateTimeHandler(),
    FieldKind.CHECKBOX: CheckboxHandler(),
    FieldKind.SELECT: SelectHandler(),
    FieldKind.HIDDEN: HiddenHandler(),
}

_missing = set(FieldKind) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No field handler registered for: {sorted(k.value for k in _missing)}")

def handler_for(field: FieldSchema) -> FieldHandler:
    return HANDLERS[field.type]
