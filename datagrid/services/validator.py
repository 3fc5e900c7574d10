from typing import Any, Dict, List

from datagrid.models.errors import RecordValidationError
from datagrid.models.schema_def import DatasetSchema
from datagrid.services.field_types import handler_for

# VALIDATION LOGIC
#----------------------------------------------------------------
def validate_record(schema: DatasetSchema, data: Dict[str, Any], is_insert: bool) -> None:
    """
    Checks submitted values against the schema before anything is written.
    Raises RecordValidationError for the first violation found.
    """
    for field in schema.fields:
        if field.name in data:
            text = "" if data[field.name] is None else str(data[field.name]).strip()

            # 1. Mandatory field submitted blank
            if field.mandatory and text == "":
                raise RecordValidationError(f"Field '{field.label}' is mandatory.", field=field.name)

            # 2. Type-specific checks, only on non-blank values
            if text:
                message = handler_for(field).validate(field, text)
                if message:
                    raise RecordValidationError(message, field=field.name)

        # 3. Missing entirely: only an error when creating a record
        elif field.mandatory and is_insert:
            raise RecordValidationError(f"Field '{field.label}' is mandatory.", field=field.name)

def unknown_fields(schema: DatasetSchema, data: Dict[str, Any]) -> List[str]:
    known = set(schema.column_names())
    return [k for k in data if k not in known]
