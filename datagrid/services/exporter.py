from typing import Any, Dict, List
import pandas as pd

from datagrid.models.schema_def import DatasetSchema
from datagrid.services import option_resolver
from datagrid.services.field_types import handler_for

BOM = "\ufeff"

def build_csv(schema: DatasetSchema, rows: List[Dict[str, Any]]) -> str:
    """
    Renders rows as CSV: caption header, display values, exportable fields only.
    Prefixed with a byte-order mark so spreadsheet tools pick up UTF-8.
    """
    fields = [f for f in schema.fields if f.exportable]

    # One lookup per option source, not per row
    source_labels: Dict[str, Dict[str, str]] = {}
    for f in fields:
        if f.source and f.source not in source_labels:
            source_labels[f.source] = option_resolver.label_map(f.source)

    records = [
        [handler_for(f).display(f, row.get(f.name), source_labels.get(f.source, {})) for f in fields]
        for row in rows
    ]
    df = pd.DataFrame(records, columns=[f.label for f in fields])
    return BOM + df.to_csv(index=False, lineterminator="\n")
