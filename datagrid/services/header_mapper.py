from typing import Dict, List, Optional

from datagrid.models.schema_def import DatasetSchema

def normalize_name(name: str) -> str:
    """
    Standardizes a header for comparison.
    Example: "  Invoice_No " -> "invoice_no"
    """
    return name.strip().casefold()

def build_header_map(headers: List[str], schema: DatasetSchema) -> Dict[int, str]:
    """
    Maps CSV column index -> schema field name by case-insensitive name match.
    Columns keep their file order; columns with no matching field are ignored.
    """
    lookup: Dict[str, str] = {}
    for name in schema.column_names():
        # First declared field wins when two names normalize the same
        lookup.setdefault(normalize_name(name), name)

    header_map: Dict[int, str] = {}
    for index, header in enumerate(headers):
        field_name = lookup.get(normalize_name(header))
        if field_name is not None:
            header_map[index] = field_name
    return header_map

def column_of(header_map: Dict[int, str], field_name: str) -> Optional[int]:
    return next((i for i, name in header_map.items() if name == field_name), None)
