import json
import logging
from enum import Enum
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from datagrid.core.config import settings
from datagrid.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

class FieldKind(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMERIC = "numeric"
    DATE = "date"
    DATETIME = "datetime"
    CHECKBOX = "checkbox"
    SELECT = "select"
    HIDDEN = "hidden"
    HIDDEN_NUMERIC = "hidden-numeric"

class _CamelModel(BaseModel):
    # Grid definitions are written in camelCase (tableName, multipleFilter, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

class FieldSchema(_CamelModel):
    name: str
    caption: Optional[str] = None
    type: FieldKind = FieldKind.TEXT
    grid: bool = False
    filter: bool = False
    editable: bool = True
    mandatory: bool = False
    multiple_filter: bool = False
    source: Optional[str] = None                 # Option source key
    options: Optional[Dict[str, str]] = None     # Inline id -> label choices
    exportable: bool = True

    @property
    def label(self) -> str:
        return self.caption or self.name

class DatasetSchema(_CamelModel):
    table_name: str
    edit_table_name: Optional[str] = None
    primary_key: str = "id"
    fields: List[FieldSchema]

    @model_validator(mode="after")
    def _unique_field_names(self):
        seen = set()
        for f in self.fields:
            if f.name in seen:
                raise ValueError(f"Duplicate field name '{f.name}'")
            seen.add(f.name)
        return self

    @property
    def write_table(self) -> str:
        return self.edit_table_name or self.table_name

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def field_by_name(self, name: str) -> Optional[FieldSchema]:
        return next((f for f in self.fields if f.name == name), None)

    def column_names(self) -> List[str]:
        """Schema fields plus the primary key, in declaration order."""
        names = self.field_names()
        if self.primary_key not in names:
            names.insert(0, self.primary_key)
        return names

    def config_payload(self, module_key: str) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True, mode="json")
        payload["module"] = module_key
        return payload

class OptionSource(_CamelModel):
    table_name: str
    id_column: str
    value_column: str
    # Column -> value equalities ANDed onto the lookup query
    extra_filter: Dict[str, Any] = Field(default_factory=dict)

class GridDefinition(BaseModel):
    modules: Dict[str, DatasetSchema]
    lookups: Dict[str, OptionSource] = Field(default_factory=dict)

# Built-in demo registry: invoices (master), invoice items (detail), customers
DEMO_GRID_DEFINITION = GridDefinition(
    modules={
        "invoices": DatasetSchema(
            table_name="demo_invoices",
            primary_key="id",
            fields=[
                FieldSchema(name="id", type=FieldKind.HIDDEN, grid=True),
                FieldSchema(name="invoice_no", caption="Invoice #", type=FieldKind.TEXT, grid=True, filter=True, mandatory=True),
                FieldSchema(name="customer_name", caption="Customer", type=FieldKind.TEXT, grid=True, filter=True),
                FieldSchema(name="customer_id", caption="Account", type=FieldKind.SELECT, grid=True, filter=True, multiple_filter=True, source="customers"),
                FieldSchema(name="invoice_date", caption="Date", type=FieldKind.DATE, grid=True, filter=True),
                FieldSchema(
                    name="status",
                    caption="Status",
                    type=FieldKind.SELECT,
                    grid=True,
                    filter=True,
                    multiple_filter=True,
                    options={"draft": "Draft", "sent": "Sent", "void": "Void"},
                ),
                FieldSchema(name="is_paid", caption="Paid?", type=FieldKind.CHECKBOX, grid=True, filter=True),
                FieldSchema(name="notes", caption="Notes", type=FieldKind.TEXTAREA, exportable=False),
            ],
        ),
        "invoice_items": DatasetSchema(
            table_name="demo_invoice_items",
            primary_key="id",
            fields=[
                FieldSchema(name="id", type=FieldKind.HIDDEN, grid=True),
                FieldSchema(name="invoice_id", type=FieldKind.HIDDEN_NUMERIC, filter=True),
                FieldSchema(name="product_name", caption="Product", type=FieldKind.TEXT, grid=True, mandatory=True),
                FieldSchema(name="qty", caption="Qty", type=FieldKind.NUMERIC, grid=True),
                FieldSchema(name="price", caption="Price", type=FieldKind.NUMERIC, grid=True),
            ],
        ),
        "customers": DatasetSchema(
            table_name="demo_customers",
            primary_key="id",
            fields=[
                FieldSchema(name="id", type=FieldKind.HIDDEN, grid=True),
                FieldSchema(name="name", caption="Name", type=FieldKind.TEXT, grid=True, filter=True, mandatory=True),
                FieldSchema(name="country", caption="Country", type=FieldKind.TEXT, grid=True, filter=True),
            ],
        ),
    },
    lookups={
        "customers": OptionSource(table_name="demo_customers", id_column="id", value_column="name"),
        "ro_customers": OptionSource(
            table_name="demo_customers",
            id_column="id",
            value_column="name",
            extra_filter={"country": "RO"},
        ),
    },
)

def load_grid_definition(path: str) -> GridDefinition:
    """
    Reads a JSON grid definition: {"modules": {...}, "lookups": {...}}.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return GridDefinition.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ConfigurationError(f"Could not load grid definition '{path}': {e}") from e

def _initial_definition() -> GridDefinition:
    if settings.GRID_DEF_PATH:
        logger.info("Loading grid definition from %s", settings.GRID_DEF_PATH)
        return load_grid_definition(settings.GRID_DEF_PATH)
    return DEMO_GRID_DEFINITION

# Loaded once per process; read-only afterwards
GRID_DEFINITION = _initial_definition()

def get_dataset_schema(module_key: str) -> DatasetSchema:
    schema = GRID_DEFINITION.modules.get(module_key)
    if schema is None:
        raise ConfigurationError(f"Module not found: '{module_key}'")
    return schema

def get_option_source(source_key: str) -> Optional[OptionSource]:
    return GRID_DEFINITION.lookups.get(source_key)
