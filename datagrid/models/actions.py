from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

RecordId = Union[int, str]

class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class ListRequest(_Request):
    module: str
    table: Optional[str] = None
    sort: Optional[str] = None
    dir: str = "ASC"
    filters: Dict[str, Any] = Field(default_factory=dict)
    page: Optional[int] = None
    limit: Optional[int] = None
    export: bool = False
    primary_key: Optional[str] = Field(default=None, alias="primaryKey")

class SaveRequest(_Request):
    module: str
    table: Optional[str] = None
    id: Optional[RecordId] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    primary_key: Optional[str] = Field(default=None, alias="primaryKey")

class DeleteRequest(_Request):
    module: str
    id: Optional[RecordId] = None

class ExecuteImportRequest(_Request):
    module: str
    temp_file: str = Field(alias="tempFile")

class ExportRequest(_Request):
    module: str
    sort: Optional[str] = None
    dir: str = "ASC"
    filters: Dict[str, Any] = Field(default_factory=dict)

class Outcome(BaseModel):
    success: bool
    message: Optional[str] = None

class QueryResult(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    total: Optional[int] = None
    paginated: bool = False
    error: Optional[str] = None  # Set when the store failed and rows were degraded to []

class ImportStats(BaseModel):
    adds: int = 0
    updates: int = 0

class CheckImportResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    stats: Optional[ImportStats] = None
    temp_file: Optional[str] = Field(default=None, serialization_alias="tempFile")
    message: Optional[str] = None

class ExecuteImportResult(BaseModel):
    success: bool
    count: Optional[int] = None
    message: Optional[str] = None

class OptionItem(BaseModel):
    id: Any
    label: Optional[str] = None
