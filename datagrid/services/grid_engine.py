"""
Action facade over the grid services.

One GridEngine is built per request for a module key. Building it resolves
the dataset schema, so an unknown module fails with ConfigurationError before
any storage call. Every action returns a result model; service exceptions are
turned into {success: false, message} here and never cross this boundary.
"""
import logging
from typing import Any, Dict, Optional

from datagrid.db.tables import dataset_table, resolve_read_table, resolve_write_table
from datagrid.models.actions import (
    CheckImportResult,
    ExecuteImportResult,
    Outcome,
    QueryResult,
)
from datagrid.models.errors import GridError, ImportFileError
from datagrid.models.schema_def import get_dataset_schema
from datagrid.services import exporter, import_reconciler, predicate_builder, query_executor, record_writer

logger = logging.getLogger(__name__)

class GridEngine:
    def __init__(self, module_key: str):
        self.module_key = module_key
        self.schema = get_dataset_schema(module_key)

    def get_config(self) -> Dict[str, Any]:
        return {"success": True, "config": self.schema.config_payload(self.module_key)}

    def list(
        self,
        table: Optional[str] = None,
        sort: Optional[str] = None,
        direction: str = "ASC",
        filters: Optional[Dict[str, Any]] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        export: bool = False,
    ) -> QueryResult:
        table_name = resolve_read_table(self.schema, table)
        predicate = predicate_builder.build(self.schema, dataset_table(self.schema, table_name), filters or {})
        return query_executor.list_records(
            self.schema,
            table_name,
            predicate,
            sort=sort,
            direction=direction,
            page=page,
            limit=limit,
            export=export,
        )

    def save(self, record_id: Any, data: Dict[str, Any], table: Optional[str] = None) -> Outcome:
        try:
            record_writer.save_record(self.schema, record_id, data, resolve_write_table(self.schema, table))
        except GridError as e:
            return Outcome(success=False, message=str(e))
        return Outcome(success=True)

    def delete(self, record_id: Any) -> Outcome:
        try:
            record_writer.soft_delete_record(self.schema, record_id)
        except GridError as e:
            return Outcome(success=False, message=str(e))
        return Outcome(success=True)

    def check_import(self, upload_file) -> CheckImportResult:
        try:
            stats, handle = import_reconciler.check_import(self.schema, upload_file)
        except ImportFileError as e:
            return CheckImportResult(success=False, message=str(e))
        return CheckImportResult(success=True, stats=stats, temp_file=handle)

    def execute_import(self, handle: str) -> ExecuteImportResult:
        try:
            count = import_reconciler.execute_import(self.schema, handle)
        except GridError as e:
            return ExecuteImportResult(success=False, message=str(e))
        return ExecuteImportResult(success=True, count=count)

    def export_csv(
        self,
        sort: Optional[str] = None,
        direction: str = "ASC",
        filters: Optional[Dict[str, Any]] = None,
    ) -> str:
        result = self.list(sort=sort, direction=direction, filters=filters, export=True)
        if result.error:
            logger.error("Export of '%s' ran on an empty result: %s", self.module_key, result.error)
        return exporter.build_csv(self.schema, result.rows)
