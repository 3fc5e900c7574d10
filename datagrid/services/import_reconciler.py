"""
Two-stage CSV import.

check:   stage the upload, map its header to schema fields and classify every
         data row as insert or update. Nothing is written to the dataset.
execute: claim the staged file, re-derive the header map and write each row.
         Rows succeed or fail individually; the staged file is always removed.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from datagrid.models.actions import ImportStats
from datagrid.models.errors import ImportFileError, RecordValidationError, StorageError
from datagrid.models.schema_def import DatasetSchema
from datagrid.services import csv_loader, record_writer, validator
from datagrid.services.csv_loader import StagedImportState
from datagrid.services.header_mapper import build_header_map, column_of
from datagrid.services.record_writer import has_identifier

logger = logging.getLogger(__name__)

NO_COLUMNS_MESSAGE = "No matching columns found. Check CSV headers."
EXPIRED_MESSAGE = "File expired. Please upload again."

def _cell(row: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()

def _require_header_map(headers: List[str], schema: DatasetSchema) -> Dict[int, str]:
    header_map = build_header_map(headers, schema)
    if not header_map:
        raise ImportFileError(NO_COLUMNS_MESSAGE)
    return header_map

def classify_rows(rows, header_map: Dict[int, str], primary_key: str) -> ImportStats:
    pk_index = column_of(header_map, primary_key)
    stats = ImportStats()
    for row in rows:
        if has_identifier(_cell(row, pk_index)):
            stats.updates += 1
        else:
            stats.adds += 1
    return stats

def row_to_record(row: List[str], header_map: Dict[int, str], primary_key: str) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Splits a CSV row into (field values without the primary key, record id or None).
    """
    data: Dict[str, Any] = {}
    record_id = None
    for index, field_name in header_map.items():
        value = _cell(row, index)
        if field_name == primary_key:
            if has_identifier(value):
                record_id = value
        else:
            data[field_name] = value
    return data, record_id

def check_import(schema: DatasetSchema, upload_file) -> Tuple[ImportStats, str]:
    """
    Stage 1. Returns the insert/update counts and the handle of the staged file.
    """
    handle = csv_loader.save_uploaded_file(upload_file)
    path = csv_loader.staged_path(handle)

    try:
        with csv_loader.open_csv(path) as (headers, rows):
            header_map = _require_header_map(headers, schema)
            stats = classify_rows(rows, header_map, schema.primary_key)
    except ImportFileError:
        csv_loader.discard(path)
        raise

    logger.info("Checked import %s: %d adds, %d updates", handle, stats.adds, stats.updates)
    return stats, handle

def _write_row(schema: DatasetSchema, table_name: str, data: Dict[str, Any], record_id: Optional[str]) -> bool:
    validator.validate_record(schema, data, is_insert=record_id is None)
    values = record_writer.prepare_values(schema, data)

    if record_id is None:
        record_writer.insert_values(schema, table_name, values)
        return True

    matched = record_writer.update_values(schema, table_name, record_id, values)
    if not matched:
        logger.warning("Import update skipped: no record with %s=%s", schema.primary_key, record_id)
    return matched > 0

def execute_import(schema: DatasetSchema, handle: str) -> int:
    """
    Stage 2. Returns the number of rows written.

    Rows are committed one by one: a failing row is logged and skipped, the
    rest of the file still goes in. There is no all-or-nothing rollback.
    """
    state, claimed_path = csv_loader.claim_staged_file(handle)
    if state is not StagedImportState.CONSUMED:
        raise ImportFileError(EXPIRED_MESSAGE)

    table_name = schema.write_table
    success_count = 0
    try:
        with csv_loader.open_csv(claimed_path) as (headers, rows):
            header_map = _require_header_map(headers, schema)
            for row_no, row in enumerate(rows, start=1):
                data, record_id = row_to_record(row, header_map, schema.primary_key)
                if not data:
                    continue
                try:
                    if _write_row(schema, table_name, data, record_id):
                        success_count += 1
                except (RecordValidationError, StorageError) as e:
                    logger.warning("Import %s data row %d not written: %s", handle, row_no, e)
    finally:
        csv_loader.discard(claimed_path)

    logger.info("Executed import %s: %d rows written", handle, success_count)
    return success_count
