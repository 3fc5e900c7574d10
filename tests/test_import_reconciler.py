import os
import pytest
from unittest.mock import patch

from datagrid.db import models
from datagrid.models.errors import ImportFileError, StorageError
from datagrid.services.import_reconciler import (
    check_import,
    classify_rows,
    execute_import,
    row_to_record,
)
from helpers import fetch_all, insert_rows, make_upload

# --- Fixtures ---

@pytest.fixture
def existing_customer(test_engine):
    insert_rows(test_engine, models.Customer, [{"id": 5, "name": "Robert", "country": "RO", "del": 0}])
    return test_engine

# --- Row Helpers ---

def test_classify_rows():
    """
    Goal: Blank and "0" identifiers are inserts; anything else is an update.
    """
    rows = [["", "a"], ["0", "b"], [" 7 ", "c"], ["x"], ["8"]]

    stats = classify_rows(iter(rows), {0: "id", 1: "name"}, "id")

    assert stats.adds == 2
    assert stats.updates == 3

def test_classify_rows_without_pk_column():
    stats = classify_rows(iter([["a"], ["b"]]), {0: "name"}, "id")

    assert (stats.adds, stats.updates) == (2, 0)

def test_row_to_record_excludes_primary_key():
    data, record_id = row_to_record([" 5 ", " Bob ", "ignored"], {0: "id", 1: "name"}, "id")

    assert data == {"name": "Bob"}
    assert record_id == "5"

def test_row_to_record_short_row():
    data, record_id = row_to_record(["0"], {0: "id", 1: "name"}, "id")

    assert data == {"name": ""}
    assert record_id is None

# --- Stage 1: check ---

def test_check_counts_without_writing(existing_customer, staging_dir, customers_schema):
    """
    Goal: Stage 1 classifies rows and stages the file, but never touches the dataset.
    """
    # 1. Action
    stats, handle = check_import(customers_schema, make_upload(b"id,name\n,Alice\n5,Bob\n"))

    # 2. Check: Counts and staged file
    assert (stats.adds, stats.updates) == (1, 1)
    assert os.path.exists(staging_dir / handle)

    # 3. Check: Dataset untouched
    assert [r["name"] for r in fetch_all(existing_customer, models.Customer)] == ["Robert"]

def test_check_rejects_file_without_usable_columns(staging_dir, customers_schema):
    with pytest.raises(ImportFileError) as excinfo:
        check_import(customers_schema, make_upload(b"foo,bar\n1,2\n"))

    assert "No matching columns" in str(excinfo.value)
    assert os.listdir(staging_dir) == []

def test_check_rejects_empty_file(staging_dir, customers_schema):
    with pytest.raises(ImportFileError):
        check_import(customers_schema, make_upload(b""))

    assert os.listdir(staging_dir) == []

def test_check_tolerates_bom_and_header_case(staging_dir, customers_schema):
    stats, _ = check_import(customers_schema, make_upload("\ufeffID,NAME\n3,Ann\n".encode("utf-8")))

    assert (stats.adds, stats.updates) == (0, 1)

# --- Stage 2: execute ---

def test_round_trip(existing_customer, staging_dir, customers_schema):
    """
    Goal: check -> execute inserts one row, updates record 5, and the handle cannot be replayed.
    """
    # 1. Stage 1
    stats, handle = check_import(customers_schema, make_upload(b"id,name\n,Alice\n5,Bob\n"))
    assert (stats.adds, stats.updates) == (1, 1)

    # 2. Stage 2
    count = execute_import(customers_schema, handle)

    # 3. Check: Both rows written
    assert count == 2
    rows = fetch_all(existing_customer, models.Customer)
    assert {r["id"]: r["name"] for r in rows}[5] == "Bob"
    assert "Alice" in [r["name"] for r in rows]
    assert os.listdir(staging_dir) == []

    # 4. Check: Replay fails cleanly
    with pytest.raises(ImportFileError) as excinfo:
        execute_import(customers_schema, handle)
    assert "expired" in str(excinfo.value).lower()

def test_execute_unknown_handle(staging_dir, customers_schema):
    with pytest.raises(ImportFileError):
        execute_import(customers_schema, "import_" + "0" * 32 + ".csv")

def test_execute_partial_success(existing_customer, staging_dir, customers_schema):
    """
    Goal: Bad rows are skipped and not counted; good rows still go in.
    """
    content = (
        b"id,name,country\n"
        b",Ann,RO\n"         # insert
        b",,DE\n"            # mandatory name blank -> rejected
        b"42,Ghost,FR\n"     # update of a record that does not exist -> not counted
        b"5,Bob,\n"          # update
    )
    _, handle = check_import(customers_schema, make_upload(content))

    count = execute_import(customers_schema, handle)

    assert count == 2
    names = sorted(r["name"] for r in fetch_all(existing_customer, models.Customer))
    assert names == ["Ann", "Bob"]

def test_execute_skips_rows_with_only_identifier(existing_customer, staging_dir, customers_schema):
    _, handle = check_import(customers_schema, make_upload(b"id\n5\n6\n"))

    assert execute_import(customers_schema, handle) == 0

def test_execute_removes_file_when_storage_fails(staging_dir, customers_schema):
    _, handle = check_import(customers_schema, make_upload(b"id,name\n,Ann\n"))

    with patch("datagrid.services.import_reconciler.record_writer.insert_values", side_effect=StorageError("down")):
        count = execute_import(customers_schema, handle)

    assert count == 0
    assert os.listdir(staging_dir) == []
