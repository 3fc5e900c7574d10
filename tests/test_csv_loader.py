import csv
import os
import time
import pytest
from unittest.mock import MagicMock, patch

from datagrid.models.errors import ImportFileError
from datagrid.services.csv_loader import (
    StagedImportState,
    claim_staged_file,
    detect_delimiter,
    open_csv,
    save_uploaded_file,
    staged_path,
    sweep_stale_files,
)
from helpers import make_upload

# --- Tests for save_uploaded_file ---

def test_save_uploaded_file_success(staging_dir):
    """
    Goal: The upload is stored unchanged under an opaque, non-sequential handle.
    """
    # 1. Action
    handle = save_uploaded_file(make_upload(b"id,name\n,Alice\n"))

    # 2. Check: Handle format and file content
    assert handle.startswith("import_") and handle.endswith(".csv")
    assert (staging_dir / handle).read_bytes() == b"id,name\n,Alice\n"

    # 3. Check: No partial file is left behind
    assert sorted(os.listdir(staging_dir)) == [handle]

def test_handles_are_unique(staging_dir):
    first = save_uploaded_file(make_upload(b"a\n"))
    second = save_uploaded_file(make_upload(b"a\n"))

    assert first != second

def test_save_uploaded_file_too_large(staging_dir, monkeypatch):
    """
    Goal: Ensure the upload limit works and the partial file is cleaned up.
    """
    # 1. Setup: 1 MB limit and a chunk just over it
    monkeypatch.setattr("datagrid.services.csv_loader.settings.MAX_UPLOAD_SIZE_MB", 1)
    file_mock = MagicMock()
    file_mock.file.read.side_effect = [b"x" * (1024 * 1024 + 1), b""]

    # 2. Action
    with pytest.raises(ImportFileError) as excinfo:
        save_uploaded_file(file_mock)

    # 3. Check
    assert "File too large" in str(excinfo.value)
    assert os.listdir(staging_dir) == []

# --- Tests for handles ---

@pytest.mark.parametrize("handle", ["", "../etc/passwd", "import_123.csv", "import_" + "g" * 32 + ".csv"])
def test_staged_path_rejects_foreign_handles(staging_dir, handle):
    with pytest.raises(ImportFileError):
        staged_path(handle)

def test_claim_is_single_consumer(staging_dir):
    """
    Goal: Only the first claim wins; a replay sees EXPIRED.
    """
    handle = save_uploaded_file(make_upload(b"id\n1\n"))

    # 1. Action: Claim twice
    state_1, path_1 = claim_staged_file(handle)
    state_2, path_2 = claim_staged_file(handle)

    # 2. Check
    assert state_1 is StagedImportState.CONSUMED
    assert os.path.exists(path_1)
    assert state_2 is StagedImportState.EXPIRED
    assert path_2 is None

def test_claim_expires_stale_files(staging_dir, monkeypatch):
    monkeypatch.setattr("datagrid.services.csv_loader.settings.IMPORT_TTL_MINUTES", 1)
    handle = save_uploaded_file(make_upload(b"id\n1\n"))
    old = time.time() - 120
    os.utime(staging_dir / handle, (old, old))

    state, path = claim_staged_file(handle)

    assert state is StagedImportState.EXPIRED
    assert path is None
    assert os.listdir(staging_dir) == []

def test_upload_sweeps_stale_staging_files(staging_dir, monkeypatch):
    """
    Goal: Files that were checked but never executed, plus leftover partial and
    claimed files, are removed once they outlive the TTL.
    """
    # 1. Setup: Three abandoned files from two hours ago and one fresh upload
    monkeypatch.setattr("datagrid.services.csv_loader.settings.IMPORT_TTL_MINUTES", 60)
    fresh = save_uploaded_file(make_upload(b"id\n1\n"))
    stale_names = [
        "import_" + "a" * 32 + ".csv",
        "import_" + "b" * 32 + ".csv.part",
        "import_" + "c" * 32 + ".csv." + "d" * 32 + ".claimed",
    ]
    old = time.time() - 7200
    for name in stale_names:
        (staging_dir / name).write_bytes(b"id\n")
        os.utime(staging_dir / name, (old, old))
    (staging_dir / "notes.txt").write_bytes(b"keep")
    os.utime(staging_dir / "notes.txt", (old, old))

    # 2. Action: The next upload sweeps first
    second = save_uploaded_file(make_upload(b"id\n2\n"))

    # 3. Check
    assert sorted(os.listdir(staging_dir)) == sorted([fresh, second, "notes.txt"])

def test_sweep_keeps_fresh_files(staging_dir):
    handle = save_uploaded_file(make_upload(b"id\n1\n"))

    assert sweep_stale_files() == 0
    assert os.listdir(staging_dir) == [handle]

# --- Tests for reading ---

def test_open_csv_strips_bom_and_blank_lines(tmp_path):
    path = tmp_path / "data.csv"
    path.write_bytes("\ufeffID,Name\n5,Bob\n\n,Alice\n".encode("utf-8"))

    with open_csv(str(path)) as (headers, rows):
        data = list(rows)

    assert headers == ["ID", "Name"]
    assert data == [["5", "Bob"], ["", "Alice"]]

def test_open_csv_semicolon_delimiter(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("id;name\n1;Ann\n", encoding="utf-8")

    with open_csv(str(path)) as (headers, rows):
        assert headers == ["id", "name"]
        assert list(rows) == [["1", "Ann"]]

def test_open_csv_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(ImportFileError) as excinfo:
        with open_csv(str(path)):
            pass

    assert "Empty CSV" in str(excinfo.value)

def test_open_csv_missing_file(tmp_path):
    with pytest.raises(ImportFileError):
        with open_csv(str(tmp_path / "gone.csv")):
            pass

def test_detect_delimiter_falls_back_to_comma():
    assert detect_delimiter("name\nBob\n") == ","
    with patch("csv.Sniffer.sniff", side_effect=csv.Error("nope")):
        assert detect_delimiter("a;b\n") == ","
