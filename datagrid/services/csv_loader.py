import csv
import logging
import os
import re
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from datagrid.core.config import settings
from datagrid.models.errors import ImportFileError

logger = logging.getLogger(__name__)

HANDLE_PATTERN = re.compile(r"^import_[0-9a-f]{32}\.csv$")
# Staged files plus their .part and .claimed variants
STAGED_FILE_PATTERN = re.compile(r"^import_[0-9a-f]{32}\.csv(\..+)?$")
BOM = "\ufeff"
CANDIDATE_DELIMITERS = ",;\t|"

class StagedImportState(str, Enum):
    CONSUMED = "consumed"   # Claimed by exactly one execute call
    EXPIRED = "expired"     # Unknown handle, already consumed, or older than the TTL

def new_handle() -> str:
    return f"import_{uuid.uuid4().hex}.csv"

def staged_path(handle: str) -> str:
    # Handles are opaque file names; anything else could escape IMPORT_DIR
    if not handle or not HANDLE_PATTERN.match(handle):
        raise ImportFileError("File expired. Please upload again.")
    return os.path.join(settings.IMPORT_DIR, handle)

def save_uploaded_file(upload_file) -> str:
    """
    Streams the uploaded file into the staging directory unchanged.
    Returns the opaque handle used to reference it in the execute stage.
    """
    sweep_stale_files()

    handle = new_handle()
    dest_path = os.path.join(settings.IMPORT_DIR, handle)
    partial_path = dest_path + ".part"
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    size = 0
    try:
        with open(partial_path, "wb") as out_file:
            for chunk in iter(lambda: upload_file.file.read(1024 * 1024), b""):
                size += len(chunk)
                if size > max_bytes:
                    raise ImportFileError(f"File too large. Max size is {settings.MAX_UPLOAD_SIZE_MB} MB.")
                out_file.write(chunk)
    except ImportFileError:
        os.remove(partial_path)
        raise
    except OSError as e:
        if os.path.exists(partial_path):
            os.remove(partial_path)
        raise ImportFileError(f"Could not save uploaded file: {e}") from e

    # The handle only becomes visible once the file is complete
    os.replace(partial_path, dest_path)
    logger.info("Staged import %s (%d bytes)", handle, size)
    return handle

def _is_stale(path: str) -> bool:
    age_seconds = time.time() - os.path.getmtime(path)
    return age_seconds > settings.IMPORT_TTL_MINUTES * 60

def sweep_stale_files() -> int:
    """
    Removes staged, partial and claimed import files older than the TTL.
    Returns the number of files removed.
    """
    try:
        names = os.listdir(settings.IMPORT_DIR)
    except FileNotFoundError:
        return 0

    removed = 0
    for name in names:
        if not STAGED_FILE_PATTERN.match(name):
            continue
        path = os.path.join(settings.IMPORT_DIR, name)
        try:
            if not _is_stale(path):
                continue
            os.remove(path)
        except FileNotFoundError:
            # Claimed or removed by a concurrent request
            continue
        removed += 1

    if removed:
        logger.info("Swept %d expired import files", removed)
    return removed

def claim_staged_file(handle: str) -> Tuple[StagedImportState, Optional[str]]:
    """
    Atomically takes ownership of a staged file by renaming it to a private name.
    Only one caller can win the rename; everyone else sees EXPIRED.
    """
    try:
        path = staged_path(handle)
    except ImportFileError:
        return StagedImportState.EXPIRED, None

    claimed_path = f"{path}.{uuid.uuid4().hex}.claimed"
    try:
        os.rename(path, claimed_path)
    except FileNotFoundError:
        return StagedImportState.EXPIRED, None

    if _is_stale(claimed_path):
        logger.info("Staged import %s expired before execute", handle)
        discard(claimed_path)
        return StagedImportState.EXPIRED, None

    return StagedImportState.CONSUMED, claimed_path

def discard(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass

def detect_delimiter(sample: str) -> str:
    """
    Guesses the delimiter from the header line; falls back to a comma.
    """
    first_line = sample.splitlines()[0] if sample else ""
    try:
        return csv.Sniffer().sniff(first_line, delimiters=CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ","

@contextmanager
def open_csv(path: str, encoding: str = "utf-8") -> Iterator[Tuple[List[str], Iterator[List[str]]]]:
    """
    Yields (headers, row iterator) for a staged file. The leading byte-order
    mark is stripped from the first header cell and blank lines are skipped.
    Raises ImportFileError when the file cannot be read or has no header.
    """
    try:
        f = open(path, "r", encoding=encoding, errors="replace", newline="")
    except OSError as e:
        raise ImportFileError(f"Could not read file: {e}") from e

    with f:
        sample = f.read(4096)
        f.seek(0)
        reader = csv.reader(f, delimiter=detect_delimiter(sample.lstrip(BOM)))

        try:
            headers = next(reader)
        except StopIteration:
            raise ImportFileError("Empty CSV")
        except csv.Error as e:
            raise ImportFileError(f"Could not parse CSV header: {e}") from e

        if headers:
            headers[0] = headers[0].lstrip(BOM)
        if not any(h.strip() for h in headers):
            raise ImportFileError("Empty CSV")

        rows = (row for row in reader if any(cell.strip() for cell in row))
        try:
            yield headers, rows
        except csv.Error as e:
            raise ImportFileError(f"Could not parse CSV row: {e}") from e
