import io
from unittest.mock import MagicMock
from sqlalchemy import insert

def insert_rows(engine, model, rows):
    with engine.begin() as conn:
        conn.execute(insert(model.__table__), rows)

def fetch_all(engine, model):
    table = model.__table__
    with engine.connect() as conn:
        return [dict(r) for r in conn.execute(table.select().order_by(table.c.id)).mappings()]

def make_upload(content: bytes):
    """
    Simulates the UploadFile object FastAPI hands to the import routes.
    """
    upload = MagicMock()
    upload.file = io.BytesIO(content)
    return upload
