import pytest
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from datagrid.core.config import settings
from datagrid.db import database
from datagrid.db import models  # noqa: F401  registers the demo tables
from datagrid.models.schema_def import GRID_DEFINITION, DatasetSchema, FieldKind, FieldSchema, get_dataset_schema

# --- Shared Fixtures ---

@pytest.fixture
def staging_dir(tmp_path, monkeypatch):
    """
    Goal: Point the import staging directory at a throwaway folder.
    """
    path = tmp_path / "imports"
    path.mkdir()
    monkeypatch.setattr(settings, "IMPORT_DIR", str(path))
    return path

@pytest.fixture
def test_engine(tmp_path, monkeypatch):
    """
    Goal: Run storage-backed tests against a fresh SQLite file with the demo tables.
    Every service opens sessions through database.SessionLocal, so patching it once is enough.
    """
    engine = database.build_engine(f"sqlite:///{tmp_path / 'grid.db'}")
    database.Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(
        database, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )
    yield engine
    engine.dispose()

@pytest.fixture
def invoices_schema():
    return get_dataset_schema("invoices")

@pytest.fixture
def items_schema():
    return get_dataset_schema("invoice_items")

@pytest.fixture
def customers_schema():
    return get_dataset_schema("customers")

@pytest.fixture
def ro_customers_schema(test_engine, monkeypatch):
    """
    Goal: A module that reads from a view and writes to the underlying table,
    registered as "ro_customers".
    """
    with test_engine.begin() as conn:
        conn.execute(text(
            'CREATE VIEW v_ro_customers AS SELECT id, name, country, "del" '
            "FROM demo_customers WHERE country = 'RO'"
        ))
    schema = DatasetSchema(
        table_name="v_ro_customers",
        edit_table_name="demo_customers",
        fields=[
            FieldSchema(name="id", type=FieldKind.HIDDEN),
            FieldSchema(name="name", caption="Name", mandatory=True),
            FieldSchema(name="country", caption="Country"),
        ],
    )
    monkeypatch.setitem(GRID_DEFINITION.modules, "ro_customers", schema)
    return schema
