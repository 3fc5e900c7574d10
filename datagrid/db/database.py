from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from datagrid.core.config import settings

# SQLite file by default; DATABASE_URL points the grid at any other store
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL or f"sqlite:///{settings.DB_PATH}"

def build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # `timeout` bounds how long a write waits on a locked database
        connect_args = {"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)

engine = build_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def init_db():
    # Registers the demo tables on Base.metadata
    from datagrid.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
