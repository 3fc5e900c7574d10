import os
import tempfile
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "Data Grid"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    DB_PATH: str = "data/datagrid.db"
    DATABASE_URL: Optional[str] = None
    DB_TIMEOUT_SECONDS: float = 10.0

    # Staged import files live here between check and execute
    IMPORT_DIR: str = os.path.join(tempfile.gettempdir(), "datagrid_imports")
    IMPORT_TTL_MINUTES: int = 60
    MAX_UPLOAD_SIZE_MB: int = 100

    CSRF_ENABLED: bool = True
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    SESSION_COOKIE_NAME: str = "datagrid_session"
    CSRF_TOKEN_TTL_MINUTES: int = 720

    # Optional JSON grid definition; the built-in demo registry is used when unset
    GRID_DEF_PATH: Optional[str] = None

settings = Settings()

# Ensure directories exist
os.makedirs(settings.IMPORT_DIR, exist_ok=True)
if os.path.dirname(settings.DB_PATH):
    os.makedirs(os.path.dirname(settings.DB_PATH), exist_ok=True)
