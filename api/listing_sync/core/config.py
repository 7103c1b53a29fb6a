"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.

Las variables AIRTABLE_* y SYNC_* solo siembran la configuracion de
sincronizacion en el primer arranque; despues se edita desde
/api/v1/admin/sync-settings y queda persistida en system_settings.
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Listing Airtable Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Base de datos (SQLite local por defecto; PostgreSQL via psycopg)
    DATABASE_URL: str = Field(default="sqlite:///./listing_sync.db")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Airtable (semilla de la configuracion de sync)
    AIRTABLE_TOKEN: str = Field(default="")
    AIRTABLE_BASE_ID: str = Field(default="")
    AIRTABLE_TABLE_NAME: str = Field(default="Listings")
    AIRTABLE_TIMEOUT_S: float = Field(default=30.0)

    # Sync (semilla de la configuracion de sync)
    SYNC_ENABLED: bool = Field(default=False)
    SYNC_DIRECTION: str = Field(default="bidirectional")
    SYNC_INTERVAL: str = Field(default="hourly")
    SYNC_MEDIA_ENABLED: bool = Field(default=True)
    SYNC_BATCH_SIZE: int = Field(default=50)
    SYNC_MAX_RETRIES: int = Field(default=3)
    SYNC_HISTORY_LIMIT: int = Field(default=50)
    SYNC_SCHEDULER_ENABLED: bool = Field(default=True)

    # Media
    MEDIA_DIR: str = Field(default="media")
    MEDIA_PUBLIC_BASE_URL: str = Field(default="/media")
    MAX_MEDIA_BYTES: int = Field(default=10 * 1024 * 1024)
    MEDIA_DOWNLOAD_TIMEOUT_S: float = Field(default=60.0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")
    SYNC_LOG_FILE: str = Field(default="logs/sync.log")

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """
        Retorna la URL de base de datos efectiva.
        Las URLs postgres:// o postgresql:// se fuerzan al driver psycopg.
        """
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        if url.startswith("postgresql://"):
            url = "postgresql+psycopg://" + url[len("postgresql://"):]
        return url

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuración
settings = Settings()
