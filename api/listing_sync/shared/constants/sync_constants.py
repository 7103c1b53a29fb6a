"""
Constantes y enumeraciones del dominio de sincronización.
"""
from enum import Enum


class FieldCategory(str, Enum):
    """Categoría de un campo sincronizado (exactamente una por campo)."""
    MANUAL = "manual"
    CALCULATED_LOCAL = "calculated_local"
    CALCULATED_REMOTE = "calculated_remote"
    MEDIA = "media"
    READ_ONLY = "read_only"


class FieldDirection(str, Enum):
    """Dirección en la que un campo puede viajar."""
    BIDIRECTIONAL = "bidirectional"
    LOCAL_TO_REMOTE_ONLY = "local_to_remote_only"
    REMOTE_TO_LOCAL_ONLY = "remote_to_local_only"


class DataType(str, Enum):
    """Tipo de dato de un campo."""
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    URL = "url"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    ATTACHMENT = "attachment"


class SyncDirection(str, Enum):
    """Dirección de una corrida de sincronización."""
    BIDIRECTIONAL = "bidirectional"
    REMOTE_TO_LOCAL = "airtable_to_local"
    LOCAL_TO_REMOTE = "local_to_airtable"


class OrchestratorState(str, Enum):
    """Estados del orquestador."""
    DISABLED = "disabled"
    IDLE = "idle"
    RUNNING = "running"


class RunStatus(str, Enum):
    """Resultado de una corrida en el historial."""
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"
    CANCELLED = "cancelled"


class RunTrigger(str, Enum):
    """Origen de una corrida."""
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    SINGLE_RECORD = "single_record"


class SyncInterval(str, Enum):
    """Frecuencia de la sincronización automática."""
    HOURLY = "hourly"
    TWICE_DAILY = "twicedaily"
    DAILY = "daily"

    @property
    def hours(self) -> int:
        """Horas entre corridas programadas."""
        return {
            SyncInterval.HOURLY: 1,
            SyncInterval.TWICE_DAILY: 12,
            SyncInterval.DAILY: 24,
        }[self]


# Identificadores de jobs del scheduler
SYNC_JOB_ID = "airtable_sync"
CLEANUP_JOB_ID = "airtable_sync_cleanup"

# Clave de system_settings donde se persiste la configuración de sync
SYNC_SETTINGS_KEY = "airtable_sync_settings"

# Contexto de logging para el sink dedicado de sincronización
SYNC_LOG_CONTEXT = "sync"

# Título por defecto para listings creados desde Airtable sin nombre
DEFAULT_LISTING_TITLE = "Listing from Airtable"

# Media
ALLOWED_MEDIA_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
)
DEFAULT_MAX_MEDIA_BYTES = 10 * 1024 * 1024
MEDIA_SYNC_SOURCE = "airtable"


class ListingCalculation(str, Enum):
    """Ids de los campos derivados que recalcula el calculador de listings."""
    PRICE_PER_SQFT = "price_per_sqft"
    DAYS_ON_MARKET = "days_on_market"
    BATHROOMS_TOTAL = "bathrooms_total"
    LOT_SQFT = "lot_sqft"
    STATUS_CHANGE_DATE = "status_change_date"
    PRICE_CHANGE_COUNT = "price_change_count"
    COUNTY = "county"
    PHOTO_COUNT = "photo_count"
