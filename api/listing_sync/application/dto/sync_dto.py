"""
DTOs de la API de sincronización.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from listing_sync.shared.constants.sync_constants import SyncDirection, SyncInterval


class RunStatisticsDTO(BaseModel):
    """Contadores de una corrida."""

    total_processed: int = Field(0, description="Registros procesados")
    created: int = Field(0, description="Registros creados del lado destino")
    updated: int = Field(0, description="Registros actualizados del lado destino")
    skipped: int = Field(0, description="Registros omitidos (cancelación)")
    errors: int = Field(0, description="Errores de campo, adjunto o registro")
    media_synced: int = Field(0, description="Campos de media reconciliados")
    calculations_triggered: int = Field(0, description="Cálculos disparados (sin duplicados)")


class SyncRunResultDTO(BaseModel):
    """Resultado de una corrida de sincronización."""

    success: bool = Field(..., description="False si la corrida abortó")
    direction: str = Field(..., description="Dirección ejecutada")
    trigger: str = Field(..., description="manual, scheduled o single_record")
    status: str = Field(..., description="success, partial, error o cancelled")
    stats: RunStatisticsDTO
    message: str
    error: Optional[str] = None
    started_at: datetime
    finished_at: datetime
    duration_s: float


class ConnectionTestDTO(BaseModel):
    """Resultado del test de conexión con Airtable."""

    success: bool
    message: str
    status_code: Optional[int] = Field(None, description="Último status HTTP de Airtable")
    attempts: int = Field(0, description="Intentos realizados")


class SyncStatusDTO(BaseModel):
    """Estado actual del orquestador."""

    state: str = Field(..., description="disabled, idle o running")
    enabled: bool
    configured: bool = Field(..., description="Hay base_id y token configurados")
    direction: str
    interval: str
    running_since: Optional[str] = None
    last_remote_to_local_sync: Optional[str] = None
    last_local_to_remote_sync: Optional[str] = None
    last_result: Optional[Dict[str, Any]] = None


class SyncHistoryEntryDTO(BaseModel):
    """Entrada del historial de corridas."""

    timestamp: datetime
    direction: str
    trigger: str
    status: str
    duration_s: float
    records_processed: int
    stats: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None


class CancelResultDTO(BaseModel):
    cancelled: bool
    message: str


class MediaCleanupDTO(BaseModel):
    """Resultado de la limpieza de media huérfana."""

    files_checked: int
    files_removed: int
    space_freed: int = Field(..., description="Bytes liberados")
    history_trimmed: int = Field(0, description="Entradas de historial borradas")


class MediaStatsDTO(BaseModel):
    synced_files: int
    total_size_bytes: int
    total_size_mb: float


class FieldMappingDTO(BaseModel):
    """Definición de un campo sincronizable."""

    field_id: str = Field(..., description="Nombre local estable")
    remote_name: str = Field(..., description="Nombre de la columna en Airtable")
    category: str
    data_type: str
    direction: str
    triggers: List[str] = Field(default_factory=list)
    allowed_values: List[str] = Field(default_factory=list)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    max_files: Optional[int] = None
    description: str = ""


class SyncFlagRequestDTO(BaseModel):
    """Habilita o deshabilita la sincronización de varios listings."""

    listing_ids: List[int] = Field(..., min_length=1, description="IDs de listings")
    enabled: bool = Field(..., description="Nuevo valor del flag de sync")


class SyncFlagResultDTO(BaseModel):
    updated: int
    enabled: bool


class SyncSettingsDTO(BaseModel):
    """Configuración de sync expuesta (token enmascarado)."""

    enabled: bool
    base_id: str
    table_name: str
    access_token: str = Field(..., description="Token enmascarado")
    direction: SyncDirection
    interval: SyncInterval
    media_sync_enabled: bool
    batch_size: int
    max_retries: int
    history_limit: int


class SyncSettingsUpdateDTO(BaseModel):
    """Cambios parciales de la configuración de sync."""

    enabled: Optional[bool] = None
    base_id: Optional[str] = Field(None, min_length=1)
    table_name: Optional[str] = Field(None, min_length=1)
    access_token: Optional[str] = Field(None, min_length=1)
    direction: Optional[SyncDirection] = None
    interval: Optional[SyncInterval] = None
    media_sync_enabled: Optional[bool] = None
    batch_size: Optional[int] = Field(None, ge=1, le=100)
    max_retries: Optional[int] = Field(None, ge=0, le=10)
    history_limit: Optional[int] = Field(None, ge=1, le=1000)
