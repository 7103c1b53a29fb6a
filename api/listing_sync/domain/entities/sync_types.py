"""
Tipos del dominio de sincronización.

Se mantienen libres de I/O: los usan el motor, el orquestador y los
repositorios como contrato común.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from listing_sync.shared.constants.sync_constants import (
    RunStatus,
    RunTrigger,
    SyncDirection,
)


@dataclass(frozen=True)
class RemoteRecord:
    """Registro de Airtable tal como lo devuelve la API."""

    record_id: str
    fields: dict[str, Any]
    created_time: Optional[str] = None


@dataclass
class LocalRecord:
    """Listing local con sus valores de campos indexados por nombre local."""

    record_id: int
    title: str
    remote_record_id: Optional[str]
    sync_enabled: bool
    fields: dict[str, Any] = field(default_factory=dict)
    modified_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    synced_fields: Optional[dict[str, Any]] = None


@dataclass
class LocalFieldSet:
    """
    Resultado de convertir un RemoteRecord al lado local.

    - values: valores ya sanitizados, por nombre local
    - media: adjuntos remotos crudos por nombre local de campo MEDIA
    - rejected: campos cuyo valor remoto no pasó validación
    """

    values: dict[str, Any] = field(default_factory=dict)
    media: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    rejected: dict[str, str] = field(default_factory=dict)


@dataclass
class SyncRecordPair:
    """Par efímero local/remoto durante la reconciliación de un registro."""

    local_id: Optional[int]
    remote_id: Optional[str]
    snapshot: dict[str, Any] = field(default_factory=dict)
    created_locally: bool = False
    created_remotely: bool = False


@dataclass(frozen=True)
class AttachmentRef:
    """Referencia a un adjunto, del lado que corresponda."""

    url: str
    filename: str
    remote_attachment_id: Optional[str] = None
    local_attachment_id: Optional[int] = None
    byte_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: Optional[str] = None


@dataclass
class LocalAttachment:
    """Adjunto almacenado localmente."""

    attachment_id: int
    parent_id: Optional[int]
    field_name: str
    filename: str
    mime_type: str
    byte_size: int
    storage_path: str
    public_url: str
    position: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    remote_attachment_id: Optional[str] = None
    sync_source: Optional[str] = None
    synced_at: Optional[datetime] = None


@dataclass
class RunStatistics:
    """Contadores de una corrida. Se reinician en cada corrida."""

    total_processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    media_synced: int = 0
    calculations_triggered: int = 0

    def merge(self, other: "RunStatistics") -> "RunStatistics":
        return RunStatistics(**{k: v + getattr(other, k) for k, v in asdict(self).items()})

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class SyncCheckpoint:
    """Marcas de la última sincronización exitosa por dirección."""

    last_remote_to_local: Optional[datetime] = None
    last_local_to_remote: Optional[datetime] = None


@dataclass
class SyncRunResult:
    """Resultado devuelto por toda corrida completada (exitosa o no)."""

    success: bool
    direction: SyncDirection
    trigger: RunTrigger
    status: RunStatus
    stats: RunStatistics
    message: str
    started_at: datetime
    finished_at: datetime
    error: Optional[str] = None

    @property
    def duration_s(self) -> float:
        return round((self.finished_at - self.started_at).total_seconds(), 3)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "direction": self.direction.value,
            "trigger": self.trigger.value,
            "status": self.status.value,
            "stats": self.stats.as_dict(),
            "message": self.message,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_s": self.duration_s,
        }


@dataclass(frozen=True)
class SyncHistoryEntry:
    """Entrada del historial acotado de corridas."""

    timestamp: datetime
    direction: SyncDirection
    trigger: RunTrigger
    status: RunStatus
    duration_s: float
    records_processed: int
    stats: dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: SyncRunResult) -> "SyncHistoryEntry":
        return cls(
            timestamp=result.started_at,
            direction=result.direction,
            trigger=result.trigger,
            status=result.status,
            duration_s=result.duration_s,
            records_processed=result.stats.total_processed,
            stats=result.stats.as_dict(),
            error=result.error,
        )


@dataclass(frozen=True)
class CleanupStats:
    checked: int = 0
    removed: int = 0
    bytes_freed: int = 0


@dataclass(frozen=True)
class MediaStatistics:
    synced_files: int = 0
    total_size_bytes: int = 0

    @property
    def total_size_mb(self) -> float:
        return round(self.total_size_bytes / 1024 / 1024, 2)


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    message: str
    status_code: Optional[int] = None
    attempts: int = 0
