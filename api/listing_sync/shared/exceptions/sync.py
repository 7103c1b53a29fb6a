"""
Excepciones del motor de sincronizacion.

Taxonomia:
- ConfigurationError: credenciales o mapeo invalidos. Fatal para la corrida.
- TransportError: fallo de red o del servicio remoto tras agotar reintentos.
- ValidationError: un valor de campo o un adjunto no pasa validacion.
- NotFoundError: el registro remoto referenciado ya no existe.
- SyncInProgressError: ya hay una corrida activa.
"""
from typing import Any, Dict, Optional

from listing_sync.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepcion base para errores de sincronizacion."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "SYNC_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class ConfigurationError(SyncException):
    """Configuracion de sincronizacion incompleta o invalida."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="SYNC_CONFIGURATION_ERROR",
            details=details
        )


class TransportError(SyncException):
    """Fallo de transporte contra el servicio remoto."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 0
    ):
        super().__init__(
            message=message,
            status_code=502,
            error_code="SYNC_TRANSPORT_ERROR",
            details={"remote_status": status_code, "attempts": attempts}
        )
        self.remote_status = status_code
        self.attempts = attempts


class ValidationError(SyncException):
    """Valor de campo o adjunto invalido."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        details = {"field": field} if field else {}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            message=message,
            status_code=422,
            error_code="SYNC_VALIDATION_ERROR",
            details=details
        )
        self.field = field
        self.value = value


class NotFoundError(SyncException):
    """El registro referenciado no existe."""

    def __init__(self, entity_name: str, entity_id: Any):
        super().__init__(
            message=f"{entity_name} con ID {entity_id} no encontrado",
            status_code=404,
            error_code="ENTITY_NOT_FOUND",
            details={"entity": entity_name, "id": str(entity_id)}
        )
        self.entity_id = entity_id


class SyncInProgressError(SyncException):
    """Excepcion cuando se pide una corrida mientras otra esta activa."""

    def __init__(self, started_at: Optional[str] = None):
        super().__init__(
            message="sync already in progress",
            status_code=409,
            error_code="SYNC_IN_PROGRESS",
            details={"started_at": started_at} if started_at else None
        )
