"""
Interfaz de la tabla remota (Airtable).

Este contrato existe para:
- Que el motor no dependa de requests ni de la URL de Airtable.
- Facilitar tests con una tabla en memoria.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterator, Optional, Protocol

from listing_sync.domain.entities.sync_types import RemoteRecord
from listing_sync.shared.utils.retry import RetryStats


class RemoteTableApi(Protocol):
    """
    Operaciones mínimas sobre una tabla remota.

    Errores esperados:
    - ConfigurationError: credenciales inválidas (401/403)
    - NotFoundError: el registro no existe (404)
    - ValidationError: el payload fue rechazado (422)
    - TransportError: red o 429/5xx tras agotar reintentos
    """

    retry_stats: RetryStats

    def modified_since_formula(self, since: datetime) -> str:
        """Fórmula de filtro para registros modificados desde `since` (inclusive)."""

    def list_records(
        self,
        *,
        filter_formula: Optional[str] = None,
        page_size: int = 100,
        max_records: Optional[int] = None,
    ) -> Iterator[RemoteRecord]:
        """Itera registros manejando la paginación por offset."""

    def create_record(self, fields: dict[str, Any]) -> str:
        """Crea un registro y retorna su id."""

    def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        """Actualiza (PATCH) solo los campos enviados."""
