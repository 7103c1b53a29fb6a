"""
Interfaz de persistencia del estado de sincronización: checkpoints e historial.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from listing_sync.domain.entities.sync_types import SyncCheckpoint, SyncHistoryEntry
from listing_sync.shared.constants.sync_constants import SyncDirection


class SyncStateStore(Protocol):

    def get_checkpoint(self) -> SyncCheckpoint: ...

    def advance_checkpoint(self, direction: SyncDirection, value: datetime) -> datetime:
        """
        Avanza la marca de la dirección. Nunca retrocede: si `value` es menor
        a la marca actual, se conserva la actual. Retorna la marca vigente.
        """

    def reset_checkpoint(self, direction: Optional[SyncDirection] = None) -> None:
        """Borra la marca (ambas si direction es None) para forzar un full sync."""

    def append_history(self, entry: SyncHistoryEntry, *, limit: int) -> None: ...

    def list_history(self, limit: Optional[int] = None) -> list[SyncHistoryEntry]:
        """Entradas más recientes primero."""

    def trim_history(self, limit: int) -> int:
        """Deja solo las `limit` más recientes y retorna cuántas borró."""
