"""
Interfaz del repositorio local de listings y adjuntos.

Las escrituras originadas por la sincronización no marcan el listing como
modificado (mark_modified=False), así no rebotan hacia Airtable en la
siguiente corrida local -> remoto.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

from listing_sync.domain.entities.sync_types import LocalAttachment, LocalRecord


class LocalContentRepository(Protocol):

    # Registros
    def get_record(self, record_id: int) -> Optional[LocalRecord]: ...

    def find_by_remote_id(self, remote_record_id: str) -> Optional[LocalRecord]: ...

    def create_record(
        self,
        title: str,
        *,
        remote_record_id: Optional[str] = None,
        sync_enabled: bool = True,
        fields: Optional[dict[str, Any]] = None,
        mark_modified: bool = True,
    ) -> LocalRecord: ...

    def set_fields(
        self,
        record_id: int,
        values: dict[str, Any],
        *,
        mark_modified: bool = True,
    ) -> None: ...

    def set_remote_record_id(self, record_id: int, remote_record_id: str) -> None: ...

    def mark_synced(
        self,
        record_id: int,
        synced_at: datetime,
        synced_values: Optional[dict[str, Any]] = None,
    ) -> None:
        """Marca el listing como sincronizado y actualiza su base de comparación (synced_fields)."""

    def list_changed_since(self, since: Optional[datetime]) -> list[LocalRecord]:
        """
        Listings con sync habilitado editados localmente después de `since`
        (todos los editados si es None). Los nunca editados localmente no cuentan.
        """

    def set_sync_enabled(self, record_ids: Iterable[int], enabled: bool) -> int: ...

    # Adjuntos
    def find_attachment_by_remote_id(
        self, parent_id: int, remote_attachment_id: str
    ) -> Optional[LocalAttachment]: ...

    def add_attachment(
        self,
        *,
        parent_id: int,
        field_name: str,
        filename: str,
        mime_type: str,
        byte_size: int,
        storage_path: str,
        public_url: str,
        position: int = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        remote_attachment_id: Optional[str] = None,
        sync_source: Optional[str] = None,
        synced_at: Optional[datetime] = None,
    ) -> LocalAttachment: ...

    def get_attachments(self, attachment_ids: Iterable[int]) -> list[LocalAttachment]:
        """Retorna los adjuntos en el mismo orden de los ids pedidos."""

    def list_synced_attachments(self) -> list[LocalAttachment]: ...

    def list_orphan_attachments(self) -> list[LocalAttachment]:
        """Adjuntos importados desde Airtable cuyo listing padre ya no existe."""

    def delete_attachment(self, attachment_id: int) -> None: ...

    # Transacción
    def commit(self) -> None: ...

    def rollback(self) -> None: ...
