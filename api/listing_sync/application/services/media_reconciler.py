"""
Reconciliación de adjuntos entre Airtable y el almacenamiento local.

Reglas:
- Un adjunto remoto se importa como máximo una vez por listing
  (lookup por remote_attachment_id).
- El orden de la lista remota se conserva; max_files recorta.
- Un adjunto que falla (MIME, tamaño, red, imagen corrupta) se registra,
  suma un error y se omite: nunca aborta el lote.
- El archivo temporal se borra en todos los caminos.
- Los archivos guardados durante un registro se recuerdan hasta el commit:
  si el registro se revierte, discard_record_files los borra del disco.
"""
from __future__ import annotations

import mimetypes
import os
from typing import Callable, Iterable, Optional, Sequence

from loguru import logger

from listing_sync.application.interfaces.local_content_repository import LocalContentRepository
from listing_sync.application.interfaces.media_downloader import MediaDownloader, MediaStorage
from listing_sync.domain.entities.sync_types import (
    AttachmentRef,
    CleanupStats,
    LocalAttachment,
    MediaStatistics,
    RunStatistics,
)
from listing_sync.domain.fields.field_definition import FieldDefinition
from listing_sync.shared.constants.sync_constants import (
    ALLOWED_MEDIA_TYPES,
    DEFAULT_MAX_MEDIA_BYTES,
    MEDIA_SYNC_SOURCE,
)
from listing_sync.shared.exceptions.sync import TransportError, ValidationError
from listing_sync.shared.utils.datetime_utils import utc_now

ImageInspector = Callable[[str], tuple[int, int]]


def _normalize_mime(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value.split(";", 1)[0].strip().lower() or None


class MediaReconciler:

    def __init__(
        self,
        repository: LocalContentRepository,
        downloader: MediaDownloader,
        storage: MediaStorage,
        *,
        inspect_image: ImageInspector,
        max_bytes: int = DEFAULT_MAX_MEDIA_BYTES,
        allowed_types: Sequence[str] = ALLOWED_MEDIA_TYPES,
    ) -> None:
        self._repo = repository
        self._downloader = downloader
        self._storage = storage
        self._inspect_image = inspect_image
        self._max_bytes = max_bytes
        self._allowed_types = frozenset(allowed_types)
        self._record_files: list[str] = []

    def begin_record(self) -> None:
        """Empieza a registrar los archivos guardados para un nuevo registro."""
        self._record_files = []

    def discard_record_files(self) -> int:
        """Borra los archivos guardados desde begin_record. Retorna bytes liberados."""
        freed = 0
        for storage_path in self._record_files:
            freed += self._storage.delete(storage_path)
        if self._record_files:
            logger.info(f"Revertidos {len(self._record_files)} archivo(s) de media ({freed} bytes)")
        self._record_files = []
        return freed

    def import_remote_attachments(
        self,
        attachments: Sequence[AttachmentRef],
        parent_id: int,
        definition: FieldDefinition,
        stats: RunStatistics,
    ) -> list[int]:
        """
        Importa los adjuntos remotos de un campo MEDIA.

        Returns:
            Ids locales en el mismo orden que la lista remota
        """
        limit = definition.max_files or len(attachments)
        local_ids: list[int] = []

        for position, ref in enumerate(attachments[:limit]):
            if ref.remote_attachment_id:
                existing = self._repo.find_attachment_by_remote_id(parent_id, ref.remote_attachment_id)
                if existing is not None:
                    local_ids.append(existing.attachment_id)
                    continue
            try:
                attachment = self._import_one(ref, parent_id, definition, position)
            except (ValidationError, TransportError) as e:
                stats.errors += 1
                logger.warning(
                    f"Adjunto '{ref.filename}' ({ref.remote_attachment_id}) de listing {parent_id} "
                    f"omitido: {e.message}"
                )
                continue
            local_ids.append(attachment.attachment_id)

        return local_ids

    def _import_one(
        self,
        ref: AttachmentRef,
        parent_id: int,
        definition: FieldDefinition,
        position: int,
    ) -> LocalAttachment:
        declared = _normalize_mime(ref.mime_type)
        if declared:
            self._check_mime(declared, ref.filename)
        if ref.byte_size is not None and ref.byte_size > self._max_bytes:
            raise ValidationError(
                f"Archivo demasiado grande ({ref.byte_size} bytes, máximo {self._max_bytes})",
                field="byte_size",
                value=ref.byte_size,
            )

        downloaded = self._downloader.download(ref.url, max_bytes=self._max_bytes)
        try:
            mime_type = (
                declared
                or _normalize_mime(downloaded.content_type)
                or _normalize_mime(mimetypes.guess_type(ref.filename)[0])
            )
            if not mime_type:
                raise ValidationError(f"No se pudo determinar el tipo de '{ref.filename}'", field="mime_type")
            self._check_mime(mime_type, ref.filename)

            width, height = ref.width, ref.height
            if mime_type.startswith("image/"):
                width, height = self._inspect_image(downloaded.path)

            stored = self._storage.store(downloaded.path, ref.filename)
            self._record_files.append(stored.storage_path)
            attachment = self._repo.add_attachment(
                parent_id=parent_id,
                field_name=definition.local_name,
                filename=ref.filename,
                mime_type=mime_type,
                byte_size=downloaded.byte_size,
                storage_path=stored.storage_path,
                public_url=stored.public_url,
                position=position,
                width=width,
                height=height,
                remote_attachment_id=ref.remote_attachment_id,
                sync_source=MEDIA_SYNC_SOURCE,
                synced_at=utc_now(),
            )
        finally:
            try:
                os.unlink(downloaded.path)
            except FileNotFoundError:
                pass

        logger.info(
            f"Adjunto importado: '{ref.filename}' -> #{attachment.attachment_id} "
            f"(listing {parent_id}, {definition.local_name})"
        )
        return attachment

    def _check_mime(self, mime_type: str, filename: str) -> None:
        if mime_type not in self._allowed_types:
            raise ValidationError(
                f"Tipo de archivo no permitido para '{filename}': {mime_type}",
                field="mime_type",
                value=mime_type,
            )

    def export_local_attachments(
        self,
        local_ids: Iterable[int],
        definition: FieldDefinition,
    ) -> list[AttachmentRef]:
        """
        Adjuntos locales -> referencias para Airtable.

        Si el adjunto ya tiene id remoto se incluye, así Airtable lo conserva
        en lugar de duplicarlo.
        """
        ids = list(local_ids)
        if definition.max_files:
            ids = ids[: definition.max_files]
        refs: list[AttachmentRef] = []
        for attachment in self._repo.get_attachments(ids):
            refs.append(
                AttachmentRef(
                    url=attachment.public_url,
                    filename=attachment.filename,
                    remote_attachment_id=attachment.remote_attachment_id,
                    local_attachment_id=attachment.attachment_id,
                    byte_size=attachment.byte_size,
                    width=attachment.width,
                    height=attachment.height,
                    mime_type=attachment.mime_type,
                )
            )
        return refs

    def cleanup_orphans(self) -> CleanupStats:
        """Borra adjuntos importados cuyo listing ya no existe."""
        checked = len(self._repo.list_synced_attachments())
        removed = 0
        bytes_freed = 0
        for attachment in self._repo.list_orphan_attachments():
            bytes_freed += self._storage.delete(attachment.storage_path)
            self._repo.delete_attachment(attachment.attachment_id)
            removed += 1
        self._repo.commit()

        logger.info(f"Limpieza de media: revisados={checked}, borrados={removed}, bytes={bytes_freed}")
        return CleanupStats(checked=checked, removed=removed, bytes_freed=bytes_freed)

    def statistics(self) -> MediaStatistics:
        synced = self._repo.list_synced_attachments()
        return MediaStatistics(
            synced_files=len(synced),
            total_size_bytes=sum(a.byte_size or 0 for a in synced),
        )
