"""
Repositorio SQLAlchemy de listings y sus adjuntos.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from listing_sync.domain.entities.sync_types import LocalAttachment, LocalRecord
from listing_sync.infrastructure.database.models import ListingAttachmentModel, ListingModel
from listing_sync.shared.exceptions.sync import NotFoundError
from listing_sync.shared.utils.datetime_utils import ensure_utc, utc_now


def _to_record(model: ListingModel) -> LocalRecord:
    return LocalRecord(
        record_id=model.id,
        title=model.title,
        remote_record_id=model.remote_record_id,
        sync_enabled=bool(model.sync_enabled),
        fields=dict(model.fields or {}),
        modified_at=ensure_utc(model.modified_at) if model.modified_at else None,
        last_synced_at=ensure_utc(model.last_synced_at) if model.last_synced_at else None,
        synced_fields=dict(model.synced_fields) if model.synced_fields is not None else None,
    )


def _to_attachment(model: ListingAttachmentModel) -> LocalAttachment:
    return LocalAttachment(
        attachment_id=model.id,
        parent_id=model.listing_id,
        field_name=model.field_name,
        filename=model.filename,
        mime_type=model.mime_type,
        byte_size=model.byte_size or 0,
        storage_path=model.storage_path,
        public_url=model.public_url,
        position=model.position or 0,
        width=model.width,
        height=model.height,
        remote_attachment_id=model.remote_attachment_id,
        sync_source=model.sync_source,
        synced_at=ensure_utc(model.synced_at) if model.synced_at else None,
    )


class ListingRepository:
    """
    Gestiona las tablas listings y listing_attachments.

    No hace commit por su cuenta: el motor decide el límite de transacción
    (un registro por transacción).
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, record_id: int) -> ListingModel:
        model = self.db.get(ListingModel, record_id)
        if model is None:
            raise NotFoundError("Listing", record_id)
        return model

    # ------------------------------------------------------------------
    # Registros
    # ------------------------------------------------------------------

    def get_record(self, record_id: int) -> Optional[LocalRecord]:
        model = self.db.get(ListingModel, record_id)
        return _to_record(model) if model else None

    def find_by_remote_id(self, remote_record_id: str) -> Optional[LocalRecord]:
        query = select(ListingModel).where(ListingModel.remote_record_id == remote_record_id)
        model = self.db.execute(query).scalar_one_or_none()
        return _to_record(model) if model else None

    def create_record(
        self,
        title: str,
        *,
        remote_record_id: Optional[str] = None,
        sync_enabled: bool = True,
        fields: Optional[Dict[str, Any]] = None,
        mark_modified: bool = True,
    ) -> LocalRecord:
        """
        Crea un listing.

        Con mark_modified=False (listing creado desde Airtable) modified_at
        queda en NULL y el listing no se envía de vuelta a Airtable hasta
        que se edite localmente.
        """
        now = utc_now()
        model = ListingModel(
            title=title,
            remote_record_id=remote_record_id,
            sync_enabled=sync_enabled,
            fields=dict(fields or {}),
            modified_at=now if mark_modified else None,
            created_at=now,
        )
        self.db.add(model)
        self.db.flush()
        return _to_record(model)

    def set_fields(self, record_id: int, values: Dict[str, Any], *, mark_modified: bool = True) -> None:
        """
        Mezcla `values` sobre los campos actuales.

        Con mark_modified=False no se toca modified_at: la escritura viene de
        la sincronización y no debe volver a Airtable.
        """
        model = self._get_model(record_id)
        # Nuevo dict para que SQLAlchemy detecte el cambio en la columna JSON
        model.fields = {**(model.fields or {}), **values}
        if mark_modified:
            model.modified_at = utc_now()
        self.db.flush()

    def set_remote_record_id(self, record_id: int, remote_record_id: str) -> None:
        model = self._get_model(record_id)
        model.remote_record_id = remote_record_id
        self.db.flush()

    def mark_synced(
        self,
        record_id: int,
        synced_at: datetime,
        synced_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Registra la sincronización del listing.

        Sin synced_values la base de comparación pasa a ser el estado completo
        de `fields`; con synced_values solo se actualizan esas claves.
        """
        model = self._get_model(record_id)
        model.last_synced_at = synced_at
        if synced_values is None:
            model.synced_fields = dict(model.fields or {})
        else:
            model.synced_fields = {**(model.synced_fields or {}), **synced_values}
        self.db.flush()

    def list_changed_since(self, since: Optional[datetime]) -> List[LocalRecord]:
        query = select(ListingModel).where(
            ListingModel.sync_enabled.is_(True),
            ListingModel.modified_at.is_not(None),
        )
        if since is not None:
            query = query.where(ListingModel.modified_at > ensure_utc(since))
        query = query.order_by(ListingModel.modified_at.asc(), ListingModel.id.asc())
        return [_to_record(m) for m in self.db.execute(query).scalars().all()]

    def set_sync_enabled(self, record_ids: Iterable[int], enabled: bool) -> int:
        ids = list(record_ids)
        if not ids:
            return 0
        result = self.db.execute(
            update(ListingModel)
            .where(ListingModel.id.in_(ids))
            .values(sync_enabled=enabled)
            .execution_options(synchronize_session="fetch")
        )
        self.db.flush()
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Adjuntos
    # ------------------------------------------------------------------

    def find_attachment_by_remote_id(
        self, parent_id: int, remote_attachment_id: str
    ) -> Optional[LocalAttachment]:
        query = select(ListingAttachmentModel).where(
            ListingAttachmentModel.listing_id == parent_id,
            ListingAttachmentModel.remote_attachment_id == remote_attachment_id,
        )
        model = self.db.execute(query).scalars().first()
        return _to_attachment(model) if model else None

    def add_attachment(self, **values: Any) -> LocalAttachment:
        parent_id = values.pop("parent_id")
        model = ListingAttachmentModel(listing_id=parent_id, **values)
        self.db.add(model)
        self.db.flush()
        return _to_attachment(model)

    def get_attachments(self, attachment_ids: Iterable[int]) -> List[LocalAttachment]:
        ids = [int(i) for i in attachment_ids]
        if not ids:
            return []
        query = select(ListingAttachmentModel).where(ListingAttachmentModel.id.in_(ids))
        by_id = {m.id: m for m in self.db.execute(query).scalars().all()}
        return [_to_attachment(by_id[i]) for i in ids if i in by_id]

    def list_synced_attachments(self) -> List[LocalAttachment]:
        query = select(ListingAttachmentModel).where(ListingAttachmentModel.sync_source.is_not(None))
        return [_to_attachment(m) for m in self.db.execute(query).scalars().all()]

    def list_orphan_attachments(self) -> List[LocalAttachment]:
        existing = select(ListingModel.id)
        query = select(ListingAttachmentModel).where(
            ListingAttachmentModel.sync_source.is_not(None),
            or_(
                ListingAttachmentModel.listing_id.is_(None),
                ListingAttachmentModel.listing_id.not_in(existing),
            ),
        )
        return [_to_attachment(m) for m in self.db.execute(query).scalars().all()]

    def delete_attachment(self, attachment_id: int) -> None:
        model = self.db.get(ListingAttachmentModel, attachment_id)
        if model is not None:
            self.db.delete(model)
            self.db.flush()
            logger.debug(f"Adjunto #{attachment_id} eliminado")

    # ------------------------------------------------------------------
    # Transacción
    # ------------------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
