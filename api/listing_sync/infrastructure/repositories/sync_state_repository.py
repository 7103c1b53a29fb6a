"""
Repositorio de estado de sincronización: checkpoints por dirección e
historial acotado de corridas.
"""
from datetime import datetime
from typing import List, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from listing_sync.domain.entities.sync_types import SyncCheckpoint, SyncHistoryEntry
from listing_sync.infrastructure.database.models import SyncCheckpointModel, SyncHistoryModel
from listing_sync.shared.constants.sync_constants import (
    RunStatus,
    RunTrigger,
    SyncDirection,
)
from listing_sync.shared.utils.datetime_utils import ensure_utc

_CHECKPOINT_DIRECTIONS = (SyncDirection.REMOTE_TO_LOCAL, SyncDirection.LOCAL_TO_REMOTE)


class SyncStateRepository:
    """
    Gestiona las tablas sync_checkpoints y sync_history.

    Cada operación hace commit: el checkpoint se persiste aunque la corrida
    falle más adelante.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_checkpoint(self) -> SyncCheckpoint:
        rows = self.db.execute(select(SyncCheckpointModel)).scalars().all()
        values = {row.direction: ensure_utc(row.last_sync_at) for row in rows}
        return SyncCheckpoint(
            last_remote_to_local=values.get(SyncDirection.REMOTE_TO_LOCAL.value),
            last_local_to_remote=values.get(SyncDirection.LOCAL_TO_REMOTE.value),
        )

    def advance_checkpoint(self, direction: SyncDirection, value: datetime) -> datetime:
        if direction not in _CHECKPOINT_DIRECTIONS:
            raise ValueError(f"Dirección sin checkpoint propio: {direction.value}")

        value = ensure_utc(value)
        row = self.db.get(SyncCheckpointModel, direction.value)
        if row is None:
            self.db.add(SyncCheckpointModel(direction=direction.value, last_sync_at=value))
            current = value
        else:
            stored = ensure_utc(row.last_sync_at)
            if value > stored:
                row.last_sync_at = value
                current = value
            else:
                logger.warning(
                    f"Checkpoint {direction.value} no retrocede: {value.isoformat()} <= {stored.isoformat()}"
                )
                current = stored
        self.db.commit()
        return current

    def reset_checkpoint(self, direction: Optional[SyncDirection] = None) -> None:
        stmt = delete(SyncCheckpointModel)
        if direction is not None:
            stmt = stmt.where(SyncCheckpointModel.direction == direction.value)
        self.db.execute(stmt)
        self.db.commit()

    def append_history(self, entry: SyncHistoryEntry, *, limit: int) -> None:
        self.db.add(
            SyncHistoryModel(
                timestamp=entry.timestamp,
                direction=entry.direction.value,
                trigger=entry.trigger.value,
                status=entry.status.value,
                duration_s=entry.duration_s,
                records_processed=entry.records_processed,
                stats=dict(entry.stats),
                error=entry.error,
            )
        )
        self.db.flush()
        self._trim(limit)
        self.db.commit()

    def list_history(self, limit: Optional[int] = None) -> List[SyncHistoryEntry]:
        query = select(SyncHistoryModel).order_by(
            SyncHistoryModel.timestamp.desc(), SyncHistoryModel.id.desc()
        )
        if limit:
            query = query.limit(limit)
        return [
            SyncHistoryEntry(
                timestamp=ensure_utc(row.timestamp),
                direction=SyncDirection(row.direction),
                trigger=RunTrigger(row.trigger),
                status=RunStatus(row.status),
                duration_s=row.duration_s or 0.0,
                records_processed=row.records_processed or 0,
                stats=dict(row.stats or {}),
                error=row.error,
            )
            for row in self.db.execute(query).scalars().all()
        ]

    def trim_history(self, limit: int) -> int:
        removed = self._trim(limit)
        self.db.commit()
        return removed

    def _trim(self, limit: int) -> int:
        keep = (
            select(SyncHistoryModel.id)
            .order_by(SyncHistoryModel.timestamp.desc(), SyncHistoryModel.id.desc())
            .limit(max(limit, 0))
        )
        keep_ids = list(self.db.execute(keep).scalars().all())
        result = self.db.execute(
            delete(SyncHistoryModel)
            .where(SyncHistoryModel.id.not_in(keep_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
