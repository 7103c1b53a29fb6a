"""
Motor de sincronización bidireccional listings <-> Airtable.

Diseño (resumen):
- Airtable -> local: trae registros modificados desde el checkpoint, avanza
  el checkpoint apenas termina el fetch, y reconcilia registro por registro.
- local -> Airtable: trae listings con sync habilitado editados desde el
  checkpoint, recalcula los derivados afectados por la edición (contra
  synced_fields) y hace un único update por registro.

Garantías:
- At-least-once: el checkpoint se mueve a la hora de INICIO del fetch, así
  nada modificado durante el fetch queda fuera de la próxima corrida.
- Un registro que falla suma `errors` y no detiene la corrida. Solo un
  ConfigurationError (credenciales) la aborta.
- Los contadores de un registro se suman a la corrida recién tras su commit;
  si se revierte, solo quedan sus errores y se borran los archivos guardados.
- CALCULATED_LOCAL nunca se lee desde Airtable: se recalcula y se empuja.
- MANUAL es last-writer-wins por campo dentro de una corrida.
- Un único escritor por dirección (lock por dirección, no bloqueante).
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from loguru import logger

from listing_sync.application.interfaces.local_content_repository import LocalContentRepository
from listing_sync.application.interfaces.remote_table_api import RemoteTableApi
from listing_sync.application.interfaces.sync_state_store import SyncStateStore
from listing_sync.application.services import field_codec
from listing_sync.application.services.calculation_bridge import CalculationTriggerBridge
from listing_sync.application.services.media_reconciler import MediaReconciler
from listing_sync.domain.entities.sync_settings import SyncSettings
from listing_sync.domain.entities.sync_types import (
    LocalRecord,
    RemoteRecord,
    RunStatistics,
    SyncRecordPair,
)
from listing_sync.domain.fields.listing_fields import TITLE_SOURCE_FIELDS
from listing_sync.domain.fields.registry import FieldMappingRegistry
from listing_sync.shared.constants.sync_constants import (
    DEFAULT_LISTING_TITLE,
    FieldCategory,
    SyncDirection,
)
from listing_sync.shared.exceptions.sync import (
    ConfigurationError,
    NotFoundError,
    SyncInProgressError,
    ValidationError,
)
from listing_sync.shared.utils.datetime_utils import utc_now

_PUSH_CATEGORIES = (FieldCategory.MANUAL, FieldCategory.CALCULATED_LOCAL)


class SyncEngine:
    """
    Ejecuta las pasadas de sincronización con los colaboradores recibidos.

    Los locks por dirección son de clase: varias instancias del motor (una
    por corrida, cada una con su sesión) comparten el mismo escritor único.
    """

    _direction_locks: dict[SyncDirection, threading.Lock] = {
        SyncDirection.REMOTE_TO_LOCAL: threading.Lock(),
        SyncDirection.LOCAL_TO_REMOTE: threading.Lock(),
    }

    def __init__(
        self,
        *,
        settings: SyncSettings,
        registry: FieldMappingRegistry,
        remote: RemoteTableApi,
        repository: LocalContentRepository,
        media: MediaReconciler,
        calculations: CalculationTriggerBridge,
        state_store: SyncStateStore,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._remote = remote
        self._repo = repository
        self._media = media
        self._calculations = calculations
        self._state = state_store
        self._cancel = cancel_event or threading.Event()
        self._clock = clock

    @contextmanager
    def _direction_lock(self, direction: SyncDirection) -> Iterator[None]:
        lock = self._direction_locks[direction]
        if not lock.acquire(blocking=False):
            raise SyncInProgressError()
        try:
            yield
        finally:
            lock.release()

    def _rollback_record(self) -> None:
        self._repo.rollback()
        self._media.discard_record_files()

    # ------------------------------------------------------------------
    # Airtable -> local
    # ------------------------------------------------------------------

    def sync_remote_to_local(self) -> RunStatistics:
        stats = RunStatistics()
        with self._direction_lock(SyncDirection.REMOTE_TO_LOCAL):
            since = self._state.get_checkpoint().last_remote_to_local
            fetch_started = self._clock()
            formula = self._remote.modified_since_formula(since) if since else None
            logger.info(
                f"Sync Airtable -> local (desde {since.isoformat() if since else 'inicio'})"
            )

            records = list(
                self._remote.list_records(
                    filter_formula=formula,
                    page_size=self._settings.batch_size,
                )
            )
            self._state.advance_checkpoint(SyncDirection.REMOTE_TO_LOCAL, fetch_started)
            logger.info(f"Airtable devolvió {len(records)} registro(s) modificados")

            for index, record in enumerate(records):
                if self._cancel.is_set():
                    stats.skipped += len(records) - index
                    logger.warning(f"Sync cancelado: {len(records) - index} registro(s) sin procesar")
                    break
                stats.total_processed += 1
                record_stats = RunStatistics()
                self._media.begin_record()
                try:
                    self._apply_remote_record(record, record_stats)
                    self._repo.commit()
                except ConfigurationError:
                    self._rollback_record()
                    raise
                except Exception as e:
                    self._rollback_record()
                    stats.errors += record_stats.errors + 1
                    logger.error(f"Error procesando registro Airtable {record.record_id}: {e}")
                else:
                    stats = stats.merge(record_stats)

        logger.info(f"Sync Airtable -> local terminado: {stats.as_dict()}")
        return stats

    def _apply_remote_record(self, record: RemoteRecord, stats: RunStatistics) -> SyncRecordPair:
        local = self._repo.find_by_remote_id(record.record_id)
        pair = SyncRecordPair(local_id=local.record_id if local else None, remote_id=record.record_id)

        if local is None:
            title = field_codec.best_effort_title(record, TITLE_SOURCE_FIELDS, DEFAULT_LISTING_TITLE)
            local = self._repo.create_record(
                title, remote_record_id=record.record_id, sync_enabled=True, mark_modified=False
            )
            pair.local_id = local.record_id
            pair.created_locally = True
            stats.created += 1
            logger.info(f"Listing #{local.record_id} creado desde Airtable {record.record_id} ('{title}')")

        previous = dict(local.fields)
        pair.snapshot = previous

        field_set = field_codec.remote_to_local(record, self._registry)
        for name, message in field_set.rejected.items():
            stats.errors += 1
            logger.warning(f"Registro {record.record_id}: campo '{name}' rechazado: {message}")

        synced_values: dict[str, Any] = dict(field_set.values)
        changes: dict[str, Any] = {
            name: value for name, value in field_set.values.items() if previous.get(name) != value
        }
        triggers: list[str] = []
        for name in changes:
            triggers.extend(self._registry.resolve(name).triggers)

        if self._settings.media_sync_enabled:
            for name, raw_attachments in field_set.media.items():
                definition = self._registry.resolve(name)
                refs = []
                for raw in raw_attachments:
                    try:
                        refs.append(field_codec.parse_remote_attachment(raw))
                    except ValidationError as e:
                        stats.errors += 1
                        logger.warning(f"Registro {record.record_id}: adjunto inválido en '{name}': {e.message}")
                local_ids = self._media.import_remote_attachments(refs, local.record_id, definition, stats)
                stats.media_synced += 1
                synced_values[name] = local_ids
                if local_ids != list(previous.get(name) or []):
                    changes[name] = local_ids
                    triggers.extend(definition.triggers)

        if changes:
            self._repo.set_fields(local.record_id, changes, mark_modified=False)

        if triggers:
            current = {**previous, **changes}
            calculated = self._calculations.trigger(
                local.record_id, triggers, current=current, previous=previous, stats=stats
            )
            calc_changes = {k: v for k, v in calculated.items() if current.get(k) != v}
            if calc_changes:
                self._repo.set_fields(local.record_id, calc_changes, mark_modified=False)
                current.update(calc_changes)
                changes.update(calc_changes)

            payload = field_codec.local_to_remote(
                current, self._registry, categories=(FieldCategory.CALCULATED_LOCAL,)
            )
            if payload:
                self._remote.update_record(record.record_id, payload)
                logger.debug(f"Campos calculados enviados a {record.record_id}: {sorted(payload)}")

        if changes and not pair.created_locally:
            stats.updated += 1
        self._repo.mark_synced(local.record_id, self._clock(), synced_values)
        return pair

    # ------------------------------------------------------------------
    # local -> Airtable
    # ------------------------------------------------------------------

    def sync_local_to_remote(self) -> RunStatistics:
        stats = RunStatistics()
        with self._direction_lock(SyncDirection.LOCAL_TO_REMOTE):
            since = self._state.get_checkpoint().last_local_to_remote
            fetch_started = self._clock()
            logger.info(
                f"Sync local -> Airtable (desde {since.isoformat() if since else 'inicio'})"
            )

            records = self._repo.list_changed_since(since)
            self._state.advance_checkpoint(SyncDirection.LOCAL_TO_REMOTE, fetch_started)
            logger.info(f"{len(records)} listing(s) locales modificados")

            for index, local in enumerate(records):
                if self._cancel.is_set():
                    stats.skipped += len(records) - index
                    logger.warning(f"Sync cancelado: {len(records) - index} listing(s) sin procesar")
                    break
                stats.total_processed += 1
                record_stats = RunStatistics()
                try:
                    self._push_local_record(local, record_stats)
                    self._repo.commit()
                except ConfigurationError:
                    self._repo.rollback()
                    raise
                except Exception as e:
                    self._repo.rollback()
                    stats.errors += record_stats.errors + 1
                    logger.error(f"Error enviando listing #{local.record_id} a Airtable: {e}")
                else:
                    stats = stats.merge(record_stats)

        logger.info(f"Sync local -> Airtable terminado: {stats.as_dict()}")
        return stats

    def sync_single_local_record(self, record_id: int) -> RunStatistics:
        """Envía un listing puntual a Airtable, sin mover el checkpoint."""
        stats = RunStatistics()
        with self._direction_lock(SyncDirection.LOCAL_TO_REMOTE):
            local = self._repo.get_record(record_id)
            if local is None:
                raise NotFoundError("Listing", record_id)
            stats.total_processed = 1
            try:
                self._push_local_record(local, stats)
                self._repo.commit()
            except Exception:
                self._repo.rollback()
                raise
        return stats

    def _build_payload(self, local: LocalRecord, stats: RunStatistics) -> dict[str, Any]:
        payload = field_codec.local_to_remote(local.fields, self._registry, categories=_PUSH_CATEGORIES)
        if self._settings.media_sync_enabled:
            for definition in self._registry.fields_by_category(FieldCategory.MEDIA):
                local_ids = local.fields.get(definition.local_name)
                if not local_ids or not definition.pushes_to_remote:
                    continue
                refs = self._media.export_local_attachments(local_ids, definition)
                payload[definition.remote_name] = field_codec.attachments_to_remote(refs)
                stats.media_synced += 1
        title_field = TITLE_SOURCE_FIELDS[0]
        if title_field not in payload and local.title:
            payload[title_field] = local.title
        return payload

    def _push_local_record(self, local: LocalRecord, stats: RunStatistics) -> SyncRecordPair:
        pair = SyncRecordPair(local_id=local.record_id, remote_id=local.remote_record_id, snapshot=dict(local.fields))
        self._recalculate_local_edits(local, stats)
        payload = self._build_payload(local, stats)

        if not pair.remote_id:
            pair.remote_id = self._create_remote(local)
            pair.created_remotely = True

        try:
            self._remote.update_record(pair.remote_id, payload)
        except NotFoundError:
            logger.warning(
                f"Registro Airtable {pair.remote_id} de listing #{local.record_id} no existe; se recrea"
            )
            pair.remote_id = self._create_remote(local)
            pair.created_remotely = True
            self._remote.update_record(pair.remote_id, payload)

        if pair.created_remotely:
            stats.created += 1
        else:
            stats.updated += 1
        self._repo.mark_synced(local.record_id, self._clock())
        return pair

    def _recalculate_local_edits(self, local: LocalRecord, stats: RunStatistics) -> None:
        """
        Recalcula los campos derivados afectados por ediciones locales.

        La base de comparación es synced_fields (lo último acordado con
        Airtable); un listing nunca sincronizado se compara contra vacío.
        """
        baseline = local.synced_fields or {}
        triggers: list[str] = []
        for category in (FieldCategory.MANUAL, FieldCategory.MEDIA):
            for definition in self._registry.fields_by_category(category):
                name = definition.local_name
                if definition.triggers and local.fields.get(name) != baseline.get(name):
                    triggers.extend(definition.triggers)
        if not triggers:
            return

        calculated = self._calculations.trigger(
            local.record_id, triggers, current=local.fields, previous=baseline, stats=stats
        )
        calc_changes = {k: v for k, v in calculated.items() if local.fields.get(k) != v}
        if calc_changes:
            self._repo.set_fields(local.record_id, calc_changes, mark_modified=False)
            local.fields.update(calc_changes)
            logger.debug(f"Listing #{local.record_id}: recalculados por edición local {sorted(calc_changes)}")

    def _create_remote(self, local: LocalRecord) -> str:
        remote_id = self._remote.create_record({})
        self._repo.set_remote_record_id(local.record_id, remote_id)
        # El id remoto se persiste ya: si el update falla, no se vuelve a crear
        self._repo.commit()
        logger.info(f"Registro Airtable {remote_id} creado para listing #{local.record_id}")
        return remote_id

    # ------------------------------------------------------------------

    def reset_checkpoint(self, direction: Optional[SyncDirection] = None) -> None:
        """Fuerza un full sync en la próxima corrida."""
        if direction == SyncDirection.BIDIRECTIONAL:
            direction = None
        self._state.reset_checkpoint(direction)
        logger.info(f"Checkpoint reseteado ({direction.value if direction else 'ambas direcciones'})")
