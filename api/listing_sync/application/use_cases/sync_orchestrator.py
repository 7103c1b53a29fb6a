"""
Orquestador de sincronización.

Estados:
    DISABLED -> (settings activos) -> IDLE -> (run) -> RUNNING -> IDLE

- Una sola corrida a la vez: un segundo pedido mientras RUNNING se rechaza
  con SyncInProgressError ("sync already in progress").
- DISABLED rechaza corridas con ConfigurationError.
- Toda corrida que arranca termina con un SyncRunResult y una entrada de
  historial (éxito, parcial o error).
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from listing_sync.application.interfaces.sync_resources import SyncResources
from listing_sync.application.services.sync_engine import SyncEngine
from listing_sync.domain.entities.sync_settings import SyncSettings
from listing_sync.domain.entities.sync_types import (
    CleanupStats,
    ConnectionTestResult,
    MediaStatistics,
    RunStatistics,
    SyncHistoryEntry,
    SyncRunResult,
)
from listing_sync.domain.fields.registry import FieldMappingRegistry
from listing_sync.shared.constants.sync_constants import (
    SYNC_LOG_CONTEXT,
    OrchestratorState,
    RunStatus,
    RunTrigger,
    SyncDirection,
)
from listing_sync.shared.exceptions.base import AppException
from listing_sync.shared.exceptions.sync import (
    ConfigurationError,
    NotFoundError,
    SyncInProgressError,
)
from listing_sync.shared.utils.datetime_utils import utc_now

CONNECTION_TEST_TIMEOUT_S = 10

EngineAction = Callable[[SyncEngine], RunStatistics]


class SyncOrchestrator:
    """
    Punto de entrada de todas las corridas (manuales, programadas y puntuales).
    """

    def __init__(
        self,
        settings: SyncSettings,
        resources: SyncResources,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._resources = resources
        self._clock = clock
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._state = OrchestratorState.IDLE if settings.is_active else OrchestratorState.DISABLED
        self._running_since: Optional[datetime] = None
        self._last_result: Optional[SyncRunResult] = None

    @property
    def settings(self) -> SyncSettings:
        return self._settings

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def registry(self) -> FieldMappingRegistry:
        return self._resources.registry

    @property
    def last_result(self) -> Optional[SyncRunResult]:
        return self._last_result

    def apply_settings(self, settings: SyncSettings) -> None:
        """Reemplaza la configuración. Si hay una corrida activa, aplica a la siguiente."""
        with self._lock:
            self._settings = settings
            if self._state != OrchestratorState.RUNNING:
                self._state = self._idle_state()
        logger.info(
            f"Configuración de sync aplicada: enabled={settings.enabled}, "
            f"direction={settings.direction.value}, interval={settings.interval.value}"
        )

    def _idle_state(self) -> OrchestratorState:
        return OrchestratorState.IDLE if self._settings.is_active else OrchestratorState.DISABLED

    # ------------------------------------------------------------------
    # Corridas
    # ------------------------------------------------------------------

    def run(
        self,
        direction: Optional[SyncDirection] = None,
        trigger: RunTrigger = RunTrigger.MANUAL,
        *,
        full_sync: bool = False,
    ) -> SyncRunResult:
        """
        Ejecuta una corrida en la dirección pedida (o la configurada).

        Raises:
            ConfigurationError: la sincronización está deshabilitada
            SyncInProgressError: ya hay una corrida activa
        """
        direction = direction or self._settings.direction

        def action(engine: SyncEngine) -> RunStatistics:
            if full_sync:
                engine.reset_checkpoint(direction)
            stats = RunStatistics()
            if direction in (SyncDirection.BIDIRECTIONAL, SyncDirection.REMOTE_TO_LOCAL):
                stats = stats.merge(engine.sync_remote_to_local())
            if direction in (SyncDirection.BIDIRECTIONAL, SyncDirection.LOCAL_TO_REMOTE):
                stats = stats.merge(engine.sync_local_to_remote())
            return stats

        return self._run_guarded(direction, trigger, action)

    def sync_listing(self, listing_id: int) -> SyncRunResult:
        """Envía un único listing a Airtable."""
        with self._resources.open_repository() as repo:
            if repo.get_record(listing_id) is None:
                raise NotFoundError("Listing", listing_id)
        return self._run_guarded(
            SyncDirection.LOCAL_TO_REMOTE,
            RunTrigger.SINGLE_RECORD,
            lambda engine: engine.sync_single_local_record(listing_id),
        )

    def run_scheduled(self) -> Optional[SyncRunResult]:
        """
        Callback del scheduler. Nunca lanza: un rechazo se registra y se
        espera al próximo tick.
        """
        try:
            return self.run(trigger=RunTrigger.SCHEDULED)
        except (SyncInProgressError, ConfigurationError) as e:
            logger.warning(f"Sync programado omitido: {e.message}")
            return None

    def cancel(self) -> bool:
        """Pide cancelar la corrida activa (se respeta entre registros)."""
        if self._state != OrchestratorState.RUNNING:
            return False
        self._cancel.set()
        logger.warning("Cancelación de sync solicitada")
        return True

    def _run_guarded(
        self,
        direction: SyncDirection,
        trigger: RunTrigger,
        action: EngineAction,
    ) -> SyncRunResult:
        with self._lock:
            if self._state == OrchestratorState.RUNNING:
                started = self._running_since.isoformat() if self._running_since else None
                raise SyncInProgressError(started_at=started)
            if not self._settings.is_active:
                raise ConfigurationError(
                    "La sincronización está deshabilitada o faltan credenciales de Airtable",
                    details={
                        "enabled": self._settings.enabled,
                        "configured": self._settings.is_configured,
                    },
                )
            self._state = OrchestratorState.RUNNING
            self._cancel.clear()
            self._running_since = self._clock()
            settings = self._settings

        try:
            with logger.contextualize(context=SYNC_LOG_CONTEXT):
                result = self._execute(settings, direction, trigger, action, self._running_since)
        finally:
            with self._lock:
                self._state = self._idle_state()
                self._running_since = None

        self._last_result = result
        self._record_history(result, settings)
        return result

    def _execute(
        self,
        settings: SyncSettings,
        direction: SyncDirection,
        trigger: RunTrigger,
        action: EngineAction,
        started_at: datetime,
    ) -> SyncRunResult:
        logger.info(f"Iniciando sync {direction.value} ({trigger.value})")
        stats = RunStatistics()
        error: Optional[str] = None

        try:
            with self._resources.open_engine(settings, self._cancel) as engine:
                stats = action(engine)
        except AppException as e:
            error = e.message
            logger.error(f"Sync {direction.value} falló: {e.message}")
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.exception(f"Error inesperado en sync {direction.value}: {e}")

        finished_at = self._clock()
        if error:
            status = RunStatus.ERROR
            message = f"Sincronización fallida: {error}"
        elif self._cancel.is_set():
            status = RunStatus.CANCELLED
            message = f"Sincronización cancelada: {stats.total_processed} registro(s) procesados"
        elif stats.errors:
            status = RunStatus.PARTIAL
            message = (
                f"Sincronización completada con {stats.errors} error(es): "
                f"{stats.total_processed} registro(s) procesados"
            )
        else:
            status = RunStatus.SUCCESS
            message = f"Sincronización completada: {stats.total_processed} registro(s) procesados"

        result = SyncRunResult(
            success=error is None,
            direction=direction,
            trigger=trigger,
            status=status,
            stats=stats,
            message=message,
            started_at=started_at,
            finished_at=finished_at,
            error=error,
        )
        if result.success:
            logger.success(f"{message} ({result.duration_s}s) {stats.as_dict()}")
        return result

    def _record_history(self, result: SyncRunResult, settings: SyncSettings) -> None:
        try:
            with self._resources.open_state_store() as store:
                store.append_history(SyncHistoryEntry.from_result(result), limit=settings.history_limit)
        except Exception as e:
            logger.error(f"No se pudo guardar el historial de sync: {e}")

    # ------------------------------------------------------------------
    # Operaciones sin corrida
    # ------------------------------------------------------------------

    def test_connection(self) -> ConnectionTestResult:
        """Llamada mínima de solo lectura (maxRecords=1). No modifica estado."""
        settings = self._settings
        if not settings.is_configured:
            return ConnectionTestResult(success=False, message="Faltan base_id o access_token de Airtable")

        remote = None
        try:
            remote = self._resources.remote_table(settings, timeout_s=CONNECTION_TEST_TIMEOUT_S)
            next(iter(remote.list_records(max_records=1, page_size=1)), None)
        except AppException as e:
            logger.warning(f"Test de conexión a Airtable falló: {e.message}")
            return ConnectionTestResult(
                success=False,
                message=e.message,
                status_code=e.details.get("remote_status"),
                attempts=remote.retry_stats.last_attempts if remote else 0,
            )
        return ConnectionTestResult(
            success=True,
            message=f"Conexión exitosa con Airtable (tabla '{settings.table_name}')",
            status_code=200,
            attempts=remote.retry_stats.last_attempts,
        )

    def status(self) -> dict[str, Any]:
        with self._resources.open_state_store() as store:
            checkpoint = store.get_checkpoint()
        settings = self._settings
        return {
            "state": self._state.value,
            "enabled": settings.enabled,
            "configured": settings.is_configured,
            "direction": settings.direction.value,
            "interval": settings.interval.value,
            "running_since": self._running_since.isoformat() if self._running_since else None,
            "last_remote_to_local_sync": (
                checkpoint.last_remote_to_local.isoformat() if checkpoint.last_remote_to_local else None
            ),
            "last_local_to_remote_sync": (
                checkpoint.last_local_to_remote.isoformat() if checkpoint.last_local_to_remote else None
            ),
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }

    def history(self, limit: Optional[int] = None) -> list[SyncHistoryEntry]:
        with self._resources.open_state_store() as store:
            return store.list_history(limit or self._settings.history_limit)

    def cleanup(self) -> dict[str, Any]:
        """Borra media huérfana y recorta el historial. Pensado para el job diario."""
        with self._resources.open_media(self._settings) as media:
            media_stats: CleanupStats = media.cleanup_orphans()
        with self._resources.open_state_store() as store:
            trimmed = store.trim_history(self._settings.history_limit)
        logger.info(f"Limpieza diaria: {media_stats}, historial recortado={trimmed}")
        return {
            "files_checked": media_stats.checked,
            "files_removed": media_stats.removed,
            "space_freed": media_stats.bytes_freed,
            "history_trimmed": trimmed,
        }

    def media_statistics(self) -> MediaStatistics:
        with self._resources.open_media(self._settings) as media:
            return media.statistics()

    def set_sync_enabled(self, listing_ids: Iterable[int], enabled: bool) -> int:
        """Habilita/deshabilita la sincronización de varios listings."""
        with self._resources.open_repository() as repo:
            changed = repo.set_sync_enabled(listing_ids, enabled)
            repo.commit()
        logger.info(f"Sync {'habilitado' if enabled else 'deshabilitado'} en {changed} listing(s)")
        return changed
