"""
Jobs periódicos de sincronización (APScheduler).

- airtable_sync: corre el orquestador cada `interval` horas.
- airtable_sync_cleanup: limpieza diaria de media huérfana e historial.
"""
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from listing_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from listing_sync.shared.constants.sync_constants import CLEANUP_JOB_ID, SYNC_JOB_ID, SyncInterval

CLEANUP_INTERVAL_HOURS = 24


def _run_cleanup(orchestrator: SyncOrchestrator) -> None:
    try:
        orchestrator.cleanup()
    except Exception as e:
        logger.error(f"Error en la limpieza diaria de sync: {e}")


def create_sync_scheduler(
    orchestrator: SyncOrchestrator,
    scheduler: Optional[BackgroundScheduler] = None,
) -> BackgroundScheduler:
    """
    Registra los jobs de sync en un BackgroundScheduler (sin arrancarlo).

    Los jobs se registran aunque la sincronización esté deshabilitada: el
    orquestador rechaza la corrida y el job queda listo para cuando se active.
    """
    scheduler = scheduler or BackgroundScheduler(timezone="UTC")
    interval = orchestrator.settings.interval

    scheduler.add_job(
        orchestrator.run_scheduled,
        trigger=IntervalTrigger(hours=interval.hours),
        id=SYNC_JOB_ID,
        name="Airtable listings sync",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        _run_cleanup,
        trigger=IntervalTrigger(hours=CLEANUP_INTERVAL_HOURS),
        args=[orchestrator],
        id=CLEANUP_JOB_ID,
        name="Airtable sync cleanup",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    logger.info(f"Jobs de sync registrados: {SYNC_JOB_ID} cada {interval.hours}h, {CLEANUP_JOB_ID} diario")
    return scheduler


def reschedule_sync_job(scheduler: Optional[BackgroundScheduler], interval: SyncInterval) -> bool:
    """
    Aplica un nuevo intervalo al job activo.

    Returns:
        bool: False si no hay scheduler o el job no existe
    """
    if scheduler is None or scheduler.get_job(SYNC_JOB_ID) is None:
        return False
    scheduler.reschedule_job(SYNC_JOB_ID, trigger=IntervalTrigger(hours=interval.hours))
    logger.info(f"Job {SYNC_JOB_ID} reprogramado cada {interval.hours}h")
    return True
