"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from loguru import logger

from listing_sync.application.use_cases.admin_use_cases import AdminUseCases, sync_settings_from_env
from listing_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from listing_sync.core.config import settings
from listing_sync.infrastructure.database.session import SessionLocal, close_db, init_db
from listing_sync.infrastructure.scheduler.sync_scheduler import create_sync_scheduler
from listing_sync.infrastructure.sync_resources import DatabaseSyncResources
from listing_sync.shared.constants.sync_constants import SYNC_LOG_CONTEXT


def configure_logging() -> None:
    """Agrega los sinks de archivo: log general y log dedicado de sincronizacion."""
    logger.add(
        settings.LOG_FILE,
        rotation="500 MB",
        retention="10 days",
        level=settings.LOG_LEVEL
    )
    logger.add(
        settings.SYNC_LOG_FILE,
        rotation="50 MB",
        retention="30 days",
        level=settings.LOG_LEVEL,
        filter=lambda record: record["extra"].get("context") == SYNC_LOG_CONTEXT,
    )


def build_orchestrator() -> SyncOrchestrator:
    """
    Construye el orquestador con la configuracion de sync persistida
    (sembrada desde el entorno la primera vez).
    """
    db = SessionLocal()
    try:
        sync_settings = AdminUseCases(db).seed_default_settings(sync_settings_from_env(settings))
    finally:
        db.close()

    resources = DatabaseSyncResources(
        SessionLocal,
        media_dir=settings.MEDIA_DIR,
        public_base_url=settings.MEDIA_PUBLIC_BASE_URL,
        max_media_bytes=settings.MAX_MEDIA_BYTES,
        remote_timeout_s=settings.AIRTABLE_TIMEOUT_S,
        download_timeout_s=settings.MEDIA_DOWNLOAD_TIMEOUT_S,
    )
    return SyncOrchestrator(sync_settings, resources)


def _validate_config(orchestrator: SyncOrchestrator) -> None:
    """Valida que la configuracion critica este presente."""
    sync_settings = orchestrator.settings
    if not sync_settings.is_configured:
        logger.warning("CONFIG: Airtable sin base_id/token - la sincronizacion no correra")
    elif not sync_settings.enabled:
        logger.warning("CONFIG: sincronizacion con Airtable deshabilitada")


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            # Inicializar base de datos (crea tablas si no existen)
            init_db()
            logger.info("Base de datos inicializada")

            configure_logging()

            orchestrator = build_orchestrator()
            app.state.orchestrator = orchestrator
            _validate_config(orchestrator)

            app.state.scheduler = None
            if settings.SYNC_SCHEDULER_ENABLED:
                scheduler = create_sync_scheduler(orchestrator)
                scheduler.start()
                app.state.scheduler = scheduler
                logger.info("Scheduler de sincronizacion iniciado")

            logger.success("Aplicacion iniciada correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")

        orchestrator = getattr(app.state, "orchestrator", None)
        if orchestrator is not None:
            orchestrator.cancel()

        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler de sincronizacion detenido")

        # Cerrar conexiones de base de datos
        close_db()
        logger.info("Conexiones de base de datos cerradas")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Ciclo de vida de la aplicacion: startup al entrar, shutdown al salir."""
    await startup_handler(app)()
    yield
    await shutdown_handler(app)()
