"""
Punto de entrada del servicio de sincronización de listings con Airtable.

Expone la API REST de sync/administración y arranca (via lifespan) el
orquestador y el scheduler de corridas periódicas.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from listing_sync.api.middlewares.error_handler import register_error_handlers
from listing_sync.api.v1.router import api_router
from listing_sync.core.config import get_cors_origins, settings
from listing_sync.core.events import lifespan


def create_application() -> FastAPI:
    """Construye la app FastAPI con CORS, manejo de errores y rutas v1."""
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Sincronización bidireccional de listings con Airtable",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(application)
    application.include_router(api_router, prefix="/api")

    @application.get("/health", tags=["Health"])
    async def health_check(request: Request):
        orchestrator = getattr(request.app.state, "orchestrator", None)
        return {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "sync_state": orchestrator.state.value if orchestrator else None,
        }

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
