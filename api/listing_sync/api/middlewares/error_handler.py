"""
Manejo centralizado de errores HTTP.

Las AppException (configuración, sync en curso, validación, no encontrado)
se serializan con su propio status_code; cualquier otra excepción termina
en un 500 genérico y queda en el log con su traceback.
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from listing_sync.shared.exceptions.base import AppException


class ErrorHandlerMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            # loguru interpreta llaves como formato
            error_msg = str(exc).replace("{", "{{").replace("}", "}}")
            logger.opt(exception=exc).error(
                f"Error no manejado en {request.method} {request.url.path}: {error_msg}"
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "INTERNAL_SERVER_ERROR",
                    "message": "Ha ocurrido un error interno del servidor",
                    "details": {}
                }
            )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(application: FastAPI) -> None:
    """Registra el handler de AppException y el middleware de errores inesperados."""
    application.add_exception_handler(AppException, app_exception_handler)
    application.add_middleware(ErrorHandlerMiddleware)
