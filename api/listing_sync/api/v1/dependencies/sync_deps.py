"""
Dependencias de la API de sincronización.
"""
from typing import Optional

from apscheduler.schedulers.base import BaseScheduler
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from listing_sync.application.use_cases.admin_use_cases import AdminUseCases
from listing_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from listing_sync.infrastructure.database.session import get_db


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """
    Orquestador único de la aplicación (creado en el startup).
    """
    return request.app.state.orchestrator


def get_scheduler(request: Request) -> Optional[BaseScheduler]:
    return getattr(request.app.state, "scheduler", None)


def get_admin_use_cases(db: Session = Depends(get_db)) -> AdminUseCases:
    """
    Dependencia para obtener los casos de uso de administración.
    """
    return AdminUseCases(db)
