"""
Endpoints para administración del sistema.
"""
from typing import Any, Dict, Optional

from apscheduler.schedulers.base import BaseScheduler
from fastapi import APIRouter, Depends

from listing_sync.api.v1.dependencies.sync_deps import (
    get_admin_use_cases,
    get_orchestrator,
    get_scheduler,
)
from listing_sync.application.dto.sync_dto import SyncSettingsDTO, SyncSettingsUpdateDTO
from listing_sync.application.use_cases.admin_use_cases import AdminUseCases
from listing_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from listing_sync.infrastructure.scheduler.sync_scheduler import reschedule_sync_job

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/settings")
async def get_settings(use_cases: AdminUseCases = Depends(get_admin_use_cases)) -> Dict[str, Any]:
    """
    Obtiene todas las configuraciones del sistema.
    """
    return use_cases.get_system_settings()


@router.get("/sync-settings", response_model=SyncSettingsDTO)
async def get_sync_settings(
    use_cases: AdminUseCases = Depends(get_admin_use_cases),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncSettingsDTO:
    """
    Configuración de sincronización vigente (token enmascarado).
    """
    current = use_cases.get_sync_settings(default=orchestrator.settings)
    return SyncSettingsDTO(**current.to_dict(mask_token=True))


@router.put("/sync-settings", response_model=SyncSettingsDTO)
async def update_sync_settings(
    payload: SyncSettingsUpdateDTO,
    use_cases: AdminUseCases = Depends(get_admin_use_cases),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    scheduler: Optional[BaseScheduler] = Depends(get_scheduler),
) -> SyncSettingsDTO:
    """
    Actualiza la configuración de sincronización, la aplica al orquestador
    y reprograma el job si cambió el intervalo.
    """
    changes = payload.model_dump(exclude_none=True)
    previous = orchestrator.settings
    updated = use_cases.update_sync_settings(previous, changes)
    orchestrator.apply_settings(updated)

    if updated.interval != previous.interval:
        reschedule_sync_job(scheduler, updated.interval)

    return SyncSettingsDTO(**updated.to_dict(mask_token=True))
