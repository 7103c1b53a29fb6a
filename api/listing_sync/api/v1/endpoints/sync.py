"""
Endpoints para sincronizacion de listings con Airtable.

Las corridas y las consultas son sincronas (requests + SQLAlchemy): se
ejecutan en un thread separado para no bloquear el event loop.
"""
import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from listing_sync.api.v1.dependencies.sync_deps import get_orchestrator
from listing_sync.application.dto.sync_dto import (
    CancelResultDTO,
    ConnectionTestDTO,
    FieldMappingDTO,
    MediaCleanupDTO,
    MediaStatsDTO,
    SyncFlagRequestDTO,
    SyncFlagResultDTO,
    SyncHistoryEntryDTO,
    SyncRunResultDTO,
    SyncStatusDTO,
)
from listing_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from listing_sync.domain.entities.sync_types import SyncRunResult
from listing_sync.domain.fields.field_definition import FieldDefinition
from listing_sync.shared.constants.sync_constants import FieldCategory, RunTrigger, SyncDirection


router = APIRouter(prefix="/sync", tags=["Sync"])


def _result_dto(result: SyncRunResult) -> SyncRunResultDTO:
    return SyncRunResultDTO(**result.to_dict())


def _field_dto(definition: FieldDefinition) -> FieldMappingDTO:
    return FieldMappingDTO(
        field_id=definition.field_id,
        remote_name=definition.remote_name,
        category=definition.category.value,
        data_type=definition.data_type.value,
        direction=definition.direction.value,
        triggers=list(definition.triggers),
        allowed_values=list(definition.allowed_values),
        min_value=definition.min_value,
        max_value=definition.max_value,
        max_files=definition.max_files,
        description=definition.description,
    )


@router.post(
    "/run",
    response_model=SyncRunResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Ejecutar sincronizacion manual"
)
async def run_sync(
    direction: Optional[SyncDirection] = Query(
        default=None,
        description="Direccion a sincronizar. Si se omite, usa la configurada."
    ),
    full_sync: bool = Query(
        default=False,
        description="Si True, resetea el checkpoint y sincroniza todos los registros."
    ),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncRunResultDTO:
    """
    Ejecuta una corrida manual.

    - 400 si la sincronizacion esta deshabilitada o sin credenciales
    - 409 si ya hay una corrida en curso
    """
    result = await asyncio.to_thread(
        orchestrator.run, direction, RunTrigger.MANUAL, full_sync=full_sync
    )
    return _result_dto(result)


@router.post("/test-connection", response_model=ConnectionTestDTO, summary="Probar conexion con Airtable")
async def test_connection(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> ConnectionTestDTO:
    result = await asyncio.to_thread(orchestrator.test_connection)
    return ConnectionTestDTO(
        success=result.success,
        message=result.message,
        status_code=result.status_code,
        attempts=result.attempts,
    )


@router.get("/status", response_model=SyncStatusDTO, summary="Estado de la sincronizacion")
async def get_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> SyncStatusDTO:
    status_data = await asyncio.to_thread(orchestrator.status)
    return SyncStatusDTO(**status_data)


@router.get("/history", response_model=List[SyncHistoryEntryDTO], summary="Historial de corridas")
async def get_history(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> List[SyncHistoryEntryDTO]:
    entries = await asyncio.to_thread(orchestrator.history, limit)
    return [
        SyncHistoryEntryDTO(
            timestamp=entry.timestamp,
            direction=entry.direction.value,
            trigger=entry.trigger.value,
            status=entry.status.value,
            duration_s=entry.duration_s,
            records_processed=entry.records_processed,
            stats=entry.stats,
            error=entry.error,
        )
        for entry in entries
    ]


@router.post("/cancel", response_model=CancelResultDTO, summary="Cancelar la corrida en curso")
async def cancel_sync(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> CancelResultDTO:
    cancelled = orchestrator.cancel()
    message = "Cancelacion solicitada" if cancelled else "No hay sincronizacion en curso"
    return CancelResultDTO(cancelled=cancelled, message=message)


@router.post("/media/cleanup", response_model=MediaCleanupDTO, summary="Limpiar media huerfana")
async def cleanup_media(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> MediaCleanupDTO:
    result = await asyncio.to_thread(orchestrator.cleanup)
    return MediaCleanupDTO(**result)


@router.get("/media/stats", response_model=MediaStatsDTO, summary="Estadisticas de media sincronizada")
async def media_stats(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> MediaStatsDTO:
    stats = await asyncio.to_thread(orchestrator.media_statistics)
    return MediaStatsDTO(
        synced_files=stats.synced_files,
        total_size_bytes=stats.total_size_bytes,
        total_size_mb=stats.total_size_mb,
    )


@router.get("/fields", response_model=List[FieldMappingDTO], summary="Mapeo de campos")
async def list_fields(
    category: Optional[FieldCategory] = Query(default=None, description="Filtrar por categoria"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> List[FieldMappingDTO]:
    registry = orchestrator.registry
    definitions = registry.fields_by_category(category) if category else registry.all()
    return [_field_dto(d) for d in definitions]


@router.post("/listings/sync-flag", response_model=SyncFlagResultDTO, summary="Habilitar/deshabilitar sync por listing")
async def set_sync_flag(
    payload: SyncFlagRequestDTO,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncFlagResultDTO:
    updated = await asyncio.to_thread(
        orchestrator.set_sync_enabled, payload.listing_ids, payload.enabled
    )
    return SyncFlagResultDTO(updated=updated, enabled=payload.enabled)


@router.post("/listings/{listing_id}", response_model=SyncRunResultDTO, summary="Enviar un listing a Airtable")
async def sync_listing(
    listing_id: int,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncRunResultDTO:
    result = await asyncio.to_thread(orchestrator.sync_listing, listing_id)
    return _result_dto(result)
