"""
Tests unitarios de los endpoints de sincronización y administración.

Verifica el contrato HTTP:
- Las corridas devuelven el SyncRunResult serializado.
- Los errores del dominio se mapean a 400 / 404 / 409.
- La configuración de sync se expone con el token enmascarado y al
  actualizarse se aplica al orquestador y al scheduler.
"""
from __future__ import annotations

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from httpx import ASGITransport, AsyncClient

from listing_sync.api.v1.dependencies.sync_deps import (
    get_admin_use_cases,
    get_orchestrator,
    get_scheduler,
)
from listing_sync.application.use_cases.admin_use_cases import AdminUseCases
from listing_sync.application.use_cases.sync_orchestrator import SyncOrchestrator
from listing_sync.infrastructure.scheduler.sync_scheduler import create_sync_scheduler
from listing_sync.shared.constants.sync_constants import SYNC_JOB_ID, SyncInterval
from listing_sync.shared.exceptions.sync import SyncInProgressError


@pytest.fixture
def orchestrator(sync_settings, fake_resources) -> SyncOrchestrator:
    return SyncOrchestrator(sync_settings, fake_resources)


@pytest.fixture
def scheduler(orchestrator) -> BackgroundScheduler:
    return create_sync_scheduler(orchestrator, BackgroundScheduler(timezone="UTC"))


@pytest.fixture
def app_with_orchestrator(orchestrator, scheduler, db_session):
    """Crea la app FastAPI con el orquestador de pruebas via dependency_overrides."""
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    app.dependency_overrides[get_admin_use_cases] = lambda: AdminUseCases(db_session)
    yield app
    app.dependency_overrides.clear()


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_run_returns_result(app_with_orchestrator, remote_table) -> None:
    remote_table.add({"Property Name": "Casa", "Bedrooms": 3})

    async with _client(app_with_orchestrator) as client:
        response = await client.post("/api/v1/sync/run", params={"direction": "airtable_to_local"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "success"
    assert data["direction"] == "airtable_to_local"
    assert data["trigger"] == "manual"
    assert data["stats"]["created"] == 1


@pytest.mark.asyncio
async def test_run_rejects_unknown_direction(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        response = await client.post("/api/v1/sync/run", params={"direction": "sideways"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_run_when_disabled_returns_400(app_with_orchestrator, orchestrator, sync_settings) -> None:
    orchestrator.apply_settings(sync_settings.with_changes(enabled=False))

    async with _client(app_with_orchestrator) as client:
        response = await client.post("/api/v1/sync/run")

    assert response.status_code == 400
    assert response.json()["error"] == "SYNC_CONFIGURATION_ERROR"


@pytest.mark.asyncio
async def test_run_while_running_returns_409() -> None:
    from main import create_application
    busy = MagicMock()
    busy.run.side_effect = SyncInProgressError(started_at="2026-01-01T12:00:00+00:00")
    app = create_application()
    app.dependency_overrides[get_orchestrator] = lambda: busy

    async with _client(app) as client:
        response = await client.post("/api/v1/sync/run")

    assert response.status_code == 409
    body = response.json()
    assert body["message"] == "sync already in progress"
    assert body["details"]["started_at"] == "2026-01-01T12:00:00+00:00"


@pytest.mark.asyncio
async def test_status_history_and_cancel(app_with_orchestrator, orchestrator) -> None:
    orchestrator.run()

    async with _client(app_with_orchestrator) as client:
        status_response = await client.get("/api/v1/sync/status")
        history_response = await client.get("/api/v1/sync/history", params={"limit": 5})
        cancel_response = await client.post("/api/v1/sync/cancel")

    assert status_response.status_code == 200
    assert status_response.json()["state"] == "idle"
    assert status_response.json()["last_result"]["status"] == "success"

    history = history_response.json()
    assert len(history) == 1
    assert history[0]["direction"] == "bidirectional"

    assert cancel_response.json() == {"cancelled": False, "message": "No hay sincronizacion en curso"}


@pytest.mark.asyncio
async def test_test_connection_endpoint(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        response = await client.post("/api/v1/sync/test-connection")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["status_code"] == 200


@pytest.mark.asyncio
async def test_fields_can_be_filtered_by_category(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        media = await client.get("/api/v1/sync/fields", params={"category": "media"})
        everything = await client.get("/api/v1/sync/fields")

    names = {f["field_id"]: f for f in media.json()}
    assert set(names) == {"featured_photo", "listing_photos", "floor_plan_images"}
    assert names["featured_photo"]["max_files"] == 1
    assert len(everything.json()) > len(names)


@pytest.mark.asyncio
async def test_media_endpoints(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        stats = await client.get("/api/v1/sync/media/stats")
        cleanup = await client.post("/api/v1/sync/media/cleanup")

    assert stats.json() == {"synced_files": 0, "total_size_bytes": 0, "total_size_mb": 0.0}
    assert cleanup.json()["files_removed"] == 0


@pytest.mark.asyncio
async def test_sync_flag_and_single_listing(app_with_orchestrator, fake_resources) -> None:
    with fake_resources.open_repository() as repo:
        listing_id = repo.create_record("Casa").record_id
        repo.commit()

    async with _client(app_with_orchestrator) as client:
        empty = await client.post("/api/v1/sync/listings/sync-flag", json={"listing_ids": [], "enabled": False})
        flag = await client.post(
            "/api/v1/sync/listings/sync-flag", json={"listing_ids": [listing_id], "enabled": True}
        )
        single = await client.post(f"/api/v1/sync/listings/{listing_id}")
        missing = await client.post("/api/v1/sync/listings/9999")

    assert empty.status_code == 422
    assert flag.json() == {"updated": 1, "enabled": True}
    assert single.status_code == 200
    assert single.json()["trigger"] == "single_record"
    assert missing.status_code == 404
    assert missing.json()["error"] == "ENTITY_NOT_FOUND"


@pytest.mark.asyncio
async def test_query_endpoints_run_orchestrator_off_the_event_loop(
    app_with_orchestrator, orchestrator, monkeypatch
) -> None:
    loop_thread = threading.get_ident()
    seen: dict[str, int] = {}

    def record_thread(name):
        original = getattr(orchestrator, name)

        def wrapper(*args, **kwargs):
            seen[name] = threading.get_ident()
            return original(*args, **kwargs)

        monkeypatch.setattr(orchestrator, name, wrapper)

    for name in ("status", "history", "media_statistics", "set_sync_enabled"):
        record_thread(name)

    async with _client(app_with_orchestrator) as client:
        await client.get("/api/v1/sync/status")
        await client.get("/api/v1/sync/history")
        await client.get("/api/v1/sync/media/stats")
        await client.post("/api/v1/sync/listings/sync-flag", json={"listing_ids": [1], "enabled": False})

    assert set(seen) == {"status", "history", "media_statistics", "set_sync_enabled"}
    assert loop_thread not in seen.values()


# ----------------------------------------------------------------------
# Administración
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sync_settings_are_masked(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        response = await client.get("/api/v1/admin/sync-settings")

    assert response.status_code == 200
    data = response.json()
    assert data["access_token"] == "****1234"
    assert data["base_id"] == "appTEST"


@pytest.mark.asyncio
async def test_update_sync_settings_applies_and_reschedules(app_with_orchestrator, orchestrator, scheduler) -> None:
    async with _client(app_with_orchestrator) as client:
        response = await client.put(
            "/api/v1/admin/sync-settings",
            json={"interval": "daily", "batch_size": 20},
        )
        settings_response = await client.get("/api/v1/admin/settings")

    assert response.status_code == 200
    assert response.json()["interval"] == "daily"
    assert orchestrator.settings.interval == SyncInterval.DAILY
    assert orchestrator.settings.batch_size == 20
    assert scheduler.get_job(SYNC_JOB_ID).trigger.interval == timedelta(hours=24)

    stored = settings_response.json()["airtable_sync_settings"]
    assert stored["batch_size"] == 20
    assert stored["access_token"] == "****1234"


@pytest.mark.asyncio
async def test_update_sync_settings_validates_ranges(app_with_orchestrator) -> None:
    async with _client(app_with_orchestrator) as client:
        response = await client.put("/api/v1/admin/sync-settings", json={"batch_size": 0})
    assert response.status_code == 422
