"""
Configuración de fixtures para pytest.
"""
from __future__ import annotations

import io
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from listing_sync.application.interfaces.media_downloader import DownloadedFile
from listing_sync.application.services.calculation_bridge import CalculationTriggerBridge
from listing_sync.application.services.media_reconciler import MediaReconciler
from listing_sync.application.services.sync_engine import SyncEngine
from listing_sync.domain.entities.sync_settings import SyncSettings
from listing_sync.domain.entities.sync_types import RemoteRecord
from listing_sync.infrastructure.calculations.listing_calculator import ListingCalculator
from listing_sync.infrastructure.database.session import Base
from listing_sync.infrastructure.media.file_storage import LocalMediaStorage
from listing_sync.infrastructure.media.image_inspector import inspect_image
from listing_sync.infrastructure.repositories.listing_repository import ListingRepository
from listing_sync.infrastructure.repositories.sync_state_repository import SyncStateRepository
from listing_sync.infrastructure.sync_resources import build_listing_registry
from listing_sync.shared.exceptions.sync import NotFoundError, TransportError
from listing_sync.shared.utils.datetime_utils import utc_now
from listing_sync.shared.utils.retry import RetryStats


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite://"


def make_png(width: int = 4, height: int = 3, color: str = "red") -> bytes:
    """PNG válido generado con Pillow."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


# ----------------------------------------------------------------------
# Dobles de prueba
# ----------------------------------------------------------------------


class InMemoryRemoteTable:
    """
    Tabla remota en memoria con la misma interfaz que AirtableClient.

    Cada escritura marca el registro con la hora actual; las fórmulas de
    "modificado desde" se resuelven contra esa marca (inclusive).
    """

    def __init__(self) -> None:
        self.records: Dict[str, Dict[str, Any]] = {}
        self.modified: Dict[str, datetime] = {}
        self.updates: List[tuple] = []
        self.creates: List[Dict[str, Any]] = []
        self.failing_updates: set = set()
        self.list_error: Optional[Exception] = None
        self.retry_stats = RetryStats()
        self._formulas: Dict[str, datetime] = {}
        self._next_id = 1

    def add(self, fields: Dict[str, Any], record_id: Optional[str] = None, *, modified: Optional[datetime] = None) -> str:
        record_id = record_id or self._new_id()
        self.records[record_id] = dict(fields)
        self.modified[record_id] = modified or utc_now()
        return record_id

    def touch(self, record_id: str, **fields: Any) -> None:
        self.records[record_id].update(fields)
        self.modified[record_id] = utc_now()

    def _new_id(self) -> str:
        record_id = f"rec{self._next_id:05d}"
        self._next_id += 1
        return record_id

    def modified_since_formula(self, since: datetime) -> str:
        formula = f"SINCE({since.isoformat()})"
        self._formulas[formula] = since
        return formula

    def list_records(
        self,
        *,
        filter_formula: Optional[str] = None,
        page_size: int = 100,
        max_records: Optional[int] = None,
    ) -> Iterator[RemoteRecord]:
        if self.list_error is not None:
            raise self.list_error
        self.retry_stats.record(1)
        since = self._formulas.get(filter_formula) if filter_formula else None
        ids = [rid for rid in self.records if since is None or self.modified[rid] >= since]
        if max_records is not None:
            ids = ids[:max_records]
        for rid in ids:
            yield RemoteRecord(record_id=rid, fields=dict(self.records[rid]))

    def create_record(self, fields: Dict[str, Any]) -> str:
        self.retry_stats.record(1)
        self.creates.append(dict(fields))
        return self.add(fields)

    def update_record(self, record_id: str, fields: Dict[str, Any]) -> None:
        self.retry_stats.record(1)
        if record_id in self.failing_updates:
            raise TransportError(f"Airtable PATCH falló para {record_id}", status_code=503, attempts=4)
        if record_id not in self.records:
            raise NotFoundError("Airtable record", record_id)
        self.updates.append((record_id, dict(fields)))
        self.touch(record_id, **fields)


class StubDownloader:
    """Descargador que escribe bytes fijos por URL en archivos temporales reales."""

    def __init__(self, temp_dir: str) -> None:
        self.temp_dir = temp_dir
        self.content: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.created_paths: List[str] = []

    def download(self, url: str, *, max_bytes: int) -> DownloadedFile:
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        data = self.content.get(url, make_png())
        fd, path = tempfile.mkstemp(prefix="stub_media_", dir=self.temp_dir)
        with os.fdopen(fd, "wb") as out:
            out.write(data)
        self.created_paths.append(path)
        return DownloadedFile(path=path, byte_size=len(data), content_type=self.content_types.get(url))


class FakeSyncResources:
    """SyncResources sobre la base de pruebas y dobles de red."""

    def __init__(self, session_factory, remote, downloader, media_dir: str) -> None:
        self.session_factory = session_factory
        self.remote = remote
        self.downloader = downloader
        self.media_dir = media_dir
        self.calculator = ListingCalculator()
        self._registry = build_listing_registry(self.calculator)

    @property
    def registry(self):
        return self._registry

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    def _media(self, repository) -> MediaReconciler:
        return MediaReconciler(
            repository,
            self.downloader,
            LocalMediaStorage(self.media_dir, "/media"),
            inspect_image=inspect_image,
        )

    @contextmanager
    def open_engine(self, settings: SyncSettings, cancel_event: threading.Event):
        with self._session() as session:
            repository = ListingRepository(session)
            yield SyncEngine(
                settings=settings,
                registry=self._registry,
                remote=self.remote,
                repository=repository,
                media=self._media(repository),
                calculations=CalculationTriggerBridge(self.calculator),
                state_store=SyncStateRepository(session),
                cancel_event=cancel_event,
            )

    @contextmanager
    def open_media(self, settings: SyncSettings):
        with self._session() as session:
            yield self._media(ListingRepository(session))

    @contextmanager
    def open_state_store(self):
        with self._session() as session:
            yield SyncStateRepository(session)

    @contextmanager
    def open_repository(self):
        with self._session() as session:
            yield ListingRepository(session)

    def remote_table(self, settings: SyncSettings, *, timeout_s: float):
        return self.remote


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture(scope="function")
def session_factory() -> Iterator[sessionmaker]:
    """
    Base SQLite en memoria compartida entre sesiones (StaticPool).
    Se crea de cero para cada test.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings(
        enabled=True,
        base_id="appTEST",
        table_name="Listings",
        access_token="patTESTTOKEN1234",
        batch_size=50,
    )


@pytest.fixture
def remote_table() -> InMemoryRemoteTable:
    return InMemoryRemoteTable()


@pytest.fixture
def downloader(tmp_path) -> StubDownloader:
    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    return StubDownloader(str(temp_dir))


@pytest.fixture
def media_dir(tmp_path) -> str:
    path = tmp_path / "media"
    path.mkdir()
    return str(path)


@pytest.fixture
def calculator() -> ListingCalculator:
    return ListingCalculator()


@pytest.fixture
def registry(calculator):
    return build_listing_registry(calculator)


@pytest.fixture
def make_engine(db_session, remote_table, downloader, media_dir, registry, calculator, sync_settings):
    """Fábrica de SyncEngine sobre la sesión de pruebas."""

    def _make(settings: Optional[SyncSettings] = None, **overrides: Any) -> SyncEngine:
        repository = ListingRepository(db_session)
        media = MediaReconciler(
            repository,
            downloader,
            LocalMediaStorage(media_dir, "/media"),
            inspect_image=inspect_image,
        )
        kwargs: Dict[str, Any] = dict(
            settings=settings or sync_settings,
            registry=registry,
            remote=remote_table,
            repository=repository,
            media=media,
            calculations=CalculationTriggerBridge(calculator),
            state_store=SyncStateRepository(db_session),
        )
        kwargs.update(overrides)
        return SyncEngine(**kwargs)

    return _make


@pytest.fixture
def fake_resources(session_factory, remote_table, downloader, media_dir) -> FakeSyncResources:
    return FakeSyncResources(session_factory, remote_table, downloader, media_dir)


@pytest.fixture
def ticking_clock():
    """Reloj que avanza un segundo por llamada, a partir de una hora fija."""
    state = {"now": datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)}

    def _clock() -> datetime:
        state["now"] = state["now"] + timedelta(seconds=1)
        return state["now"]

    return _clock


@pytest.fixture
def png_factory():
    """Generador de PNG válidos: png_factory(ancho, alto)."""
    return make_png
