"""
Implementación de SyncResources sobre SQLAlchemy, requests y disco local.

Arma, para cada corrida, un SyncEngine con sesión propia y un cliente de
Airtable construido con la configuración vigente.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import requests
from sqlalchemy.orm import Session

from listing_sync.application.services.calculation_bridge import CalculationTriggerBridge
from listing_sync.application.services.media_reconciler import MediaReconciler
from listing_sync.application.services.sync_engine import SyncEngine
from listing_sync.domain.entities.sync_settings import SyncSettings
from listing_sync.domain.fields.listing_fields import build_listing_fields
from listing_sync.domain.fields.registry import FieldMappingRegistry
from listing_sync.infrastructure.calculations.listing_calculator import ListingCalculator
from listing_sync.infrastructure.external.airtable.airtable_client import (
    AirtableClient,
    AirtableCredentials,
)
from listing_sync.infrastructure.media.file_storage import LocalMediaStorage
from listing_sync.infrastructure.media.http_downloader import HttpMediaDownloader
from listing_sync.infrastructure.media.image_inspector import inspect_image
from listing_sync.infrastructure.repositories.listing_repository import ListingRepository
from listing_sync.infrastructure.repositories.sync_state_repository import SyncStateRepository
from listing_sync.shared.utils.retry import RetryPolicy


def build_listing_registry(calculator: ListingCalculator) -> FieldMappingRegistry:
    """Registro de campos de Listings validado contra las rutinas del calculador."""
    return FieldMappingRegistry(build_listing_fields(), known_calculations=calculator.known_calculations)


class DatabaseSyncResources:
    """
    Args:
        session_factory: sessionmaker de SQLAlchemy
        media_dir / public_base_url: destino de los adjuntos descargados
        http_session: sesión requests compartida (inyectable para tests)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        media_dir: str,
        public_base_url: str,
        max_media_bytes: int,
        remote_timeout_s: float = 30,
        download_timeout_s: float = 60,
        calculator: Optional[ListingCalculator] = None,
        http_session: Optional[requests.Session] = None,
    ) -> None:
        self._session_factory = session_factory
        self._media_dir = media_dir
        self._public_base_url = public_base_url
        self._max_media_bytes = max_media_bytes
        self._remote_timeout_s = remote_timeout_s
        self._download_timeout_s = download_timeout_s
        self._calculator = calculator or ListingCalculator()
        self._http_session = http_session
        self._registry = build_listing_registry(self._calculator)

    @property
    def registry(self) -> FieldMappingRegistry:
        return self._registry

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def remote_table(self, settings: SyncSettings, *, timeout_s: Optional[float] = None) -> AirtableClient:
        return AirtableClient(
            AirtableCredentials(token=settings.access_token, base_id=settings.base_id),
            settings.table_name,
            session=self._http_session,
            timeout_s=timeout_s or self._remote_timeout_s,
            retry_policy=RetryPolicy(max_retries=settings.max_retries),
        )

    def _media(self, repository: ListingRepository, settings: SyncSettings) -> MediaReconciler:
        downloader = HttpMediaDownloader(
            session=self._http_session,
            timeout_s=self._download_timeout_s,
            retry_policy=RetryPolicy(max_retries=settings.max_retries),
        )
        return MediaReconciler(
            repository,
            downloader,
            LocalMediaStorage(self._media_dir, self._public_base_url),
            inspect_image=inspect_image,
            max_bytes=self._max_media_bytes,
        )

    @contextmanager
    def open_engine(self, settings: SyncSettings, cancel_event: threading.Event) -> Iterator[SyncEngine]:
        # El cliente se arma antes de abrir la sesión: sin credenciales falla sin tocar la base
        remote = self.remote_table(settings)
        with self._session() as session:
            repository = ListingRepository(session)
            yield SyncEngine(
                settings=settings,
                registry=self._registry,
                remote=remote,
                repository=repository,
                media=self._media(repository, settings),
                calculations=CalculationTriggerBridge(self._calculator),
                state_store=SyncStateRepository(session),
                cancel_event=cancel_event,
            )

    @contextmanager
    def open_media(self, settings: SyncSettings) -> Iterator[MediaReconciler]:
        with self._session() as session:
            yield self._media(ListingRepository(session), settings)

    @contextmanager
    def open_state_store(self) -> Iterator[SyncStateRepository]:
        with self._session() as session:
            yield SyncStateRepository(session)

    @contextmanager
    def open_repository(self) -> Iterator[ListingRepository]:
        with self._session() as session:
            yield ListingRepository(session)
