"""
Fábrica de colaboradores por corrida.

Cada corrida abre su propia sesión de base de datos y su propio cliente de
Airtable con la configuración vigente; el orquestador no conoce ni
SQLAlchemy ni requests.
"""

from __future__ import annotations

import threading
from typing import ContextManager, Protocol

from listing_sync.application.interfaces.local_content_repository import LocalContentRepository
from listing_sync.application.interfaces.remote_table_api import RemoteTableApi
from listing_sync.application.interfaces.sync_state_store import SyncStateStore
from listing_sync.application.services.media_reconciler import MediaReconciler
from listing_sync.application.services.sync_engine import SyncEngine
from listing_sync.domain.entities.sync_settings import SyncSettings
from listing_sync.domain.fields.registry import FieldMappingRegistry


class SyncResources(Protocol):

    @property
    def registry(self) -> FieldMappingRegistry: ...

    def open_engine(self, settings: SyncSettings, cancel_event: threading.Event) -> ContextManager[SyncEngine]: ...

    def open_media(self, settings: SyncSettings) -> ContextManager[MediaReconciler]: ...

    def open_state_store(self) -> ContextManager[SyncStateStore]: ...

    def open_repository(self) -> ContextManager[LocalContentRepository]: ...

    def remote_table(self, settings: SyncSettings, *, timeout_s: float) -> RemoteTableApi:
        """Cliente de la tabla remota. Lanza ConfigurationError si faltan credenciales."""
