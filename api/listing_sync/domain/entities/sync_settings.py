"""
Configuración de sincronización en tiempo de ejecución.

Se pasa explícitamente al orquestador y al motor. Se persiste en
system_settings y se siembra desde las variables de entorno al arrancar.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from listing_sync.shared.constants.sync_constants import SyncDirection, SyncInterval


@dataclass(frozen=True)
class SyncSettings:
    enabled: bool = False
    base_id: str = ""
    table_name: str = "Listings"
    access_token: str = ""
    direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    interval: SyncInterval = SyncInterval.HOURLY
    media_sync_enabled: bool = True
    batch_size: int = 50
    max_retries: int = 3
    history_limit: int = 50

    @property
    def is_configured(self) -> bool:
        """Hay credenciales suficientes para hablar con Airtable."""
        return bool(self.base_id and self.access_token)

    @property
    def is_active(self) -> bool:
        return self.enabled and self.is_configured

    def with_changes(self, **changes: Any) -> "SyncSettings":
        return replace(self, **_coerce(changes))

    def to_dict(self, *, mask_token: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = value.value if hasattr(value, "value") else value
        if mask_token and self.access_token:
            data["access_token"] = "****" + self.access_token[-4:]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncSettings":
        known = {f.name for f in fields(cls)}
        return cls(**_coerce({k: v for k, v in data.items() if k in known}))


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    result = dict(values)
    if "direction" in result and not isinstance(result["direction"], SyncDirection):
        result["direction"] = SyncDirection(result["direction"])
    if "interval" in result and not isinstance(result["interval"], SyncInterval):
        result["interval"] = SyncInterval(result["interval"])
    return result
