"""
Casos de uso para administración del sistema.
"""
from typing import Dict, Any
from sqlalchemy.orm import Session
from loguru import logger

from listing_sync.core.config import Settings
from listing_sync.domain.entities.sync_settings import SyncSettings
from listing_sync.infrastructure.repositories.system_settings_repository import SystemSettingsRepository
from listing_sync.shared.constants.sync_constants import SYNC_SETTINGS_KEY
from listing_sync.shared.exceptions.sync import ValidationError

SYNC_SETTINGS_DESCRIPTION = "Configuración de la sincronización de listings con Airtable."


def sync_settings_from_env(app_settings: Settings) -> SyncSettings:
    """Configuración de sync inicial a partir de las variables de entorno."""
    return SyncSettings.from_dict({
        "enabled": app_settings.SYNC_ENABLED,
        "base_id": app_settings.AIRTABLE_BASE_ID,
        "table_name": app_settings.AIRTABLE_TABLE_NAME,
        "access_token": app_settings.AIRTABLE_TOKEN,
        "direction": app_settings.SYNC_DIRECTION,
        "interval": app_settings.SYNC_INTERVAL,
        "media_sync_enabled": app_settings.SYNC_MEDIA_ENABLED,
        "batch_size": app_settings.SYNC_BATCH_SIZE,
        "max_retries": app_settings.SYNC_MAX_RETRIES,
        "history_limit": app_settings.SYNC_HISTORY_LIMIT,
    })


class AdminUseCases:
    """
    Gestiona configuraciones globales del sistema.
    """

    def __init__(self, db: Session):
        self.db = db
        self.settings_repo = SystemSettingsRepository(db)

    def get_system_settings(self) -> Dict[str, Any]:
        """
        Retorna todas las configuraciones actuales (el token de Airtable enmascarado).
        """
        values = self.settings_repo.get_all()
        if SYNC_SETTINGS_KEY in values and values[SYNC_SETTINGS_KEY]:
            values[SYNC_SETTINGS_KEY] = SyncSettings.from_dict(values[SYNC_SETTINGS_KEY]).to_dict(mask_token=True)
        return values

    def get_sync_settings(self, default: SyncSettings) -> SyncSettings:
        """Configuración de sync persistida, o `default` si todavía no existe."""
        data = self.settings_repo.get_value(SYNC_SETTINGS_KEY)
        if not data:
            return default
        return SyncSettings.from_dict(data)

    def update_sync_settings(self, current: SyncSettings, changes: Dict[str, Any]) -> SyncSettings:
        """
        Aplica cambios parciales y los persiste.

        Raises:
            ValidationError: si algún valor es inválido
        """
        try:
            updated = current.with_changes(**changes)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Configuración de sync inválida: {e}") from e

        for name in ("batch_size", "history_limit"):
            if getattr(updated, name) < 1:
                raise ValidationError(f"{name} debe ser >= 1", field=name, value=getattr(updated, name))
        if updated.max_retries < 0:
            raise ValidationError("max_retries debe ser >= 0", field="max_retries", value=updated.max_retries)

        self.settings_repo.set_value(SYNC_SETTINGS_KEY, updated.to_dict(), SYNC_SETTINGS_DESCRIPTION)
        self.db.commit()
        logger.info(f"Configuración de sync actualizada: {sorted(changes)}")
        return updated

    def seed_default_settings(self, defaults: SyncSettings) -> SyncSettings:
        """
        Puebla la configuración de sync si no existe y retorna la vigente.
        """
        data = self.settings_repo.get_value(SYNC_SETTINGS_KEY)
        if data:
            return SyncSettings.from_dict(data)

        self.settings_repo.set_value(SYNC_SETTINGS_KEY, defaults.to_dict(), SYNC_SETTINGS_DESCRIPTION)
        self.db.commit()
        logger.info("Configuración de sync inicializada desde variables de entorno")
        return defaults
