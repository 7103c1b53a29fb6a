"""
Repositorio para gestionar configuraciones del sistema.
"""
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy import select
from loguru import logger

from listing_sync.infrastructure.database.models import SystemSettingsModel


class SystemSettingsRepository:
    """
    Gestiona la tabla system_settings.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_value(self, key: str, default: Any = None) -> Any:
        """
        Obtiene el valor de una configuración por su clave.
        """
        query = select(SystemSettingsModel).where(SystemSettingsModel.key == key)
        setting = self.db.execute(query).scalar_one_or_none()
        return setting.value if setting else default

    def get_all(self) -> Dict[str, Any]:
        """
        Obtiene todas las configuraciones como un diccionario.
        """
        rows = self.db.execute(select(SystemSettingsModel)).scalars().all()
        return {r.key: r.value for r in rows}

    def set_value(self, key: str, value: Any, description: Optional[str] = None) -> bool:
        """
        Crea o actualiza una configuración.
        """
        existing = self.db.get(SystemSettingsModel, key)

        if existing:
            existing.value = value
            if description:
                existing.description = description
        else:
            self.db.add(SystemSettingsModel(key=key, value=value, description=description))

        self.db.flush()
        logger.info(f"Configuración '{key}' actualizada")
        return True
