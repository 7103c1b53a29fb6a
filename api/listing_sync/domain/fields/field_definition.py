"""
Definición tipada de un campo sincronizado.

Cada campo tiene un id estable (el nombre local), su nombre en Airtable,
una categoría (exactamente una) y una dirección. La categoría decide qué
lado es autoritativo:

- MANUAL: editable en ambos lados; last-writer-wins por campo.
- CALCULATED_LOCAL: lo calcula el servicio; nunca se lee desde Airtable.
- CALCULATED_REMOTE: lo calcula Airtable (fórmulas); solo se refleja localmente.
- MEDIA: adjuntos, delegados al reconciliador de media.
- READ_ONLY: metadatos remotos que no se sincronizan.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from listing_sync.shared.constants.sync_constants import (
    DataType,
    FieldCategory,
    FieldDirection,
)


@dataclass(frozen=True)
class FieldDefinition:
    """Declaración estática de un atributo sincronizado."""

    local_name: str
    remote_name: str
    category: FieldCategory
    data_type: DataType
    direction: FieldDirection = FieldDirection.BIDIRECTIONAL
    sanitizer: Optional[str] = None
    allowed_values: tuple[str, ...] = ()
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    triggers: tuple[str, ...] = ()
    max_files: Optional[int] = None
    description: str = ""

    @property
    def field_id(self) -> str:
        return self.local_name

    @property
    def accepts_remote_input(self) -> bool:
        """True si el valor remoto puede escribirse localmente."""
        if self.category in (FieldCategory.CALCULATED_LOCAL, FieldCategory.READ_ONLY):
            return False
        return self.direction != FieldDirection.LOCAL_TO_REMOTE_ONLY

    @property
    def pushes_to_remote(self) -> bool:
        """True si el valor local se envía a Airtable."""
        if self.category in (FieldCategory.CALCULATED_REMOTE, FieldCategory.READ_ONLY):
            return False
        return self.direction != FieldDirection.REMOTE_TO_LOCAL_ONLY
