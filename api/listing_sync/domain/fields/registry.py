"""
Registro de mapeo de campos.

Se valida completo al construirse: un mapeo mal declarado es un error de
configuración que se reporta al arrancar, no a mitad de una corrida.
"""
from __future__ import annotations

from typing import Iterable, Iterator, Optional

from loguru import logger

from listing_sync.domain.fields.field_definition import FieldDefinition
from listing_sync.domain.fields.sanitizers import SANITIZERS, Sanitizer
from listing_sync.shared.constants.sync_constants import FieldCategory, FieldDirection
from listing_sync.shared.exceptions.sync import ConfigurationError


class UnknownFieldError(KeyError):
    """El id de campo no está declarado en el registro."""


class FieldMappingRegistry:
    """
    Tabla estática de FieldDefinition indexada por id estable.

    Args:
        definitions: Definiciones en orden de declaración
        known_calculations: Ids de cálculo que el puente de cálculos sabe ejecutar
    """

    def __init__(
        self,
        definitions: Iterable[FieldDefinition],
        *,
        known_calculations: Iterable[str],
    ) -> None:
        self._definitions: list[FieldDefinition] = list(definitions)
        self._known_calculations = frozenset(known_calculations)
        self._by_id: dict[str, FieldDefinition] = {}
        self._by_remote: dict[str, FieldDefinition] = {}

        self._validate()

        for definition in self._definitions:
            self._by_id[definition.field_id] = definition
            self._by_remote[definition.remote_name] = definition

        logger.debug(
            f"Registro de campos listo: {len(self._definitions)} campos, "
            f"{len(self._known_calculations)} cálculos conocidos"
        )

    def _validate(self) -> None:
        problems: list[str] = []
        seen_local: set[str] = set()
        seen_remote: set[str] = set()

        for d in self._definitions:
            if d.local_name in seen_local:
                problems.append(f"{d.local_name}: nombre local duplicado")
            if d.remote_name in seen_remote:
                problems.append(f"{d.local_name}: nombre remoto duplicado '{d.remote_name}'")
            seen_local.add(d.local_name)
            seen_remote.add(d.remote_name)

            if d.category == FieldCategory.MANUAL and not d.sanitizer:
                problems.append(f"{d.local_name}: campo MANUAL sin sanitizer")
            if d.sanitizer and d.sanitizer not in SANITIZERS:
                problems.append(f"{d.local_name}: sanitizer desconocido '{d.sanitizer}'")

            for calc_id in d.triggers:
                if calc_id not in self._known_calculations:
                    problems.append(f"{d.local_name}: trigger a cálculo desconocido '{calc_id}'")

            if (
                d.category == FieldCategory.CALCULATED_LOCAL
                and d.direction != FieldDirection.LOCAL_TO_REMOTE_ONLY
            ):
                problems.append(f"{d.local_name}: CALCULATED_LOCAL debe ser LOCAL_TO_REMOTE_ONLY")
            if (
                d.category == FieldCategory.CALCULATED_REMOTE
                and d.direction == FieldDirection.LOCAL_TO_REMOTE_ONLY
            ):
                problems.append(f"{d.local_name}: CALCULATED_REMOTE no puede ser LOCAL_TO_REMOTE_ONLY")

            if (
                d.min_value is not None
                and d.max_value is not None
                and d.min_value > d.max_value
            ):
                problems.append(f"{d.local_name}: min_value > max_value")
            if d.max_files is not None and d.max_files < 1:
                problems.append(f"{d.local_name}: max_files debe ser >= 1")
            if d.category != FieldCategory.MEDIA and d.max_files is not None:
                problems.append(f"{d.local_name}: max_files solo aplica a campos MEDIA")

        if problems:
            raise ConfigurationError(
                f"Mapeo de campos inválido ({len(problems)} problema(s))",
                details={"problems": problems},
            )

    def resolve(self, field_id: str) -> FieldDefinition:
        try:
            return self._by_id[field_id]
        except KeyError:
            raise UnknownFieldError(field_id) from None

    def by_remote_name(self, remote_name: str) -> Optional[FieldDefinition]:
        return self._by_remote.get(remote_name)

    def fields_by_category(self, category: FieldCategory) -> list[FieldDefinition]:
        return [d for d in self._definitions if d.category == category]

    def sanitizer_for(self, definition: FieldDefinition) -> Optional[Sanitizer]:
        return SANITIZERS[definition.sanitizer] if definition.sanitizer else None

    def all(self) -> list[FieldDefinition]:
        return list(self._definitions)

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)
