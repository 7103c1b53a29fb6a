"""
Interfaz del calculador de campos derivados.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol


class Calculator(Protocol):
    """
    Recalcula campos CALCULATED_LOCAL.

    Cada rutina recibe los valores actuales del listing y los previos a la
    corrida, y retorna solo los campos que deben escribirse.
    """

    @property
    def known_calculations(self) -> frozenset[str]: ...

    def calculate(
        self,
        calculation_id: str,
        current: Mapping[str, Any],
        previous: Mapping[str, Any],
    ) -> dict[str, Any]: ...
