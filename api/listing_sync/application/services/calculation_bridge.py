"""
Puente entre cambios de campos MANUAL y el calculador de campos derivados.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from loguru import logger

from listing_sync.application.interfaces.calculator import Calculator
from listing_sync.domain.entities.sync_types import RunStatistics


class CalculationTriggerBridge:
    """
    Dedup de ids de cálculo y ejecución de las rutinas del calculador.

    Las rutinas se ejecutan en el orden en que se pidieron; cada una ve los
    valores escritos por las anteriores.
    """

    def __init__(self, calculator: Calculator) -> None:
        self._calculator = calculator

    @property
    def known_ids(self) -> frozenset[str]:
        return self._calculator.known_calculations

    def trigger(
        self,
        entity_id: Any,
        derived_field_ids: Iterable[str],
        *,
        current: Mapping[str, Any],
        previous: Mapping[str, Any],
        stats: RunStatistics,
    ) -> dict[str, Any]:
        """
        Recalcula los campos derivados pedidos.

        Returns:
            Valores calculados (solo los que las rutinas retornaron)
        """
        requested = list(dict.fromkeys(derived_field_ids))
        stats.calculations_triggered += len(requested)

        values = dict(current)
        updates: dict[str, Any] = {}
        for calc_id in requested:
            if calc_id not in self.known_ids:
                logger.warning(f"Cálculo desconocido '{calc_id}' para listing {entity_id}; se omite")
                continue
            try:
                result = self._calculator.calculate(calc_id, values, previous)
            except Exception as e:
                stats.errors += 1
                logger.error(f"Error calculando '{calc_id}' para listing {entity_id}: {e}")
                continue
            values.update(result)
            updates.update(result)

        if updates:
            logger.debug(f"Listing {entity_id}: recalculados {sorted(updates)}")
        return updates
