from __future__ import annotations

from datetime import date

import pytest

from listing_sync.application.services.calculation_bridge import CalculationTriggerBridge
from listing_sync.domain.entities.sync_types import RunStatistics
from listing_sync.infrastructure.calculations.listing_calculator import ListingCalculator


@pytest.fixture
def fixed_calculator() -> ListingCalculator:
    return ListingCalculator(today=lambda: date(2026, 3, 15))


def test_price_per_sqft_rounds_to_two_decimals(fixed_calculator) -> None:
    result = fixed_calculator.calculate("price_per_sqft", {"price": 333333, "square_footage": 1000}, {})
    assert result == {"price_per_sqft": 333.33}


def test_price_per_sqft_clears_value_without_square_footage(fixed_calculator) -> None:
    assert fixed_calculator.calculate("price_per_sqft", {"price": 100}, {}) == {"price_per_sqft": None}


def test_days_on_market(fixed_calculator) -> None:
    assert fixed_calculator.days_on_market({"list_date": "2026-03-01"}, {}) == {"days_on_market": 14}
    assert fixed_calculator.days_on_market({"list_date": "2026-04-01"}, {}) == {"days_on_market": 0}
    assert fixed_calculator.days_on_market({}, {}) == {}


def test_bathrooms_and_lot_size(fixed_calculator) -> None:
    assert fixed_calculator.bathrooms_total({"bathrooms_full": 2, "bathrooms_half": 1}, {}) == {
        "bathrooms_total": 2.5
    }
    assert fixed_calculator.lot_sqft({"lot_size": 0.5}, {}) == {"lot_sqft": 21780}
    assert fixed_calculator.lot_sqft({"lot_size": 0}, {}) == {}


def test_status_change_date_only_when_status_changes(fixed_calculator) -> None:
    assert fixed_calculator.status_change_date(
        {"listing_status": "Pending"}, {"listing_status": "Active"}
    ) == {"status_change_date": "2026-03-15"}
    assert fixed_calculator.status_change_date(
        {"listing_status": "Active"}, {"listing_status": "Active"}
    ) == {}


def test_price_change_count_tracks_original_price(fixed_calculator) -> None:
    first = fixed_calculator.price_change_count({"price": 400000}, {})
    assert first == {"original_price": 400000.0, "price_change_count": 0}

    second = fixed_calculator.price_change_count(
        {"price": 380000, "price_change_count": 0}, {"price": 400000}
    )
    assert second == {"price_change_count": 1}

    assert fixed_calculator.price_change_count({"price": 380000}, {"price": 380000}) == {}


def test_county_lookup_by_zip(fixed_calculator) -> None:
    assert fixed_calculator.county({"zip_code": "19901"}, {}) == {"county": "Kent"}
    assert fixed_calculator.county({"zip_code": "19971-1234"}, {}) == {"county": "Sussex"}
    assert fixed_calculator.county({"zip_code": "19801"}, {}) == {"county": "New Castle"}
    assert fixed_calculator.county({"zip_code": "10001"}, {}) == {}


def test_photo_count(fixed_calculator) -> None:
    assert fixed_calculator.photo_count({"featured_photo": [1], "listing_photos": [2, 3, 4]}, {}) == {
        "photo_count": 4
    }


def test_unknown_calculation_raises_key_error(fixed_calculator) -> None:
    with pytest.raises(KeyError):
        fixed_calculator.calculate("roof_age", {}, {})


# ----------------------------------------------------------------------
# Puente de cálculos
# ----------------------------------------------------------------------


def test_bridge_deduplicates_and_counts_once(fixed_calculator) -> None:
    bridge = CalculationTriggerBridge(fixed_calculator)
    stats = RunStatistics()

    updates = bridge.trigger(
        7,
        ["price_per_sqft", "price_per_sqft", "price_change_count"],
        current={"price": 500000, "square_footage": 2000},
        previous={},
        stats=stats,
    )

    assert stats.calculations_triggered == 2
    assert updates == {
        "price_per_sqft": 250.0,
        "original_price": 500000.0,
        "price_change_count": 0,
    }


def test_bridge_skips_unknown_ids(fixed_calculator) -> None:
    stats = RunStatistics()
    updates = CalculationTriggerBridge(fixed_calculator).trigger(
        1, ["roof_age"], current={}, previous={}, stats=stats
    )
    assert updates == {}
    assert stats.errors == 0


class _ExplodingCalculator:
    known_calculations = frozenset({"boom", "photo_count"})

    def calculate(self, calculation_id, current, previous):
        if calculation_id == "boom":
            raise ZeroDivisionError("division by zero")
        return {"photo_count": 0}


def test_bridge_counts_routine_errors_and_continues() -> None:
    stats = RunStatistics()
    updates = CalculationTriggerBridge(_ExplodingCalculator()).trigger(
        1, ["boom", "photo_count"], current={}, previous={}, stats=stats
    )
    assert stats.errors == 1
    assert updates == {"photo_count": 0}
