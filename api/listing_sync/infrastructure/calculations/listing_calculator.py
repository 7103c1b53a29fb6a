"""
Calculador de campos derivados de un listing.

Cada rutina es pura: recibe los valores actuales y los previos a la
corrida, y retorna solo los campos a escribir (dict vacío si no aplica).
"""
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from listing_sync.shared.constants.sync_constants import ListingCalculation as Calc
from listing_sync.shared.utils.datetime_utils import parse_iso_date, utc_now

SQFT_PER_ACRE = 43560

Routine = Callable[[Mapping[str, Any], Mapping[str, Any]], dict[str, Any]]

# Condados de Delaware por ZIP (5 dígitos)
_NEW_CASTLE_ZIPS = (
    "19701", "19702", "19703", "19706", "19707", "19708", "19709", "19710",
    "19711", "19712", "19713", "19714", "19715", "19716", "19717", "19718",
    "19720", "19721", "19801", "19802", "19803", "19804", "19805", "19806",
    "19807", "19808", "19809", "19810", "19850", "19880", "19884", "19885",
    "19886", "19890", "19891", "19892", "19893", "19894", "19895", "19896",
    "19897", "19898",
)
_KENT_ZIPS = ("19901", "19902", "19903", "19904", "19905", "19906", "19955")
_SUSSEX_ZIPS = (
    "19930", "19931", "19932", "19933", "19934", "19935", "19936", "19937",
    "19938", "19939", "19940", "19941", "19943", "19944", "19945", "19946",
    "19947", "19948", "19950", "19951", "19952", "19953", "19954", "19956",
    "19958", "19960", "19962", "19963", "19964", "19966", "19967", "19968",
    "19969", "19970", "19971", "19973", "19975", "19977", "19979", "19980",
)

DELAWARE_COUNTIES: dict[str, str] = {
    **{z: "New Castle" for z in _NEW_CASTLE_ZIPS},
    **{z: "Kent" for z in _KENT_ZIPS},
    **{z: "Sussex" for z in _SUSSEX_ZIPS},
}


def _number(value: Any) -> float:
    try:
        return float(value) if value not in (None, "") else 0.0
    except (TypeError, ValueError):
        return 0.0


def _count(value: Any) -> int:
    if isinstance(value, (list, tuple)):
        return len(value)
    return 1 if value else 0


class ListingCalculator:
    """
    Implementación del calculador para la tabla Listings.

    Args:
        today: Proveedor de la fecha actual (inyectable para tests)
    """

    def __init__(self, today: Optional[Callable[[], date]] = None) -> None:
        self._today = today or (lambda: utc_now().date())
        self._routines: dict[str, Routine] = {
            Calc.PRICE_PER_SQFT.value: self.price_per_sqft,
            Calc.DAYS_ON_MARKET.value: self.days_on_market,
            Calc.BATHROOMS_TOTAL.value: self.bathrooms_total,
            Calc.LOT_SQFT.value: self.lot_sqft,
            Calc.STATUS_CHANGE_DATE.value: self.status_change_date,
            Calc.PRICE_CHANGE_COUNT.value: self.price_change_count,
            Calc.COUNTY.value: self.county,
            Calc.PHOTO_COUNT.value: self.photo_count,
        }

    @property
    def known_calculations(self) -> frozenset[str]:
        return frozenset(self._routines)

    def calculate(
        self,
        calculation_id: str,
        current: Mapping[str, Any],
        previous: Mapping[str, Any],
    ) -> dict[str, Any]:
        routine = self._routines.get(calculation_id)
        if routine is None:
            raise KeyError(calculation_id)
        return routine(current, previous)

    def price_per_sqft(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        price = _number(current.get("price"))
        sqft = _number(current.get("square_footage"))
        if price > 0 and sqft > 0:
            return {"price_per_sqft": round(price / sqft, 2)}
        return {"price_per_sqft": None}

    def days_on_market(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        list_date = parse_iso_date(current.get("list_date"))
        if list_date is None:
            return {}
        return {"days_on_market": max(0, (self._today() - list_date).days)}

    def bathrooms_total(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        full = _number(current.get("bathrooms_full"))
        half = _number(current.get("bathrooms_half"))
        return {"bathrooms_total": full + half * 0.5}

    def lot_sqft(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        acres = _number(current.get("lot_size"))
        if acres > 0:
            return {"lot_sqft": int(round(acres * SQFT_PER_ACRE))}
        return {}

    def status_change_date(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        status = current.get("listing_status")
        if status and status != previous.get("listing_status"):
            return {"status_change_date": self._today().isoformat()}
        return {}

    def price_change_count(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        price = _number(current.get("price"))
        previous_price = _number(previous.get("price"))
        if price <= 0 or price == previous_price:
            return {}
        if previous_price > 0:
            count = int(_number(current.get("price_change_count"))) + 1
            logger.info(f"Cambio de precio: {previous_price} -> {price} (cambio #{count})")
            return {"price_change_count": count}
        # Primer precio registrado
        return {"original_price": price, "price_change_count": 0}

    def county(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        zip_code = str(current.get("zip_code") or "").strip()[:5]
        county = DELAWARE_COUNTIES.get(zip_code)
        return {"county": county} if county else {}

    def photo_count(self, current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "photo_count": _count(current.get("featured_photo")) + _count(current.get("listing_photos"))
        }
