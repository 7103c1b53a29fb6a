"""
Sanitizadores de valores entrantes.

Política de rangos: los valores numéricos fuera de [min_value, max_value]
se RECHAZAN con ValidationError (no se recortan). Los selects rechazan
valores fuera de allowed_values.

Todos reciben (valor_crudo, definición) y retornan el valor normalizado
o None si el valor está vacío.
"""
from __future__ import annotations

import re
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from listing_sync.domain.fields.field_definition import FieldDefinition
from listing_sync.shared.exceptions.sync import ValidationError
from listing_sync.shared.utils.datetime_utils import parse_iso_date

Sanitizer = Callable[[Any, FieldDefinition], Any]

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"[ \t\r\n]+")

_TRUE_STRINGS = {"1", "true", "yes", "y", "on", "si", "sí"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off", ""}


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_range(number: float, definition: FieldDefinition) -> None:
    if definition.min_value is not None and number < definition.min_value:
        raise ValidationError(
            f"'{definition.remote_name}' = {number} es menor al mínimo {definition.min_value}",
            field=definition.local_name,
            value=number,
        )
    if definition.max_value is not None and number > definition.max_value:
        raise ValidationError(
            f"'{definition.remote_name}' = {number} supera el máximo {definition.max_value}",
            field=definition.local_name,
            value=number,
        )


def _to_number(value: Any, definition: FieldDefinition) -> float:
    if isinstance(value, bool):
        raise ValidationError(
            f"'{definition.remote_name}' espera un número, recibió booleano",
            field=definition.local_name,
            value=value,
        )
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "").replace("$", "")
    try:
        return float(text)
    except ValueError as e:
        raise ValidationError(
            f"'{definition.remote_name}' no es numérico: {value!r}",
            field=definition.local_name,
            value=value,
        ) from e


def sanitize_text(value: Any, definition: FieldDefinition) -> Optional[str]:
    """Texto de una línea: sin HTML y con espacios colapsados."""
    if _is_empty(value):
        return None
    text = _WS_RE.sub(" ", _TAG_RE.sub("", str(value))).strip()
    return text or None


def sanitize_textarea(value: Any, definition: FieldDefinition) -> Optional[str]:
    """Texto multilínea: sin HTML, conserva saltos de línea."""
    if _is_empty(value):
        return None
    lines = [line.strip() for line in _TAG_RE.sub("", str(value)).splitlines()]
    text = "\n".join(lines).strip()
    return text or None


def sanitize_integer(value: Any, definition: FieldDefinition) -> Optional[int]:
    if _is_empty(value):
        return None
    number = _to_number(value, definition)
    if number != int(number):
        raise ValidationError(
            f"'{definition.remote_name}' espera un entero: {value!r}",
            field=definition.local_name,
            value=value,
        )
    _check_range(number, definition)
    return int(number)


def sanitize_decimal(value: Any, definition: FieldDefinition) -> Optional[float]:
    if _is_empty(value):
        return None
    number = _to_number(value, definition)
    _check_range(number, definition)
    return number


def sanitize_boolean(value: Any, definition: FieldDefinition) -> bool:
    # Airtable omite los checkbox en false
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValidationError(
        f"'{definition.remote_name}' no es booleano: {value!r}",
        field=definition.local_name,
        value=value,
    )


def sanitize_date(value: Any, definition: FieldDefinition) -> Optional[str]:
    """Normaliza a 'YYYY-MM-DD'."""
    if _is_empty(value):
        return None
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValidationError(
            f"'{definition.remote_name}' no es una fecha válida: {value!r}",
            field=definition.local_name,
            value=value,
        )
    return parsed.isoformat()


def sanitize_url(value: Any, definition: FieldDefinition) -> Optional[str]:
    if _is_empty(value):
        return None
    text = str(value).strip()
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(
            f"'{definition.remote_name}' no es una URL http(s) válida: {value!r}",
            field=definition.local_name,
            value=value,
        )
    return text


def _match_allowed(text: str, definition: FieldDefinition) -> str:
    if not definition.allowed_values:
        return text
    for allowed in definition.allowed_values:
        if allowed.lower() == text.lower():
            return allowed
    raise ValidationError(
        f"'{definition.remote_name}' = {text!r} no está en {list(definition.allowed_values)}",
        field=definition.local_name,
        value=text,
    )


def sanitize_select(value: Any, definition: FieldDefinition) -> Optional[str]:
    text = sanitize_text(value, definition)
    if text is None:
        return None
    return _match_allowed(text, definition)


def sanitize_multi_select(value: Any, definition: FieldDefinition) -> Optional[list[str]]:
    if _is_empty(value):
        return None
    items = value if isinstance(value, (list, tuple)) else str(value).split(",")
    result: list[str] = []
    for item in items:
        text = sanitize_text(item, definition)
        if text is None:
            continue
        canonical = _match_allowed(text, definition)
        if canonical not in result:
            result.append(canonical)
    return result or None


SANITIZERS: dict[str, Sanitizer] = {
    "text": sanitize_text,
    "textarea": sanitize_textarea,
    "integer": sanitize_integer,
    "decimal": sanitize_decimal,
    "boolean": sanitize_boolean,
    "date": sanitize_date,
    "url": sanitize_url,
    "select": sanitize_select,
    "multi_select": sanitize_multi_select,
}
