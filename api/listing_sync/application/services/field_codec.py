"""
Conversión de valores entre Airtable y el listing local.

Es el único punto de conversión por dirección:
- remote_to_local: sanitiza y filtra según categoría/dirección.
- local_to_remote: formatea por tipo de dato para la API de Airtable.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from listing_sync.domain.entities.sync_types import AttachmentRef, LocalFieldSet, RemoteRecord
from listing_sync.domain.fields.field_definition import FieldDefinition
from listing_sync.domain.fields.registry import FieldMappingRegistry
from listing_sync.shared.constants.sync_constants import DataType, FieldCategory
from listing_sync.shared.exceptions.sync import ValidationError


def remote_to_local(record: RemoteRecord, registry: FieldMappingRegistry) -> LocalFieldSet:
    """
    Convierte los campos de un registro remoto al lado local.

    - CALCULATED_LOCAL y READ_ONLY nunca se leen.
    - MEDIA se entrega crudo para el reconciliador de media.
    - Un valor inválido queda en `rejected` y no se escribe.
    """
    result = LocalFieldSet()
    for definition in registry:
        if definition.remote_name not in record.fields:
            continue
        raw = record.fields[definition.remote_name]

        if definition.category == FieldCategory.MEDIA:
            if definition.accepts_remote_input:
                result.media[definition.local_name] = list(raw or [])
            continue
        if not definition.accepts_remote_input:
            continue

        sanitizer = registry.sanitizer_for(definition)
        try:
            result.values[definition.local_name] = sanitizer(raw, definition) if sanitizer else raw
        except ValidationError as e:
            result.rejected[definition.local_name] = e.message
    return result


def format_for_remote(value: Any, definition: FieldDefinition) -> Any:
    """Formatea un valor local según el data_type del campo."""
    if value is None:
        return None
    data_type = definition.data_type
    if data_type == DataType.BOOLEAN:
        return bool(value)
    if data_type in (DataType.NUMBER, DataType.INTEGER):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return int(number) if data_type == DataType.INTEGER else number
    if data_type == DataType.DATE:
        return value.isoformat() if hasattr(value, "isoformat") else str(value)
    if data_type == DataType.MULTI_SELECT:
        return [str(v) for v in value] if isinstance(value, (list, tuple)) else [str(value)]
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def local_to_remote(
    values: Mapping[str, Any],
    registry: FieldMappingRegistry,
    *,
    categories: Iterable[FieldCategory],
) -> dict[str, Any]:
    """
    Construye el payload de Airtable con los campos no vacíos de las
    categorías pedidas que pueden viajar hacia Airtable.
    """
    wanted = set(categories)
    payload: dict[str, Any] = {}
    for definition in registry:
        if definition.category not in wanted or not definition.pushes_to_remote:
            continue
        if definition.category == FieldCategory.MEDIA:
            continue
        value = values.get(definition.local_name)
        if _is_empty(value):
            continue
        formatted = format_for_remote(value, definition)
        if formatted is not None:
            payload[definition.remote_name] = formatted
    return payload


def parse_remote_attachment(raw: Mapping[str, Any]) -> AttachmentRef:
    """Adjunto crudo de Airtable -> AttachmentRef."""
    url = raw.get("url")
    if not url:
        raise ValidationError("Adjunto de Airtable sin url", field="url")
    thumbnails = raw.get("thumbnails") or {}
    full = thumbnails.get("full") or {}
    return AttachmentRef(
        url=str(url),
        filename=str(raw.get("filename") or "attachment"),
        remote_attachment_id=raw.get("id"),
        byte_size=raw.get("size"),
        width=raw.get("width") or full.get("width"),
        height=raw.get("height") or full.get("height"),
        mime_type=raw.get("type"),
    )


def attachment_to_remote(ref: AttachmentRef) -> dict[str, Any]:
    """
    AttachmentRef -> objeto de adjunto aceptado por Airtable.

    Con id, Airtable conserva el adjunto existente; sin id, lo importa desde la url.
    """
    if ref.remote_attachment_id:
        return {"id": ref.remote_attachment_id}
    return {"url": ref.url, "filename": ref.filename}


def attachments_to_remote(refs: Iterable[AttachmentRef]) -> list[dict[str, Any]]:
    return [attachment_to_remote(ref) for ref in refs]


def best_effort_title(record: RemoteRecord, source_fields: Iterable[str], fallback: str) -> str:
    for name in source_fields:
        value: Optional[Any] = record.fields.get(name)
        if value not in (None, ""):
            return str(value).strip() or fallback
    return fallback
