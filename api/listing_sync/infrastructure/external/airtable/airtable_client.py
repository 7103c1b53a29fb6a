"""
Cliente mínimo de Airtable REST API (sin SDKs externos).

Requisitos cubiertos:
- requests
- paginación por offset
- rate-limit/backoff (429, 5xx, errores de red) con intentos observables
- fetch incremental usando LAST_MODIFIED_TIME()
- create / update (PATCH) de registros de una tabla
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterator, Optional
from urllib.parse import quote

import requests
from loguru import logger

from listing_sync.domain.entities.sync_types import RemoteRecord
from listing_sync.shared.exceptions.sync import (
    ConfigurationError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from listing_sync.shared.utils.datetime_utils import isoformat_z
from listing_sync.shared.utils.retry import RetryPolicy, RetryStats

AIRTABLE_BASE_URL = "https://api.airtable.com/v0"
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class AirtableCredentials:
    token: str
    base_id: str


def build_modified_since_formula(cursor: datetime) -> str:
    """
    Construye una fórmula Airtable para traer registros modificados desde `cursor`.

    Incluye igualdad (>=) para ser tolerante a cortes a mitad de página; la
    reconciliación es idempotente, así que releer el borde es seguro.
    Airtable no soporta >= directo con fechas: se usa OR(IS_AFTER, IS_SAME).
    """
    cursor_str = isoformat_z(cursor)
    return (
        f"OR("
        f"IS_AFTER(LAST_MODIFIED_TIME(), DATETIME_PARSE('{cursor_str}')), "
        f"IS_SAME(LAST_MODIFIED_TIME(), DATETIME_PARSE('{cursor_str}'))"
        f")"
    )


def _error_message(resp: requests.Response) -> str:
    """Extrae el mensaje de error de Airtable ({"error": {"message": ...}} o {"error": "..."})."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:500]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or error)
    if error:
        return str(error)
    return resp.text[:500]


class AirtableClient:
    """
    Cliente HTTP de una tabla Airtable.

    Importante:
    - No hace cast de tipos de campos: eso lo decide el codec de campos.
    - Cada request se reintenta según RetryPolicy; los intentos quedan en retry_stats.
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        table_name: str,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = AIRTABLE_BASE_URL,
        timeout_s: float = 30,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not credentials.token or not credentials.base_id:
            raise ConfigurationError("Faltan credenciales de Airtable (token / base_id)")
        if not table_name:
            raise ConfigurationError("Falta el nombre de la tabla de Airtable")

        self._creds = credentials
        self._table_name = table_name
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._session = session or requests.Session()
        self.retry_stats = RetryStats()

    def modified_since_formula(self, since: datetime) -> str:
        return build_modified_since_formula(since)

    @property
    def table_url(self) -> str:
        return f"{self._base_url}/{self._creds.base_id}/{quote(self._table_name, safe='')}"

    def list_records(
        self,
        *,
        filter_formula: Optional[str] = None,
        page_size: int = MAX_PAGE_SIZE,
        max_records: Optional[int] = None,
    ) -> Iterator[RemoteRecord]:
        """
        Itera registros de la tabla.

        - filterByFormula opcional (delta)
        - Maneja paginación por 'offset'
        """
        offset: Optional[str] = None
        page_size = max(1, min(page_size, MAX_PAGE_SIZE))

        while True:
            query: list[tuple[str, Any]] = [("pageSize", page_size)]
            if filter_formula:
                query.append(("filterByFormula", filter_formula))
            if max_records is not None:
                query.append(("maxRecords", max_records))
            if offset:
                query.append(("offset", offset))

            payload = self._request_json("GET", self.table_url, query=query)

            for rec in payload.get("records") or []:
                rec_id = rec.get("id")
                if not rec_id:
                    # Caso raro; preferimos fallar temprano y visible.
                    raise TransportError("Airtable devolvió un record sin 'id'")
                yield RemoteRecord(
                    record_id=rec_id,
                    fields=rec.get("fields") or {},
                    created_time=rec.get("createdTime"),
                )

            offset = payload.get("offset")
            if not offset:
                break

    def create_record(self, fields: dict[str, Any]) -> str:
        payload = self._request_json(
            "POST", self.table_url, body={"fields": fields, "typecast": True}
        )
        record_id = payload.get("id")
        if not record_id:
            raise TransportError("Airtable no devolvió id al crear el registro")
        logger.debug(f"Airtable: registro creado {record_id}")
        return record_id

    def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        self._request_json(
            "PATCH",
            f"{self.table_url}/{record_id}",
            body={"fields": fields, "typecast": True},
            entity_id=record_id,
        )

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: Optional[list[tuple[str, Any]]] = None,
        body: Optional[dict[str, Any]] = None,
        entity_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Request HTTP con backoff.

        Estrategia:
        - 429: respeta Retry-After si existe, si no exponencial con jitter simple.
        - 5xx y errores de red: exponencial con jitter, solo en métodos idempotentes.
          POST solo se reintenta ante 429 o si la conexión nunca se estableció
          (ConnectTimeout): Airtable pudo haber creado el registro.
        - 401/403: ConfigurationError inmediato.
        - 404: NotFoundError. 400/422: ValidationError. Otros 4xx: TransportError.
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Content-Type": "application/json",
        }

        idempotent = method.upper() != "POST"
        last_error = ""
        last_status: Optional[int] = None
        for attempt in range(self._retry.max_attempts):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    params=query,
                    json=body,
                    headers=headers,
                    timeout=self._timeout_s,
                )
            except requests.RequestException as e:
                last_error = f"{type(e).__name__}: {e}"
                last_status = None
                retry_after = None
                if not idempotent and not isinstance(e, requests.ConnectTimeout):
                    self._raise_not_retried(method, attempt + 1, last_error, None, e)
            else:
                if 200 <= resp.status_code < 300:
                    self.retry_stats.record(attempt + 1)
                    return resp.json()

                last_status = resp.status_code
                if resp.status_code != 429 and not 500 <= resp.status_code < 600:
                    self.retry_stats.record(attempt + 1)
                    self._raise_for_status(resp, entity_id)

                last_error = _error_message(resp)
                retry_after = resp.headers.get("Retry-After")
                if not idempotent and resp.status_code != 429:
                    self._raise_not_retried(method, attempt + 1, last_error, last_status)

            if attempt + 1 >= self._retry.max_attempts:
                break

            sleep_s = self._retry.backoff_seconds(attempt, retry_after)
            logger.warning(
                f"Airtable {method} falló ({last_status or last_error}), "
                f"intento {attempt + 1}/{self._retry.max_attempts}. Reintentando en {sleep_s:.2f}s"
            )
            self._sleep(sleep_s)

        attempts = self._retry.max_attempts
        self.retry_stats.record(attempts)
        raise TransportError(
            f"Airtable {method} falló tras {attempts} intento(s): {last_status or ''} {last_error}".strip(),
            status_code=last_status,
            attempts=attempts,
        )

    def _raise_for_status(self, resp: requests.Response, entity_id: Optional[str]) -> None:
        message = _error_message(resp)
        status = resp.status_code
        if status in (401, 403):
            raise ConfigurationError(
                f"Airtable rechazó las credenciales ({status}): {message}",
                details={"remote_status": status},
            )
        if status == 404:
            raise NotFoundError("Airtable record", entity_id or self._table_name)
        if status in (400, 422):
            raise ValidationError(f"Airtable rechazó el payload ({status}): {message}")
        raise TransportError(f"Airtable request falló {status}: {message}", status_code=status, attempts=1)

    def _raise_not_retried(
        self,
        method: str,
        attempts: int,
        error: str,
        status: Optional[int],
        cause: Optional[Exception] = None,
    ) -> None:
        self.retry_stats.record(attempts)
        raise TransportError(
            f"Airtable {method} falló sin reintento (no idempotente): {status or ''} {error}".strip(),
            status_code=status,
            attempts=attempts,
        ) from cause
