"""
Descarga de adjuntos de Airtable a archivos temporales.

Las URLs de adjuntos de Airtable expiran (~2h): se descargan en la misma
corrida en que se leyó el registro.

La descarga es un GET idempotente: 429, 5xx y errores de red se reintentan
según RetryPolicy; el resto de los 4xx y los archivos demasiado grandes no.
"""
from __future__ import annotations

import os
import tempfile
import time
from typing import Callable, Optional

import requests
from loguru import logger

from listing_sync.application.interfaces.media_downloader import DownloadedFile
from listing_sync.shared.exceptions.sync import TransportError, ValidationError
from listing_sync.shared.utils.retry import RetryPolicy, RetryStats

CHUNK_SIZE = 64 * 1024


class _RetryableFailure(Exception):

    def __init__(self, message: str, status: Optional[int] = None, retry_after: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.retry_after = retry_after


class HttpMediaDownloader:
    """Descarga por streaming con tope de bytes y reintentos acotados."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout_s: float = 60,
        temp_dir: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_s = timeout_s
        self._temp_dir = temp_dir
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep
        self.retry_stats = RetryStats()

    def download(self, url: str, *, max_bytes: int) -> DownloadedFile:
        last: Optional[_RetryableFailure] = None
        for attempt in range(self._retry.max_attempts):
            try:
                downloaded = self._download_once(url, max_bytes, attempt + 1)
            except _RetryableFailure as failure:
                last = failure
            except (TransportError, ValidationError):
                self.retry_stats.record(attempt + 1)
                raise
            else:
                self.retry_stats.record(attempt + 1)
                return downloaded

            if attempt + 1 >= self._retry.max_attempts:
                break
            sleep_s = self._retry.backoff_seconds(attempt, last.retry_after)
            logger.warning(
                f"Descarga de {url} falló ({last.status or last.message}), "
                f"intento {attempt + 1}/{self._retry.max_attempts}. Reintentando en {sleep_s:.2f}s"
            )
            self._sleep(sleep_s)

        attempts = self._retry.max_attempts
        self.retry_stats.record(attempts)
        raise TransportError(
            f"{last.message} (tras {attempts} intento(s))",
            status_code=last.status,
            attempts=attempts,
        )

    def _download_once(self, url: str, max_bytes: int, attempt: int) -> DownloadedFile:
        fd, path = tempfile.mkstemp(prefix="airtable_media_", dir=self._temp_dir)
        written = 0
        try:
            with os.fdopen(fd, "wb") as out:
                try:
                    with self._session.get(url, stream=True, timeout=self._timeout_s) as resp:
                        status = resp.status_code
                        if status == 429 or 500 <= status < 600:
                            raise _RetryableFailure(
                                f"Descarga falló con HTTP {status}: {url}",
                                status=status,
                                retry_after=resp.headers.get("Retry-After"),
                            )
                        if status != 200:
                            raise TransportError(
                                f"Descarga falló con HTTP {status}: {url}",
                                status_code=status,
                                attempts=attempt,
                            )
                        declared = resp.headers.get("Content-Length")
                        if declared and declared.isdigit() and int(declared) > max_bytes:
                            raise ValidationError(
                                f"Archivo demasiado grande ({declared} bytes, máximo {max_bytes})",
                                field="byte_size",
                                value=declared,
                            )
                        content_type = resp.headers.get("Content-Type")
                        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                            if not chunk:
                                continue
                            written += len(chunk)
                            if written > max_bytes:
                                raise ValidationError(
                                    f"Archivo demasiado grande (>{max_bytes} bytes)",
                                    field="byte_size",
                                    value=written,
                                )
                            out.write(chunk)
                except requests.RequestException as e:
                    raise _RetryableFailure(f"Error de red descargando {url}: {e}") from e
        except BaseException:
            _silent_unlink(path)
            raise

        logger.debug(f"Adjunto descargado ({written} bytes, intento {attempt}) -> {path}")
        return DownloadedFile(path=path, byte_size=written, content_type=content_type)


def _silent_unlink(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
