"""
Interfaces de transferencia y almacenamiento de media.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class DownloadedFile:
    """Archivo temporal descargado. Quien lo recibe es responsable de borrarlo."""

    path: str
    byte_size: int
    content_type: Optional[str] = None


class MediaDownloader(Protocol):

    def download(self, url: str, *, max_bytes: int) -> DownloadedFile:
        """
        Descarga a un archivo temporal.

        Lanza ValidationError si supera max_bytes y TransportError si falla la red.
        No deja archivos temporales si lanza.
        """


@dataclass(frozen=True)
class StoredFile:
    storage_path: str
    public_url: str


class MediaStorage(Protocol):

    def store(self, temp_path: str, filename: str) -> StoredFile: ...

    def delete(self, storage_path: str) -> int:
        """Borra el archivo y retorna los bytes liberados (0 si no existía)."""
