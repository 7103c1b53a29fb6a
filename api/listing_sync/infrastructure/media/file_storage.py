"""
Almacenamiento local de adjuntos en disco.

Los archivos se guardan bajo MEDIA_DIR/<yyyy>/<mm>/ y se exponen bajo
MEDIA_PUBLIC_BASE_URL con la misma ruta relativa.
"""
from __future__ import annotations

import os
import re
import shutil
import uuid
from pathlib import Path

from listing_sync.application.interfaces.media_downloader import StoredFile
from listing_sync.shared.utils.datetime_utils import utc_now

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    """Normaliza un nombre de archivo para disco (sin rutas ni caracteres raros)."""
    name = os.path.basename(filename or "").strip()
    name = _UNSAFE_CHARS.sub("-", name).strip("-.")
    return name or "attachment"


class LocalMediaStorage:

    def __init__(self, media_dir: str, public_base_url: str) -> None:
        self._root = Path(media_dir)
        self._public_base_url = public_base_url.rstrip("/")

    def store(self, temp_path: str, filename: str) -> StoredFile:
        now = utc_now()
        relative = Path(f"{now:%Y}") / f"{now:%m}" / f"{uuid.uuid4().hex[:8]}-{safe_filename(filename)}"
        target = self._root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(temp_path, target)
        return StoredFile(
            storage_path=str(target),
            public_url=f"{self._public_base_url}/{relative.as_posix()}",
        )

    def delete(self, storage_path: str) -> int:
        path = Path(storage_path)
        if not path.is_file():
            return 0
        size = path.stat().st_size
        path.unlink()
        return size
