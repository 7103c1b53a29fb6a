"""
Validación de imágenes con Pillow.
"""
from __future__ import annotations

from PIL import Image, UnidentifiedImageError

from listing_sync.shared.exceptions.sync import ValidationError


def inspect_image(path: str) -> tuple[int, int]:
    """
    Verifica que el archivo sea una imagen decodificable y retorna (ancho, alto).

    Lanza ValidationError si Pillow no puede abrirla o está corrupta.
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError(f"El archivo no es una imagen válida: {e}", field="image") from e
    return width, height
