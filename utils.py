"""Utility functions."""
from pathlib import Path
from typing import Tuple

import config

# kind -> (mime type, original extension, thumbnail extension)
IMAGE_KINDS = {
    "jpeg": ("image/jpeg", ".jpg", ".jpg"),
    "png": ("image/png", ".png", ".png"),
    "gif": ("image/gif", ".gif", ".png"),
}


def image_kind_to(kind: str) -> Tuple[str, str, str]:
    """Mime type, file extension and thumbnail extension for an image kind."""
    return IMAGE_KINDS.get(kind, ("", "", ""))


def strip_ext(name: str) -> str:
    """`name` without its final extension."""
    return name[: len(name) - len(Path(name).suffix)]


def store_path(image_id: int, kind: str) -> Path:
    _, ext, _ = image_kind_to(kind)
    return config.STORE_FOLDER / f"{image_id}{ext}"


def thumb_path(image_id: int, kind: str) -> Path:
    _, _, thumb_ext = image_kind_to(kind)
    return config.THUMB_FOLDER / f"{image_id}{thumb_ext}"
