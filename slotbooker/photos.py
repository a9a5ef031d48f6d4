from __future__ import annotations

import logging
import os
import re

from flask import current_app

from .errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif)$", re.IGNORECASE)


class PhotoStore:
    """A flat directory of image files, addressed by filename."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, filename: str | None) -> str:
        name = filename.strip() if isinstance(filename, str) else ""
        if not name or name in (".", "..") or os.path.basename(name) != name or "\\" in name:
            raise ValidationError("A plain photo filename is required.")
        return os.path.join(self.directory, name)

    def list_photos(self) -> list[str]:
        if not os.path.isdir(self.directory):
            return []
        return sorted(
            name for name in os.listdir(self.directory)
            if os.path.isfile(os.path.join(self.directory, name))
        )

    def list_images(self) -> list[str]:
        return [name for name in self.list_photos() if IMAGE_RE.search(name)]

    def add_photo(self, file) -> str:
        """Save an uploaded werkzeug FileStorage under its original filename."""
        path = self._path(getattr(file, "filename", None))
        os.makedirs(self.directory, exist_ok=True)
        file.save(path)
        logger.info("Photo saved: %s", path)
        return os.path.basename(path)

    def delete_photo(self, filename: str | None) -> bool:
        path = self._path(filename)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        logger.info("Photo deleted: %s", path)
        return True


def init_app(app) -> PhotoStore:
    directory = app.config.get("IMAGE_DIR") or os.path.join(app.instance_path, "img")
    app.config["IMAGE_DIR"] = directory
    store = PhotoStore(directory)
    app.extensions["photos"] = store
    return store


def get_photo_store() -> PhotoStore:
    return current_app.extensions["photos"]
