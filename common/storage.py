"""
Storefront - Object Storage
=============================
Image upload, validation, and optimization behind a tiny storage interface:
upload(file, folder) -> StoredObject(url, public_id), delete(public_id).

The catalog only ever keeps the returned url/public_id strings.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Tuple

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from config.settings import (
    UPLOAD_DIR, MEDIA_URL, ALLOWED_IMAGE_EXTENSIONS, MAX_FILE_SIZE, DEFAULT_IMAGE_MAX_SIZE,
)
from common.exceptions import InvalidArgumentError

logger = logging.getLogger("storefront.storage")


@dataclass(frozen=True)
class StoredObject:
    url: str
    public_id: str


class LocalImageStorage:
    """Stores resized images on local disk and serves them under MEDIA_URL."""

    def __init__(self, root: str = UPLOAD_DIR, base_url: str = MEDIA_URL,
                 max_size: Tuple[int, int] = DEFAULT_IMAGE_MAX_SIZE):
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.max_size = max_size

    def upload(self, upload_file: UploadFile, folder: str = "products") -> StoredObject:
        if not upload_file or not upload_file.filename:
            raise InvalidArgumentError("Image file is required")

        # Validate file size
        upload_file.file.seek(0, 2)
        file_size = upload_file.file.tell()
        upload_file.file.seek(0)
        if file_size > MAX_FILE_SIZE:
            raise InvalidArgumentError(f"File too large (max {MAX_FILE_SIZE // (1024 * 1024)} MB)")

        ext = os.path.splitext(upload_file.filename)[1].lower()
        if ext not in ALLOWED_IMAGE_EXTENSIONS:
            raise InvalidArgumentError(
                f"Unsupported file type. Allowed: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}"
            )

        target_dir = os.path.join(self.root, folder)
        os.makedirs(target_dir, exist_ok=True)

        public_id = f"{folder}/{uuid.uuid4().hex}{ext}"
        file_path = os.path.join(self.root, public_id)

        try:
            img = Image.open(upload_file.file)
            img.thumbnail(self.max_size)
            if ext in (".jpg", ".jpeg"):
                img.convert("RGB").save(file_path, optimize=True, quality=80)
            else:
                img.save(file_path)
        except (UnidentifiedImageError, OSError) as e:
            logger.warning("Image save failed for %s: %s", upload_file.filename, e)
            raise InvalidArgumentError("Invalid image file")

        return StoredObject(url=f"{self.base_url}/{public_id}", public_id=public_id)

    def delete(self, public_id: str) -> bool:
        """Safely delete a stored file. Returns True if deleted."""
        if not public_id:
            return False
        file_path = os.path.join(self.root, public_id)
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                return True
        except OSError as e:
            logger.warning("Could not delete %s: %s", file_path, e)
        return False


# Singleton
storage = LocalImageStorage()
