"""Local disk storage for submitted images."""

import asyncio
import base64
import binascii
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from imagegate.app.core.logging import get_logger
from imagegate.app.exceptions import InvalidInputError, StorageError

logger = get_logger(__name__)

UPLOADS_PATH = "/uploads"


@dataclass(frozen=True)
class StoredImage:
    """An image written to the upload directory."""
    id: str
    filename: str
    path: Path
    url: str
    size: int


def strip_data_uri(image_data: str) -> str:
    """Drop a ``data:<type>;base64,`` prefix if present."""
    marker = "base64,"
    if marker in image_data:
        return image_data.split(marker, 1)[1]
    return image_data


def decode_image_data(image_data: str) -> bytes:
    """Decode a raw base64 payload or a data URI.

    Raises:
        InvalidInputError: If the payload is not valid base64
    """
    payload = "".join(strip_data_uri(image_data).split())
    # Clients often drop the trailing padding
    payload += "=" * (-len(payload) % 4)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError("Image data is not valid base64") from e


class ImageStore:
    """Writes images under random unique names and builds public URLs.

    Filenames are random UUIDs, so concurrent saves never write to the same
    file.
    """

    def __init__(self, directory: Path, public_base_url: str, url_prefix: str = UPLOADS_PATH):
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")
        self.url_prefix = "/" + url_prefix.strip("/")

    def ensure_directory(self) -> Path:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory: {e}") from e
        return self.directory

    def url_for(self, filename: str) -> str:
        return f"{self.public_base_url}{self.url_prefix}/{filename}"

    def _write(self, path: Path, data: bytes) -> None:
        self.ensure_directory()
        path.write_bytes(data)

    async def save(self, image_data: Any) -> StoredImage:
        if not isinstance(image_data, str) or not image_data.strip():
            raise InvalidInputError("No image data provided")

        data = decode_image_data(image_data)
        if not data:
            raise InvalidInputError("No image data provided")

        image_id = str(uuid.uuid4())
        filename = f"{image_id}.png"
        path = self.directory / filename

        try:
            await asyncio.to_thread(self._write, path, data)
        except StorageError:
            logger.exception("Failed to prepare image storage")
            raise
        except OSError as e:
            logger.exception(f"Failed to save image {filename}")
            raise StorageError(f"Failed to save image: {e.strerror or e}") from e

        logger.info(f"Saved image {filename} ({len(data)} bytes)")
        return StoredImage(
            id=image_id,
            filename=filename,
            path=path,
            url=self.url_for(filename),
            size=len(data),
        )
