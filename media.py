import logging
import uuid
from pathlib import Path

from config import ALLOWED_IMAGE_FORMATS, Settings
from errors import ValidationError

logger = logging.getLogger(__name__)

UPLOADS_ROUTE = "/uploads"


class MediaStore:
    """Writes uploaded images under the upload directory and hands back a public URL."""

    def __init__(self, settings: Settings, folder: str = "complaints"):
        self.root = Path(settings.upload_dir)
        self.folder = folder
        self.base_url = settings.public_base_url.rstrip("/")
        self.max_bytes = settings.max_image_bytes

    def store(self, filename: str, content: bytes) -> str:
        ext = Path(filename or "").suffix.lower().lstrip(".")
        if ext not in ALLOWED_IMAGE_FORMATS:
            raise ValidationError(f"Only {', '.join(ALLOWED_IMAGE_FORMATS)} images are allowed")
        if not content:
            raise ValidationError("Uploaded image is empty")
        if len(content) > self.max_bytes:
            raise ValidationError("Uploaded image is too large")

        target_dir = self.root / self.folder
        target_dir.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}.{ext}"
        (target_dir / name).write_bytes(content)
        logger.info("Stored image %s (%d bytes)", name, len(content))
        return f"{self.base_url}{UPLOADS_ROUTE}/{self.folder}/{name}"

    def discard(self, url: str) -> None:
        """Remove a file previously returned by `store`; missing files are ignored."""
        name = url.rsplit("/", 1)[-1]
        path = self.root / self.folder / name
        if path.is_file():
            path.unlink()
            logger.info("Discarded image %s", name)
