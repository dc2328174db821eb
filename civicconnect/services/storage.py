import logging
import os
import uuid
from typing import Optional

from fastapi import UploadFile

from civicconnect.core.exceptions import ValidationError

logger = logging.getLogger("civicconnect.storage")

IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class PhotoStorage:
    """
    Keeps uploaded photos on the local disk.

    Issues store the returned relative path ("uploads/<name>"); the file
    itself lives in upload_dir.
    """

    url_prefix = "uploads"

    def __init__(self, upload_dir: str, max_size: int):
        self.upload_dir = upload_dir
        self.max_size = max_size

    def _full_path(self, path: str) -> str:
        # Only the file name is trusted, never directories from the stored path
        return os.path.join(self.upload_dir, os.path.basename(path))

    async def save(self, upload: UploadFile, prefix: str = "issue") -> str:
        extension = IMAGE_EXTENSIONS.get(upload.content_type or "")
        if not extension:
            raise ValidationError("Only image files are allowed")

        content = await upload.read()
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self.max_size:
            raise ValidationError(f"File too large (max {self.max_size} bytes)")

        filename = f"{prefix}-{uuid.uuid4().hex}{extension}"
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(self._full_path(filename), "wb") as f:
            f.write(content)

        logger.info(f"Stored photo {filename} ({len(content)} bytes)")
        return f"{self.url_prefix}/{filename}"

    def delete(self, path: Optional[str]) -> bool:
        if not path:
            return False
        try:
            os.remove(self._full_path(path))
        except FileNotFoundError:
            logger.warning(f"Photo {path} already missing from storage")
            return False
        logger.info(f"Deleted photo {path}")
        return True
