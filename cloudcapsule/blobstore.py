"""
Local-disk blob store for capsule photos.

Callers get back an opaque reference ("/uploads/<name>") and never look
inside it. Saving several files is best effort: a file that is rejected or
cannot be written is logged and skipped, the rest still go through.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# stored suffix follows the content type, never the client filename
IMAGE_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class BlobRejected(Exception):
    pass


@dataclass
class Blob:
    data: bytes
    filename: str = ""
    content_type: Optional[str] = None


class LocalBlobStore:
    def __init__(self, root: str, url_prefix: str = "/uploads", max_bytes: int = 5 * 1024 * 1024) -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def _name_for(self, ext: str) -> str:
        return f"photo-{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"

    def save(self, blob: Blob) -> str:
        content_type = (blob.content_type or "").split(";", 1)[0].strip().lower()
        ext = IMAGE_TYPES.get(content_type)
        if ext is None:
            raise BlobRejected(f"{blob.filename or 'file'}: only PNG, JPEG, GIF or WebP images are allowed")
        if len(blob.data) > self.max_bytes:
            raise BlobRejected(f"{blob.filename or 'file'}: larger than {self.max_bytes} bytes")

        name = self._name_for(ext)
        (self.root / name).write_bytes(blob.data)
        return f"{self.url_prefix}/{name}"

    def save_many(self, blobs: Iterable[Blob]) -> List[str]:
        refs = []
        for blob in blobs:
            try:
                refs.append(self.save(blob))
            except (BlobRejected, OSError) as e:
                logger.warning("upload dropped: %s", e)
        return refs
