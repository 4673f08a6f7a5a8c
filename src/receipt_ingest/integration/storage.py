import hashlib
import os
from abc import ABC, abstractmethod

from receipt_ingest.logger import get_logger

logger = get_logger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


class DocumentStore(ABC):
    @abstractmethod
    def store(self, data: bytes, mime_type: str) -> str:
        """Persist the original upload and return a handle for retrieving it later."""
        pass


class DirectoryDocumentStore(DocumentStore):
    """Content-addressed files under one directory. Re-uploading a document reuses its file."""

    def __init__(self, root: str):
        self.root = root

    def store(self, data: bytes, mime_type: str) -> str:
        os.makedirs(self.root, exist_ok=True)
        digest = hashlib.sha256(data).hexdigest()
        extension = _EXTENSIONS.get(mime_type.split(";", 1)[0].strip().lower(), ".bin")
        path = os.path.join(self.root, f"{digest}{extension}")
        if os.path.exists(path):
            logger.debug("[STORE] %s already stored.", os.path.basename(path))
            return path

        tmp_path = f"{path}.part"
        try:
            with open(tmp_path, "wb") as handle:
                handle.write(data)
            os.replace(tmp_path, path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        logger.info("[STORE] Saved %s (%s bytes).", os.path.basename(path), len(data))
        return path
