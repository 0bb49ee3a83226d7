# tasktrack/services/file_storage.py
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional
import logging

from tasktrack.config import settings
from tasktrack.errors import NotFoundError, TransientError, ValidationError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Blob store for task artifacts, keyed by "{task_id}/{file_name}" under a bucket directory"""

    def __init__(self, upload_dir: str = "uploads", bucket: str = "task-files"):
        self.upload_dir = Path(upload_dir)
        self.bucket = bucket
        self.root = self.upload_dir / bucket

        # Create bucket directory if it doesn't exist
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        """
        Map a blob key to a path inside the bucket

        Args:
            key: Blob key such as "12/report.zip"

        Returns:
            Absolute path of the blob on disk
        """
        if not key or "\\" in key:
            raise ValidationError(f"Invalid blob key: {key!r}")

        parts = PurePosixPath(key).parts
        if PurePosixPath(key).is_absolute() or any(part in ("", ".", "..") for part in parts):
            raise ValidationError(f"Invalid blob key: {key!r}")

        return self.root.joinpath(*parts)

    def put(self, key: str, data: bytes) -> str:
        """
        Write a blob, replacing any previous blob with the same key

        Returns:
            The key the blob was stored under
        """
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file first so readers never see a partial blob
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as buffer:
                    buffer.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Error saving blob {key}: {e}")
            raise TransientError(f"Could not store file {key}") from e

        logger.info(f"Blob saved successfully: {key} ({len(data)} bytes)")
        return key

    def get(self, key: str) -> bytes:
        path = self._resolve(key)
        if not path.is_file():
            raise NotFoundError(f"File {key} not found")
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error(f"Error reading blob {key}: {e}")
            raise TransientError(f"Could not read file {key}") from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> bool:
        """Delete a blob; returns False when there was nothing to delete"""
        path = self._resolve(key)
        if not path.exists():
            logger.warning(f"Blob not found for deletion: {key}")
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Error deleting blob {key}: {e}")
            raise TransientError(f"Could not delete file {key}") from e
        logger.info(f"Blob deleted successfully: {key}")
        return True


_blob_store: Optional[LocalBlobStore] = None


def get_blob_store() -> LocalBlobStore:
    """Shared blob store for the application, created on first use"""
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore(
            upload_dir=settings.STORAGE['upload_dir'],
            bucket=settings.STORAGE['bucket'],
        )
    return _blob_store
