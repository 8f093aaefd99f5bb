"""
Local Blob Store

File-system storage for encoded page images.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Any
from urllib.parse import urlparse, unquote

from .store_interface import StorageError


class LocalBlobStore:
    """
    Local filesystem storage for page images.

    Features:
    - Atomic writes (temp file + rename), no torn blobs after a crash
    - file:// URIs recorded on ImagePage.storage_uri
    - Keys may contain "/" to group blobs per document

    Directory Structure:
        base_path/
            objects/
                {inbound_id}/
                    {page_id}.jpg
    """

    def __init__(self, base_path: str = "data/blobs"):
        """
        Initialize blob store.

        Args:
            base_path: Root directory for storage
        """
        self.base_path = Path(base_path)
        self.objects_dir = self.base_path / "objects"
        self.logger = logging.getLogger(__name__)

        try:
            self.objects_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create blob directory {self.objects_dir}: {e}") from e

        self.logger.info(f"Blob storage initialized: {self.base_path}")

    def _get_object_path(self, key: str) -> Path:
        """Get path for object file."""
        path = (self.objects_dir / key).resolve()
        if self.objects_dir.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes storage root: {key}")
        return path

    def _path_from_uri(self, uri: str) -> Path:
        parsed = urlparse(uri)
        if parsed.scheme != "file":
            raise ValueError(f"Unsupported blob URI: {uri}")
        return Path(unquote(parsed.path))

    def put(self, key: str, data: bytes) -> str:
        """
        Store a blob.

        Args:
            key: Object key/path
            data: Encoded bytes

        Returns:
            file:// URI of the stored blob
        """
        object_path = self._get_object_path(key)
        try:
            object_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=object_path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, object_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write blob {key}: {e}") from e

        return object_path.as_uri()

    def get(self, uri: str) -> bytes:
        """Read a blob by its URI."""
        path = self._path_from_uri(uri)
        if not path.exists():
            raise FileNotFoundError(f"Blob not found: {uri}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read blob {uri}: {e}") from e

    def delete(self, uri: str) -> bool:
        """
        Delete a blob.

        Returns:
            True if deleted, False if not found
        """
        path = self._path_from_uri(uri)
        try:
            if not path.exists():
                return False
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete blob {uri}: {e}") from e
        return True

    def exists(self, uri: str) -> bool:
        return self._path_from_uri(uri).exists()

    def get_storage_info(self) -> Dict[str, Any]:
        """Get blob storage usage."""
        total_size = 0
        object_count = 0

        for object_path in self.objects_dir.rglob("*"):
            if object_path.is_file() and not object_path.name.startswith(".tmp-"):
                total_size += object_path.stat().st_size
                object_count += 1

        return {
            'backend': 'local',
            'base_path': str(self.base_path),
            'object_count': object_count,
            'total_size': total_size,
        }
