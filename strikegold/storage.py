"""Key-value storage backends: local directory, GCS bucket, or in-memory."""

from __future__ import annotations

import os
import tempfile
import threading
from typing import Dict, Protocol, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from strikegold.config import MonitorConfig


@runtime_checkable
class StorageBackend(Protocol):
    """Opaque key-value store of text documents.

    Keys are slash-separated (e.g. ``orders/abc.json``). ``read`` raises
    ``KeyError`` for a missing key.
    """

    def read(self, key: str) -> str: ...
    def write(self, key: str, data: str) -> None: ...
    def exists(self, key: str) -> bool: ...
    def delete(self, key: str) -> None: ...
    def list_prefix(self, prefix: str) -> list[str]: ...


class LocalStorage:
    """One file per key under ``root`` (default)."""

    def __init__(self, root: str = "data"):
        self.root = root

    def _path(self, key: str) -> str:
        if not key or key.startswith("/") or ".." in key.split("/"):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.root, *key.split("/"))

    def read(self, key: str) -> str:
        try:
            with open(self._path(key), "r") as f:
                return f.read()
        except FileNotFoundError:
            raise KeyError(key) from None

    def write(self, key: str, data: str) -> None:
        path = self._path(key)
        parent = os.path.dirname(path)
        os.makedirs(parent, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(data)
            os.replace(tmp, path)
        except BaseException:
            os.unlink(tmp)
            raise

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass

    def list_prefix(self, prefix: str) -> list[str]:
        directory = self._path(prefix.rstrip("/"))
        if not os.path.isdir(directory):
            return []
        base = prefix.rstrip("/") + "/"
        return sorted(
            base + name
            for name in os.listdir(directory)
            if os.path.isfile(os.path.join(directory, name)) and not name.endswith(".tmp")
        )


class MemoryStorage:
    """Process-local dict backend, used by tests and ephemeral runs."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> str:
        with self._lock:
            return self._data[key]

    def write(self, key: str, data: str) -> None:
        with self._lock:
            self._data[key] = data

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_prefix(self, prefix: str) -> list[str]:
        base = prefix.rstrip("/") + "/"
        with self._lock:
            return sorted(k for k in self._data if k.startswith(base))


class GCSStorage:
    """Google Cloud Storage backend, one blob per key."""

    def __init__(self, bucket_name: str, prefix: str = ""):
        from google.cloud import storage as gcs_lib
        self._client = gcs_lib.Client()
        self._bucket = self._client.bucket(bucket_name)
        self._prefix = prefix.rstrip("/")

    def _blob_name(self, key: str) -> str:
        if self._prefix:
            return f"{self._prefix}/{key}"
        return key

    def read(self, key: str) -> str:
        blob = self._bucket.blob(self._blob_name(key))
        if not blob.exists():
            raise KeyError(key)
        return blob.download_as_text()

    def write(self, key: str, data: str) -> None:
        blob = self._bucket.blob(self._blob_name(key))
        blob.upload_from_string(data, content_type="application/json")

    def exists(self, key: str) -> bool:
        return self._bucket.blob(self._blob_name(key)).exists()

    def delete(self, key: str) -> None:
        blob = self._bucket.blob(self._blob_name(key))
        if blob.exists():
            blob.delete()

    def list_prefix(self, prefix: str) -> list[str]:
        full_prefix = self._blob_name(prefix.rstrip("/")) + "/"
        strip = len(self._prefix) + 1 if self._prefix else 0
        return sorted(
            blob.name[strip:]
            for blob in self._client.list_blobs(self._bucket, prefix=full_prefix)
        )


def build_storage_backend(config: MonitorConfig) -> StorageBackend:
    """Factory: build the right storage backend from config fields."""
    if config.storage_backend == "gcs":
        if not config.gcs_bucket_name:
            raise ValueError("gcs_bucket_name is required when storage_backend='gcs'")
        return GCSStorage(config.gcs_bucket_name, config.gcs_prefix)
    if config.storage_backend == "memory":
        return MemoryStorage()
    if config.storage_backend == "local":
        return LocalStorage(config.data_dir)
    raise ValueError(f"Unknown storage_backend: {config.storage_backend!r}")
