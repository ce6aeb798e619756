"""Contracts for the two external stores the gallery depends on.

Handlers receive concrete implementations through ``create_app``; they only
rely on the methods declared here.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, List, Optional


@dataclass
class BlobObject:
    """A stored object's metadata and, when fetched with ``get``, its body."""
    key: str
    size: int
    content_type: Optional[str] = None
    etag: Optional[str] = None
    cache_control: Optional[str] = None
    last_modified: Optional[datetime] = None
    body: Any = None

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        if self.body is None:
            return iter(())
        return self.body.iter_chunks(chunk_size)


class BlobStore(ABC):
    """Stores raw image bytes by key."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str, cache_control: Optional[str] = None) -> None:
        """Write ``data`` under ``key``, replacing any existing object."""

    @abstractmethod
    def head(self, key: str) -> Optional[BlobObject]:
        """Return the object's metadata without its body, or None if missing."""

    @abstractmethod
    def get(self, key: str) -> Optional[BlobObject]:
        """Return the object with a streaming body, or None if missing."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key is not an error."""

    @abstractmethod
    def list(self, prefix: str = "") -> List[BlobObject]:
        """List objects whose key starts with ``prefix``, without bodies."""

    def close(self) -> None:
        pass


class MetadataStore(ABC):
    """Stores small JSON-serializable values by string key."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the decoded value stored under ``key``, or None."""

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any existing value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key is not an error."""

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """Return every stored key starting with ``prefix``."""

    def close(self) -> None:
        pass
