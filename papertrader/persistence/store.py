from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional


class LedgerStoreError(Exception):
    """Raised by a store backend when a read or write cannot be completed."""


class LedgerStore(ABC):
    """Durable key -> blob storage. Writes always overwrite the whole value."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]: ...

    @abstractmethod
    def put(self, key: str, data: bytes) -> None: ...

    def close(self) -> None:
        return


class MemoryLedgerStore(LedgerStore):
    """Dict backed store for tests and dry runs."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, data: bytes) -> None:
        self._data[key] = bytes(data)

    def keys(self) -> list[str]:
        return list(self._data)
