"""In-memory untrusted datastore and public keystore."""

from __future__ import annotations

import uuid
from typing import Any


class Datastore:
    """Key-value storage of byte strings addressed by UUID."""

    def __init__(self) -> None:
        self._entries: dict[uuid.UUID, bytes] = {}

    def get(self, key: uuid.UUID) -> bytes | None:
        """Return the bytes stored under ``key``, or ``None`` if absent."""
        return self._entries.get(key)

    def set(self, key: uuid.UUID, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any earlier value."""
        self._entries[key] = bytes(value)

    def delete(self, key: uuid.UUID) -> None:
        """Remove ``key`` if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class Keystore:
    """Write-once public key directory addressed by name."""

    def __init__(self) -> None:
        self._keys: dict[str, Any] = {}

    def get(self, name: str) -> Any | None:
        """Return the key stored under ``name``, or ``None`` if absent."""
        return self._keys.get(name)

    def set(self, name: str, key: Any) -> None:
        """Publish ``key`` under ``name``; a name can be set only once."""
        if name in self._keys:
            raise ValueError(f"keystore entry {name!r} already exists")
        self._keys[name] = key

    def clear(self) -> None:
        """Remove every entry."""
        self._keys.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._keys

    def __len__(self) -> int:
        return len(self._keys)


DATASTORE = Datastore()
KEYSTORE = Keystore()


def reset() -> None:
    """Clear the shared datastore and keystore."""
    DATASTORE.clear()
    KEYSTORE.clear()