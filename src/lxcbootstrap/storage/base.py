"""
Session storage protocols.

Two stores make a provisioning session resumable:

- ConfigStore: persisted mapping of configuration key to string value
  (every operator answer, secrets included)
- ProgressLedger: persisted set of completed step identifiers

Backends implement the abstract bases below; the rest of the package only
depends on the protocols.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfigStore(Protocol):
    """Mapping of configuration key to string value for one session."""

    def load(self) -> Dict[str, str]:
        """Re-read the backing store and return a copy of the mapping."""
        ...

    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def clear(self) -> None:
        """Drop every entry."""
        ...


@runtime_checkable
class ProgressLedger(Protocol):
    """Set of identifiers of steps whose action succeeded."""

    def has_completed(self, step_id: str) -> bool:
        """Check whether ``step_id`` is recorded."""
        ...

    def mark_completed(self, step_id: str) -> None:
        """Record ``step_id``. Marking twice is a no-op."""
        ...

    def completed(self) -> List[str]:
        """Recorded identifiers in the order they were first marked."""
        ...

    def clear(self) -> None:
        """Drop every record."""
        ...


def validate_key(key: str) -> None:
    """Reject keys that cannot be stored in the line-oriented format."""
    if not key or key != key.strip():
        raise ValueError(f"Invalid configuration key {key!r}")
    if "=" in key or "\n" in key or "\r" in key or key.startswith("#"):
        raise ValueError(f"Invalid configuration key {key!r}")


def validate_step_id(step_id: str) -> None:
    """Reject identifiers that cannot be stored one per line."""
    if not step_id or any(c.isspace() for c in step_id):
        raise ValueError(f"Invalid step identifier {step_id!r}")


class BaseConfigStore(ABC):
    """
    Abstract base for ConfigStore backends.

    Keeps the mapping in memory and delegates persistence to ``_read`` and
    ``_write``. ``set`` skips the write when the value is unchanged.
    """

    def __init__(self) -> None:
        self._values: Optional[Dict[str, str]] = None

    @property
    def values(self) -> Dict[str, str]:
        """Current mapping, loading from the backing store if needed."""
        if self._values is None:
            self._values = self._read()
        return self._values

    def load(self) -> Dict[str, str]:
        self._values = self._read()
        return dict(self._values)

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        validate_key(key)
        if not isinstance(value, str):
            raise TypeError(f"Value for {key} must be a string, got {type(value).__name__}")
        if self.values.get(key) == value:
            return
        updated = dict(self.values)
        updated[key] = value
        self._write(updated)
        self._values = updated
        logger.debug(f"Stored configuration key {key}")

    def clear(self) -> None:
        self._erase()
        self._values = {}

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __len__(self) -> int:
        return len(self.values)

    @abstractmethod
    def _read(self) -> Dict[str, str]:
        """Read the full mapping from the backing store."""

    @abstractmethod
    def _write(self, values: Dict[str, str]) -> None:
        """Persist the full mapping."""

    @abstractmethod
    def _erase(self) -> None:
        """Remove everything from the backing store."""


class BaseProgressLedger(ABC):
    """
    Abstract base for ProgressLedger backends.

    Records are only ever appended; ``clear`` is the single operation that
    removes anything.
    """

    def __init__(self) -> None:
        self._records: Optional[List[str]] = None

    @property
    def records(self) -> List[str]:
        if self._records is None:
            self._records = self._read()
        return self._records

    def has_completed(self, step_id: str) -> bool:
        return step_id in self.records

    def mark_completed(self, step_id: str) -> None:
        validate_step_id(step_id)
        if self.has_completed(step_id):
            return
        self._append(step_id)
        self.records.append(step_id)
        logger.debug(f"Marked step {step_id} completed")

    def completed(self) -> List[str]:
        seen: List[str] = []
        for step_id in self.records:
            if step_id not in seen:
                seen.append(step_id)
        return seen

    def clear(self) -> None:
        self._erase()
        self._records = []

    @abstractmethod
    def _read(self) -> List[str]:
        """Read every recorded identifier (duplicates tolerated)."""

    @abstractmethod
    def _append(self, step_id: str) -> None:
        """Durably append one identifier."""

    @abstractmethod
    def _erase(self) -> None:
        """Remove every record from the backing store."""
