"""In-process session stores, for tests and throwaway runs."""

from __future__ import annotations

from typing import Dict, List, Optional

from lxcbootstrap.storage.base import BaseConfigStore, BaseProgressLedger


class MemoryConfigStore(BaseConfigStore):
    """ConfigStore kept in a dict. ``writes`` counts persisted changes."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._backing: Dict[str, str] = dict(initial or {})
        self.writes = 0

    def _read(self) -> Dict[str, str]:
        return dict(self._backing)

    def _write(self, values: Dict[str, str]) -> None:
        self._backing = dict(values)
        self.writes += 1

    def _erase(self) -> None:
        self._backing = {}


class MemoryProgressLedger(BaseProgressLedger):
    """ProgressLedger kept in a list."""

    def __init__(self, initial: Optional[List[str]] = None):
        super().__init__()
        self._backing: List[str] = list(initial or [])

    def _read(self) -> List[str]:
        return list(self._backing)

    def _append(self, step_id: str) -> None:
        self._backing.append(step_id)

    def _erase(self) -> None:
        self._backing = []
