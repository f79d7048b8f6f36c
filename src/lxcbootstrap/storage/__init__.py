"""
Session storage for lxc-bootstrap.

Provides the two persisted halves of a provisioning session:
- ConfigStore: every configuration answer, keyed by name
- ProgressLedger: identifiers of steps that already completed

Example:
    from lxcbootstrap.storage import open_file_stores

    store, ledger = open_file_stores("/root/.lxc-bootstrap")
    store.set("APP_NAME", "demo")
    ledger.mark_completed("system_setup")
"""

from lxcbootstrap.storage.base import (
    BaseConfigStore,
    BaseProgressLedger,
    ConfigStore,
    ProgressLedger,
)
from lxcbootstrap.storage.file import FileConfigStore, FileProgressLedger, open_file_stores
from lxcbootstrap.storage.memory import MemoryConfigStore, MemoryProgressLedger

__all__ = [
    "BaseConfigStore",
    "BaseProgressLedger",
    "ConfigStore",
    "ProgressLedger",
    "FileConfigStore",
    "FileProgressLedger",
    "MemoryConfigStore",
    "MemoryProgressLedger",
    "open_file_stores",
]
