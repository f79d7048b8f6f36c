"""
File-based session stores.

Layout (default ``~/.lxc-bootstrap``)::

    ~/.lxc-bootstrap/
    ├── session.conf     key=value, one record per line, rewritten on every change
    └── progress.log     one completed step identifier per line, append-only

Both files are created with mode 600: the session store holds passwords
and access tokens in plaintext.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Tuple, Union

from lxcbootstrap.errors import StoreFormatError
from lxcbootstrap.files import atomic_write
from lxcbootstrap.storage.base import BaseConfigStore, BaseProgressLedger

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def escape_value(value: str) -> str:
    """Escape a value so it fits on one line."""
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def unescape_value(raw: str) -> str:
    """Inverse of :func:`escape_value`. Unknown escapes are kept verbatim."""
    out = []
    i = 0
    while i < len(raw):
        c = raw[i]
        if c == "\\" and i + 1 < len(raw):
            nxt = raw[i + 1]
            if nxt == "n":
                out.append("\n")
            elif nxt == "r":
                out.append("\r")
            elif nxt == "\\":
                out.append("\\")
            else:
                out.append(c + nxt)
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)


def _read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    lines = []
    for line_no, raw in enumerate(path.read_bytes().split(b"\n"), start=1):
        try:
            lines.append(raw.decode("utf-8"))
        except UnicodeDecodeError:
            raise StoreFormatError(str(path), line_no, raw.decode("utf-8", "replace")) from None
    return lines


class FileConfigStore(BaseConfigStore):
    """
    ConfigStore persisted as ``key=value`` lines.

    Lines split on the first ``=`` so values may contain ``=``. On load a
    key seen twice keeps its last value. Blank lines and ``#`` comments are
    ignored.
    """

    def __init__(self, path: PathLike):
        super().__init__()
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for line_no, line in enumerate(_read_lines(self.path), start=1):
            if not line.strip() or line.startswith("#"):
                continue
            key, sep, raw = line.partition("=")
            if not sep or not key:
                raise StoreFormatError(str(self.path), line_no, line)
            values[key] = unescape_value(raw)
        return values

    def _write(self, values: Dict[str, str]) -> None:
        content = "".join(f"{k}={escape_value(v)}\n" for k, v in values.items())
        atomic_write(self.path, content, mode=0o600)

    def _erase(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed session store {self.path}")


class FileProgressLedger(BaseProgressLedger):
    """ProgressLedger persisted as an append-only list of identifiers."""

    def __init__(self, path: PathLike):
        super().__init__()
        self.path = Path(path)

    def _read(self) -> List[str]:
        return [line.strip() for line in _read_lines(self.path) if line.strip()]

    def _append(self, step_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        created = not self.path.exists()
        with open(self.path, "a", encoding="utf-8", newline="\n") as f:
            f.write(step_id + "\n")
            f.flush()
            os.fsync(f.fileno())
        if created:
            os.chmod(self.path, 0o600)

    def _erase(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed progress ledger {self.path}")


def open_file_stores(
    state_dir: PathLike,
    config_filename: str = "session.conf",
    ledger_filename: str = "progress.log",
) -> Tuple[FileConfigStore, FileProgressLedger]:
    """
    Open the session store and ledger under ``state_dir``.

    Creates the directory with mode 700 if it does not exist.

    Returns:
        Tuple of (FileConfigStore, FileProgressLedger)
    """
    state_dir = Path(state_dir)
    if not state_dir.exists():
        state_dir.mkdir(parents=True)
        os.chmod(state_dir, 0o700)
    logger.debug(f"Session state directory: {state_dir}")
    return (
        FileConfigStore(state_dir / config_filename),
        FileProgressLedger(state_dir / ledger_filename),
    )
