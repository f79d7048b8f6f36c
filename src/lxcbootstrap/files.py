"""
File helpers shared by the session stores and the provisioning actions.

Atomic writes use the temp file + rename pattern so a crash never leaves a
half-written store or config file behind. Renderers turn structured values
into the text formats external tools expect (PM2 ecosystem files, dotenv
files, GitHub Actions workflows); no action builds these by string
interpolation.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

PathLike = Union[str, Path]


def atomic_write(path: PathLike, content: str, mode: int = 0o600) -> None:
    """
    Write text to ``path`` atomically.

    Writes to a temporary file in the same directory, applies ``mode`` and
    renames it over the target.

    Args:
        path: Destination file
        content: Text to write (UTF-8, ``\\n`` line endings preserved)
        mode: Permission bits applied before the rename
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}-",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def ensure_dir(path: PathLike, mode: int = 0o755) -> Path:
    """Create a directory if needed and enforce its mode."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, mode)
    return path


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def render_pm2_ecosystem(apps: Dict[str, Any]) -> str:
    """
    Render a PM2 ``ecosystem.config.cjs`` for a single app.

    JSON is valid JavaScript, so the app definition is serialized with
    ``json.dumps`` and every value is quoted correctly whatever it contains.
    """
    body = json.dumps({"apps": [apps]}, indent=2)
    return f"module.exports = {body};\n"


def _dotenv_value(value: str) -> str:
    if value and all(c.isalnum() or c in "_-./:@" for c in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def render_dotenv(sections: Mapping[str, Mapping[str, Any]]) -> str:
    """
    Render a dotenv file from titled sections of key/value pairs.

    Values that are not plain tokens are double-quoted with ``\\``, ``"``
    and newlines escaped.
    """
    blocks = []
    for title, values in sections.items():
        lines = [f"# {title}"]
        for key, value in values.items():
            lines.append(f"{key}={_dotenv_value(str(value))}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


def render_workflow(workflow: Mapping[str, Any]) -> str:
    """Render a GitHub Actions workflow mapping as YAML."""
    return yaml.safe_dump(dict(workflow), default_flow_style=False, sort_keys=False)
