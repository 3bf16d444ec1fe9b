"""Config file discovery and loading.

Walk-up finder locates bond.toml, similar to how git finds .git/.
The BOND_CONFIG env var overrides the walk.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from bond.errors import ConfigError

CONFIG_FILENAME = "bond.toml"
CONFIG_ENV_VAR = "BOND_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for bond.toml.

    Returns the path to the config file, or None if not found.
    Checks BOND_CONFIG env var first.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        if p.is_file():
            return p
        return None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def read_toml(path: Path) -> dict[str, Any]:
    """Parse *path*, wrapping syntax errors in :class:`ConfigError`."""
    raw = path.read_text(encoding="utf-8")
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc
