"""Read ``config.toml``; every section is optional."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "AIKA_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.toml")


def _resolve_path(path: str | Path | None) -> Path:
    if path is not None:
        return Path(path)
    return Path(os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_raw_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Parse the TOML config at ``path`` (``$AIKA_CONFIG`` or ``config.toml``).

    A missing file yields ``{}`` and every setting falls back to its
    environment variable.

    :raises ValueError: if the file is not valid TOML or ``aika`` is not a table.
    """
    target = _resolve_path(path)
    if not target.is_file():
        return {}

    try:
        data = tomllib.loads(target.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid config file {target}: {exc}") from exc

    if not isinstance(data.get("aika", {}), dict):
        raise ValueError(f"[aika] in {target} must be a table")
    logger.debug("Loaded config from %s", target)
    return data


__all__ = ["load_raw_config", "DEFAULT_CONFIG_PATH", "CONFIG_ENV_VAR"]
