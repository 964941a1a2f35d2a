"""Centralize defaults and environment lookups for decoding diagnostics."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Default configuration values
# ---------------------------------------------------------------------------
_DIAGNOSTICS_SWITCH = "DEBUG"
_DEFAULT_DIAGNOSTICS_DIR = "debug-logs"
_DEFAULT_LOG_LEVEL = "INFO"
_FALSY = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ---------------------------------------------------------------------------
# Environment-derived settings
# ---------------------------------------------------------------------------
def is_diagnostics_enabled(env: Dict[str, str] | None = None) -> bool:
    """Determine whether diagnostic capture is active.

    Args:
        env: Optional mapping used instead of ``os.environ`` to simplify testing.

    Returns:
        ``True`` when ``DEBUG`` is set to anything other than an empty or
        explicitly false value.
    """

    source = env if env is not None else os.environ
    raw = source.get(_DIAGNOSTICS_SWITCH)
    if raw is None:
        return False
    normalized = raw.strip().lower()
    if not normalized or normalized in _FALSY:
        return False
    return True


def get_diagnostics_dir(env: Dict[str, str] | None = None) -> Path:
    """Return the directory that receives diagnostic records."""

    source = env if env is not None else os.environ
    override = source.get("DEBUG_LOG_DIR")
    return Path(override) if override else Path(_DEFAULT_DIAGNOSTICS_DIR)


def get_log_level(env: Dict[str, str] | None = None) -> str:
    """Return the logging level name used by the command-line tools."""

    source = env if env is not None else os.environ
    raw = (source.get("LOG_LEVEL") or "").strip().upper()
    return raw if raw in _LOG_LEVELS else _DEFAULT_LOG_LEVEL


def get_probe_output_dir(env: Dict[str, str] | None = None) -> Path:
    """Return where the probe CLI writes decoded results (defaults to the diagnostics dir)."""

    source = env if env is not None else os.environ
    override = source.get("PROBE_OUTPUT_DIR")
    return Path(override) if override else get_diagnostics_dir(env)
