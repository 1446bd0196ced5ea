"""Configuration defaults and .env loading.

WHY: Connection strings contain credentials and table prefixes differ per
deployment; neither belongs in shell history or in code. Centralizing the
defaults here keeps the CLI flags thin and lets a .env file carry the
per-site settings.

HOW: python-dotenv loads the .env file on import. Defaults are plain
module-level constants read with os.getenv so every one of them can be
overridden from the environment.

RULES:
- CSPRO_CONNECTION is never given a default value
- Numeric settings fall back to their default when unset or blank
- CLI flags always win over values from the environment
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the working directory (where the export is run from)
load_dotenv()


def _int_setting(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError("{} must be an integer, got {!r}".format(name, raw))
    if value < 1:
        raise ValueError("{} must be at least 1, got {}".format(name, value))
    return value


# ---------------------------------------------------------------------------
# Data source
# ---------------------------------------------------------------------------

DEFAULT_TABLE_PREFIX = os.getenv("CSPRO_TABLE_PREFIX", "")
"""Text prefixed to every record label to form its table name."""

BATCH_SIZE = _int_setting("CSPRO_BATCH_SIZE", 500)
"""Rows fetched per round trip to the database."""

PREFETCH_QUEUE_SIZE = _int_setting("CSPRO_PREFETCH_QUEUE_SIZE", 4)
"""Batches a prefetching worker may read ahead of the merge."""

# ---------------------------------------------------------------------------
# Output and logging
# ---------------------------------------------------------------------------

OUTPUT_ENCODING = os.getenv("CSPRO_OUTPUT_ENCODING", "utf-8")
LOG_LEVEL = os.getenv("CSPRO_LOG_LEVEL", "WARNING").upper()


def load_connection_descriptor() -> str | None:
    """Return the data-source descriptor configured in the environment.

    Reads CSPRO_CONNECTION (populated from .env by python-dotenv). Returns
    None when it is missing or blank so the CLI can demand the flag.
    """
    descriptor = os.getenv("CSPRO_CONNECTION", "").strip()
    return descriptor or None
