"""Runtime settings, overridable through ``GRIDCALC_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

# Largest grid the console accepts.
MAX_ROWS = 1000
MAX_COLS = 18278
PAGE_SIZE = 10


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class GridConfig:
    viewport_rows: int = PAGE_SIZE
    viewport_cols: int = PAGE_SIZE
    max_rows: int = MAX_ROWS  # enforced by the CLI only
    max_cols: int = MAX_COLS
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> GridConfig:
        """Build a config from the environment.

        With *dotenv*, a ``.env`` file found from the working directory upwards
        is loaded first. Variables already set in the environment win.
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        return cls(
            viewport_rows=_env_int("GRIDCALC_VIEWPORT_ROWS", PAGE_SIZE),
            viewport_cols=_env_int("GRIDCALC_VIEWPORT_COLS", PAGE_SIZE),
            max_rows=_env_int("GRIDCALC_MAX_ROWS", MAX_ROWS),
            max_cols=_env_int("GRIDCALC_MAX_COLS", MAX_COLS),
            log_level=os.getenv("GRIDCALC_LOG_LEVEL", "WARNING").upper(),
        )
