"""Runtime settings loaded from the environment (and a ``.env`` file)."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .graph.models import DEFAULT_NODE_CAP
from .graph.traversal import DEFAULT_BATCH_SIZE
from .logging import LogLevel

ENV_PREFIX = "FAMILY_SCOPE_"


class ScopeSettings(BaseModel):
    """Settings for the edge store and the resolver."""
    db_path: Path = Path("./data/family.db")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    node_cap: int = Field(default=DEFAULT_NODE_CAP, ge=1)
    max_concurrent_batches: int = Field(default=1, ge=1)
    timeout_seconds: float | None = Field(default=None, gt=0)
    log_level: LogLevel = "INFO"


def get_settings(env_file: str | Path | None = None) -> ScopeSettings:
    """Load settings from ``FAMILY_SCOPE_*`` environment variables.

    Unset variables keep their defaults. Values in ``env_file`` (or a
    ``.env`` in the working directory) never override the real environment.
    """
    load_dotenv(env_file)

    values: dict[str, str] = {}
    for name in ScopeSettings.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw != "":
            values[name] = raw.upper() if name == "log_level" else raw

    return ScopeSettings(**values)
