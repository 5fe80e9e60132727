from __future__ import annotations

from collections.abc import Iterator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    # CLI tests call configure_logging() under CliRunner, which binds the
    # runner's temporary stderr; reset so later tests don't log to a closed file.
    yield
    structlog.reset_defaults()
