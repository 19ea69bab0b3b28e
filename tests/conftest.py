"""Shared pytest fixtures."""

from __future__ import annotations

import sys
from collections.abc import Iterator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo global structlog configuration and logger caching between tests.

    ``configure_logging`` enables ``cache_logger_on_first_use``, which pins
    module-level lazy loggers to the configuration active at first use and
    hides later events from ``structlog.testing.capture_logs``.
    """
    yield
    structlog.reset_defaults()
    for name, module in list(sys.modules.items()):
        if not name.startswith('inheritkit'):
            continue
        for value in vars(module).values():
            if isinstance(value, structlog._config.BoundLoggerLazyProxy):
                value.__dict__.pop('bind', None)
