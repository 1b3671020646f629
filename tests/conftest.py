# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import pagereader  # noqa: F401
except ImportError:
    raise ImportError("pagereader is not installed. Run: pip install -e '.[dev]'") from None

import logging

import pytest


@pytest.fixture()
def reset_logging():
    """Restore root logger handlers and level after the test."""
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
