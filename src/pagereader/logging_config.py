# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog rendering for stdlib log records. Terminal: ConsoleRenderer, pipelines: JSONRenderer.

Leaf module with no pagereader imports. Library modules only ever call
``logging.getLogger(__name__)``; nothing is rendered until an application
(the CLI, or an embedding service) calls :func:`configure` or installs
:func:`build_formatter` on its own handler.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

_LEVEL_ENV = "PAGEREADER_LOG_LEVEL"
_JSON_ENV = "PAGEREADER_LOG_JSON"

# Run on every LogRecord before rendering. ExtraAdder lifts ``extra={...}``
# (attempts, length, elapsed_ms on the parse summary) into top-level keys.
_RECORD_PROCESSORS = (
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.format_exc_info,
)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def build_formatter(json_output: bool = False) -> structlog.stdlib.ProcessorFormatter:
    """A ``logging.Formatter`` that renders records through structlog."""
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=list(_RECORD_PROCESSORS),
    )


def configure(*, json_output: bool | None = None, level: str | None = None) -> None:
    """Replace the root handlers with one stderr handler using :func:`build_formatter`.

    Args:
        json_output: True for JSON lines, False for human-readable output.
            ``None`` reads ``PAGEREADER_LOG_JSON``.
        level: Root logger level. ``None`` reads ``PAGEREADER_LOG_LEVEL`` (default INFO).
    """
    if json_output is None:
        json_output = _env_flag(_JSON_ENV)
    if level is None:
        level = os.environ.get(_LEVEL_ENV, "INFO")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(json_output))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
