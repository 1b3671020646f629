# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Article extraction engine.

Core data structures shared by the preprocessor, scorer, selector and cleaner.
Scoring state lives in a per-attempt ScoreBoard rather than on the elements,
so a retry starts from a clean slate by construction.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field


class Flags(enum.IntFlag):
    """Heuristics active during one grab attempt."""

    NONE = 0
    STRIP_UNLIKELYS = 0x1
    WEIGHT_CLASSES = 0x2
    CLEAN_CONDITIONALLY = 0x4
    ALL = STRIP_UNLIKELYS | WEIGHT_CLASSES | CLEAN_CONDITIONALLY


# Attempt order: everything on, then switch heuristics off one at a time.
RELAXATION_STEPS: tuple[Flags, ...] = (
    Flags.ALL,
    Flags.WEIGHT_CLASSES | Flags.CLEAN_CONDITIONALLY,
    Flags.CLEAN_CONDITIONALLY,
    Flags.NONE,
)


@dataclass(slots=True)
class Annotation:
    """Scoring state attached to one element for one attempt."""

    content_score: float = 0.0
    initialized: bool = False


@dataclass(slots=True)
class ScoreBoard:
    """Element → Annotation map for a single attempt.

    Keys hold strong references, which keeps lxml from recycling the proxy
    objects (and therefore their identity) while the attempt runs.
    """

    _annotations: dict = field(default_factory=dict)

    def __contains__(self, el) -> bool:
        return el in self._annotations

    def __len__(self) -> int:
        return len(self._annotations)

    def get(self, el) -> Annotation | None:
        return self._annotations.get(el)

    def annotation(self, el) -> Annotation:
        """Annotation for *el*, created (uninitialized) on first access."""
        ann = self._annotations.get(el)
        if ann is None:
            ann = self._annotations[el] = Annotation()
        return ann

    def score(self, el) -> float:
        ann = self._annotations.get(el)
        return ann.content_score if ann is not None else 0.0

    def is_initialized(self, el) -> bool:
        ann = self._annotations.get(el)
        return ann is not None and ann.initialized

    def elements(self) -> Iterator:
        """Initialized elements, in insertion order."""
        return iter([el for el, ann in self._annotations.items() if ann.initialized])


@dataclass(frozen=True, slots=True)
class Candidate:
    """A ranked (element, score) pair. ``order`` is the document position."""

    element: object = field(compare=False, hash=False)
    score: float
    order: int
