# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Immutable extraction configuration.

Three layers, all frozen and built once:

- ``Patterns``: compiled class/id/URL regexes shared by scorer, selector and cleaner.
- ``Thresholds``: every tunable number (weights, ratios, cutoffs). One place,
  so the selector and the cleaner can never drift apart.
- ``ReadabilityOptions``: per-caller knobs plus the two above.

``ReadabilityOptions.from_env()`` mirrors the ``PAGEREADER_*`` environment
overrides used by the CLI.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from pagereader.errors import ConfigError

DEFAULT_MAX_ELEMS_TO_PARSE = 0  # 0 = unlimited
DEFAULT_N_TOP_CANDIDATES = 5
DEFAULT_CHAR_THRESHOLD = 500
DEFAULT_TAGS_TO_SCORE = ("section", "h2", "h3", "h4", "h5", "h6", "p", "td", "pre")

# Classes the pipeline assigns itself; always preserved.
PIPELINE_CLASSES = frozenset({"page"})


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Patterns:
    """Compiled regexes. Instances are process-wide constants; never mutated."""

    unlikely_candidates: re.Pattern = re.compile(
        r"-ad-|ai2html|banner|breadcrumbs|combx|comment|community|cover-wrap|disqus|extra|footer|gdpr"
        r"|header|legends|menu|related|remark|replies|rss|shoutbox|sidebar|skyscraper|social|sponsor"
        r"|supplemental|ad-break|agegate|pagination|pager|popup|yom-remote",
        re.IGNORECASE,
    )
    maybe_candidate: re.Pattern = re.compile(r"and|article|body|column|content|main|shadow", re.IGNORECASE)
    positive: re.Pattern = re.compile(
        r"article|body|content|entry|hentry|h-entry|main|page|pagination|post|text|blog|story",
        re.IGNORECASE,
    )
    negative: re.Pattern = re.compile(
        r"-ad-|hidden|^hid$| hid$| hid |^hid |banner|combx|comment|com-|contact|foot|footer|footnote|gdpr"
        r"|masthead|media|meta|outbrain|promo|related|scroll|share|shoutbox|sidebar|skyscraper|sponsor"
        r"|shopping|tags|tool|widget",
        re.IGNORECASE,
    )
    byline: re.Pattern = re.compile(r"byline|author|dateline|writtenby|p-author", re.IGNORECASE)
    videos: re.Pattern = re.compile(
        r"//(www\.)?((dailymotion|youtube|youtube-nocookie|player\.vimeo|v\.qq)\.com"
        r"|(archive|upload\.wikimedia)\.org|player\.twitch\.tv)",
        re.IGNORECASE,
    )
    share_elements: re.Pattern = re.compile(r"(\b|_)(share|sharedaddy)(\b|_)", re.IGNORECASE)
    unlikely_roles: frozenset[str] = frozenset(
        {"menu", "menubar", "complementary", "navigation", "alert", "alertdialog", "dialog"}
    )
    json_ld_article_types: re.Pattern = re.compile(
        r"^(Article|AdvertiserContentArticle|NewsArticle|AnalysisNewsArticle|AskPublicNewsArticle"
        r"|BackgroundNewsArticle|OpinionNewsArticle|ReportageNewsArticle|ReviewNewsArticle|Report"
        r"|SatiricalArticle|ScholarlyArticle|MedicalScholarlyArticle|SocialMediaPosting|BlogPosting"
        r"|LiveBlogPosting|DiscussionForumPosting|TechArticle|APIReference)$"
    )


DEFAULT_PATTERNS = Patterns()


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Every tunable number used by the scorer, selector and cleaner."""

    # ---- Node scorer ----
    class_weight: int = 25
    min_paragraph_length: int = 25  # shorter scorable text is ignored
    length_bonus_divisor: int = 100
    length_bonus_cap: int = 3

    # ---- Candidate selection ----
    alternative_candidate_ratio: float = 0.75
    min_alternative_candidates: int = 3
    parent_climb_ratio: float = 1 / 3
    single_p_link_density: float = 0.25  # div holding one <p> collapses into it

    # ---- Sibling merge ----
    sibling_score_ratio: float = 0.2
    sibling_score_floor: float = 10.0
    sibling_class_bonus_ratio: float = 0.2
    sibling_p_min_length: int = 80
    sibling_p_max_link_density: float = 0.25

    # ---- Conditional cleaner ----
    link_density_cutoff: float = 0.5
    link_density_cutoff_relaxed: float = 0.75  # ul/ol/li/table/select
    media_text_per_item: int = 100
    data_table_min_rows: int = 10
    data_table_max_columns: int = 4
    data_table_min_cells: int = 10

    # ---- Titles / bylines ----
    title_similarity: float = 0.75
    title_max_length: int = 150
    title_max_words: int = 24
    byline_max_length: int = 100

    # ---- Preprocessor ----
    b64_placeholder_max: int = 133

    def __post_init__(self) -> None:
        for name in ("link_density_cutoff", "link_density_cutoff_relaxed", "title_similarity"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")
        if self.length_bonus_divisor <= 0:
            raise ConfigError(f"length_bonus_divisor must be > 0, got {self.length_bonus_divisor}")
        if self.min_alternative_candidates < 1:
            raise ConfigError(f"min_alternative_candidates must be >= 1, got {self.min_alternative_candidates}")


DEFAULT_THRESHOLDS = Thresholds()


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReadabilityOptions:
    """Caller-facing configuration for one parse."""

    max_elems_to_parse: int = DEFAULT_MAX_ELEMS_TO_PARSE
    n_top_candidates: int = DEFAULT_N_TOP_CANDIDATES
    char_threshold: int = DEFAULT_CHAR_THRESHOLD
    classes_to_preserve: frozenset[str] = field(default_factory=frozenset)
    tags_to_score: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_TAGS_TO_SCORE))
    keep_classes: bool = False
    disable_json_ld: bool = False
    thresholds: Thresholds = DEFAULT_THRESHOLDS
    patterns: Patterns = DEFAULT_PATTERNS

    def __post_init__(self) -> None:
        if self.max_elems_to_parse < 0:
            raise ConfigError(f"max_elems_to_parse must be >= 0, got {self.max_elems_to_parse}")
        if self.n_top_candidates <= 0:
            raise ConfigError(f"n_top_candidates must be > 0, got {self.n_top_candidates}")
        if self.char_threshold < 0:
            raise ConfigError(f"char_threshold must be >= 0, got {self.char_threshold}")
        if not self.tags_to_score:
            raise ConfigError("tags_to_score must not be empty")
        # Accept any iterable of strings; normalise to lowercase frozensets.
        object.__setattr__(self, "classes_to_preserve", frozenset(self.classes_to_preserve))
        object.__setattr__(self, "tags_to_score", frozenset(t.lower() for t in self.tags_to_score))

    @property
    def preserved_classes(self) -> frozenset[str]:
        """Caller classes plus the classes the pipeline assigns itself."""
        return self.classes_to_preserve | PIPELINE_CLASSES

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ReadabilityOptions:
        """Build options from ``PAGEREADER_*`` environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        for key, attr in (
            ("PAGEREADER_MAX_ELEMS", "max_elems_to_parse"),
            ("PAGEREADER_N_TOP_CANDIDATES", "n_top_candidates"),
            ("PAGEREADER_CHAR_THRESHOLD", "char_threshold"),
        ):
            raw = env.get(key, "").strip()
            if raw:
                try:
                    kwargs[attr] = int(raw)
                except ValueError:
                    raise ConfigError(f"{key} must be an integer, got {raw!r}") from None

        classes = env.get("PAGEREADER_CLASSES_TO_PRESERVE", "").strip()
        if classes:
            kwargs["classes_to_preserve"] = frozenset(c for c in re.split(r"[\s,]+", classes) if c)

        for key, attr in (
            ("PAGEREADER_KEEP_CLASSES", "keep_classes"),
            ("PAGEREADER_DISABLE_JSON_LD", "disable_json_ld"),
        ):
            raw = env.get(key, "").strip().lower()
            if raw:
                kwargs[attr] = raw in ("1", "true", "yes", "on")

        return cls(**kwargs)
