# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for config.py: Thresholds / ReadabilityOptions validation and env loading."""

from __future__ import annotations

import dataclasses

import pytest

from pagereader.config import (
    DEFAULT_TAGS_TO_SCORE,
    ReadabilityOptions,
    Thresholds,
)
from pagereader.errors import ConfigError


class TestDefaults:
    def test_option_defaults(self):
        opts = ReadabilityOptions()
        assert opts.max_elems_to_parse == 0
        assert opts.n_top_candidates == 5
        assert opts.char_threshold == 500
        assert opts.tags_to_score == frozenset(DEFAULT_TAGS_TO_SCORE)
        assert opts.keep_classes is False
        assert opts.disable_json_ld is False

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ReadabilityOptions().char_threshold = 10  # type: ignore[misc]

    def test_preserved_classes_include_page(self):
        opts = ReadabilityOptions(classes_to_preserve=["caption"])
        assert opts.preserved_classes == {"caption", "page"}

    def test_tags_to_score_lowercased(self):
        assert ReadabilityOptions(tags_to_score=["P", "TD"]).tags_to_score == {"p", "td"}


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_elems_to_parse": -1},
            {"n_top_candidates": 0},
            {"char_threshold": -5},
            {"tags_to_score": ()},
        ],
    )
    def test_invalid_options(self, kwargs):
        with pytest.raises(ConfigError):
            ReadabilityOptions(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"link_density_cutoff": 1.5},
            {"title_similarity": -0.1},
            {"length_bonus_divisor": 0},
            {"min_alternative_candidates": 0},
        ],
    )
    def test_invalid_thresholds(self, kwargs):
        with pytest.raises(ConfigError):
            Thresholds(**kwargs)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            ReadabilityOptions(n_top_candidates=-1)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self):
        assert ReadabilityOptions.from_env({}) == ReadabilityOptions()

    def test_all_variables(self):
        opts = ReadabilityOptions.from_env(
            {
                "PAGEREADER_MAX_ELEMS": "5000",
                "PAGEREADER_N_TOP_CANDIDATES": "3",
                "PAGEREADER_CHAR_THRESHOLD": " 250 ",
                "PAGEREADER_CLASSES_TO_PRESERVE": "caption, figure-note  lead",
                "PAGEREADER_KEEP_CLASSES": "yes",
                "PAGEREADER_DISABLE_JSON_LD": "true",
            }
        )
        assert opts.max_elems_to_parse == 5000
        assert opts.n_top_candidates == 3
        assert opts.char_threshold == 250
        assert opts.classes_to_preserve == {"caption", "figure-note", "lead"}
        assert opts.keep_classes is True
        assert opts.disable_json_ld is True

    def test_false_flag(self):
        assert ReadabilityOptions.from_env({"PAGEREADER_KEEP_CLASSES": "0"}).keep_classes is False

    def test_non_integer(self):
        with pytest.raises(ConfigError, match="PAGEREADER_CHAR_THRESHOLD"):
            ReadabilityOptions.from_env({"PAGEREADER_CHAR_THRESHOLD": "lots"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("PAGEREADER_N_TOP_CANDIDATES", "7")
        assert ReadabilityOptions.from_env().n_top_candidates == 7

    def test_negative_value_still_validated(self):
        with pytest.raises(ConfigError):
            ReadabilityOptions.from_env({"PAGEREADER_MAX_ELEMS": "-1"})
