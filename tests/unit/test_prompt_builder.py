"""Tests for promptgrid.api.prompt_builder — prompt composition.

Tests cover:
- Identity when no hints are given.
- Aspect ratio clause.
- 1K / 2K resolution clauses and ignored resolution values.
- Clause order, joiner and terminator.
"""

from __future__ import annotations

import pytest

from promptgrid.api.prompt_builder import build_prompt


class TestIdentity:
    """Without hints the prompt passes through untouched."""

    @pytest.mark.parametrize(
        "prompt",
        ["A cat", "A cat.", "  spaced  ", "multi\nline prompt", "ünïcødé ✨"],
    )
    def test_no_hints_returns_prompt_unchanged(self, prompt):
        assert build_prompt(prompt) == prompt

    def test_none_and_empty_hints_are_ignored(self):
        assert build_prompt("A cat", aspect_ratio=None, resolution=None) == "A cat"
        assert build_prompt("A cat", aspect_ratio="", resolution="") == "A cat"


class TestAspectRatio:
    def test_aspect_ratio_clause(self):
        assert build_prompt("A cat", aspect_ratio="16:9") == "A cat. Use a 16:9 aspect ratio."

    def test_aspect_ratio_is_not_validated(self):
        """Any non-empty value is passed through as-is."""
        assert build_prompt("A cat", aspect_ratio="weird") == "A cat. Use a weird aspect ratio."


class TestResolution:
    def test_2k_clause(self):
        result = build_prompt("A cat", resolution="2048")
        assert "Output the image at 2K resolution (2048×2048 pixels)" in result
        assert result == "A cat. Output the image at 2K resolution (2048×2048 pixels)."

    def test_1k_clause(self):
        result = build_prompt("A cat", resolution="1024")
        assert result == "A cat. Output the image at 1K resolution (1024×1024 pixels)."

    @pytest.mark.parametrize("resolution", ["512", "4096", "2k", "1K", " 2048"])
    def test_unknown_resolution_adds_nothing(self, resolution):
        assert build_prompt("A cat", resolution=resolution) == "A cat"

    def test_unknown_resolution_with_aspect_ratio(self):
        assert build_prompt("A cat", aspect_ratio="1:1", resolution="999") == "A cat. Use a 1:1 aspect ratio."


class TestCombined:
    def test_aspect_ratio_comes_before_resolution(self):
        result = build_prompt("A cat", aspect_ratio="9:16", resolution="2048")
        assert result == (
            "A cat. Use a 9:16 aspect ratio. "
            "Output the image at 2K resolution (2048×2048 pixels)."
        )

    def test_trailing_period_in_prompt_is_kept(self):
        """The prompt is used verbatim even if it already ends with a period."""
        assert build_prompt("A cat.", aspect_ratio="1:1") == "A cat.. Use a 1:1 aspect ratio."
