"""Tests for pixelpaint.ui.colors – colour helpers and constants."""

from __future__ import annotations

import pytest

from pixelpaint.ui.colors import BoardColors, blend_hex, chip_text_color, rgb_to_hex


# ===========================================================================
# BoardColors – constants exist
# ===========================================================================

class TestBoardColors:
    @pytest.mark.parametrize("name", ["BG", "PRIMARY", "CELL_EMPTY", "CELL_LABEL", "GRID_LINE", "TEXT_PRIMARY"])
    def test_hex(self, name):
        value = getattr(BoardColors, name)
        assert value.startswith("#")
        assert len(value) == 7

    def test_highlight_is_rgba(self):
        assert BoardColors.HIGHLIGHT.startswith("rgba(")


# ===========================================================================
# rgb_to_hex
# ===========================================================================

class TestRgbToHex:
    def test_basic(self):
        assert rgb_to_hex((255, 0, 16)) == "#FF0010"

    def test_clamps(self):
        assert rgb_to_hex((300, -5, 128)) == "#FF0080"

    def test_ignores_alpha(self):
        assert rgb_to_hex((1, 2, 3, 4)) == "#010203"


# ===========================================================================
# blend_hex
# ===========================================================================

class TestBlendHex:
    def test_t_zero_returns_a(self):
        assert blend_hex("#FF0000", "#0000FF", 0.0) == "#FF0000"

    def test_t_one_returns_b(self):
        assert blend_hex("#FF0000", "#0000FF", 1.0) == "#0000FF"

    def test_quarter_blend(self):
        result = blend_hex("#000000", "#FF0000", 0.25)
        assert int(result[1:3], 16) == 63

    def test_t_clamped(self):
        assert blend_hex("#FF0000", "#0000FF", 2.0) == "#0000FF"
        assert blend_hex("#FF0000", "#0000FF", -1.0) == "#FF0000"

    def test_invalid_returns_a(self):
        assert blend_hex("#GGHHII", "#000000", 0.5) == "#GGHHII"
        assert blend_hex("#FFF", "#000000", 0.5) == "#FFF"

    def test_whitespace_padding(self):
        assert blend_hex("  #FF0000  ", "  #0000FF  ", 0.0) == "#FF0000"


# ===========================================================================
# chip_text_color
# ===========================================================================

class TestChipTextColor:
    def test_light_chip_gets_dark_text(self):
        assert chip_text_color((255, 255, 255)) == BoardColors.TEXT_PRIMARY

    def test_dark_chip_gets_white_text(self):
        assert chip_text_color((10, 10, 10)) == "#FFFFFF"
