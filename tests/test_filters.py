"""Tests for filter parsing and style presets."""

from __future__ import annotations

import pytest

from podremix.errors import UnknownPresetError
from podremix.filters import (
    IDENTITY,
    PRESETS,
    FilterDescriptor,
    default_preset,
    get_preset,
    parse_filter,
    presets_for,
)


class TestParseFilter:
    def test_brightness_and_contrast(self):
        d = parse_filter("brightness(1.2) contrast(0.8)")
        assert d == FilterDescriptor(brightness=1.2, contrast=0.8, saturation=1.0, sepia=0.0)

    @pytest.mark.parametrize("text", ["none", "", None, "garbage(1)", "NONE", "   "])
    def test_identity_inputs(self, text):
        assert parse_filter(text) == IDENTITY

    def test_case_and_whitespace_insensitive(self):
        d = parse_filter("  SATURATE( 1.5 )   Sepia(.2)")
        assert d.saturation == 1.5
        assert d.sepia == 0.2

    def test_saturation_alias(self):
        assert parse_filter("saturation(0.7)").saturation == 0.7

    def test_first_occurrence_wins(self):
        assert parse_filter("brightness(1.1) brightness(2)").brightness == 1.1

    def test_sepia_clamped(self):
        assert parse_filter("sepia(3)").sepia == 1.0

    def test_negative_or_non_numeric_ignored(self):
        d = parse_filter("brightness(-1) contrast(abc) saturate(1.3)")
        assert d.brightness == 1.0
        assert d.contrast == 1.0
        assert d.saturation == 1.3

    def test_unknown_tokens_ignored(self):
        d = parse_filter("invert(1) hue-rotate(180deg) contrast(1.2)")
        assert d == FilterDescriptor(contrast=1.2)

    def test_to_css(self):
        assert IDENTITY.to_css() == "none"
        d = FilterDescriptor(brightness=1.05, saturation=0.9, sepia=0.3)
        assert parse_filter(d.to_css()) == d


class TestPresets:
    def test_all_presets_parse(self):
        assert set(PRESETS) == {"original", "vibrant", "vintage", "invert", "muted", "bold"}
        assert PRESETS["vintage"].descriptor == FilterDescriptor(brightness=1.05, saturation=0.9, sepia=0.3)
        assert PRESETS["original"].descriptor.is_identity

    def test_only_invert_flips_lightness(self):
        assert [p.id for p in PRESETS.values() if p.invert_lightness] == ["invert"]

    def test_get_preset_case_insensitive(self):
        assert get_preset("Vibrant").id == "vibrant"

    def test_unknown_preset(self):
        with pytest.raises(UnknownPresetError):
            get_preset("neon")
        with pytest.raises(KeyError):
            get_preset("neon")

    def test_presets_for_polarity(self):
        assert [p.id for p in presets_for("dark")] == ["original", "invert", "bold"]
        assert [p.id for p in presets_for("light")] == ["original", "vibrant", "vintage", "muted"]

    def test_default_preset(self):
        assert default_preset("light").id == "vibrant"
        assert default_preset("dark").id == "invert"

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            PRESETS["neon"] = PRESETS["bold"]
