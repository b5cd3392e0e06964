"""Tests for utility helper functions."""

import pytest


class TestPowerOfTwo:
    """Tests for the power-of-two helpers."""

    def test_is_power_of_two(self) -> None:
        from notso_atlas.utils import is_power_of_two

        assert is_power_of_two(1)
        assert is_power_of_two(2048)
        assert not is_power_of_two(0)
        assert not is_power_of_two(-4)
        assert not is_power_of_two(1500)

    def test_next_power_of_two(self) -> None:
        from notso_atlas.utils import next_power_of_two

        assert next_power_of_two(0) == 1
        assert next_power_of_two(64) == 64
        assert next_power_of_two(65) == 128
        assert next_power_of_two(1500) == 2048

    def test_floor_power_of_two(self) -> None:
        from notso_atlas.utils import floor_power_of_two

        assert floor_power_of_two(1) == 1
        assert floor_power_of_two(1000) == 512
        assert floor_power_of_two(1024) == 1024

    def test_mip_levels(self) -> None:
        from notso_atlas.utils import mip_levels

        assert mip_levels(1) == 1
        assert mip_levels(256) == 9
        assert mip_levels(2048) == 12


class TestNameMatching:
    """Tests for wildcard and allow/exclude matching."""

    def test_star_matches_everything(self) -> None:
        from notso_atlas.utils import matches_wildcard

        assert matches_wildcard("_MainTex", "*")

    def test_wildcard_pattern_matches_whole_name(self) -> None:
        from notso_atlas.utils import matches_wildcard

        assert matches_wildcard("_ShadowMask", "*Shadow*")
        assert matches_wildcard("_shadowmask", "*Shadow*")
        assert not matches_wildcard("_MainTex", "*Shadow*")
        assert not matches_wildcard("_MainTex2", "*Tex")

    def test_plain_pattern_is_substring(self) -> None:
        from notso_atlas.utils import matches_wildcard

        assert matches_wildcard("Hidden/Internal", "hidden")

    def test_exclusion_wins(self) -> None:
        from notso_atlas.utils import is_name_allowed

        assert not is_name_allowed("_BumpMap", "*", "_BumpMap")
        assert is_name_allowed("_MainTex", "*", "_BumpMap")

    def test_empty_allow_list_allows_all(self) -> None:
        from notso_atlas.utils import is_name_allowed

        assert is_name_allowed("Standard", "", "")

    def test_allow_list_restricts(self) -> None:
        from notso_atlas.utils import is_name_allowed

        assert is_name_allowed("_MainTex", "_MainTex,_BumpMap", "")
        assert not is_name_allowed("_EmissionMap", "_MainTex,_BumpMap", "")

    def test_split_patterns_drops_blanks(self) -> None:
        from notso_atlas.utils import split_patterns

        assert split_patterns(" a, ,b ,") == ["a", "b"]
        assert split_patterns("") == []


class TestParseOverrides:
    """Tests for name:value override strings."""

    def test_parses_entries(self) -> None:
        from notso_atlas.utils import parse_overrides

        assert parse_overrides("_MainTex:1024, _BumpMap:512") == {
            "_maintex": 1024,
            "_bumpmap": 512,
        }

    def test_empty(self) -> None:
        from notso_atlas.utils import parse_overrides

        assert parse_overrides("") == {}

    def test_missing_colon_rejected(self) -> None:
        from notso_atlas.utils import parse_overrides

        with pytest.raises(ValueError, match="Malformed"):
            parse_overrides("_MainTex=1024")

    def test_non_integer_rejected(self) -> None:
        from notso_atlas.utils import parse_overrides

        with pytest.raises(ValueError, match="not an integer"):
            parse_overrides("_MainTex:big")


class TestSanitizeName:
    """Tests for sanitize_name function."""

    def test_replaces_special_characters(self) -> None:
        from notso_atlas.utils import sanitize_name

        assert sanitize_name("Custom/Toon Shader") == "Custom_Toon_Shader"

    def test_collapses_and_strips_underscores(self) -> None:
        from notso_atlas.utils import sanitize_name

        assert sanitize_name("__a..b__") == "a_b"
