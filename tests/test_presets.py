"""Tests for the built-in style catalog and JSON catalogs."""

import json

import pytest

from dna import ConfigError, default_configuration
from presets import (
    CATALOG,
    UnknownStyle,
    all_presets,
    find_preset,
    get_preset,
    load_catalog,
    preset_configuration,
)

STYLE_IDS = [
    "caravaggio", "rembrandt", "vermeer", "friedrich", "turner",
    "monet", "klimt", "chagall", "bacon", "beksinski",
]


class TestBuiltinCatalog:

    def test_ids_in_order(self):
        assert list(CATALOG) == STYLE_IDS
        assert [sid for sid, _ in all_presets()] == STYLE_IDS

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            CATALOG["dali"] = CATALOG["vermeer"]

    def test_vermeer_is_the_default_dna(self):
        cfg = preset_configuration("vermeer")
        assert cfg.meta.artist == "Vermeer"
        assert cfg.temporal_spatial == default_configuration().temporal_spatial
        assert cfg.finition == default_configuration().finition

    @pytest.mark.parametrize("style_id", STYLE_IDS)
    def test_presets_are_in_range(self, style_id):
        cfg = get_preset(style_id).configuration
        for _, group in cfg.groups():
            assert 0 <= group.master <= 100
            for _, value in group.sub_parameters():
                assert 0 <= value <= 100

    def test_lookup_is_case_insensitive(self):
        assert find_preset("  Turner ").display_name == "J. M. W. Turner"

    def test_unknown_style(self):
        assert find_preset("dali") is None
        assert preset_configuration("dali") is None
        with pytest.raises(UnknownStyle, match="Available: caravaggio"):
            get_preset("dali")

    def test_unknown_style_is_key_error(self):
        with pytest.raises(KeyError):
            get_preset("dali")

    @pytest.mark.parametrize("style_id", ["monet", "BACON"])
    def test_configuration_lookups_agree(self, style_id):
        assert preset_configuration(style_id) is get_preset(style_id).configuration


class TestJsonCatalog:

    def test_roundtrip(self, tmp_path):
        path = tmp_path / "masters.json"
        data = {"masters": {sid: CATALOG[sid].to_dict() for sid in ("monet", "bacon")}}
        path.write_text(json.dumps(data), encoding="utf-8")
        catalog = load_catalog(path)
        assert list(catalog) == ["monet", "bacon"]
        assert catalog["bacon"] == CATALOG["bacon"]

    def test_missing_configuration(self, tmp_path):
        path = tmp_path / "masters.json"
        path.write_text(json.dumps({"masters": {"x": {"displayName": "X"}}}), encoding="utf-8")
        with pytest.raises(ConfigError, match="masters.x.configuration"):
            load_catalog(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "masters.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(ConfigError, match="masters"):
            load_catalog(path)
