"""Tests for the named presets."""

from __future__ import annotations

import pytest

from kilonova.config import SimulationConfig
from kilonova.presets import get_preset, get_preset_names, list_presets


class TestPresets:

    def test_names(self):
        assert get_preset_names() == ["halo_kilonova", "jet_in_star"]

    @pytest.mark.parametrize("name", ["halo_kilonova", "jet_in_star"])
    def test_every_preset_validates(self, name):
        config = SimulationConfig.from_dict(get_preset(name))
        assert config.model.scenario_name == name

    def test_list_presets_fields(self):
        info = {p["name"]: p for p in list_presets()}
        assert info["jet_in_star"]["scenario"] == "jet_in_star"
        assert info["jet_in_star"]["final_time"] == 3.0
        assert info["halo_kilonova"]["description"]

    def test_meta_is_stripped(self):
        assert "_meta" not in get_preset("jet_in_star")

    def test_returns_independent_copies(self):
        first = get_preset("jet_in_star")
        first["mesh"]["num_polar_zones"] = 1
        assert get_preset("jet_in_star")["mesh"]["num_polar_zones"] == 64

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="Available"):
            get_preset("supernova")
