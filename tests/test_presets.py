"""Tests for the society and journey presets."""

import pytest

from fourlife.core.config import LifeConfig, SocietyConfig
from fourlife.experiment.presets import (
    LIFE_PRESETS,
    PRESETS,
    get_life_preset,
    get_preset,
    list_life_presets,
    list_presets,
)


class TestSocietyPresets:
    def test_all_presets_validate(self):
        for name in list_presets():
            config = get_preset(name)
            assert isinstance(config, SocietyConfig)
            assert config.validate() is config
            assert config.experiment_name == name

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="Unknown preset"):
            get_preset("utopia")

    def test_presets_return_fresh_configs(self):
        first = get_preset("baseline")
        first.epochs = 1
        assert get_preset("baseline").epochs == 50

    def test_isolation_demo_mix(self):
        config = get_preset("isolation_demo")
        assert config.random_seed == 7
        assert config.archetype_distribution["cooperative"] == 6
        assert config.archetype_distribution["defecting"] == 4

    def test_registry_matches_listing(self):
        assert list_presets() == list(PRESETS)
        assert "hostile_world" in PRESETS


class TestLifePresets:
    def test_all_life_presets_validate(self):
        for name in list_life_presets():
            config = get_life_preset(name)
            assert isinstance(config, LifeConfig)
            assert config.validate() is config

    def test_harsh_world_is_harsh(self):
        harsh, default = get_life_preset("harsh_world"), LifeConfig()
        assert harsh.initial_balance < default.initial_balance
        assert harsh.initial_talent < default.initial_talent

    def test_unknown_life_preset(self):
        with pytest.raises(KeyError):
            get_life_preset("paradise")
        assert set(LIFE_PRESETS) == {"gentle_start", "harsh_world", "fast_learner"}
