"""Tests for the experiment runner."""

import pytest

from fourlife.core.config import SocietyConfig
from fourlife.experiment.runner import ExperimentRunner


def _small(**overrides) -> SocietyConfig:
    params = dict(experiment_name="small", random_seed=3, epochs=4)
    params.update(overrides)
    return SocietyConfig(**params)


class TestRunExperiment:
    def test_summary(self):
        exp = ExperimentRunner().run_experiment(_small())
        assert len(exp.result.epochs) == 4
        assert exp.final_alive == exp.result.final_metrics.alive_count
        assert 0.0 <= exp.mean_cooperation_rate <= 1.0
        assert 0.0 <= exp.final_gini <= 1.0
        assert set(exp.mean_balance_by_archetype) <= {
            "cooperative", "defecting", "reciprocating", "cautious", "adaptive",
        }


class TestBatch:
    def test_diffs_against_first(self):
        batch = ExperimentRunner().run_batch({
            "base": _small(),
            "costly": _small(interaction_cost=2.0),
        })
        assert set(batch.results) == {"base", "costly"}
        assert batch.config_diffs["base_vs_costly"]["interaction_cost"] == (1.0, 2.0)

    def test_single_config_has_no_diffs(self):
        batch = ExperimentRunner().run_batch({"only": _small()})
        assert batch.config_diffs == {}


class TestSweep:
    def test_parameter_sweep(self):
        results = ExperimentRunner().run_parameter_sweep(
            _small(), "transfer_fee_rate", [0.0, 0.1],
        )
        assert list(results) == ["transfer_fee_rate=0.0", "transfer_fee_rate=0.1"]
        assert results["transfer_fee_rate=0.1"].config.transfer_fee_rate == 0.1
        assert results["transfer_fee_rate=0.0"].result.final_metrics.burned_total == 0.0

    def test_unknown_parameter(self):
        with pytest.raises(KeyError, match="Unknown parameter"):
            ExperimentRunner().run_parameter_sweep(_small(), "gravity", [1])

    def test_multi_seed(self):
        results = ExperimentRunner().run_multi_seed(_small(), [1, 2])
        assert [r.config.random_seed for r in results] == [1, 2]
        assert results[0].config.experiment_name == "small_seed1"
