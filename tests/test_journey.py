"""Tests for the karma journey (individual layer)."""

import pytest

from fourlife.core.actions import ACTIONS
from fourlife.core.config import LifeConfig
from fourlife.core.events import EventType
from fourlife.core.journey import KarmaJourney, run_journey
from fourlife.core.lifecycle import DeathCause, LifecycleError
from fourlife.core.trust import KarmaTier


def _config(subscore: float = 0.5, **overrides) -> LifeConfig:
    params = dict(
        initial_talent=subscore,
        initial_training=subscore,
        initial_temperament=subscore,
    )
    params.update(overrides)
    return LifeConfig(**params)


def _types(journey: KarmaJourney) -> list[EventType]:
    return [e.event_type for e in journey.events]


class TestAct:
    def test_cost_scales_with_consistency(self):
        journey = KarmaJourney()
        tick = journey.act("help_peer")
        assert tick.cost == 7
        assert tick.balance_after == pytest.approx(88.0)
        assert journey.current.tick == 1
        assert journey.current.choices == ("help_peer",)

    def test_quality_ramp_reward(self):
        journey = KarmaJourney(_config(initial_consistency=1.0))
        tick = journey.act("meaningful_contribution")
        assert tick.cost == 15
        assert tick.reward == pytest.approx(30.0)
        assert tick.balance_after == pytest.approx(115.0)

    def test_spam_earns_nothing(self):
        journey = KarmaJourney(_config(initial_consistency=1.0))
        tick = journey.act("spam")
        assert tick.reward == 0.0
        assert tick.balance_after == pytest.approx(95.0)

    def test_unknown_action(self):
        with pytest.raises(KeyError):
            KarmaJourney().act("teleport")

    def test_first_life_is_born(self):
        journey = KarmaJourney()
        assert _types(journey) == [EventType.BIRTH]
        assert journey.events[0].life_number == 1

    def test_reset_starts_over(self):
        journey = KarmaJourney()
        journey.act("rest")
        journey.reset()
        assert journey.current.tick == 0
        assert journey.ticks == ()
        assert len(journey.lineage) == 1


class TestDeath:
    def test_atp_exhaustion(self):
        journey = KarmaJourney(_config(initial_balance=10.0))
        tick = journey.act("complete_training")
        life = journey.current

        assert tick.cost == 14
        assert not life.alive
        assert life.balance == 0.0
        assert life.death_cause is DeathCause.ATP_EXHAUSTION
        assert life.karma_tier is KarmaTier.NEUTRAL
        assert EventType.AGENT_DEATH in _types(journey)

    def test_dead_life_cannot_act(self):
        journey = KarmaJourney(_config(initial_balance=10.0))
        journey.act("complete_training")
        with pytest.raises(LifecycleError):
            journey.act("rest")

    def test_trust_collapse(self):
        journey = KarmaJourney(_config(initial_consistency=0.2))
        journey.act("rest")
        life = journey.current
        assert life.death_cause is DeathCause.TRUST_COLLAPSE
        assert life.karma_tier is KarmaTier.CONSTRAINED


class TestRebirth:
    def test_neutral_rebirth(self):
        journey = KarmaJourney(_config(initial_balance=10.0))
        journey.act("complete_training")
        reborn = journey.start_next_life()

        assert reborn.life_number == 2
        assert (reborn.talent, reborn.balance, reborn.consistency) == (0.5, 100.0, 0.8)
        assert _types(journey)[-2:] == [EventType.AGENT_REBIRTH, EventType.BIRTH]
        assert journey.lineage[0].alive is False

    def test_honored_rebirth_bonus(self):
        journey = KarmaJourney(_config(0.8, initial_consistency=1.0, initial_balance=5.0))
        journey.act("help_peer")
        assert journey.current.karma_tier is KarmaTier.HONORED

        reborn = journey.start_next_life()
        assert reborn.talent == 0.6
        assert reborn.balance == 125.0
        assert reborn.consistency == 0.85

    def test_constrained_ends_lineage(self):
        journey = KarmaJourney(_config(0.1, initial_consistency=1.0, initial_balance=3.0))
        journey.act("help_peer")

        assert journey.current.karma_tier is KarmaTier.CONSTRAINED
        assert not journey.can_rebirth
        assert _types(journey)[-1] is EventType.LINEAGE_ENDED
        with pytest.raises(LifecycleError):
            journey.start_next_life()
        assert len(journey.lineage) == 1

    def test_constrained_rebirth_when_enabled(self):
        journey = KarmaJourney(_config(
            0.1, initial_consistency=1.0, initial_balance=3.0, rebirth_constrained=True,
        ))
        journey.act("help_peer")
        assert EventType.LINEAGE_ENDED not in _types(journey)

        reborn = journey.start_next_life()
        assert (reborn.talent, reborn.balance, reborn.consistency) == (0.4, 80.0, 0.7)

    def test_living_life_cannot_be_reborn(self):
        with pytest.raises(LifecycleError):
            KarmaJourney().start_next_life()


class TestTickEvents:
    def test_atp_crisis(self):
        journey = KarmaJourney(_config(initial_balance=20.0))
        journey.act("help_peer")
        assert journey.current.balance == pytest.approx(8.0)
        assert EventType.ATP_CRISIS in _types(journey)

    def test_threshold_crossed(self):
        journey = KarmaJourney(_config(0.49, initial_consistency=1.0))
        journey.act("consistent_delivery")
        assert EventType.THRESHOLD_CROSSED in _types(journey)

    def test_maturation_between_lives(self):
        journey = KarmaJourney(_config(initial_consistency=0.8, initial_balance=10.0))
        journey.act("complete_training")
        journey.start_next_life()
        for _ in range(4):
            journey.act("complete_training")

        assert not journey.current.alive
        maturation = [e for e in journey.events if e.event_type is EventType.MATURATION]
        assert len(maturation) == 1
        assert maturation[0].life_number == 2
        assert maturation[0].data["change"] == pytest.approx(0.0572, abs=1e-3)

    def test_event_steps_follow_ticks(self):
        journey = KarmaJourney()
        for _ in range(3):
            journey.act("rest")
        steps = [e.step for e in journey.events]
        assert steps == sorted(steps)
        assert [t.step for t in journey.ticks] == [1, 2, 3]


class TestRunJourney:
    def test_cooperative_policy_survives(self):
        result = run_journey(LifeConfig(ticks_per_life=30, random_seed=1), "cooperative")
        assert len(result.lineage) == 1
        assert result.lineage[0].alive
        assert len(result.ticks) == 30
        assert result.final_metrics["alive"] is True
        assert result.lives[0].cooperative_choices == 30

    def test_selfish_policy_ends_constrained(self):
        result = run_journey(LifeConfig(ticks_per_life=60, random_seed=3), "selfish")
        assert len(result.lineage) == 1
        assert result.lives[0].karma_tier == "constrained"
        assert result.lives[0].selfish_choices == result.lives[0].ticks
        assert any(e.event_type is EventType.LINEAGE_ENDED for e in result.events)

    def test_max_lives_caps_journey(self):
        def always_train(life, rng):
            return ACTIONS["complete_training"]

        config = LifeConfig(max_lives=2, initial_balance=10.0, random_seed=0)
        result = run_journey(config, always_train)
        assert len(result.lineage) == 2
        assert not result.lineage[-1].alive
        assert result.lives[-1].karma_tier == "neutral"

    def test_unknown_policy(self):
        with pytest.raises(KeyError, match="Unknown policy"):
            run_journey(policy="chaotic")

    def test_result_serializes(self):
        result = run_journey(LifeConfig(ticks_per_life=5, random_seed=2), "random")
        d = result.to_dict()
        assert d["final_metrics"]["total_ticks"] == len(d["ticks"])
        assert d["lives"][0]["life_number"] == 1
