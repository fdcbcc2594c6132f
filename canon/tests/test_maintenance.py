"""
Tests for episode-end maintenance.

Tests:
- Secret decay and the inert transition
- Thread stall bookkeeping and urgency
- Explicit stat clamping
"""

import pytest

from ..engine_core.delta_engine import apply_delta
from ..engine_core.effects import Effect
from ..engine_core.maintenance import (
    StatBounds,
    advance_threads,
    apply_secret_decay,
    clamp_stats,
    decay_factor,
    is_urgent,
    secret_decay_effects,
)


class TestSecretDecay:
    """Tests for per-episode secret decay."""

    def test_decay_factor_halves_over_half_life(self):
        assert decay_factor(2) ** 2 == pytest.approx(0.5)
        assert decay_factor(1) == pytest.approx(0.5)

    def test_applies_to_named_stats_only(self, world_state):
        result = apply_secret_decay(world_state, episode=4, provenance_id="s01e04")
        assert result.success

        stats = world_state.secret("sec_grain_fraud")["stats"]
        assert stats["legal_value"] == pytest.approx(0.8 * 0.5 ** 0.5)
        assert stats["public_damage"] == pytest.approx(0.6 * 0.5 ** 0.5)
        assert stats["credibility"] == 0.7

    def test_records_last_decayed_episode(self, world_state):
        apply_secret_decay(world_state, episode=4)
        assert world_state.secret("sec_grain_fraud")["decay"]["last_decayed_episode"] == 4

    def test_weak_secret_goes_inert(self, world_state):
        apply_secret_decay(world_state, episode=4)
        assert world_state.secret("sec_old_affair")["status"] == "inert"
        assert world_state.secret("sec_grain_fraud")["status"] == "active"

    def test_revealed_secret_untouched(self, world_state):
        before = world_state.clone().secret("sec_forged_will")
        apply_secret_decay(world_state, episode=4)
        assert world_state.secret("sec_forged_will") == before

    def test_inert_secret_no_longer_decays(self, world_state):
        apply_secret_decay(world_state, episode=4)
        damage = world_state.secret("sec_old_affair")["stats"]["public_damage"]

        apply_secret_decay(world_state, episode=5)
        assert world_state.secret("sec_old_affair")["stats"]["public_damage"] == damage

    def test_zero_half_life_is_skipped(self, world_state):
        world_state.secret("sec_grain_fraud")["decay"]["half_life_episodes"] = 0
        paths = [e.path for e in secret_decay_effects(world_state, episode=4)]
        assert not any(p.startswith("secrets.sec_grain_fraud") for p in paths)

    def test_provenance_on_every_delta(self, world_state):
        result = apply_secret_decay(world_state, episode=4, provenance_id="s01e04")
        assert result.applied
        assert all(d.scene_id == "s01e04" for d in result.applied)


class TestThreads:
    """Tests for thread bookkeeping."""

    def test_is_urgent(self, world_state):
        assert is_urgent(world_state.thread("thr_grain"))
        assert not is_urgent(world_state.thread("thr_marriage"))

    def test_closed_thread_never_urgent(self, world_state):
        assert not is_urgent(world_state.thread("thr_inheritance"))

    def test_missing_cadence_not_urgent(self):
        assert not is_urgent({"id": "thr_x", "status": "open", "episodes_since_progress": 9})

    def test_advanced_thread_resets(self, world_state):
        result = advance_threads(world_state, ["thr_grain"], episode=5)
        assert result.success

        thread = world_state.thread("thr_grain")
        assert thread["episodes_since_progress"] == 0
        assert thread["last_advanced_episode"] == 5
        assert not is_urgent(thread)

    def test_other_open_threads_stall(self, world_state):
        advance_threads(world_state, ["thr_grain"], episode=5)
        thread = world_state.thread("thr_marriage")
        assert thread["episodes_since_progress"] == 1
        assert thread["last_advanced_episode"] == 3

    def test_closed_threads_untouched(self, world_state):
        advance_threads(world_state, [], episode=5)
        assert world_state.thread("thr_inheritance")["episodes_since_progress"] == 10


class TestClamp:
    """Tests for the explicit clamp pass."""

    def test_in_range_world_is_unchanged(self, world_state):
        before = world_state.clone()
        assert clamp_stats(world_state) == []
        assert world_state == before

    def test_clamps_out_of_range_values(self, world_state):
        apply_delta(world_state, Effect.set("characters.char_varo.stats.wealth", 150))
        apply_delta(world_state, Effect.set("world.global.unrest", -2))
        apply_delta(world_state, Effect.subtract("relationships.rel_varo_quintus.weights.fear", 45))

        changed = clamp_stats(world_state)

        assert sorted(changed) == [
            "characters.char_varo.stats.wealth",
            "relationships.rel_varo_quintus.weights.fear",
            "world.global.unrest",
        ]
        assert world_state.character("char_varo")["stats"]["wealth"] == 100
        assert world_state.world["global"]["unrest"] == 0
        assert world_state.relationship("rel_varo_quintus")["weights"]["fear"] == 0

    def test_custom_bounds(self, world_state):
        bounds = StatBounds(character_stats=(0, 50))
        changed = clamp_stats(world_state, bounds)

        assert "characters.char_varo.stats.dignitas" in changed
        assert world_state.character("char_varo")["stats"]["dignitas"] == 50
        assert world_state.character("char_quintus")["stats"]["auctoritas"] == 40
