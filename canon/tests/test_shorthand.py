"""
Tests for effects and shorthand expansion.

Tests:
- Effect JSON shape (from/from_ mapping, omitted fields)
- Committed delta provenance
- Shorthand path expansion
"""

from ..engine_core.effects import (
    CommittedDelta,
    DeltaOperation,
    Effect,
    EpisodeDeltas,
)
from ..engine_core.shorthand import (
    ShorthandBinding,
    expand_effects,
    expand_shorthand_path,
)


class TestEffect:
    """Tests for the Effect value type."""

    def test_from_dict_maps_from_key(self):
        effect = Effect.from_dict({
            "path": "assets.cash_ledger",
            "op": "transfer",
            "from": "char_varo",
            "to": "char_quintus",
            "denarii": 100,
        })
        assert effect.from_ == "char_varo"
        assert effect.operation == DeltaOperation.TRANSFER

    def test_to_dict_omits_unset_fields(self):
        assert Effect.add("world.global.unrest", 1).to_dict() == {
            "path": "world.global.unrest",
            "op": "add",
            "value": 1,
        }

    def test_transfer_factory_shape(self):
        data = Effect.transfer("char_varo", "char_quintus", 50).to_dict()
        assert data == {
            "path": "assets.cash_ledger",
            "op": "transfer",
            "from": "char_varo",
            "to": "char_quintus",
            "denarii": 50,
        }

    def test_unknown_keys_ignored(self):
        effect = Effect.from_dict({"path": "x.y", "op": "set", "value": 1, "note": "ignored"})
        assert effect.value == 1

    def test_unknown_operation(self):
        assert Effect(path="x.y", op="explode").operation is None

    def test_enum_op_normalized(self):
        assert Effect(path="x.y", op=DeltaOperation.SET).op == "set"


class TestCommittedDelta:
    """Tests for provenance records."""

    def test_flattened_with_provenance(self):
        delta = CommittedDelta(
            effect=Effect.set("characters.char_varo.status.wanted", True),
            scene_id="s01e02_sc03",
            reason="Caught at the docks",
        )
        data = delta.to_dict()
        assert data["scene_id"] == "s01e02_sc03"
        assert data["reason"] == "Caught at the docks"
        assert data["op"] == "set"

    def test_episode_log_from_dict(self):
        log = EpisodeDeltas.from_dict({
            "episode_id": "s01e02",
            "deltas": [
                {"path": "world.global.unrest", "op": "add", "value": 2, "scene_id": "sc1"},
            ],
        })
        assert log.deltas[0].scene_id == "sc1"
        assert log.deltas[0].effect.value == 2


class TestShorthand:
    """Tests for relative path expansion."""

    def test_actor_path(self):
        binding = ShorthandBinding(actor_id="char_varo")
        assert expand_shorthand_path("actor.stats.wealth", binding) == "characters.char_varo.stats.wealth"

    def test_target_path(self):
        binding = ShorthandBinding(actor_id="char_varo", target_id="char_quintus")
        assert expand_shorthand_path("target.status.subpoenaed", binding) == (
            "characters.char_quintus.status.subpoenaed"
        )

    def test_relationship_path(self):
        binding = ShorthandBinding(
            actor_id="char_varo", target_id="char_quintus", relationship_id="rel_varo_quintus"
        )
        assert expand_shorthand_path("relationship.weights.fear", binding) == (
            "relationships.rel_varo_quintus.weights.fear"
        )

    def test_absolute_path_unchanged(self):
        binding = ShorthandBinding(actor_id="char_varo")
        assert expand_shorthand_path("world.global.unrest", binding) == "world.global.unrest"

    def test_unbound_target_left_unexpanded(self):
        binding = ShorthandBinding(actor_id="char_varo")
        assert expand_shorthand_path("target.stats.wealth", binding) == "target.stats.wealth"

    def test_prefix_must_be_whole_segment(self):
        binding = ShorthandBinding(actor_id="char_varo")
        assert expand_shorthand_path("actors.list", binding) == "actors.list"

    def test_expand_effects_preserves_order_and_inputs(self):
        binding = ShorthandBinding(actor_id="char_varo", target_id="char_quintus")
        effects = [
            Effect.add("actor.stats.wealth", -10),
            Effect.set("world.global.unrest", 5),
            Effect.add("target.stats.wealth", 10),
        ]

        expanded = expand_effects(effects, binding)

        assert [e.path for e in expanded] == [
            "characters.char_varo.stats.wealth",
            "world.global.unrest",
            "characters.char_quintus.stats.wealth",
        ]
        assert effects[0].path == "actor.stats.wealth"
