"""
Tests for world document schemas and cross-reference validation.

Tests:
- Document models accept the fixture world and keep extra keys
- Cross-reference errors and bounds warnings
- Operator definition checks
"""

import pytest
from pydantic import ValidationError

from ..engine_core.effects import DeltaOperation, Effect
from ..engine_core.delta_engine import apply_delta
from ..world_schema import (
    DOCUMENT_SCHEMAS,
    OperatorsDocument,
    WorldValidationError,
    validate_operators,
    validate_world,
)
from ..world_schema.documents import EffectModel, Relationship, WorldDocument


class TestDocuments:
    """Tests for the pydantic document models."""

    def test_fixture_documents_validate(self, world_documents, operators_document):
        for name, document in world_documents.items():
            DOCUMENT_SCHEMAS[name].model_validate(document)
        OperatorsDocument.model_validate(operators_document)

    def test_extra_keys_allowed(self, world_documents):
        world = world_documents["world"]
        world["omens"] = ["eagle", "comet"]
        model = WorldDocument.model_validate(world)
        assert model.model_extra["omens"] == ["eagle", "comet"]

    def test_aliased_fields(self, world_documents):
        model = WorldDocument.model_validate(world_documents["world"])
        assert model.global_.unrest == 4
        edge = Relationship.model_validate(world_documents["relationships"]["edges"][0])
        assert edge.from_ == "char_varo"

    def test_unknown_enum_rejected(self, world_documents):
        edge = world_documents["relationships"]["edges"][0]
        edge["type"] = "rival"
        with pytest.raises(ValidationError):
            Relationship.model_validate(edge)

    def test_effect_model_rejects_unknown_op(self):
        with pytest.raises(ValidationError):
            EffectModel.model_validate({"path": "world.global.unrest", "op": "explode"})

    def test_effect_model_matches_effect_shape(self):
        data = Effect.transfer("char_varo", "char_quintus", 10).to_dict()
        model = EffectModel.model_validate(data)
        assert model.model_dump(by_alias=True, exclude_none=True, mode="json") == data

    def test_effect_model_uses_engine_operations(self):
        assert EffectModel.model_fields["op"].annotation is DeltaOperation
        model = EffectModel.model_validate({"path": "world.global.unrest", "op": "add", "value": 1})
        assert model.op is DeltaOperation.ADD


class TestValidateWorld:
    """Tests for validate_world()."""

    def test_fixture_world_is_valid(self, world_state):
        result = validate_world(world_state)
        assert result.valid
        assert result.errors == []

    def test_dangling_relationship_endpoint(self, world_state):
        world_state.relationships["edges"][0]["to"] = "char_ghost"
        result = validate_world(world_state)
        assert not result.valid
        assert any("char_ghost" in e for e in result.errors)

    def test_unknown_secret_holder(self, world_state):
        world_state.secret("sec_grain_fraud")["holders"].append("char_ghost")
        result = validate_world(world_state)
        assert any("held by unknown character" in e for e in result.errors)

    def test_thread_references_unknown_secret(self, world_state):
        world_state.thread("thr_grain")["related_secrets"] = ["sec_missing"]
        result = validate_world(world_state)
        assert any("sec_missing" in e for e in result.errors)

    def test_duplicate_ids(self, world_state):
        world_state.characters["characters"].append(dict(world_state.character("char_livia")))
        result = validate_world(world_state)
        assert "Duplicate character id 'char_livia'" in result.errors

    def test_unknown_faction(self, world_state):
        world_state.character("char_livia")["faction_id"] = "fac_populares"
        result = validate_world(world_state)
        assert any("fac_populares" in e for e in result.errors)

    def test_faction_not_checked_without_factions(self, world_state):
        world_state.factions = None
        world_state.character("char_livia")["faction_id"] = "fac_populares"
        assert validate_world(world_state).valid

    def test_negative_ledger_balance(self, world_state):
        world_state.cash_ledger[1]["denarii"] = -5
        result = validate_world(world_state)
        assert any("negative balance" in e for e in result.errors)

    def test_out_of_bounds_are_warnings(self, world_state):
        apply_delta(world_state, Effect.set("characters.char_varo.stats.wealth", 150))
        apply_delta(world_state, Effect.set("world.global.unrest", 11))

        result = validate_world(world_state)

        assert result.valid
        assert any("characters.char_varo.stats.wealth" in w for w in result.warnings)
        assert any("world.global.unrest" in w for w in result.warnings)

    def test_raise_for_errors(self, world_state):
        world_state.relationships["edges"][0]["from"] = "char_ghost"
        with pytest.raises(WorldValidationError) as exc_info:
            validate_world(world_state).raise_for_errors()
        assert exc_info.value.errors


class TestValidateOperators:
    """Tests for validate_operators()."""

    def test_fixture_operators_valid(self, operators_document):
        result = validate_operators(operators_document["operators"])
        assert result.valid
        assert result.warnings == []

    def test_bad_prereq_and_op(self):
        result = validate_operators([
            {
                "id": "op_broken",
                "type": "soap",
                "prereqs": [{"expr": "actor.stats.wealth @ 3"}],
                "effects": [{"path": "world.global.unrest", "op": "explode"}],
            },
        ])
        assert not result.valid
        assert len(result.errors) == 2

    def test_transfer_missing_fields(self):
        result = validate_operators([
            {
                "id": "op_pay",
                "type": "soap",
                "effects": [{"path": "assets.cash_ledger", "op": "transfer", "to": "char_varo"}],
            },
        ])
        assert result.errors == ["Operator 'op_pay' transfer effect is missing from, denarii"]

    def test_no_effects_is_warning(self):
        result = validate_operators([{"id": "op_idle", "type": "soap"}])
        assert result.valid
        assert result.warnings == ["Operator 'op_idle' has no effects"]
