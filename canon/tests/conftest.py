"""
Pytest fixtures for Canon tests.
"""

import json
import pytest
from copy import deepcopy

from ..engine_core.expression import EvaluationContext
from ..engine_core.state import WorldState
from ..store import StateStore, StoreConfig


WORLD = {
    "world_id": "rome_70bce",
    "time": {"year_bce": 70, "season": "autumn", "day": 3},
    "locations": [
        {"id": "loc_forum", "name": "Forum Romanum"},
        {"id": "loc_docks", "name": "Ostia Docks"},
    ],
    "global": {
        "unrest": 4,
        "grain_price_index": 1.2,
        "scandal_temperature": 3,
        "legal_exposure": 2,
    },
}

CHARACTERS = {
    "characters": [
        {
            "id": "char_varo",
            "name": "Marcus Varo",
            "archetype": "schemer",
            "faction_id": "fac_optimates",
            "stats": {"dignitas": 70, "auctoritas": 65, "wealth": 80, "popularity": 40},
            "status": {"alive": True, "location_id": "loc_forum", "wanted": False},
            "bdi": {
                "beliefs": [
                    {"id": "b_grain", "text": "Quintus is hoarding grain", "confidence": 0.8},
                ],
                "desires": [
                    {"id": "d_dole", "text": "Control the grain dole", "priority": 0.9},
                ],
                "intentions": [],
            },
            "voice": {"tags": ["clipped", "formal"]},
        },
        {
            "id": "char_quintus",
            "name": "Quintus Severus",
            "faction_id": "fac_optimates",
            "stats": {"dignitas": 50, "auctoritas": 40, "wealth": 5, "popularity": 60},
            "status": {"alive": True, "location_id": "loc_docks"},
            "bdi": {"beliefs": [], "desires": [], "intentions": []},
            "voice": {"tags": ["blustering"]},
        },
        {
            "id": "char_livia",
            "name": "Livia Varo",
            "archetype": "matriarch",
            "stats": {"dignitas": 55, "auctoritas": 30, "wealth": 30, "popularity": 70},
            "status": {"alive": True, "location_id": "loc_forum"},
            "bdi": {"beliefs": [], "desires": [], "intentions": []},
            "voice": {"tags": ["dry"]},
        },
    ]
}

RELATIONSHIPS = {
    "edges": [
        {
            "id": "rel_varo_quintus",
            "from": "char_varo",
            "to": "char_quintus",
            "type": "adversary",
            "weights": {"fear": 20, "resentment": 60},
        },
        {
            "id": "rel_quintus_varo",
            "from": "char_quintus",
            "to": "char_varo",
            "type": "adversary",
            "weights": {"fear": 70},
        },
        {
            "id": "rel_livia_varo",
            "from": "char_livia",
            "to": "char_varo",
            "type": "spouse",
            "weights": {"loyalty": 50},
        },
    ]
}

SECRETS = {
    "secrets": [
        {
            "id": "sec_grain_fraud",
            "subject_ids": ["char_quintus"],
            "holders": ["char_varo"],
            "description": "Quintus skims the public grain dole",
            "stats": {"legal_value": 0.8, "public_damage": 0.6, "credibility": 0.7},
            "decay": {
                "half_life_episodes": 2,
                "applies_to": ["legal_value", "public_damage"],
                "last_decayed_episode": 0,
            },
            "status": "active",
        },
        {
            "id": "sec_old_affair",
            "subject_ids": ["char_livia"],
            "holders": ["char_livia", "char_varo"],
            "description": "An affair from before the marriage",
            "stats": {"legal_value": 0.1, "public_damage": 0.12, "credibility": 0.5},
            "decay": {
                "half_life_episodes": 4,
                "applies_to": ["public_damage"],
                "last_decayed_episode": 0,
            },
            "status": "active",
        },
        {
            "id": "sec_forged_will",
            "subject_ids": ["char_varo"],
            "holders": ["char_quintus"],
            "description": "The will Varo inherited under was forged",
            "stats": {"legal_value": 0.9, "public_damage": 0.9, "credibility": 0.4},
            "decay": {
                "half_life_episodes": 3,
                "applies_to": ["public_damage"],
                "last_decayed_episode": 0,
            },
            "status": "revealed",
        },
    ]
}

ASSETS = {
    "assets": {
        "grain": {
            "inventory_units": 1000,
            "controlled_by": ["char_quintus"],
            "warehouse_locations": ["loc_docks"],
        },
        "cash_ledger": [
            {"holder": "char_varo", "denarii": 5000},
            {"holder": "char_quintus", "denarii": 200},
        ],
        "offices": [
            {
                "id": "off_praetor",
                "name": "Praetor Urbanus",
                "owner": "char_varo",
                "type": "magistracy",
                "powers": ["SUBPOENA", "ARREST"],
            },
            {
                "id": "off_aedile",
                "name": "Curule Aedile",
                "owner": "char_livia",
                "type": "magistracy",
                "powers": ["GAMES"],
            },
        ],
    }
}

THREADS = {
    "threads": [
        {
            "id": "thr_grain",
            "priority": 0.9,
            "question": "Who is starving Rome?",
            "status": "open",
            "advance_cadence": {"max_episodes_without_progress": 2},
            "last_advanced_episode": 1,
            "episodes_since_progress": 2,
            "related_secrets": ["sec_grain_fraud"],
        },
        {
            "id": "thr_marriage",
            "priority": 0.5,
            "question": "Will Livia stand by Varo?",
            "status": "open",
            "advance_cadence": {"max_episodes_without_progress": 3},
            "last_advanced_episode": 3,
            "episodes_since_progress": 0,
        },
        {
            "id": "thr_inheritance",
            "priority": 0.3,
            "question": "Is the will genuine?",
            "status": "resolved",
            "advance_cadence": {"max_episodes_without_progress": 1},
            "last_advanced_episode": 1,
            "episodes_since_progress": 10,
        },
    ]
}

CONSTRAINTS = {
    "hard_constraints": [{"id": "hc_no_offscreen_death", "rule": "No principal dies off-screen"}],
    "soft_constraints": [{"id": "sc_latin", "rule": "Prefer Latin titles"}],
}

FACTIONS = {
    "factions": [
        {
            "id": "fac_optimates",
            "name": "Optimates",
            "stats": {"economic_position": 2, "legal_exposure": -1},
        },
    ]
}

OPERATORS = {
    "operators": [
        {
            "id": "op_subpoena",
            "type": "thriller",
            "tags": ["legal", "urgent"],
            "prereqs": [
                {"expr": "actor.offices includes 'powers.SUBPOENA'"},
                {"expr": "target.status.alive == true"},
            ],
            "effects": [
                {"path": "target.status.subpoenaed", "op": "set", "value": True},
                {"path": "world.global.legal_exposure", "op": "add", "value": 1},
            ],
        },
        {
            "id": "op_bribe",
            "type": "soap",
            "tags": ["money"],
            "prereqs": [
                {"expr": "actor.stats.wealth > target.stats.wealth * 10"},
            ],
            "effects": [
                {
                    "path": "assets.cash_ledger",
                    "op": "transfer",
                    "from": "char_varo",
                    "to": "char_quintus",
                    "denarii": 500,
                },
                {"path": "relationship.weights.fear", "op": "subtract", "value": 5},
            ],
        },
        {
            "id": "op_public_games",
            "type": "soap",
            "tags": ["status", "spectacle"],
            "prereqs": [{"expr": "actor.offices includes 'powers.GAMES'"}],
            "effects": [{"path": "actor.stats.popularity", "op": "add", "value": 10}],
        },
    ]
}


@pytest.fixture
def world_documents() -> dict:
    """Fresh copies of every world document, keyed by name."""
    return deepcopy({
        "world": WORLD,
        "characters": CHARACTERS,
        "relationships": RELATIONSHIPS,
        "secrets": SECRETS,
        "assets": ASSETS,
        "threads": THREADS,
        "constraints": CONSTRAINTS,
        "factions": FACTIONS,
    })


@pytest.fixture
def operators_document() -> dict:
    return deepcopy(OPERATORS)


@pytest.fixture
def world_state(world_documents) -> WorldState:
    """In-memory world built straight from the dicts."""
    return WorldState.from_documents(world_documents)


@pytest.fixture
def eval_context(world_state) -> EvaluationContext:
    """Varo acting on Quintus."""
    return EvaluationContext(
        actor=world_state.character("char_varo"),
        target=world_state.character("char_quintus"),
        world=world_state.world,
        relationship=world_state.relationship("rel_varo_quintus"),
        assets=world_state.assets,
        secrets=world_state.secrets,
    )


def write_json(path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


@pytest.fixture
def data_dir(tmp_path, world_documents, operators_document):
    """A base directory with world/ and operators/ written out."""
    for name, document in world_documents.items():
        write_json(tmp_path / "world" / f"{name}.json", document)
    write_json(tmp_path / "operators" / "operators.json", operators_document)
    return tmp_path


@pytest.fixture
def store(data_dir) -> StateStore:
    """A loaded store backed by data_dir."""
    store = StateStore(StoreConfig(base_path=data_dir))
    store.load()
    store.load_operators()
    return store
