"""
World State - The in-memory aggregate the engine reads and mutates.

Design principles:
- Plain JSON data: each sub-document is kept exactly as loaded
- Mutable in place: the delta engine edits the live snapshot
- Cheap checkpoints: clone() deep-copies, replace_with() restores
- Schema-free at runtime: validation happens at the store boundary
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any
from copy import deepcopy

from .paths import find_by_id


# Sub-documents persisted as <name>.json in the world directory.
REQUIRED_DOCUMENTS = (
    "world",
    "characters",
    "relationships",
    "secrets",
    "assets",
    "threads",
    "constraints",
)
OPTIONAL_DOCUMENTS = ("factions",)


@dataclass
class WorldState:
    """
    Complete world snapshot at a point in time.

    Every attribute holds the parsed JSON of one document:
    world.json, characters.json ({"characters": [...]}),
    relationships.json ({"edges": [...]}), secrets.json ({"secrets": [...]}),
    assets.json ({"assets": {...}}), threads.json ({"threads": [...]}),
    constraints.json and, when present, factions.json.
    """
    world: dict[str, Any] = field(default_factory=dict)
    characters: dict[str, Any] = field(default_factory=lambda: {"characters": []})
    relationships: dict[str, Any] = field(default_factory=lambda: {"edges": []})
    secrets: dict[str, Any] = field(default_factory=lambda: {"secrets": []})
    assets: dict[str, Any] = field(default_factory=lambda: {"assets": {}})
    threads: dict[str, Any] = field(default_factory=lambda: {"threads": []})
    constraints: dict[str, Any] = field(
        default_factory=lambda: {"hard_constraints": [], "soft_constraints": []}
    )
    factions: dict[str, Any] | None = None

    def documents(self) -> dict[str, dict[str, Any]]:
        """Name -> document for every document that is present."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def clone(self) -> WorldState:
        """Deep copy the state."""
        return deepcopy(self)

    def replace_with(self, other: WorldState) -> None:
        """Swap in the contents of another state, keeping this object's identity."""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))

    @classmethod
    def from_documents(cls, documents: dict[str, dict[str, Any]]) -> WorldState:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in documents.items() if k in known})

    # Convenience lookups over the raw collections

    def character(self, character_id: str) -> dict | None:
        return find_by_id(self.characters.get("characters", []), character_id)

    def relationship(self, relationship_id: str) -> dict | None:
        return find_by_id(self.relationships.get("edges", []), relationship_id)

    def secret(self, secret_id: str) -> dict | None:
        return find_by_id(self.secrets.get("secrets", []), secret_id)

    def thread(self, thread_id: str) -> dict | None:
        return find_by_id(self.threads.get("threads", []), thread_id)

    @property
    def cash_ledger(self) -> list[dict]:
        return self.assets.get("assets", {}).get("cash_ledger") or []
