"""
State Store - The authoritative, persisted world model.

The store:
- Loads the world as one JSON document per file
- Validates each document against its schema (fatal on failure)
- Keeps the raw JSON as the live WorldState the engine mutates
- Saves the documents back, one file each
- Hands out deep-copied snapshots for checkpoint/restore
- Answers the read queries planners need

Usage:
    store = StateStore(StoreConfig(base_path="data"))
    store.load()
    store.load_operators()

    checkpoint = store.snapshot()
    result = apply_deltas(store.state, effects, "s01e03_sc02")
    if not result.success:
        store.restore(checkpoint)
    store.save()

Stores are constructed explicitly and passed to whoever needs them; there
is no module-level instance.
"""

from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from ..engine_core.effects import CommittedDelta, EpisodeDeltas
from ..engine_core.expression import EvaluationContext
from ..engine_core.maintenance import is_urgent
from ..engine_core.paths import find_by_id
from ..engine_core.shorthand import ShorthandBinding
from ..engine_core.state import OPTIONAL_DOCUMENTS, REQUIRED_DOCUMENTS, WorldState
from ..log import get_logger
from ..world_schema.documents import DOCUMENT_SCHEMAS, EpisodeDeltasDocument, OperatorsDocument
from .config import StoreConfig

logger = get_logger(__name__)

EPISODE_DELTAS_FILE = "episode_deltas.json"

# Characters at or above this auctoritas count as principals.
PRINCIPAL_AUCTORITAS = 60


class StoreError(Exception):
    """Base class for state store failures."""


class WorldLoadError(StoreError):
    """A document is missing, is not JSON, or does not match its schema."""

    def __init__(self, document: str, path: Path, errors: list[str]):
        self.document = document
        self.path = path
        self.errors = errors
        super().__init__(f"Failed to load {document} from {path}: {'; '.join(errors)}")


class WorldNotLoadedError(StoreError):
    """A query ran before load() / load_operators()."""


def _format_errors(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in e['loc']) or '<root>'}: {e['msg']}"
        for e in error.errors()
    ]


class StateStore:
    """
    File-backed owner of the canonical WorldState.

    Not thread-safe: one episode is processed at a time and all mutation
    happens on the caller's thread.
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self._state: WorldState | None = None
        self._operators: list[dict[str, Any]] | None = None

    # =========================================================================
    # Loading
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> WorldState:
        if self._state is None:
            raise WorldNotLoadedError("World state not loaded. Call load() first.")
        return self._state

    def load(self) -> WorldState:
        """
        Read and validate every world document.

        Any missing or malformed required document raises WorldLoadError
        and leaves the previously loaded state (if any) in place.
        """
        world_path = self.config.world_path
        documents: dict[str, dict[str, Any]] = {}

        for name in REQUIRED_DOCUMENTS:
            documents[name] = self._load_document(name, world_path / f"{name}.json")

        for name in OPTIONAL_DOCUMENTS:
            path = world_path / f"{name}.json"
            if path.exists():
                documents[name] = self._load_document(name, path)

        self._state = WorldState.from_documents(documents)
        logger.info("world loaded", extra={"path": str(world_path)})
        return self._state

    def load_operators(self) -> list[dict[str, Any]]:
        path = self.config.operators_file
        data = self._read_json("operators", path)
        self._validate("operators", path, data, OperatorsDocument)
        self._operators = data.get("operators", [])
        logger.info(
            "loaded %d operators", len(self._operators),
            extra={"document": "operators", "path": str(path)},
        )
        return self._operators

    def _load_document(self, name: str, path: Path) -> dict[str, Any]:
        data = self._read_json(name, path)
        self._validate(name, path, data, DOCUMENT_SCHEMAS[name])
        return data

    @staticmethod
    def _read_json(document: str, path: Path) -> Any:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise WorldLoadError(document, path, ["file not found"]) from None
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise WorldLoadError(document, path, [f"invalid JSON: {e}"]) from e

    @staticmethod
    def _validate(document: str, path: Path, data: Any, schema: type[BaseModel]) -> None:
        if not isinstance(data, dict):
            raise WorldLoadError(document, path, ["top-level value must be an object"])
        try:
            schema.model_validate(data)
        except ValidationError as e:
            raise WorldLoadError(document, path, _format_errors(e)) from e

    # =========================================================================
    # Saving
    # =========================================================================

    def save(self, state: WorldState | None = None) -> None:
        """
        Write every present document back to the world directory.

        Passing a state also makes it the live state.
        """
        if state is not None:
            self._state = state
        world_path = self.config.world_path
        for name, document in self.state.documents().items():
            self._write_json(world_path / f"{name}.json", document)
        logger.info("world saved", extra={"path": str(world_path)})

    def save_episode_artifact(
        self,
        season_id: str,
        episode_id: str,
        filename: str,
        data: Any,
    ) -> Path:
        """Write a JSON (or, for .md, raw text) artifact next to an episode."""
        path = self.config.episode_path(season_id, episode_id) / filename
        if filename.endswith(".md") and isinstance(data, str):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(data, encoding="utf-8")
        else:
            self._write_json(path, data)
        logger.info("episode artifact saved", extra={"document": filename, "path": str(path)})
        return path

    def save_episode_deltas(
        self,
        season_id: str,
        episode_id: str,
        deltas: Iterable[CommittedDelta],
    ) -> Path:
        log = EpisodeDeltas(episode_id=episode_id, deltas=list(deltas))
        return self.save_episode_artifact(season_id, episode_id, EPISODE_DELTAS_FILE, log.to_dict())

    def load_episode_deltas(self, season_id: str, episode_id: str) -> EpisodeDeltas | None:
        """The committed delta log for an episode, or None if none was saved."""
        path = self.config.episode_path(season_id, episode_id) / EPISODE_DELTAS_FILE
        if not path.exists():
            return None
        data = self._read_json("episode_deltas", path)
        self._validate("episode_deltas", path, data, EpisodeDeltasDocument)
        return EpisodeDeltas.from_dict(data)

    @staticmethod
    def _write_json(path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    # =========================================================================
    # Snapshot / restore
    # =========================================================================

    def snapshot(self) -> WorldState:
        """Deep copy of the live state."""
        return self.state.clone()

    def restore(self, snapshot: WorldState) -> None:
        """
        Replace the live state wholesale with a copy of the snapshot.

        The live WorldState object keeps its identity, so references held
        by callers see the restored contents. The snapshot stays reusable.
        """
        restored = snapshot.clone()
        if self._state is None:
            self._state = restored
        else:
            self._state.replace_with(restored)
        logger.info("world restored from snapshot")

    # =========================================================================
    # Character queries
    # =========================================================================

    def get_character(self, character_id: str) -> dict | None:
        return self.state.character(character_id)

    def get_characters_by_faction(self, faction_id: str) -> list[dict]:
        return [
            c for c in self.state.characters.get("characters", [])
            if c.get("faction_id") == faction_id
        ]

    def get_principals(self) -> list[dict]:
        """Characters with high auctoritas or an explicit archetype."""
        return [
            c for c in self.state.characters.get("characters", [])
            if (c.get("stats") or {}).get("auctoritas", 0) >= PRINCIPAL_AUCTORITAS
            or c.get("archetype")
        ]

    # =========================================================================
    # Relationship / faction queries
    # =========================================================================

    def get_relationship(self, from_id: str, to_id: str) -> dict | None:
        for edge in self.state.relationships.get("edges", []):
            if edge.get("from") == from_id and edge.get("to") == to_id:
                return edge
        return None

    def get_relationships_for(self, character_id: str) -> list[dict]:
        return [
            edge for edge in self.state.relationships.get("edges", [])
            if character_id in (edge.get("from"), edge.get("to"))
        ]

    def get_faction(self, faction_id: str) -> dict | None:
        if self.state.factions is None:
            return None
        return find_by_id(self.state.factions.get("factions", []), faction_id)

    # =========================================================================
    # Secret queries
    # =========================================================================

    def get_secret(self, secret_id: str) -> dict | None:
        return self.state.secret(secret_id)

    def get_secrets_known_by(self, character_id: str) -> list[dict]:
        return [
            s for s in self.state.secrets.get("secrets", [])
            if character_id in s.get("holders", [])
        ]

    def get_active_secrets(self) -> list[dict]:
        return [s for s in self.state.secrets.get("secrets", []) if s.get("status") == "active"]

    # =========================================================================
    # Thread queries
    # =========================================================================

    def get_thread(self, thread_id: str) -> dict | None:
        return self.state.thread(thread_id)

    def get_open_threads(self) -> list[dict]:
        return [t for t in self.state.threads.get("threads", []) if t.get("status") == "open"]

    def get_urgent_threads(self) -> list[dict]:
        return [t for t in self.state.threads.get("threads", []) if is_urgent(t)]

    # =========================================================================
    # Asset queries
    # =========================================================================

    def get_cash_balance(self, character_id: str) -> float:
        for entry in self.state.cash_ledger:
            if entry.get("holder") == character_id:
                return entry.get("denarii", 0)
        return 0

    def _offices(self, character_id: str) -> list[dict]:
        offices = self.state.assets.get("assets", {}).get("offices") or []
        return [o for o in offices if o.get("owner") == character_id]

    def get_offices_held_by(self, character_id: str) -> list[str]:
        return [o["id"] for o in self._offices(character_id)]

    def get_office_powers(self, character_id: str) -> list[str]:
        return [power for o in self._offices(character_id) for power in o.get("powers", [])]

    # =========================================================================
    # Operator queries
    # =========================================================================

    @property
    def operators_loaded(self) -> bool:
        return self._operators is not None

    @property
    def operators(self) -> list[dict[str, Any]]:
        if self._operators is None:
            raise WorldNotLoadedError("Operators not loaded. Call load_operators() first.")
        return self._operators

    def get_operator(self, operator_id: str) -> dict | None:
        return find_by_id(self.operators, operator_id)

    def get_operators_by_type(self, operator_type: str) -> list[dict]:
        return [o for o in self.operators if o.get("type") == operator_type]

    def get_operators_by_tags(self, tags: Iterable[str]) -> list[dict]:
        """Operators carrying at least one of the given tags."""
        wanted = set(tags)
        return [o for o in self.operators if wanted.intersection(o.get("tags") or [])]

    # =========================================================================
    # Planner helpers
    # =========================================================================

    def build_context(self, actor_id: str, target_id: str | None = None) -> EvaluationContext:
        """
        Evaluation context for an actor/target pair.

        The relationship is the directed edge actor -> target. Unknown ids
        leave the corresponding root empty, which expressions report as
        an unavailable context.
        """
        state = self.state
        return EvaluationContext(
            actor=state.character(actor_id),
            target=state.character(target_id) if target_id else None,
            world=state.world,
            relationship=self.get_relationship(actor_id, target_id) if target_id else None,
            assets=state.assets,
            secrets=state.secrets,
        )

    def build_binding(self, actor_id: str, target_id: str | None = None) -> ShorthandBinding:
        """Shorthand binding for the same pair build_context() describes."""
        relationship = self.get_relationship(actor_id, target_id) if target_id else None
        return ShorthandBinding(
            actor_id=actor_id,
            target_id=target_id,
            relationship_id=relationship["id"] if relationship else None,
        )
