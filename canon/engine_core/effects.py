"""
Effects - Atomic state change instructions and their committed form.

Effects are:
1. Produced by operators/planners (often with shorthand paths)
2. Expanded to absolute store paths
3. Consumed exactly once by the delta engine

A CommittedDelta is an effect that was applied, stamped with the
scene/episode that produced it. Only committed deltas are persisted.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any


class DeltaOperation(Enum):
    """Operations the delta engine understands."""
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"
    MULTIPLY = "multiply"
    TRANSFER = "transfer"
    APPEND = "append"
    REMOVE = "remove"


DEFAULT_LEDGER_PATH = "assets.cash_ledger"

# Python-side names for JSON keys that are reserved words.
_JSON_TO_FIELD = {"from": "from_"}
_FIELD_TO_JSON = {v: k for k, v in _JSON_TO_FIELD.items()}


@dataclass
class Effect:
    """
    One state mutation instruction.

    ``op`` is kept as the raw string so an unknown operation can be
    reported by the engine instead of failing at construction.
    """
    path: str
    op: str
    value: Any = None

    # For transfer operations
    from_: str | None = None
    to: str | None = None
    denarii: float | None = None

    # For remove operations
    match: dict[str, Any] | None = None

    def __post_init__(self):
        if isinstance(self.op, DeltaOperation):
            self.op = self.op.value

    @property
    def operation(self) -> DeltaOperation | None:
        try:
            return DeltaOperation(self.op)
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Effect:
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _JSON_TO_FIELD.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """JSON shape, omitting unset optional fields."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None and f.name not in ("path", "op"):
                continue
            data[_FIELD_TO_JSON.get(f.name, f.name)] = value
        return data

    def with_path(self, path: str) -> Effect:
        return replace(self, path=path)

    # Factories for common effects

    @classmethod
    def set(cls, path: str, value: Any) -> Effect:
        return cls(path=path, op=DeltaOperation.SET.value, value=value)

    @classmethod
    def add(cls, path: str, value: float) -> Effect:
        return cls(path=path, op=DeltaOperation.ADD.value, value=value)

    @classmethod
    def subtract(cls, path: str, value: float) -> Effect:
        return cls(path=path, op=DeltaOperation.SUBTRACT.value, value=value)

    @classmethod
    def multiply(cls, path: str, factor: float) -> Effect:
        return cls(path=path, op=DeltaOperation.MULTIPLY.value, value=factor)

    @classmethod
    def append(cls, path: str, value: Any) -> Effect:
        return cls(path=path, op=DeltaOperation.APPEND.value, value=value)

    @classmethod
    def remove(cls, path: str, value: Any = None, match: dict[str, Any] | None = None) -> Effect:
        return cls(path=path, op=DeltaOperation.REMOVE.value, value=value, match=match)

    @classmethod
    def transfer(
        cls,
        from_: str,
        to: str,
        denarii: float,
        path: str = DEFAULT_LEDGER_PATH,
    ) -> Effect:
        return cls(
            path=path,
            op=DeltaOperation.TRANSFER.value,
            from_=from_,
            to=to,
            denarii=denarii,
        )


@dataclass
class CommittedDelta:
    """An applied effect plus its provenance."""
    effect: Effect
    scene_id: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.effect.to_dict()
        if self.scene_id is not None:
            data["scene_id"] = self.scene_id
        if self.reason is not None:
            data["reason"] = self.reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CommittedDelta:
        return cls(
            effect=Effect.from_dict(data),
            scene_id=data.get("scene_id"),
            reason=data.get("reason"),
        )


@dataclass
class EpisodeDeltas:
    """The delta log written alongside an episode."""
    episode_id: str
    deltas: list[CommittedDelta] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "episode_id": self.episode_id,
            "deltas": [d.to_dict() for d in self.deltas],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EpisodeDeltas:
        return cls(
            episode_id=data["episode_id"],
            deltas=[CommittedDelta.from_dict(d) for d in data.get("deltas", [])],
        )
