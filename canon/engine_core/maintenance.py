"""
Maintenance - Episode-end upkeep over the world state.

Everything here is expressed as effects and pushed through the delta
engine, so upkeep shares provenance and the audit log with planner
deltas:

- Secret decay: active secrets lose legal/public weight every episode
- Thread bookkeeping: track how long each open thread has stalled
- Stat clamping: an explicit pass, never run by the engine itself
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable

from .delta_engine import BatchDeltaResult, apply_deltas
from .effects import Effect
from .state import WorldState
from .values import is_number

# A secret whose legal value and public damage both fall below this
# is no longer worth anything to anyone.
INERT_THRESHOLD = 0.15


# =============================================================================
# Secret decay
# =============================================================================

def decay_factor(half_life_episodes: float) -> float:
    """Per-episode multiplier for a given half-life."""
    return 0.5 ** (1 / half_life_episodes)


def secret_decay_effects(state: WorldState, episode: int) -> list[Effect]:
    """
    Build the decay effects for one episode.

    Only active secrets with a positive half-life decay. The stats named
    in ``decay.applies_to`` are multiplied by the decay factor; a secret
    whose decayed legal_value and public_damage both drop below
    INERT_THRESHOLD is marked inert.
    """
    effects: list[Effect] = []

    for secret in state.secrets.get("secrets", []):
        if secret.get("status") != "active":
            continue
        decay = secret.get("decay") or {}
        half_life = decay.get("half_life_episodes")
        if not is_number(half_life) or half_life <= 0:
            continue

        base = f"secrets.{secret['id']}"
        stats = dict(secret.get("stats") or {})
        factor = decay_factor(half_life)

        for stat in decay.get("applies_to", []):
            if is_number(stats.get(stat)):
                effects.append(Effect.multiply(f"{base}.stats.{stat}", factor))
                stats[stat] = stats[stat] * factor

        legal = stats.get("legal_value", 0)
        damage = stats.get("public_damage", 0)
        if legal < INERT_THRESHOLD and damage < INERT_THRESHOLD:
            effects.append(Effect.set(f"{base}.status", "inert"))

        effects.append(Effect.set(f"{base}.decay.last_decayed_episode", episode))

    return effects


def apply_secret_decay(
    state: WorldState,
    episode: int,
    provenance_id: str | None = None,
) -> BatchDeltaResult:
    return apply_deltas(state, secret_decay_effects(state, episode), provenance_id)


# =============================================================================
# Threads
# =============================================================================

def is_urgent(thread: dict[str, Any]) -> bool:
    """An open thread that has gone too long without progress."""
    if thread.get("status") != "open":
        return False
    cadence = thread.get("advance_cadence") or {}
    limit = cadence.get("max_episodes_without_progress")
    stalled = thread.get("episodes_since_progress", 0)
    if not is_number(limit) or not is_number(stalled):
        return False
    return stalled >= limit


def thread_progress_effects(
    state: WorldState,
    advanced_ids: Iterable[str],
    episode: int,
) -> list[Effect]:
    advanced = set(advanced_ids)
    effects: list[Effect] = []

    for thread in state.threads.get("threads", []):
        if thread.get("status") != "open":
            continue
        base = f"threads.{thread['id']}"
        if thread["id"] in advanced:
            effects.append(Effect.set(f"{base}.episodes_since_progress", 0))
            effects.append(Effect.set(f"{base}.last_advanced_episode", episode))
        else:
            effects.append(Effect.add(f"{base}.episodes_since_progress", 1))

    return effects


def advance_threads(
    state: WorldState,
    advanced_ids: Iterable[str],
    episode: int,
    provenance_id: str | None = None,
) -> BatchDeltaResult:
    """
    Record which open threads moved this episode.

    Advanced threads reset their stall counter and remember the episode;
    every other open thread stalls by one. Closed threads are left alone.
    """
    return apply_deltas(
        state, thread_progress_effects(state, advanced_ids, episode), provenance_id
    )


# =============================================================================
# Clamping
# =============================================================================

@dataclass(frozen=True)
class StatBounds:
    """Declared ranges for the numeric values clamp_stats() touches."""
    character_stats: tuple[float, float] = (0, 100)
    relationship_weights: tuple[float, float] = (0, 100)
    world_global: dict[str, tuple[float, float]] = field(
        default_factory=lambda: {
            "unrest": (0, 10),
            "scandal_temperature": (0, 10),
            "legal_exposure": (0, 10),
        }
    )


DEFAULT_BOUNDS = StatBounds()


def _clamp(path: str, value: Any, bounds: tuple[float, float]) -> Effect | None:
    if not is_number(value):
        return None
    low, high = bounds
    if value < low:
        return Effect.set(path, low)
    if value > high:
        return Effect.set(path, high)
    return None


def clamp_effects(state: WorldState, bounds: StatBounds = DEFAULT_BOUNDS) -> list[Effect]:
    candidates: list[Effect | None] = []

    for character in state.characters.get("characters", []):
        for stat, value in (character.get("stats") or {}).items():
            path = f"characters.{character['id']}.stats.{stat}"
            candidates.append(_clamp(path, value, bounds.character_stats))

    for edge in state.relationships.get("edges", []):
        for weight, value in (edge.get("weights") or {}).items():
            path = f"relationships.{edge['id']}.weights.{weight}"
            candidates.append(_clamp(path, value, bounds.relationship_weights))

    metrics = state.world.get("global") or {}
    for metric, metric_bounds in bounds.world_global.items():
        if metric in metrics:
            candidates.append(_clamp(f"world.global.{metric}", metrics[metric], metric_bounds))

    return [effect for effect in candidates if effect is not None]


def clamp_stats(state: WorldState, bounds: StatBounds = DEFAULT_BOUNDS) -> list[str]:
    """
    Clamp every bounded stat into range.

    Returns the paths that were changed.
    """
    result = apply_deltas(state, clamp_effects(state, bounds), "clamp")
    return [delta.effect.path for delta in result.applied]
