"""
Shorthand path expansion.

Operator effects are written relative to the acting pair:
    actor.stats.wealth          -> characters.<actor_id>.stats.wealth
    target.bdi.intentions       -> characters.<target_id>.bdi.intentions
    relationship.weights.fear   -> relationships.<relationship_id>.weights.fear

Anything else is treated as already absolute. A target or relationship
prefix with nothing bound is left as-is; the delta engine then reports
it as an unresolvable path.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable

from .effects import Effect


@dataclass(frozen=True)
class ShorthandBinding:
    """Which entities the relative prefixes refer to."""
    actor_id: str
    target_id: str | None = None
    relationship_id: str | None = None


def expand_shorthand_path(path: str, binding: ShorthandBinding) -> str:
    if path.startswith("actor."):
        return f"characters.{binding.actor_id}.{path[len('actor.'):]}"

    if path.startswith("target.") and binding.target_id:
        return f"characters.{binding.target_id}.{path[len('target.'):]}"

    if path.startswith("relationship.") and binding.relationship_id:
        return f"relationships.{binding.relationship_id}.{path[len('relationship.'):]}"

    return path


def expand_effects(effects: Iterable[Effect], binding: ShorthandBinding) -> list[Effect]:
    """Expand every effect path, returning new effects in the same order."""
    return [
        effect.with_path(expand_shorthand_path(effect.path, binding))
        for effect in effects
    ]
