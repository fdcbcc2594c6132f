"""
Path Resolution - Dotted paths over the world snapshot.

Two flavours of path are resolved here:

- Context paths, used by prerequisite expressions:
  ``actor.stats.wealth``, ``relationship.weights["fear"]``
  The first segment picks a context root (actor, target, world, relationship).

- Store paths, used by the delta engine:
  ``characters.char_varo.stats.wealth``, ``assets.cash_ledger``
  The first segment picks a document; id-keyed collections take the
  entity id as their second segment.

Derived paths (``offices``, ``knowledge``, ``location``) are computed from
cross-referenced collections and exposed as plain functions so they can be
tested on their own.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
import re

if TYPE_CHECKING:
    from .expression import EvaluationContext
    from .state import WorldState


CONTEXT_ROOTS = ("actor", "target", "world", "relationship")
CHARACTER_ROOTS = ("actor", "target")

_MISSING = object()

_ACCESSOR_RE = re.compile(r"""\[(\d+|"[^"]*"|'[^']*')\]""")
_NAME_RE = re.compile(r"^[^\[\]]*")


class PathResolutionError(Exception):
    """Raised when a context path cannot be resolved at all."""


@dataclass(frozen=True)
class Segment:
    """
    One dotted segment of a path.

    ``name`` is the property name (may be empty for a bare ``[0]``),
    ``accessors`` the bracketed index/key lookups that follow it.
    """
    name: str
    accessors: tuple[int | str, ...] = ()

    def steps(self) -> list[int | str]:
        """Flatten into the sequence of lookups this segment performs."""
        steps: list[int | str] = [self.name] if self.name else []
        steps.extend(self.accessors)
        return steps


def split_path(path: str) -> list[str]:
    """Split on dots, ignoring dots inside brackets or quotes."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None

    for ch in path:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"') and depth:
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth = max(depth - 1, 0)
        elif ch == "." and not depth:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)

    parts.append("".join(current))
    return parts


def parse_segment(raw: str) -> Segment:
    """
    Parse ``prop``, ``prop[0]``, ``prop["key"]`` or ``prop[0]['k']``.

    Malformed brackets leave the whole text as a plain property name,
    which then simply fails to resolve.
    """
    name = _NAME_RE.match(raw).group(0)
    rest = raw[len(name):]
    accessors: list[int | str] = []

    while rest:
        match = _ACCESSOR_RE.match(rest)
        if not match:
            return Segment(name=raw)
        token = match.group(1)
        if token[0] in ("'", '"'):
            accessors.append(token[1:-1])
        else:
            accessors.append(int(token))
        rest = rest[match.end():]

    return Segment(name=name, accessors=tuple(accessors))


def parse_path(path: str) -> list[Segment]:
    return [parse_segment(part) for part in split_path(path)]


def _step(obj: Any, key: int | str) -> Any:
    """Single lookup. Returns _MISSING instead of raising."""
    if isinstance(key, int):
        if isinstance(obj, list) and -len(obj) <= key < len(obj):
            return obj[key]
        if isinstance(obj, dict):
            return obj.get(str(key), _MISSING)
        return _MISSING
    if isinstance(obj, dict):
        return obj.get(key, _MISSING)
    if isinstance(obj, list) and key.isdecimal():
        index = int(key)
        return obj[index] if index < len(obj) else _MISSING
    return _MISSING


def walk(obj: Any, segments: list[Segment]) -> Any:
    """
    Generic leaf walker over nested dicts and lists.

    Traversal past a missing value, or an index into a non-list,
    yields None rather than raising.
    """
    current = obj
    for segment in segments:
        for key in segment.steps():
            if current is None:
                return None
            current = _step(current, key)
            if current is _MISSING:
                return None
    return current


# =============================================================================
# Derived paths
# =============================================================================

def offices_of(character_id: str | None, assets: dict | None) -> list[str]:
    """``powers.<power>`` for every office owned by the character."""
    if not assets or character_id is None:
        return []
    offices = (assets.get("assets") or {}).get("offices") or []
    return [
        f"powers.{power}"
        for office in offices
        if office.get("owner") == character_id
        for power in office.get("powers", [])
    ]


def knowledge_of(character_id: str | None, secrets: dict | None) -> list[str]:
    """Ids of every secret the character holds."""
    if not secrets or character_id is None:
        return []
    return [
        secret["id"]
        for secret in secrets.get("secrets") or []
        if character_id in secret.get("holders", [])
    ]


def location_of(character: dict | None) -> str | None:
    """The character's current ``status.location_id``."""
    if not character:
        return None
    return (character.get("status") or {}).get("location_id")


def resolve_context_path(path: str, context: EvaluationContext) -> Any:
    """
    Resolve an expression path against an evaluation context.

    Raises PathResolutionError for an unknown or unavailable root;
    a missing leaf resolves to None.
    """
    segments = parse_path(path)
    root_name = segments[0].name

    if root_name not in CONTEXT_ROOTS or segments[0].accessors:
        raise PathResolutionError(f"Unknown context: {split_path(path)[0]}")

    root = getattr(context, root_name)
    if root is None:
        raise PathResolutionError(f"Context '{root_name}' is not available")

    rest = segments[1:]
    if root_name in CHARACTER_ROOTS and len(rest) == 1 and not rest[0].accessors:
        derived = rest[0].name
        if derived == "offices":
            return offices_of(root.get("id"), context.assets)
        if derived == "knowledge":
            return knowledge_of(root.get("id"), context.secrets)
        if derived == "location":
            return location_of(root)

    return walk(root, rest)


# =============================================================================
# Store paths
# =============================================================================

@dataclass(frozen=True)
class StoreRoot:
    """
    Accessor table entry for one store root.

    ``document`` names the WorldState attribute. ``container`` is the key
    inside the document to descend into first. ``id_keyed`` marks
    collections whose next path segment is an entity id.
    """
    document: str
    container: str | None = None
    id_keyed: bool = False


STORE_ROOTS: dict[str, StoreRoot] = {
    "world": StoreRoot("world"),
    "characters": StoreRoot("characters", "characters", id_keyed=True),
    "relationships": StoreRoot("relationships", "edges", id_keyed=True),
    "secrets": StoreRoot("secrets", "secrets", id_keyed=True),
    "threads": StoreRoot("threads", "threads", id_keyed=True),
    "factions": StoreRoot("factions", "factions", id_keyed=True),
    "assets": StoreRoot("assets", "assets"),
    "constraints": StoreRoot("constraints"),
}


@dataclass
class PathTarget:
    """
    A resolved store location: ``parent[key]`` is the addressed value.

    The key itself may be absent from a mapping parent.
    """
    parent: dict | list
    key: str | int

    @property
    def exists(self) -> bool:
        return _step(self.parent, self.key) is not _MISSING

    def get(self, default: Any = None) -> Any:
        value = _step(self.parent, self.key)
        return default if value is _MISSING else value

    def set(self, value: Any) -> None:
        self.parent[self.key] = value


def find_by_id(items: list, entity_id: str) -> dict | None:
    for item in items:
        if isinstance(item, dict) and item.get("id") == entity_id:
            return item
    return None


def resolve_store_path(state: WorldState, path: str) -> PathTarget | None:
    """
    Resolve an absolute store path to its parent container and final key.

    Every intermediate step must exist. The final key may be missing on a
    mapping; a final list index must be in range. Returns None when the
    path does not resolve.
    """
    segments = parse_path(path)
    if len(segments) < 2:
        return None

    root = STORE_ROOTS.get(segments[0].name)
    if root is None or segments[0].accessors:
        return None

    current: Any = getattr(state, root.document, None)
    if current is None:
        return None
    if root.container is not None:
        current = _step(current, root.container)
        if current is _MISSING:
            return None

    rest = segments[1:]
    if root.id_keyed:
        if len(rest) < 2 or not isinstance(current, list):
            return None
        entity = find_by_id(current, rest[0].name)
        if entity is None:
            return None
        current = walk(entity, [Segment(name="", accessors=rest[0].accessors)])
        if current is None:
            return None
        rest = rest[1:]

    steps = [key for segment in rest for key in segment.steps()]
    if not steps:
        return None

    for key in steps[:-1]:
        current = _step(current, key)
        if current is _MISSING or current is None:
            return None

    final = steps[-1]
    if isinstance(current, dict):
        return PathTarget(current, str(final))
    if isinstance(current, list):
        if isinstance(final, str) and final.isdecimal():
            final = int(final)
        if isinstance(final, int) and -len(current) <= final < len(current):
            return PathTarget(current, final)
    return None
