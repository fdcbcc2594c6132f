"""
World Validation - Cross-reference and bounds checks for a loaded world.

Validates that:
1. Entity ids are unique within each collection
2. References resolve (relationship endpoints, secret holders, office owners)
3. Operator prerequisites at least tokenize and effects name known operations
4. Bounded stats are in range (reported as warnings, never errors)

Nothing here runs at load time. Dangling references are expected to
resolve at read time, so callers decide when a report is worth running.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from ..engine_core.effects import DeltaOperation
from ..engine_core.expression import ExpressionError, tokenize
from ..engine_core.maintenance import DEFAULT_BOUNDS, StatBounds
from ..engine_core.state import WorldState
from ..engine_core.values import is_number


class WorldValidationError(Exception):
    """Raised when a caller asks for a strict validation and it fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"World validation failed with {len(errors)} error(s)")


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str]
    warnings: list[str]

    def raise_for_errors(self) -> None:
        if not self.valid:
            raise WorldValidationError(self.errors)


def validate_world(state: WorldState, bounds: StatBounds = DEFAULT_BOUNDS) -> ValidationResult:
    """
    Validate a complete world snapshot.

    Returns ValidationResult with errors and warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    characters = state.characters.get("characters", [])
    edges = state.relationships.get("edges", [])
    secrets = state.secrets.get("secrets", [])
    threads = state.threads.get("threads", [])

    errors.extend(_duplicate_ids("character", characters))
    errors.extend(_duplicate_ids("relationship", edges))
    errors.extend(_duplicate_ids("secret", secrets))
    errors.extend(_duplicate_ids("thread", threads))

    character_ids = {c.get("id") for c in characters}
    secret_ids = {s.get("id") for s in secrets}
    location_ids = {loc.get("id") for loc in state.world.get("locations", [])}
    faction_ids = None
    if state.factions is not None:
        faction_ids = {f.get("id") for f in state.factions.get("factions", [])}

    # Characters
    for character in characters:
        cid = character.get("id")
        location = (character.get("status") or {}).get("location_id")
        if location and location_ids and location not in location_ids:
            warnings.append(f"Character '{cid}' is at unknown location '{location}'")
        faction = character.get("faction_id")
        if faction and faction_ids is not None and faction not in faction_ids:
            errors.append(f"Character '{cid}' references unknown faction '{faction}'")
        warnings.extend(_out_of_bounds(
            f"characters.{cid}.stats", character.get("stats"), bounds.character_stats
        ))

    # Relationships
    for edge in edges:
        for end in ("from", "to"):
            if edge.get(end) not in character_ids:
                errors.append(
                    f"Relationship '{edge.get('id')}' references unknown character '{edge.get(end)}'"
                )
        warnings.extend(_out_of_bounds(
            f"relationships.{edge.get('id')}.weights", edge.get("weights"), bounds.relationship_weights
        ))

    # Secrets
    for secret in secrets:
        for holder in secret.get("holders", []):
            if holder not in character_ids:
                errors.append(f"Secret '{secret.get('id')}' held by unknown character '{holder}'")
        for subject in secret.get("subject_ids", []):
            if subject not in character_ids:
                warnings.append(f"Secret '{secret.get('id')}' is about unknown subject '{subject}'")

    # Threads
    for thread in threads:
        for secret_id in thread.get("related_secrets") or []:
            if secret_id not in secret_ids:
                errors.append(f"Thread '{thread.get('id')}' references unknown secret '{secret_id}'")

    # Assets
    assets = state.assets.get("assets", {})
    for office in assets.get("offices") or []:
        if office.get("owner") not in character_ids:
            errors.append(f"Office '{office.get('id')}' owned by unknown character '{office.get('owner')}'")
    for entry in assets.get("cash_ledger") or []:
        if entry.get("holder") not in character_ids:
            warnings.append(f"Ledger entry for non-character holder '{entry.get('holder')}'")
        if is_number(entry.get("denarii")) and entry["denarii"] < 0:
            errors.append(f"Ledger entry for '{entry.get('holder')}' has a negative balance")

    # World metrics
    metrics = state.world.get("global") or {}
    for metric, metric_bounds in bounds.world_global.items():
        warnings.extend(_out_of_bounds("world.global", {metric: metrics.get(metric)}, metric_bounds))

    if not characters:
        warnings.append("No characters defined - world may be incomplete")
    if not threads:
        warnings.append("No threads defined")

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def validate_operators(operators: list[dict[str, Any]]) -> ValidationResult:
    """Check operator definitions without evaluating them against a world."""
    errors: list[str] = _duplicate_ids("operator", operators)
    warnings: list[str] = []
    known_ops = {op.value for op in DeltaOperation}

    for operator in operators:
        oid = operator.get("id")
        for prereq in operator.get("prereqs", []):
            expr = prereq.get("expr", "") if isinstance(prereq, dict) else str(prereq)
            try:
                tokenize(expr)
            except ExpressionError as e:
                errors.append(f"Operator '{oid}' prereq '{expr}': {e}")
        for effect in operator.get("effects", []):
            if effect.get("op") not in known_ops:
                errors.append(f"Operator '{oid}' has effect with unknown op '{effect.get('op')}'")
            if effect.get("op") == DeltaOperation.TRANSFER.value:
                missing = [k for k in ("from", "to", "denarii") if k not in effect]
                if missing:
                    errors.append(f"Operator '{oid}' transfer effect is missing {', '.join(missing)}")
        if not operator.get("effects"):
            warnings.append(f"Operator '{oid}' has no effects")

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _duplicate_ids(kind: str, items: list[dict[str, Any]]) -> list[str]:
    seen: set[str] = set()
    errors = []
    for item in items:
        item_id = item.get("id")
        if item_id in seen:
            errors.append(f"Duplicate {kind} id '{item_id}'")
        seen.add(item_id)
    return errors


def _out_of_bounds(prefix: str, values: dict | None, bounds: tuple[float, float]) -> list[str]:
    low, high = bounds
    return [
        f"{prefix}.{name} = {value} is outside [{low}, {high}]"
        for name, value in (values or {}).items()
        if is_number(value) and not low <= value <= high
    ]
