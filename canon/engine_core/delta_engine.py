"""
Delta Engine - Applies effects to the world state.

The engine is the single point of state mutation for episode commits.
All changes requested by planners go through apply_delta().

Design principles:
- Mutates the live WorldState in place
- Validates before applying: a failed effect leaves the state untouched
- Returns DeltaResult / BatchDeltaResult, never raises
- No clamping: numeric results are stored as computed

Batches are best-effort. Each effect is attempted in order; a failure is
recorded and skipped, earlier effects are kept, later effects still run.
Callers that need all-or-nothing semantics use apply_deltas_atomic(),
which works on a clone and commits it only if every effect succeeded.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ..log import get_logger
from .effects import CommittedDelta, DeltaOperation, Effect, DEFAULT_LEDGER_PATH
from .paths import PathTarget, resolve_store_path
from .state import WorldState
from .values import is_number, strict_equals, type_name

logger = get_logger(__name__)


class DeltaError(Exception):
    """An effect cannot be applied to the current state."""


@dataclass
class DeltaResult:
    """Result of applying a single effect."""
    success: bool
    error: str | None = None
    applied_delta: CommittedDelta | None = None

    @classmethod
    def failure(cls, error: str) -> DeltaResult:
        return cls(success=False, error=error)

    @classmethod
    def applied(cls, delta: CommittedDelta) -> DeltaResult:
        return cls(success=True, applied_delta=delta)


@dataclass
class FailedDelta:
    effect: Effect
    error: str


@dataclass
class BatchDeltaResult:
    """
    Result of applying an ordered batch.

    success is True iff nothing failed.
    """
    success: bool
    applied: list[CommittedDelta] = field(default_factory=list)
    failed: list[FailedDelta] = field(default_factory=list)


@dataclass
class DeltaValidation:
    valid: bool
    error: str | None = None


# A prepared mutation: all checks passed, calling it performs the change.
Commit = Callable[[], None]


def _coerce(effect: Effect | dict[str, Any]) -> Effect:
    return effect if isinstance(effect, Effect) else Effect.from_dict(effect)


class DeltaEngine:
    """
    Applies effects to a WorldState.

    Stateless - all state is in the WorldState passed to each call.
    """

    def apply(
        self,
        state: WorldState,
        effect: Effect,
        scene_id: str | None = None,
        reason: str | None = None,
    ) -> DeltaResult:
        """Apply one effect in place."""
        try:
            commit = self._prepare(state, effect)
            commit()
        except DeltaError as e:
            return DeltaResult.failure(str(e))
        except Exception as e:
            logger.exception("unexpected error applying effect", extra={"path": effect.path, "op": effect.op})
            return DeltaResult.failure(str(e))

        logger.debug(
            "applied effect",
            extra={"path": effect.path, "op": effect.op, "provenance_id": scene_id},
        )
        return DeltaResult.applied(CommittedDelta(effect=effect, scene_id=scene_id, reason=reason))

    def validate(self, state: WorldState, effect: Effect) -> DeltaValidation:
        """Run every pre-check apply() would, without mutating."""
        try:
            self._prepare(state, effect)
        except DeltaError as e:
            return DeltaValidation(valid=False, error=str(e))
        except Exception as e:
            logger.exception("unexpected error validating effect", extra={"path": effect.path, "op": effect.op})
            return DeltaValidation(valid=False, error=str(e))
        return DeltaValidation(valid=True)

    def apply_batch(
        self,
        state: WorldState,
        effects: Iterable[Effect],
        scene_id: str | None = None,
    ) -> BatchDeltaResult:
        """Apply effects in order, best-effort, collecting failures."""
        applied: list[CommittedDelta] = []
        failed: list[FailedDelta] = []

        for effect in effects:
            result = self.apply(state, effect, scene_id)
            if result.success and result.applied_delta:
                applied.append(result.applied_delta)
            else:
                error = result.error or "Unknown error"
                logger.warning(
                    "effect failed: %s",
                    error,
                    extra={"path": effect.path, "op": effect.op, "provenance_id": scene_id},
                )
                failed.append(FailedDelta(effect=effect, error=error))

        return BatchDeltaResult(success=not failed, applied=applied, failed=failed)

    def apply_batch_atomic(
        self,
        state: WorldState,
        effects: Iterable[Effect],
        scene_id: str | None = None,
    ) -> BatchDeltaResult:
        """
        All-or-nothing batch built on apply_batch().

        On any failure the live state is untouched and nothing is
        reported as applied.
        """
        draft = state.clone()
        result = self.apply_batch(draft, effects, scene_id)
        if not result.success:
            return BatchDeltaResult(success=False, applied=[], failed=result.failed)
        state.replace_with(draft)
        return result

    # =========================================================================
    # Preparation
    # =========================================================================

    def _prepare(self, state: WorldState, effect: Effect) -> Commit:
        operation = effect.operation
        handler = self._get_handler(operation) if operation else None
        if handler is None:
            raise DeltaError(f"Unknown operation: {effect.op}")
        return handler(state, effect)

    def _get_handler(self, operation: DeltaOperation):
        """Get the handler function for an operation."""
        handlers = {
            DeltaOperation.SET: self._prepare_set,
            DeltaOperation.ADD: self._prepare_arithmetic,
            DeltaOperation.SUBTRACT: self._prepare_arithmetic,
            DeltaOperation.MULTIPLY: self._prepare_arithmetic,
            DeltaOperation.APPEND: self._prepare_append,
            DeltaOperation.REMOVE: self._prepare_remove,
            DeltaOperation.TRANSFER: self._prepare_transfer,
        }
        return handlers.get(operation)

    @staticmethod
    def _resolve(state: WorldState, path: str) -> PathTarget:
        target = resolve_store_path(state, path)
        if target is None:
            raise DeltaError(f"Could not resolve path: {path}")
        return target

    def _prepare_set(self, state: WorldState, effect: Effect) -> Commit:
        target = self._resolve(state, effect.path)
        return lambda: target.set(effect.value)

    def _prepare_arithmetic(self, state: WorldState, effect: Effect) -> Commit:
        target = self._resolve(state, effect.path)
        current = target.get()
        if current is None:
            current = 0
        value = effect.value

        if not is_number(current) or not is_number(value):
            raise DeltaError(
                f"'{effect.op}' requires numeric values, "
                f"got {type_name(current)} and {type_name(value)}"
            )

        operation = effect.operation
        try:
            if operation == DeltaOperation.ADD:
                result = current + value
            elif operation == DeltaOperation.SUBTRACT:
                result = current - value
            else:
                result = current * value
        except OverflowError:
            raise DeltaError(f"'{effect.op}' overflowed at {effect.path}") from None

        return lambda: target.set(result)

    def _prepare_append(self, state: WorldState, effect: Effect) -> Commit:
        target = self._resolve(state, effect.path)
        if not target.exists or target.get() is None:
            return lambda: target.set([effect.value])

        current = target.get()
        if not isinstance(current, list):
            raise DeltaError(f"'append' requires an array target, got {type_name(current)}")
        return lambda: current.append(effect.value)

    def _prepare_remove(self, state: WorldState, effect: Effect) -> Commit:
        target = self._resolve(state, effect.path)
        current = target.get()
        if not isinstance(current, list):
            raise DeltaError(f"'remove' requires an array target, got {type_name(current)}")

        index = self._find_removal_index(current, effect)
        if index is None:
            return lambda: None
        return lambda: current.pop(index)

    @staticmethod
    def _find_removal_index(items: list, effect: Effect) -> int | None:
        if effect.match:
            for i, item in enumerate(items):
                if isinstance(item, dict) and all(
                    k in item and strict_equals(item[k], v) for k, v in effect.match.items()
                ):
                    return i
            return None

        for i, item in enumerate(items):
            if strict_equals(item, effect.value):
                return i
        return None

    def _prepare_transfer(self, state: WorldState, effect: Effect) -> Commit:
        """
        Move denarii between ledger entries.

        The sender's balance may never go below zero; an unknown
        recipient gets a fresh entry.
        """
        if not effect.from_ or not effect.to or effect.denarii is None:
            raise DeltaError("Transfer requires from, to, and denarii fields")
        amount = effect.denarii
        if not is_number(amount) or amount < 0:
            raise DeltaError(f"Transfer amount must be a non-negative number, got {amount!r}")

        path = effect.path or DEFAULT_LEDGER_PATH
        target = self._resolve(state, path)
        if not target.exists:
            raise DeltaError(f"Could not resolve path: {path}")
        ledger = target.get()
        if not isinstance(ledger, list):
            raise DeltaError(f"'transfer' requires a ledger array at {path}, got {type_name(ledger)}")

        sender = _ledger_entry(ledger, effect.from_)
        if sender is None:
            raise DeltaError(f"No ledger entry for: {effect.from_}")
        balance = sender.get("denarii", 0)
        if not is_number(balance) or balance < amount:
            raise DeltaError(
                f"Insufficient funds: {effect.from_} has {balance}, needs {amount}"
            )

        recipient = _ledger_entry(ledger, effect.to)
        received = recipient.get("denarii", 0) if recipient is not None else 0
        if not is_number(received):
            raise DeltaError(f"Ledger entry for {effect.to} is not numeric")
        try:
            sender_balance = balance - amount
            recipient_balance = received + amount
        except OverflowError:
            raise DeltaError(f"Transfer overflowed between {effect.from_} and {effect.to}") from None

        def commit() -> None:
            sender["denarii"] = sender_balance
            if recipient is not None:
                recipient["denarii"] = recipient_balance
            else:
                ledger.append({"holder": effect.to, "denarii": amount})

        return commit


def _ledger_entry(ledger: list, holder: str) -> dict | None:
    for entry in ledger:
        if isinstance(entry, dict) and entry.get("holder") == holder:
            return entry
    return None


# Convenience functions

_default_engine = DeltaEngine()


def apply_delta(
    state: WorldState,
    effect: Effect | dict[str, Any],
    scene_id: str | None = None,
    reason: str | None = None,
) -> DeltaResult:
    return _default_engine.apply(state, _coerce(effect), scene_id, reason)


def apply_deltas(
    state: WorldState,
    effects: Iterable[Effect | dict[str, Any]],
    scene_id: str | None = None,
) -> BatchDeltaResult:
    return _default_engine.apply_batch(state, [_coerce(e) for e in effects], scene_id)


def apply_deltas_atomic(
    state: WorldState,
    effects: Iterable[Effect | dict[str, Any]],
    scene_id: str | None = None,
) -> BatchDeltaResult:
    return _default_engine.apply_batch_atomic(state, [_coerce(e) for e in effects], scene_id)


def validate_delta(state: WorldState, effect: Effect | dict[str, Any]) -> DeltaValidation:
    """Dry-run check: would apply_delta() succeed?"""
    return _default_engine.validate(state, _coerce(effect))
