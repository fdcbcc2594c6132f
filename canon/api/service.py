"""
API Service - Business logic layer between the HTTP API and the core.

The service:
1. Translates API requests to store / engine calls
2. Builds evaluation contexts and shorthand bindings from actor/target ids
3. Keeps named in-memory checkpoints of the world
4. Formats results as response models

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
Not-found and not-loaded conditions come back as ErrorResponse objects.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import time
import uuid

from .schemas import (
    # Requests
    PairRequest,
    PrereqEvaluateRequest,
    DeltaRequest,
    # Responses
    CharacterResponse,
    SecretsResponse,
    RelationshipsResponse,
    ThreadsResponse,
    OperatorResponse,
    PrereqEvaluateResponse,
    EligibilityResponse,
    DeltaValidateResponse,
    DeltaApplyResponse,
    SnapshotResponse,
    RestoreResponse,
    SnapshotDeleteResponse,
    WorldActionResponse,
    HealthResponse,
    ErrorResponse,
    # Shared
    PrereqResultInfo,
    DeltaValidationInfo,
    FailedDeltaInfo,
    # Enums
    ErrorCode,
)
from .. import __version__
from ..engine_core.delta_engine import DeltaEngine
from ..engine_core.effects import Effect
from ..engine_core.expression import ExpressionEvaluator, PrereqReport
from ..engine_core.shorthand import ShorthandBinding, expand_effects
from ..engine_core.state import WorldState
from ..log import get_logger
from ..store import StateStore, StoreConfig, WorldLoadError

logger = get_logger(__name__)


DEFAULT_MAX_SNAPSHOTS = 16


class UnknownSnapshotError(KeyError):
    """No checkpoint with the given id."""


def _not_loaded() -> ErrorResponse:
    return ErrorResponse(
        error="World state not loaded",
        error_code=ErrorCode.WORLD_NOT_LOADED,
    )


def _prereq_infos(report: PrereqReport) -> list[PrereqResultInfo]:
    return [PrereqResultInfo.model_validate(r) for r in report.results]


@dataclass
class APIService:
    """
    World-state service for the episode pipeline.

    Usage:
        service = APIService(store=StateStore(StoreConfig.from_env()))
        service.reload_world()

        report = service.evaluate_prereqs(request)
        result = service.apply_deltas(delta_request)
        service.save_world()
    """
    store: StateStore = field(default_factory=lambda: StateStore(StoreConfig.from_env()))
    evaluator: ExpressionEvaluator = field(default_factory=ExpressionEvaluator)
    engine: DeltaEngine = field(default_factory=DeltaEngine)

    # Checkpoints beyond this count evict the oldest
    max_snapshots: int = DEFAULT_MAX_SNAPSHOTS

    # Named checkpoints by id, oldest first
    _snapshots: dict[str, WorldState] = field(default_factory=dict)

    def health(self) -> HealthResponse:
        return HealthResponse(
            status="healthy",
            service="canon-engine",
            version=__version__,
            world_loaded=self.store.is_loaded,
            operators_loaded=self.store.operators_loaded,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_character(self, character_id: str) -> CharacterResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        character = self.store.get_character(character_id)
        if character is None:
            return ErrorResponse(
                error=f"Character {character_id} not found",
                error_code=ErrorCode.CHARACTER_NOT_FOUND,
            )
        return CharacterResponse(
            character=character,
            cash_balance=self.store.get_cash_balance(character_id),
            offices=self.store.get_offices_held_by(character_id),
            powers=self.store.get_office_powers(character_id),
        )

    def get_character_secrets(self, character_id: str) -> SecretsResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        if self.store.get_character(character_id) is None:
            return ErrorResponse(
                error=f"Character {character_id} not found",
                error_code=ErrorCode.CHARACTER_NOT_FOUND,
            )
        secrets = self.store.get_secrets_known_by(character_id)
        return SecretsResponse(character_id=character_id, secrets=secrets, count=len(secrets))

    def get_relationships(
        self,
        from_id: str | None = None,
        to_id: str | None = None,
    ) -> RelationshipsResponse | ErrorResponse:
        """
        Relationship lookup.

        With both ids, the single directed edge (404 if absent). With one,
        every edge touching that character. With none, every edge.
        """
        if not self.store.is_loaded:
            return _not_loaded()

        if from_id and to_id:
            edge = self.store.get_relationship(from_id, to_id)
            if edge is None:
                return ErrorResponse(
                    error=f"No relationship from {from_id} to {to_id}",
                    error_code=ErrorCode.RELATIONSHIP_NOT_FOUND,
                )
            edges = [edge]
        elif from_id:
            edges = [e for e in self.store.get_relationships_for(from_id) if e.get("from") == from_id]
        elif to_id:
            edges = [e for e in self.store.get_relationships_for(to_id) if e.get("to") == to_id]
        else:
            edges = list(self.store.state.relationships.get("edges", []))

        return RelationshipsResponse(relationships=edges, count=len(edges))

    def list_threads(self, urgent: bool = False) -> ThreadsResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        threads = self.store.get_urgent_threads() if urgent else self.store.get_open_threads()
        return ThreadsResponse(threads=threads, count=len(threads), urgent_only=urgent)

    def get_operator(self, operator_id: str) -> OperatorResponse | ErrorResponse:
        operator = self.store.get_operator(operator_id) if self.store.operators_loaded else None
        if operator is None:
            return ErrorResponse(
                error=f"Operator {operator_id} not found",
                error_code=ErrorCode.OPERATOR_NOT_FOUND,
            )
        return OperatorResponse(operator=operator)

    # =========================================================================
    # Prerequisites
    # =========================================================================

    def evaluate_prereqs(self, request: PrereqEvaluateRequest) -> PrereqEvaluateResponse | ErrorResponse:
        """
        Evaluate expressions for an actor/target pair.

        Unknown ids are not errors here: the affected expressions fail
        with a context-not-available error instead.
        """
        if not self.store.is_loaded:
            return _not_loaded()
        context = self.store.build_context(request.actor_id, request.target_id)
        report = self.evaluator.evaluate_prereqs([p.expr for p in request.prereqs], context)
        return PrereqEvaluateResponse(all_passed=report.all_passed, results=_prereq_infos(report))

    def check_eligibility(
        self,
        operator_id: str,
        request: PairRequest,
    ) -> EligibilityResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        operator = self.store.get_operator(operator_id) if self.store.operators_loaded else None
        if operator is None:
            return ErrorResponse(
                error=f"Operator {operator_id} not found",
                error_code=ErrorCode.OPERATOR_NOT_FOUND,
            )

        context = self.store.build_context(request.actor_id, request.target_id)
        report = self.evaluator.evaluate_prereqs(operator.get("prereqs", []), context)
        return EligibilityResponse(
            operator_id=operator_id,
            actor_id=request.actor_id,
            target_id=request.target_id,
            eligible=report.all_passed,
            results=_prereq_infos(report),
        )

    # =========================================================================
    # Deltas
    # =========================================================================

    def _effects(self, request: DeltaRequest) -> list[Effect]:
        """Request effects with shorthand expanded when an actor is named."""
        effects = [Effect.from_dict(e.to_effect_dict()) for e in request.effects]
        if not request.actor_id:
            return effects
        binding: ShorthandBinding = self.store.build_binding(request.actor_id, request.target_id)
        return expand_effects(effects, binding)

    def validate_deltas(self, request: DeltaRequest) -> DeltaValidateResponse | ErrorResponse:
        """
        Dry-run every effect against the live state.

        Effects are checked independently; earlier effects in the list are
        not applied before checking later ones.
        """
        if not self.store.is_loaded:
            return _not_loaded()
        results = []
        for effect in self._effects(request):
            validation = self.engine.validate(self.store.state, effect)
            results.append(DeltaValidationInfo(
                path=effect.path,
                op=effect.op,
                valid=validation.valid,
                error=validation.error,
            ))
        return DeltaValidateResponse(all_valid=all(r.valid for r in results), results=results)

    def apply_deltas(self, request: DeltaRequest) -> DeltaApplyResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        effects = self._effects(request)
        if request.atomic:
            result = self.engine.apply_batch_atomic(self.store.state, effects, request.scene_id)
        else:
            result = self.engine.apply_batch(self.store.state, effects, request.scene_id)

        logger.info(
            "applied %d of %d effects", len(result.applied), len(effects),
            extra={"provenance_id": request.scene_id},
        )
        return DeltaApplyResponse(
            success=result.success,
            atomic=request.atomic,
            applied=[d.to_dict() for d in result.applied],
            failed=[
                FailedDeltaInfo(effect=f.effect.to_dict(), error=f.error)
                for f in result.failed
            ],
        )

    # =========================================================================
    # Snapshots / persistence
    # =========================================================================

    def create_snapshot(self) -> SnapshotResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        evicted = []
        while self._snapshots and len(self._snapshots) >= self.max_snapshots:
            oldest = next(iter(self._snapshots))
            del self._snapshots[oldest]
            evicted.append(oldest)
        if evicted:
            logger.info("evicted %d snapshot(s)", len(evicted))

        snapshot_id = str(uuid.uuid4())
        self._snapshots[snapshot_id] = self.store.snapshot()
        return SnapshotResponse(snapshot_id=snapshot_id, created_at=time.time(), evicted=evicted)

    @property
    def snapshot_ids(self) -> list[str]:
        return list(self._snapshots)

    def get_snapshot(self, snapshot_id: str) -> WorldState:
        try:
            return self._snapshots[snapshot_id]
        except KeyError:
            raise UnknownSnapshotError(snapshot_id) from None

    def restore_snapshot(self, snapshot_id: str) -> RestoreResponse | ErrorResponse:
        try:
            snapshot = self.get_snapshot(snapshot_id)
        except UnknownSnapshotError:
            return ErrorResponse(
                error=f"Snapshot {snapshot_id} not found",
                error_code=ErrorCode.SNAPSHOT_NOT_FOUND,
            )
        self.store.restore(snapshot)
        return RestoreResponse(snapshot_id=snapshot_id, restored=True)

    def delete_snapshot(self, snapshot_id: str) -> SnapshotDeleteResponse | ErrorResponse:
        """Release a checkpoint once the caller no longer needs to roll back to it."""
        if self._snapshots.pop(snapshot_id, None) is None:
            return ErrorResponse(
                error=f"Snapshot {snapshot_id} not found",
                error_code=ErrorCode.SNAPSHOT_NOT_FOUND,
            )
        return SnapshotDeleteResponse(snapshot_id=snapshot_id, deleted=True)

    def save_world(self) -> WorldActionResponse | ErrorResponse:
        if not self.store.is_loaded:
            return _not_loaded()
        self.store.save()
        return WorldActionResponse(
            success=True, action="save", path=str(self.store.config.world_path)
        )

    def reload_world(self) -> WorldActionResponse | ErrorResponse:
        """
        Reload the world (and operators, if present) from disk.

        A failed load leaves the current state untouched.
        """
        try:
            self.store.load()
            if self.store.config.operators_file.exists():
                self.store.load_operators()
        except WorldLoadError as e:
            logger.error(str(e), extra={"document": e.document, "path": str(e.path)})
            details: dict[str, Any] = {
                "document": e.document,
                "path": str(e.path),
                "errors": e.errors,
            }
            return ErrorResponse(
                error=f"Failed to load {e.document}",
                error_code=ErrorCode.WORLD_LOAD_FAILED,
                details=details,
            )
        return WorldActionResponse(
            success=True, action="reload", path=str(self.store.config.world_path)
        )
