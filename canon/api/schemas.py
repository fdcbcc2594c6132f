"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the episode pipeline (planners,
writers, tooling) and the world-state core. World entities are returned
as the raw JSON documents hold them.

Error Codes:
- WORLD_NOT_LOADED: No world state is loaded yet
- WORLD_LOAD_FAILED: A world document is missing or malformed
- CHARACTER_NOT_FOUND: Character id does not exist
- RELATIONSHIP_NOT_FOUND: No edge between the given characters
- OPERATOR_NOT_FOUND: Operator id does not exist (or operators not loaded)
- SNAPSHOT_NOT_FOUND: Snapshot id does not exist
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    WORLD_NOT_LOADED = "WORLD_NOT_LOADED"
    WORLD_LOAD_FAILED = "WORLD_LOAD_FAILED"
    CHARACTER_NOT_FOUND = "CHARACTER_NOT_FOUND"
    RELATIONSHIP_NOT_FOUND = "RELATIONSHIP_NOT_FOUND"
    OPERATOR_NOT_FOUND = "OPERATOR_NOT_FOUND"
    SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class PrereqItem(BaseModel):
    """A prerequisite expression."""
    expr: str = Field(..., description="e.g. actor.stats.wealth > target.stats.wealth * 10")


class PrereqResultInfo(BaseModel):
    """Per-expression outcome."""
    expr: str
    passed: bool
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class EffectInput(BaseModel):
    """
    One effect as sent over the wire.

    Paths may use actor./target./relationship. shorthand when the request
    names an actor.
    """
    path: str
    op: str = Field(..., description="add, subtract, set, multiply, transfer, append, remove")
    value: Optional[Any] = None
    from_: Optional[str] = Field(None, alias="from", description="Transfer source holder")
    to: Optional[str] = Field(None, description="Transfer destination holder")
    denarii: Optional[float] = Field(None, description="Transfer amount")
    match: Optional[dict[str, Any]] = Field(None, description="Field match for remove")

    model_config = {"populate_by_name": True}

    def to_effect_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DeltaValidationInfo(BaseModel):
    path: str
    op: str
    valid: bool
    error: Optional[str] = None


class FailedDeltaInfo(BaseModel):
    """An effect that could not be applied, and why."""
    effect: dict[str, Any]
    error: str


# =============================================================================
# Request Models
# =============================================================================

class PairRequest(BaseModel):
    """An actor/target pair to build an evaluation context for."""
    actor_id: str = Field(..., description="Acting character id")
    target_id: Optional[str] = Field(None, description="Target character id")


class PrereqEvaluateRequest(PairRequest):
    """Evaluate prerequisite expressions for an actor/target pair."""
    prereqs: list[PrereqItem] = Field(..., description="Expressions to evaluate")


class DeltaRequest(BaseModel):
    """Effects to validate or apply."""
    effects: list[EffectInput] = Field(..., description="Ordered effects")
    actor_id: Optional[str] = Field(None, description="Binds actor. shorthand paths")
    target_id: Optional[str] = Field(None, description="Binds target./relationship. paths")
    scene_id: Optional[str] = Field(None, description="Provenance recorded on applied deltas")
    atomic: bool = Field(False, description="All-or-nothing instead of best-effort")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class CharacterResponse(BaseModel):
    """A character plus derived asset information."""
    character: dict[str, Any]
    cash_balance: float = 0
    offices: list[str] = Field(default_factory=list)
    powers: list[str] = Field(default_factory=list)
    api_version: str = "v1"


class SecretsResponse(BaseModel):
    """Secrets held by a character."""
    character_id: str
    secrets: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    api_version: str = "v1"


class RelationshipsResponse(BaseModel):
    relationships: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    api_version: str = "v1"


class ThreadsResponse(BaseModel):
    """Open threads, optionally only the urgent ones."""
    threads: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    urgent_only: bool = False
    api_version: str = "v1"


class OperatorResponse(BaseModel):
    operator: dict[str, Any]
    api_version: str = "v1"


class PrereqEvaluateResponse(BaseModel):
    """Aggregate and per-expression prerequisite results."""
    all_passed: bool
    results: list[PrereqResultInfo] = Field(default_factory=list)
    api_version: str = "v1"


class EligibilityResponse(BaseModel):
    """Whether an operator's prerequisites hold for a pair."""
    operator_id: str
    actor_id: str
    target_id: Optional[str] = None
    eligible: bool
    results: list[PrereqResultInfo] = Field(default_factory=list)
    api_version: str = "v1"


class DeltaValidateResponse(BaseModel):
    all_valid: bool
    results: list[DeltaValidationInfo] = Field(default_factory=list)
    api_version: str = "v1"


class DeltaApplyResponse(BaseModel):
    """
    Outcome of applying a batch.

    success is true only if nothing failed. In best-effort mode the
    effects listed in applied are kept even when others failed.
    """
    success: bool
    atomic: bool = False
    applied: list[dict[str, Any]] = Field(default_factory=list)
    failed: list[FailedDeltaInfo] = Field(default_factory=list)
    api_version: str = "v1"


class SnapshotResponse(BaseModel):
    snapshot_id: str
    created_at: float
    evicted: list[str] = Field(default_factory=list, description="Oldest checkpoints dropped to stay under the limit")
    api_version: str = "v1"


class RestoreResponse(BaseModel):
    snapshot_id: str
    restored: bool
    api_version: str = "v1"


class SnapshotDeleteResponse(BaseModel):
    snapshot_id: str
    deleted: bool
    api_version: str = "v1"


class WorldActionResponse(BaseModel):
    """Result of a save or reload."""
    success: bool
    action: str = Field(..., description="save or reload")
    path: str
    api_version: str = "v1"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    world_loaded: bool = False
    operators_loaded: bool = False
