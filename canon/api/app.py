"""
FastAPI Application - REST API over the world-state core.

Endpoints:
    GET    /api/v1/health                          Health check
    GET    /api/v1/characters/{id}                 Character + assets
    GET    /api/v1/characters/{id}/secrets         Secrets the character holds
    GET    /api/v1/relationships?from_id&to_id     Relationship lookup
    GET    /api/v1/threads?urgent=                 Open (or urgent) threads
    GET    /api/v1/operators/{id}                  Operator definition
    POST   /api/v1/prereqs/evaluate                Evaluate expressions for a pair
    POST   /api/v1/operators/{id}/eligibility      Operator prerequisites for a pair
    POST   /api/v1/deltas/validate                 Dry-run effects
    POST   /api/v1/deltas/apply                    Apply effects (best-effort or atomic)
    POST   /api/v1/snapshots                       Checkpoint the live world
    POST   /api/v1/snapshots/{id}/restore          Restore a checkpoint
    DELETE /api/v1/snapshots/{id}                  Release a checkpoint
    POST   /api/v1/world/save                      Persist the live world
    POST   /api/v1/world/reload                    Reload the world from disk

Delta Flow:
    1. POST /snapshots before a risky batch
    2. POST /deltas/apply with scene_id provenance
    3. Inspect failed; POST /snapshots/{id}/restore to roll back
    4. DELETE /snapshots/{id} once the batch is kept
    5. POST /world/save once the episode is committed

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Optional, Union
import os

# Environment configuration
CANON_ENV = os.getenv("CANON_ENV", "development")
CANON_LOG_LEVEL = os.getenv("CANON_LOG_LEVEL", "INFO")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
CANON_MAX_SNAPSHOTS = int(os.getenv("CANON_MAX_SNAPSHOTS", "16"))


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance. When omitted, one is built
            from CANON_* environment variables and the world is loaded
            on first use via POST /world/reload.

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Query
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from ..log import setup_logging
    from .service import APIService
    from .schemas import (
        # Request models
        PairRequest,
        PrereqEvaluateRequest,
        DeltaRequest,
        # Response models
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
        # Enums
        ErrorCode,
    )

    setup_logging(CANON_LOG_LEVEL)

    app = FastAPI(
        title="Canon Engine API",
        description="""
Symbolic ground truth for serialized drama episodes.

## Delta Application

`POST /deltas/apply` is **best-effort** by default: each effect is tried in
order, failures are reported in `failed`, and successful effects are kept.
Send `"atomic": true` to apply all-or-nothing instead.

## Error Codes

| Code | Description |
|------|-------------|
| `WORLD_NOT_LOADED` | No world loaded; call `POST /world/reload` |
| `WORLD_LOAD_FAILED` | A world document is missing or malformed |
| `CHARACTER_NOT_FOUND` | Character does not exist |
| `RELATIONSHIP_NOT_FOUND` | No such directed edge |
| `OPERATOR_NOT_FOUND` | Operator does not exist |
| `SNAPSHOT_NOT_FOUND` | Snapshot does not exist |
        """,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service or APIService(max_snapshots=CANON_MAX_SNAPSHOTS)

    # HTTP status for each service-level error code
    status_codes = {
        ErrorCode.WORLD_NOT_LOADED: 409,
        ErrorCode.WORLD_LOAD_FAILED: 422,
        ErrorCode.CHARACTER_NOT_FOUND: 404,
        ErrorCode.RELATIONSHIP_NOT_FOUND: 404,
        ErrorCode.OPERATOR_NOT_FOUND: 404,
        ErrorCode.SNAPSHOT_NOT_FOUND: 404,
        ErrorCode.VALIDATION_ERROR: 400,
    }

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def respond(response):
        """Pass results through; turn ErrorResponse into a JSON error."""
        if isinstance(response, ErrorResponse):
            return make_error_response(
                response.error_code,
                response.error,
                status_code=status_codes.get(response.error_code, 500),
                details=response.details,
            )
        return response

    error_responses = {
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "World not loaded"},
    }

    # =========================================================================
    # Query Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/characters/{character_id}",
        response_model=CharacterResponse,
        responses=error_responses,
        tags=["World"],
        summary="Get a character",
    )
    async def get_character(character_id: str) -> Union[CharacterResponse, JSONResponse]:
        """Character document plus cash balance, offices and office powers."""
        return respond(api_service.get_character(character_id))

    @app.get(
        "/api/v1/characters/{character_id}/secrets",
        response_model=SecretsResponse,
        responses=error_responses,
        tags=["World"],
        summary="Secrets held by a character",
    )
    async def get_character_secrets(character_id: str) -> Union[SecretsResponse, JSONResponse]:
        return respond(api_service.get_character_secrets(character_id))

    @app.get(
        "/api/v1/relationships",
        response_model=RelationshipsResponse,
        responses=error_responses,
        tags=["World"],
        summary="Look up relationships",
    )
    async def get_relationships(
        from_id: Optional[str] = Query(None, description="Source character id"),
        to_id: Optional[str] = Query(None, description="Destination character id"),
    ) -> Union[RelationshipsResponse, JSONResponse]:
        """
        With both ids, the single directed edge. With one id, the edges
        leaving (from_id) or entering (to_id) that character.
        """
        return respond(api_service.get_relationships(from_id, to_id))

    @app.get(
        "/api/v1/threads",
        response_model=ThreadsResponse,
        responses=error_responses,
        tags=["World"],
        summary="List open threads",
    )
    async def list_threads(
        urgent: bool = Query(False, description="Only threads past their cadence"),
    ) -> Union[ThreadsResponse, JSONResponse]:
        return respond(api_service.list_threads(urgent))

    @app.get(
        "/api/v1/operators/{operator_id}",
        response_model=OperatorResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Operators"],
        summary="Get an operator definition",
    )
    async def get_operator(operator_id: str) -> Union[OperatorResponse, JSONResponse]:
        return respond(api_service.get_operator(operator_id))

    # =========================================================================
    # Prerequisite Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/prereqs/evaluate",
        response_model=PrereqEvaluateResponse,
        responses=error_responses,
        tags=["Operators"],
        summary="Evaluate prerequisite expressions",
    )
    async def evaluate_prereqs(body: PrereqEvaluateRequest) -> Union[PrereqEvaluateResponse, JSONResponse]:
        """
        Evaluate expressions against the actor/target pair.

        **Request Body:**
        ```json
        {
            "actor_id": "char_varo",
            "target_id": "char_quintus",
            "prereqs": [{"expr": "actor.offices includes 'powers.SUBPOENA'"}]
        }
        ```
        """
        return respond(api_service.evaluate_prereqs(body))

    @app.post(
        "/api/v1/operators/{operator_id}/eligibility",
        response_model=EligibilityResponse,
        responses=error_responses,
        tags=["Operators"],
        summary="Check an operator's prerequisites for a pair",
    )
    async def check_eligibility(
        operator_id: str,
        body: PairRequest,
    ) -> Union[EligibilityResponse, JSONResponse]:
        return respond(api_service.check_eligibility(operator_id, body))

    # =========================================================================
    # Delta Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/deltas/validate",
        response_model=DeltaValidateResponse,
        responses=error_responses,
        tags=["Deltas"],
        summary="Dry-run effects without mutating",
    )
    async def validate_deltas(body: DeltaRequest) -> Union[DeltaValidateResponse, JSONResponse]:
        return respond(api_service.validate_deltas(body))

    @app.post(
        "/api/v1/deltas/apply",
        response_model=DeltaApplyResponse,
        responses=error_responses,
        tags=["Deltas"],
        summary="Apply effects to the live world",
    )
    async def apply_deltas(body: DeltaRequest) -> Union[DeltaApplyResponse, JSONResponse]:
        """
        Apply effects in order.

        A batch with failures still returns 200; check `success` and `failed`.
        """
        return respond(api_service.apply_deltas(body))

    # =========================================================================
    # Snapshot & Persistence Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/snapshots",
        response_model=SnapshotResponse,
        responses=error_responses,
        tags=["Snapshots"],
        summary="Checkpoint the live world",
    )
    async def create_snapshot() -> Union[SnapshotResponse, JSONResponse]:
        return respond(api_service.create_snapshot())

    @app.post(
        "/api/v1/snapshots/{snapshot_id}/restore",
        response_model=RestoreResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Snapshots"],
        summary="Restore a checkpoint",
    )
    async def restore_snapshot(snapshot_id: str) -> Union[RestoreResponse, JSONResponse]:
        return respond(api_service.restore_snapshot(snapshot_id))

    @app.delete(
        "/api/v1/snapshots/{snapshot_id}",
        response_model=SnapshotDeleteResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Snapshots"],
        summary="Release a checkpoint",
    )
    async def delete_snapshot(snapshot_id: str) -> Union[SnapshotDeleteResponse, JSONResponse]:
        return respond(api_service.delete_snapshot(snapshot_id))

    @app.post(
        "/api/v1/world/save",
        response_model=WorldActionResponse,
        responses=error_responses,
        tags=["Snapshots"],
        summary="Persist the live world to disk",
    )
    async def save_world() -> Union[WorldActionResponse, JSONResponse]:
        return respond(api_service.save_world())

    @app.post(
        "/api/v1/world/reload",
        response_model=WorldActionResponse,
        responses={422: {"model": ErrorResponse, "description": "World document invalid"}},
        tags=["Snapshots"],
        summary="Reload the world from disk",
    )
    async def reload_world() -> Union[WorldActionResponse, JSONResponse]:
        return respond(api_service.reload_world())

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/api/v1/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return api_service.health()

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Canon Engine API",
            "version": "1.0.0",
            "env": CANON_ENV,
            "docs": "/api/docs",
            "health": "/api/v1/health",
        }

    return app


# For running directly: uvicorn canon.api.app:app
app = None
try:
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
