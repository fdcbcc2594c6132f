"""
API Module - Pipeline interface to the world-state core.

Exposes the core via REST API for the episode pipeline.
A pipeline run:
1. Reloads the world from disk
2. Checks operator eligibility for actor/target pairs
3. Checkpoints, then applies scene deltas
4. Restores on failure, or saves once the episode is committed

All state lives in the injected StateStore. Checkpoints are in memory only.
"""

from .schemas import (
    # Requests
    PairRequest,
    PrereqEvaluateRequest,
    DeltaRequest,
    EffectInput,
    # Responses
    CharacterResponse,
    PrereqEvaluateResponse,
    EligibilityResponse,
    DeltaValidateResponse,
    DeltaApplyResponse,
    SnapshotResponse,
    SnapshotDeleteResponse,
    ErrorResponse,
    ErrorCode,
)
from .service import APIService, UnknownSnapshotError
from .app import create_app

__all__ = [
    # Requests
    "PairRequest",
    "PrereqEvaluateRequest",
    "DeltaRequest",
    "EffectInput",
    # Responses
    "CharacterResponse",
    "PrereqEvaluateResponse",
    "EligibilityResponse",
    "DeltaValidateResponse",
    "DeltaApplyResponse",
    "SnapshotResponse",
    "SnapshotDeleteResponse",
    "ErrorResponse",
    "ErrorCode",
    # Service
    "APIService",
    "UnknownSnapshotError",
    "create_app",
]
