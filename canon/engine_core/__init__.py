"""
Engine Core - The symbolic ground-truth layer.

The engine is the part of the pipeline that:
1. Holds the WorldState snapshot
2. Evaluates operator prerequisites against it
3. Expands relative effect paths to absolute store paths
4. Applies effects via the delta engine
5. Runs episode-end upkeep (decay, thread bookkeeping, clamping)
"""

from .state import WorldState
from .paths import (
    PathResolutionError,
    PathTarget,
    resolve_context_path,
    resolve_store_path,
    offices_of,
    knowledge_of,
    location_of,
)
from .expression import (
    EvaluationContext,
    EvaluationResult,
    ExpressionEvaluator,
    PrereqReport,
    PrereqResult,
    evaluate_expression,
    evaluate_prereqs,
)
from .effects import DeltaOperation, Effect, CommittedDelta, EpisodeDeltas
from .shorthand import ShorthandBinding, expand_shorthand_path, expand_effects
from .delta_engine import (
    DeltaEngine,
    DeltaResult,
    BatchDeltaResult,
    FailedDelta,
    DeltaValidation,
    apply_delta,
    apply_deltas,
    apply_deltas_atomic,
    validate_delta,
)
from .maintenance import (
    StatBounds,
    DEFAULT_BOUNDS,
    apply_secret_decay,
    advance_threads,
    clamp_stats,
    is_urgent,
)

__all__ = [
    "WorldState",
    "PathResolutionError",
    "PathTarget",
    "resolve_context_path",
    "resolve_store_path",
    "offices_of",
    "knowledge_of",
    "location_of",
    "EvaluationContext",
    "EvaluationResult",
    "ExpressionEvaluator",
    "PrereqReport",
    "PrereqResult",
    "evaluate_expression",
    "evaluate_prereqs",
    "DeltaOperation",
    "Effect",
    "CommittedDelta",
    "EpisodeDeltas",
    "ShorthandBinding",
    "expand_shorthand_path",
    "expand_effects",
    "DeltaEngine",
    "DeltaResult",
    "BatchDeltaResult",
    "FailedDelta",
    "DeltaValidation",
    "apply_delta",
    "apply_deltas",
    "apply_deltas_atomic",
    "validate_delta",
    "StatBounds",
    "DEFAULT_BOUNDS",
    "apply_secret_decay",
    "advance_threads",
    "clamp_stats",
    "is_urgent",
]
