"""World document schemas and cross-reference validation."""

from .documents import (
    DOCUMENT_SCHEMAS,
    WorldDocument,
    CharactersDocument,
    RelationshipsDocument,
    SecretsDocument,
    AssetsDocument,
    ThreadsDocument,
    ConstraintsDocument,
    FactionsDocument,
    OperatorsDocument,
    Operator,
    EffectModel,
    EpisodeDeltasDocument,
)
from .validation import (
    validate_world,
    validate_operators,
    ValidationResult,
    WorldValidationError,
)

__all__ = [
    "DOCUMENT_SCHEMAS",
    "WorldDocument",
    "CharactersDocument",
    "RelationshipsDocument",
    "SecretsDocument",
    "AssetsDocument",
    "ThreadsDocument",
    "ConstraintsDocument",
    "FactionsDocument",
    "OperatorsDocument",
    "Operator",
    "EffectModel",
    "EpisodeDeltasDocument",
    "validate_world",
    "validate_operators",
    "ValidationResult",
    "WorldValidationError",
]
