"""
World Document Schemas - pydantic models for the persisted JSON files.

One model per file in the world directory, plus operators.json and the
per-episode delta log. They are used to validate documents at load time;
the engine keeps working on the raw JSON afterwards.

Every model allows extra keys so unmodelled fields survive a load/save
round trip. Stat ranges are deliberately not enforced here: the delta
engine does not clamp, so a legitimately saved world may hold values
outside the declared bounds. validate_world() reports those as warnings.
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field

from ..engine_core.effects import DeltaOperation


class _Document(BaseModel):
    model_config = {"extra": "allow"}


# =============================================================================
# Enums
# =============================================================================

class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class RelationshipType(str, Enum):
    ADVERSARY = "adversary"
    PATRON_OF = "patron_of"
    CLIENT_OF = "client_of"
    SPOUSE = "spouse"
    CONFIDANTE = "confidante"
    NEMESIS = "nemesis"
    ALLY = "ally"


class SecretStatus(str, Enum):
    ACTIVE = "active"
    REVEALED = "revealed"
    INERT = "inert"


class ThreadStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class ContractStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OperatorType(str, Enum):
    THRILLER = "thriller"
    SOAP = "soap"


# =============================================================================
# world.json
# =============================================================================

class Time(_Document):
    year_bce: int
    season: Season
    day: int


class Location(_Document):
    id: str
    name: str
    visual_dna: Optional[dict[str, Any]] = None


class GlobalMetrics(_Document):
    unrest: float
    grain_price_index: float
    scandal_temperature: float
    legal_exposure: float


class WorldDocument(_Document):
    world_id: str
    time: Time
    locations: list[Location] = Field(default_factory=list)
    global_: GlobalMetrics = Field(alias="global")
    extra_templates: Optional[dict[str, str]] = None


# =============================================================================
# factions.json
# =============================================================================

class Faction(_Document):
    id: str
    name: str
    stats: dict[str, float] = Field(default_factory=dict)


class FactionsDocument(_Document):
    factions: list[Faction] = Field(default_factory=list)


# =============================================================================
# characters.json
# =============================================================================

class CharacterStats(_Document):
    dignitas: float
    auctoritas: float
    wealth: float
    popularity: float


class CharacterStatus(_Document):
    alive: bool
    location_id: str
    injured: Optional[bool] = None
    wanted: Optional[bool] = None
    subpoenaed: Optional[bool] = None


class Belief(_Document):
    id: str
    text: str
    confidence: float


class Desire(_Document):
    id: str
    text: str
    priority: float


class Intention(_Document):
    id: str
    operator_id: str
    commitment: float
    target: Optional[str] = None


class BDI(_Document):
    """Beliefs, desires and intentions."""
    beliefs: list[Belief] = Field(default_factory=list)
    desires: list[Desire] = Field(default_factory=list)
    intentions: list[Intention] = Field(default_factory=list)
    constraints: Optional[list[str]] = None


class Voice(_Document):
    tags: list[str] = Field(default_factory=list)
    tells: Optional[list[str]] = None


class Character(_Document):
    id: str
    name: str
    archetype: Optional[str] = None
    faction_id: Optional[str] = None
    stats: CharacterStats
    status: CharacterStatus
    bdi: BDI
    voice: Voice
    visual_dna: Optional[dict[str, Any]] = None


class CharactersDocument(_Document):
    characters: list[Character] = Field(default_factory=list)


# =============================================================================
# relationships.json
# =============================================================================

class Relationship(_Document):
    """Directed weighted edge between two characters."""
    id: str
    from_: str = Field(alias="from")
    to: str
    type: RelationshipType
    weights: dict[str, float] = Field(default_factory=dict)
    flags: Optional[dict[str, bool]] = None


class RelationshipsDocument(_Document):
    edges: list[Relationship] = Field(default_factory=list)


# =============================================================================
# secrets.json
# =============================================================================

class SecretProof(_Document):
    type: str
    credibility: float
    location: Optional[str] = None


class SecretStats(_Document):
    legal_value: float
    public_damage: float
    credibility: float


class SecretDecay(_Document):
    half_life_episodes: float
    applies_to: list[str] = Field(default_factory=list)
    last_decayed_episode: int


class Secret(_Document):
    id: str
    subject_ids: list[str] = Field(default_factory=list)
    holders: list[str] = Field(default_factory=list)
    description: str
    proof: Optional[SecretProof] = None
    stats: SecretStats
    decay: SecretDecay
    status: SecretStatus
    narrative_function: Optional[str] = None


class SecretsDocument(_Document):
    secrets: list[Secret] = Field(default_factory=list)


# =============================================================================
# assets.json
# =============================================================================

class GrainAsset(_Document):
    inventory_units: float
    controlled_by: list[str] = Field(default_factory=list)
    warehouse_locations: list[str] = Field(default_factory=list)


class Contract(_Document):
    id: str
    type: str
    status: ContractStatus
    stakeholders: list[str] = Field(default_factory=list)


class CashLedgerEntry(_Document):
    holder: str
    denarii: float


class Network(_Document):
    id: str
    name: str
    owner: str
    type: str
    stats: dict[str, float] = Field(default_factory=dict)
    upkeep_cost: Optional[float] = None


class Office(_Document):
    id: str
    name: str
    owner: str
    type: str
    powers: list[str] = Field(default_factory=list)


class Assets(_Document):
    grain: Optional[GrainAsset] = None
    contracts: Optional[list[Contract]] = None
    cash_ledger: Optional[list[CashLedgerEntry]] = None
    networks: Optional[list[Network]] = None
    offices: Optional[list[Office]] = None


class AssetsDocument(_Document):
    assets: Assets


# =============================================================================
# threads.json
# =============================================================================

class ThreadCadence(_Document):
    max_episodes_without_progress: int


class Thread(_Document):
    """An open narrative question."""
    id: str
    priority: float
    question: str
    status: ThreadStatus
    advance_cadence: ThreadCadence
    last_advanced_episode: int
    episodes_since_progress: int
    related_state_paths: Optional[list[str]] = None
    related_secrets: Optional[list[str]] = None


class ThreadsDocument(_Document):
    threads: list[Thread] = Field(default_factory=list)


# =============================================================================
# constraints.json
# =============================================================================

class ConstraintRule(_Document):
    id: str
    rule: str


class ConstraintsDocument(_Document):
    hard_constraints: list[ConstraintRule] = Field(default_factory=list)
    soft_constraints: list[ConstraintRule] = Field(default_factory=list)
    production_constraints: Optional[dict[str, Any]] = None


# =============================================================================
# operators.json
# =============================================================================

class Prereq(_Document):
    expr: str


class EffectModel(_Document):
    """Wire shape of one effect."""
    path: str
    op: DeltaOperation
    value: Optional[Any] = None
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    denarii: Optional[float] = None
    match: Optional[dict[str, Any]] = None


class SideEffectRisk(_Document):
    id: str
    text: str
    prob: float = Field(ge=0.0, le=1.0)
    consequence_operator: Optional[str] = None
    consequence_delay: Optional[str] = None


class Operator(_Document):
    """A reusable action template with prerequisites and effects."""
    id: str
    type: OperatorType
    tags: Optional[list[str]] = None
    prereqs: list[Prereq] = Field(default_factory=list)
    effects: list[EffectModel] = Field(default_factory=list)
    side_effect_risks: Optional[list[SideEffectRisk]] = None
    scene_suggestions: Optional[list[str]] = None
    allowed_inventions: Optional[dict[str, Any]] = None
    writer_guidance: Optional[dict[str, Any]] = None


class OperatorsDocument(_Document):
    operators: list[Operator] = Field(default_factory=list)


# =============================================================================
# seasons/<season>/<episode>/episode_deltas.json
# =============================================================================

class CommittedDeltaModel(EffectModel):
    reason: Optional[str] = None
    scene_id: Optional[str] = None


class EpisodeDeltasDocument(_Document):
    episode_id: str
    deltas: list[CommittedDeltaModel] = Field(default_factory=list)


# Schema for each world document, keyed by WorldState attribute / file stem.
DOCUMENT_SCHEMAS: dict[str, type[BaseModel]] = {
    "world": WorldDocument,
    "characters": CharactersDocument,
    "relationships": RelationshipsDocument,
    "secrets": SecretsDocument,
    "assets": AssetsDocument,
    "threads": ThreadsDocument,
    "constraints": ConstraintsDocument,
    "factions": FactionsDocument,
}
