"""
Resultados del matching lead -> listings (tabla ``lead_matches``).

Los matches de un lead se borran y recrean completos en cada corrida;
cada fila guarda lo necesario para explicar su ranking a posteriori.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class RelaxationLevel(str, Enum):
    """Niveles de relajación, en el orden en que se prueban."""

    STRICT = "strict"
    DROP_LOCATION = "drop_location"
    DROP_CATEGORY = "drop_category"
    BUDGET_ONLY = "budget_only"


class MatchOutcome(str, Enum):
    MATCHED = "MATCHED"
    NO_CANDIDATES = "NO_CANDIDATES"


class CandidateFilter(BaseModel):
    """Restricciones duras de un nivel de relajación."""

    agency_id: str
    status: str = "PUBLISHED"
    kind: Optional[str] = None
    property_type: Optional[str] = None
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    size_min: Optional[int] = None
    size_max: Optional[int] = None
    bedrooms_min: Optional[int] = None
    bathrooms_min: Optional[int] = None
    communes: list[str] = Field(default_factory=list)

    def to_reason_dict(self) -> dict[str, Any]:
        """Solo las restricciones activas, para el payload de explicación."""
        data = self.model_dump(exclude_none=True)
        if not data.get("communes"):
            data.pop("communes", None)
        return data


class MatchWeights(BaseModel):
    """Pesos de mezcla estructurado/semántico (suman 1)."""

    structured: float = Field(..., ge=0, le=1)
    semantic: float = Field(..., ge=0, le=1)
    reason: str = Field(..., description="Etiquetas de los ajustes aplicados")


class StructuredScore(BaseModel):
    """Puntaje aditivo por dimensión, con su explicación."""

    points: float = 0.0
    max_points: float = 0.0
    matched: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)

    @property
    def normalized(self) -> float:
        """Puntaje en escala 0-100 relativo a lo que el perfil pidió."""
        if self.max_points <= 0:
            return 0.0
        return 100.0 * self.points / self.max_points


class MatchReasons(BaseModel):
    """Payload de explicación persistido junto a cada match."""

    matched: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    relaxation_level: RelaxationLevel
    semantic_used: bool
    structured_weight: float
    semantic_weight: float
    weight_reason: str
    candidate_count: int
    filter_used: dict[str, Any] = Field(default_factory=dict)


class LeadMatch(BaseModel):
    """Match persistido de un listing para un lead."""

    lead_id: str
    agency_id: str
    listing_id: str
    score: float = Field(..., description="Score mezclado 0-100")
    structured_score: float = Field(..., description="Score estructurado 0-100")
    semantic_score: float = Field(..., description="Similitud semántica 0-100")
    freshness_score: Optional[float] = None
    reasons: MatchReasons
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json")


class MatchRunResult(BaseModel):
    """Resultado de una corrida de matching."""

    lead_id: str
    outcome: MatchOutcome
    relaxation_level: Optional[RelaxationLevel] = None
    weights: Optional[MatchWeights] = None
    candidate_count: int = 0
    semantic_used: bool = False
    matches: list[LeadMatch] = Field(default_factory=list)
