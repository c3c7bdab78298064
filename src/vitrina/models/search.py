"""
Request/response de la superficie pública de búsqueda.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from vitrina.models.popularity import PopularityBadge


class SortMode(str, Enum):
    RECOMMENDED = "recommended"
    NEWEST = "newest"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"


class RankingMode(str, Enum):
    """Camino de ranking que produjo la respuesta."""

    HYBRID = "HYBRID"
    TEXT_ONLY = "TEXT_ONLY"
    SUBSTRING_FALLBACK = "SUBSTRING_FALLBACK"
    RECOMMENDED = "RECOMMENDED"
    RECOMMENDED_FALLBACK = "RECOMMENDED_FALLBACK"
    ATTRIBUTE = "ATTRIBUTE"


class SearchFilters(BaseModel):
    """Filtros estructurados (todos opcionales)."""

    commune: Optional[str] = None
    kind: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms_min: Optional[int] = Field(None, ge=0)
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    min_size: Optional[int] = Field(None, ge=0)
    max_size: Optional[int] = Field(None, ge=0)
    badge: Optional[PopularityBadge] = None

    @field_validator("commune", "kind", "property_type", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class SearchRequest(BaseModel):
    """Request de búsqueda/browse."""

    query: Optional[str] = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort: SortMode = SortMode.RECOMMENDED
    limit: Optional[int] = None
    offset: int = 0
    viewer_id: Optional[str] = Field(None, description="Usuario que mira (para flags)")

    @field_validator("query", mode="before")
    @classmethod
    def _strip_query(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value


class SearchItem(BaseModel):
    """Item rankeado con atributos denormalizados y flags del viewer."""

    listing_id: str
    rank_score: Optional[float] = None
    title: str = ""
    commune: Optional[str] = None
    price: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    size_sqm: Optional[int] = None
    kind: Optional[str] = None
    property_type: Optional[str] = None
    popularity_badge: PopularityBadge = PopularityBadge.NONE
    is_boosted: bool = False
    is_saved: bool = False


class SearchResponse(BaseModel):
    """Página de resultados."""

    items: list[SearchItem] = Field(default_factory=list)
    next_cursor: int = Field(..., description="Offset de la próxima página")
    has_more: bool = False
    mode: RankingMode
    degraded: bool = Field(
        False, description="True si el ranking cayó a un modo de fallback"
    )
