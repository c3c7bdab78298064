"""
Popularidad de listings (tabla ``listing_popularity``).

Vista derivada y recomputable: se recalcula completa en cada corrida.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PopularityBadge(str, Enum):
    """Badge comparativo dentro de un segmento."""

    NONE = "NONE"
    TRENDING = "TRENDING"
    MOST_SAVED = "MOST_SAVED"
    MOST_VIEWED = "MOST_VIEWED"


def segment_key(
    kind: Optional[str], property_type: Optional[str], commune: Optional[str]
) -> str:
    """Clave de segmento ``kind|propertyType|commune`` en minúsculas."""
    return f"{kind or ''}|{property_type or ''}|{commune or ''}".lower()


class InteractionEvent(BaseModel):
    """Evento crudo de interacción (guardado o vista)."""

    listing_id: str
    created_at: datetime


class EligibleListing(BaseModel):
    """Listing publicado y activo, con lo mínimo para puntuar."""

    listing_id: str
    created_at: datetime
    kind: Optional[str] = None
    property_type: Optional[str] = None
    commune: Optional[str] = None

    @property
    def segment_key(self) -> str:
        return segment_key(self.kind, self.property_type, self.commune)


class PopularityRecord(BaseModel):
    """Fila de popularidad de un listing."""

    listing_id: str
    saves_7d: int = Field(0, ge=0, description="Guardados crudos en la ventana")
    views_7d: int = Field(0, ge=0, description="Vistas crudas en la ventana")
    decayed_score_7d: float = Field(0.0, ge=0, description="Score con decaimiento")
    badge: PopularityBadge = PopularityBadge.NONE
    segment_key: str = ""

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para upsert en Supabase."""
        return {
            "listing_id": self.listing_id,
            "saves_7d": self.saves_7d,
            "views_7d": self.views_7d,
            "score_7d": self.decayed_score_7d,
            "badge": self.badge.value,
            "segment_key": self.segment_key,
        }

    @classmethod
    def from_db(cls, row: dict) -> "PopularityRecord":
        return cls(
            listing_id=row["listing_id"],
            saves_7d=row.get("saves_7d") or 0,
            views_7d=row.get("views_7d") or 0,
            decayed_score_7d=row.get("score_7d") or 0.0,
            badge=row.get("badge") or PopularityBadge.NONE,
            segment_key=row.get("segment_key") or "",
        )


class PopularityRunResult(BaseModel):
    """Estadísticas de una corrida del scorer."""

    eligible: int = 0
    updated: int = 0
    cleared: int = 0
    segments: int = 0
    trending: int = 0
    most_saved: int = 0
    most_viewed: int = 0
    global_fallback_used: bool = False
