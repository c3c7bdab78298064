"""
Perfil de comprador y lead.

El perfil llega ya estructurado (la extracción desde texto libre ocurre
fuera del motor). Cada preferencia no nula es una restricción dura en el
filtro estricto y una dimensión puntuable en el score estructurado.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vitrina.models.embedding import EmbeddingVector
from vitrina.models.listing import Amenity

# Columnas booleanas de buyer_profiles -> amenity pedida
_AMENITY_COLUMNS: dict[str, Amenity] = {
    "has_balcony": Amenity.BALCONY,
    "has_terrace": Amenity.TERRACE,
    "has_garden": Amenity.GARDEN,
    "has_cellar": Amenity.CELLAR,
    "has_elevator": Amenity.ELEVATOR,
    "pets_allowed": Amenity.PETS_ALLOWED,
    "furnished": Amenity.FURNISHED,
}


class BuyerProfile(BaseModel):
    """Preferencias estructuradas de un comprador."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="UUID del perfil")

    # Categoría
    kind: Optional[str] = Field(None, description="SALE o RENT")
    property_type: Optional[str] = Field(None, description="APARTMENT, HOUSE, ...")

    # Presupuesto
    budget_min: Optional[int] = Field(None, ge=0)
    budget_max: Optional[int] = Field(None, ge=0)

    # Superficie y ambientes
    size_min_sqm: Optional[int] = Field(None, ge=0)
    size_max_sqm: Optional[int] = Field(None, ge=0)
    bedrooms_min: Optional[int] = Field(None, ge=0)
    bathrooms_min: Optional[int] = Field(None, ge=0)

    # Ubicación
    communes: list[str] = Field(default_factory=list, description="Comunas aceptables")

    # Amenities pedidas (must-have)
    amenities: list[Amenity] = Field(default_factory=list)

    # Matching semántico
    embedding: Optional[EmbeddingVector] = Field(
        None, description="Embedding del perfil; ausente si falta o es inválido"
    )
    summary: Optional[str] = Field(None, description="Resumen libre del comprador")

    @field_validator("communes", mode="before")
    @classmethod
    def _clean_communes(cls, value):
        if not value:
            return []
        return [c.strip() for c in value if c and c.strip()]

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_embedding(cls, value):
        if value is None or isinstance(value, EmbeddingVector):
            return value
        return EmbeddingVector.parse(value)

    @property
    def has_budget(self) -> bool:
        return self.budget_min is not None or self.budget_max is not None

    @property
    def has_size(self) -> bool:
        return self.size_min_sqm is not None or self.size_max_sqm is not None

    @property
    def richness(self) -> int:
        """Cantidad de dimensiones estructuradas especificadas (0-7)."""
        return sum(
            [
                self.has_budget,
                self.bedrooms_min is not None,
                self.bathrooms_min is not None,
                self.has_size,
                bool(self.communes),
                bool(self.kind),
                bool(self.property_type),
            ]
        )

    @classmethod
    def from_db(cls, row: dict) -> "BuyerProfile":
        """Reconstruye el perfil desde una fila de ``buyer_profiles``."""
        amenities = [amenity for column, amenity in _AMENITY_COLUMNS.items() if row.get(column)]
        if (row.get("parking_min") or 0) > 0:
            amenities.append(Amenity.PARKING)

        return cls(
            id=row["id"],
            kind=row.get("kind"),
            property_type=row.get("property_type"),
            budget_min=row.get("budget_min"),
            budget_max=row.get("budget_max"),
            size_min_sqm=row.get("size_min_sqm"),
            size_max_sqm=row.get("size_max_sqm"),
            bedrooms_min=row.get("bedrooms_min"),
            bathrooms_min=row.get("bathrooms_min"),
            communes=row.get("communes"),
            amenities=amenities,
            embedding=row.get("embedding"),
            summary=row.get("summary"),
        )


class Lead(BaseModel):
    """Lead de una agencia con su perfil (si ya fue extraído)."""

    id: str
    agency_id: Optional[str] = None
    buyer_profile: Optional[BuyerProfile] = None
