"""
Listings: fuente canónica y documento indexado.

``Listing`` es la fila de la tabla ``listings`` (CRUD externo, solo lectura
para el motor). ``ListingDocument`` es la fila de ``listing_search_index``
que consumen el planificador y el matcher.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vitrina.models.embedding import EmbeddingVector


class VisibilityStatus(str, Enum):
    """Visibilidad pública de un documento indexado."""

    PUBLISHED = "PUBLISHED"
    DRAFT = "DRAFT"
    UNPUBLISHED = "UNPUBLISHED"


class Amenity(str, Enum):
    """Amenities verificables a nivel listing y pedibles por un comprador."""

    BALCONY = "balcony"
    TERRACE = "terrace"
    GARDEN = "garden"
    CELLAR = "cellar"
    ELEVATOR = "elevator"
    PETS_ALLOWED = "petsAllowed"
    FURNISHED = "furnished"
    PARKING = "parking"


class Listing(BaseModel):
    """Listing canónico tal como lo expone el CRUD."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    agency_id: Optional[str] = None
    agency_name: Optional[str] = None

    is_published: bool = True
    status: str = Field("ACTIVE", description="ACTIVE, SOLD, UNAVAILABLE, ARCHIVED")

    title: str
    description: Optional[str] = None
    commune: str
    address_hint: Optional[str] = None

    kind: Optional[str] = Field(None, description="SALE o RENT")
    property_type: Optional[str] = None

    price: Optional[int] = None
    size_sqm: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None

    condition: Optional[str] = None
    energy_class: Optional[str] = None
    heating_type: Optional[str] = None

    # Amenities
    furnished: bool = False
    pets_allowed: bool = False
    has_elevator: bool = False
    has_balcony: bool = False
    has_terrace: bool = False
    has_garden: bool = False
    has_cellar: bool = False
    parking_spaces: int = 0

    # Alquiler
    charges_monthly: Optional[int] = None
    deposit: Optional[int] = None
    fees_agency: Optional[int] = None

    year_built: Optional[int] = None
    floor: Optional[int] = None
    total_floors: Optional[int] = None
    available_from: Optional[date] = None

    created_at: datetime
    updated_at: datetime

    @field_validator(
        "furnished",
        "pets_allowed",
        "has_elevator",
        "has_balcony",
        "has_terrace",
        "has_garden",
        "has_cellar",
        mode="before",
    )
    @classmethod
    def _null_bool_is_false(cls, value):
        return bool(value) if value is not None else False

    @field_validator("parking_spaces", mode="before")
    @classmethod
    def _null_parking_is_zero(cls, value):
        return value if value is not None else 0

    @property
    def visibility(self) -> VisibilityStatus:
        """Publicado + ACTIVE es lo único visible al público."""
        if not self.is_published:
            return VisibilityStatus.DRAFT
        if self.status != "ACTIVE":
            return VisibilityStatus.UNPUBLISHED
        return VisibilityStatus.PUBLISHED

    @property
    def amenities(self) -> list[Amenity]:
        """Amenities presentes, en orden estable."""
        flags = {
            Amenity.BALCONY: self.has_balcony,
            Amenity.TERRACE: self.has_terrace,
            Amenity.GARDEN: self.has_garden,
            Amenity.CELLAR: self.has_cellar,
            Amenity.ELEVATOR: self.has_elevator,
            Amenity.PETS_ALLOWED: self.pets_allowed,
            Amenity.FURNISHED: self.furnished,
            Amenity.PARKING: self.parking_spaces > 0,
        }
        return [a for a in Amenity if flags[a]]


class ListingDocument(BaseModel):
    """
    Documento buscable de un listing (tabla ``listing_search_index``).

    Invariante: ``embedding`` es None salvo que el status sea PUBLISHED.
    """

    model_config = ConfigDict(from_attributes=True)

    listing_id: str
    agency_id: str
    status: VisibilityStatus
    title: str = ""
    search_text: str = ""

    # Filtros denormalizados
    price: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    size_sqm: Optional[int] = None
    kind: Optional[str] = None
    property_type: Optional[str] = None
    commune: Optional[str] = None
    amenities: list[Amenity] = Field(default_factory=list)
    parking_spaces: int = 0

    embedding: Optional[EmbeddingVector] = None
    updated_at: datetime

    @field_validator("embedding", mode="before")
    @classmethod
    def _parse_embedding(cls, value):
        if value is None or isinstance(value, EmbeddingVector):
            return value
        return EmbeddingVector.parse(value)

    @field_validator("amenities", mode="before")
    @classmethod
    def _null_amenities(cls, value):
        return value or []

    @model_validator(mode="after")
    def _embedding_only_when_published(self) -> "ListingDocument":
        if self.embedding is not None and self.status != VisibilityStatus.PUBLISHED:
            raise ValueError("Un documento no publicado no puede tener embedding")
        return self

    @property
    def is_published(self) -> bool:
        return self.status == VisibilityStatus.PUBLISHED

    def to_db_dict(self, include_embedding: bool = True) -> dict:
        """
        Convierte a diccionario para upsert en Supabase.

        Con ``include_embedding=False`` la columna no se toca (queda como
        estaba en la fila existente).
        """
        data = self.model_dump(mode="json", exclude={"embedding"})
        if include_embedding:
            data["embedding"] = self.embedding.to_list() if self.embedding else None
        return data
