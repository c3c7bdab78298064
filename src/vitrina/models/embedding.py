"""
Vector de embedding validado.

Ningún vector entra al sistema sin pasar por esta validación: dimensión
fija y valores finitos. Un payload inválido se trata como ausente.
"""

import json
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from vitrina.errors import InvalidEmbeddingError

# gemini-embedding-001 soporta 768, 1536, 3072; usamos 768 (columna vector(768))
DEFAULT_DIMENSION = 768


class EmbeddingVector(BaseModel):
    """Vector inmutable de dimensión fija con valores finitos."""

    model_config = ConfigDict(frozen=True)

    values: tuple[float, ...] = Field(..., description="Componentes del vector")
    dimension: int = Field(DEFAULT_DIMENSION, gt=0, description="Dimensión esperada")

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, value: Any) -> Any:
        # pgvector vuelve como texto '[0.1,0.2,...]' vía PostgREST
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"Vector no parseable: {e}") from e
        if not isinstance(value, (list, tuple)):
            raise ValueError("El vector debe ser una lista de números")
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in value):
            raise ValueError("El vector contiene valores no numéricos")
        return tuple(float(v) for v in value)

    @field_validator("values")
    @classmethod
    def _check_finite(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if not all(math.isfinite(v) for v in value):
            raise ValueError("El vector contiene NaN o infinitos")
        return value

    @model_validator(mode="after")
    def _check_dimension(self) -> "EmbeddingVector":
        if len(self.values) != self.dimension:
            raise ValueError(
                f"Dimensión inesperada: {len(self.values)} (esperada {self.dimension})"
            )
        return self

    @classmethod
    def from_values(cls, raw: Any, dimension: int = DEFAULT_DIMENSION) -> "EmbeddingVector":
        """Construye el vector o levanta InvalidEmbeddingError."""
        try:
            return cls(values=raw, dimension=dimension)
        except ValidationError as e:
            raise InvalidEmbeddingError(str(e)) from e

    @classmethod
    def parse(cls, raw: Any, dimension: int = DEFAULT_DIMENSION) -> Optional["EmbeddingVector"]:
        """Construye el vector; ``None`` si falta o es inválido."""
        if raw is None:
            return None
        try:
            return cls.from_values(raw, dimension=dimension)
        except InvalidEmbeddingError:
            return None

    def to_list(self) -> list[float]:
        return list(self.values)

    def to_pgvector(self) -> str:
        """Literal de pgvector para parámetros de RPC."""
        return "[" + ",".join(repr(v) for v in self.values) + "]"
