"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.

Las constantes de ranking están ajustadas a mano y sin calibración empírica:
viven acá (y no como literales) para poder re-tunearlas por entorno, p.ej.
``RANKING__TEXT_WEIGHT=0.5`` o ``POPULARITY__HALF_LIFE_DAYS=2``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py -> vitrina/ -> src/ -> raíz del proyecto (donde está el .env)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class RankingTuning(BaseModel):
    """Pesos y límites del planificador de búsqueda híbrida."""

    # Mezcla texto / vector
    text_weight: float = Field(0.45, ge=0, description="Peso de la relevancia full-text")
    semantic_weight: float = Field(0.55, ge=0, description="Peso de la similitud vectorial")

    # Señales de popularidad (saturantes: w * (1 - exp(-x / K)))
    popularity_weight: float = Field(0.08, ge=0)
    popularity_saturation: float = Field(50.0, gt=0)
    saves_weight: float = Field(0.10, ge=0)
    saves_saturation: float = Field(4.0, gt=0)
    recent_saves_days: int = Field(7, ge=1)

    # Boost promocional
    boost_weight: float = Field(0.35, ge=0)
    boost_basic: float = Field(0.45, ge=0)
    boost_premium: float = Field(0.70, ge=0)
    boost_platinum: float = Field(1.00, ge=0)

    # Recuperación y paginado
    candidate_limit: int = Field(300, ge=1, description="Top-N por texto y por vector")
    browse_pool_limit: int = Field(1000, ge=1, description="Pool máximo para 'recommended'")
    min_query_length: int = Field(2, ge=1)
    default_page_size: int = Field(18, ge=1)
    max_page_size: int = Field(50, ge=1)
    max_offset: int = Field(500, ge=0)


class PopularityTuning(BaseModel):
    """Parámetros del cálculo de popularidad y badges."""

    window_days: int = Field(7, ge=1)
    half_life_days: float = Field(3.0, gt=0)
    save_multiplier: float = Field(5.0, ge=0)
    view_multiplier: float = Field(1.0, ge=0)
    recency_bonus_per_day: float = Field(0.5, ge=0)

    trending_percentile: float = Field(0.10, gt=0, le=1)
    small_segment_size: int = Field(8, ge=1)

    min_trending_saves: int = Field(3, ge=0)
    min_trending_views: int = Field(25, ge=0)
    min_most_saved: int = Field(5, ge=1)
    min_most_viewed: int = Field(60, ge=1)

    global_trending_limit: int = Field(12, ge=0)
    global_fallback_min_interactions: int = Field(1, ge=1)


class MatchTuning(BaseModel):
    """Parámetros del matching lead -> propiedades."""

    # Peso estructurado base por nivel de relajación (semántico = 1 - estructurado)
    strict_structured_weight: float = Field(0.70, ge=0, le=1)
    drop_location_structured_weight: float = Field(0.60, ge=0, le=1)
    drop_category_structured_weight: float = Field(0.45, ge=0, le=1)
    budget_only_structured_weight: float = Field(0.35, ge=0, le=1)

    sparse_profile_richness: int = Field(2, ge=0)
    sparse_profile_shift: float = Field(0.10, ge=0)
    large_pool_size: int = Field(500, ge=1)
    large_pool_shift: float = Field(0.10, ge=0)
    small_pool_size: int = Field(30, ge=0)
    small_pool_shift: float = Field(0.05, ge=0)

    candidate_limit: int = Field(500, ge=1)
    default_top_k: int = Field(10, ge=1)
    max_top_k: int = Field(50, ge=1)

    # Puntos por dimensión satisfecha
    budget_points: float = Field(20.0, ge=0)
    bedrooms_points: float = Field(15.0, ge=0)
    bathrooms_points: float = Field(10.0, ge=0)
    size_points: float = Field(10.0, ge=0)
    commune_points: float = Field(20.0, ge=0)
    amenity_points: float = Field(3.0, ge=0)


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase
    supabase_url: str = Field(..., description="URL del proyecto Supabase")
    supabase_key: str = Field(..., description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para operaciones admin"
    )

    # Embeddings (Gemini)
    gemini_api_key: Optional[str] = Field(None, description="API key de Google Gemini")
    embedding_model: str = Field("gemini-embedding-001", description="Modelo de embeddings")
    embedding_dimension: int = Field(768, description="Dimensión fija de los vectores")
    embedding_timeout_seconds: float = Field(
        8.0, gt=0, description="Tiempo máximo por embedding antes de degradar"
    )

    # Timeout de sub-queries con costo no acotado (ranking, distancias)
    query_timeout_seconds: float = Field(5.0, gt=0)

    # Tuning
    ranking: RankingTuning = Field(default_factory=RankingTuning)
    popularity: PopularityTuning = Field(default_factory=PopularityTuning)
    matching: MatchTuning = Field(default_factory=MatchTuning)

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")
    log_json: bool = Field(False, description="Logs en JSON (producción)")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Constantes del sistema
LISTING_KINDS = ["SALE", "RENT"]

PROPERTY_TYPES = [
    "APARTMENT",
    "HOUSE",
    "STUDIO",
    "DUPLEX",
    "PENTHOUSE",
    "TOWNHOUSE",
    "ROOM",
    "OFFICE",
    "RETAIL",
    "WAREHOUSE",
    "LAND",
    "OTHER",
]
