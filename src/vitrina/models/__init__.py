"""
Modelos de datos del sistema.

- Fuente: Listing (CRUD externo), BuyerProfile, PromotionBoost
- Vistas derivadas: ListingDocument, PopularityRecord, LeadMatch
"""

from vitrina.models.embedding import EmbeddingVector
from vitrina.models.listing import Amenity, Listing, ListingDocument, VisibilityStatus
from vitrina.models.popularity import (
    EligibleListing,
    InteractionEvent,
    PopularityBadge,
    PopularityRecord,
    PopularityRunResult,
    segment_key,
)
from vitrina.models.boost import BoostLevel, PromotionBoost
from vitrina.models.buyer import BuyerProfile, Lead
from vitrina.models.match import (
    CandidateFilter,
    LeadMatch,
    MatchOutcome,
    MatchReasons,
    MatchRunResult,
    MatchWeights,
    RelaxationLevel,
    StructuredScore,
)
from vitrina.models.search import (
    RankingMode,
    SearchFilters,
    SearchItem,
    SearchRequest,
    SearchResponse,
    SortMode,
)

__all__ = [
    # Embeddings
    "EmbeddingVector",
    # Listings
    "Amenity",
    "Listing",
    "ListingDocument",
    "VisibilityStatus",
    # Popularidad
    "EligibleListing",
    "InteractionEvent",
    "PopularityBadge",
    "PopularityRecord",
    "PopularityRunResult",
    "segment_key",
    # Boosts
    "BoostLevel",
    "PromotionBoost",
    # Compradores
    "BuyerProfile",
    "Lead",
    # Matching
    "CandidateFilter",
    "LeadMatch",
    "MatchOutcome",
    "MatchReasons",
    "MatchRunResult",
    "MatchWeights",
    "RelaxationLevel",
    "StructuredScore",
    # Búsqueda
    "RankingMode",
    "SearchFilters",
    "SearchItem",
    "SearchRequest",
    "SearchResponse",
    "SortMode",
]
