"""
Módulo de base de datos.

Provee acceso a Supabase (Postgres + pgvector) y un repositorio por tabla.
"""

from vitrina.database.supabase_client import get_supabase_client, SupabaseClient
from vitrina.database.repositories import (
    BoostRepository,
    InteractionRepository,
    LeadMatchRepository,
    LeadRepository,
    ListingRepository,
    PopularityRepository,
    SearchIndexRepository,
)

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "BoostRepository",
    "InteractionRepository",
    "LeadMatchRepository",
    "LeadRepository",
    "ListingRepository",
    "PopularityRepository",
    "SearchIndexRepository",
]
