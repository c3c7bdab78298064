"""
Repositorios para operaciones en Supabase.

Cada repositorio maneja una tabla/entidad específica. Son sincrónicos (como
el cliente de Supabase); los componentes async los corren en threads.
"""

import re
from datetime import datetime
from typing import Callable, Optional

import structlog

from vitrina.database.supabase_client import get_supabase_client, SupabaseClient
from vitrina.models import (
    BuyerProfile,
    CandidateFilter,
    EligibleListing,
    EmbeddingVector,
    InteractionEvent,
    Lead,
    LeadMatch,
    Listing,
    ListingDocument,
    PopularityBadge,
    PopularityRecord,
    PromotionBoost,
    SearchFilters,
    SortMode,
)

logger = structlog.get_logger()

# Columnas del índice sin el embedding (hidratación y filtros)
_DOCUMENT_COLUMNS = (
    "listing_id, agency_id, status, title, search_text, price, bedrooms, bathrooms, "
    "size_sqm, kind, property_type, commune, amenities, parking_spaces, updated_at"
)

_SORT_COLUMNS: dict[SortMode, tuple[str, bool]] = {
    SortMode.RECOMMENDED: ("updated_at", True),
    SortMode.NEWEST: ("updated_at", True),
    SortMode.PRICE_LOW: ("price", False),
    SortMode.PRICE_HIGH: ("price", True),
}


def _apply_search_filters(query, filters: SearchFilters):
    """Aplica los filtros públicos sobre una query de tabla."""
    if filters.commune:
        query = query.ilike("commune", filters.commune)
    if filters.kind:
        query = query.eq("kind", filters.kind)
    if filters.property_type:
        query = query.eq("property_type", filters.property_type)
    if filters.bedrooms_min is not None:
        query = query.gte("bedrooms", filters.bedrooms_min)
    if filters.min_price is not None:
        query = query.gte("price", filters.min_price)
    if filters.max_price is not None:
        query = query.lte("price", filters.max_price)
    if filters.min_size is not None:
        query = query.gte("size_sqm", filters.min_size)
    if filters.max_size is not None:
        query = query.lte("size_sqm", filters.max_size)
    return query


def _rpc_filter_params(filters: SearchFilters, listing_ids: Optional[list[str]]) -> dict:
    return {
        "p_commune": filters.commune,
        "p_kind": filters.kind,
        "p_property_type": filters.property_type,
        "p_bedrooms_min": filters.bedrooms_min,
        "p_min_price": filters.min_price,
        "p_max_price": filters.max_price,
        "p_min_size": filters.min_size,
        "p_max_size": filters.max_size,
        "p_listing_ids": listing_ids,
    }


def _sanitize_pattern(text: str) -> str:
    """Quita caracteres con significado en filtros ``or`` de PostgREST."""
    return re.sub(r"[,()%*\\]", " ", text).strip()


# PostgREST corta cada respuesta en max_rows (1000 por defecto en Supabase)
PAGE_SIZE = 1000
# Ids por request en filtros ``in``: la lista viaja en la URL
IN_CHUNK_SIZE = 200


def fetch_all_rows(build_query: Callable, page_size: int = PAGE_SIZE) -> list[dict]:
    """
    Lee todas las filas de una query paginando con ``range``.

    ``build_query`` arma la query desde cero en cada página y debe fijar un
    orden total (p.ej. por id); sin eso las páginas pueden solaparse.
    Termina con la primera página incompleta.
    """
    rows: list[dict] = []
    start = 0
    while True:
        response = build_query().range(start, start + page_size - 1).execute()
        page = response.data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size


def chunked(items: list, size: int = IN_CHUNK_SIZE):
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _commune_filter(communes: list[str]) -> str:
    """Filtro ``or`` de comunas sin distinguir mayúsculas."""
    patterns = (_sanitize_pattern(c).replace('"', "") for c in communes)
    return ",".join(f'commune.ilike."{p}"' for p in patterns if p)


class BaseRepository:
    """Clase base para repositorios."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or get_supabase_client()

    @property
    def client(self) -> SupabaseClient:
        return self._client


class ListingRepository(BaseRepository):
    """Listings canónicos (solo lectura: el CRUD vive fuera del motor)."""

    TABLE = "listings"

    def get_by_id(self, listing_id: str) -> Optional[Listing]:
        """Obtiene un listing por su ID."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", listing_id)
            .limit(1)
            .execute()
        )
        return Listing.model_validate(response.data[0]) if response.data else None

    def list_ids_for_agency(
        self, agency_id: str, after: Optional[str] = None, limit: int = 200
    ) -> list[str]:
        """IDs de listings de una agencia, paginados por cursor (id ascendente)."""
        query = self.client.table(self.TABLE).select("id").eq("agency_id", agency_id)
        if after:
            query = query.gt("id", after)
        response = query.order("id").limit(limit).execute()
        return [row["id"] for row in response.data]

    def list_eligible(self) -> list[EligibleListing]:
        """Listings publicados y activos (candidatos a popularidad)."""
        rows = fetch_all_rows(
            lambda: self.client.table(self.TABLE)
            .select("id, created_at, kind, property_type, commune")
            .eq("is_published", True)
            .eq("status", "ACTIVE")
            .order("id")
        )
        return [
            EligibleListing(
                listing_id=row["id"],
                created_at=row["created_at"],
                kind=row.get("kind"),
                property_type=row.get("property_type"),
                commune=row.get("commune"),
            )
            for row in rows
        ]

    def substring_search(
        self,
        query_text: str,
        filters: SearchFilters,
        sort: SortMode,
        offset: int,
        limit: int,
        listing_ids: Optional[list[str]] = None,
    ) -> list[Listing]:
        """
        Búsqueda por substring en título, comuna y descripción.

        Es el último recurso cuando la recuperación híbrida no devuelve nada.
        """
        pattern = _sanitize_pattern(query_text)
        query = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("is_published", True)
            .eq("status", "ACTIVE")
        )
        if pattern:
            query = query.or_(
                f"title.ilike.%{pattern}%,commune.ilike.%{pattern}%,description.ilike.%{pattern}%"
            )
        query = _apply_search_filters(query, filters)
        if listing_ids is not None:
            query = query.in_("id", listing_ids)

        column, desc = _SORT_COLUMNS[sort]
        response = (
            query.order(column, desc=desc)
            .order("id")
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [Listing.model_validate(row) for row in response.data]


class SearchIndexRepository(BaseRepository):
    """Documentos buscables (tabla ``listing_search_index``)."""

    TABLE = "listing_search_index"

    def upsert(self, document: ListingDocument, include_embedding: bool = True) -> None:
        """
        Inserta o actualiza el documento en una sola escritura (idempotente).

        Con ``include_embedding=False`` se preserva el embedding existente.
        """
        data = document.to_db_dict(include_embedding=include_embedding)
        self.client.table(self.TABLE).upsert(data, on_conflict="listing_id").execute()
        logger.debug(
            "Documento indexado",
            listing_id=document.listing_id,
            status=document.status.value,
            embedding_written=include_embedding,
        )

    def get_by_id(self, listing_id: str) -> Optional[ListingDocument]:
        """Obtiene el documento completo (incluye embedding)."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("listing_id", listing_id)
            .limit(1)
            .execute()
        )
        return ListingDocument.model_validate(response.data[0]) if response.data else None

    def get_many(self, listing_ids: list[str]) -> list[ListingDocument]:
        """Documentos (sin embedding) para hidratar una página."""
        if not listing_ids:
            return []
        response = (
            self.client.table(self.TABLE)
            .select(_DOCUMENT_COLUMNS)
            .in_("listing_id", listing_ids)
            .execute()
        )
        return [ListingDocument.model_validate(row) for row in response.data]

    def find_candidates(self, candidate_filter: CandidateFilter, limit: int) -> list[ListingDocument]:
        """Documentos que cumplen todas las restricciones duras de un nivel."""
        f = candidate_filter
        query = (
            self.client.table(self.TABLE)
            .select(_DOCUMENT_COLUMNS)
            .eq("agency_id", f.agency_id)
            .eq("status", f.status)
        )
        if f.kind:
            query = query.eq("kind", f.kind)
        if f.property_type:
            query = query.eq("property_type", f.property_type)
        if f.price_min is not None:
            query = query.gte("price", f.price_min)
        if f.price_max is not None:
            query = query.lte("price", f.price_max)
        if f.size_min is not None:
            query = query.gte("size_sqm", f.size_min)
        if f.size_max is not None:
            query = query.lte("size_sqm", f.size_max)
        if f.bedrooms_min is not None:
            query = query.gte("bedrooms", f.bedrooms_min)
        if f.bathrooms_min is not None:
            query = query.gte("bathrooms", f.bathrooms_min)
        commune_filter = _commune_filter(f.communes)
        if commune_filter:
            query = query.or_(commune_filter)

        response = query.order("listing_id").limit(limit).execute()
        return [ListingDocument.model_validate(row) for row in response.data]

    def find_documents(
        self,
        filters: SearchFilters,
        sort: SortMode,
        offset: int,
        limit: int,
        listing_ids: Optional[list[str]] = None,
    ) -> list[ListingDocument]:
        """Documentos publicados filtrados, ordenados por un solo atributo."""
        query = (
            self.client.table(self.TABLE)
            .select(_DOCUMENT_COLUMNS)
            .eq("status", "PUBLISHED")
        )
        query = _apply_search_filters(query, filters)
        if listing_ids is not None:
            query = query.in_("listing_id", listing_ids)

        column, desc = _SORT_COLUMNS[sort]
        response = (
            query.order(column, desc=desc)
            .order("listing_id")
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [ListingDocument.model_validate(row) for row in response.data]

    def text_rank(
        self,
        query_text: str,
        filters: SearchFilters,
        limit: int,
        listing_ids: Optional[list[str]] = None,
    ) -> dict[str, float]:
        """Top-N por relevancia full-text (ts_rank_cd). ``listing_id -> rank``."""
        rows = self.client.execute_rpc(
            "search_listing_text",
            {"p_query": query_text, "p_match_count": limit, **_rpc_filter_params(filters, listing_ids)},
        )
        return {row["listing_id"]: float(row["text_rank"] or 0.0) for row in rows}

    def vector_rank(
        self,
        embedding: EmbeddingVector,
        filters: SearchFilters,
        limit: int,
        listing_ids: Optional[list[str]] = None,
    ) -> dict[str, float]:
        """Top-N por distancia L2 al vector. ``listing_id -> distancia``."""
        rows = self.client.execute_rpc(
            "search_listing_vector",
            {
                "p_query_embedding": embedding.to_pgvector(),
                "p_match_count": limit,
                **_rpc_filter_params(filters, listing_ids),
            },
        )
        return {row["listing_id"]: float(row["distance"]) for row in rows}

    def embedding_distances(
        self, embedding: EmbeddingVector, listing_ids: list[str]
    ) -> dict[str, float]:
        """Distancia coseno restringida a ``listing_ids`` (con embedding)."""
        if not listing_ids:
            return {}
        rows = self.client.execute_rpc(
            "listing_embedding_distances",
            {"p_query_embedding": embedding.to_pgvector(), "p_listing_ids": listing_ids},
        )
        return {row["listing_id"]: float(row["distance"]) for row in rows}


class PopularityRepository(BaseRepository):
    """Popularidad derivada (tabla ``listing_popularity``)."""

    TABLE = "listing_popularity"

    def clear_ineligible(self, eligible_ids: list[str]) -> int:
        """Resetea badge y scores de listings que dejaron de ser elegibles."""
        eligible = set(eligible_ids)
        rows = fetch_all_rows(
            lambda: self.client.table(self.TABLE)
            .select("listing_id")
            .neq("badge", PopularityBadge.NONE.value)
            .order("listing_id")
        )
        stale = [row["listing_id"] for row in rows if row["listing_id"] not in eligible]

        for chunk in chunked(stale):
            self.client.table(self.TABLE).update(
                {"badge": PopularityBadge.NONE.value, "score_7d": 0, "saves_7d": 0, "views_7d": 0}
            ).in_("listing_id", chunk).execute()

        if stale:
            logger.info("Badges de listings no elegibles limpiados", cleared=len(stale))
        return len(stale)

    def upsert_many(self, records: list[PopularityRecord]) -> None:
        """Upsert masivo por listing_id."""
        if not records:
            return
        self.client.table(self.TABLE).upsert(
            [r.to_db_dict() for r in records], on_conflict="listing_id"
        ).execute()

    def get_many(self, listing_ids: list[str]) -> dict[str, PopularityRecord]:
        if not listing_ids:
            return {}
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .in_("listing_id", listing_ids)
            .execute()
        )
        return {row["listing_id"]: PopularityRecord.from_db(row) for row in response.data}

    def ids_with_badge(self, badge: PopularityBadge) -> list[str]:
        rows = fetch_all_rows(
            lambda: self.client.table(self.TABLE)
            .select("listing_id")
            .eq("badge", badge.value)
            .order("listing_id")
        )
        return [row["listing_id"] for row in rows]


class InteractionRepository(BaseRepository):
    """Eventos de interacción: guardados (wishlist) y vistas."""

    SAVES_TABLE = "wishlist_items"
    VIEWS_TABLE = "listing_view_events"

    def _events_since(self, table: str, since: datetime) -> list[InteractionEvent]:
        rows = fetch_all_rows(
            lambda: self.client.table(table)
            .select("listing_id, created_at")
            .gte("created_at", since.isoformat())
            .order("id")
        )
        return [InteractionEvent.model_validate(row) for row in rows]

    def saves_since(self, since: datetime) -> list[InteractionEvent]:
        return self._events_since(self.SAVES_TABLE, since)

    def views_since(self, since: datetime) -> list[InteractionEvent]:
        return self._events_since(self.VIEWS_TABLE, since)

    def count_saves_since(self, listing_ids: list[str], since: datetime) -> dict[str, int]:
        """Guardados recientes por listing."""
        if not listing_ids:
            return {}
        rows = fetch_all_rows(
            lambda: self.client.table(self.SAVES_TABLE)
            .select("listing_id")
            .in_("listing_id", listing_ids)
            .gte("created_at", since.isoformat())
            .order("id")
        )
        counts: dict[str, int] = {}
        for row in rows:
            counts[row["listing_id"]] = counts.get(row["listing_id"], 0) + 1
        return counts

    def saved_listing_ids(self, user_id: str, listing_ids: list[str]) -> set[str]:
        """Cuáles de ``listing_ids`` guardó el usuario."""
        if not listing_ids:
            return set()
        response = (
            self.client.table(self.SAVES_TABLE)
            .select("listing_id")
            .eq("user_id", user_id)
            .in_("listing_id", listing_ids)
            .execute()
        )
        return {row["listing_id"] for row in response.data}


class BoostRepository(BaseRepository):
    """Boosts promocionales (solo lectura: el ciclo de vida es externo)."""

    TABLE = "listing_boosts"

    def get_many(self, listing_ids: list[str]) -> dict[str, PromotionBoost]:
        """Boosts de los listings dados (activos o no)."""
        if not listing_ids:
            return {}
        response = (
            self.client.table(self.TABLE)
            .select("listing_id, level, starts_at, ends_at")
            .in_("listing_id", listing_ids)
            .execute()
        )
        return {row["listing_id"]: PromotionBoost.model_validate(row) for row in response.data}


class LeadRepository(BaseRepository):
    """Leads con su perfil de comprador."""

    TABLE = "leads"

    def get_with_profile(self, lead_id: str) -> Optional[Lead]:
        response = (
            self.client.table(self.TABLE)
            .select("id, agency_id, buyer_profiles(*)")
            .eq("id", lead_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None

        row = response.data[0]
        profile_row = row.get("buyer_profiles")
        # PostgREST devuelve lista u objeto según la cardinalidad de la relación
        if isinstance(profile_row, list):
            profile_row = profile_row[0] if profile_row else None

        return Lead(
            id=row["id"],
            agency_id=row.get("agency_id"),
            buyer_profile=BuyerProfile.from_db(profile_row) if profile_row else None,
        )


class LeadMatchRepository(BaseRepository):
    """Matches persistidos (tabla ``lead_matches``)."""

    TABLE = "lead_matches"

    def replace_for_lead(self, lead_id: str, matches: list[LeadMatch]) -> None:
        """Borra todos los matches del lead e inserta los nuevos (una transacción)."""
        self.client.execute_rpc(
            "replace_lead_matches",
            {"p_lead_id": lead_id, "p_rows": [m.to_db_dict() for m in matches]},
        )
        logger.info("Matches reemplazados", lead_id=lead_id, matches=len(matches))
