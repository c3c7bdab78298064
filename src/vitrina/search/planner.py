"""
Planificador de búsqueda híbrida.

Con query: recupera top-N por relevancia full-text y por distancia vectorial
(en paralelo), une ambos conjuntos y rankea mezclando texto, semántica,
popularidad, guardados recientes y boost. Sin query: browse "recommended"
con una cadena de desempate determinística, o un orden por atributo.

Ninguna falla de una sub-query de ranking llega al caller: se degrada a un
orden más simple y la respuesta lo informa (``mode`` + ``degraded``).
"""

import asyncio
import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import structlog

from vitrina.analysis import EmbeddingGenerator, TextEmbedder
from vitrina.concurrency import best_effort, run_blocking
from vitrina.config import RankingTuning, get_settings
from vitrina.database import (
    BoostRepository,
    InteractionRepository,
    ListingRepository,
    PopularityRepository,
    SearchIndexRepository,
)
from vitrina.errors import InvalidSearchRequestError
from vitrina.models import (
    BoostLevel,
    ListingDocument,
    PopularityBadge,
    PopularityRecord,
    PromotionBoost,
    RankingMode,
    SearchFilters,
    SearchItem,
    SearchRequest,
    SearchResponse,
    SortMode,
)

logger = structlog.get_logger()


def semantic_similarity(distance: Optional[float]) -> float:
    """``1 / (1 + distancia)``; 0 si el candidato no vino por vector."""
    if distance is None:
        return 0.0
    return 1.0 / (1.0 + max(0.0, distance))


def saturating(value: float, saturation: float) -> float:
    """``1 - exp(-x / K)``: crece rápido al principio y se aplana en 1."""
    return 1.0 - math.exp(-max(0.0, value) / saturation)


def boost_scalar(boost: Optional[PromotionBoost], now: datetime, tuning: RankingTuning) -> float:
    """Escalar del boost (0 sin boost activo)."""
    if boost is None or not boost.is_active(now):
        return 0.0
    scalars = {
        BoostLevel.BASIC: tuning.boost_basic,
        BoostLevel.PREMIUM: tuning.boost_premium,
        BoostLevel.PLATINUM: tuning.boost_platinum,
    }
    return scalars[boost.level]


def blend_score(
    text_rank: float,
    distance: Optional[float],
    decayed_popularity: float,
    recent_saves: int,
    boost: Optional[PromotionBoost],
    now: datetime,
    tuning: RankingTuning,
) -> float:
    """Score híbrido de un candidato."""
    return (
        tuning.text_weight * text_rank
        + tuning.semantic_weight * semantic_similarity(distance)
        + tuning.popularity_weight * saturating(decayed_popularity, tuning.popularity_saturation)
        + tuning.saves_weight * saturating(recent_saves, tuning.saves_saturation)
        + tuning.boost_weight * boost_scalar(boost, now, tuning)
    )


def recommended_sort_key(
    document: ListingDocument,
    popularity: Optional[PopularityRecord],
    boost: Optional[PromotionBoost],
    now: datetime,
) -> tuple:
    """
    Clave del browse "recommended".

    Boost activo, nivel del boost, popularidad con decaimiento, guardados
    de 7 días, recencia y por último el ID (orden total).
    """
    active = boost is not None and boost.is_active(now)
    return (
        0 if active else 1,
        -(boost.level_rank if active else 0),
        -(popularity.decayed_score_7d if popularity else 0.0),
        -(popularity.saves_7d if popularity else 0),
        -document.updated_at.timestamp(),
        document.listing_id,
    )


def clamp_page(limit: Optional[int], offset: int, tuning: RankingTuning) -> tuple[int, int]:
    limit = tuning.default_page_size if limit is None else limit
    limit = max(1, min(tuning.max_page_size, limit))
    offset = max(0, min(tuning.max_offset, offset or 0))
    return limit, offset


def validate_filters(filters: SearchFilters) -> None:
    """Rangos invertidos son input malformado, no un resultado vacío."""
    if (
        filters.min_price is not None
        and filters.max_price is not None
        and filters.min_price > filters.max_price
    ):
        raise InvalidSearchRequestError("min_price mayor que max_price")
    if (
        filters.min_size is not None
        and filters.max_size is not None
        and filters.min_size > filters.max_size
    ):
        raise InvalidSearchRequestError("min_size mayor que max_size")


def to_item(
    listing_id: str,
    source,
    rank_score: Optional[float],
    popularity: Optional[PopularityRecord],
    boost: Optional[PromotionBoost],
    saved: set[str],
    now: datetime,
) -> SearchItem:
    """Item de respuesta desde un documento o un listing canónico."""
    return SearchItem(
        listing_id=listing_id,
        rank_score=rank_score,
        title=source.title or "",
        commune=source.commune,
        price=source.price,
        bedrooms=source.bedrooms,
        bathrooms=source.bathrooms,
        size_sqm=source.size_sqm,
        kind=source.kind,
        property_type=source.property_type,
        popularity_badge=popularity.badge if popularity else PopularityBadge.NONE,
        is_boosted=boost is not None and boost.is_active(now),
        is_saved=listing_id in saved,
    )


class HybridQueryPlanner:
    """
    Responde búsquedas y browse públicos.

    Las sub-queries independientes (texto, vector, popularidad, guardados,
    boosts, flags del viewer) se lanzan en paralelo y cada una está acotada
    por ``query_timeout``; si una falla su señal se toma como ausente.
    """

    def __init__(
        self,
        index_repo: Optional[SearchIndexRepository] = None,
        listing_repo: Optional[ListingRepository] = None,
        popularity_repo: Optional[PopularityRepository] = None,
        interaction_repo: Optional[InteractionRepository] = None,
        boost_repo: Optional[BoostRepository] = None,
        embedder: Optional[TextEmbedder] = None,
        tuning: Optional[RankingTuning] = None,
        query_timeout: Optional[float] = None,
    ):
        settings = get_settings() if tuning is None or query_timeout is None else None
        self.index_repo = index_repo or SearchIndexRepository()
        self.listing_repo = listing_repo or ListingRepository()
        self.popularity_repo = popularity_repo or PopularityRepository()
        self.interaction_repo = interaction_repo or InteractionRepository()
        self.boost_repo = boost_repo or BoostRepository()
        self.tuning = tuning or settings.ranking
        self.query_timeout = query_timeout or settings.query_timeout_seconds
        self._embedder = embedder

    def _get_embedder(self) -> Optional[TextEmbedder]:
        if self._embedder is None:
            try:
                self._embedder = EmbeddingGenerator()
            except ValueError as e:
                logger.warning("Embeddings no configurados, búsqueda solo texto", error=str(e))
                return None
        return self._embedder

    async def search(self, request: SearchRequest, now: Optional[datetime] = None) -> SearchResponse:
        """
        Ejecuta una búsqueda o browse.

        Raises:
            InvalidSearchRequestError: Si los filtros son inconsistentes
        """
        validate_filters(request.filters)
        now = now or datetime.now(timezone.utc)
        limit, offset = clamp_page(request.limit, request.offset, self.tuning)

        query = request.query
        if query and len(query) < self.tuning.min_query_length:
            query = None

        listing_ids: Optional[list[str]] = None
        if request.filters.badge is not None:
            listing_ids = await run_blocking(
                self.popularity_repo.ids_with_badge, request.filters.badge
            )
            if not listing_ids:
                mode = RankingMode.HYBRID if query else self._browse_mode(request.sort)
                return self._page([], offset, limit, mode, degraded=False)

        if query:
            return await self._search_query(query, request, listing_ids, limit, offset, now)
        if request.sort == SortMode.RECOMMENDED:
            return await self._browse_recommended(request, listing_ids, limit, offset, now)
        return await self._browse_attribute(request, listing_ids, limit, offset, now)

    @staticmethod
    def _browse_mode(sort: SortMode) -> RankingMode:
        return RankingMode.RECOMMENDED if sort == SortMode.RECOMMENDED else RankingMode.ATTRIBUTE

    def _page(
        self,
        items: list[SearchItem],
        offset: int,
        limit: int,
        mode: RankingMode,
        degraded: bool,
        has_more: Optional[bool] = None,
    ) -> SearchResponse:
        return SearchResponse(
            items=items,
            next_cursor=offset + limit,
            has_more=len(items) == limit if has_more is None else has_more,
            mode=mode,
            degraded=degraded,
        )

    async def _signals(
        self, listing_ids: Sequence[str], now: datetime
    ) -> tuple[Optional[dict], Optional[dict], Optional[dict]]:
        """Popularidad, guardados recientes y boosts (None = señal caída)."""
        since = now - timedelta(days=self.tuning.recent_saves_days)
        ids = list(listing_ids)
        return await asyncio.gather(
            best_effort(
                "popularity", self.popularity_repo.get_many, ids, timeout=self.query_timeout
            ),
            best_effort(
                "recent_saves",
                self.interaction_repo.count_saves_since,
                ids,
                since,
                timeout=self.query_timeout,
            ),
            best_effort("boosts", self.boost_repo.get_many, ids, timeout=self.query_timeout),
        )

    async def _saved_by_viewer(self, viewer_id: Optional[str], listing_ids: list[str]) -> set[str]:
        if not viewer_id or not listing_ids:
            return set()
        saved = await best_effort(
            "viewer_saves",
            self.interaction_repo.saved_listing_ids,
            viewer_id,
            listing_ids,
            timeout=self.query_timeout,
        )
        return saved or set()

    async def _search_query(
        self,
        query: str,
        request: SearchRequest,
        listing_ids: Optional[list[str]],
        limit: int,
        offset: int,
        now: datetime,
    ) -> SearchResponse:
        filters = request.filters
        embedder = self._get_embedder()
        embedding = await embedder.try_embed(query) if embedder else None

        text_task = best_effort(
            "text_rank",
            self.index_repo.text_rank,
            query,
            filters,
            self.tuning.candidate_limit,
            listing_ids,
            timeout=self.query_timeout,
        )
        if embedding is not None:
            vector_task = best_effort(
                "vector_rank",
                self.index_repo.vector_rank,
                embedding,
                filters,
                self.tuning.candidate_limit,
                listing_ids,
                timeout=self.query_timeout,
            )
            text_ranks, distances = await asyncio.gather(text_task, vector_task)
        else:
            text_ranks, distances = await text_task, None

        retrieval_failed = text_ranks is None or (embedding is not None and distances is None)
        text_ranks = text_ranks or {}
        distances = distances or {}
        candidate_ids = sorted(set(text_ranks) | set(distances))

        if not candidate_ids:
            return await self._substring_fallback(
                query, request, listing_ids, limit, offset, now, retrieval_failed
            )

        popularity, saves, boosts = await self._signals(candidate_ids, now)
        signals_failed = popularity is None or saves is None or boosts is None
        popularity, saves, boosts = popularity or {}, saves or {}, boosts or {}

        scored = sorted(
            (
                (
                    blend_score(
                        text_ranks.get(listing_id, 0.0),
                        distances.get(listing_id),
                        popularity[listing_id].decayed_score_7d if listing_id in popularity else 0.0,
                        saves.get(listing_id, 0),
                        boosts.get(listing_id),
                        now,
                        self.tuning,
                    ),
                    listing_id,
                )
                for listing_id in candidate_ids
            ),
            key=lambda pair: (-pair[0], pair[1]),
        )
        page = scored[offset : offset + limit]
        page_ids = [listing_id for _, listing_id in page]

        documents, saved = await asyncio.gather(
            run_blocking(self.index_repo.get_many, page_ids),
            self._saved_by_viewer(request.viewer_id, page_ids),
        )
        by_id = {doc.listing_id: doc for doc in documents}

        items = [
            to_item(
                listing_id,
                by_id[listing_id],
                score,
                popularity.get(listing_id),
                boosts.get(listing_id),
                saved,
                now,
            )
            for score, listing_id in page
            if listing_id in by_id
        ]

        mode = RankingMode.HYBRID if distances else RankingMode.TEXT_ONLY
        degraded = embedding is None or retrieval_failed or signals_failed
        if degraded:
            logger.warning(
                "Búsqueda con ranking degradado",
                mode=mode.value,
                embedding=embedding is not None,
                retrieval_failed=retrieval_failed,
                signals_failed=signals_failed,
            )
        # Un documento que desaparece al hidratar no corta la paginación
        has_more = len(scored) > offset + limit
        return self._page(items, offset, limit, mode, degraded, has_more=has_more)

    async def _substring_fallback(
        self,
        query: str,
        request: SearchRequest,
        listing_ids: Optional[list[str]],
        limit: int,
        offset: int,
        now: datetime,
        retrieval_failed: bool,
    ) -> SearchResponse:
        """Último recurso: substring en título, comuna y descripción."""
        sort = SortMode.NEWEST if request.sort == SortMode.RECOMMENDED else request.sort
        listings = await run_blocking(
            self.listing_repo.substring_search,
            query,
            request.filters,
            sort,
            offset,
            limit,
            listing_ids,
        )
        ids = [listing.id for listing in listings]
        (popularity, _, boosts), saved = await asyncio.gather(
            self._signals(ids, now), self._saved_by_viewer(request.viewer_id, ids)
        )
        popularity, boosts = popularity or {}, boosts or {}

        items = [
            to_item(
                listing.id,
                listing,
                None,
                popularity.get(listing.id),
                boosts.get(listing.id),
                saved,
                now,
            )
            for listing in listings
        ]
        degraded = retrieval_failed or bool(items)
        if items:
            logger.warning("Recuperación híbrida vacía, se usó búsqueda por substring", query=query)
        return self._page(items, offset, limit, RankingMode.SUBSTRING_FALLBACK, degraded)

    async def _browse_recommended(
        self,
        request: SearchRequest,
        listing_ids: Optional[list[str]],
        limit: int,
        offset: int,
        now: datetime,
    ) -> SearchResponse:
        # El pool ya viene por recencia: es el orden de fallback
        pool = await run_blocking(
            self.index_repo.find_documents,
            request.filters,
            SortMode.NEWEST,
            0,
            self.tuning.browse_pool_limit,
            listing_ids,
        )
        pool_ids = [doc.listing_id for doc in pool]
        popularity, _, boosts = await self._signals(pool_ids, now)

        if popularity is None or boosts is None:
            logger.warning("Señales de ranking caídas, browse por recencia")
            ordered = pool
            mode, degraded = RankingMode.RECOMMENDED_FALLBACK, True
            popularity, boosts = popularity or {}, boosts or {}
        else:
            ordered = sorted(
                pool,
                key=lambda doc: recommended_sort_key(
                    doc, popularity.get(doc.listing_id), boosts.get(doc.listing_id), now
                ),
            )
            mode, degraded = RankingMode.RECOMMENDED, False

        page = ordered[offset : offset + limit]
        saved = await self._saved_by_viewer(request.viewer_id, [doc.listing_id for doc in page])
        items = [
            to_item(
                doc.listing_id,
                doc,
                None,
                popularity.get(doc.listing_id),
                boosts.get(doc.listing_id),
                saved,
                now,
            )
            for doc in page
        ]
        return self._page(items, offset, limit, mode, degraded)

    async def _browse_attribute(
        self,
        request: SearchRequest,
        listing_ids: Optional[list[str]],
        limit: int,
        offset: int,
        now: datetime,
    ) -> SearchResponse:
        documents = await run_blocking(
            self.index_repo.find_documents,
            request.filters,
            request.sort,
            offset,
            limit,
            listing_ids,
        )
        ids = [doc.listing_id for doc in documents]
        (popularity, _, boosts), saved = await asyncio.gather(
            self._signals(ids, now), self._saved_by_viewer(request.viewer_id, ids)
        )
        popularity, boosts = popularity or {}, boosts or {}

        items = [
            to_item(
                doc.listing_id,
                doc,
                None,
                popularity.get(doc.listing_id),
                boosts.get(doc.listing_id),
                saved,
                now,
            )
            for doc in documents
        ]
        return self._page(items, offset, limit, RankingMode.ATTRIBUTE, degraded=False)
