"""
Indexador de documentos.

Mantiene un documento buscable por listing en ``listing_search_index``:
texto + filtros denormalizados + embedding opcional. Solo los listings
publicados tienen embedding; el de un borrador se fuerza a NULL.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from vitrina.analysis import EmbeddingGenerator, TextEmbedder
from vitrina.concurrency import run_blocking
from vitrina.database import ListingRepository, SearchIndexRepository
from vitrina.indexing.search_text import build_search_text
from vitrina.models import Listing, ListingDocument, VisibilityStatus

logger = structlog.get_logger()


class IndexOutcome(str, Enum):
    INDEXED = "INDEXED"
    SKIPPED_MISSING = "SKIPPED_MISSING"
    SKIPPED_NO_AGENCY = "SKIPPED_NO_AGENCY"


class EmbeddingAction(str, Enum):
    """Qué pasó con la columna embedding en la escritura."""

    STORED = "STORED"
    CLEARED = "CLEARED"
    UNCHANGED = "UNCHANGED"


class ReindexMode(str, Enum):
    ROWS = "rows"  # documento sin pedir embeddings
    FULL = "full"  # documento + embedding para publicados


@dataclass
class IndexResult:
    """Resultado de indexar un listing."""

    listing_id: str
    outcome: IndexOutcome
    embedding_action: Optional[EmbeddingAction] = None


@dataclass
class ReindexBatchResult:
    """Resultado de una página de re-indexado de una agencia."""

    agency_id: str
    mode: ReindexMode
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    next_cursor: Optional[str] = None
    has_more: bool = False


def build_document(listing: Listing) -> ListingDocument:
    """Documento sin embedding a partir del listing canónico."""
    return ListingDocument(
        listing_id=listing.id,
        agency_id=listing.agency_id,
        status=listing.visibility,
        title=listing.title,
        search_text=build_search_text(listing),
        price=listing.price,
        bedrooms=listing.bedrooms,
        bathrooms=listing.bathrooms,
        size_sqm=listing.size_sqm,
        kind=listing.kind,
        property_type=listing.property_type,
        commune=listing.commune,
        amenities=listing.amenities,
        parking_spaces=listing.parking_spaces,
        updated_at=listing.updated_at,
    )


class DocumentIndexer:
    """
    Indexa listings de forma idempotente (upsert por listing_id).

    Flujo:
    1. Leer el listing canónico (si no existe o no tiene agencia: skip)
    2. Construir texto buscable y filtros denormalizados
    3. No publicado: upsert con embedding NULL
    4. Publicado: pedir embedding best-effort y hacer un único upsert;
       si el proveedor falla, el embedding existente queda intacto
    """

    def __init__(
        self,
        listing_repo: Optional[ListingRepository] = None,
        index_repo: Optional[SearchIndexRepository] = None,
        embedder: Optional[TextEmbedder] = None,
    ):
        self.listing_repo = listing_repo or ListingRepository()
        self.index_repo = index_repo or SearchIndexRepository()
        self._embedder = embedder

    def _get_embedder(self) -> Optional[TextEmbedder]:
        # Perezoso: el modo ROWS no necesita credenciales de embeddings
        if self._embedder is None:
            try:
                self._embedder = EmbeddingGenerator()
            except ValueError as e:
                logger.warning("Embeddings no configurados, se indexa sin embedding", error=str(e))
                return None
        return self._embedder

    async def index_listing(self, listing_id: str, with_embedding: bool = True) -> IndexResult:
        """
        Indexa (o re-indexa) un listing.

        Args:
            listing_id: ID del listing canónico
            with_embedding: False para no pedir embedding (modo ROWS)

        Returns:
            IndexResult con el resultado y la acción sobre el embedding
        """
        listing = await run_blocking(self.listing_repo.get_by_id, listing_id)

        if listing is None:
            logger.warning("Listing inexistente, se omite el indexado", listing_id=listing_id)
            return IndexResult(listing_id, IndexOutcome.SKIPPED_MISSING)

        if not listing.agency_id:
            logger.warning("Listing sin agencia, se omite el indexado", listing_id=listing_id)
            return IndexResult(listing_id, IndexOutcome.SKIPPED_NO_AGENCY)

        document = build_document(listing)

        if document.status != VisibilityStatus.PUBLISHED:
            await run_blocking(self.index_repo.upsert, document, True)
            logger.info("Listing indexado sin embedding", listing_id=listing_id, status=document.status.value)
            return IndexResult(listing_id, IndexOutcome.INDEXED, EmbeddingAction.CLEARED)

        if not with_embedding:
            await run_blocking(self.index_repo.upsert, document, False)
            return IndexResult(listing_id, IndexOutcome.INDEXED, EmbeddingAction.UNCHANGED)

        embedder = self._get_embedder()
        vector = await embedder.try_embed(document.search_text) if embedder else None
        if vector is None:
            logger.warning("Embedding no disponible, se conserva el anterior", listing_id=listing_id)
            await run_blocking(self.index_repo.upsert, document, False)
            return IndexResult(listing_id, IndexOutcome.INDEXED, EmbeddingAction.UNCHANGED)

        document = document.model_copy(update={"embedding": vector})
        await run_blocking(self.index_repo.upsert, document, True)
        logger.info("Listing indexado", listing_id=listing_id)
        return IndexResult(listing_id, IndexOutcome.INDEXED, EmbeddingAction.STORED)

    async def reindex_agency(
        self,
        agency_id: str,
        mode: ReindexMode = ReindexMode.FULL,
        cursor: Optional[str] = None,
        limit: int = 200,
    ) -> ReindexBatchResult:
        """
        Re-indexa una página de listings de una agencia.

        Secuencial a propósito (rate limits del proveedor de embeddings).
        Una falla en un listing se cuenta y no corta el batch.
        """
        limit = max(1, min(500, limit))
        listing_ids = await run_blocking(
            self.listing_repo.list_ids_for_agency, agency_id, cursor, limit
        )
        result = ReindexBatchResult(agency_id=agency_id, mode=mode)

        for listing_id in listing_ids:
            result.processed += 1
            try:
                indexed = await self.index_listing(
                    listing_id, with_embedding=mode == ReindexMode.FULL
                )
            except Exception as e:
                result.failed += 1
                logger.error("Error re-indexando listing", listing_id=listing_id, error=str(e))
                continue

            if indexed.outcome == IndexOutcome.INDEXED:
                result.succeeded += 1
            else:
                result.skipped += 1

        result.has_more = len(listing_ids) == limit
        result.next_cursor = listing_ids[-1] if listing_ids and result.has_more else None

        logger.info(
            "Re-indexado de agencia completado",
            agency_id=agency_id,
            mode=mode.value,
            processed=result.processed,
            succeeded=result.succeeded,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result
