"""
Script para indexar listings en el índice de búsqueda.

Uso:
    python -m vitrina.scripts.run_indexer --listing-id <uuid>
    python -m vitrina.scripts.run_indexer --agency-id <uuid> --mode full
    python -m vitrina.scripts.run_indexer --agency-id <uuid> --mode rows --limit 500 --all
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from vitrina.config import get_settings
from vitrina.indexing import DocumentIndexer, IndexOutcome, ReindexMode
from vitrina.logging_config import configure_logging

logger = structlog.get_logger()


async def run_indexer(
    listing_id: Optional[str] = None,
    agency_id: Optional[str] = None,
    mode: ReindexMode = ReindexMode.FULL,
    cursor: Optional[str] = None,
    limit: int = 200,
    all_pages: bool = False,
) -> dict:
    """
    Indexa un listing o re-indexa una agencia.

    Args:
        listing_id: Listing puntual a indexar
        agency_id: Agencia a re-indexar (paginado por cursor)
        mode: ROWS (sin embeddings) o FULL
        cursor: ID desde el cual continuar
        limit: Tamaño de página (1-500)
        all_pages: Seguir paginando hasta el final

    Returns:
        Estadísticas del procesamiento
    """
    indexer = DocumentIndexer()

    if listing_id:
        result = await indexer.index_listing(listing_id)
        return {
            "processed": 1,
            "succeeded": int(result.outcome == IndexOutcome.INDEXED),
            "skipped": int(result.outcome != IndexOutcome.INDEXED),
            "failed": 0,
            "next_cursor": None,
        }

    stats = {"processed": 0, "succeeded": 0, "skipped": 0, "failed": 0, "next_cursor": cursor}
    while True:
        batch = await indexer.reindex_agency(
            agency_id, mode=mode, cursor=stats["next_cursor"], limit=limit
        )
        stats["processed"] += batch.processed
        stats["succeeded"] += batch.succeeded
        stats["skipped"] += batch.skipped
        stats["failed"] += batch.failed
        stats["next_cursor"] = batch.next_cursor

        if not (all_pages and batch.has_more):
            break

    return stats


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Indexador de listings para búsqueda")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--listing-id", type=str, help="Listing a indexar")
    target.add_argument("--agency-id", type=str, help="Agencia a re-indexar")
    parser.add_argument(
        "--mode",
        type=str,
        default=ReindexMode.FULL.value,
        choices=[m.value for m in ReindexMode],
        help="rows: solo documento; full: documento + embedding",
    )
    parser.add_argument("--cursor", type=str, default=None, help="ID desde el cual continuar")
    parser.add_argument("--limit", type=int, default=200, help="Listings por página (1-500)")
    parser.add_argument("--all", action="store_true", help="Procesar todas las páginas")

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    try:
        stats = asyncio.run(
            run_indexer(
                listing_id=args.listing_id,
                agency_id=args.agency_id,
                mode=ReindexMode(args.mode),
                cursor=args.cursor,
                limit=args.limit,
                all_pages=args.all,
            )
        )
        logger.info("Indexado completado", **stats)
        sys.exit(0 if stats["failed"] == 0 else 1)

    except KeyboardInterrupt:
        logger.info("Indexado interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en indexado", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
