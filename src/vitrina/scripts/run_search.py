"""
Script para probar el buscador público desde la terminal.

Imprime la respuesta como JSON.

Uso:
    python -m vitrina.scripts.run_search --query "balcón luminoso"
    python -m vitrina.scripts.run_search --commune Luxembourg --kind RENT --sort price_low
    python -m vitrina.scripts.run_search --badge TRENDING --limit 12
"""

import argparse
import asyncio
import sys

import structlog

from vitrina.config import LISTING_KINDS, PROPERTY_TYPES, get_settings
from vitrina.errors import InvalidSearchRequestError
from vitrina.logging_config import configure_logging
from vitrina.models import PopularityBadge, SearchFilters, SearchRequest, SortMode
from vitrina.search import HybridQueryPlanner

logger = structlog.get_logger()


def build_request(args: argparse.Namespace) -> SearchRequest:
    return SearchRequest(
        query=args.query,
        filters=SearchFilters(
            commune=args.commune,
            kind=args.kind,
            property_type=args.property_type,
            bedrooms_min=args.bedrooms_min,
            min_price=args.min_price,
            max_price=args.max_price,
            min_size=args.min_size,
            max_size=args.max_size,
            badge=PopularityBadge(args.badge) if args.badge else None,
        ),
        sort=SortMode(args.sort),
        limit=args.limit,
        offset=args.offset,
        viewer_id=args.viewer_id,
    )


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Búsqueda híbrida de listings")
    parser.add_argument("--query", type=str, default=None, help="Texto libre")
    parser.add_argument("--commune", type=str, default=None)
    parser.add_argument("--kind", type=str, default=None, choices=LISTING_KINDS)
    parser.add_argument("--property-type", type=str, default=None, choices=PROPERTY_TYPES)
    parser.add_argument("--bedrooms-min", type=int, default=None)
    parser.add_argument("--min-price", type=int, default=None)
    parser.add_argument("--max-price", type=int, default=None)
    parser.add_argument("--min-size", type=int, default=None)
    parser.add_argument("--max-size", type=int, default=None)
    parser.add_argument(
        "--badge",
        type=str,
        default=None,
        choices=[b.value for b in PopularityBadge if b != PopularityBadge.NONE],
    )
    parser.add_argument(
        "--sort",
        type=str,
        default=SortMode.RECOMMENDED.value,
        choices=[s.value for s in SortMode],
    )
    parser.add_argument("--limit", type=int, default=None, help="Tamaño de página (1-50)")
    parser.add_argument("--offset", type=int, default=0)
    parser.add_argument("--viewer-id", type=str, default=None, help="Usuario para flags")

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    try:
        response = asyncio.run(HybridQueryPlanner().search(build_request(args)))
        print(response.model_dump_json(indent=2))
        sys.exit(0)

    except KeyboardInterrupt:
        sys.exit(130)
    except InvalidSearchRequestError as e:
        logger.error("Request inválido", error=str(e))
        sys.exit(1)
    except Exception as e:
        logger.error("Error fatal en búsqueda", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
