"""
Script para recalcular los matches de un lead.

Uso:
    python -m vitrina.scripts.run_matching --lead-id <uuid> --agency-id <uuid>
    python -m vitrina.scripts.run_matching --lead-id <uuid> --agency-id <uuid> --top-k 20
"""

import argparse
import asyncio
import sys

import structlog

from vitrina.config import get_settings
from vitrina.errors import VitrinaError
from vitrina.logging_config import configure_logging
from vitrina.matching import LeadMatcher

logger = structlog.get_logger()


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Matching de un lead contra el catálogo")
    parser.add_argument("--lead-id", type=str, required=True, help="Lead a matchear")
    parser.add_argument("--agency-id", type=str, required=True, help="Agencia del caller")
    parser.add_argument("--top-k", type=int, default=None, help="Matches a guardar (1-50)")

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    try:
        result = asyncio.run(
            LeadMatcher().match_lead(args.lead_id, args.agency_id, top_k=args.top_k)
        )
        logger.info(
            "Matching completado",
            outcome=result.outcome.value,
            relaxation_level=result.relaxation_level.value if result.relaxation_level else None,
            candidates=result.candidate_count,
            matches=len(result.matches),
        )
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Matching interrumpido por usuario")
        sys.exit(130)
    except VitrinaError as e:
        logger.error("Matching rechazado", error=str(e))
        sys.exit(1)
    except Exception as e:
        logger.error("Error fatal en matching", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
