"""
Script para recalcular popularidad y badges.

Pensado para correr periódicamente (cron / GitHub Actions).

Uso:
    python -m vitrina.scripts.run_popularity
"""

import asyncio
import sys

import structlog

from vitrina.config import get_settings
from vitrina.logging_config import configure_logging
from vitrina.popularity import PopularityScorer

logger = structlog.get_logger()


def main():
    """Entry point del script."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    logger.info("Iniciando cálculo de popularidad...")

    try:
        result = asyncio.run(PopularityScorer().run())
        logger.info(
            "Popularidad completada",
            eligible=result.eligible,
            trending=result.trending,
            fallback=result.global_fallback_used,
        )
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Popularidad interrumpida por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en popularidad", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
