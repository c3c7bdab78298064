"""
Cliente de Supabase.

Singleton compartido por todos los repositorios. Las queries con costo no
acotado (ranking full-text, distancias vectoriales) viven como funciones SQL
en ``supabase/migrations`` y se llaman por RPC.
"""

from functools import lru_cache
from typing import Optional

import structlog
from supabase import Client, ClientOptions, create_client

from vitrina.config import get_settings

logger = structlog.get_logger()


class SupabaseClient:
    """Wrapper del cliente de Supabase."""

    def __init__(self, client: Client):
        self._client = client

    @property
    def client(self) -> Client:
        return self._client

    def table(self, name: str):
        return self._client.table(name)

    def execute_rpc(self, function_name: str, params: Optional[dict] = None) -> list:
        """
        Ejecuta una función RPC de PostgreSQL.

        Args:
            function_name: Nombre de la función (p.ej. ``search_listing_text``)
            params: Parámetros ``p_*`` de la función

        Returns:
            Filas devueltas (lista vacía si no hay)
        """
        try:
            response = self._client.rpc(function_name, params or {}).execute()
            return response.data or []
        except Exception as e:
            logger.error("Error ejecutando RPC", function=function_name, error=str(e))
            raise


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """
    Obtiene el cliente de Supabase (singleton cacheado).

    El timeout de PostgREST se alinea con ``query_timeout_seconds`` para que
    una sub-query abandonada por timeout no siga ocupando su thread.

    Raises:
        ValueError: Si las credenciales no están configuradas
    """
    settings = get_settings()

    if not settings.supabase_url or not settings.supabase_key:
        raise ValueError(
            "SUPABASE_URL y SUPABASE_KEY son requeridos. "
            "Configura las variables de entorno."
        )

    # El indexer y los jobs escriben tablas derivadas: service key si existe
    key = settings.supabase_service_key or settings.supabase_key

    options = ClientOptions(postgrest_client_timeout=settings.query_timeout_seconds)
    client = create_client(settings.supabase_url, key, options=options)
    logger.info(
        "Cliente de Supabase inicializado",
        url=settings.supabase_url,
        timeout=settings.query_timeout_seconds,
    )

    return SupabaseClient(client)
