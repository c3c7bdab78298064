"""
Generador de embeddings para búsqueda semántica.

Usa gemini-embedding-001 de Google con dimensión fija (768 por defecto).
El resto del motor solo ve ``try_embed``: devuelve un ``EmbeddingVector``
validado o ``None``, nunca una excepción del proveedor.
"""

import asyncio
import re
from typing import Optional, Protocol

from google import genai
from google.genai import types
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from vitrina.config import get_settings
from vitrina.models import EmbeddingVector

logger = structlog.get_logger()

# Límite de caracteres enviados al proveedor
MAX_INPUT_CHARS = 12000


def normalize_text(text: str) -> str:
    """Colapsa espacios y trunca al máximo aceptado por el proveedor."""
    return re.sub(r"\s+", " ", text or "").strip()[:MAX_INPUT_CHARS]


class TextEmbedder(Protocol):
    """Contrato mínimo que usan indexer, planner y matcher."""

    async def try_embed(self, text: str) -> Optional[EmbeddingVector]: ...


class EmbeddingGenerator:
    """
    Genera embeddings usando Google's gemini-embedding-001.

    Los embeddings se usan para:
    - Documentos de listings publicados (búsqueda semántica)
    - Queries de texto libre del buscador público
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        api_key = api_key or settings.gemini_api_key

        if not api_key:
            raise ValueError("GEMINI_API_KEY es requerida para embeddings.")

        self.client = genai.Client(api_key=api_key)
        self.model_name = model_name or settings.embedding_model
        self.output_dim = dimension or settings.embedding_dimension
        self.timeout = timeout or settings.embedding_timeout_seconds
        logger.info("Embedding generator inicializado", model=self.model_name, dim=self.output_dim)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def embed_text(self, text: str) -> list[float]:
        """
        Pide el embedding al proveedor.

        Args:
            text: Texto ya normalizado

        Returns:
            Vector crudo tal como lo devuelve la API (sin validar)
        """
        response = await self.client.aio.models.embed_content(
            model=self.model_name,
            contents=text,
            config=types.EmbedContentConfig(output_dimensionality=self.output_dim),
        )
        return list(response.embeddings[0].values)

    async def try_embed(self, text: str) -> Optional[EmbeddingVector]:
        """
        Embedding best-effort acotado por ``timeout``.

        Returns:
            Vector validado, o None si el texto está vacío, el proveedor
            falla, tarda demasiado o devuelve un payload inválido
        """
        normalized = normalize_text(text)
        if not normalized:
            return None

        try:
            raw = await asyncio.wait_for(self.embed_text(normalized), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Timeout generando embedding", timeout=self.timeout)
            return None
        except Exception as e:
            logger.warning("Error generando embedding", error=str(e))
            return None

        vector = EmbeddingVector.parse(raw, dimension=self.output_dim)
        if vector is None:
            logger.warning(
                "Embedding inválido descartado",
                received_dim=len(raw) if isinstance(raw, list) else None,
                expected_dim=self.output_dim,
            )
            return None

        logger.debug("Embedding generado", text_length=len(normalized), embedding_dim=self.output_dim)
        return vector
