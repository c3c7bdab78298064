"""
Módulo de análisis con IA.

Provee la generación de embeddings (servicio externo texto -> vector).
"""

from vitrina.analysis.embeddings import EmbeddingGenerator, TextEmbedder, normalize_text

__all__ = [
    "EmbeddingGenerator",
    "TextEmbedder",
    "normalize_text",
]
