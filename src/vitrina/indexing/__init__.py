"""
Indexado de documentos buscables.
"""

from vitrina.indexing.indexer import (
    DocumentIndexer,
    EmbeddingAction,
    IndexOutcome,
    IndexResult,
    ReindexBatchResult,
    ReindexMode,
    build_document,
)
from vitrina.indexing.search_text import SYNONYM_ANCHORS, build_search_text

__all__ = [
    "DocumentIndexer",
    "EmbeddingAction",
    "IndexOutcome",
    "IndexResult",
    "ReindexBatchResult",
    "ReindexMode",
    "build_document",
    "SYNONYM_ANCHORS",
    "build_search_text",
]
