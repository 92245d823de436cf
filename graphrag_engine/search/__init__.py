"""
Search module for graphrag-engine.

Provides the candidate model, score fusion, reranking, context
augmentation and vector store adapters used by the retriever.

- models.py: FusedResult, strategy enums, options and statistics
- fusion.py: four fusion laws over vector + graph result lists
- rerank.py: score / diversity / MMR reranking
- similarity.py: word-level Jaccard similarity
- context.py: graph context augmentation and LLM formatting
- vector.py: vector store protocol, Qdrant store, in-memory fake
"""

from __future__ import annotations

from graphrag_engine.search.context import (
    augment_context,
    build_context_info,
    enhance_with_graph_structure,
    format_context_for_llm,
)
from graphrag_engine.search.exceptions import (
    EmbedderError,
    QdrantConnectionError,
    QdrantSearchError,
    VectorStoreError,
)
from graphrag_engine.search.fusion import (
    FusionEngine,
    document_key,
    explain_score,
    node_to_document,
)
from graphrag_engine.search.models import (
    ContextInfo,
    FusedResult,
    FusionStrategy,
    GraphRetrieval,
    RerankStrategy,
    ResolvedSearchOptions,
    SearchMode,
    SearchOptions,
    Statistics,
)
from graphrag_engine.search.rerank import Reranker, rerank_with_custom_scorer
from graphrag_engine.search.similarity import extract_words, jaccard_similarity
from graphrag_engine.search.vector import (
    InMemoryVectorStore,
    QdrantVectorStore,
    VectorStoreProtocol,
)

__all__ = [
    "ContextInfo",
    "FusedResult",
    "FusionStrategy",
    "GraphRetrieval",
    "RerankStrategy",
    "ResolvedSearchOptions",
    "SearchMode",
    "SearchOptions",
    "Statistics",
    "FusionEngine",
    "Reranker",
    "document_key",
    "explain_score",
    "node_to_document",
    "rerank_with_custom_scorer",
    "augment_context",
    "build_context_info",
    "enhance_with_graph_structure",
    "format_context_for_llm",
    "extract_words",
    "jaccard_similarity",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "VectorStoreProtocol",
    "EmbedderError",
    "QdrantConnectionError",
    "QdrantSearchError",
    "VectorStoreError",
]
