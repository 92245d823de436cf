"""
graphrag-engine: hybrid retrieval over a vector store and a knowledge graph.

Typical use:
    from graphrag_engine import GraphRAGRetriever, SearchOptions

    retriever = GraphRAGRetriever(vector_store, graph_store, entity_extractor)
    docs, stats = await retriever.search("query", SearchOptions(k=5))
"""

from graphrag_engine.core.config import RetrieverSettings
from graphrag_engine.retrievers import (
    BackendUnavailableError,
    ConfigInvalidError,
    GraphRAGRetriever,
    RetrieverError,
    SearchTimeoutError,
)
from graphrag_engine.search.models import (
    FusionStrategy,
    RerankStrategy,
    SearchMode,
    SearchOptions,
    Statistics,
)

__version__ = "0.1.0"

__all__ = [
    "GraphRAGRetriever",
    "RetrieverSettings",
    "SearchOptions",
    "SearchMode",
    "FusionStrategy",
    "RerankStrategy",
    "Statistics",
    "RetrieverError",
    "ConfigInvalidError",
    "BackendUnavailableError",
    "SearchTimeoutError",
]
