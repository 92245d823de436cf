"""
LangChain-compatible retriever for graphrag-engine.

Design follows:
- Repository Pattern: retriever composes injected stores and extractor
- LCEL Compatible: works with LangChain pipe operator

Modules:
- graphrag_retriever: hybrid vector + graph retrieval orchestrator
- exceptions: custom exceptions for retriever errors
"""

from graphrag_engine.retrievers.exceptions import (
    BackendUnavailableError,
    ConfigInvalidError,
    RetrieverError,
    SearchTimeoutError,
)
from graphrag_engine.retrievers.graphrag_retriever import (
    DEGRADED_ENTITY_EXTRACTION,
    DEGRADED_GRAPH_TRAVERSAL,
    EntityExtractorProtocol,
    GraphRAGRetriever,
)

__all__ = [
    "GraphRAGRetriever",
    "EntityExtractorProtocol",
    "DEGRADED_ENTITY_EXTRACTION",
    "DEGRADED_GRAPH_TRAVERSAL",
    "RetrieverError",
    "ConfigInvalidError",
    "BackendUnavailableError",
    "SearchTimeoutError",
]
