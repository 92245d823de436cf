"""
Graph layer consumed by the retriever:
- Graph data model (nodes, edges, paths, traversal options)
- GraphStoreProtocol with an in-memory implementation
- Neo4jClient / Neo4jGraphStore for a live Neo4j database
"""

from graphrag_engine.graph.exceptions import (
    GraphStoreConnectionError,
    GraphStoreError,
    Neo4jConnectionError,
    Neo4jQueryError,
    NodeNotFoundError,
    NoPathFoundError,
)
from graphrag_engine.graph.models import (
    Direction,
    Entity,
    GraphEdge,
    GraphNode,
    GraphPath,
    PathAlgorithm,
    TraversalStrategy,
    TraverseOptions,
    TraverseResult,
)
from graphrag_engine.graph.neo4j_client import Neo4jClient, Neo4jGraphStore
from graphrag_engine.graph.store import GraphStoreProtocol, InMemoryGraphStore

__all__ = [
    # Exceptions
    "GraphStoreError",
    "GraphStoreConnectionError",
    "NodeNotFoundError",
    "NoPathFoundError",
    "Neo4jConnectionError",
    "Neo4jQueryError",
    # Model
    "Direction",
    "Entity",
    "GraphEdge",
    "GraphNode",
    "GraphPath",
    "PathAlgorithm",
    "TraversalStrategy",
    "TraverseOptions",
    "TraverseResult",
    # Stores
    "GraphStoreProtocol",
    "InMemoryGraphStore",
    "Neo4jClient",
    "Neo4jGraphStore",
]
