"""
Custom exceptions for the graph module.

Exception naming avoids shadowing Python builtins (ConnectionError,
LookupError): GraphStoreConnectionError, NodeNotFoundError, ...
"""

from __future__ import annotations


class GraphStoreError(Exception):
    """Base exception for all graph store errors."""

    pass


class GraphStoreConnectionError(GraphStoreError):
    """Raised when a graph store is used before connecting."""

    pass


class NodeNotFoundError(GraphStoreError):
    """Raised when a node ID does not exist in the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class NoPathFoundError(GraphStoreError):
    """Raised when no path connects two nodes within the depth limit."""

    def __init__(self, start_id: str, end_id: str) -> None:
        super().__init__(f"No path found from {start_id} to {end_id}")
        self.start_id = start_id
        self.end_id = end_id


class Neo4jConnectionError(GraphStoreConnectionError):
    """Raised when connection to Neo4j fails."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize with message and optional cause.

        Args:
            message: Human-readable error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class Neo4jQueryError(GraphStoreError):
    """Raised when a Cypher query fails.

    This includes syntax errors, constraint violations,
    and other query execution failures.
    """

    def __init__(
        self,
        message: str,
        query: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with message, failed query, and optional cause.

        Args:
            message: Human-readable error description
            query: The Cypher query that failed
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.query = query
        self.cause = cause
