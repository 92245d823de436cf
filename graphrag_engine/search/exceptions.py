"""
Custom exceptions for the search module.

Naming avoids shadowing Python builtins (ConnectionError, TimeoutError):
QdrantConnectionError / QdrantSearchError rather than bare names.
"""

from __future__ import annotations


class VectorStoreError(Exception):
    """Base exception for all vector store errors."""

    pass


class QdrantConnectionError(VectorStoreError):
    """Raised when connection to Qdrant fails."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize with message and optional cause.

        Args:
            message: Human-readable error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class QdrantSearchError(VectorStoreError):
    """Raised when a search operation fails.

    This includes empty queries, rejected requests,
    and other search execution failures.
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
            query: The search query that failed
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.query = query
        self.cause = cause


class EmbedderError(VectorStoreError):
    """Raised when the query embedding cannot be computed."""

    def __init__(
        self,
        message: str,
        query: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.query = query
        self.cause = cause
