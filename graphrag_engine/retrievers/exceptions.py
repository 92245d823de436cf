"""
Retriever exceptions module.

Custom exceptions for the retriever; names avoid shadowing Python
builtins (ConnectionError, TimeoutError).
"""

from __future__ import annotations


class RetrieverError(Exception):
    """Base exception for all retriever errors."""

    pass


class ConfigInvalidError(RetrieverError, ValueError):
    """Raised when retriever settings or per-call options are out of range."""

    pass


class BackendUnavailableError(RetrieverError):
    """Raised when a required retrieval backend fails.

    Vector search failures are always fatal. In graph-only mode, entity
    extraction or traversal failures are fatal as well.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        """Initialize with message and optional cause.

        Args:
            message: Human-readable error description
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.cause = cause


class SearchTimeoutError(RetrieverError):
    """Raised when a search call exceeds its configured deadline."""

    def __init__(self, message: str, timeout: float | None = None) -> None:
        super().__init__(message)
        self.timeout = timeout
