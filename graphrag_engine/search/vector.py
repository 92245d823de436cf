"""
Vector store adapters for the retriever.

Design follows:
- Repository Pattern: the retriever depends only on VectorStoreProtocol
  (``asimilarity_search``, the LangChain vector store method), so any
  LangChain vector store can be passed in directly
- Connection pooling: QdrantVectorStore reuses one AsyncQdrantClient
- Custom exceptions: QdrantConnectionError / QdrantSearchError /
  EmbedderError rather than builtin names
- Fake for testing: InMemoryVectorStore implements the same interface

Query embedding is delegated to an injected LangChain ``Embeddings``
object; this module never computes embeddings itself.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

from langchain_core.documents import Document
from qdrant_client import AsyncQdrantClient

from graphrag_engine.search.exceptions import (
    EmbedderError,
    QdrantConnectionError,
    QdrantSearchError,
)
from graphrag_engine.search.similarity import extract_words

# =============================================================================
# Constants
# =============================================================================

_DEFAULT_K = 10
_CONTENT_KEYS = ("page_content", "content", "text")


# =============================================================================
# Protocol for Duck Typing
# =============================================================================


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Interface the retriever needs from a vector store."""

    async def asimilarity_search(self, query: str, k: int = _DEFAULT_K) -> list[Document]:
        """Return up to k documents, most similar first."""
        ...


# =============================================================================
# Real Implementation
# =============================================================================


class QdrantVectorStore:
    """Qdrant-backed vector store.

    Usage:
        async with QdrantVectorStore(settings, embedder=embeddings) as store:
            docs = await store.asimilarity_search("graph databases", k=5)
    """

    def __init__(
        self,
        settings: Any,
        embedder: Any,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize with settings and an embedder.

        Args:
            settings: Object with qdrant_url, qdrant_collection and
                      optional qdrant_api_key attributes
            embedder: LangChain Embeddings (aembed_query or embed_query)
            client: Pre-built client, mainly for tests

        Note:
            Client is NOT created here unless passed in. Call connect()
            or use as async context manager.
        """
        self._url = settings.qdrant_url
        self._collection = settings.qdrant_collection
        self._api_key = getattr(settings, "qdrant_api_key", None)
        self._embedder = embedder
        self._client = client

    @property
    def collection(self) -> str:
        """Get the collection name."""
        return self._collection

    @property
    def is_connected(self) -> bool:
        """Check if the client is initialized."""
        return self._client is not None

    async def connect(self) -> None:
        """Create the client and verify connectivity.

        Raises:
            QdrantConnectionError: If connection fails
        """
        try:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
            await self._client.get_collections()
        except Exception as e:
            self._client = None
            raise QdrantConnectionError(
                f"Failed to connect to Qdrant at {self._url}: {e}",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the client. Idempotent."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> QdrantVectorStore:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - always closes connection."""
        await self.close()

    async def asimilarity_search(self, query: str, k: int = _DEFAULT_K) -> list[Document]:
        """Embed the query and return the k nearest documents.

        Args:
            query: Query text
            k: Maximum number of documents

        Returns:
            Documents sorted by similarity descending; the Qdrant score
            is kept in metadata["score"]

        Raises:
            QdrantConnectionError: If not connected
            EmbedderError: If the query cannot be embedded
            QdrantSearchError: If the search fails
        """
        if self._client is None:
            raise QdrantConnectionError("Client is not connected. Call connect() first.")

        embedding = await self._embed(query)

        try:
            response = await self._client.query_points(
                collection_name=self._collection,
                query=embedding,
                limit=k,
                with_payload=True,
            )
        except Exception as e:
            raise QdrantSearchError(
                f"Search failed in collection '{self._collection}': {e}",
                query=query,
                cause=e,
            ) from e

        return [_point_to_document(point) for point in response.points]

    async def _embed(self, query: str) -> list[float]:
        try:
            if hasattr(self._embedder, "aembed_query"):
                return list(await self._embedder.aembed_query(query))
            return list(self._embedder.embed_query(query))
        except Exception as e:
            raise EmbedderError(f"Failed to embed query: {e}", query=query, cause=e) from e


def _point_to_document(point: Any) -> Document:
    payload = dict(point.payload or {})
    content = ""
    for key in _CONTENT_KEYS:
        if key in payload:
            content = str(payload.pop(key))
            break
    metadata = payload.pop("metadata", None)
    if isinstance(metadata, dict):
        payload.update(metadata)
    payload["score"] = point.score
    return Document(page_content=content, metadata=payload, id=str(point.id))


# =============================================================================
# Fake Implementation for Testing
# =============================================================================


class InMemoryVectorStore:
    """In-memory fake vector store for unit testing.

    Ranks documents by how many query words they contain (ties keep
    insertion order), or returns a fixed ranking when ``scripted`` is set.
    Setting ``should_fail`` makes every search raise QdrantSearchError.
    """

    def __init__(
        self,
        documents: list[Document] | None = None,
        scripted: bool = False,
        should_fail: bool = False,
    ) -> None:
        self._documents: list[Document] = list(documents or [])
        self._scripted = scripted
        self.should_fail = should_fail
        self.calls: list[tuple[str, int]] = []

    def add_documents(self, documents: list[Document]) -> None:
        """Append documents to the store."""
        self._documents.extend(documents)

    async def asimilarity_search(self, query: str, k: int = _DEFAULT_K) -> list[Document]:
        """Return up to k documents ranked by word overlap with the query."""
        await asyncio.sleep(0)  # Yield to event loop
        self.calls.append((query, k))
        if self.should_fail:
            raise QdrantSearchError("Simulated vector search failure", query=query)

        if self._scripted:
            return list(self._documents[:k])

        query_words = set(extract_words(query))
        scored = [
            (len(query_words & set(extract_words(doc.page_content))), doc)
            for doc in self._documents
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [doc for _, doc in scored[:k]]
