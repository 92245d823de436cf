"""
GraphRAG retriever: hybrid vector + knowledge-graph retrieval.

LangChain-compatible retriever that answers a query by combining dense
vector search with graph traversal from the entities mentioned in the
query, then fusing, reranking and augmenting the results.

Design follows:
- Repository Pattern: vector store, graph store and entity extractor
  are injected collaborators, accessed only through their protocols
- Fork-join: the vector branch and the entity -> traversal branch run
  as concurrent asyncio tasks and are joined before fusion
- Failure policy: vector failures are fatal (BackendUnavailableError);
  entity extraction and traversal failures in hybrid mode degrade to an
  empty graph list and are reported in Statistics.degraded_modalities
- Immutable configuration: settings are validated once at construction;
  per-call SearchOptions are merged into a fresh ResolvedSearchOptions
- LCEL Compatible: works with invoke / ainvoke and the pipe operator

Pipeline (hybrid mode):
    vector search (2k) ─┐
                        ├─> fuse -> rerank -> augment -> min_score -> top k
    entities -> traverse┘
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
import uuid
from typing import Any, Protocol, runtime_checkable

from langchain_core.callbacks import (
    AsyncCallbackManagerForRetrieverRun,
    CallbackManagerForRetrieverRun,
)
from langchain_core.documents import Document
from langchain_core.retrievers import BaseRetriever
from pydantic import ValidationError

from graphrag_engine.core.config import RetrieverSettings, get_settings
from graphrag_engine.core.logging import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
    setup_structured_logging,
)
from graphrag_engine.graph.models import (
    Direction,
    Entity,
    TraversalStrategy,
    TraverseOptions,
)
from graphrag_engine.retrievers.exceptions import (
    BackendUnavailableError,
    ConfigInvalidError,
    SearchTimeoutError,
)
from graphrag_engine.search.context import attach_scores, augment_context
from graphrag_engine.search.fusion import FusionEngine, node_to_document
from graphrag_engine.search.models import (
    FusionStrategy,
    GraphRetrieval,
    RerankStrategy,
    ResolvedSearchOptions,
    SearchMode,
    SearchOptions,
    Statistics,
)
from graphrag_engine.search.rerank import Reranker

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_CANDIDATE_MULTIPLIER = 2
DEGRADED_ENTITY_EXTRACTION = "entity_extraction"
DEGRADED_GRAPH_TRAVERSAL = "graph_traversal"


# =============================================================================
# Collaborator Protocols
# =============================================================================


@runtime_checkable
class EntityExtractorProtocol(Protocol):
    """Turns query text into candidate graph entities (best effort)."""

    async def extract(self, text: str) -> list[Entity]:
        """Return entities mentioned in text; may be empty."""
        ...


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


# =============================================================================
# GraphRAGRetriever Class
# =============================================================================


class GraphRAGRetriever(BaseRetriever):
    """LangChain retriever fusing vector search with graph traversal.

    Usage:
        retriever = GraphRAGRetriever(
            vector_store=qdrant_store,
            graph_store=neo4j_store,
            entity_extractor=extractor,
        )
        docs, stats = await retriever.search(
            "Who works at Acme?",
            SearchOptions(k=5, fusion_strategy="rrf"),
        )

        # In LCEL chain
        chain = retriever | format_docs | prompt | llm
    """

    # Private attributes (not Pydantic fields)
    _settings: Any = None
    _vector_store: Any = None
    _graph_store: Any = None
    _entity_extractor: Any = None
    _fusion: Any = None
    _reranker: Any = None
    _last_stats: Any = None

    def __init__(
        self,
        vector_store: Any,
        graph_store: Any,
        entity_extractor: Any = None,
        settings: RetrieverSettings | dict[str, Any] | None = None,
        reranker: Reranker | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize with collaborators and validated settings.

        Args:
            vector_store: Object with async asimilarity_search(query, k)
            graph_store: Object with async traverse(start_id, options)
            entity_extractor: Object with async extract(text); None means
                              no entities are ever extracted
            settings: RetrieverSettings or a mapping of its fields;
                      defaults to get_settings()
            reranker: Custom Reranker (e.g. with another similarity)
            **kwargs: Additional arguments for BaseRetriever

        Raises:
            ConfigInvalidError: If settings are out of range or a
                                required collaborator is missing
        """
        super().__init__(**kwargs)
        if vector_store is None:
            raise ConfigInvalidError("vector_store is required")
        if graph_store is None:
            raise ConfigInvalidError("graph_store is required")

        self._settings = _validate_settings(settings)
        if self._settings.structured_logging:
            setup_structured_logging(log_file_path=self._settings.log_file)
        self._vector_store = vector_store
        self._graph_store = graph_store
        self._entity_extractor = entity_extractor
        self._fusion = FusionEngine()
        self._reranker = reranker or Reranker()
        self._last_stats = Statistics()

    @property
    def settings(self) -> RetrieverSettings:
        """Validated retriever defaults."""
        return self._settings

    def get_statistics(self) -> Statistics:
        """Statistics of the most recent search call (a copy)."""
        stats = self._last_stats
        return dataclasses.replace(stats, degraded_modalities=list(stats.degraded_modalities))

    # =========================================================================
    # LangChain Interface
    # =========================================================================

    def _get_relevant_documents(
        self,
        query: str,
        *,
        run_manager: CallbackManagerForRetrieverRun | None = None,
    ) -> list[Document]:
        """Synchronous retrieval; runs search() on a new event loop."""
        documents, _ = asyncio.run(self.search(query))
        return documents

    async def _aget_relevant_documents(
        self,
        query: str,
        *,
        run_manager: AsyncCallbackManagerForRetrieverRun | None = None,
    ) -> list[Document]:
        """Async retrieval with the retriever's default options."""
        documents, _ = await self.search(query)
        return documents

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        correlation_id: str | None = None,
    ) -> tuple[list[Document], Statistics]:
        """Retrieve documents for a query.

        Args:
            query: Query text (empty is allowed)
            options: Per-call overrides; None fields take the defaults
            correlation_id: Id attached to every log line of this call;
                            generated when not given

        Returns:
            (documents, statistics) with at most k documents

        Raises:
            ConfigInvalidError: If options are out of range
            BackendUnavailableError: If a required backend fails
            SearchTimeoutError: If search_timeout elapses
        """
        resolved = self._merge_options(options)
        stats = Statistics(correlation_id=correlation_id or str(uuid.uuid4()))

        previous_id = get_correlation_id()
        set_correlation_id(stats.correlation_id)
        start = time.perf_counter()
        try:
            documents = await self._run_with_deadline(query, resolved, stats)
            elapsed = _elapsed_ms(start)
            logger.info(
                "Search completed: mode=%s results=%d total_time=%.1fms",
                resolved.mode.value,
                len(documents),
                elapsed,
                extra={
                    "search_mode": resolved.mode.value,
                    "result_count": len(documents),
                    "total_time_ms": round(elapsed, 3),
                    "degraded_modalities": list(stats.degraded_modalities),
                },
            )
        finally:
            stats.total_time = _elapsed_ms(start)
            self._last_stats = stats
            if previous_id:
                set_correlation_id(previous_id)
            else:
                clear_correlation_id()

        return documents, dataclasses.replace(
            stats, degraded_modalities=list(stats.degraded_modalities)
        )

    async def _run_with_deadline(
        self,
        query: str,
        options: ResolvedSearchOptions,
        stats: Statistics,
    ) -> list[Document]:
        timeout = self._settings.search_timeout
        if timeout is None:
            return await self._dispatch(query, options, stats)
        try:
            return await asyncio.wait_for(self._dispatch(query, options, stats), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SearchTimeoutError(f"Search exceeded {timeout}s deadline", timeout=timeout) from e

    async def _dispatch(
        self,
        query: str,
        options: ResolvedSearchOptions,
        stats: Statistics,
    ) -> list[Document]:
        if options.mode == SearchMode.VECTOR:
            return await self._vector_search(query, options.k, stats)
        if options.mode == SearchMode.GRAPH:
            return await self._graph_search(query, options, stats)
        return await self._hybrid_search(query, options, stats)

    async def _hybrid_search(
        self,
        query: str,
        options: ResolvedSearchOptions,
        stats: Statistics,
    ) -> list[Document]:
        vector_task = asyncio.create_task(
            self._vector_search(query, options.k * _CANDIDATE_MULTIPLIER, stats)
        )
        graph_task = asyncio.create_task(
            self._graph_retrieval(query, options, stats, strict=False)
        )
        try:
            vector_docs, graph = await asyncio.gather(vector_task, graph_task)
        except BaseException:
            # Vector failure or caller cancellation: stop the other branch
            for task in (vector_task, graph_task):
                task.cancel()
            await asyncio.gather(vector_task, graph_task, return_exceptions=True)
            raise

        fusion_start = time.perf_counter()
        fused = self._fusion.fuse(
            vector_docs,
            graph.nodes,
            strategy=options.fusion_strategy,
            vector_weight=options.vector_weight,
            graph_weight=options.graph_weight,
            rrf_constant=options.rrf_constant,
        )
        stats.fused_results_count = len(fused)
        stats.fusion_time = _elapsed_ms(fusion_start)

        rerank_start = time.perf_counter()
        ranked = self._reranker.rerank(
            fused,
            options.rerank_strategy,
            k=options.k,
            mmr_lambda=options.mmr_lambda,
        )
        stats.rerank_time = _elapsed_ms(rerank_start)

        if options.enable_context_augmentation:
            augment_start = time.perf_counter()
            documents = augment_context(ranked, graph)
            stats.augmentation_time = _elapsed_ms(augment_start)
        else:
            documents = [attach_scores(result) for result in ranked]

        return self._filter_and_truncate(documents, options)

    async def _vector_search(self, query: str, k: int, stats: Statistics) -> list[Document]:
        start = time.perf_counter()
        try:
            documents = await self._vector_store.asimilarity_search(query, k=k)
        except Exception as e:
            stats.vector_search_time = _elapsed_ms(start)
            logger.exception("Vector search failed")
            raise BackendUnavailableError(f"Vector search failed: {e}", cause=e) from e

        documents = list(documents)[:k]
        stats.vector_search_time = _elapsed_ms(start)
        stats.vector_results_count = len(documents)
        return documents

    async def _graph_search(
        self,
        query: str,
        options: ResolvedSearchOptions,
        stats: Statistics,
    ) -> list[Document]:
        graph = await self._graph_retrieval(query, options, stats, strict=True)
        documents = [node_to_document(node) for node in graph.nodes]
        return documents[: options.k]

    async def _graph_retrieval(
        self,
        query: str,
        options: ResolvedSearchOptions,
        stats: Statistics,
        strict: bool,
    ) -> GraphRetrieval:
        """Entity extraction followed by traversal from every entity.

        With strict=False (hybrid mode) failures are recorded as degraded
        modalities and an empty or partial result is returned. With
        strict=True (graph mode) they raise BackendUnavailableError.
        """
        start = time.perf_counter()
        try:
            entities = await self._extract_entities(query)
        except Exception as e:
            if strict:
                raise BackendUnavailableError(f"Entity extraction failed: {e}", cause=e) from e
            logger.warning("Entity extraction failed, continuing without graph results: %s", e)
            stats.degraded_modalities.append(DEGRADED_ENTITY_EXTRACTION)
            entities = []
        stats.entities_extracted = len(entities)

        graph = await self._traverse_entities(entities, options, stats, strict)
        stats.graph_results_count = len(graph.nodes)
        stats.nodes_traversed = len(graph.nodes)
        stats.graph_search_time = _elapsed_ms(start)
        return graph

    async def _extract_entities(self, query: str) -> list[Entity]:
        if self._entity_extractor is None:
            return []
        return list(await self._entity_extractor.extract(query))

    async def _traverse_entities(
        self,
        entities: list[Entity],
        options: ResolvedSearchOptions,
        stats: Statistics,
        strict: bool,
    ) -> GraphRetrieval:
        """Traverse from each distinct entity and union the results.

        Traversals run concurrently, bounded by traversal_concurrency.
        Nodes keep their first-seen position (entity order, then node
        order) and the smallest depth reported for them.
        """
        seeds: list[Entity] = []
        seen_seeds: set[str] = set()
        for entity in entities:
            if entity.id and entity.id not in seen_seeds:
                seen_seeds.add(entity.id)
                seeds.append(entity)

        graph = GraphRetrieval()
        if not seeds:
            return graph

        traverse_options = TraverseOptions(
            max_depth=options.max_traverse_depth,
            direction=Direction.BOTH,
            strategy=TraversalStrategy.BFS,
            limit=options.k * _CANDIDATE_MULTIPLIER,
        )
        semaphore = asyncio.Semaphore(self._settings.traversal_concurrency)

        async def traverse(entity: Entity) -> Any:
            async with semaphore:
                return await self._graph_store.traverse(entity.id, traverse_options)

        results = await asyncio.gather(
            *(traverse(entity) for entity in seeds),
            return_exceptions=True,
        )

        seen_nodes: set[str] = set()
        seen_edges: set[tuple[str, str, str, str]] = set()
        failures = 0
        for entity, result in zip(seeds, results):
            if isinstance(result, Exception):
                failures += 1
                logger.warning("Graph traversal from %s failed: %s", entity.id, result)
                continue
            if isinstance(result, BaseException):
                raise result

            for node in result.nodes:
                depth = result.depths.get(node.id)
                if depth is not None:
                    graph.depths[node.id] = min(depth, graph.depths.get(node.id, depth))
                if node.id not in seen_nodes:
                    seen_nodes.add(node.id)
                    graph.nodes.append(node)
            for edge in result.edges:
                edge_key = (edge.id, edge.source, edge.type, edge.target)
                if edge_key not in seen_edges:
                    seen_edges.add(edge_key)
                    graph.edges.append(edge)

        if failures:
            if strict and failures == len(seeds):
                raise BackendUnavailableError(
                    f"Graph traversal failed for all {failures} entities"
                )
            if not strict:
                stats.degraded_modalities.append(DEGRADED_GRAPH_TRAVERSAL)

        return graph

    def _filter_and_truncate(
        self,
        documents: list[Document],
        options: ResolvedSearchOptions,
    ) -> list[Document]:
        """Apply the min_score floor, then keep the first k.

        Documents without a fused_score always pass the floor.
        """
        if options.min_score > 0:
            documents = [
                doc
                for doc in documents
                if "fused_score" not in doc.metadata
                or doc.metadata["fused_score"] >= options.min_score
            ]
        return documents[: options.k]

    # =========================================================================
    # Options
    # =========================================================================

    def _merge_options(self, options: SearchOptions | None) -> ResolvedSearchOptions:
        """Fill unset fields from settings and validate explicit ones.

        Raises:
            ConfigInvalidError: If an explicit value is out of range
        """
        defaults = self._settings
        opts = options or SearchOptions()

        def pick(value: Any, default: Any) -> Any:
            return default if value is None else value

        try:
            resolved = ResolvedSearchOptions(
                mode=SearchMode(pick(opts.mode, defaults.search_mode)),
                k=pick(opts.k, defaults.top_k),
                vector_weight=pick(opts.vector_weight, defaults.vector_weight),
                graph_weight=pick(opts.graph_weight, defaults.graph_weight),
                max_traverse_depth=pick(opts.max_traverse_depth, defaults.max_traverse_depth),
                fusion_strategy=FusionStrategy(pick(opts.fusion_strategy, defaults.fusion_strategy)),
                rerank_strategy=RerankStrategy(pick(opts.rerank_strategy, defaults.rerank_strategy)),
                enable_context_augmentation=pick(
                    opts.enable_context_augmentation, defaults.enable_context_augmentation
                ),
                min_score=pick(opts.min_score, defaults.min_score),
                mmr_lambda=pick(opts.mmr_lambda, defaults.mmr_lambda),
                rrf_constant=pick(opts.rrf_constant, defaults.rrf_constant),
            )
        except ValueError as e:
            raise ConfigInvalidError(f"Invalid search options: {e}") from e

        _validate_options(resolved)
        return resolved


# =============================================================================
# Validation Helpers
# =============================================================================


def _validate_settings(settings: RetrieverSettings | dict[str, Any] | None) -> RetrieverSettings:
    try:
        if settings is None:
            settings = get_settings()
        data = settings.model_dump() if isinstance(settings, RetrieverSettings) else dict(settings)
        return RetrieverSettings(**data)
    except ValidationError as e:
        raise ConfigInvalidError(f"Invalid retriever settings: {e}") from e


def _validate_options(options: ResolvedSearchOptions) -> None:
    errors = []
    if options.k < 1:
        errors.append(f"k must be >= 1, got {options.k}")
    if not 0.0 <= options.vector_weight <= 1.0:
        errors.append(f"vector_weight must be in [0, 1], got {options.vector_weight}")
    if not 0.0 <= options.graph_weight <= 1.0:
        errors.append(f"graph_weight must be in [0, 1], got {options.graph_weight}")
    if options.max_traverse_depth < 1:
        errors.append(f"max_traverse_depth must be >= 1, got {options.max_traverse_depth}")
    if options.min_score < 0:
        errors.append(f"min_score must be >= 0, got {options.min_score}")
    if not 0.0 <= options.mmr_lambda <= 1.0:
        errors.append(f"mmr_lambda must be in [0, 1], got {options.mmr_lambda}")
    if options.rrf_constant <= 0:
        errors.append(f"rrf_constant must be > 0, got {options.rrf_constant}")
    if errors:
        raise ConfigInvalidError("Invalid search options: " + "; ".join(errors))
