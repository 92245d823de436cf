"""
Score fusion for vector + graph retrieval results.

Merges a ranked document list from the vector store with a ranked node
list from graph traversal into one list of FusedResult candidates.

Strategies:
- weighted: (wv*vector + wg*graph) / (wv + wg)
- rrf: Reciprocal Rank Fusion, vector_rrf + graph_rrf
- max: larger of the two scores
- min: smaller score for candidates found by both sources,
       the single score otherwise

Scores are derived from list position, not from the stores' raw scores:
- rank-based laws: score_i = 1 - i / len(list)
- rrf: score_i = 1 / (rrf_constant + i + 1)

Candidates are keyed by document ID (content prefix as fallback) and
merged in an insertion-ordered dict, so equal fused scores are broken
by arrival order: vector list order first, then graph-only nodes in
traversal order.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.documents import Document

from graphrag_engine.graph.models import GraphNode
from graphrag_engine.search.models import FusedResult, FusionStrategy

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_DEFAULT_RRF_CONSTANT = 60.0
_KEY_CONTENT_CHARS = 100

_EXPLAIN_LABELS: dict[FusionStrategy, str] = {
    FusionStrategy.WEIGHTED: "Weighted",
    FusionStrategy.RRF: "RRF",
    FusionStrategy.MAX: "Max",
    FusionStrategy.MIN: "Min",
}


# =============================================================================
# Candidate Identity and Conversion
# =============================================================================


def document_key(document: Document) -> str:
    """Identity key for de-duplicating documents.

    Uses the document ID (Document.id, then metadata["id"]) and falls
    back to the first 100 characters of content. Two distinct documents
    without IDs that share that prefix collapse into one candidate.
    """
    if document.id:
        return str(document.id)
    metadata_id = document.metadata.get("id")
    if metadata_id:
        return str(metadata_id)
    return document.page_content[:_KEY_CONTENT_CHARS]


def node_to_document(node: GraphNode) -> Document:
    """Convert a graph node to a Document.

    Content is "{type}: {label}", followed by the node's description
    property on a new line when it has one. All node properties are
    copied into metadata alongside entity_id / entity_type / entity_label.
    """
    content = f"{node.type}: {node.label}"
    description = node.properties.get("description")
    if isinstance(description, str) and description:
        content = f"{content}\n{description}"

    metadata: dict[str, Any] = {
        "entity_id": node.id,
        "entity_type": node.type,
        "entity_label": node.label,
    }
    metadata.update(node.properties)
    return Document(page_content=content, metadata=metadata, id=node.id)


# =============================================================================
# FusionEngine Class
# =============================================================================


class FusionEngine:
    """Merges vector and graph result lists under a fusion law.

    Stateless: a single instance can serve concurrent calls.

    Usage:
        engine = FusionEngine()
        fused = engine.fuse(
            vector_docs,
            graph_nodes,
            strategy="weighted",
            vector_weight=0.6,
            graph_weight=0.4,
        )
    """

    def fuse(
        self,
        vector_docs: list[Document],
        graph_nodes: list[GraphNode],
        strategy: FusionStrategy | str = FusionStrategy.WEIGHTED,
        vector_weight: float = 0.5,
        graph_weight: float = 0.5,
        rrf_constant: float = _DEFAULT_RRF_CONSTANT,
    ) -> list[FusedResult]:
        """Fuse both lists into candidates sorted by fused score.

        Args:
            vector_docs: Documents from vector search, most relevant first
            graph_nodes: Nodes from graph traversal, in traversal order
            strategy: Fusion law
            vector_weight: Vector weight (weighted law only)
            graph_weight: Graph weight (weighted law only)
            rrf_constant: k in 1 / (k + rank) (rrf law only)

        Returns:
            Candidates sorted by fused score descending, ranks 1..N

        Raises:
            ValueError: If strategy is unknown or rrf_constant <= 0
        """
        law = _parse_strategy(strategy)
        if law == FusionStrategy.RRF:
            if rrf_constant <= 0:
                raise ValueError(f"rrf_constant must be > 0, got {rrf_constant}")
            vector_scores = self._rrf_scores(len(vector_docs), rrf_constant)
            graph_scores = self._rrf_scores(len(graph_nodes), rrf_constant)
        else:
            vector_scores = self._rank_scores(len(vector_docs))
            graph_scores = self._rank_scores(len(graph_nodes))

        candidates = self._merge(vector_docs, vector_scores, graph_nodes, graph_scores)

        for candidate in candidates:
            candidate.fused_score = self._fused_score(
                candidate, law, vector_weight, graph_weight
            )
            candidate.metadata["fusion_strategy"] = law.value

        ranked = self.sort_and_rank(candidates)
        logger.debug(
            "Fused %d vector + %d graph results into %d candidates (%s)",
            len(vector_docs),
            len(graph_nodes),
            len(ranked),
            law.value,
        )
        return ranked

    @staticmethod
    def sort_and_rank(candidates: list[FusedResult]) -> list[FusedResult]:
        """Sort by fused score descending, ties by arrival, and renumber ranks."""
        ranked = sorted(candidates, key=lambda c: (-c.fused_score, c.arrival))
        for position, candidate in enumerate(ranked, start=1):
            candidate.rank = position
        return ranked

    def _rank_scores(self, length: int) -> list[float]:
        """Position scores 1 - i/n: first item 1.0, decreasing linearly."""
        return [1.0 - i / length for i in range(length)]

    def _rrf_scores(self, length: int, rrf_constant: float) -> list[float]:
        """Reciprocal rank scores 1 / (k + i + 1) for 0-based position i."""
        return [1.0 / (rrf_constant + i + 1) for i in range(length)]

    def _merge(
        self,
        vector_docs: list[Document],
        vector_scores: list[float],
        graph_nodes: list[GraphNode],
        graph_scores: list[float],
    ) -> list[FusedResult]:
        """Merge both lists by identity key, preserving first-seen order.

        A key repeated within one list keeps its first (best) score.
        """
        merged: dict[str, FusedResult] = {}

        for doc, score in zip(vector_docs, vector_scores):
            key = document_key(doc)
            if key in merged:
                continue
            merged[key] = FusedResult(
                document=doc,
                vector_score=score,
                in_vector=True,
                arrival=len(merged),
            )

        for node, score in zip(graph_nodes, graph_scores):
            doc = node_to_document(node)
            key = document_key(doc)
            existing = merged.get(key)
            if existing is None:
                merged[key] = FusedResult(
                    document=doc,
                    graph_score=score,
                    related_nodes=[node],
                    in_graph=True,
                    arrival=len(merged),
                )
                continue

            if not existing.in_graph:
                existing.graph_score = score
                existing.in_graph = True
            if all(related.id != node.id for related in existing.related_nodes):
                existing.related_nodes.append(node)

        return list(merged.values())

    def _fused_score(
        self,
        candidate: FusedResult,
        law: FusionStrategy,
        vector_weight: float,
        graph_weight: float,
    ) -> float:
        v_score = candidate.vector_score
        g_score = candidate.graph_score

        if law == FusionStrategy.WEIGHTED:
            total_weight = vector_weight + graph_weight
            if total_weight <= 0:
                # Both weights zero: fall back to max
                return max(v_score, g_score)
            return (vector_weight * v_score + graph_weight * g_score) / total_weight
        if law == FusionStrategy.RRF:
            return v_score + g_score
        if law == FusionStrategy.MIN and candidate.in_vector and candidate.in_graph:
            return min(v_score, g_score)
        return max(v_score, g_score)


# =============================================================================
# Helpers
# =============================================================================


def _parse_strategy(strategy: FusionStrategy | str) -> FusionStrategy:
    try:
        return FusionStrategy(strategy)
    except ValueError:
        valid = ", ".join(s.value for s in FusionStrategy)
        raise ValueError(
            f"Invalid fusion strategy '{strategy}'. Valid options: {valid}"
        ) from None


def explain_score(
    result: FusedResult,
    strategy: FusionStrategy | str,
) -> str:
    """Describe how a candidate's fused score was composed.

    Example:
        "Weighted: 0.750 (vector: 0.500, graph: 1.000)"
    """
    try:
        label = _EXPLAIN_LABELS[FusionStrategy(strategy)]
    except ValueError:
        return f"Score: {result.fused_score:.3f}"
    return (
        f"{label}: {result.fused_score:.3f} "
        f"(vector: {result.vector_score:.3f}, graph: {result.graph_score:.3f})"
    )
