"""
Candidate model and per-call value types for the retrieval pipeline.

FusedResult is the unit every stage after vector/graph retrieval works
on: fusion produces it, reranking reorders it, context augmentation
turns it back into a Document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from langchain_core.documents import Document

from graphrag_engine.graph.models import GraphEdge, GraphNode

# =============================================================================
# Strategy Enums
# =============================================================================


class SearchMode(str, Enum):
    """Which modalities a search call uses."""

    HYBRID = "hybrid"
    VECTOR = "vector"
    GRAPH = "graph"


class FusionStrategy(str, Enum):
    """Law used to combine vector and graph scores.

    - WEIGHTED: weight-normalized linear combination of rank scores
    - RRF: sum of reciprocal-rank scores
    - MAX: the larger of the two scores
    - MIN: the smaller score when both modalities agree, else the one score
    """

    WEIGHTED = "weighted"
    RRF = "rrf"
    MAX = "max"
    MIN = "min"


class RerankStrategy(str, Enum):
    """Law used to reorder fused candidates."""

    SCORE = "score"
    DIVERSITY = "diversity"
    MMR = "mmr"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class FusedResult:
    """A document with its per-modality and fused scores.

    Attributes:
        document: The retrievable payload
        vector_score: Rank-derived score from the vector list (0 if absent)
        graph_score: Rank-derived score from the graph list (0 if absent)
        fused_score: Score under the active fusion law
        rank: 1-based position after the most recent sort
        related_nodes: Graph nodes matched to this candidate
        metadata: Annotations added by later phases
        in_vector: Candidate came from the vector list
        in_graph: Candidate came from the graph list
        arrival: First-seen position across vector-then-graph input,
                 used as the deterministic tie-breaker
    """

    document: Document
    vector_score: float = 0.0
    graph_score: float = 0.0
    fused_score: float = 0.0
    rank: int = 0
    related_nodes: list[GraphNode] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    in_vector: bool = False
    in_graph: bool = False
    arrival: int = 0


@dataclass
class ContextInfo:
    """Graph neighborhood summary attached to a candidate."""

    related_entities: list[str] = field(default_factory=list)
    relationship_paths: list[str] = field(default_factory=list)
    neighbor_count: int = 0
    graph_depth: int = 0
    additional_context: str = ""


@dataclass
class SearchOptions:
    """Per-call overrides. Any field left as None takes the retriever default.

    Attributes:
        mode: hybrid / vector / graph
        k: Maximum number of documents returned
        vector_weight: Weight for vector scores under weighted fusion
        graph_weight: Weight for graph scores under weighted fusion
        max_traverse_depth: Hops expanded from each query entity
        fusion_strategy: weighted / rrf / max / min
        rerank_strategy: score / diversity / mmr
        enable_context_augmentation: Attach graph context to results
        min_score: Post-fusion score floor
        mmr_lambda: Relevance/diversity trade-off for MMR
        rrf_constant: k constant for reciprocal rank fusion
    """

    mode: SearchMode | str | None = None
    k: int | None = None
    vector_weight: float | None = None
    graph_weight: float | None = None
    max_traverse_depth: int | None = None
    fusion_strategy: FusionStrategy | str | None = None
    rerank_strategy: RerankStrategy | str | None = None
    enable_context_augmentation: bool | None = None
    min_score: float | None = None
    mmr_lambda: float | None = None
    rrf_constant: float | None = None


@dataclass(frozen=True)
class ResolvedSearchOptions:
    """Fully populated options for one call (defaults merged in)."""

    mode: SearchMode = SearchMode.HYBRID
    k: int = 10
    vector_weight: float = 0.6
    graph_weight: float = 0.4
    max_traverse_depth: int = 2
    fusion_strategy: FusionStrategy = FusionStrategy.WEIGHTED
    rerank_strategy: RerankStrategy = RerankStrategy.SCORE
    enable_context_augmentation: bool = True
    min_score: float = 0.0
    mmr_lambda: float = 0.5
    rrf_constant: float = 60.0


@dataclass
class Statistics:
    """Observational counters and timings for one search call.

    Times are in milliseconds.
    """

    vector_results_count: int = 0
    graph_results_count: int = 0
    fused_results_count: int = 0
    entities_extracted: int = 0
    nodes_traversed: int = 0
    vector_search_time: float = 0.0
    graph_search_time: float = 0.0
    fusion_time: float = 0.0
    rerank_time: float = 0.0
    augmentation_time: float = 0.0
    total_time: float = 0.0
    degraded_modalities: list[str] = field(default_factory=list)
    correlation_id: str | None = None


@dataclass
class GraphRetrieval:
    """Nodes and edges gathered by the entity -> traversal branch."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    depths: dict[str, int] = field(default_factory=dict)
