"""
Unit tests for score fusion.

Covers the four fusion laws, rank-derived scores, de-duplication by
document identity, deterministic tie-breaking and rank assignment.
"""

from __future__ import annotations

import pytest
from langchain_core.documents import Document

from graphrag_engine.graph.models import GraphNode
from graphrag_engine.search.fusion import (
    FusionEngine,
    document_key,
    explain_score,
    node_to_document,
)
from graphrag_engine.search.models import FusedResult, FusionStrategy

# =============================================================================
# Helpers
# =============================================================================


def make_doc(doc_id: str, content: str | None = None) -> Document:
    return Document(page_content=content or f"content of {doc_id}", id=doc_id)


def make_node(node_id: str, label: str | None = None) -> GraphNode:
    return GraphNode(id=node_id, type="Concept", label=label or node_id.upper())


def by_id(results: list[FusedResult]) -> dict[str, FusedResult]:
    return {document_key(r.document): r for r in results}


@pytest.fixture
def engine() -> FusionEngine:
    return FusionEngine()


@pytest.fixture
def scenario_lists() -> tuple[list[Document], list[GraphNode]]:
    """Vector [d1, d2] and graph [d2, d3]: d2 is found by both."""
    return [make_doc("d1"), make_doc("d2")], [make_node("d2"), make_node("d3")]


# =============================================================================
# Test: Candidate Identity and Conversion
# =============================================================================


class TestDocumentKey:
    """Tests for the de-duplication key."""

    def test_uses_document_id(self) -> None:
        """Document.id is the primary key."""
        assert document_key(Document(page_content="x", id="abc")) == "abc"

    def test_falls_back_to_metadata_id(self) -> None:
        """metadata['id'] is used when Document.id is unset."""
        doc = Document(page_content="x", metadata={"id": "meta-1"})
        assert document_key(doc) == "meta-1"

    def test_falls_back_to_content_prefix(self) -> None:
        """Without any ID the first 100 characters identify the document."""
        content = "a" * 150
        assert document_key(Document(page_content=content)) == "a" * 100


class TestNodeToDocument:
    """Tests for converting graph nodes into documents."""

    def test_content_from_type_and_label(self) -> None:
        """Content is '{type}: {label}'."""
        doc = node_to_document(GraphNode(id="n1", type="Person", label="Alice"))
        assert doc.page_content == "Person: Alice"
        assert doc.id == "n1"

    def test_description_appended(self) -> None:
        """A description property is added on its own line."""
        node = GraphNode(
            id="n1",
            type="Person",
            label="Alice",
            properties={"description": "Engineer"},
        )
        assert node_to_document(node).page_content == "Person: Alice\nEngineer"

    def test_properties_copied_to_metadata(self) -> None:
        """All node properties land in metadata next to the entity fields."""
        node = GraphNode(id="n1", type="Person", label="Alice", properties={"age": 30})
        metadata = node_to_document(node).metadata
        assert metadata["entity_id"] == "n1"
        assert metadata["entity_type"] == "Person"
        assert metadata["entity_label"] == "Alice"
        assert metadata["age"] == 30


# =============================================================================
# Test: Fusion Laws
# =============================================================================


class TestWeightedFusion:
    """Tests for the weighted law."""

    def test_shared_candidate_ranks_first(self, engine: FusionEngine, scenario_lists) -> None:
        """A document found by both sources outranks single-source hits."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(vector_docs, graph_nodes, strategy="weighted")

        scores = by_id(results)
        assert scores["d2"].rank == 1
        assert scores["d2"].fused_score == pytest.approx(0.75)
        assert scores["d1"].fused_score == pytest.approx(0.5)
        assert scores["d3"].fused_score == pytest.approx(0.25)

    def test_weights_are_normalized(self, engine: FusionEngine, scenario_lists) -> None:
        """Weights need not sum to 1."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(
            vector_docs,
            graph_nodes,
            strategy=FusionStrategy.WEIGHTED,
            vector_weight=0.2,
            graph_weight=0.2,
        )
        assert by_id(results)["d2"].fused_score == pytest.approx(0.75)

    def test_zero_weights_fall_back_to_max(self, engine: FusionEngine, scenario_lists) -> None:
        """Both weights zero behaves like the max law."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(
            vector_docs,
            graph_nodes,
            strategy="weighted",
            vector_weight=0.0,
            graph_weight=0.0,
        )
        scores = by_id(results)
        assert scores["d1"].fused_score == pytest.approx(1.0)
        assert scores["d2"].fused_score == pytest.approx(1.0)
        assert scores["d3"].fused_score == pytest.approx(0.5)

    def test_scores_within_unit_interval(self, engine: FusionEngine) -> None:
        """Weighted scores stay in [0, 1]."""
        vector_docs = [make_doc(f"v{i}") for i in range(7)]
        graph_nodes = [make_node(f"v{i}") for i in range(3, 12)]
        results = engine.fuse(vector_docs, graph_nodes, vector_weight=0.9, graph_weight=0.3)
        assert all(0.0 <= r.fused_score <= 1.0 for r in results)


class TestRRFFusion:
    """Tests for reciprocal rank fusion."""

    def test_rrf_scores(self, engine: FusionEngine, scenario_lists) -> None:
        """Scores are 1 / (k + i + 1), summed across lists."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(vector_docs, graph_nodes, strategy="rrf")

        scores = by_id(results)
        assert scores["d1"].fused_score == pytest.approx(1 / 61)
        assert scores["d2"].fused_score == pytest.approx(1 / 62 + 1 / 61)
        assert scores["d3"].fused_score == pytest.approx(1 / 62)
        assert scores["d2"].rank == 1

    def test_custom_constant(self, engine: FusionEngine) -> None:
        """rrf_constant replaces the default 60."""
        results = engine.fuse([make_doc("d1")], [], strategy="rrf", rrf_constant=1.0)
        assert results[0].fused_score == pytest.approx(0.5)

    def test_rejects_non_positive_constant(self, engine: FusionEngine) -> None:
        """rrf_constant must be > 0."""
        with pytest.raises(ValueError, match="rrf_constant"):
            engine.fuse([make_doc("d1")], [], strategy="rrf", rrf_constant=0)

    def test_scores_within_unit_interval(self, engine: FusionEngine) -> None:
        """RRF sums stay in [0, 1]."""
        results = engine.fuse(
            [make_doc("a"), make_doc("b")],
            [make_node("a")],
            strategy="rrf",
        )
        assert all(0.0 <= r.fused_score <= 1.0 for r in results)


class TestMaxFusion:
    """Tests for the max law."""

    def test_takes_larger_score(self, engine: FusionEngine, scenario_lists) -> None:
        """Fused score is exactly one of the two inputs."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(vector_docs, graph_nodes, strategy="max")

        d2 = by_id(results)["d2"]
        assert d2.vector_score == pytest.approx(0.5)
        assert d2.graph_score == pytest.approx(1.0)
        assert d2.fused_score == d2.graph_score

    def test_ties_broken_by_arrival(self, engine: FusionEngine, scenario_lists) -> None:
        """d1 and d2 both score 1.0; d1 arrived first."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(vector_docs, graph_nodes, strategy="max")
        assert [document_key(r.document) for r in results] == ["d1", "d2", "d3"]


class TestMinFusion:
    """Tests for the min law."""

    def test_shared_candidate_takes_smaller(self, engine: FusionEngine, scenario_lists) -> None:
        """Candidates found by both sources get the smaller score."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(vector_docs, graph_nodes, strategy="min")
        assert by_id(results)["d2"].fused_score == pytest.approx(0.5)

    def test_single_source_keeps_its_score(self, engine: FusionEngine, scenario_lists) -> None:
        """Single-modality hits are not zeroed out."""
        vector_docs, graph_nodes = scenario_lists
        scores = by_id(engine.fuse(vector_docs, graph_nodes, strategy="min"))
        assert scores["d1"].fused_score == pytest.approx(1.0)
        assert scores["d3"].fused_score == pytest.approx(0.5)

    def test_identical_lists_keep_order(self, engine: FusionEngine) -> None:
        """Same candidates in both lists: fused equals the shared score."""
        ids = ["a", "b", "c"]
        results = engine.fuse(
            [make_doc(i) for i in ids],
            [make_node(i) for i in ids],
            strategy="min",
        )
        assert [document_key(r.document) for r in results] == ids
        for r in results:
            assert r.fused_score == pytest.approx(r.vector_score)
            assert r.vector_score == pytest.approx(r.graph_score)


# =============================================================================
# Test: Invariants
# =============================================================================


class TestFusionInvariants:
    """Tests for de-duplication, ranks and determinism."""

    def test_shared_candidate_appears_once(self, engine: FusionEngine, scenario_lists) -> None:
        """A document in both lists is merged, never duplicated."""
        vector_docs, graph_nodes = scenario_lists
        results = engine.fuse(vector_docs, graph_nodes)

        keys = [document_key(r.document) for r in results]
        assert keys.count("d2") == 1
        assert len(results) <= len(vector_docs) + len(graph_nodes)
        d2 = by_id(results)["d2"]
        assert d2.in_vector and d2.in_graph
        assert [node.id for node in d2.related_nodes] == ["d2"]

    def test_merged_candidate_keeps_vector_document(self, engine: FusionEngine) -> None:
        """The vector document's content survives the merge."""
        results = engine.fuse([make_doc("d1", "vector text")], [make_node("d1")])
        assert results[0].document.page_content == "vector text"

    def test_duplicate_within_list_keeps_first(self, engine: FusionEngine) -> None:
        """A repeated key in one list keeps its first (best) score."""
        results = engine.fuse([make_doc("a"), make_doc("b"), make_doc("a")], [])
        assert len(results) == 2
        assert by_id(results)["a"].vector_score == pytest.approx(1.0)

    def test_ranks_are_contiguous(self, engine: FusionEngine) -> None:
        """Ranks run 1..N with non-increasing fused scores."""
        results = engine.fuse(
            [make_doc(f"v{i}") for i in range(5)],
            [make_node(f"g{i}") for i in range(4)],
            strategy="weighted",
        )
        assert [r.rank for r in results] == list(range(1, len(results) + 1))
        scores = [r.fused_score for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_missing_modality_scores_zero(self, engine: FusionEngine) -> None:
        """Empty graph list: every candidate has graph_score 0, vector order kept."""
        docs = [make_doc(f"v{i}") for i in range(4)]
        results = engine.fuse(docs, [])
        assert [document_key(r.document) for r in results] == ["v0", "v1", "v2", "v3"]
        assert all(r.graph_score == 0.0 for r in results)

    def test_empty_inputs(self, engine: FusionEngine) -> None:
        """No inputs, no candidates."""
        assert engine.fuse([], []) == []

    def test_deterministic(self, engine: FusionEngine) -> None:
        """Two runs over the same input give the same order and scores."""
        docs = [make_doc(f"x{i}") for i in range(6)]
        nodes = [make_node(f"x{i}") for i in range(6)]

        first = engine.fuse(docs, nodes, strategy="max")
        second = engine.fuse(docs, nodes, strategy="max")

        assert [(document_key(r.document), r.fused_score) for r in first] == [
            (document_key(r.document), r.fused_score) for r in second
        ]

    def test_records_strategy_in_metadata(self, engine: FusionEngine) -> None:
        """The active law is recorded on every candidate."""
        results = engine.fuse([make_doc("a")], [], strategy="rrf")
        assert results[0].metadata["fusion_strategy"] == "rrf"

    def test_invalid_strategy(self, engine: FusionEngine) -> None:
        """Unknown law names raise ValueError listing the valid ones."""
        with pytest.raises(ValueError, match="weighted"):
            engine.fuse([make_doc("a")], [], strategy="average")


# =============================================================================
# Test: explain_score
# =============================================================================


class TestExplainScore:
    """Tests for the human-readable score explanation."""

    def test_weighted_explanation(self) -> None:
        """Shows the law, fused score and both inputs."""
        result = FusedResult(
            document=make_doc("a"),
            vector_score=0.5,
            graph_score=1.0,
            fused_score=0.75,
        )
        assert explain_score(result, "weighted") == "Weighted: 0.750 (vector: 0.500, graph: 1.000)"

    def test_rrf_label(self) -> None:
        """RRF keeps its acronym."""
        result = FusedResult(document=make_doc("a"), fused_score=0.1)
        assert explain_score(result, FusionStrategy.RRF).startswith("RRF: 0.100")

    def test_unknown_strategy(self) -> None:
        """Unknown laws fall back to the bare score."""
        result = FusedResult(document=make_doc("a"), fused_score=0.42)
        assert explain_score(result, "other") == "Score: 0.420"
