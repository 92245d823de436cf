"""
Context augmentation: turns ranked candidates back into Documents.

Every document gets its score metadata (fused/vector/graph score, rank,
fusion strategy). Candidates matched to graph nodes also get the related
entities, relationship paths, neighbor count, graph depth, and a
"Related Entities: ..." line appended to the content.

The appended line is also stored under metadata["graph_context"], and
any previously appended line is removed before appending again, so
augmenting an already-augmented document does not repeat the text.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from langchain_core.documents import Document

from graphrag_engine.graph.models import GraphNode
from graphrag_engine.search.models import ContextInfo, FusedResult, GraphRetrieval

logger = logging.getLogger(__name__)

_SEPARATOR = "\n\n"
_GRAPH_CONTEXT_KEY = "graph_context"
_STRUCTURE_CONTEXT_KEY = "structure_context"
_DEFAULT_GRAPH_DEPTH = 1


# =============================================================================
# Document Helpers
# =============================================================================


def _clone(document: Document) -> Document:
    return Document(
        page_content=document.page_content,
        metadata=dict(document.metadata),
        id=document.id,
    )


def _append_context(document: Document, key: str, text: str) -> None:
    """Append text to content once, replacing an earlier append under key."""
    content = document.page_content
    previous = document.metadata.get(key)
    if isinstance(previous, str) and previous and content.endswith(_SEPARATOR + previous):
        content = content[: -len(_SEPARATOR + previous)]
    document.page_content = content + _SEPARATOR + text
    document.metadata[key] = text


def attach_scores(result: FusedResult) -> Document:
    """Copy of the candidate's document with score and rank metadata."""
    document = _clone(result.document)
    document.metadata["fused_score"] = result.fused_score
    document.metadata["vector_score"] = result.vector_score
    document.metadata["graph_score"] = result.graph_score
    document.metadata["rank"] = result.rank
    if "fusion_strategy" in result.metadata:
        document.metadata["fusion_strategy"] = result.metadata["fusion_strategy"]
    return document


# =============================================================================
# Context Building
# =============================================================================


def build_context_info(
    result: FusedResult,
    graph: GraphRetrieval | None = None,
) -> ContextInfo:
    """Summarize the graph neighborhood of one candidate.

    Args:
        result: Candidate with related_nodes from fusion
        graph: Traversal output (nodes, edges, depths) for this call

    Returns:
        ContextInfo; empty when the candidate has no related nodes
    """
    info = ContextInfo(neighbor_count=len(result.related_nodes))
    if not result.related_nodes:
        return info

    entities: list[str] = []
    for node in result.related_nodes:
        if not node.label:
            continue
        entry = f"{node.label} ({node.type})"
        if entry not in entities:
            entities.append(entry)
    info.related_entities = entities

    if graph is not None:
        info.relationship_paths = _relationship_paths(result.related_nodes, graph)
        depths = [graph.depths[node.id] for node in result.related_nodes if node.id in graph.depths]
        info.graph_depth = min(depths) if depths else _DEFAULT_GRAPH_DEPTH
    else:
        info.graph_depth = _DEFAULT_GRAPH_DEPTH

    if entities:
        info.additional_context = "Related Entities: " + ", ".join(entities)
    return info


def _relationship_paths(related: list[GraphNode], graph: GraphRetrieval) -> list[str]:
    related_ids = {node.id for node in related}
    labels = {node.id: node.label or node.id for node in graph.nodes}
    labels.update({node.id: node.label or node.id for node in related})

    paths: list[str] = []
    for edge in graph.edges:
        if edge.source not in related_ids and edge.target not in related_ids:
            continue
        source = labels.get(edge.source, edge.source)
        target = labels.get(edge.target, edge.target)
        path = f"{source} -[{edge.type or edge.label}]-> {target}"
        if path not in paths:
            paths.append(path)
    return paths


def augment_context(
    results: list[FusedResult],
    graph: GraphRetrieval | None = None,
) -> list[Document]:
    """Convert ranked candidates to Documents with graph context attached.

    Args:
        results: Ranked candidates
        graph: Traversal output used for relationship paths and depth

    Returns:
        One Document per candidate, same order
    """
    documents = []
    for result in results:
        document = attach_scores(result)

        if result.related_nodes:
            info = build_context_info(result, graph)
            if info.related_entities:
                document.metadata["related_entities"] = info.related_entities
            if info.relationship_paths:
                document.metadata["relationship_paths"] = info.relationship_paths
            document.metadata["neighbor_count"] = info.neighbor_count
            document.metadata["graph_depth"] = info.graph_depth
            if info.additional_context:
                _append_context(document, _GRAPH_CONTEXT_KEY, info.additional_context)

        documents.append(document)

    logger.debug("Augmented %d documents with graph context", len(documents))
    return documents


def enhance_with_graph_structure(
    document: Document,
    node: GraphNode | None = None,
    neighbors: Iterable[GraphNode] = (),
) -> Document:
    """Copy node identity and neighborhood into a document.

    Adds node_id / node_type / node_label and node_<property> metadata,
    plus neighbors / neighbor_count and a "Connected to: ..." line when
    there are neighbors.
    """
    enhanced = _clone(document)

    if node is not None:
        enhanced.metadata["node_id"] = node.id
        enhanced.metadata["node_type"] = node.type
        enhanced.metadata["node_label"] = node.label
        for key, value in node.properties.items():
            enhanced.metadata[f"node_{key}"] = value

    labels = [neighbor.label for neighbor in neighbors]
    if labels:
        enhanced.metadata["neighbors"] = labels
        enhanced.metadata["neighbor_count"] = len(labels)
        _append_context(enhanced, _STRUCTURE_CONTEXT_KEY, "Connected to: " + ", ".join(labels))

    return enhanced


def format_context_for_llm(
    documents: list[Document],
    include_metadata: bool = False,
) -> str:
    """Render documents as a numbered context block for a prompt.

    Example:
        Context:

        Document 1:
        Alice works at Acme.
        Metadata:
          Related Entities: Alice (Person)
          Relevance Score: 0.850

        ---
    """
    parts = ["Context:\n\n"]

    for i, document in enumerate(documents, start=1):
        parts.append(f"Document {i}:\n")
        parts.append(_compose_content(document))
        parts.append("\n")

        metadata: dict[str, Any] = document.metadata
        if include_metadata and metadata:
            parts.append("Metadata:\n")
            entities = metadata.get("related_entities")
            if entities:
                parts.append(f"  Related Entities: {', '.join(entities)}\n")
            score = metadata.get("fused_score")
            if isinstance(score, (int, float)):
                parts.append(f"  Relevance Score: {score:.3f}\n")

        parts.append("\n---\n\n")

    return "".join(parts)


def _compose_content(document: Document) -> str:
    """Content with the stored graph context line, added if missing."""
    content = document.page_content
    graph_context = document.metadata.get(_GRAPH_CONTEXT_KEY)
    if isinstance(graph_context, str) and graph_context and graph_context not in content:
        content = content + _SEPARATOR + graph_context
    return content
