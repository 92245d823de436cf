"""
Pytest configuration and fixtures for graphrag-engine tests.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from langchain_core.documents import Document

from graphrag_engine.core.config import RetrieverSettings
from graphrag_engine.graph.models import Entity, GraphEdge, GraphNode
from graphrag_engine.graph.store import InMemoryGraphStore
from graphrag_engine.search.vector import InMemoryVectorStore
from tests.fakes import FakeEntityExtractor


@pytest.fixture
def settings() -> RetrieverSettings:
    """Provide test settings with the library defaults made explicit."""
    return RetrieverSettings(
        top_k=10,
        vector_weight=0.6,
        graph_weight=0.4,
        max_traverse_depth=2,
        neo4j_uri="bolt://localhost:7687",
        neo4j_user="neo4j",
        neo4j_password="testpassword",
        qdrant_url="http://localhost:6333",
        qdrant_collection="test_documents",
    )


@pytest.fixture
def graph_nodes() -> list[GraphNode]:
    """Small knowledge graph: a person, their employer and its city."""
    return [
        GraphNode(
            id="person-1",
            type="Person",
            label="John Smith",
            properties={"description": "Senior engineer"},
        ),
        GraphNode(id="org-1", type="Organization", label="TechCorp"),
        GraphNode(id="location-1", type="Location", label="San Francisco"),
    ]


@pytest.fixture
def graph_edges() -> list[GraphEdge]:
    """WORKS_FOR and LOCATED_IN relationships."""
    return [
        GraphEdge(id="edge-1", source="person-1", target="org-1", type="WORKS_FOR"),
        GraphEdge(id="edge-2", source="org-1", target="location-1", type="LOCATED_IN"),
    ]


@pytest_asyncio.fixture
async def graph_store(
    graph_nodes: list[GraphNode],
    graph_edges: list[GraphEdge],
) -> InMemoryGraphStore:
    """Connected in-memory graph store loaded with the sample graph."""
    store = InMemoryGraphStore(nodes=graph_nodes, edges=graph_edges)
    await store.connect()
    return store


@pytest.fixture
def vector_documents() -> list[Document]:
    """Documents returned by the fake vector store, most relevant first."""
    return [
        Document(
            page_content="John Smith leads the platform team at TechCorp.",
            metadata={"source": "doc1"},
            id="doc-1",
        ),
        Document(
            page_content="TechCorp opened a new office in San Francisco.",
            metadata={"source": "doc2"},
            id="doc-2",
        ),
        Document(
            page_content="Quarterly report on cloud infrastructure spending.",
            metadata={"source": "doc3"},
            id="doc-3",
        ),
    ]


@pytest.fixture
def vector_store(vector_documents: list[Document]) -> InMemoryVectorStore:
    """Scripted vector store returning vector_documents in order."""
    return InMemoryVectorStore(documents=vector_documents, scripted=True)


@pytest.fixture
def entity_extractor() -> FakeEntityExtractor:
    """Extractor that recognises John Smith."""
    return FakeEntityExtractor([Entity(id="person-1", name="John Smith", type="Person")])
