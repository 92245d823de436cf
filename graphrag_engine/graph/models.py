"""
Graph data model shared by graph stores and the retrieval pipeline.

Nodes, edges and paths are plain dataclasses so that any store
(in-memory, Neo4j, ...) can produce them and the retriever can consume
them read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =============================================================================
# Enums for Traversal Configuration
# =============================================================================


class Direction(str, Enum):
    """Which edges a traversal may follow from the current node.

    - OUTBOUND: source -> target only
    - INBOUND: target -> source only
    - BOTH: either way
    """

    OUTBOUND = "outbound"
    INBOUND = "inbound"
    BOTH = "both"


class TraversalStrategy(str, Enum):
    """Order in which a traversal expands the frontier."""

    BFS = "bfs"
    DFS = "dfs"


class PathAlgorithm(str, Enum):
    """Shortest-path algorithm.

    - BFS: fewest hops; cost is reported as the sum of edge weights
      along that path, which is only minimal when weights are uniform
    - DIJKSTRA: minimum total edge weight
    """

    BFS = "bfs"
    DIJKSTRA = "dijkstra"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class GraphNode:
    """A node in the knowledge graph.

    Attributes:
        id: Unique identifier
        type: Node type, e.g. "Person", "Organization", "Concept"
        label: Display name
        properties: Node properties (description, aliases, ...)
        metadata: Store-side annotations that do not take part in queries
    """

    id: str
    type: str = ""
    label: str = ""
    properties: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def copy(self) -> GraphNode:
        """Return a copy with independent property/metadata dicts."""
        return GraphNode(
            id=self.id,
            type=self.type,
            label=self.label,
            properties=dict(self.properties),
            metadata=dict(self.metadata),
        )


@dataclass
class GraphEdge:
    """A relationship between two nodes.

    Attributes:
        id: Unique identifier
        source: Source node ID
        target: Target node ID
        type: Relationship type, e.g. "WORKS_FOR"
        label: Display name
        properties: Edge properties
        weight: Edge weight used for path cost
        directed: Whether the edge is directed
    """

    id: str
    source: str
    target: str
    type: str = ""
    label: str = ""
    properties: dict[str, Any] = field(default_factory=dict)
    weight: float = 1.0
    directed: bool = True

    def copy(self) -> GraphEdge:
        """Return a copy with an independent property dict."""
        return GraphEdge(
            id=self.id,
            source=self.source,
            target=self.target,
            type=self.type,
            label=self.label,
            properties=dict(self.properties),
            weight=self.weight,
            directed=self.directed,
        )


@dataclass
class GraphPath:
    """An ordered path through the graph.

    Attributes:
        nodes: Nodes from start to end (inclusive)
        edges: Edges between consecutive nodes
        cost: Sum of traversed edge weights
        length: Number of edges (hop count)
    """

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    cost: float = 0.0
    length: int = 0


@dataclass
class TraverseOptions:
    """Options for a single traversal.

    Attributes:
        max_depth: Maximum number of hops from the start node
        direction: Edge direction filter
        strategy: BFS or DFS expansion
        limit: Maximum number of nodes returned (0 = unlimited)
        edge_types: Only follow these relationship types (empty = all)
        node_types: Only expand into these node types (empty = all)
    """

    max_depth: int = 2
    direction: Direction = Direction.BOTH
    strategy: TraversalStrategy = TraversalStrategy.BFS
    limit: int = 0
    edge_types: list[str] = field(default_factory=list)
    node_types: list[str] = field(default_factory=list)


@dataclass
class TraverseResult:
    """Nodes and edges reached by a traversal.

    Attributes:
        nodes: Visited nodes in visit order (start node first)
        edges: Edges followed to reach new nodes
        depths: Hop distance from the start node, keyed by node ID
    """

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    depths: dict[str, int] = field(default_factory=dict)


@dataclass
class Entity:
    """An entity recognised in query text.

    Attributes:
        id: Graph node ID the entity resolves to
        name: Surface name found in the text
        type: Entity type
    """

    id: str
    name: str = ""
    type: str = ""
