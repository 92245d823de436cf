"""
Graph store interface and in-memory implementation.

The retriever only needs three read operations from a graph store:
- traverse: BFS/DFS expansion from a seed node
- shortest_path: path between two nodes
- get_node: node lookup by ID

Design follows:
- Repository pattern: stores are interchangeable behind a Protocol
- Duck typing: InMemoryGraphStore, Neo4jGraphStore or any other class
  providing these coroutines can be injected
- InMemoryGraphStore doubles as the fake used in unit tests
"""

from __future__ import annotations

import asyncio
import heapq
from collections import deque
from typing import Any, Protocol, runtime_checkable

from graphrag_engine.graph.exceptions import (
    GraphStoreConnectionError,
    NodeNotFoundError,
    NoPathFoundError,
)
from graphrag_engine.graph.models import (
    Direction,
    GraphEdge,
    GraphNode,
    GraphPath,
    PathAlgorithm,
    TraversalStrategy,
    TraverseOptions,
    TraverseResult,
)

# =============================================================================
# Protocol for Duck Typing
# =============================================================================


@runtime_checkable
class GraphStoreProtocol(Protocol):
    """Read interface the retriever requires from a graph store."""

    async def traverse(
        self,
        start_id: str,
        options: TraverseOptions | None = None,
    ) -> TraverseResult:
        """Expand the graph from start_id."""
        ...

    async def shortest_path(
        self,
        start_id: str,
        end_id: str,
        max_depth: int = 0,
        algorithm: PathAlgorithm = PathAlgorithm.BFS,
    ) -> GraphPath:
        """Find a path between two nodes."""
        ...

    async def get_node(self, node_id: str) -> GraphNode:
        """Fetch a node by ID."""
        ...


# =============================================================================
# InMemoryGraphStore
# =============================================================================


class InMemoryGraphStore:
    """Dict-backed graph store.

    Nodes and edges are kept in insertion order, so traversal output is
    deterministic for a given build sequence.

    Usage:
        store = InMemoryGraphStore()
        async with store:
            store.add_node(GraphNode(id="person-1", type="Person", label="John"))
            store.add_node(GraphNode(id="org-1", type="Organization", label="TechCorp"))
            store.add_edge(GraphEdge(id="e1", source="person-1", target="org-1", type="WORKS_FOR"))

            result = await store.traverse("person-1", TraverseOptions(max_depth=2))
            path = await store.shortest_path("person-1", "org-1")
    """

    def __init__(
        self,
        nodes: list[GraphNode] | None = None,
        edges: list[GraphEdge] | None = None,
    ) -> None:
        """Initialize the store, optionally pre-loaded.

        Args:
            nodes: Initial nodes
            edges: Initial edges (endpoints must exist)
        """
        self._nodes: dict[str, GraphNode] = {}
        self._edges: dict[str, GraphEdge] = {}
        self._connected = False
        self.add_nodes(nodes or [])
        self.add_edges(edges or [])

    # =========================================================================
    # Connection Management
    # =========================================================================

    @property
    def is_connected(self) -> bool:
        """Check if store is 'connected'."""
        return self._connected

    async def connect(self) -> None:
        """Simulate connecting (always succeeds)."""
        await asyncio.sleep(0)  # Yield to event loop
        self._connected = True

    async def close(self) -> None:
        """Simulate closing the connection."""
        await asyncio.sleep(0)  # Yield to event loop
        self._connected = False

    async def __aenter__(self) -> InMemoryGraphStore:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise GraphStoreConnectionError("Graph store not connected")

    # =========================================================================
    # Mutation (build-time only)
    # =========================================================================

    def add_node(self, node: GraphNode) -> None:
        """Add or replace a node.

        Raises:
            ValueError: If the node has no ID
        """
        if not node.id:
            raise ValueError("Node ID must not be empty")
        self._nodes[node.id] = node.copy()

    def add_nodes(self, nodes: list[GraphNode]) -> None:
        """Add several nodes."""
        for node in nodes:
            self.add_node(node)

    def add_edge(self, edge: GraphEdge) -> None:
        """Add or replace an edge.

        Raises:
            ValueError: If the edge has no ID
            NodeNotFoundError: If an endpoint is missing
        """
        if not edge.id:
            raise ValueError("Edge ID must not be empty")
        for endpoint in (edge.source, edge.target):
            if endpoint not in self._nodes:
                raise NodeNotFoundError(endpoint)
        self._edges[edge.id] = edge.copy()

    def add_edges(self, edges: list[GraphEdge]) -> None:
        """Add several edges."""
        for edge in edges:
            self.add_edge(edge)

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def get_node(self, node_id: str) -> GraphNode:
        """Fetch a copy of a node.

        Raises:
            GraphStoreConnectionError: If not connected
            NodeNotFoundError: If the node does not exist
        """
        await asyncio.sleep(0)  # Yield to event loop
        self._ensure_connected()
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node.copy()

    async def traverse(
        self,
        start_id: str,
        options: TraverseOptions | None = None,
    ) -> TraverseResult:
        """Expand the graph from a start node.

        The start node is the first node of the result. Each node is
        visited at most once; expansion stops at max_depth hops or once
        limit nodes have been collected.

        Args:
            start_id: Seed node ID
            options: Traversal options (defaults: depth 2, both directions, BFS)

        Returns:
            TraverseResult with visited nodes, followed edges and depths

        Raises:
            GraphStoreConnectionError: If not connected
            NodeNotFoundError: If start_id does not exist
        """
        await asyncio.sleep(0)  # Yield to event loop
        self._ensure_connected()
        opts = options or TraverseOptions()
        if start_id not in self._nodes:
            raise NodeNotFoundError(start_id)

        if opts.strategy == TraversalStrategy.DFS:
            return self._dfs(start_id, opts)
        return self._bfs(start_id, opts)

    async def shortest_path(
        self,
        start_id: str,
        end_id: str,
        max_depth: int = 0,
        algorithm: PathAlgorithm = PathAlgorithm.BFS,
    ) -> GraphPath:
        """Find a path between two nodes, ignoring edge direction.

        With BFS the path has the fewest hops and its cost is the sum of
        the traversed edge weights; that cost is only minimal when all
        weights are equal. Use DIJKSTRA for minimum-cost paths.

        Args:
            start_id: Start node ID
            end_id: End node ID
            max_depth: Maximum hops (0 = unlimited)
            algorithm: BFS or DIJKSTRA

        Raises:
            GraphStoreConnectionError: If not connected
            NodeNotFoundError: If either endpoint does not exist
            NoPathFoundError: If the nodes are not connected within max_depth
        """
        await asyncio.sleep(0)  # Yield to event loop
        self._ensure_connected()
        for node_id in (start_id, end_id):
            if node_id not in self._nodes:
                raise NodeNotFoundError(node_id)

        if algorithm == PathAlgorithm.DIJKSTRA:
            parents = self._dijkstra(start_id, end_id, max_depth)
        else:
            parents = self._bfs_parents(start_id, end_id, max_depth)

        if parents is None:
            raise NoPathFoundError(start_id, end_id)
        return self._build_path(start_id, end_id, parents)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _neighbors(
        self,
        node_id: str,
        direction: Direction,
        edge_types: list[str] | None = None,
    ) -> list[tuple[str, GraphEdge]]:
        """List (neighbor_id, edge) pairs reachable from node_id."""
        pairs: list[tuple[str, GraphEdge]] = []
        for edge in self._edges.values():
            if edge_types and edge.type not in edge_types:
                continue
            if edge.source == node_id and direction in (Direction.OUTBOUND, Direction.BOTH):
                pairs.append((edge.target, edge))
            elif edge.target == node_id and direction in (Direction.INBOUND, Direction.BOTH):
                pairs.append((edge.source, edge))
        return pairs

    def _allowed(self, node_id: str, opts: TraverseOptions) -> bool:
        if not opts.node_types:
            return True
        return self._nodes[node_id].type in opts.node_types

    def _limit_reached(self, result: TraverseResult, opts: TraverseOptions) -> bool:
        return opts.limit > 0 and len(result.nodes) >= opts.limit

    def _bfs(self, start_id: str, opts: TraverseOptions) -> TraverseResult:
        result = TraverseResult()
        discovered: set[str] = {start_id}
        # Each entry carries the edge it was discovered through
        queue: deque[tuple[str, int, GraphEdge | None]] = deque([(start_id, 0, None)])

        while queue and not self._limit_reached(result, opts):
            current_id, depth, via = queue.popleft()
            result.nodes.append(self._nodes[current_id].copy())
            result.depths[current_id] = depth
            if via is not None:
                result.edges.append(via.copy())

            if depth >= opts.max_depth:
                continue

            for neighbor_id, edge in self._neighbors(current_id, opts.direction, opts.edge_types):
                if neighbor_id in discovered or not self._allowed(neighbor_id, opts):
                    continue
                discovered.add(neighbor_id)
                queue.append((neighbor_id, depth + 1, edge))

        return result

    def _dfs(self, start_id: str, opts: TraverseOptions) -> TraverseResult:
        result = TraverseResult()
        visited: set[str] = set()

        def _visit(node_id: str, depth: int) -> None:
            if node_id in visited or self._limit_reached(result, opts):
                return
            visited.add(node_id)
            result.nodes.append(self._nodes[node_id].copy())
            result.depths[node_id] = depth

            if depth >= opts.max_depth:
                return

            for neighbor_id, edge in self._neighbors(node_id, opts.direction, opts.edge_types):
                if neighbor_id in visited or not self._allowed(neighbor_id, opts):
                    continue
                if self._limit_reached(result, opts):
                    return
                result.edges.append(edge.copy())
                _visit(neighbor_id, depth + 1)

        _visit(start_id, 0)
        return result

    def _bfs_parents(
        self,
        start_id: str,
        end_id: str,
        max_depth: int,
    ) -> dict[str, tuple[str, GraphEdge]] | None:
        parents: dict[str, tuple[str, GraphEdge]] = {}
        visited: set[str] = {start_id}
        queue: deque[tuple[str, int]] = deque([(start_id, 0)])

        while queue:
            current_id, depth = queue.popleft()
            if current_id == end_id:
                return parents
            if max_depth and depth >= max_depth:
                continue
            for neighbor_id, edge in self._neighbors(current_id, Direction.BOTH):
                if neighbor_id not in visited:
                    visited.add(neighbor_id)
                    parents[neighbor_id] = (current_id, edge)
                    queue.append((neighbor_id, depth + 1))

        return None

    def _dijkstra(
        self,
        start_id: str,
        end_id: str,
        max_depth: int,
    ) -> dict[str, tuple[str, GraphEdge]] | None:
        parents: dict[str, tuple[str, GraphEdge]] = {}
        best: dict[str, float] = {start_id: 0.0}
        settled: set[str] = set()
        counter = 0  # heap tie-breaker: insertion order
        heap: list[tuple[float, int, str, int]] = [(0.0, counter, start_id, 0)]

        while heap:
            cost, _, current_id, hops = heapq.heappop(heap)
            if current_id in settled:
                continue
            settled.add(current_id)
            if current_id == end_id:
                return parents
            if max_depth and hops >= max_depth:
                continue
            for neighbor_id, edge in self._neighbors(current_id, Direction.BOTH):
                new_cost = cost + edge.weight
                if neighbor_id in settled or new_cost >= best.get(neighbor_id, float("inf")):
                    continue
                best[neighbor_id] = new_cost
                parents[neighbor_id] = (current_id, edge)
                counter += 1
                heapq.heappush(heap, (new_cost, counter, neighbor_id, hops + 1))

        return None

    def _build_path(
        self,
        start_id: str,
        end_id: str,
        parents: dict[str, tuple[str, GraphEdge]],
    ) -> GraphPath:
        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        current = end_id
        while current != start_id:
            nodes.append(self._nodes[current].copy())
            parent_id, edge = parents[current]
            edges.append(edge.copy())
            current = parent_id
        nodes.append(self._nodes[start_id].copy())
        nodes.reverse()
        edges.reverse()
        return GraphPath(
            nodes=nodes,
            edges=edges,
            cost=sum(edge.weight for edge in edges),
            length=len(edges),
        )
