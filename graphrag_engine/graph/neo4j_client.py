"""
Neo4j client and Neo4j-backed graph store.

Design follows:
- Repository Pattern: Neo4jGraphStore exposes the same read interface
  as InMemoryGraphStore (traverse / shortest_path / get_node)
- Connection pooling: one driver instance per client, created lazily
- Custom exceptions: Neo4jConnectionError / Neo4jQueryError
- Async context manager for resource management

This module provides:
- Neo4jClient: thin async wrapper over the official driver
- Neo4jGraphStore: graph store implemented with Cypher queries
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import ClientError, ServiceUnavailable

from graphrag_engine.graph.exceptions import (
    Neo4jConnectionError,
    Neo4jQueryError,
    NodeNotFoundError,
    NoPathFoundError,
)
from graphrag_engine.graph.models import (
    Direction,
    GraphEdge,
    GraphNode,
    GraphPath,
    PathAlgorithm,
    TraverseOptions,
    TraverseResult,
)

if TYPE_CHECKING:
    from neo4j import AsyncDriver

logger = logging.getLogger(__name__)

# Map projection used by every query returning nodes
_NODE_PROJECTION = "{{.*, _labels: labels({var})}}"
_DEFAULT_PATH_DEPTH = 15


class Neo4jClient:
    """Neo4j client implementing Repository pattern.

    Reuses a single driver instance for connection pooling.

    Usage:
        async with Neo4jClient(settings=settings) as client:
            records = await client.query("MATCH (n) RETURN n LIMIT 10")
    """

    def __init__(self, settings: Any) -> None:
        """Initialize client with a settings object.

        Args:
            settings: Object with neo4j_uri, neo4j_user, neo4j_password
                      and neo4j_database attributes

        Note:
            Driver is NOT created here. Call connect() or use as
            async context manager.
        """
        self._settings = settings
        self._uri = settings.neo4j_uri
        self._user = settings.neo4j_user
        self._password = settings.neo4j_password
        self._database = settings.neo4j_database
        self._driver: AsyncDriver | None = None

    @property
    def uri(self) -> str:
        """Get the connection URI."""
        return self._uri

    @property
    def database(self) -> str:
        """Get the database name."""
        return self._database

    @property
    def is_connected(self) -> bool:
        """Check if driver is initialized."""
        return self._driver is not None

    async def connect(self) -> None:
        """Create driver and verify connectivity.

        Raises:
            Neo4jConnectionError: If connection fails
        """
        try:
            self._driver = AsyncGraphDatabase.driver(
                self._uri,
                auth=(self._user, self._password),
            )
            await self._driver.verify_connectivity()
        except ServiceUnavailable as e:
            self._driver = None
            raise Neo4jConnectionError(
                f"Failed to connect to Neo4j at {self._uri}",
                cause=e,
            ) from e
        except Exception as e:
            self._driver = None
            raise Neo4jConnectionError(
                f"Unexpected error connecting to Neo4j: {e}",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the driver connection. Safe to call when not connected."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None

    async def __aenter__(self) -> Neo4jClient:
        """Async context manager entry - connect to Neo4j."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - close connection."""
        await self.close()

    def _ensure_connected(self) -> None:
        if self._driver is None:
            raise Neo4jConnectionError(
                "Not connected to Neo4j. Call connect() first or use async context manager."
            )

    async def query(
        self,
        cypher: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a read query and return records as dictionaries.

        Raises:
            Neo4jConnectionError: If not connected
            Neo4jQueryError: If query execution fails
        """
        self._ensure_connected()
        assert self._driver is not None  # For type checker

        try:
            async with self._driver.session(database=self._database) as session:
                result = await session.run(cypher, parameters or {})
                return await result.data()
        except ClientError as e:
            raise Neo4jQueryError(
                f"Query failed: {e}",
                query=cypher,
                cause=e,
            ) from e
        except Exception as e:
            raise Neo4jQueryError(
                f"Unexpected error executing query: {e}",
                query=cypher,
                cause=e,
            ) from e


class Neo4jGraphStore:
    """Graph store backed by Neo4j.

    Nodes are matched on their ``id`` property. A node's ``type`` is its
    ``type`` property when present, else its first label; its display
    label is the ``label`` (or ``name``) property.

    Traversal uses a variable-length pattern and returns each node once
    at its minimum hop distance, ordered by distance, so the expansion
    order is breadth-first whatever strategy is requested.

    Usage:
        async with Neo4jClient(settings) as client:
            store = Neo4jGraphStore(client)
            result = await store.traverse("person-1", TraverseOptions(max_depth=2))
    """

    def __init__(self, client: Any) -> None:
        """Initialize with a connected Neo4jClient (or anything with query())."""
        self._client = client

    @property
    def is_connected(self) -> bool:
        """Check if the underlying client is connected."""
        return getattr(self._client, "is_connected", False)

    async def get_node(self, node_id: str) -> GraphNode:
        """Fetch a node by its id property.

        Raises:
            NodeNotFoundError: If no node has this id
            Neo4jQueryError: If the query fails
        """
        cypher = (
            "MATCH (n {id: $node_id}) "
            f"RETURN n {_NODE_PROJECTION.format(var='n')} AS node LIMIT 1"
        )
        records = await self._client.query(cypher, parameters={"node_id": node_id})
        if not records:
            raise NodeNotFoundError(node_id)
        return _record_to_node(records[0]["node"])

    async def traverse(
        self,
        start_id: str,
        options: TraverseOptions | None = None,
    ) -> TraverseResult:
        """Expand the graph from start_id.

        Raises:
            NodeNotFoundError: If start_id does not exist
            Neo4jQueryError: If a query fails
        """
        opts = options or TraverseOptions()
        start = await self.get_node(start_id)
        result = TraverseResult(nodes=[start], depths={start.id: 0})

        if opts.max_depth < 1 or opts.limit == 1:
            return result

        cypher = (
            f"MATCH path = (start {{id: $start_id}}){_pattern(opts.direction, opts.max_depth)}(m) "
            "WHERE m.id <> $start_id "
            "AND (size($edge_types) = 0 OR ALL(r IN relationships(path) WHERE type(r) IN $edge_types)) "
            "AND (size($node_types) = 0 OR m.type IN $node_types "
            "OR ANY(l IN labels(m) WHERE l IN $node_types)) "
            "WITH m, min(length(path)) AS depth "
            f"RETURN m {_NODE_PROJECTION.format(var='m')} AS node, depth "
            "ORDER BY depth, node.id"
        )
        parameters: dict[str, Any] = {
            "start_id": start_id,
            "edge_types": list(opts.edge_types),
            "node_types": list(opts.node_types),
        }
        if opts.limit > 0:
            cypher += " LIMIT $limit"
            parameters["limit"] = opts.limit - 1

        records = await self._client.query(cypher, parameters=parameters)
        for record in records:
            node = _record_to_node(record["node"])
            result.nodes.append(node)
            result.depths[node.id] = int(record.get("depth", 1))

        result.edges = await self._edges_between([node.id for node in result.nodes])
        logger.debug("Neo4j traversal from %s reached %d nodes", start_id, len(result.nodes))
        return result

    async def shortest_path(
        self,
        start_id: str,
        end_id: str,
        max_depth: int = 0,
        algorithm: PathAlgorithm = PathAlgorithm.BFS,
    ) -> GraphPath:
        """Find a path between two nodes, ignoring edge direction.

        BFS uses Cypher shortestPath (fewest hops, cost = sum of weights).
        DIJKSTRA uses apoc.algo.dijkstra on the ``weight`` property and
        requires the APOC plugin.

        Raises:
            NodeNotFoundError: If either endpoint does not exist
            NoPathFoundError: If no path exists
            Neo4jQueryError: If a query fails
        """
        await self.get_node(start_id)
        await self.get_node(end_id)

        depth = max_depth if max_depth > 0 else _DEFAULT_PATH_DEPTH
        if algorithm == PathAlgorithm.DIJKSTRA:
            match = (
                "MATCH (a {id: $start_id}), (b {id: $end_id}) "
                "CALL apoc.algo.dijkstra(a, b, '', 'weight') YIELD path "
                f"WITH path WHERE length(path) <= {depth} "
            )
        else:
            match = (
                "MATCH (a {id: $start_id}), (b {id: $end_id}) "
                f"MATCH path = shortestPath((a)-[*..{depth}]-(b)) "
            )
        cypher = match + (
            f"RETURN [n IN nodes(path) | n {_NODE_PROJECTION.format(var='n')}] AS nodes, "
            "[r IN relationships(path) | {id: elementId(r), type: type(r), "
            "source: startNode(r).id, target: endNode(r).id, properties: properties(r)}] AS edges "
            "LIMIT 1"
        )
        records = await self._client.query(
            cypher,
            parameters={"start_id": start_id, "end_id": end_id},
        )
        if not records:
            raise NoPathFoundError(start_id, end_id)

        nodes = [_record_to_node(node) for node in records[0]["nodes"]]
        edges = [_record_to_edge(edge) for edge in records[0]["edges"]]
        return GraphPath(
            nodes=nodes,
            edges=edges,
            cost=sum(edge.weight for edge in edges),
            length=len(edges),
        )

    async def _edges_between(self, node_ids: list[str]) -> list[GraphEdge]:
        if len(node_ids) < 2:
            return []
        cypher = (
            "MATCH (a)-[r]->(b) WHERE a.id IN $ids AND b.id IN $ids "
            "RETURN elementId(r) AS id, type(r) AS type, a.id AS source, "
            "b.id AS target, properties(r) AS properties"
        )
        records = await self._client.query(cypher, parameters={"ids": node_ids})
        return [_record_to_edge(record) for record in records]


def _pattern(direction: Direction, max_depth: int) -> str:
    """Relationship pattern for a variable-length match."""
    hops = f"[*1..{max_depth}]"
    if direction == Direction.OUTBOUND:
        return f"-{hops}->"
    if direction == Direction.INBOUND:
        return f"<-{hops}-"
    return f"-{hops}-"


def _record_to_node(data: dict[str, Any]) -> GraphNode:
    properties = dict(data)
    labels = properties.pop("_labels", None) or []
    node_id = str(properties.pop("id", ""))
    node_type = properties.pop("type", None) or (labels[0] if labels else "")
    label = properties.pop("label", None) or properties.get("name", "")
    return GraphNode(id=node_id, type=node_type, label=label, properties=properties)


def _record_to_edge(data: dict[str, Any]) -> GraphEdge:
    properties = dict(data.get("properties") or {})
    weight = properties.pop("weight", 1.0)
    return GraphEdge(
        id=str(data.get("id", "")),
        source=str(data.get("source", "")),
        target=str(data.get("target", "")),
        type=data.get("type", ""),
        label=properties.pop("label", ""),
        properties=properties,
        weight=float(weight),
    )
