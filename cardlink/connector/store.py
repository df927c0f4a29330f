"""
Connection Store - sole owner of committed links.

Connections are kept in insertion order. A NetworkX MultiDiGraph (cards as
nodes, one keyed edge per connection) indexes them by card so removing a
card or asking for a card's links does not scan everything.
"""

import itertools
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

import networkx as nx

from cardlink.models import Connection, Endpoint, EndpointRef
from cardlink.connector.registry import EndpointRegistry

logger = logging.getLogger(__name__)


class ConnectionStore:
    """Create, remove, serialize and deserialize connections."""

    def __init__(self, registry: EndpointRegistry, id_prefix: str = 'line'):
        self.registry = registry
        self._id_prefix = id_prefix
        self._connections: Dict[str, Connection] = {}
        self._graph = nx.MultiDiGraph()
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    @property
    def graph(self) -> nx.MultiDiGraph:
        """Read-only view of the card-level connection graph."""
        return self._graph.copy(as_view=True)

    # --- Mutation ---

    def create(self, source: EndpointRef, target: EndpointRef,
               color: Optional[str] = None, width: Optional[float] = None) -> Optional[str]:
        """
        Commit a connection and mark both endpoints occupied.

        Returns:
            The new connection id, or None if the link was rejected
            (same card on both ends, or an endpoint that is not registered).
        """
        if source.card_id == target.card_id:
            logger.debug(f"Ignoring self-connection on card {source.card_id}")
            return None

        from_endpoint = self.registry.find(source)
        to_endpoint = self.registry.find(target)
        if from_endpoint is None or to_endpoint is None:
            logger.warning(
                f"Cannot connect {source} -> {target}: "
                f"from_found={from_endpoint is not None}, to_found={to_endpoint is not None}"
            )
            return None

        connection_id = f"{self._id_prefix}-{next(self._counter)}"
        connection = Connection(id=connection_id, source=from_endpoint.ref, target=to_endpoint.ref)
        if color is not None:
            connection.color = color
        if width is not None:
            connection.width = width

        self._connections[connection_id] = connection
        self._graph.add_edge(source.card_id, target.card_id, key=connection_id)

        self.registry.mark_occupied(from_endpoint, True)
        self.registry.mark_occupied(to_endpoint, True)

        logger.info(f"Connection {connection_id} created from card {source.card_id} to card {target.card_id}")
        return connection_id

    def remove(self, connection_id: str) -> Optional[Connection]:
        """
        Remove a connection by id.

        An endpoint stays occupied while any other connection still uses it.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            logger.warning(f"Connection {connection_id} not found")
            return None

        if self._graph.has_edge(connection.source.card_id, connection.target.card_id, key=connection_id):
            self._graph.remove_edge(connection.source.card_id, connection.target.card_id, key=connection_id)

        for ref in (connection.source, connection.target):
            endpoint = self.registry.find(ref)
            if endpoint is not None:
                self.registry.mark_occupied(endpoint, self._in_use(endpoint))

        logger.info(f"Connection {connection_id} removed")
        return connection

    def remove_all(self) -> int:
        """Drop every connection and reset occupancy on every endpoint."""
        count = len(self._connections)
        self._connections.clear()
        self._graph.clear()
        reset = self.registry.reset_occupancy()
        logger.info(f"Cleared {count} connections, reset {reset} occupied endpoints")
        return count

    def remove_card(self, card_id: int) -> List[str]:
        """Remove every connection touching a card. Returns the removed ids."""
        removed = [c.id for c in self.connections_for_card(card_id)]
        for connection_id in removed:
            self.remove(connection_id)
        if card_id in self._graph:
            self._graph.remove_node(card_id)
        return removed

    def set_style(self, connection_id: str, color: Optional[str] = None,
                  width: Optional[float] = None) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        if color is not None:
            connection.color = color
        if width is not None:
            connection.width = width
        return True

    # --- Queries ---

    def connections_for_card(self, card_id: int) -> List[Connection]:
        """Connections starting or ending on a card, in creation order."""
        if card_id not in self._graph:
            return []
        keys = {k for _, _, k in self._graph.out_edges(card_id, keys=True)}
        keys.update(k for _, _, k in self._graph.in_edges(card_id, keys=True))
        return [c for c in self._connections.values() if c.id in keys]

    def _in_use(self, endpoint: Endpoint) -> bool:
        for connection in self.connections_for_card(endpoint.card_id):
            for ref in (connection.source, connection.target):
                if self.registry.find(ref) is endpoint:
                    return True
        return False

    # --- Persistence ---

    def serialize(self) -> List[Dict[str, Any]]:
        """Connections in the layout wire format."""
        return [c.to_dict() for c in self._connections.values()]

    def deserialize(self, items: Iterable[Dict[str, Any]]) -> List[str]:
        """
        Recreate connections from saved entries.

        Endpoints missing on an existing card are registered on demand.
        Malformed entries and entries that reference an unknown card are
        skipped with a warning; the rest still load.
        """
        created = []
        for item in items:
            try:
                source, target = Connection.refs_from_dict(item)
            except ValueError as e:
                logger.warning(f"Skipping malformed saved connection {item!r}: {e}")
                continue

            missing = [ref.card_id for ref in (source, target) if not self.registry.has_card(ref.card_id)]
            if missing:
                logger.warning(f"Skipping saved connection {source.card_id} -> {target.card_id}: unknown card(s) {missing}")
                continue

            self.registry.register(source.card_id, source.side, source.position)
            self.registry.register(target.card_id, target.side, target.position)

            connection_id = self.create(source, target)
            if connection_id is not None:
                created.append(connection_id)

        logger.debug(f"Deserialized {len(created)} connections")
        return created
