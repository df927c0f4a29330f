"""
Connector System - the calls the rest of the app makes into the connector core.

Owns one registry, one store, one line view and one drawing controller and
wires them together. `init_connector_system()` creates the process-wide
instance; collaborators fetch it with `get_connector_system()`.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from cardlink.geometry import Point
from cardlink.models import (
    DEFAULT_POSITION,
    Endpoint,
    EndpointDescriptor,
    EndpointRef,
    Line,
    Side,
    standard_descriptors,
)
from cardlink.connector.constants import SNAP_RADIUS
from cardlink.connector.drawing import Abort, DrawingController, DrawingEvent, DrawingState
from cardlink.connector.generator import EndpointGenerator
from cardlink.connector.recalculator import PositionRecalculator
from cardlink.connector.registry import EndpointRegistry
from cardlink.connector.snap import SnapResolver
from cardlink.connector.store import ConnectionStore
from cardlink.connector.view import LineView

logger = logging.getLogger(__name__)


class ConnectorSystem:
    """
    Facade over the connector subsystem.

    Args:
        center_of: Returns the current canvas center of an endpoint. The
            card board provides this; tests can pass any function.
        snap_radius: Pointer-to-endpoint distance that still snaps
        view: Line view table to render into (a fresh one by default)
        card_exists: Whether a card is still on the canvas (defaults to
            "has registered endpoints")
    """

    def __init__(self, center_of: Callable[[Endpoint], Point],
                 snap_radius: float = SNAP_RADIUS,
                 view: Optional[LineView] = None,
                 card_exists: Optional[Callable[[int], bool]] = None):
        self.center_of = center_of
        self.registry = EndpointRegistry()
        self.generator = EndpointGenerator(self.registry)
        self.resolver = SnapResolver(self.registry, center_of, snap_radius, card_exists=card_exists)
        self.view = view or LineView()
        self.store = ConnectionStore(self.registry)
        self.recalculator = PositionRecalculator(self.registry, self.store, self.view, center_of,
                                                 card_exists=card_exists)
        self.drawing = DrawingController(
            self.registry, self.resolver, self.view, center_of,
            on_commit=self._commit, card_exists=card_exists,
        )
        self._detail_handler: Optional[Callable[[str], None]] = None

    # --- Cards & endpoints ---

    def register_endpoints(self, card_id: int,
                           descriptors: Optional[Iterable[EndpointDescriptor]] = None) -> List[Endpoint]:
        """Register a card's endpoints (the standard eight if none given)."""
        descriptors = list(descriptors) if descriptors is not None else standard_descriptors()
        endpoints = self.registry.register_card(card_id, descriptors)
        logger.debug(f"Registered {len(endpoints)} endpoints for card {card_id}")
        return endpoints

    def remove_card(self, card_id: int) -> List[str]:
        """
        Forget a card: its links, its endpoints, and any gesture started on it.

        Returns:
            Ids of the connections removed with the card.
        """
        state = self.drawing.state
        if state.is_drawing:
            source = self.registry.get(state.source_endpoint_id)
            if source is not None and source.card_id == card_id:
                self.drawing.handle_event(Abort('source card removed'))

        removed = self.store.remove_card(card_id)
        for connection_id in removed:
            self.view.remove(connection_id)
        self.registry.unregister_all(card_id)
        logger.info(f"Removed card {card_id} with {len(removed)} connections")
        return removed

    # --- Gesture ---

    def handle_event(self, event: DrawingEvent) -> DrawingState:
        return self.drawing.handle_event(event)

    def _commit(self, source: Endpoint, target: Endpoint) -> Optional[str]:
        connection_id = self.store.create(source.ref, target.ref)
        if connection_id is None:
            return None

        self._refresh_edges([(source.card_id, source.side), (target.card_id, target.side)])

        connection = self.store.get(connection_id)
        x1, y1 = self.center_of(source)
        x2, y2 = self.center_of(target)
        self.view.draw(connection_id, Line(x1, y1, x2, y2), connection.color, connection.width)
        self.view.attach_detail(connection_id, self._show_detail)

        self.recalculate_all_lines()
        return connection_id

    # --- Saved connections ---

    def create_connection_from_saved(self, from_id: int, from_side: int, to_id: int, to_side: int,
                                     from_pos: float = DEFAULT_POSITION,
                                     to_pos: float = DEFAULT_POSITION) -> Optional[str]:
        """Recreate one saved connection. Returns its id, or None if it was skipped."""
        created = self.load_connections([{
            'fromId': from_id,
            'fromSide': from_side,
            'fromPosition': from_pos,
            'toId': to_id,
            'toSide': to_side,
            'toPosition': to_pos,
        }])
        return created[0] if created else None

    def load_connections(self, items: Iterable[Dict[str, Any]]) -> List[str]:
        """
        Recreate saved connections, then subdivide every edge they landed on.

        Edges are refreshed once after the whole batch so saved positions
        are honored exactly.
        """
        created = self.store.deserialize(items)

        edges: List[Tuple[int, Side]] = []
        for connection_id in created:
            connection = self.store.get(connection_id)
            edges.append((connection.source.card_id, connection.source.side))
            edges.append((connection.target.card_id, connection.target.side))
            self.view.attach_detail(connection_id, self._show_detail)
        self._refresh_edges(edges)

        self.recalculate_all_lines()
        return created

    def get_all_connections(self) -> List[Dict[str, Any]]:
        return self.store.serialize()

    def clear_all_connections(self) -> int:
        """Remove every link and reset all occupancy. Used on reset/reload."""
        if self.drawing.state.is_drawing:
            self.drawing.handle_event(Abort('connections cleared'))
        count = self.store.remove_all()
        self.view.clear()
        return count

    def remove_connection(self, connection_id: str) -> bool:
        if self.store.remove(connection_id) is None:
            return False
        self.view.remove(connection_id)
        return True

    def set_connection_style(self, connection_id: str, color: Optional[str] = None,
                             width: Optional[float] = None) -> bool:
        if not self.store.set_style(connection_id, color=color, width=width):
            return False
        connection = self.store.get(connection_id)
        self.view.restyle(connection_id, connection.color, connection.width)
        return True

    # --- Occupancy persistence ---

    def get_occupancy(self) -> List[Dict[str, Any]]:
        return self.registry.occupancy()

    def restore_occupancy(self, items: Iterable[Dict[str, Any]]) -> int:
        """Re-apply saved occupied flags to endpoints that exist. Returns how many."""
        restored = 0
        for item in items:
            try:
                ref = EndpointRef(int(item['cardId']), Side(int(item['side'])), item.get('position'))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed occupancy entry {item!r}: {e}")
                continue
            if self.registry.mark_occupied(ref, True):
                restored += 1
        return restored

    # --- Geometry ---

    def recalculate_all_lines(self) -> Dict[str, Line]:
        return self.recalculator.recompute_all()

    # --- Detail trigger ---

    def set_detail_handler(self, callback: Optional[Callable[[str], None]]):
        """Called with the connection id when a line is double-activated."""
        self._detail_handler = callback

    def show_detail(self, connection_id: str) -> bool:
        return self.view.activate(connection_id)

    def _show_detail(self, connection_id: str):
        logger.debug(f"Line {connection_id} activated, showing detail")
        if self._detail_handler:
            self._detail_handler(connection_id)

    def _refresh_edges(self, edges: Iterable[Tuple[int, Side]]):
        seen: Set[Tuple[int, Side]] = set()
        for card_id, side in edges:
            if (card_id, side) in seen:
                continue
            seen.add((card_id, side))
            self.generator.refresh(card_id, side)


_system: Optional[ConnectorSystem] = None


def init_connector_system(center_of: Callable[[Endpoint], Point],
                          snap_radius: Optional[float] = None,
                          card_exists: Optional[Callable[[int], bool]] = None) -> ConnectorSystem:
    """
    Create the process-wide connector system.

    Must run before any card registers endpoints. Calling it again replaces
    the previous instance.
    """
    global _system
    _system = ConnectorSystem(
        center_of,
        snap_radius=SNAP_RADIUS if snap_radius is None else snap_radius,
        card_exists=card_exists,
    )
    logger.info("Connector system initialized")
    return _system


def get_connector_system() -> ConnectorSystem:
    """Get the process-wide connector system."""
    if _system is None:
        raise RuntimeError("Connector system not initialized; call init_connector_system() first")
    return _system
