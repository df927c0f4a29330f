"""
Position Recalculator - keeps rendered links glued to their endpoints.
"""

import logging
from typing import Callable, Dict, Optional

from cardlink.geometry import Point
from cardlink.models import Endpoint, Line
from cardlink.connector.registry import EndpointRegistry
from cardlink.connector.store import ConnectionStore
from cardlink.connector.view import LineView

logger = logging.getLogger(__name__)


class PositionRecalculator:
    """
    Recomputes every link's start and end from current endpoint centers.

    Depends only on current geometry, so calling it redundantly is safe.
    Connections touching a card that fails `card_exists` are skipped.
    """

    def __init__(self, registry: EndpointRegistry, store: ConnectionStore,
                 view: LineView, center_of: Callable[[Endpoint], Point],
                 card_exists: Optional[Callable[[int], bool]] = None):
        self.registry = registry
        self.store = store
        self.view = view
        self.center_of = center_of
        self.card_exists = card_exists or registry.has_card

    def recompute_all(self) -> Dict[str, Line]:
        """
        Update every stored connection's line.

        Returns:
            Mapping of connection id to its new line. Connections whose
            endpoints can no longer be resolved are left out.
        """
        if not len(self.store):
            return {}

        result: Dict[str, Line] = {}
        for connection in self.store:
            gone = [ref.card_id for ref in (connection.source, connection.target)
                    if not self.card_exists(ref.card_id)]
            if gone:
                logger.warning(f"Connection {connection.id} touches removed card(s) {gone}")
                continue

            from_endpoint = self.registry.find(connection.source)
            to_endpoint = self.registry.find(connection.target)
            if from_endpoint is None or to_endpoint is None:
                logger.warning(f"Could not find endpoints for connection {connection.id}")
                continue

            x1, y1 = self.center_of(from_endpoint)
            x2, y2 = self.center_of(to_endpoint)
            line = Line(x1, y1, x2, y2)
            if not self.view.update(connection.id, line):
                self.view.draw(connection.id, line, connection.color, connection.width)
            result[connection.id] = line

        self.view.refreshed()
        logger.debug(f"Recalculated {len(result)} connection lines")
        return result
