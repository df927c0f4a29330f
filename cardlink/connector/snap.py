"""
Snap Resolver - finds the endpoint a drag should attach to.
"""

import logging
from typing import Callable, Optional

from cardlink.geometry import Point, distance
from cardlink.models import Endpoint
from cardlink.connector.constants import SNAP_RADIUS
from cardlink.connector.registry import EndpointRegistry

logger = logging.getLogger(__name__)


class SnapResolver:
    """
    Nearest-endpoint search within a snap radius.

    `center_of` returns the current rendered center of an endpoint; the
    resolver never looks at rendering state itself. Endpoints whose card
    fails `card_exists` are never candidates.
    """

    def __init__(self, registry: EndpointRegistry,
                 center_of: Callable[[Endpoint], Point],
                 snap_radius: float = SNAP_RADIUS,
                 card_exists: Optional[Callable[[int], bool]] = None):
        self.registry = registry
        self.center_of = center_of
        self.snap_radius = snap_radius
        self.card_exists = card_exists or registry.has_card

    def resolve(self, pointer_x: float, pointer_y: float,
                from_endpoint: Endpoint) -> Optional[Endpoint]:
        """
        Nearest endpoint on any other card, or None if nothing is closer
        than the snap radius.

        Ties go to the endpoint registered first. Occupied endpoints are
        eligible so one endpoint can take several links.
        """
        best: Optional[Endpoint] = None
        best_distance = self.snap_radius

        for endpoint in self.registry.all_except(from_endpoint.card_id, self.card_exists):
            cx, cy = self.center_of(endpoint)
            d = distance(cx, cy, pointer_x, pointer_y)
            if d < best_distance:
                best_distance = d
                best = endpoint

        if best is None:
            logger.debug(f"No endpoint within {self.snap_radius}px of ({pointer_x:.1f}, {pointer_y:.1f})")
        else:
            logger.debug(
                f"Snapped to endpoint {best.id} on card {best.card_id} "
                f"({best.side.name}@{best.position:.3f}), distance {best_distance:.2f}"
            )
        return best
