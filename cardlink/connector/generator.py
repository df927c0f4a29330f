"""
Dynamic Endpoint Generator.

After a link lands on an edge, the edge is subdivided so there is always a
free endpoint for the next link: every gap wider than GAP_THRESHOLD gets a
midpoint, unless an endpoint already sits within PROXIMITY_EPSILON of it.
Corners are fixed and never subdivided.
"""

import logging
from typing import List

from cardlink.models import Endpoint, Side
from cardlink.connector.constants import FLOAT_SLACK, GAP_THRESHOLD, PROXIMITY_EPSILON
from cardlink.connector.registry import EndpointRegistry

logger = logging.getLogger(__name__)


class EndpointGenerator:
    """Spawns unoccupied endpoints on card edges."""

    def __init__(self, registry: EndpointRegistry,
                 gap_threshold: float = GAP_THRESHOLD,
                 proximity_epsilon: float = PROXIMITY_EPSILON):
        self.registry = registry
        self.gap_threshold = gap_threshold
        self.proximity_epsilon = proximity_epsilon

    def candidate_positions(self, positions: List[float]) -> List[float]:
        """
        Midpoints of every gap wider than the threshold.

        The list is bounded by the implicit edge ends 0 and 1.
        """
        bounded = [0.0] + sorted(positions) + [1.0]
        candidates = []
        for p1, p2 in zip(bounded, bounded[1:]):
            if p2 - p1 > self.gap_threshold:
                candidates.append((p1 + p2) / 2)
        return candidates

    def refresh(self, card_id: int, side: Side) -> List[Endpoint]:
        """
        Add midpoint endpoints on one edge of a card.

        Returns:
            The endpoints created (empty when the edge is saturated or
            `side` is a corner).
        """
        side = Side(side)
        if side.is_corner:
            return []

        existing = [e.position for e in self.registry.find_by_side(card_id, side)]
        created: List[Endpoint] = []

        for candidate in self.candidate_positions(existing):
            # positions registered earlier in this pass count too
            if self._too_close(candidate, existing):
                continue
            endpoint = self.registry.register(card_id, side, candidate)
            existing.append(endpoint.position)
            created.append(endpoint)

        if created:
            logger.debug(
                f"Added {len(created)} endpoints on card {card_id} {side.name}: "
                f"{[round(e.position, 3) for e in created]}"
            )
        return created

    def refresh_for(self, endpoint: Endpoint) -> List[Endpoint]:
        """Refresh the edge an endpoint sits on."""
        return self.refresh(endpoint.card_id, endpoint.side)

    def _too_close(self, candidate: float, positions: List[float]) -> bool:
        limit = self.proximity_epsilon + FLOAT_SLACK
        return any(abs(candidate - p) <= limit for p in positions)
