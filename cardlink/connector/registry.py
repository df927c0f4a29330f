"""
Endpoint Registry - owns every endpoint on every card.

Endpoints live in an insertion-ordered arena keyed by integer handles.
Iteration order is registration order, which makes snap tie-breaks
deterministic.
"""

import itertools
import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from cardlink.models import (
    Endpoint,
    EndpointDescriptor,
    EndpointRef,
    Side,
    normalize_position,
)
from cardlink.connector.constants import REGISTRATION_TOLERANCE

logger = logging.getLogger(__name__)


class EndpointRegistry:
    """
    Registration, lookup and occupancy marking for endpoints.

    All mutation goes through these methods; callers never see the
    internal collections, only Endpoint records and copies of lists.
    """

    def __init__(self, tolerance: float = REGISTRATION_TOLERANCE):
        self._tolerance = tolerance
        self._endpoints: Dict[int, Endpoint] = {}
        self._by_card: Dict[int, List[int]] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._endpoints)

    def __iter__(self) -> Iterator[Endpoint]:
        return iter(list(self._endpoints.values()))

    # --- Registration ---

    def register(self, card_id: int, side: Side, position: Optional[float] = None,
                 occupied: bool = False) -> Endpoint:
        """
        Register an endpoint on a card.

        Registering a duplicate (same card and side, position within
        tolerance) is a no-op and returns the endpoint already there.
        """
        side = Side(side)
        position = normalize_position(side, position)

        existing = self._match(card_id, side, position)
        if existing is not None:
            logger.debug(f"Endpoint {card_id}/{side.name}@{position:.3f} already registered")
            return existing

        endpoint = Endpoint(
            id=next(self._ids),
            card_id=card_id,
            side=side,
            position=position,
            occupied=occupied,
        )
        self._endpoints[endpoint.id] = endpoint
        self._by_card.setdefault(card_id, []).append(endpoint.id)
        logger.debug(f"Registered endpoint {endpoint.id} on card {card_id} ({side.name}@{position:.3f})")
        return endpoint

    def register_card(self, card_id: int, descriptors: Iterable[EndpointDescriptor]) -> List[Endpoint]:
        """Register a batch of endpoints for one card."""
        self._by_card.setdefault(card_id, [])
        return [
            self.register(card_id, d.side, d.position, occupied=d.occupied)
            for d in descriptors
        ]

    def unregister_all(self, card_id: int) -> int:
        """Drop every endpoint of a card. Returns how many were removed."""
        ids = self._by_card.pop(card_id, [])
        for endpoint_id in ids:
            del self._endpoints[endpoint_id]
        if ids:
            logger.debug(f"Unregistered {len(ids)} endpoints of card {card_id}")
        return len(ids)

    # --- Lookup ---

    def has_card(self, card_id: int) -> bool:
        return card_id in self._by_card

    def get(self, endpoint_id: int) -> Optional[Endpoint]:
        return self._endpoints.get(endpoint_id)

    def find(self, ref: EndpointRef) -> Optional[Endpoint]:
        """Endpoint matching a persisted ref, within tolerance."""
        return self._match(ref.card_id, ref.side, ref.position)

    def find_by_side(self, card_id: int, side: Side) -> List[Endpoint]:
        """Endpoints on one side of a card, ordered by position."""
        side = Side(side)
        on_side = [
            self._endpoints[eid] for eid in self._by_card.get(card_id, [])
            if self._endpoints[eid].side == side
        ]
        return sorted(on_side, key=lambda e: e.position)

    def for_card(self, card_id: int) -> List[Endpoint]:
        return [self._endpoints[eid] for eid in self._by_card.get(card_id, [])]

    def all_except(self, card_id: int,
                   card_exists: Optional[Callable[[int], bool]] = None) -> Iterator[Endpoint]:
        """
        Every endpoint not on the given card, in registration order.

        With `card_exists`, endpoints of cards it rejects are left out.
        """
        for endpoint in list(self._endpoints.values()):
            if endpoint.card_id == card_id:
                continue
            if card_exists is not None and not card_exists(endpoint.card_id):
                continue
            yield endpoint

    # --- Occupancy ---

    def mark_occupied(self, target: Union[Endpoint, EndpointRef], occupied: bool = True) -> bool:
        """Set the occupied flag. Returns False when the endpoint is unknown."""
        if isinstance(target, Endpoint):
            endpoint = self._endpoints.get(target.id)
        else:
            endpoint = self.find(target)

        if endpoint is None:
            logger.warning(f"Cannot mark unknown endpoint {target} as occupied={occupied}")
            return False

        endpoint.occupied = occupied
        return True

    def reset_occupancy(self) -> int:
        """Mark every endpoint unoccupied. Returns how many were reset."""
        count = 0
        for endpoint in self._endpoints.values():
            if endpoint.occupied:
                endpoint.occupied = False
                count += 1
        return count

    def occupancy(self) -> List[dict]:
        """Occupied endpoints as plain refs, for persistence."""
        return [
            {'cardId': e.card_id, 'side': int(e.side), 'position': e.position}
            for e in self._endpoints.values() if e.occupied
        ]

    def _match(self, card_id: int, side: Side, position: float) -> Optional[Endpoint]:
        for endpoint_id in self._by_card.get(card_id, []):
            endpoint = self._endpoints[endpoint_id]
            if endpoint.side == side and abs(endpoint.position - position) < self._tolerance:
                return endpoint
        return None
