"""
Card board - the cards on the canvas and where they sit.

Owns Card records (position, size, stacking) and the default grid. The
connector subsystem reads card geometry only through `endpoint_center`.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional

from cardlink.geometry import Point, anchor_point
from cardlink.models import DEFAULT_CARD_HEIGHT, DEFAULT_CARD_WIDTH, Card, Endpoint

logger = logging.getLogger(__name__)

SCENARIOS = list(range(1, 10))
GRID_COLUMNS = 3
GRID_GAP = 24
# Room for the header bar above the first row
TOP_OFFSET = 56


def grid_position(index: int, top_offset: float = TOP_OFFSET) -> Point:
    """Top-left corner of the index-th card in the default grid."""
    column = index % GRID_COLUMNS
    row = index // GRID_COLUMNS
    return (
        column * (DEFAULT_CARD_WIDTH + GRID_GAP),
        top_offset + row * (DEFAULT_CARD_HEIGHT + GRID_GAP),
    )


class CardBoard:
    """
    Cards keyed by id, in creation order.

    Every geometry change notifies the on_geometry_change callback so the
    host can recompute connection lines. Removing a card first calls
    on_card_removed with its id, so the card's links and endpoints are gone
    before the lines are recomputed.
    """

    def __init__(self, top_offset: float = TOP_OFFSET):
        self.top_offset = top_offset
        self._cards: Dict[int, Card] = {}
        self._top_z = 1
        self._on_geometry_change: Optional[Callable[[], None]] = None
        self._on_card_removed: Optional[Callable[[int], object]] = None

    def set_on_geometry_change(self, callback: Optional[Callable[[], None]]):
        self._on_geometry_change = callback

    def set_on_card_removed(self, callback: Optional[Callable[[int], object]]):
        self._on_card_removed = callback

    def _notify_change(self):
        if self._on_geometry_change:
            self._on_geometry_change()

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(list(self._cards.values()))

    def __contains__(self, card_id: int) -> bool:
        return card_id in self._cards

    def get(self, card_id: int) -> Optional[Card]:
        return self._cards.get(card_id)

    def ids(self) -> List[int]:
        return list(self._cards)

    # --- Lifecycle ---

    def add(self, card_id: int, x: float, y: float,
            width: float = DEFAULT_CARD_WIDTH, height: float = DEFAULT_CARD_HEIGHT) -> Card:
        if card_id in self._cards:
            raise ValueError(f"Card {card_id} already exists")
        card = Card(id=card_id, x=x, y=y)
        card.resize(width, height)
        self._cards[card_id] = card
        logger.debug(f"Added card {card_id} at ({x:.0f}, {y:.0f})")
        return card

    def remove(self, card_id: int) -> Optional[Card]:
        card = self._cards.pop(card_id, None)
        if card is None:
            return None
        logger.debug(f"Removed card {card_id}")
        if self._on_card_removed:
            self._on_card_removed(card_id)
        self._notify_change()
        return card

    def clear(self) -> None:
        self._cards.clear()
        self._top_z = 1

    def init_grid(self, scenarios: Optional[List[int]] = None) -> List[Card]:
        """Create one card per scenario in the default grid. Existing cards are dropped."""
        self.clear()
        cards = []
        for index, scenario_id in enumerate(scenarios or SCENARIOS):
            x, y = grid_position(index, self.top_offset)
            cards.append(self.add(scenario_id, x, y))
        logger.info(f"Initialized grid with {len(cards)} cards")
        return cards

    def reset_grid(self) -> None:
        """Put every existing card back to its default grid slot and size."""
        for index, card in enumerate(self._cards.values()):
            card.move_to(*grid_position(index, self.top_offset))
            card.resize(DEFAULT_CARD_WIDTH, DEFAULT_CARD_HEIGHT)
        self._notify_change()

    # --- Geometry ---

    def move(self, card_id: int, x: float, y: float) -> bool:
        card = self._cards.get(card_id)
        if card is None:
            return False
        card.move_to(x, max(y, self.top_offset))
        self._notify_change()
        return True

    def resize(self, card_id: int, width: float, height: float) -> bool:
        card = self._cards.get(card_id)
        if card is None:
            return False
        card.resize(width, height)
        self._notify_change()
        return True

    def bring_to_front(self, card_id: int) -> bool:
        card = self._cards.get(card_id)
        if card is None:
            return False
        self._top_z += 1
        card.z_index = self._top_z
        return True

    def card_at(self, x: float, y: float) -> Optional[Card]:
        """Topmost card under a point."""
        hits = [c for c in self._cards.values() if c.contains(x, y)]
        return max(hits, key=lambda c: c.z_index) if hits else None

    def endpoint_center(self, endpoint: Endpoint) -> Point:
        """Current canvas center of an endpoint on one of the cards."""
        card = self._cards.get(endpoint.card_id)
        if card is None:
            raise KeyError(f"Unknown card {endpoint.card_id}")
        return anchor_point(card, endpoint.side, endpoint.position)
