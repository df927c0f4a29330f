"""
Data model for the card canvas.

Cards, endpoints and connections are plain data. Nothing here holds a
reference to a rendered element; the view layer maps ids to whatever it draws.
"""

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple


DEFAULT_POSITION = 0.5

DEFAULT_CARD_WIDTH = 350
DEFAULT_CARD_HEIGHT = 250
MIN_CARD_WIDTH = 200
MIN_CARD_HEIGHT = 150

DEFAULT_LINE_COLOR = '#444'
DEFAULT_LINE_WIDTH = 2

# Legacy composite dot id: dot-<cardId>-<side>-<position * 1000>
_LEGACY_DOT_ID = re.compile(r'^dot-(\d+)-(\d+)-(\d+)$')


class Side(IntEnum):
    """Where an endpoint sits on its card. Values are the wire encoding."""
    TOP = 0
    RIGHT = 1
    BOTTOM = 2
    LEFT = 3
    TOP_LEFT = 4
    TOP_RIGHT = 5
    BOTTOM_RIGHT = 6
    BOTTOM_LEFT = 7

    @property
    def is_corner(self) -> bool:
        return self >= Side.TOP_LEFT

    @classmethod
    def edges(cls):
        return (cls.TOP, cls.RIGHT, cls.BOTTOM, cls.LEFT)

    @classmethod
    def corners(cls):
        return (cls.TOP_LEFT, cls.TOP_RIGHT, cls.BOTTOM_RIGHT, cls.BOTTOM_LEFT)


def normalize_position(side: Side, position: Optional[float]) -> float:
    """Corners ignore position; edges clamp it into [0, 1]."""
    if position is None or Side(side).is_corner:
        return DEFAULT_POSITION
    return min(1.0, max(0.0, float(position)))


@dataclass
class Card:
    """Position and size of a card on the canvas."""
    id: int
    x: float
    y: float
    width: float = DEFAULT_CARD_WIDTH
    height: float = DEFAULT_CARD_HEIGHT
    z_index: int = 1

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def resize(self, width: float, height: float) -> None:
        self.width = max(MIN_CARD_WIDTH, width)
        self.height = max(MIN_CARD_HEIGHT, height)

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'x': round(self.x),
            'y': round(self.y),
            'width': round(self.width),
            'height': round(self.height),
        }


@dataclass(frozen=True)
class EndpointRef:
    """
    Persistent identity of an endpoint: card id + side + position.

    Connections store refs rather than registry handles so they survive a
    reload, where every endpoint gets a fresh handle.
    """
    card_id: int
    side: Side
    position: float = DEFAULT_POSITION

    def __post_init__(self):
        side = Side(self.side)
        object.__setattr__(self, 'side', side)
        object.__setattr__(self, 'position', normalize_position(side, self.position))

    @classmethod
    def from_legacy_id(cls, dot_id: str) -> 'EndpointRef':
        """
        Parse the legacy 'dot-<card>-<side>-<pos*1000>' identifier.

        Only used when importing old layouts; refs are never written back
        in this format.
        """
        match = _LEGACY_DOT_ID.match(dot_id or '')
        if not match:
            raise ValueError(f"Not a legacy dot id: {dot_id!r}")
        card_id, side, position = match.groups()
        return cls(int(card_id), Side(int(side)), int(position) / 1000)


@dataclass
class Endpoint:
    """An attachment point on a card. `id` is the registry handle."""
    id: int
    card_id: int
    side: Side
    position: float = DEFAULT_POSITION
    occupied: bool = False

    @property
    def ref(self) -> EndpointRef:
        return EndpointRef(self.card_id, self.side, self.position)


@dataclass
class Connection:
    """A directed link between endpoints on two different cards."""
    id: str
    source: EndpointRef
    target: EndpointRef
    color: str = DEFAULT_LINE_COLOR
    width: float = DEFAULT_LINE_WIDTH

    @staticmethod
    def refs_from_dict(item: Dict[str, Any]) -> Tuple[EndpointRef, EndpointRef]:
        """
        Parse a saved connection into (source, target) refs.

        Accepts the legacy 'fromCardId'/'toCardId' keys and legacy dot id
        strings in place of a side.

        Raises:
            ValueError: if the item does not have the expected shape.
        """
        if not isinstance(item, dict):
            raise ValueError(f"Connection entry must be an object, got {type(item).__name__}")
        return (
            _ref_from_fields(item, 'fromId', 'fromCardId', 'fromSide', 'fromPosition'),
            _ref_from_fields(item, 'toId', 'toCardId', 'toSide', 'toPosition'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fromId': self.source.card_id,
            'fromSide': int(self.source.side),
            'fromPosition': self.source.position,
            'toId': self.target.card_id,
            'toSide': int(self.target.side),
            'toPosition': self.target.position,
        }


@dataclass(frozen=True)
class Line:
    """Rendered coordinates of a link."""
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def start(self):
        return (self.x1, self.y1)

    @property
    def end(self):
        return (self.x2, self.y2)


@dataclass
class EndpointDescriptor:
    """What a card hands to the registry when it is created."""
    side: Side
    position: float = DEFAULT_POSITION
    occupied: bool = False


def standard_descriptors():
    """The eight endpoints every card starts with: four midpoints, four corners."""
    return [EndpointDescriptor(side) for side in Side]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _ref_from_fields(item: Dict[str, Any], id_key: str, legacy_id_key: str,
                     side_key: str, position_key: str) -> EndpointRef:
    card_id = item.get(id_key, item.get(legacy_id_key))
    side = item.get(side_key)
    position = item.get(position_key)

    if isinstance(side, str) and side.startswith('dot-'):
        legacy = EndpointRef.from_legacy_id(side)
        if card_id is None:
            card_id = legacy.card_id
        side, position = legacy.side, legacy.position
    elif isinstance(side, str) and side.isdigit():
        side = int(side)

    if not isinstance(card_id, int) or isinstance(card_id, bool):
        raise ValueError(f"'{id_key}' must be an integer card id, got {card_id!r}")
    if not isinstance(side, int) or isinstance(side, bool) or side not in Side._value2member_map_:
        raise ValueError(f"'{side_key}' must be a side between 0 and 7, got {side!r}")
    if position is not None and (not _is_number(position) or not 0 <= position <= 1):
        raise ValueError(f"'{position_key}' must be a number between 0 and 1, got {position!r}")

    return EndpointRef(card_id, Side(side), position)

