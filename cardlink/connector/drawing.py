"""
Drawing Controller - the drag-to-connect gesture as an explicit state machine.

    IDLE --PointerDown on endpoint--> DRAWING
    DRAWING --PointerMove--> DRAWING (provisional line follows the pointer)
    DRAWING --PointerUp, target on another card--> COMMITTED --> IDLE
    DRAWING --PointerUp without target / Abort / source card gone--> CANCELLED --> IDLE

COMMITTED and CANCELLED are reported as the `outcome` of a transition; the
controller is back in IDLE as soon as handle_event returns.

Every event goes through handle_event(), so the whole gesture can be driven
from tests without an input device.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from cardlink.geometry import Point
from cardlink.models import Endpoint, Line
from cardlink.connector.registry import EndpointRegistry
from cardlink.connector.snap import SnapResolver
from cardlink.connector.view import LineView

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = 'idle'
    DRAWING = 'drawing'
    COMMITTED = 'committed'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class PointerDown:
    endpoint_id: int
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True)
class Abort:
    reason: str = 'aborted'


DrawingEvent = Union[PointerDown, PointerMove, PointerUp, Abort]


@dataclass(frozen=True)
class DrawingState:
    """Immutable snapshot of the gesture."""
    phase: Phase = Phase.IDLE
    source_endpoint_id: Optional[int] = None
    cursor_x: float = 0
    cursor_y: float = 0
    outcome: Optional[Phase] = None
    connection_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_drawing(self) -> bool:
        return self.phase == Phase.DRAWING


class DrawingController:
    """
    Drives one drag-to-connect gesture at a time.

    Args:
        registry: Endpoint registry used to look up the source endpoint
        resolver: Snap resolver consulted on pointer-up
        view: Line view that shows the provisional line
        center_of: Current rendered center of an endpoint
        on_commit: Commits a link between two endpoints and returns its id
            (or None if the commit was refused)
        card_exists: Whether a card is still on the canvas
    """

    def __init__(self, registry: EndpointRegistry, resolver: SnapResolver, view: LineView,
                 center_of: Callable[[Endpoint], Point],
                 on_commit: Callable[[Endpoint, Endpoint], Optional[str]],
                 card_exists: Optional[Callable[[int], bool]] = None):
        self.registry = registry
        self.resolver = resolver
        self.view = view
        self.center_of = center_of
        self.on_commit = on_commit
        self.card_exists = card_exists or registry.has_card
        self._state = DrawingState()
        self._on_state_change: Optional[Callable[[DrawingState], None]] = None

    @property
    def state(self) -> DrawingState:
        return self._state

    def set_on_state_change(self, callback: Callable[[DrawingState], None]):
        self._on_state_change = callback

    def _notify_change(self):
        if self._on_state_change:
            self._on_state_change(self._state)

    def handle_event(self, event: DrawingEvent) -> DrawingState:
        """Feed one input event to the gesture and return the new state."""
        if isinstance(event, PointerDown):
            self._on_pointer_down(event)
        elif isinstance(event, PointerMove):
            self._on_pointer_move(event)
        elif isinstance(event, PointerUp):
            self._on_pointer_up(event)
        elif isinstance(event, Abort):
            self._on_abort(event)
        else:
            raise TypeError(f"Unsupported drawing event: {event!r}")
        return self._state

    # --- Transitions ---

    def _on_pointer_down(self, event: PointerDown):
        if self._state.is_drawing:
            logger.warning(
                f"Ignoring pointer-down on endpoint {event.endpoint_id}: "
                f"already drawing from endpoint {self._state.source_endpoint_id}"
            )
            return

        source = self.registry.get(event.endpoint_id)
        if source is None or not self.card_exists(source.card_id):
            logger.debug(f"Pointer-down on unknown endpoint {event.endpoint_id}")
            return

        logger.debug(
            f"Starting connection from card {source.card_id}, "
            f"{source.side.name}@{source.position:.3f}"
        )
        self._state = DrawingState(
            phase=Phase.DRAWING, source_endpoint_id=source.id,
            cursor_x=event.x, cursor_y=event.y
        )
        self._show_provisional(source, event.x, event.y)
        self._notify_change()

    def _on_pointer_move(self, event: PointerMove):
        if not self._state.is_drawing:
            return

        source = self._live_source()
        if source is None:
            self._cancel('source card removed')
            return

        self._state = DrawingState(
            phase=Phase.DRAWING, source_endpoint_id=source.id,
            cursor_x=event.x, cursor_y=event.y
        )
        self._show_provisional(source, event.x, event.y)
        self._notify_change()

    def _on_pointer_up(self, event: PointerUp):
        if not self._state.is_drawing:
            return

        source = self._live_source()
        if source is None:
            self._cancel('source card removed', event.x, event.y)
            return

        target = self.resolver.resolve(event.x, event.y, source)
        if target is None or target.card_id == source.card_id:
            self._cancel('no endpoint in snap radius', event.x, event.y)
            return

        connection_id = self.on_commit(source, target)
        if connection_id is None:
            self._cancel('commit refused', event.x, event.y)
            return

        self.view.clear_provisional()
        self._state = DrawingState(
            phase=Phase.IDLE, cursor_x=event.x, cursor_y=event.y,
            outcome=Phase.COMMITTED, connection_id=connection_id
        )
        self._notify_change()

    def _on_abort(self, event: Abort):
        if self._state.is_drawing:
            self._cancel(event.reason)

    # --- Helpers ---

    def _live_source(self) -> Optional[Endpoint]:
        source = self.registry.get(self._state.source_endpoint_id)
        if source is None or not self.card_exists(source.card_id):
            return None
        return source

    def _show_provisional(self, source: Endpoint, x: float, y: float):
        sx, sy = self.center_of(source)
        self.view.show_provisional(Line(sx, sy, x, y))

    def _cancel(self, reason: str, x: Optional[float] = None, y: Optional[float] = None):
        logger.debug(f"Connection cancelled: {reason}")
        self.view.clear_provisional()
        self._state = DrawingState(
            phase=Phase.IDLE,
            cursor_x=self._state.cursor_x if x is None else x,
            cursor_y=self._state.cursor_y if y is None else y,
            outcome=Phase.CANCELLED, reason=reason
        )
        self._notify_change()
