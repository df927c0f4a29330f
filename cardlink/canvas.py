"""
Canvas - turns raw pointer events into card drags and connector events,
and renders the board as SVG.

Nothing here imports NiceGUI; app.py feeds `on_mouse` from an
interactive image and assigns `render_svg()` to its content.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from cardlink.cards import CardBoard
from cardlink.geometry import distance
from cardlink.models import Card, Endpoint
from cardlink.connector.constants import DOT_RADIUS
from cardlink.connector.drawing import PointerDown, PointerMove, PointerUp
from cardlink.connector.manager import ConnectorSystem

logger = logging.getLogger(__name__)

# Square (px) in a card's bottom-right corner that starts a resize
RESIZE_HANDLE = 16

CARD_FILL = '#ffffff'
CARD_STROKE = '#999'
DOT_FREE_FILL = '#ffffff'
DOT_OCCUPIED_FILL = '#444'
PROVISIONAL_COLOR = '#888'


@dataclass
class CardDrag:
    card_id: int
    offset_x: float
    offset_y: float
    resizing: bool = False


class CanvasController:
    """
    Routes pointer events on the canvas.

    A press on an endpoint dot starts a connection; a press on a card's
    resize handle resizes it; a press anywhere else on a card drags it.
    A double-click on a line opens its detail view.
    """

    def __init__(self, board: CardBoard, connector: ConnectorSystem,
                 width: int = 1200, height: int = 900):
        self.board = board
        self.connector = connector
        self.width = width
        self.height = height
        self.drag: Optional[CardDrag] = None

    # --- Hit testing ---

    def endpoint_at(self, x: float, y: float, radius: float = DOT_RADIUS + 2) -> Optional[Endpoint]:
        """Endpoint dot under the pointer, nearest first."""
        best: Optional[Endpoint] = None
        best_distance = radius
        for endpoint in self.connector.registry:
            if endpoint.card_id not in self.board:
                continue
            cx, cy = self.board.endpoint_center(endpoint)
            d = distance(cx, cy, x, y)
            if d <= best_distance:
                best, best_distance = endpoint, d
        return best

    @staticmethod
    def on_resize_handle(card: Card, x: float, y: float) -> bool:
        return (card.x + card.width - RESIZE_HANDLE <= x <= card.x + card.width
                and card.y + card.height - RESIZE_HANDLE <= y <= card.y + card.height)

    # --- Events ---

    def on_mouse(self, kind: str, x: float, y: float) -> None:
        """Handle one mouse event ('mousedown', 'mousemove', 'mouseup', 'dblclick')."""
        if kind == 'mousedown':
            self._on_down(x, y)
        elif kind == 'mousemove':
            self._on_move(x, y)
        elif kind == 'mouseup':
            self._on_up(x, y)
        elif kind == 'dblclick':
            self._on_double_click(x, y)

    def _on_down(self, x: float, y: float):
        endpoint = self.endpoint_at(x, y)
        if endpoint is not None:
            self.connector.handle_event(PointerDown(endpoint.id, x, y))
            return

        card = self.board.card_at(x, y)
        if card is None:
            return
        self.board.bring_to_front(card.id)
        if self.on_resize_handle(card, x, y):
            self.drag = CardDrag(card.id, card.x + card.width - x, card.y + card.height - y, resizing=True)
        else:
            self.drag = CardDrag(card.id, x - card.x, y - card.y)

    def _on_move(self, x: float, y: float):
        if self.connector.drawing.state.is_drawing:
            self.connector.handle_event(PointerMove(x, y))
            return
        if self.drag is None:
            return

        card = self.board.get(self.drag.card_id)
        if card is None:
            self.drag = None
            return
        if self.drag.resizing:
            self.board.resize(card.id, x + self.drag.offset_x - card.x, y + self.drag.offset_y - card.y)
        else:
            self.board.move(card.id, x - self.drag.offset_x, y - self.drag.offset_y)

    def _on_up(self, x: float, y: float):
        if self.connector.drawing.state.is_drawing:
            self.connector.handle_event(PointerUp(x, y))
        self.drag = None

    def _on_double_click(self, x: float, y: float):
        connection_id = self.connector.view.hit_test(x, y)
        if connection_id is not None:
            self.connector.show_detail(connection_id)

    # --- Rendering ---

    def render_svg(self) -> str:
        """SVG content for the whole board: cards, lines, dots, provisional line."""
        parts: List[str] = []
        for card in sorted(self.board, key=lambda c: c.z_index):
            parts.append(
                f'<rect x="{card.x:.1f}" y="{card.y:.1f}" width="{card.width:.1f}" height="{card.height:.1f}" '
                f'rx="6" fill="{CARD_FILL}" stroke="{CARD_STROKE}" />'
            )
            parts.append(
                f'<text x="{card.x + 12:.1f}" y="{card.y + 24:.1f}" font-size="16" '
                f'font-family="sans-serif">Scenario {card.id}</text>'
            )
            parts.append(
                f'<path d="M {card.x + card.width - 4:.1f} {card.y + card.height - RESIZE_HANDLE:.1f} '
                f'L {card.x + card.width - 4:.1f} {card.y + card.height - 4:.1f} '
                f'L {card.x + card.width - RESIZE_HANDLE:.1f} {card.y + card.height - 4:.1f}" '
                f'fill="none" stroke="{CARD_STROKE}" />'
            )

        for rendered in self.connector.view.lines().values():
            line = rendered.line
            parts.append(
                f'<line x1="{line.x1:.1f}" y1="{line.y1:.1f}" x2="{line.x2:.1f}" y2="{line.y2:.1f}" '
                f'stroke="{rendered.color}" stroke-width="{rendered.width}" />'
            )

        for endpoint in self.connector.registry:
            if endpoint.card_id not in self.board:
                continue
            cx, cy = self.board.endpoint_center(endpoint)
            fill = DOT_OCCUPIED_FILL if endpoint.occupied else DOT_FREE_FILL
            parts.append(
                f'<circle cx="{cx:.1f}" cy="{cy:.1f}" r="{DOT_RADIUS}" '
                f'fill="{fill}" stroke="{DOT_OCCUPIED_FILL}" />'
            )

        provisional = self.connector.view.provisional
        if provisional is not None:
            parts.append(
                f'<line x1="{provisional.x1:.1f}" y1="{provisional.y1:.1f}" '
                f'x2="{provisional.x2:.1f}" y2="{provisional.y2:.1f}" '
                f'stroke="{PROVISIONAL_COLOR}" stroke-width="2" stroke-dasharray="6,4" />'
            )

        return ''.join(parts)
