"""
Line view table.

Maps connection ids to the line currently drawn for them, holds the
provisional line of an in-progress drag, and the "show detail" triggers
bound to each connection. The canvas host renders from this table; the
core never touches rendered elements.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from cardlink.geometry import point_to_segment_distance
from cardlink.models import DEFAULT_LINE_COLOR, DEFAULT_LINE_WIDTH, Line
from cardlink.connector.constants import LINE_HIT_TOLERANCE

logger = logging.getLogger(__name__)


@dataclass
class RenderedLine:
    line: Line
    color: str = DEFAULT_LINE_COLOR
    width: float = DEFAULT_LINE_WIDTH
    interactive: bool = True


class LineView:
    """Id -> rendered line lookup, plus the provisional line."""

    def __init__(self):
        self._lines: Dict[str, RenderedLine] = {}
        self._detail_handlers: Dict[str, Callable[[str], None]] = {}
        self._provisional: Optional[Line] = None
        self._on_change: Optional[Callable[[], None]] = None

    def set_on_change(self, callback: Optional[Callable[[], None]]):
        self._on_change = callback

    def _notify(self):
        if self._on_change:
            self._on_change()

    # --- Provisional line ---

    @property
    def provisional(self) -> Optional[Line]:
        return self._provisional

    def show_provisional(self, line: Line) -> None:
        self._provisional = line
        self._notify()

    def clear_provisional(self) -> None:
        if self._provisional is not None:
            self._provisional = None
            self._notify()

    # --- Permanent lines ---

    def draw(self, connection_id: str, line: Line,
             color: str = DEFAULT_LINE_COLOR, width: float = DEFAULT_LINE_WIDTH) -> None:
        self._lines[connection_id] = RenderedLine(line=line, color=color, width=width)
        self._notify()

    def update(self, connection_id: str, line: Line) -> bool:
        rendered = self._lines.get(connection_id)
        if rendered is None:
            return False
        rendered.line = line
        return True

    def restyle(self, connection_id: str, color: str, width: float) -> None:
        rendered = self._lines.get(connection_id)
        if rendered is not None:
            rendered.color = color
            rendered.width = width
            self._notify()

    def remove(self, connection_id: str) -> None:
        self._lines.pop(connection_id, None)
        self._detail_handlers.pop(connection_id, None)
        self._notify()

    def clear(self) -> None:
        self._lines.clear()
        self._detail_handlers.clear()
        self._provisional = None
        self._notify()

    def get(self, connection_id: str) -> Optional[RenderedLine]:
        return self._lines.get(connection_id)

    def lines(self) -> Dict[str, RenderedLine]:
        return dict(self._lines)

    def refreshed(self) -> None:
        """Tell the host a batch of updates is done."""
        self._notify()

    # --- Detail trigger ---

    def attach_detail(self, connection_id: str, callback: Callable[[str], None]) -> None:
        self._detail_handlers[connection_id] = callback

    def activate(self, connection_id: str) -> bool:
        """Double-activation of a line: run the detail trigger bound to it."""
        handler = self._detail_handlers.get(connection_id)
        if handler is None:
            logger.debug(f"No detail trigger bound to {connection_id}")
            return False
        handler(connection_id)
        return True

    def hit_test(self, x: float, y: float,
                 tolerance: float = LINE_HIT_TOLERANCE) -> Optional[str]:
        """Id of the interactive line closest to a point, within tolerance."""
        closest: Optional[Tuple[float, str]] = None
        for connection_id, rendered in self._lines.items():
            if not rendered.interactive:
                continue
            dist, _ = point_to_segment_distance((x, y), rendered.line.start, rendered.line.end)
            if dist <= tolerance + rendered.width / 2 and (closest is None or dist < closest[0]):
                closest = (dist, connection_id)
        return closest[1] if closest else None
