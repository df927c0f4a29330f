"""
Geometry helpers shared by the connector subsystem and the canvas host.
"""

import math
from typing import Tuple

from cardlink.models import Card, Side

Point = Tuple[float, float]


def rect_center(x: float, y: float, width: float, height: float) -> Point:
    """Center of an axis-aligned rectangle."""
    return (x + width / 2, y + height / 2)


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def point_to_segment_distance(point: Point, start: Point, end: Point) -> Tuple[float, float]:
    """
    Distance from a point to a line segment.

    Returns:
        (distance, t) where t in [0, 1] is the projection of the point
        onto the segment.
    """
    px, py = point
    x1, y1 = start
    x2, y2 = end
    dx, dy = x2 - x1, y2 - y1

    if dx == 0 and dy == 0:
        return distance(px, py, x1, y1), 0.0

    t = max(0.0, min(1.0, ((px - x1) * dx + (py - y1) * dy) / (dx * dx + dy * dy)))
    closest_x, closest_y = x1 + t * dx, y1 + t * dy
    return distance(px, py, closest_x, closest_y), t


def anchor_point(card: Card, side: Side, position: float) -> Point:
    """
    Canvas coordinates of an endpoint.

    Position runs left to right along TOP/BOTTOM and top to bottom along
    LEFT/RIGHT. Corners ignore it.
    """
    left, top = card.x, card.y
    right, bottom = card.x + card.width, card.y + card.height
    side = Side(side)

    if side == Side.TOP:
        return (left + card.width * position, top)
    if side == Side.BOTTOM:
        return (left + card.width * position, bottom)
    if side == Side.LEFT:
        return (left, top + card.height * position)
    if side == Side.RIGHT:
        return (right, top + card.height * position)
    if side == Side.TOP_LEFT:
        return (left, top)
    if side == Side.TOP_RIGHT:
        return (right, top)
    if side == Side.BOTTOM_RIGHT:
        return (right, bottom)
    return (left, bottom)
