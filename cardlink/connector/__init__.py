"""
Connector subsystem for the card canvas.

This package provides drag-to-connect links between cards:
- EndpointRegistry: Endpoints on every card, occupancy flags
- EndpointGenerator: Midpoint endpoints on edges that fill up
- SnapResolver: Nearest endpoint within the snap radius
- DrawingController: The drag gesture as a state machine
- ConnectionStore: Committed links, serialization
- PositionRecalculator: Keeps lines glued to moving cards
- ConnectorSystem: The facade the host and the layout manager call

Usage:
    from cardlink.connector import init_connector_system, PointerDown, PointerUp
"""

from cardlink.connector.constants import (
    SNAP_RADIUS,
    GAP_THRESHOLD,
    PROXIMITY_EPSILON,
    REGISTRATION_TOLERANCE,
    LINE_HIT_TOLERANCE,
    DOT_RADIUS,
)
from cardlink.connector.registry import EndpointRegistry
from cardlink.connector.generator import EndpointGenerator
from cardlink.connector.snap import SnapResolver
from cardlink.connector.store import ConnectionStore
from cardlink.connector.view import LineView, RenderedLine
from cardlink.connector.recalculator import PositionRecalculator
from cardlink.connector.drawing import (
    Abort,
    DrawingController,
    DrawingState,
    Phase,
    PointerDown,
    PointerMove,
    PointerUp,
)
from cardlink.connector.manager import (
    ConnectorSystem,
    get_connector_system,
    init_connector_system,
)

__all__ = [
    'EndpointRegistry',
    'EndpointGenerator',
    'SnapResolver',
    'ConnectionStore',
    'LineView',
    'RenderedLine',
    'PositionRecalculator',
    'DrawingController',
    'DrawingState',
    'Phase',
    'PointerDown',
    'PointerMove',
    'PointerUp',
    'Abort',
    'ConnectorSystem',
    'init_connector_system',
    'get_connector_system',
    'SNAP_RADIUS',
    'GAP_THRESHOLD',
    'PROXIMITY_EPSILON',
    'REGISTRATION_TOLERANCE',
    'LINE_HIT_TOLERANCE',
    'DOT_RADIUS',
]
