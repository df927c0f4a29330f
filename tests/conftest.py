"""
Shared fixtures: a board with two cards A (at 0,0) and B (at 500,0), each
350x250, and a connector system wired to it.
"""

import pytest

from cardlink.cards import CardBoard
from cardlink.connector import ConnectorSystem, EndpointRegistry
from cardlink.models import EndpointRef, Side

CARD_A = 1
CARD_B = 2


@pytest.fixture
def registry():
    """Empty endpoint registry."""
    return EndpointRegistry()


@pytest.fixture
def board():
    """Board with cards A and B, no header offset."""
    b = CardBoard(top_offset=0)
    b.add(CARD_A, 0, 0, 350, 250)
    b.add(CARD_B, 500, 0, 350, 250)
    return b


@pytest.fixture
def connector(board):
    """Connector system reading geometry from the board, standard endpoints on both cards."""
    system = ConnectorSystem(board.endpoint_center, card_exists=board.__contains__)
    for card in board:
        system.register_endpoints(card.id)
    board.set_on_card_removed(system.remove_card)
    board.set_on_geometry_change(system.recalculate_all_lines)
    return system


def endpoint_of(system, card_id, side, position=0.5):
    """Look up a registered endpoint by card, side and position."""
    endpoint = system.registry.find(EndpointRef(card_id, Side(side), position))
    assert endpoint is not None, f"no endpoint {card_id}/{Side(side).name}@{position}"
    return endpoint
