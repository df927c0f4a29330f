"""
Tests for the ConnectorSystem facade: full gestures, saved connections and
the process-wide instance.
"""

import pytest

from cardlink.connector import (
    PROXIMITY_EPSILON,
    Abort,
    Phase,
    PointerDown,
    PointerMove,
    PointerUp,
    get_connector_system,
    init_connector_system,
)
from cardlink.connector import manager
from cardlink.models import EndpointDescriptor, Line, Side

from conftest import CARD_A, CARD_B, endpoint_of


def drag(system, board, source, target):
    """Drive a full gesture from one endpoint's center to another's."""
    sx, sy = board.endpoint_center(source)
    tx, ty = board.endpoint_center(target)
    system.handle_event(PointerDown(source.id, sx, sy))
    system.handle_event(PointerMove((sx + tx) / 2, (sy + ty) / 2))
    return system.handle_event(PointerUp(tx, ty))


def edge_positions(system, card_id, side):
    return [round(e.position, 6) for e in system.registry.find_by_side(card_id, side)]


class TestInteractiveCommit:
    """Gestures through the facade."""

    def test_commit_draws_line_and_subdivides_edges(self, board, connector):
        """A committed link is drawn and both edges are subdivided."""
        state = drag(connector, board, endpoint_of(connector, CARD_A, Side.RIGHT),
                     endpoint_of(connector, CARD_B, Side.LEFT))

        assert state.outcome == Phase.COMMITTED
        assert connector.view.get(state.connection_id).line == Line(350, 125, 500, 125)
        assert edge_positions(connector, CARD_A, Side.RIGHT) == [0.25, 0.5, 0.75]
        assert edge_positions(connector, CARD_B, Side.LEFT) == [0.25, 0.5, 0.75]

    def test_corner_commit_does_not_subdivide(self, board, connector):
        """Linking corners adds no endpoints."""
        drag(connector, board, endpoint_of(connector, CARD_A, Side.TOP_RIGHT),
             endpoint_of(connector, CARD_B, Side.TOP_LEFT))

        assert len(connector.registry.for_card(CARD_A)) == 8

    def test_line_follows_moved_card(self, board, connector):
        """Moving a card moves its lines."""
        drag(connector, board, endpoint_of(connector, CARD_A, Side.RIGHT),
             endpoint_of(connector, CARD_B, Side.LEFT))

        board.move(CARD_B, 500, 200)

        assert connector.view.get('line-1').line == Line(350, 125, 500, 325)

    def test_density_invariant_after_many_commits(self, board, connector):
        """Repeated links keep endpoints spread out."""
        for _ in range(6):
            source = next(e for e in connector.registry.find_by_side(CARD_A, Side.RIGHT) if not e.occupied)
            target = next(e for e in connector.registry.find_by_side(CARD_B, Side.LEFT) if not e.occupied)
            assert drag(connector, board, source, target).outcome == Phase.COMMITTED

        assert len(connector.store) == 6
        for card_id, side in ((CARD_A, Side.RIGHT), (CARD_B, Side.LEFT)):
            found = edge_positions(connector, card_id, side)
            assert all(b - a > PROXIMITY_EPSILON for a, b in zip(found, found[1:]))

    def test_missed_release_creates_nothing(self, connector):
        """Releasing 50px from any endpoint creates nothing."""
        source = endpoint_of(connector, CARD_A, Side.RIGHT)
        connector.handle_event(PointerDown(source.id, 350, 125))

        state = connector.handle_event(PointerUp(550, 125))

        assert state.outcome == Phase.CANCELLED
        assert connector.get_all_connections() == []
        assert connector.view.provisional is None
        assert len(connector.registry.for_card(CARD_A)) == 8


class TestSavedConnections:
    """Recreating connections from saved data."""

    def test_create_connection_from_saved(self, connector):
        """A saved link is recreated, drawn and subdivided."""
        connection_id = connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)

        assert connection_id == 'line-1'
        assert connector.view.get(connection_id).line == Line(350, 125, 500, 125)
        assert edge_positions(connector, CARD_A, Side.RIGHT) == [0.25, 0.5, 0.75]

    def test_saved_connection_to_unknown_card_skipped(self, connector):
        """A saved link to an unknown card returns None."""
        assert connector.create_connection_from_saved(CARD_A, 1, 42, 3) is None
        assert connector.get_all_connections() == []

    def test_malformed_saved_connection_returns_none(self, connector):
        """A side outside 0-7 is skipped instead of raising."""
        assert connector.create_connection_from_saved(CARD_A, 9, CARD_B, 3) is None
        assert connector.get_all_connections() == []
        assert connector.get_occupancy() == []

    def test_malformed_entry_does_not_stop_batch(self, connector):
        """Valid entries around a malformed one are fully set up."""
        created = connector.load_connections([
            {'fromId': CARD_A, 'fromSide': 1, 'toId': CARD_B, 'toSide': 3},
            {'fromId': CARD_A, 'fromSide': 9, 'toId': CARD_B, 'toSide': 3},
        ])

        assert created == ['line-1']
        assert connector.view.get('line-1').line == Line(350, 125, 500, 125)
        assert connector.show_detail('line-1')
        assert edge_positions(connector, CARD_B, Side.LEFT) == [0.25, 0.5, 0.75]

    def test_saturation_scenario(self, connector):
        """Links at 0.3/0.5/0.7 on A's TOP leave no room for 0.4 or 0.6."""
        connector.load_connections([
            {'fromId': CARD_A, 'fromSide': 0, 'fromPosition': p, 'toId': CARD_B, 'toSide': 2, 'toPosition': 0.5}
            for p in (0.3, 0.5, 0.7)
        ])

        assert edge_positions(connector, CARD_A, Side.TOP) == [0.15, 0.3, 0.5, 0.7, 0.85]
        assert edge_positions(connector, CARD_B, Side.BOTTOM) == [0.25, 0.5, 0.75]

    def test_round_trip(self, connector):
        """Saved links load back to the same serialized form."""
        saved = [
            {'fromId': CARD_A, 'fromSide': 0, 'fromPosition': 0.3, 'toId': CARD_B, 'toSide': 2, 'toPosition': 0.8},
            {'fromId': CARD_B, 'fromSide': 5, 'fromPosition': 0.5, 'toId': CARD_A, 'toSide': 3, 'toPosition': 0.5},
        ]
        connector.load_connections(saved)
        assert connector.get_all_connections() == saved

        connector.clear_all_connections()
        connector.load_connections(saved)
        assert connector.get_all_connections() == saved

    def test_clear_all_connections(self, connector):
        """Clearing removes links, lines and occupancy."""
        connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)

        assert connector.clear_all_connections() == 1
        assert connector.get_all_connections() == []
        assert connector.view.lines() == {}
        assert connector.get_occupancy() == []

    def test_restore_occupancy(self, connector):
        """Saved occupancy is applied to endpoints that exist."""
        restored = connector.restore_occupancy([
            {'cardId': CARD_A, 'side': 1, 'position': 0.5},
            {'cardId': 42, 'side': 1, 'position': 0.5},
            {'side': 1},
        ])
        assert restored == 1
        assert endpoint_of(connector, CARD_A, Side.RIGHT).occupied


class TestCardsAndDetail:
    """Card removal, styling and the detail trigger."""

    def test_remove_card_drops_links_and_endpoints(self, connector):
        """Removing a card frees the other end of its links."""
        connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)

        assert connector.remove_card(CARD_A) == ['line-1']
        assert connector.view.lines() == {}
        assert not connector.registry.has_card(CARD_A)
        assert not endpoint_of(connector, CARD_B, Side.LEFT).occupied

    def test_remove_card_aborts_gesture_from_it(self, connector):
        """Removing the source card aborts the gesture."""
        source = endpoint_of(connector, CARD_A, Side.RIGHT)
        connector.handle_event(PointerDown(source.id, 350, 125))

        connector.remove_card(CARD_A)

        assert connector.drawing.state.outcome == Phase.CANCELLED
        assert connector.view.provisional is None

    def test_remove_other_card_keeps_gesture(self, connector):
        """Removing another card leaves the gesture running."""
        source = endpoint_of(connector, CARD_A, Side.RIGHT)
        connector.handle_event(PointerDown(source.id, 350, 125))

        connector.remove_card(CARD_B)

        assert connector.drawing.state.is_drawing
        connector.handle_event(Abort())

    def test_board_removal_drops_links(self, board, connector):
        """Removing a linked card from the board takes its links and endpoints with it."""
        connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)

        board.remove(CARD_B)

        assert connector.get_all_connections() == []
        assert connector.view.lines() == {}
        assert not connector.registry.has_card(CARD_B)
        assert not endpoint_of(connector, CARD_A, Side.RIGHT).occupied
        assert connector.recalculate_all_lines() == {}

    def test_target_card_removed_mid_gesture_cancels(self, board, connector):
        """Releasing where a removed card used to be ends the gesture cancelled."""
        source = endpoint_of(connector, CARD_A, Side.RIGHT)
        connector.handle_event(PointerDown(source.id, 350, 125))

        board.remove(CARD_B)
        state = connector.handle_event(PointerUp(500, 125))

        assert state.outcome == Phase.CANCELLED
        assert state.reason == 'no endpoint in snap radius'
        assert connector.get_all_connections() == []
        assert connector.view.provisional is None

    def test_custom_descriptors(self, connector):
        """Cards can register their own endpoint set."""
        endpoints = connector.register_endpoints(7, [EndpointDescriptor(Side.TOP, 0.2)])
        assert [(e.side, e.position) for e in endpoints] == [(Side.TOP, 0.2)]

    def test_remove_connection(self, connector):
        """A link can be removed once."""
        connection_id = connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)
        assert connector.remove_connection(connection_id)
        assert not connector.remove_connection(connection_id)
        assert connector.view.get(connection_id) is None

    def test_set_connection_style(self, connector):
        """Restyling updates the rendered line."""
        connection_id = connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)
        assert connector.set_connection_style(connection_id, color='#0a0')
        assert connector.view.get(connection_id).color == '#0a0'

    def test_detail_handler(self, board, connector):
        """The detail handler gets the activated connection id."""
        opened = []
        connector.set_detail_handler(opened.append)
        state = drag(connector, board, endpoint_of(connector, CARD_A, Side.RIGHT),
                     endpoint_of(connector, CARD_B, Side.LEFT))

        assert connector.show_detail(state.connection_id)
        assert opened == [state.connection_id]

    def test_detail_without_handler(self, connector):
        """Activation without a handler is harmless."""
        connection_id = connector.create_connection_from_saved(CARD_A, 1, CARD_B, 3)
        assert connector.show_detail(connection_id)


class TestProcessWideInstance:
    """init_connector_system / get_connector_system."""

    def test_get_before_init_raises(self, monkeypatch):
        """Getting the instance before init raises."""
        monkeypatch.setattr(manager, '_system', None)
        with pytest.raises(RuntimeError):
            get_connector_system()

    def test_init_then_get(self, board, monkeypatch):
        """Init stores the instance that get returns."""
        monkeypatch.setattr(manager, '_system', None)
        system = init_connector_system(board.endpoint_center, snap_radius=40)

        assert get_connector_system() is system
        assert system.resolver.snap_radius == 40

    def test_default_snap_radius(self, board, monkeypatch):
        """Init falls back to the default snap radius."""
        monkeypatch.setattr(manager, '_system', None)
        assert init_connector_system(board.endpoint_center).resolver.snap_radius == 24
