"""
Tests for layout parsing, the layout manager and the card board grid.
"""

import json

import pytest

from cardlink.cards import GRID_GAP, SCENARIOS, CardBoard, grid_position
from cardlink.connector import ConnectorSystem
from cardlink.errors import CardLinkError, LayoutError
from cardlink.layout import LayoutManager, parse_layout
from cardlink.models import DEFAULT_CARD_HEIGHT, DEFAULT_CARD_WIDTH
from cardlink.storage import LAYOUT_KEY, OCCUPANCY_KEY, KeyValueStore


@pytest.fixture
def kv_store(tmp_path):
    return KeyValueStore(tmp_path / "store.json")


@pytest.fixture
def manager(kv_store):
    """Layout manager over a fresh default grid."""
    board = CardBoard()
    connector = ConnectorSystem(board.endpoint_center)
    board.set_on_geometry_change(connector.recalculate_all_lines)
    layout = LayoutManager(board, connector, kv_store)
    layout.init_grid()
    return layout


def connection(from_id, from_side, to_id, to_side, from_pos=0.5, to_pos=0.5):
    return {'fromId': from_id, 'fromSide': from_side, 'fromPosition': from_pos,
            'toId': to_id, 'toSide': to_side, 'toPosition': to_pos}


class TestParseLayout:
    """Validation happens before anything is applied."""

    def test_parses_json_string(self):
        """JSON text is parsed into cards and connections."""
        parsed = parse_layout(json.dumps({
            'cards': [{'id': 1, 'x': 10, 'y': 60, 'width': 400, 'height': 300}],
            'connections': [connection(1, 1, 2, 3)],
        }))
        assert parsed.cards[0].id == 1
        assert parsed.cards[0].width == 400
        assert parsed.connections == [connection(1, 1, 2, 3)]

    def test_accepts_legacy_keys(self):
        """Older layout keys are still read."""
        parsed = parse_layout({
            'cards': [{'scenarioId': 4, 'x': 0, 'y': 0, 'w': 300, 'h': 200}],
            'arrows': [{'fromCardId': 4, 'fromSide': 1, 'toCardId': 5, 'toSide': 3}],
        })
        assert (parsed.cards[0].id, parsed.cards[0].width, parsed.cards[0].height) == (4, 300, 200)
        assert parsed.connections == [connection(4, 1, 5, 3)]

    def test_empty_object_is_valid(self):
        """An empty object is an empty layout."""
        parsed = parse_layout('{}')
        assert parsed.cards == [] and parsed.connections == []

    @pytest.mark.parametrize('source', [
        'not json',
        b'\xff\xfe',
        '[]',
        {'cards': {}},
        {'connections': 'nope'},
        {'cards': [{'id': 'one', 'x': 0, 'y': 0}]},
        {'cards': [{'id': 1, 'x': '0', 'y': 0}]},
        {'cards': [{'id': 1, 'x': 0, 'y': 0, 'width': -5}]},
        {'cards': [42]},
        {'connections': [{'fromId': 1, 'fromSide': 12, 'toId': 2, 'toSide': 3}]},
    ])
    def test_malformed_raises_layout_error(self, source):
        """Malformed layouts raise LayoutError."""
        with pytest.raises(LayoutError):
            parse_layout(source)

    def test_layout_error_hierarchy(self):
        """LayoutError is also a ValueError."""
        assert issubclass(LayoutError, CardLinkError)
        assert issubclass(LayoutError, ValueError)


class TestCardBoard:
    """Default grid placement."""

    def test_grid_has_every_scenario(self, manager):
        """The grid has one card per scenario."""
        assert manager.board.ids() == SCENARIOS

    def test_grid_positions(self, manager):
        """Cards fill three columns below the header."""
        board = manager.board
        second = board.get(2)
        fourth = board.get(4)
        assert (second.x, second.y) == (DEFAULT_CARD_WIDTH + GRID_GAP, board.top_offset)
        assert (fourth.x, fourth.y) == (0, board.top_offset + DEFAULT_CARD_HEIGHT + GRID_GAP)

    def test_every_card_has_standard_endpoints(self, manager):
        """Every grid card gets the standard eight endpoints."""
        for card_id in SCENARIOS:
            assert len(manager.connector.registry.for_card(card_id)) == 8

    def test_move_clamps_below_header(self):
        """Cards cannot be moved above the header."""
        board = CardBoard(top_offset=56)
        board.add(1, 0, 100)
        board.move(1, 20, 10)
        assert (board.get(1).x, board.get(1).y) == (20, 56)

    def test_bring_to_front(self):
        """Bringing a card forward raises its z-index."""
        board = CardBoard(top_offset=0)
        board.add(1, 0, 0)
        board.add(2, 100, 100)
        board.bring_to_front(1)
        assert board.card_at(150, 150).id == 1

    def test_duplicate_card_rejected(self):
        """Adding an existing card id raises."""
        board = CardBoard()
        board.add(1, 0, 0)
        with pytest.raises(ValueError):
            board.add(1, 10, 10)

    def test_unknown_card_geometry(self):
        """Geometry calls on an unknown card return False."""
        board = CardBoard()
        assert not board.move(5, 0, 0)
        assert not board.resize(5, 400, 400)
        assert not board.bring_to_front(5)


class TestLayoutManager:
    """Apply, reset, save and load."""

    def test_serialize_layout(self, manager):
        """The layout lists cards and connections."""
        manager.connector.create_connection_from_saved(1, 1, 2, 3)
        layout = manager.serialize_layout()

        assert len(layout['cards']) == 9
        assert layout['cards'][0] == {'id': 1, 'x': 0, 'y': manager.board.top_offset,
                                      'width': DEFAULT_CARD_WIDTH, 'height': DEFAULT_CARD_HEIGHT}
        assert layout['connections'] == [connection(1, 1, 2, 3)]
        assert json.loads(manager.snapshot()) == layout

    def test_apply_layout_moves_cards_and_links(self, manager):
        """Applying a layout moves cards and recreates links."""
        created = manager.apply_layout({
            'cards': [{'id': 1, 'x': 100, 'y': 200, 'width': 400, 'height': 300}],
            'connections': [connection(1, 1, 2, 3)],
        })

        card = manager.board.get(1)
        assert (card.x, card.y, card.width, card.height) == (100, 200, 400, 300)
        assert created == ['line-1']
        line = manager.connector.view.get('line-1').line
        assert (line.x1, line.y1) == (500, 350)

    def test_apply_replaces_existing_connections(self, manager):
        """Applying drops the links that were there before."""
        manager.connector.create_connection_from_saved(4, 0, 5, 2)
        manager.apply_layout({'connections': [connection(1, 1, 2, 3)]})
        assert manager.connector.get_all_connections() == [connection(1, 1, 2, 3)]

    def test_apply_skips_unknown_cards(self, manager):
        """Cards the board does not have are skipped."""
        manager.apply_layout({
            'cards': [{'id': 99, 'x': 0, 'y': 0}],
            'connections': [connection(99, 1, 2, 3), connection(1, 1, 2, 3)],
        })
        assert manager.connector.get_all_connections() == [connection(1, 1, 2, 3)]

    def test_invalid_layout_changes_nothing(self, manager):
        """A bad layout leaves the board untouched."""
        manager.connector.create_connection_from_saved(1, 1, 2, 3)
        before = manager.serialize_layout()

        with pytest.raises(LayoutError):
            manager.apply_layout({
                'cards': [{'id': 1, 'x': 999, 'y': 999}],
                'connections': [{'fromId': 1}],
            })

        assert manager.serialize_layout() == before

    def test_save_then_load_round_trip(self, manager, kv_store, tmp_path):
        """A saved layout loads back on a fresh board."""
        manager.apply_layout({
            'cards': [{'id': 3, 'x': 40, 'y': 400}],
            'connections': [connection(3, 0, 1, 2, from_pos=0.3), connection(2, 5, 6, 7)],
        })
        saved = manager.save()
        assert kv_store.get(OCCUPANCY_KEY)

        fresh_board = CardBoard()
        fresh_connector = ConnectorSystem(fresh_board.endpoint_center)
        fresh = LayoutManager(fresh_board, fresh_connector, KeyValueStore(tmp_path / "store.json"))
        fresh.init_grid()

        assert fresh.load()
        assert fresh.serialize_layout() == saved

    def test_load_without_saved_layout(self, manager):
        """Loading with nothing saved returns False with a reason."""
        assert not manager.load()
        assert manager.last_error == "No saved layout"

    def test_malformed_load_falls_back_to_grid(self, manager):
        """A malformed layout resets to the grid."""
        manager.connector.create_connection_from_saved(1, 1, 2, 3)
        manager.board.move(1, 700, 700)

        assert not manager.load('{"cards": [{"id": 1}]}')

        assert manager.last_error
        assert manager.connector.get_all_connections() == []
        card = manager.board.get(1)
        assert (card.x, card.y) == grid_position(0, manager.board.top_offset)

    def test_malformed_saved_layout_falls_back(self, manager, kv_store):
        """A malformed stored layout resets to the grid."""
        kv_store.set(LAYOUT_KEY, {'cards': 'broken'})
        assert not manager.load()
        assert "'cards' must be a list" in manager.last_error

    def test_reset_layout(self, manager):
        """Reset puts cards back and removes every link."""
        manager.connector.create_connection_from_saved(1, 1, 2, 3)
        manager.board.resize(2, 600, 500)

        manager.reset_layout()

        assert manager.connector.get_all_connections() == []
        card = manager.board.get(2)
        assert (card.width, card.height) == (DEFAULT_CARD_WIDTH, DEFAULT_CARD_HEIGHT)
