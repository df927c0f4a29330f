"""
Layout management - default grid, reset, save and load.

A layout document looks like:

    {
      "cards": [{"id": 1, "x": 0, "y": 56, "width": 350, "height": 250}, ...],
      "connections": [{"fromId": 1, "fromSide": 1, "fromPosition": 0.5,
                       "toId": 2, "toSide": 3, "toPosition": 0.5}, ...]
    }

Older documents used "arrows" instead of "connections" and "scenarioId"
(or "n", "w", "h") in card entries; both are accepted on load, the output
always uses the format above.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from cardlink.cards import CardBoard
from cardlink.errors import LayoutError
from cardlink.models import Connection
from cardlink.connector.manager import ConnectorSystem
from cardlink.storage import LAYOUT_KEY, OCCUPANCY_KEY, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class CardSpec:
    id: int
    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class ParsedLayout:
    cards: List[CardSpec] = field(default_factory=list)
    connections: List[Dict[str, Any]] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _first(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def _parse_card(item: Any, index: int) -> CardSpec:
    if not isinstance(item, dict):
        raise LayoutError(f"cards[{index}] must be an object")

    card_id = _first(item, 'id', 'scenarioId', 'n')
    if not isinstance(card_id, int) or isinstance(card_id, bool):
        raise LayoutError(f"cards[{index}] has no integer id")

    x, y = item.get('x'), item.get('y')
    if not _is_number(x) or not _is_number(y):
        raise LayoutError(f"cards[{index}] (id {card_id}) needs numeric x and y")

    width = _first(item, 'width', 'w')
    height = _first(item, 'height', 'h')
    for name, value in (('width', width), ('height', height)):
        if value is not None and (not _is_number(value) or value <= 0):
            raise LayoutError(f"cards[{index}] (id {card_id}) has invalid {name} {value!r}")

    return CardSpec(id=card_id, x=x, y=y, width=width, height=height)


def parse_layout(source: Union[str, bytes, Dict[str, Any]]) -> ParsedLayout:
    """
    Validate a layout document without touching any state.

    Raises:
        LayoutError: if the document is not valid JSON or not layout-shaped.
    """
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise LayoutError(f"Layout is not valid JSON: {e}") from e
    else:
        data = source

    if not isinstance(data, dict):
        raise LayoutError("Layout must be a JSON object")

    cards = data.get('cards', [])
    if not isinstance(cards, list):
        raise LayoutError("'cards' must be a list")

    connections = data.get('connections', data.get('arrows', []))
    if not isinstance(connections, list):
        raise LayoutError("'connections' must be a list")

    parsed = ParsedLayout(cards=[_parse_card(item, i) for i, item in enumerate(cards)])

    for i, item in enumerate(connections):
        try:
            source_ref, target_ref = Connection.refs_from_dict(item)
        except ValueError as e:
            raise LayoutError(f"connections[{i}]: {e}") from e
        parsed.connections.append({
            'fromId': source_ref.card_id,
            'fromSide': int(source_ref.side),
            'fromPosition': source_ref.position,
            'toId': target_ref.card_id,
            'toSide': int(target_ref.side),
            'toPosition': target_ref.position,
        })

    return parsed


class LayoutManager:
    """
    Coordinates the card board, the connector system and the saved layout.

    Args:
        board: Card board holding the cards
        connector: Connector system the cards' endpoints are registered in
        store: Key-value store the layout is saved to
    """

    def __init__(self, board: CardBoard, connector: ConnectorSystem, store: KeyValueStore):
        self.board = board
        self.connector = connector
        self.store = store
        self.last_error: Optional[str] = None

    def init_grid(self) -> None:
        """First-run placement: one card per scenario, each with its standard endpoints."""
        for card_id in self.board.ids():
            self.connector.remove_card(card_id)
        for card in self.board.init_grid():
            self.connector.register_endpoints(card.id)
        self.connector.recalculate_all_lines()

    def serialize_layout(self) -> Dict[str, Any]:
        return {
            'cards': [card.to_dict() for card in self.board],
            'connections': self.connector.get_all_connections(),
        }

    def snapshot(self) -> str:
        """Pretty-printed layout JSON."""
        return json.dumps(self.serialize_layout(), indent=2, ensure_ascii=False)

    def apply_layout(self, source: Union[str, bytes, Dict[str, Any]]) -> List[str]:
        """
        Apply a layout onto the existing cards.

        The document is fully validated first; on LayoutError nothing has
        changed. Cards the board does not know are skipped.

        Returns:
            Ids of the connections recreated.
        """
        parsed = parse_layout(source)

        self.connector.clear_all_connections()
        for card_id in self.board.ids():
            self.connector.remove_card(card_id)
            self.connector.register_endpoints(card_id)

        for spec in parsed.cards:
            card = self.board.get(spec.id)
            if card is None:
                logger.warning(f"Skipping unknown card {spec.id} in layout")
                continue
            card.move_to(spec.x, max(spec.y, self.board.top_offset))
            card.resize(spec.width or card.width, spec.height or card.height)

        created = self.connector.load_connections(parsed.connections)
        logger.info(f"Applied layout: {len(parsed.cards)} cards, {len(created)} connections")
        return created

    def reset_layout(self) -> None:
        """Every card back to the grid, every connection gone."""
        self.connector.clear_all_connections()
        self.board.reset_grid()
        self.connector.recalculate_all_lines()
        logger.info("Layout reset to default grid")

    def save(self) -> Dict[str, Any]:
        layout = self.serialize_layout()
        self.store.set(LAYOUT_KEY, layout)
        self.store.set(OCCUPANCY_KEY, self.connector.get_occupancy())
        logger.info(f"Saved layout with {len(layout['connections'])} connections")
        return layout

    def load(self, source: Optional[Union[str, bytes, Dict[str, Any]]] = None) -> bool:
        """
        Load a layout, falling back to the default grid if it is malformed.

        With no source, the last saved layout is loaded from the store.

        Returns:
            True if a layout was applied. On failure the reason is left in
            `last_error`.
        """
        self.last_error = None
        from_store = source is None
        if from_store:
            source = self.store.get(LAYOUT_KEY)
            if source is None:
                self.last_error = "No saved layout"
                logger.info("No saved layout to load")
                return False

        try:
            self.apply_layout(source)
        except LayoutError as e:
            self.last_error = str(e)
            logger.error(f"Failed to load layout: {e}")
            self.reset_layout()
            return False

        if from_store:
            self.connector.restore_occupancy(self.store.get(OCCUPANCY_KEY, []))
        return True
