"""
Main NiceGUI application for CardLink.

Renders the card board as SVG inside an interactive image, forwards pointer
events to the canvas controller, and provides Save / Load / Reset controls.
"""

import sys
from pathlib import Path

from nicegui import ui

from dotenv import load_dotenv
load_dotenv()

from cardlink.canvas import CanvasController
from cardlink.cards import CardBoard
from cardlink.config import LOG_LEVELS, get_settings
from cardlink.connector import init_connector_system
from cardlink.layout import LayoutManager
from cardlink.logging_config import setup_logging
from cardlink.storage import LAYOUT_KEY, LOG_LEVEL_KEY, KeyValueStore

settings = get_settings()
kv_store = KeyValueStore(Path(settings.db_dir) / 'store.json')
logger = setup_logging(kv_store.get(LOG_LEVEL_KEY) or settings.log_level)

# Process-wide state: the connector system must exist before any card registers endpoints
board = CardBoard()
connector = init_connector_system(board.endpoint_center, snap_radius=settings.snap_radius,
                                  card_exists=board.__contains__)
layout_manager = LayoutManager(board, connector, kv_store)
layout_manager.init_grid()
if LAYOUT_KEY in kv_store and not layout_manager.load():
    logger.warning(f"Saved layout not restored: {layout_manager.last_error}")
board.set_on_card_removed(connector.remove_card)
board.set_on_geometry_change(connector.recalculate_all_lines)

canvas = CanvasController(board, connector)


@ui.page('/')
def main_page():
    ui.query('body').style('margin: 0; padding: 0;')

    def refresh_canvas():
        image.content = canvas.render_svg()

    def handle_mouse(e):
        try:
            canvas.on_mouse(e.type, e.image_x, e.image_y)
        except Exception as ex:
            logger.exception(f"Pointer event {e.type} failed")
            ui.notify(f'Canvas error: {ex}', type='negative', position='bottom')
        refresh_canvas()

    def show_connection_detail(connection_id: str):
        connection = connector.store.get(connection_id)
        if connection is None:
            return

        with ui.dialog() as dialog, ui.card().classes('w-96'):
            ui.label(f'Connection {connection_id}').classes('text-lg font-bold')
            ui.label(
                f'Card {connection.source.card_id} ({connection.source.side.name.lower()}) '
                f'→ Card {connection.target.card_id} ({connection.target.side.name.lower()})'
            ).classes('text-sm text-gray-600')

            def remove():
                connector.remove_connection(connection_id)
                dialog.close()
                refresh_canvas()
                ui.notify(f'Removed {connection_id}', position='bottom')

            with ui.row().classes('w-full justify-end'):
                ui.button('Close', on_click=dialog.close).props('flat')
                ui.button('Remove', on_click=remove).props('color=negative')
        dialog.open()

    connector.set_detail_handler(show_connection_detail)

    def save_layout():
        layout = layout_manager.save()
        ui.notify(f"Layout saved ({len(layout['connections'])} connections)", type='positive', position='bottom')

    def load_saved():
        if layout_manager.load():
            ui.notify('Layout loaded', type='positive', position='bottom')
        else:
            ui.notify(f'Could not load layout: {layout_manager.last_error}', type='warning', position='bottom')
        refresh_canvas()

    def upload_layout(e):
        try:
            raw = e.content.read()
        except Exception as ex:
            ui.notify(f'Upload failed: {ex}', type='negative', position='bottom')
            return
        if layout_manager.load(raw):
            ui.notify(f'Loaded {e.name}', type='positive', position='bottom')
        else:
            ui.notify(f'Invalid layout, reset to grid: {layout_manager.last_error}', type='negative', position='bottom')
        refresh_canvas()

    def reset_layout():
        layout_manager.reset_layout()
        refresh_canvas()

    def change_log_level(e):
        setup_logging(e.value)
        kv_store.set(LOG_LEVEL_KEY, e.value)

    with ui.header().classes('items-center gap-2 bg-slate-800'):
        ui.label('CardLink').classes('text-lg font-bold')
        ui.button('Save', on_click=save_layout).props('dense flat color=white')
        ui.button('Load', on_click=load_saved).props('dense flat color=white')
        ui.button('Reset', on_click=reset_layout).props('dense flat color=white')
        ui.upload(label='Import layout', auto_upload=True, on_upload=upload_layout) \
            .props('dense flat accept=.json').classes('w-48')
        ui.space()
        ui.select(list(LOG_LEVELS), value=kv_store.get(LOG_LEVEL_KEY) or settings.log_level,
                  on_change=change_log_level).props('dense dark').classes('w-32')

    image = ui.interactive_image(
        size=(canvas.width, canvas.height),
        cross=False,
        events=['mousedown', 'mousemove', 'mouseup', 'dblclick'],
        on_mouse=handle_mouse,
    ).classes('w-full')
    refresh_canvas()


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='CardLink',
        host=settings.host,
        port=settings.port,
        reload=not getattr(sys, 'frozen', False),
    )
