"""Local web surface for the OAuth redirect."""

from .app import create_app, callback_path
from .listener import CallbackListener
from .pages import render_result_page, render_index_page

__all__ = [
    'create_app',
    'callback_path',
    'CallbackListener',
    'render_result_page',
    'render_index_page'
]
