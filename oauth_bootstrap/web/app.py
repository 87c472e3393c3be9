"""Flask application serving the OAuth landing page and callback route."""

import logging
from urllib.parse import urlsplit

from flask import Flask, request

from ..auth.flow import OAuthFlow
from ..models import CallbackResult
from .pages import render_index_page, render_result_page


logger = logging.getLogger(__name__)


def callback_path(redirect_uri: str) -> str:
    """Route path of a redirect URI (``/`` when it has none)."""
    return urlsplit(redirect_uri).path or '/'


def create_app(flow: OAuthFlow) -> Flask:
    """
    Create the Flask application for one OAuth run.

    Args:
        flow: The run's context object; stored in ``app.config['OAUTH_FLOW']``
    """
    app = Flask(__name__, template_folder='templates')
    app.config['OAUTH_FLOW'] = flow

    register_routes(app, callback_path(flow.credentials.redirect_uri))

    return app


def register_routes(app: Flask, path: str) -> None:
    """Register the landing page and the callback route."""

    def auth_callback():
        """
        OAuth callback endpoint.

        Query Parameters:
            - code: Authorization code from the vendor
            - state: State token echoed back by the vendor
            - error: Error code if authorization failed
            - error_description: Optional human-readable error
        """
        flow = app.config['OAUTH_FLOW']
        result = CallbackResult.from_query(request.args)
        logger.info(f"OAuth callback received on {request.path}")

        outcome = flow.handle_callback(result)
        return render_result_page(outcome), outcome.status_code

    app.add_url_rule(path, 'auth_callback', auth_callback, methods=['GET'])

    if path != '/':
        @app.route('/')
        def index():
            """Serve the page linking to the vendor consent screen."""
            return render_index_page(app.config['OAUTH_FLOW'])
