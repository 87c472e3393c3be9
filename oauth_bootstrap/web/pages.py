"""
HTML pages shown in the operator's browser.

The flow produces a ``CallbackOutcome``; this module turns it into markup so
the protocol code never builds HTML itself.
"""

from typing import TYPE_CHECKING

from flask import render_template

from ..models import CallbackOutcome

if TYPE_CHECKING:
    from ..auth.flow import OAuthFlow


def render_result_page(outcome: CallbackOutcome) -> str:
    """Render the page answering one callback request."""
    return render_template(
        'result.html',
        outcome=outcome,
        retry=not outcome.success and not outcome.terminal,
    )


def render_index_page(flow: 'OAuthFlow') -> str:
    """Render the landing page with the authorization link."""
    return render_template(
        'index.html',
        provider=flow.profile.name.capitalize(),
        authorization_url=flow.authorization_url,
        scopes=flow.request.scopes,
        redirect_uri=flow.credentials.redirect_uri,
        completed=flow.is_terminal,
    )
