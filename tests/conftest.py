"""Shared fixtures for OAuth Bootstrap tests."""

import json
from unittest.mock import MagicMock

import pytest

from oauth_bootstrap.models import ClientCredentials, EndpointCheck
from oauth_bootstrap.providers import ProviderProfile


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep real credentials in the environment out of the tests."""
    for key in [
        'GOOGLE_CLIENT_ID', 'GOOGLE_CLIENT_SECRET', 'GOOGLE_REDIRECT_URI',
        'ZENDESK_CLIENT_ID', 'ZENDESK_SECRET', 'ZENDESK_SUBDOMAIN', 'ZENDESK_REDIRECT_URI',
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def credentials():
    """Client credentials used throughout the tests."""
    return ClientCredentials(
        client_id="abc",
        client_secret="xyz",
        redirect_uri="http://localhost:3000/callback"
    )


@pytest.fixture
def profile():
    """A vendor profile without token key prefix or vendor extras."""
    return ProviderProfile(
        name="vendor",
        authorize_url="https://vendor.example/oauth/authorize",
        token_url="https://vendor.example/oauth/token",
        default_scopes=["scopeA", "scopeB"],
        token_request_format="json",
        verification_endpoints=[
            EndpointCheck("Profile", "https://vendor.example/api/me"),
            EndpointCheck("Tickets", "https://vendor.example/api/tickets"),
        ],
        token_key_prefix="",
        default_token_file=".env",
    )


@pytest.fixture
def make_response():
    """Factory for fake ``requests.Response`` objects."""
    def _make(status_code=200, payload=None, text=None):
        response = MagicMock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        if payload is None:
            response.json.side_effect = ValueError("No JSON")
            response.text = text or ""
        else:
            response.json.return_value = payload
            response.text = text if text is not None else json.dumps(payload)
        return response
    return _make


@pytest.fixture
def token_session(make_response):
    """Session whose POST returns a successful token response."""
    session = MagicMock()
    session.post.return_value = make_response(200, {
        'access_token': 'tok1',
        'token_type': 'Bearer',
        'expires_in': 3600,
    })
    return session
