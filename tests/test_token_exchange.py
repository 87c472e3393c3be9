"""Tests for the token endpoint client."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import requests
from google.auth.exceptions import RefreshError, TransportError

from oauth_bootstrap.auth.exchange import TokenExchanger
from oauth_bootstrap.errors import NetworkError, TokenExchangeRejected
from oauth_bootstrap.models import ClientCredentials
from oauth_bootstrap.providers import google_profile


class TestExchangeCode:
    """Test TokenExchanger.exchange_code."""

    def test_successful_exchange(self, profile, credentials, token_session):
        """Test the end-to-end example exchange."""
        exchanger = TokenExchanger(profile, credentials, session=token_session)

        token_set = exchanger.exchange_code("testcode123")

        assert token_set.access_token == "tok1"
        assert token_set.token_type == "Bearer"
        assert token_set.expires_in == 3600
        assert token_set.refresh_token is None

    def test_request_body(self, profile, credentials, token_session):
        """Test the grant fields and that the redirect URI is sent unchanged."""
        TokenExchanger(profile, credentials, session=token_session).exchange_code("testcode123")

        token_session.post.assert_called_once()
        args, kwargs = token_session.post.call_args
        assert args[0] == "https://vendor.example/oauth/token"
        assert kwargs['json'] == {
            'grant_type': 'authorization_code',
            'code': 'testcode123',
            'client_id': 'abc',
            'client_secret': 'xyz',
            'redirect_uri': 'http://localhost:3000/callback',
        }
        assert kwargs['timeout'] > 0

    def test_form_encoded_provider(self, profile, credentials, token_session):
        """Test that form providers send the grant as form data."""
        profile.token_request_format = "form"

        TokenExchanger(profile, credentials, session=token_session).exchange_code("c")

        _, kwargs = token_session.post.call_args
        assert 'json' not in kwargs
        assert kwargs['data']['code'] == 'c'

    def test_rejected_code(self, profile, credentials, token_session, make_response):
        """Test that a 4xx answer surfaces the vendor error verbatim."""
        token_session.post.return_value = make_response(400, {
            'error': 'invalid_grant',
            'error_description': 'Bad Request',
        })

        with pytest.raises(TokenExchangeRejected) as exc_info:
            TokenExchanger(profile, credentials, session=token_session).exchange_code("used")

        error = exc_info.value
        assert error.status_code == 400
        assert error.vendor_error == "invalid_grant"
        assert 'invalid_grant' in error.body
        assert 'Bad Request' in str(error)
        assert token_session.post.call_count == 1

    def test_rejected_with_non_json_body(self, profile, credentials, token_session, make_response):
        token_session.post.return_value = make_response(502, text="<html>Bad Gateway</html>")

        with pytest.raises(TokenExchangeRejected) as exc_info:
            TokenExchanger(profile, credentials, session=token_session).exchange_code("c")

        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "<html>Bad Gateway</html>"

    def test_nested_google_error(self, profile, credentials, token_session, make_response):
        token_session.post.return_value = make_response(401, {
            'error': {'status': 'UNAUTHENTICATED', 'message': 'Invalid client'},
        })

        with pytest.raises(TokenExchangeRejected) as exc_info:
            TokenExchanger(profile, credentials, session=token_session).exchange_code("c")

        assert exc_info.value.vendor_error == "UNAUTHENTICATED"

    def test_missing_access_token(self, profile, credentials, token_session, make_response):
        """Test that a 200 answer without an access token is a failure."""
        token_session.post.return_value = make_response(200, {'token_type': 'Bearer'})

        with pytest.raises(TokenExchangeRejected):
            TokenExchanger(profile, credentials, session=token_session).exchange_code("c")

    def test_unusable_expires_in(self, profile, credentials, token_session, make_response):
        """Test that a malformed success payload is reported as a rejected exchange."""
        token_session.post.return_value = make_response(200, {
            'access_token': 'tok',
            'expires_in': [3600],
        })

        with pytest.raises(TokenExchangeRejected) as exc_info:
            TokenExchanger(profile, credentials, session=token_session).exchange_code("c")

        assert exc_info.value.status_code == 200
        assert "3600" in exc_info.value.body

    @pytest.mark.parametrize("exception", [
        requests.Timeout("read timed out"),
        requests.ConnectionError("connection refused"),
        requests.TooManyRedirects("Exceeded 30 redirects."),
        requests.exceptions.InvalidURL("No host supplied"),
    ])
    def test_network_failure(self, profile, credentials, token_session, exception):
        """Test that transport errors become NetworkError without a retry."""
        token_session.post.side_effect = exception

        with pytest.raises(NetworkError) as exc_info:
            TokenExchanger(profile, credentials, session=token_session).exchange_code("c")

        assert exc_info.value.processing_error.error_code == "NET_001"
        assert token_session.post.call_count == 1


class TestRefresh:
    """Test TokenExchanger.refresh."""

    def test_refresh_grant(self, profile, credentials, token_session):
        """Test the refresh grant body for non-Google providers."""
        token_set = TokenExchanger(profile, credentials, session=token_session).refresh("rt1")

        _, kwargs = token_session.post.call_args
        assert kwargs['json'] == {
            'grant_type': 'refresh_token',
            'refresh_token': 'rt1',
            'client_id': 'abc',
            'client_secret': 'xyz',
        }
        assert token_set.access_token == "tok1"
        assert token_set.refresh_token == "rt1"

    def test_rotated_refresh_token(self, profile, credentials, token_session, make_response):
        token_session.post.return_value = make_response(200, {
            'access_token': 'tok2',
            'refresh_token': 'rt2',
        })

        token_set = TokenExchanger(profile, credentials, session=token_session).refresh("rt1")

        assert token_set.refresh_token == "rt2"

    def test_refresh_requires_token(self, profile, credentials, token_session):
        with pytest.raises(ValueError):
            TokenExchanger(profile, credentials, session=token_session).refresh("")

    def test_google_refresh(self, token_session):
        """Test that Google refreshes go through google-auth credentials."""
        creds = ClientCredentials("gid", "gsecret", "http://localhost:3000/auth/callback")
        exchanger = TokenExchanger(google_profile(), creds, session=token_session)

        def fake_refresh(self, request):
            self.token = "fresh-token"
            self.expiry = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=3600)

        with patch('google.oauth2.credentials.Credentials.refresh', autospec=True,
                   side_effect=fake_refresh) as mock_refresh:
            token_set = exchanger.refresh("google-rt")

        mock_refresh.assert_called_once()
        assert token_set.access_token == "fresh-token"
        assert token_set.refresh_token == "google-rt"
        assert 3500 <= token_set.expires_in <= 3600

    def test_google_refresh_rejected(self, token_session):
        creds = ClientCredentials("gid", "gsecret", "http://localhost:3000/auth/callback")
        exchanger = TokenExchanger(google_profile(), creds, session=token_session)

        with patch('google.oauth2.credentials.Credentials.refresh',
                   side_effect=RefreshError("invalid_grant: Token has been expired or revoked.",
                                            {'error': 'invalid_grant'})):
            with pytest.raises(TokenExchangeRejected) as exc_info:
                exchanger.refresh("revoked")

        assert "invalid_grant" in exc_info.value.body

    def test_google_refresh_network_failure(self, token_session):
        creds = ClientCredentials("gid", "gsecret", "http://localhost:3000/auth/callback")
        exchanger = TokenExchanger(google_profile(), creds, session=token_session)

        with patch('google.oauth2.credentials.Credentials.refresh',
                   side_effect=TransportError("connection reset")):
            with pytest.raises(NetworkError):
                exchanger.refresh("rt")
