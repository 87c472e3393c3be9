"""
Token endpoint client.

Exchanges a single-use authorization code for tokens and refreshes stored
access tokens. Nothing here retries: a rejected code must be replaced by a
fresh authorization.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from ..config import Config
from ..errors import (
    NetworkError,
    TokenExchangeRejected,
    mask_secret,
    network_error,
    token_exchange_error,
)
from ..models import ClientCredentials, TokenSet
from .http import create_session

if TYPE_CHECKING:
    from ..providers import ProviderProfile


logger = logging.getLogger(__name__)


class TokenExchanger:
    """Posts grants to a vendor token endpoint."""

    def __init__(self, profile: 'ProviderProfile', credentials: ClientCredentials,
                 session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        """
        Initialize the exchanger.

        Args:
            profile: Vendor profile with the token endpoint
            credentials: Client credentials; the redirect URI must be the one
                used to build the authorization URL
            session: HTTP session, created with a bounded timeout if omitted
            timeout: Request timeout in seconds
        """
        self.profile = profile
        self.credentials = credentials
        self.timeout = timeout or Config.HTTP_TIMEOUT
        self.session = session or create_session(self.timeout)

    def exchange_code(self, code: str) -> TokenSet:
        """
        Exchange an authorization code for tokens.

        Raises:
            TokenExchangeRejected: If the vendor refuses the code or answers
                without an access token
            NetworkError: On timeout, connection failure or any other
                transport error
        """
        body = {
            'grant_type': 'authorization_code',
            'code': code,
            'client_id': self.credentials.client_id,
            'client_secret': self.credentials.client_secret,
            'redirect_uri': self.credentials.redirect_uri,
        }
        logger.info(f"Exchanging authorization code {mask_secret(code)} at {self.profile.token_url}")
        token_set = self._post_grant(body)
        logger.info(
            f"Token exchange successful: access_token={mask_secret(token_set.access_token, 20)}, "
            f"expires_in={token_set.expires_in}"
        )
        return token_set

    def refresh(self, refresh_token: str) -> TokenSet:
        """
        Obtain a new access token from a refresh token.

        The returned token set keeps ``refresh_token`` when the vendor does
        not issue a new one.
        """
        if not refresh_token:
            raise ValueError("A refresh token is required")

        if self.profile.uses_google_auth:
            token_set = self._refresh_with_google_auth(refresh_token)
        else:
            token_set = self._post_grant({
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
                'client_id': self.credentials.client_id,
                'client_secret': self.credentials.client_secret,
            })

        if not token_set.refresh_token:
            token_set.refresh_token = refresh_token
        logger.info(f"Access token refreshed: {mask_secret(token_set.access_token, 20)}")
        return token_set

    def _post_grant(self, body: Dict[str, str]) -> TokenSet:
        url = self.profile.token_url
        try:
            if self.profile.token_request_format == "json":
                response = self.session.post(url, json=body, timeout=self.timeout)
            else:
                response = self.session.post(url, data=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(network_error(url, e)) from e

        payload = self._json_or_none(response)
        if not response.ok:
            payload = payload or {}
            raise TokenExchangeRejected(token_exchange_error(
                response.status_code,
                self._error_field(payload, 'error'),
                self._error_field(payload, 'error_description'),
                response.text,
            ))

        try:
            return TokenSet.from_response(payload or {})
        except (TypeError, ValueError, OverflowError):
            raise TokenExchangeRejected(token_exchange_error(
                response.status_code, None, None, response.text
            ))

    def _refresh_with_google_auth(self, refresh_token: str) -> TokenSet:
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.profile.token_url,
            client_id=self.credentials.client_id,
            client_secret=self.credentials.client_secret,
        )
        try:
            credentials.refresh(Request(session=self.session))
        except RefreshError as e:
            body = str(e.args[1]) if len(e.args) > 1 else str(e)
            raise TokenExchangeRejected(token_exchange_error(
                None, 'refresh_failed', str(e.args[0]) if e.args else None, body
            )) from e
        except TransportError as e:
            raise NetworkError(network_error(self.profile.token_url, e)) from e

        expires_in = None
        if credentials.expiry:
            now = datetime.now(timezone.utc).replace(tzinfo=None)
            expires_in = max(int((credentials.expiry - now).total_seconds()), 0)
        return TokenSet(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_in=expires_in,
        )

    @staticmethod
    def _json_or_none(response: requests.Response) -> Optional[Dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None

    @staticmethod
    def _error_field(payload: Dict[str, Any], key: str) -> Optional[str]:
        value = payload.get(key)
        # Google APIs sometimes nest errors as {"error": {"message": ...}}
        if isinstance(value, dict):
            value = value.get('status') or value.get('message')
        return str(value) if value else None
