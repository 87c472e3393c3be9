"""
Authorization URL construction.
"""

import secrets
from typing import Dict, Iterable, Optional, TYPE_CHECKING
from urllib.parse import parse_qs, quote, urlencode, urlsplit

from ..models import AuthorizationRequest, ClientCredentials

if TYPE_CHECKING:
    from ..providers import ProviderProfile


def generate_state() -> str:
    """Random state token echoed back by the vendor on the callback."""
    return secrets.token_urlsafe(24)


def build_authorization_request(profile: 'ProviderProfile', credentials: ClientCredentials,
                                scopes: Optional[Iterable[str]] = None,
                                state: Optional[str] = None,
                                extra_params: Optional[Dict[str, str]] = None) -> AuthorizationRequest:
    """Assemble the authorization request for a provider."""
    requested = list(profile.default_scopes if scopes is None else scopes)
    params = dict(profile.extra_auth_params)
    if extra_params:
        params.update(extra_params)
    return AuthorizationRequest(
        client_id=credentials.client_id,
        redirect_uri=credentials.redirect_uri,
        scopes=requested,
        state=state,
        extra_params=params,
    )


def authorization_url(endpoint: str, request: AuthorizationRequest) -> str:
    """
    Encode an authorization request onto the vendor endpoint.

    Spaces are encoded as ``%20`` so the scope list reads ``scopeA%20scopeB``.
    """
    query = urlencode(request.to_params(), quote_via=quote)
    separator = '&' if urlsplit(endpoint).query else '?'
    return f"{endpoint}{separator}{query}"


def build_authorization_url(profile: 'ProviderProfile', credentials: ClientCredentials,
                            scopes: Optional[Iterable[str]] = None,
                            state: Optional[str] = None,
                            extra_params: Optional[Dict[str, str]] = None) -> str:
    """
    Build the URL the operator opens to grant consent.

    Args:
        profile: Vendor profile with the authorization endpoint
        credentials: Client credentials (client id and redirect URI are used)
        scopes: Requested scopes, defaults to the profile's scopes
        state: Optional state token
        extra_params: Vendor-specific parameters passed through unchanged

    Returns:
        Fully qualified authorization URL
    """
    request = build_authorization_request(profile, credentials, scopes, state, extra_params)
    return authorization_url(profile.authorize_url, request)


def parse_authorization_url(url: str) -> Dict[str, str]:
    """Decode the query parameters of an authorization URL."""
    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    return {key: values[0] for key, values in query.items()}
