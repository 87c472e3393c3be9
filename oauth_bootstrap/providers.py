"""
Vendor profiles for the supported OAuth providers.

A profile describes the vendor endpoints, the way its token endpoint expects
requests, the endpoints used to verify a token, and where tokens are saved.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from .auth.credentials import CredentialSpec, CredentialStore
from .config import Config
from .errors import ConfigurationError, malformed_credentials_error, missing_credentials_error
from .models import ClientCredentials, EndpointCheck


@dataclass
class ProviderProfile:
    """Endpoints and conventions of one OAuth vendor."""
    name: str
    authorize_url: str
    token_url: str
    default_scopes: List[str] = field(default_factory=list)
    extra_auth_params: Dict[str, str] = field(default_factory=dict)
    token_request_format: str = "form"
    verification_endpoints: List[EndpointCheck] = field(default_factory=list)
    token_key_prefix: str = ""
    default_token_file: str = ".env"
    uses_google_auth: bool = False

    def __post_init__(self):
        if self.token_request_format not in ("form", "json"):
            raise ValueError(f"Unsupported token request format: {self.token_request_format}")


GOOGLE_CREDENTIALS = CredentialSpec(
    client_id_key="GOOGLE_CLIENT_ID",
    client_secret_key="GOOGLE_CLIENT_SECRET",
    redirect_uri_key="GOOGLE_REDIRECT_URI",
    default_redirect_uri=Config.GOOGLE_REDIRECT_URI,
)

ZENDESK_CREDENTIALS = CredentialSpec(
    client_id_key="ZENDESK_CLIENT_ID",
    client_secret_key="ZENDESK_SECRET",
    redirect_uri_key="ZENDESK_REDIRECT_URI",
    default_redirect_uri=Config.ZENDESK_REDIRECT_URI,
    extra_keys=("ZENDESK_SUBDOMAIN",),
)


def google_profile() -> ProviderProfile:
    """Profile for Google Workspace APIs."""
    return ProviderProfile(
        name="google",
        authorize_url=Config.GOOGLE_AUTHORIZE_URL,
        token_url=Config.GOOGLE_TOKEN_URL,
        default_scopes=list(Config.GOOGLE_SCOPES),
        # offline access and a forced consent screen yield a refresh token
        extra_auth_params={'access_type': 'offline', 'prompt': 'consent'},
        token_request_format="form",
        verification_endpoints=[
            EndpointCheck(name, url) for name, url in Config.GOOGLE_VERIFICATION_ENDPOINTS
        ],
        token_key_prefix="GOOGLE_",
        default_token_file=Config.GOOGLE_TOKEN_FILE,
        uses_google_auth=True,
    )


def zendesk_base_url(subdomain: str) -> str:
    """
    Normalize a Zendesk subdomain setting to a base URL.

    Accepts either a full URL (``https://acme.zendesk.com``) or the bare
    account name (``acme``).
    """
    value = subdomain.strip().rstrip('/')
    if not value:
        raise ConfigurationError(malformed_credentials_error(
            "ZENDESK_SUBDOMAIN", subdomain, "must not be empty"
        ))
    if value.startswith(('http://', 'https://')):
        return value
    if '.' in value:
        return f"https://{value}"
    return f"https://{value}.{Config.ZENDESK_DOMAIN}"


def zendesk_profile(subdomain: str) -> ProviderProfile:
    """Profile for a Zendesk account."""
    base_url = zendesk_base_url(subdomain)
    return ProviderProfile(
        name="zendesk",
        authorize_url=f"{base_url}/oauth/authorizations/new",
        token_url=f"{base_url}/oauth/tokens",
        default_scopes=list(Config.ZENDESK_SCOPES),
        token_request_format="json",
        verification_endpoints=[
            EndpointCheck(name, f"{base_url}{path}")
            for name, path in Config.ZENDESK_VERIFICATION_PATHS
        ],
        token_key_prefix="ZENDESK_",
        default_token_file=Config.ZENDESK_TOKEN_FILE,
    )


# name -> (credential keys, default credentials file, profile factory)
PROVIDERS: Dict[str, Tuple[CredentialSpec, str, Callable[[Dict[str, str]], ProviderProfile]]] = {
    "google": (
        GOOGLE_CREDENTIALS,
        Config.GOOGLE_CREDENTIALS_FILE,
        lambda extras: google_profile(),
    ),
    "zendesk": (
        ZENDESK_CREDENTIALS,
        Config.ZENDESK_CREDENTIALS_FILE,
        lambda extras: zendesk_profile(extras["ZENDESK_SUBDOMAIN"]),
    ),
}


def load_profile(name: str, credentials_file: Optional[Union[str, Path]] = None,
                 environ: Optional[Dict[str, str]] = None) -> ProviderProfile:
    """
    Resolve only the provider profile, without requiring client credentials.

    Used by commands that work with an already stored token.

    Raises:
        ConfigurationError: If a key needed to build the profile is missing
    """
    spec, default_file, factory = PROVIDERS[name]
    store = CredentialStore(credentials_file or default_file, environ=environ)
    values = store.values()
    missing = [key for key in spec.extra_keys if not values.get(key)]
    if missing:
        raise ConfigurationError(missing_credentials_error(missing, str(store.path)))
    return factory({key: values[key] for key in spec.extra_keys})


def load_provider(name: str, credentials_file: Optional[Union[str, Path]] = None,
                  environ: Optional[Dict[str, str]] = None) -> Tuple[ProviderProfile, ClientCredentials]:
    """
    Resolve a provider profile together with its client credentials.

    Args:
        name: Provider name (see ``PROVIDERS``)
        credentials_file: Override for the provider's default credentials file
        environ: Environment mapping, defaults to ``os.environ``

    Raises:
        ConfigurationError: If credentials are missing or malformed
        KeyError: If the provider is unknown
    """
    spec, default_file, factory = PROVIDERS[name]
    store = CredentialStore(credentials_file or default_file, environ=environ)
    credentials, extras = store.load(spec)
    return factory(extras), credentials
