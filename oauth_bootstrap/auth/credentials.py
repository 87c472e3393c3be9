"""
Client credential loading.

Credentials are read from a dotenv-style file and the process environment,
with the environment taking precedence, and returned as a typed record.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from dotenv import dotenv_values

from ..errors import (
    ConfigurationError,
    malformed_credentials_error,
    mask_secret,
    missing_credentials_error,
)
from ..models import ClientCredentials


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialSpec:
    """Names of the keys holding one vendor's client registration."""
    client_id_key: str
    client_secret_key: str
    redirect_uri_key: str
    default_redirect_uri: str
    extra_keys: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def required_keys(self) -> List[str]:
        return [self.client_id_key, self.client_secret_key, *self.extra_keys]


class CredentialStore:
    """Reads client credentials from a local file and the environment."""

    def __init__(self, path: Optional[Union[str, Path]] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the store.

        Args:
            path: dotenv-style file with KEY=value lines (may be missing)
            environ: Environment mapping, defaults to ``os.environ``
        """
        self.path = Path(path) if path else None
        self.environ = os.environ if environ is None else environ

    def values(self) -> Dict[str, str]:
        """Return file values overlaid with environment values."""
        merged: Dict[str, str] = {}
        if self.path and self.path.exists():
            for key, value in dotenv_values(self.path).items():
                if value is not None:
                    merged[key] = value.strip()
        for key, value in self.environ.items():
            if value:
                merged[key] = value.strip()
        return merged

    def load(self, spec: CredentialSpec) -> Tuple[ClientCredentials, Dict[str, str]]:
        """
        Load the credentials described by ``spec``.

        Returns:
            The client credentials and a dict with the spec's extra keys

        Raises:
            ConfigurationError: If required keys are missing or the redirect
                URI is not an absolute http(s) URL
        """
        values = self.values()
        missing = [key for key in spec.required_keys if not values.get(key)]
        if missing:
            source = str(self.path) if self.path else "the environment"
            raise ConfigurationError(missing_credentials_error(missing, source))

        redirect_uri = values.get(spec.redirect_uri_key) or spec.default_redirect_uri
        parts = urlsplit(redirect_uri)
        if parts.scheme not in ('http', 'https') or not parts.netloc:
            raise ConfigurationError(malformed_credentials_error(
                spec.redirect_uri_key, redirect_uri, "must be an absolute http(s) URL"
            ))

        credentials = ClientCredentials(
            client_id=values[spec.client_id_key],
            client_secret=values[spec.client_secret_key],
            redirect_uri=redirect_uri,
        )
        extras = {key: values[key] for key in spec.extra_keys}

        logger.debug(
            f"Loaded credentials: client_id={credentials.client_id}, "
            f"client_secret={mask_secret(credentials.client_secret)}, "
            f"redirect_uri={credentials.redirect_uri}"
        )
        return credentials, extras
