"""
OAuth authorization-code flow components.
"""

from .credentials import CredentialSpec, CredentialStore
from .authorization import build_authorization_url, parse_authorization_url, generate_state
from .exchange import TokenExchanger
from .verification import TokenVerifier, classify_status, summarize
from .persistence import TokenPersister
from .flow import OAuthFlow

__all__ = [
    'CredentialSpec',
    'CredentialStore',
    'build_authorization_url',
    'parse_authorization_url',
    'generate_state',
    'TokenExchanger',
    'TokenVerifier',
    'classify_status',
    'summarize',
    'TokenPersister',
    'OAuthFlow'
]
