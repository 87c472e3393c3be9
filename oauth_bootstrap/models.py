"""
Core data models for the OAuth authorization-code flow.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ClientCredentials:
    """OAuth client registration loaded once per process."""
    client_id: str
    client_secret: str
    redirect_uri: str


@dataclass
class AuthorizationRequest:
    """Query parameters sent to the vendor authorization endpoint."""
    client_id: str
    redirect_uri: str
    scopes: List[str]
    state: Optional[str] = None
    extra_params: Dict[str, str] = field(default_factory=dict)
    response_type: str = "code"

    @property
    def scope(self) -> str:
        """Scopes joined with a single space."""
        return " ".join(self.scopes)

    def to_params(self) -> Dict[str, str]:
        params = {
            'response_type': self.response_type,
            'client_id': self.client_id,
            'redirect_uri': self.redirect_uri,
        }
        if self.scopes:
            params['scope'] = self.scope
        if self.state:
            params['state'] = self.state
        params.update(self.extra_params)
        return params


@dataclass
class CallbackResult:
    """Parameters extracted from one inbound callback request."""
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_query(cls, args) -> 'CallbackResult':
        """Build from a mapping of query parameters."""
        return cls(
            code=args.get('code') or None,
            state=args.get('state') or None,
            error=args.get('error') or None,
            error_description=args.get('error_description') or None,
        )


@dataclass
class TokenSet:
    """Tokens returned by a vendor token endpoint."""
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> 'TokenSet':
        """
        Build a token set from a token endpoint JSON payload.

        Raises:
            ValueError: If the payload has no access token
        """
        access_token = payload.get('access_token')
        if not access_token:
            raise ValueError("Token response does not contain an access_token")

        expires_in = payload.get('expires_in')
        return cls(
            access_token=access_token,
            token_type=payload.get('token_type') or "Bearer",
            refresh_token=payload.get('refresh_token') or None,
            expires_in=int(expires_in) if expires_in is not None else None,
            scope=payload.get('scope') or None,
        )


@dataclass(frozen=True)
class EndpointCheck:
    """A lightweight authenticated request used to verify a token."""
    name: str
    url: str


class VerificationStatus(Enum):
    """Classification of one verification request."""
    AUTHORIZED = "authorized"
    TOKEN_INVALID = "token_invalid"
    INSUFFICIENT_SCOPE = "insufficient_scope"
    UNEXPECTED_STATUS = "unexpected_status"
    NETWORK_ERROR = "network_error"


@dataclass
class VerificationResult:
    """Outcome of one verification request."""
    name: str
    url: str
    status: VerificationStatus
    http_status: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is VerificationStatus.AUTHORIZED


class FlowState(Enum):
    """States of a single OAuth run."""
    LISTENING = "listening"
    CODE_RECEIVED = "code_received"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SHUTTING_DOWN = "shutting_down"


class ResultPage(Enum):
    """Pages the callback listener can render."""
    SUCCESS = "success"
    AUTHORIZATION_DENIED = "authorization_denied"
    EXCHANGE_FAILED = "exchange_failed"
    STORAGE_FAILED = "storage_failed"
    MALFORMED = "malformed"
    STATE_MISMATCH = "state_mismatch"
    ALREADY_COMPLETED = "already_completed"


@dataclass
class CallbackOutcome:
    """What the listener renders in answer to one callback request."""
    page: ResultPage
    status_code: int
    title: str
    message: str
    details: List[str] = field(default_factory=list)
    terminal: bool = False

    @property
    def success(self) -> bool:
        return self.page is ResultPage.SUCCESS
