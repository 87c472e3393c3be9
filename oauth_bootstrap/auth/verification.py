"""
Token verification against lightweight vendor endpoints.

Each endpoint is called once with the access token and the response status is
classified. Verification never raises: results are only annotated for the
operator.
"""

import logging
from typing import Callable, Iterable, List, Optional, Tuple, TYPE_CHECKING

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.credentials import Credentials

from ..config import Config
from ..errors import ErrorHandler, insufficient_scope_warning
from ..models import EndpointCheck, VerificationResult, VerificationStatus
from .http import create_session, mount_timeout

if TYPE_CHECKING:
    from ..providers import ProviderProfile


logger = logging.getLogger(__name__)


class TokenVerifier:
    """Checks that an access token carries the expected permissions."""

    def __init__(self, profile: 'ProviderProfile', timeout: Optional[float] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 session_factory: Optional[Callable[[str], requests.Session]] = None):
        """
        Initialize the verifier.

        Args:
            profile: Vendor profile with the default verification endpoints
            timeout: Per-request timeout in seconds
            error_handler: Receives a warning for every 403 response
            session_factory: Builds an authenticated session for a token
        """
        self.profile = profile
        self.timeout = timeout or Config.HTTP_TIMEOUT
        self.error_handler = error_handler
        self.session_factory = session_factory or self._open_session

    def verify(self, access_token: str,
               endpoints: Optional[Iterable[EndpointCheck]] = None) -> List[VerificationResult]:
        """
        Call every endpoint once with ``access_token``.

        Returns:
            One result per endpoint, in order
        """
        checks = list(self.profile.verification_endpoints if endpoints is None else endpoints)
        results = []
        session = self.session_factory(access_token)
        try:
            for check in checks:
                result = self._check(session, check)
                self._report(result)
                results.append(result)
        finally:
            session.close()
        return results

    def _open_session(self, access_token: str) -> requests.Session:
        if self.profile.uses_google_auth:
            # A bare token cannot be refreshed, so 401s are reported as-is
            session = AuthorizedSession(Credentials(token=access_token), refresh_status_codes=())
            session.headers.update({'Accept': 'application/json', 'User-Agent': Config.USER_AGENT})
            return mount_timeout(session, self.timeout)

        session = create_session(self.timeout)
        session.headers['Authorization'] = f"Bearer {access_token}"
        return session

    def _check(self, session: requests.Session, check: EndpointCheck) -> VerificationResult:
        try:
            response = session.get(check.url, timeout=self.timeout)
        except requests.RequestException as e:
            return VerificationResult(
                name=check.name,
                url=check.url,
                status=VerificationStatus.NETWORK_ERROR,
                detail=f"{type(e).__name__}: {e}",
            )

        status = classify_status(response.status_code)
        detail = {
            VerificationStatus.AUTHORIZED: "Working",
            VerificationStatus.TOKEN_INVALID: "Token expired or invalid",
            VerificationStatus.INSUFFICIENT_SCOPE: "Insufficient scopes",
        }.get(status, f"Unexpected status {response.status_code}")
        return VerificationResult(
            name=check.name,
            url=check.url,
            status=status,
            http_status=response.status_code,
            detail=detail,
        )

    def _report(self, result: VerificationResult) -> None:
        if result.ok:
            logger.info(f"{result.name}: ✓ {result.detail} ({result.http_status})")
            return

        logger.warning(f"{result.name}: {result.detail}")
        if result.status is VerificationStatus.INSUFFICIENT_SCOPE and self.error_handler:
            self.error_handler.add_error(insufficient_scope_warning(result.name, result.url))


def classify_status(status_code: int) -> VerificationStatus:
    """Map an HTTP status to a verification status."""
    if 200 <= status_code < 300:
        return VerificationStatus.AUTHORIZED
    if status_code == 401:
        return VerificationStatus.TOKEN_INVALID
    if status_code == 403:
        return VerificationStatus.INSUFFICIENT_SCOPE
    return VerificationStatus.UNEXPECTED_STATUS


def summarize(results: Iterable[VerificationResult]) -> Tuple[int, int]:
    """Return ``(passed, total)`` for a list of results."""
    results = list(results)
    return sum(1 for result in results if result.ok), len(results)
