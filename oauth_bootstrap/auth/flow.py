"""
Single-run OAuth authorization-code flow.

``OAuthFlow`` is the context object for one run: it owns the authorization
request, the state machine, and the components that turn an authorization code
into persisted tokens. It knows nothing about HTTP servers, which keeps the
single-callback guarantee testable on its own.

State machine::

    LISTENING -> CODE_RECEIVED -> EXCHANGING -> {SUCCEEDED | FAILED} -> SHUTTING_DOWN

An ``error`` callback with a matching state moves LISTENING straight to
FAILED. Both SUCCEEDED and FAILED are terminal: the listener shuts down and later callbacks are refused.
"""

import logging
from typing import Dict, Iterable, List, Optional, TYPE_CHECKING

from ..errors import (
    AuthorizationDenied,
    ErrorHandler,
    OAuthBootstrapError,
    authorization_denied_error,
    mask_secret,
    storage_error,
    unexpected_exchange_error,
)
from ..models import (
    CallbackOutcome,
    CallbackResult,
    ClientCredentials,
    FlowState,
    ResultPage,
    TokenSet,
    VerificationResult,
)
from .authorization import authorization_url, build_authorization_request
from .exchange import TokenExchanger
from .persistence import TokenPersister
from .verification import TokenVerifier, summarize

if TYPE_CHECKING:
    from ..providers import ProviderProfile


logger = logging.getLogger(__name__)


class OAuthFlow:
    """State and collaborators of one authorization-code run."""

    TRANSITIONS = {
        FlowState.LISTENING: {FlowState.CODE_RECEIVED, FlowState.FAILED, FlowState.SHUTTING_DOWN},
        # SHUTTING_DOWN from the middle states only happens on operator interrupt
        FlowState.CODE_RECEIVED: {FlowState.EXCHANGING, FlowState.FAILED, FlowState.SHUTTING_DOWN},
        FlowState.EXCHANGING: {FlowState.SUCCEEDED, FlowState.FAILED, FlowState.SHUTTING_DOWN},
        FlowState.SUCCEEDED: {FlowState.SHUTTING_DOWN},
        FlowState.FAILED: {FlowState.SHUTTING_DOWN},
        FlowState.SHUTTING_DOWN: set(),
    }

    TERMINAL_STATES = {FlowState.SUCCEEDED, FlowState.FAILED, FlowState.SHUTTING_DOWN}

    def __init__(self, profile: 'ProviderProfile', credentials: ClientCredentials,
                 persister: TokenPersister,
                 exchanger: Optional[TokenExchanger] = None,
                 verifier: Optional[TokenVerifier] = None,
                 scopes: Optional[Iterable[str]] = None,
                 state: Optional[str] = None,
                 error_handler: Optional[ErrorHandler] = None):
        """
        Initialize the flow.

        Args:
            profile: Vendor profile
            credentials: Client credentials; their redirect URI is used for
                both the authorization URL and the token exchange
            persister: Where tokens are saved after a successful exchange
            exchanger: Token endpoint client, built from the profile if omitted
            verifier: Optional verifier run before persisting
            scopes: Requested scopes, defaults to the profile's scopes
            state: State token expected back on the callback, if any
            error_handler: Collects errors and warnings for the final report
        """
        self.profile = profile
        self.credentials = credentials
        self.persister = persister
        self.exchanger = exchanger or TokenExchanger(profile, credentials)
        self.verifier = verifier
        self.error_handler = error_handler or ErrorHandler()

        self.request = build_authorization_request(profile, credentials, scopes, state)
        self.authorization_url = authorization_url(profile.authorize_url, self.request)

        self._state = FlowState.LISTENING
        self.outcome_state: Optional[FlowState] = None
        self.token_set: Optional[TokenSet] = None
        self.verification_results: List[VerificationResult] = []
        self.persisted_entries: Dict[str, str] = {}
        self.error: Optional[OAuthBootstrapError] = None

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in self.TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.outcome_state is FlowState.SUCCEEDED

    @property
    def expected_state(self) -> Optional[str]:
        return self.request.state

    def _transition(self, new_state: FlowState) -> None:
        if new_state not in self.TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid flow transition {self._state.value} -> {new_state.value}")
        logger.debug(f"Flow state: {self._state.value} -> {new_state.value}")
        self._state = new_state
        if new_state in (FlowState.SUCCEEDED, FlowState.FAILED):
            self.outcome_state = new_state

    def _fail(self, error: OAuthBootstrapError) -> None:
        self.error = error
        self.error_handler.add_error(error.processing_error)
        self._transition(FlowState.FAILED)

    def fail(self, error: OAuthBootstrapError) -> None:
        """End a run that is still waiting for its callback."""
        if self.is_terminal:
            return
        self._fail(error)

    def shutdown(self) -> None:
        """Enter SHUTTING_DOWN; safe to call more than once."""
        if self._state is not FlowState.SHUTTING_DOWN:
            self._transition(FlowState.SHUTTING_DOWN)

    def handle_callback(self, result: CallbackResult) -> CallbackOutcome:
        """
        Act on one callback request.

        Only the first callback carrying ``code`` or ``error`` advances the
        flow. Malformed callbacks and callbacks with a foreign state token,
        including ``error`` callbacks, are answered without changing state.
        """
        if self.is_terminal:
            logger.warning("Ignoring callback: this authorization run has already completed")
            return CallbackOutcome(
                page=ResultPage.ALREADY_COMPLETED,
                status_code=409,
                title="Already Completed",
                message="This authorization run has already finished. Return to your terminal.",
                terminal=True,
            )

        if not result.code and not result.error:
            logger.warning("Callback received without an authorization code")
            return CallbackOutcome(
                page=ResultPage.MALFORMED,
                status_code=400,
                title="No Authorization Code",
                message="The callback did not include an authorization code or an error.",
            )

        if self.expected_state and result.state != self.expected_state:
            logger.warning(f"Callback state mismatch: {result.state!r}")
            return CallbackOutcome(
                page=ResultPage.STATE_MISMATCH,
                status_code=400,
                title="Invalid State",
                message="The callback state token does not match this authorization run.",
            )

        if result.error:
            error = AuthorizationDenied(authorization_denied_error(result.error, result.error_description))
            self._fail(error)
            details = [result.error_description] if result.error_description else []
            return CallbackOutcome(
                page=ResultPage.AUTHORIZATION_DENIED,
                status_code=400,
                title="Authentication Failed",
                message=f"Error: {result.error}",
                details=details,
                terminal=True,
            )

        self._transition(FlowState.CODE_RECEIVED)
        logger.info(f"Authorization code received: {mask_secret(result.code, 20)}")
        return self._exchange(result.code)

    def _exchange_failed(self, error: OAuthBootstrapError) -> CallbackOutcome:
        self._fail(error)
        return CallbackOutcome(
            page=ResultPage.EXCHANGE_FAILED,
            status_code=500,
            title="Token Exchange Failed",
            message=str(error),
            details=[error.processing_error.details],
            terminal=True,
        )

    def _exchange(self, code: str) -> CallbackOutcome:
        self._transition(FlowState.EXCHANGING)
        try:
            token_set = self.exchanger.exchange_code(code)
        except OAuthBootstrapError as e:
            return self._exchange_failed(e)
        except Exception as e:
            logger.exception("Unexpected error during token exchange")
            return self._exchange_failed(OAuthBootstrapError(unexpected_exchange_error(e)))

        self.token_set = token_set
        if self.verifier:
            try:
                self.verification_results = self.verifier.verify(token_set.access_token)
            except Exception:
                logger.exception("Token verification failed, saving the token without scope results")

        try:
            self.persisted_entries = self.persister.persist(token_set)
        except Exception as e:
            self._fail(OAuthBootstrapError(storage_error(str(self.persister.path), e)))
            return CallbackOutcome(
                page=ResultPage.STORAGE_FAILED,
                status_code=500,
                title="Saving Tokens Failed",
                message=f"Tokens were issued but could not be saved to {self.persister.path}",
                details=[str(e)],
                terminal=True,
            )

        self._transition(FlowState.SUCCEEDED)
        return CallbackOutcome(
            page=ResultPage.SUCCESS,
            status_code=200,
            title="Authentication Successful",
            message=f"Access token obtained and saved to {self.persister.path}",
            details=self._success_details(token_set),
            terminal=True,
        )

    def _success_details(self, token_set: TokenSet) -> List[str]:
        details = [f"Access Token: {mask_secret(token_set.access_token, 20)}"]
        if token_set.refresh_token:
            details.append(f"Refresh Token: {mask_secret(token_set.refresh_token, 20)}")
        if token_set.expires_in is not None:
            details.append(f"Expires In: {token_set.expires_in} seconds")
        details.append(f"Scope: {token_set.scope or 'Multiple scopes granted'}")
        if self.verification_results:
            passed, total = summarize(self.verification_results)
            details.append(f"API Scope Tests: {passed}/{total} passed")
        return details
