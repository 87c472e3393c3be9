"""Tests for the single-run OAuth flow state machine."""

from unittest.mock import MagicMock

import pytest

from oauth_bootstrap.auth.exchange import TokenExchanger
from oauth_bootstrap.auth.flow import OAuthFlow
from oauth_bootstrap.auth.persistence import TokenPersister
from oauth_bootstrap.errors import (
    AuthorizationDenied,
    ErrorHandler,
    NetworkError,
    OAuthBootstrapError,
    TokenExchangeRejected,
    callback_timeout_error,
    network_error,
    token_exchange_error,
)
from oauth_bootstrap.models import (
    CallbackResult,
    FlowState,
    ResultPage,
    TokenSet,
    VerificationResult,
    VerificationStatus,
)


@pytest.fixture
def persister(tmp_path):
    return TokenPersister(tmp_path / ".env")


@pytest.fixture
def exchanger():
    mock_exchanger = MagicMock(spec=TokenExchanger)
    mock_exchanger.exchange_code.return_value = TokenSet(
        access_token="tok1", token_type="Bearer", expires_in=3600
    )
    return mock_exchanger


@pytest.fixture
def flow(profile, credentials, persister, exchanger):
    return OAuthFlow(profile, credentials, persister, exchanger=exchanger)


class TestOAuthFlow:
    """Test OAuthFlow.handle_callback."""

    def test_initial_state(self, flow):
        assert flow.state is FlowState.LISTENING
        assert not flow.is_terminal
        assert "scope=scopeA%20scopeB" in flow.authorization_url

    def test_successful_callback(self, flow, exchanger, persister):
        """Test the code is exchanged exactly once and tokens are saved."""
        outcome = flow.handle_callback(CallbackResult(code="testcode123"))

        exchanger.exchange_code.assert_called_once_with("testcode123")
        assert outcome.page is ResultPage.SUCCESS
        assert outcome.status_code == 200
        assert outcome.terminal
        assert flow.state is FlowState.SUCCEEDED
        assert flow.succeeded
        assert persister.stored_token("ACCESS_TOKEN") == "tok1"
        assert "REFRESH_TOKEN" not in flow.persisted_entries

    def test_authorization_denied(self, flow, exchanger, persister):
        """Test that an error callback fails the run without an exchange."""
        outcome = flow.handle_callback(CallbackResult(
            error="access_denied", error_description="The user denied access"
        ))

        exchanger.exchange_code.assert_not_called()
        assert outcome.page is ResultPage.AUTHORIZATION_DENIED
        assert outcome.status_code == 400
        assert "access_denied" in outcome.message
        assert outcome.details == ["The user denied access"]
        assert flow.state is FlowState.FAILED
        assert isinstance(flow.error, AuthorizationDenied)
        assert not persister.path.exists()

    def test_error_wins_over_code(self, flow, exchanger):
        """Test that a callback carrying both error and code is treated as denied."""
        outcome = flow.handle_callback(CallbackResult(code="c", error="access_denied"))

        exchanger.exchange_code.assert_not_called()
        assert outcome.page is ResultPage.AUTHORIZATION_DENIED

    def test_second_callback_is_refused(self, flow, exchanger):
        """Test that only the first callback triggers an exchange."""
        flow.handle_callback(CallbackResult(code="first"))
        outcome = flow.handle_callback(CallbackResult(code="second"))

        assert exchanger.exchange_code.call_count == 1
        assert outcome.page is ResultPage.ALREADY_COMPLETED
        assert outcome.status_code == 409
        assert flow.state is FlowState.SUCCEEDED

    def test_callback_after_failure_is_refused(self, flow, exchanger):
        flow.handle_callback(CallbackResult(error="access_denied"))
        outcome = flow.handle_callback(CallbackResult(code="late"))

        exchanger.exchange_code.assert_not_called()
        assert outcome.status_code == 409

    def test_malformed_callback_keeps_listening(self, flow, exchanger):
        """Test that a callback without code or error does not end the run."""
        outcome = flow.handle_callback(CallbackResult())

        assert outcome.page is ResultPage.MALFORMED
        assert outcome.status_code == 400
        assert not outcome.terminal
        assert flow.state is FlowState.LISTENING
        exchanger.exchange_code.assert_not_called()

        flow.handle_callback(CallbackResult(code="testcode123"))
        assert flow.state is FlowState.SUCCEEDED

    def test_state_mismatch(self, profile, credentials, persister, exchanger):
        """Test that a callback with a foreign state token is rejected."""
        flow = OAuthFlow(profile, credentials, persister, exchanger=exchanger, state="expected")

        outcome = flow.handle_callback(CallbackResult(code="c", state="other"))

        assert outcome.page is ResultPage.STATE_MISMATCH
        assert flow.state is FlowState.LISTENING
        exchanger.exchange_code.assert_not_called()

        flow.handle_callback(CallbackResult(code="c", state="expected"))
        assert flow.succeeded

    @pytest.mark.parametrize("state", ["other", None])
    def test_error_callback_state_mismatch(self, profile, credentials, persister, exchanger, state):
        """Test that an error callback with a foreign state does not end the run."""
        flow = OAuthFlow(profile, credentials, persister, exchanger=exchanger, state="expected")

        outcome = flow.handle_callback(CallbackResult(error="access_denied", state=state))

        assert outcome.page is ResultPage.STATE_MISMATCH
        assert outcome.status_code == 400
        assert not outcome.terminal
        assert flow.state is FlowState.LISTENING
        assert flow.error is None

        flow.handle_callback(CallbackResult(error="access_denied", state="expected"))
        assert flow.state is FlowState.FAILED
        assert isinstance(flow.error, AuthorizationDenied)
        exchanger.exchange_code.assert_not_called()

    def test_rejected_exchange_is_not_persisted(self, flow, exchanger, persister):
        """Test that a failed exchange never reaches the persister."""
        exchanger.exchange_code.side_effect = TokenExchangeRejected(
            token_exchange_error(200, None, None, '{"token_type": "Bearer"}')
        )
        persister.persist = MagicMock()

        outcome = flow.handle_callback(CallbackResult(code="c"))

        persister.persist.assert_not_called()
        assert outcome.page is ResultPage.EXCHANGE_FAILED
        assert outcome.status_code == 500
        assert flow.state is FlowState.FAILED
        assert flow.token_set is None

    def test_network_failure(self, flow, exchanger):
        exchanger.exchange_code.side_effect = NetworkError(
            network_error("https://vendor.example/oauth/token", TimeoutError("timed out"))
        )

        outcome = flow.handle_callback(CallbackResult(code="c"))

        assert outcome.page is ResultPage.EXCHANGE_FAILED
        assert isinstance(flow.error, NetworkError)

    @pytest.mark.parametrize("exception", [
        RuntimeError("boom"),
        TypeError("int() argument must be a string"),
    ])
    def test_unexpected_exchange_error_fails_run(self, flow, exchanger, persister, exception):
        """Test that an unforeseen exchange error still ends the run."""
        exchanger.exchange_code.side_effect = exception

        outcome = flow.handle_callback(CallbackResult(code="c"))

        assert outcome.page is ResultPage.EXCHANGE_FAILED
        assert outcome.status_code == 500
        assert outcome.terminal
        assert flow.state is FlowState.FAILED
        assert flow.error.processing_error.error_code == "TOKEN_002"
        assert not persister.path.exists()
        assert flow.handle_callback(CallbackResult(code="again")).status_code == 409
        assert exchanger.exchange_code.call_count == 1

    def test_storage_failure(self, flow, persister):
        """Test that a write failure fails the run."""
        persister.persist = MagicMock(side_effect=PermissionError("read-only"))

        outcome = flow.handle_callback(CallbackResult(code="c"))

        assert outcome.page is ResultPage.STORAGE_FAILED
        assert flow.state is FlowState.FAILED
        assert flow.error.processing_error.error_code == "STORE_001"

    def test_unexpected_storage_error(self, flow, persister):
        persister.persist = MagicMock(side_effect=OverflowError("date value out of range"))

        outcome = flow.handle_callback(CallbackResult(code="c"))

        assert outcome.page is ResultPage.STORAGE_FAILED
        assert flow.state is FlowState.FAILED

    def test_verifier_crash_does_not_block_saving(self, profile, credentials, persister, exchanger):
        verifier = MagicMock()
        verifier.verify.side_effect = RuntimeError("boom")
        flow = OAuthFlow(profile, credentials, persister, exchanger=exchanger, verifier=verifier)

        flow.handle_callback(CallbackResult(code="c"))

        assert flow.succeeded
        assert flow.verification_results == []
        assert persister.stored_token("ACCESS_TOKEN") == "tok1"

    def test_verification_runs_before_persisting(self, profile, credentials, persister, exchanger):
        """Test that verification results are recorded and do not block saving."""
        verifier = MagicMock()
        verifier.verify.return_value = [
            VerificationResult("Profile", "u", VerificationStatus.AUTHORIZED, 200, "Working"),
            VerificationResult("Tickets", "u", VerificationStatus.INSUFFICIENT_SCOPE, 403, "Insufficient scopes"),
        ]
        flow = OAuthFlow(profile, credentials, persister, exchanger=exchanger, verifier=verifier)

        outcome = flow.handle_callback(CallbackResult(code="c"))

        verifier.verify.assert_called_once_with("tok1")
        assert flow.succeeded
        assert "API Scope Tests: 1/2 passed" in outcome.details

    def test_errors_collected(self, profile, credentials, persister, exchanger):
        handler = ErrorHandler()
        flow = OAuthFlow(profile, credentials, persister, exchanger=exchanger, error_handler=handler)

        flow.handle_callback(CallbackResult(error="access_denied"))

        assert handler.has_errors()
        assert handler.errors[0].error_code == "AUTH_001"


class TestFlowLifecycle:
    """Test fail and shutdown transitions."""

    def test_fail_while_listening(self, flow):
        flow.fail(OAuthBootstrapError(callback_timeout_error(5)))

        assert flow.state is FlowState.FAILED
        assert flow.error.processing_error.error_code == "LISTEN_002"

    def test_fail_after_success_is_ignored(self, flow):
        flow.handle_callback(CallbackResult(code="c"))
        flow.fail(OAuthBootstrapError(callback_timeout_error(5)))

        assert flow.state is FlowState.SUCCEEDED
        assert flow.error is None

    def test_shutdown_keeps_outcome(self, flow):
        """Test that SHUTTING_DOWN remembers whether the run succeeded."""
        flow.handle_callback(CallbackResult(code="c"))
        flow.shutdown()
        flow.shutdown()

        assert flow.state is FlowState.SHUTTING_DOWN
        assert flow.succeeded
        assert flow.handle_callback(CallbackResult(code="again")).status_code == 409

    def test_shutdown_without_callback(self, flow):
        flow.shutdown()

        assert flow.state is FlowState.SHUTTING_DOWN
        assert not flow.succeeded

    def test_invalid_transition(self, flow):
        with pytest.raises(RuntimeError):
            flow._transition(FlowState.SUCCEEDED)
