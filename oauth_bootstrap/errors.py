"""
Error handling for the OAuth bootstrap flow.

This module provides centralized error definitions, the exception hierarchy
raised by the flow components, and actionable error messages for the operator.
"""

import logging
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable
from dataclasses import dataclass


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors that can occur during an OAuth run."""
    CONFIGURATION = "configuration"
    AUTHORIZATION = "authorization"
    TOKEN_EXCHANGE = "token_exchange"
    NETWORK = "network"
    SCOPE = "scope"
    LISTENER = "listener"
    STORAGE = "storage"


@dataclass
class ProcessingError:
    """Represents an error with context and guidance for the operator."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    details: str
    suggested_actions: List[str]
    error_code: str
    context: Dict[str, Any] = None

    def __post_init__(self):
        if self.context is None:
            self.context = {}


class OAuthBootstrapError(Exception):
    """Base exception for OAuth bootstrap errors."""

    def __init__(self, processing_error: ProcessingError):
        self.processing_error = processing_error
        super().__init__(processing_error.message)


class ConfigurationError(OAuthBootstrapError):
    """Raised when client credentials are missing or malformed."""

    @property
    def missing_keys(self) -> List[str]:
        return list(self.processing_error.context.get('missing_keys', []))


class AuthorizationDenied(OAuthBootstrapError):
    """Raised when the vendor redirects back with an ``error`` parameter."""
    pass


class TokenExchangeRejected(OAuthBootstrapError):
    """Raised when the vendor token endpoint refuses the request."""

    @property
    def status_code(self) -> Optional[int]:
        return self.processing_error.context.get('status_code')

    @property
    def vendor_error(self) -> Optional[str]:
        return self.processing_error.context.get('error')

    @property
    def body(self) -> str:
        return self.processing_error.context.get('body', '')


class NetworkError(OAuthBootstrapError):
    """Raised on timeouts or connection failures talking to a vendor."""
    pass


class ListenerStartError(OAuthBootstrapError):
    """Raised when the local callback listener cannot bind its port."""
    pass


def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Shorten a secret for log output."""
    if not value:
        return '<empty>'
    if len(value) <= visible:
        return '*' * len(value)
    return f"{value[:visible]}..."


def missing_credentials_error(missing_keys: Iterable[str], source: str) -> ProcessingError:
    """Build the error for credentials that could not be found."""
    missing = list(missing_keys)
    return ProcessingError(
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message=f"Missing OAuth client credentials: {', '.join(missing)}",
        details=f"Looked in {source} and the process environment",
        suggested_actions=[
            f"Add {', '.join(missing)} to {source}",
            "Or export them as environment variables before running",
        ],
        error_code="CONFIG_001",
        context={'missing_keys': missing, 'source': source}
    )


def malformed_credentials_error(key: str, value: str, reason: str) -> ProcessingError:
    """Build the error for a credential value that cannot be used."""
    return ProcessingError(
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        message=f"Malformed value for {key}",
        details=f"{key}={value!r}: {reason}",
        suggested_actions=[f"Fix {key} in your credentials file"],
        error_code="CONFIG_002",
        context={'key': key}
    )


def authorization_denied_error(error: str, description: Optional[str] = None) -> ProcessingError:
    """Build the error for a consent screen that redirected back with an error."""
    details = f"{error}: {description}" if description else error
    return ProcessingError(
        category=ErrorCategory.AUTHORIZATION,
        severity=ErrorSeverity.ERROR,
        message="Authorization was denied by the vendor",
        details=details,
        suggested_actions=[
            "Run the command again and accept the consent screen",
            "Check that the redirect URI is registered for this OAuth client",
        ],
        error_code="AUTH_001",
        context={'error': error, 'error_description': description}
    )


def token_exchange_error(status_code: Optional[int], error: Optional[str],
                         description: Optional[str], body: str) -> ProcessingError:
    """Build the error for a rejected code-for-token exchange."""
    summary = error or 'no access token in response'
    if description:
        summary = f"{summary} ({description})"
    return ProcessingError(
        category=ErrorCategory.TOKEN_EXCHANGE,
        severity=ErrorSeverity.ERROR,
        message=f"Token exchange failed: {summary}",
        details=f"Status: {status_code}, response: {body}",
        suggested_actions=[
            "Authorization codes are single-use: start a new authorization",
            "Check the client secret and that the redirect URI matches exactly",
        ],
        error_code="TOKEN_001",
        context={
            'status_code': status_code,
            'error': error,
            'error_description': description,
            'body': body,
        }
    )


def network_error(url: str, error: Exception) -> ProcessingError:
    """Build the error for a timeout or connection failure."""
    return ProcessingError(
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.ERROR,
        message=f"Network error calling {url}",
        details=f"{type(error).__name__}: {error}",
        suggested_actions=[
            "Check your internet connection",
            "Run the command again",
        ],
        error_code="NET_001",
        context={'url': url}
    )


def insufficient_scope_warning(name: str, url: str) -> ProcessingError:
    """Build the warning for an endpoint that answered 403."""
    return ProcessingError(
        category=ErrorCategory.SCOPE,
        severity=ErrorSeverity.WARNING,
        message=f"{name}: insufficient scope",
        details=f"{url} answered 403 Forbidden",
        suggested_actions=[
            "Re-run authorization with a broader scope list",
            "Check that the API is enabled for this OAuth client",
        ],
        error_code="SCOPE_001",
        context={'name': name, 'url': url}
    )


def listener_start_error(host: str, port: int, error: BaseException) -> ProcessingError:
    """Build the error for a callback listener that could not bind."""
    return ProcessingError(
        category=ErrorCategory.LISTENER,
        severity=ErrorSeverity.CRITICAL,
        message=f"Could not start callback listener on {host}:{port}",
        details=str(error) or type(error).__name__,
        suggested_actions=[
            f"Stop the program currently using port {port}",
            "Or choose another port and register the matching redirect URI",
        ],
        error_code="LISTEN_001",
        context={'host': host, 'port': port}
    )


def callback_timeout_error(seconds: float) -> ProcessingError:
    """Build the error for a listener that never received a callback."""
    return ProcessingError(
        category=ErrorCategory.LISTENER,
        severity=ErrorSeverity.ERROR,
        message=f"No authorization callback received within {seconds:g} seconds",
        details="The consent screen was not completed in time",
        suggested_actions=[
            "Run the command again and finish the consent screen",
            "Use --wait-timeout 0 to wait without a limit",
        ],
        error_code="LISTEN_002",
        context={'timeout': seconds}
    )


def unexpected_exchange_error(error: Exception) -> ProcessingError:
    """Build the error for an exchange that failed in an unforeseen way."""
    return ProcessingError(
        category=ErrorCategory.TOKEN_EXCHANGE,
        severity=ErrorSeverity.ERROR,
        message="Token exchange failed unexpectedly",
        details=f"{type(error).__name__}: {error}",
        suggested_actions=[
            "Run the command again with --verbose for the full traceback",
            "Authorization codes are single-use: start a new authorization",
        ],
        error_code="TOKEN_002",
        context={'error_type': type(error).__name__}
    )


def storage_error(path: str, error: Exception) -> ProcessingError:
    """Build the error for a token file that could not be written."""
    return ProcessingError(
        category=ErrorCategory.STORAGE,
        severity=ErrorSeverity.ERROR,
        message=f"Could not save tokens to {path}",
        details=f"{type(error).__name__}: {error}",
        suggested_actions=["Check file permissions and free disk space"],
        error_code="STORE_001",
        context={'path': path}
    )


class ErrorHandler:
    """
    Collects errors and warnings raised during one run and reports them.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.errors: List[ProcessingError] = []
        self.warnings: List[ProcessingError] = []

    def add_error(self, error: ProcessingError) -> None:
        """Add an error to the collection."""
        if error.severity in [ErrorSeverity.ERROR, ErrorSeverity.CRITICAL]:
            self.errors.append(error)
        elif error.severity == ErrorSeverity.WARNING:
            self.warnings.append(error)

        log_level = {
            ErrorSeverity.INFO: logging.INFO,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.CRITICAL: logging.CRITICAL
        }[error.severity]

        self.logger.log(log_level, f"[{error.error_code}] {error.message}")
        if error.details:
            self.logger.log(log_level, f"Details: {error.details}")

    def has_errors(self) -> bool:
        """Check if any errors have been recorded."""
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        """Check if any warnings have been recorded."""
        return len(self.warnings) > 0

    def print_summary(self) -> None:
        """Print errors and warnings with their suggested actions."""
        for error in self.errors:
            print(f"❌ [{error.error_code}] {error.message}")
            if error.details:
                print(f"   {error.details}")
            for action in error.suggested_actions:
                print(f"   • {action}")
        for warning in self.warnings:
            print(f"⚠️  [{warning.error_code}] {warning.message}")
            for action in warning.suggested_actions:
                print(f"   • {action}")
