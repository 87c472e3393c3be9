"""
Main entry point for OAuth Bootstrap.

Runs the authorization-code flow for a vendor, verifies and refreshes stored
tokens, and prints a pass/fail summary.
"""

import argparse
import logging
import sys
import webbrowser
from typing import List, Optional
from urllib.parse import urlsplit

from .auth import (
    OAuthFlow,
    TokenExchanger,
    TokenPersister,
    TokenVerifier,
    generate_state,
    parse_authorization_url,
    summarize,
)
from .config import Config
from .errors import ErrorHandler, OAuthBootstrapError, mask_secret
from .models import VerificationResult
from .providers import PROVIDERS, ProviderProfile, load_profile, load_provider
from .web import CallbackListener


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def open_browser(url: str) -> None:
    """Open ``url`` in the default browser, falling back to manual instructions."""
    try:
        if webbrowser.open(url):
            print("🌐 Opened authorization URL in browser")
            return
    except webbrowser.Error as e:
        logging.getLogger(__name__).debug(f"Could not open browser: {e}")
    print("⚠️  Could not open browser automatically")
    print("   Please copy and paste the URL above into your browser")


def token_persister(profile: ProviderProfile, token_file: Optional[str]) -> TokenPersister:
    return TokenPersister(token_file or profile.default_token_file, profile.token_key_prefix)


def print_verification(results: List[VerificationResult]) -> None:
    """Print one line per verification result and the pass count."""
    for result in results:
        marker = "✅" if result.ok else "❌"
        status = f" ({result.http_status})" if result.http_status else ""
        print(f"   {marker} {result.name}: {result.detail}{status}")
    passed, total = summarize(results)
    print(f"\n📊 API Scope Tests: {passed}/{total} passed")


def run_authorize(args, error_handler: ErrorHandler) -> int:
    """Run the full authorization-code flow."""
    profile, credentials = load_provider(args.provider, args.credentials)
    persister = token_persister(profile, args.token_file)
    verifier = None if args.skip_verify else TokenVerifier(profile, error_handler=error_handler)

    flow = OAuthFlow(
        profile,
        credentials,
        persister,
        verifier=verifier,
        scopes=args.scope or None,
        state=None if args.no_state else generate_state(),
        error_handler=error_handler,
    )

    redirect = urlsplit(credentials.redirect_uri)
    listener = CallbackListener(
        flow,
        host=args.host or redirect.hostname,
        port=args.port or redirect.port or Config.CALLBACK_PORT,
        wait_timeout=args.wait_timeout,
    )
    listener.start()

    print(f"\n🚀 {profile.name.capitalize()} OAuth listener started on {listener.url}")
    print(f"   Callback URL: {credentials.redirect_uri}")
    print("\n🔐 Authorization URL:")
    print(f"   {flow.authorization_url}\n")
    if not args.no_browser:
        open_browser(flow.authorization_url)
    print("⏹️  Press Ctrl+C to stop the listener\n")

    listener.run()

    if listener.interrupted:
        print("\n🛑 Authorization cancelled, no tokens were saved")
        return EXIT_INTERRUPTED

    if flow.verification_results:
        print("\n🔍 Token scope tests:")
        print_verification(flow.verification_results)

    if flow.succeeded:
        print(f"\n✅ Tokens saved to {persister.path}")
        return EXIT_OK

    print("\n❌ Authorization failed, no tokens were saved")
    return EXIT_FAILURE


def run_url(args, error_handler: ErrorHandler) -> int:
    """Print the authorization URL and its parameters."""
    profile, credentials = load_provider(args.provider, args.credentials)
    flow = OAuthFlow(
        profile,
        credentials,
        token_persister(profile, args.token_file),
        scopes=args.scope or None,
    )

    print(f"\n🔐 {profile.name.capitalize()} OAuth Authorization URL:")
    print("=" * 40)
    print(flow.authorization_url)
    print("\n📋 Parameters:")
    for key, value in parse_authorization_url(flow.authorization_url).items():
        print(f"   {key}: {value}")
    return EXIT_OK


def run_verify(args, error_handler: ErrorHandler) -> int:
    """Verify the stored access token against the vendor endpoints."""
    profile = load_profile(args.provider, args.credentials)
    persister = token_persister(profile, args.token_file)
    access_token = persister.stored_token('ACCESS_TOKEN')
    if not access_token:
        print(f"❌ No access token found in {persister.path}")
        print(f"   Run: oauth-bootstrap authorize --provider {args.provider}")
        return EXIT_FAILURE

    print(f"🔑 Testing token: {mask_secret(access_token, 20)}\n")
    results = TokenVerifier(profile, error_handler=error_handler).verify(access_token)
    print_verification(results)

    passed, total = summarize(results)
    if passed == total:
        print("🎉 ALL TESTS PASSED!")
        return EXIT_OK
    return EXIT_FAILURE


def run_refresh(args, error_handler: ErrorHandler) -> int:
    """Refresh the stored access token and save the result."""
    profile, credentials = load_provider(args.provider, args.credentials)
    persister = token_persister(profile, args.token_file)
    refresh_token = persister.stored_token('REFRESH_TOKEN')
    if not refresh_token:
        print(f"❌ No refresh token found in {persister.path}")
        print(f"   Run: oauth-bootstrap authorize --provider {args.provider}")
        return EXIT_FAILURE

    token_set = TokenExchanger(profile, credentials).refresh(refresh_token)
    persister.persist(token_set)
    print(f"✅ Access token refreshed and saved to {persister.path}")
    if token_set.expires_in is not None:
        print(f"   Expires In: {token_set.expires_in} seconds")
    return EXIT_OK


COMMANDS = {
    'authorize': run_authorize,
    'url': run_url,
    'verify': run_verify,
    'refresh': run_refresh,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oauth-bootstrap",
        description="Obtain, verify and refresh OAuth tokens for API testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s authorize --provider google
  %(prog)s authorize --provider zendesk --scope read --scope write
  %(prog)s url --provider zendesk
  %(prog)s verify --provider google
  %(prog)s refresh --provider google

Credentials:
  google   GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET in .env
  zendesk  ZENDESK_CLIENT_ID, ZENDESK_SECRET, ZENDESK_SUBDOMAIN in env.ids
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--provider", "-p",
        choices=sorted(PROVIDERS),
        default="google",
        help="OAuth vendor (default: google)"
    )
    common.add_argument(
        "--credentials", "-c",
        default=None,
        help="File with client credentials (default depends on the provider)"
    )
    common.add_argument(
        "--token-file", "-t",
        default=None,
        help="File the tokens are saved to; .json selects JSON storage"
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    authorize = subparsers.add_parser("authorize", parents=[common],
                                      help="Run the authorization-code flow and save tokens")
    authorize.add_argument("--scope", "-s", action="append",
                           help="Scope to request (repeatable, default: provider scopes)")
    authorize.add_argument("--host", default=None,
                           help="Interface for the callback listener (default: redirect URI host)")
    authorize.add_argument("--port", type=int, default=None,
                           help="Port for the callback listener (default: redirect URI port)")
    authorize.add_argument("--wait-timeout", type=float, default=Config.WAIT_TIMEOUT,
                           help="Seconds to wait for the callback, 0 waits forever")
    authorize.add_argument("--no-browser", action="store_true",
                           help="Do not open the authorization URL automatically")
    authorize.add_argument("--skip-verify", action="store_true",
                           help="Do not test the token against the vendor APIs")
    authorize.add_argument("--no-state", action="store_true",
                           help="Do not send a state token")

    url = subparsers.add_parser("url", parents=[common], help="Print the authorization URL")
    url.add_argument("--scope", "-s", action="append",
                     help="Scope to request (repeatable, default: provider scopes)")

    subparsers.add_parser("verify", parents=[common], help="Test the stored access token")
    subparsers.add_parser("refresh", parents=[common], help="Refresh the stored access token")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)
    error_handler = ErrorHandler()

    try:
        exit_code = COMMANDS[args.command](args, error_handler)
    except OAuthBootstrapError as e:
        if e.processing_error not in error_handler.errors:
            error_handler.add_error(e.processing_error)
        exit_code = EXIT_FAILURE
    except KeyboardInterrupt:
        print("\n🛑 Interrupted")
        return EXIT_INTERRUPTED
    except (OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        exit_code = EXIT_FAILURE

    if error_handler.has_errors() or error_handler.has_warnings():
        print()
        error_handler.print_summary()

    return exit_code


if __name__ == '__main__':
    sys.exit(main())
