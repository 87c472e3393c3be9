"""
Configuration settings for OAuth Bootstrap.
"""

import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


class Config:
    """Configuration class for application settings."""

    # Local callback listener
    CALLBACK_HOST = os.environ.get('OAUTH_CALLBACK_HOST', 'localhost')
    CALLBACK_PORT = _env_int('OAUTH_CALLBACK_PORT', 3000)
    POLL_INTERVAL = 0.5  # seconds between checks for shutdown
    WAIT_TIMEOUT = _env_float('OAUTH_WAIT_TIMEOUT', 600.0)  # 0 waits forever

    # Outbound HTTP
    HTTP_TIMEOUT = _env_float('OAUTH_HTTP_TIMEOUT', 15.0)
    USER_AGENT = 'oauth-bootstrap/0.1'

    # Persisted status flag read by the API test scripts
    MODE_KEY = 'TEST_MODE'
    MODE_LIVE = 'live'

    # Google OAuth settings
    GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_REDIRECT_URI = "http://localhost:3000/auth/callback"
    GOOGLE_CREDENTIALS_FILE = ".env"
    GOOGLE_TOKEN_FILE = ".env"
    GOOGLE_SCOPES = [
        "https://www.googleapis.com/auth/contacts",
        "https://www.googleapis.com/auth/drive",
        "https://www.googleapis.com/auth/calendar",
        "https://www.googleapis.com/auth/gmail.modify",
        "https://www.googleapis.com/auth/userinfo.profile",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/adsense",
        "https://www.googleapis.com/auth/adsense.readonly",
        "https://www.googleapis.com/auth/spreadsheets",
        "https://www.googleapis.com/auth/spreadsheets.readonly",
        "https://www.googleapis.com/auth/documents",
        "https://www.googleapis.com/auth/documents.readonly",
        "https://www.googleapis.com/auth/youtube",
        "https://www.googleapis.com/auth/youtube.readonly",
        "https://www.googleapis.com/auth/youtube.force-ssl",
        "https://www.googleapis.com/auth/yt-analytics.readonly",
        "https://www.googleapis.com/auth/yt-analytics-monetary.readonly",
    ]
    GOOGLE_VERIFICATION_ENDPOINTS = [
        ("Google Contacts",
         "https://people.googleapis.com/v1/people/me/connections?pageSize=1&personFields=names"),
        ("Google Drive", "https://www.googleapis.com/drive/v3/about?fields=user"),
        ("Google Calendar", "https://www.googleapis.com/calendar/v3/calendars/primary"),
        ("Gmail", "https://gmail.googleapis.com/gmail/v1/users/me/profile"),
    ]

    # Zendesk OAuth settings
    ZENDESK_REDIRECT_URI = "http://localhost:3000/callback"
    ZENDESK_CREDENTIALS_FILE = "env.ids"
    ZENDESK_TOKEN_FILE = "zendesk-oauth-tokens.json"
    ZENDESK_DOMAIN = "zendesk.com"
    ZENDESK_SCOPES = ["read"]
    ZENDESK_VERIFICATION_PATHS = [
        ("Current user", "/api/v2/users/me.json"),
        ("Tickets", "/api/v2/tickets.json"),
        ("Users", "/api/v2/users.json"),
        ("Organizations", "/api/v2/organizations.json"),
        ("Groups", "/api/v2/groups.json"),
        ("Ticket Fields", "/api/v2/ticket_fields.json"),
    ]
