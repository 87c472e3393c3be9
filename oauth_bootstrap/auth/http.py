"""
HTTP session helpers shared by the exchanger and the verifier.
"""

import requests
from requests.adapters import HTTPAdapter

from ..config import Config


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTP adapter that applies a default timeout to every request."""

    def __init__(self, timeout, *args, **kwargs):
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):
        kwargs['timeout'] = kwargs.get('timeout') or self.timeout
        return super().send(request, **kwargs)


def mount_timeout(session: requests.Session, timeout: float) -> requests.Session:
    """Mount a ``TimeoutHTTPAdapter`` on both schemes of ``session``."""
    adapter = TimeoutHTTPAdapter(timeout=timeout)
    session.mount('https://', adapter)
    session.mount('http://', adapter)
    return session


def create_session(timeout: float = None) -> requests.Session:
    """Create a ``requests`` session with a bounded timeout and JSON headers."""
    session = requests.Session()
    session.headers.update({
        'Accept': 'application/json',
        'User-Agent': Config.USER_AGENT,
    })
    return mount_timeout(session, timeout or Config.HTTP_TIMEOUT)
