"""
Short-lived local HTTP listener for the OAuth redirect.

The listener serves one request at a time and stops as soon as the flow
reaches a terminal state, the operator interrupts it, or the wait timeout
elapses. The socket is always closed before control returns.
"""

import logging
import signal
import threading
import time
from typing import Optional

from flask import Flask
from werkzeug.serving import make_server

from ..auth.flow import OAuthFlow
from ..config import Config
from ..errors import ListenerStartError, OAuthBootstrapError, callback_timeout_error, listener_start_error
from .app import create_app


logger = logging.getLogger(__name__)


class CallbackListener:
    """Runs the callback application until the flow is finished."""

    def __init__(self, flow: OAuthFlow, host: Optional[str] = None, port: Optional[int] = None,
                 wait_timeout: Optional[float] = None, poll_interval: Optional[float] = None,
                 app: Optional[Flask] = None):
        """
        Initialize the listener.

        Args:
            flow: Context object of the current run
            host: Interface to bind
            port: Port to bind; 0 picks a free port
            wait_timeout: Seconds to wait for the callback, 0 waits forever
            poll_interval: How often the loop checks for shutdown
            app: Flask application, created from ``flow`` if omitted
        """
        self.flow = flow
        self.host = host or Config.CALLBACK_HOST
        self.port = Config.CALLBACK_PORT if port is None else port
        self.wait_timeout = Config.WAIT_TIMEOUT if wait_timeout is None else wait_timeout
        self.poll_interval = poll_interval or Config.POLL_INTERVAL
        self.app = app or create_app(flow)
        self.server = None
        self.interrupted = False
        self._stop_requested = False

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        """
        Bind the listening socket.

        Raises:
            ListenerStartError: If the port cannot be bound
        """
        try:
            self.server = make_server(self.host, self.port, self.app, threaded=False)
        except (OSError, SystemExit) as e:
            # werkzeug exits the process on bind failures; surface them instead
            raise ListenerStartError(listener_start_error(self.host, self.port, e)) from None

        self.server.timeout = self.poll_interval
        self.port = self.server.server_port
        logger.info(f"OAuth callback listener started on {self.url}")

    def serve(self) -> None:
        """Handle requests until the flow is terminal or a stop is requested."""
        deadline = time.monotonic() + self.wait_timeout if self.wait_timeout else None

        while not self.flow.is_terminal and not self._stop_requested:
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("Timed out waiting for the authorization callback")
                self.flow.fail(OAuthBootstrapError(callback_timeout_error(self.wait_timeout)))
                break
            self.server.handle_request()

    def stop(self) -> None:
        """Ask the serve loop to exit after the current poll."""
        self._stop_requested = True

    def close(self) -> None:
        """Close the socket and move the flow to SHUTTING_DOWN."""
        if self.server is not None:
            self.server.server_close()
            self.server = None
            logger.info("OAuth callback listener stopped")
        self.flow.shutdown()

    def run(self) -> None:
        """
        Start (unless already started), serve until done, and close.

        SIGINT and SIGTERM stop the loop; ``interrupted`` is set in that case.

        Raises:
            ListenerStartError: If the port cannot be bound
        """
        if self.server is None:
            self.start()
        previous_handler = None
        if threading.current_thread() is threading.main_thread():
            previous_handler = signal.signal(signal.SIGTERM, self._handle_signal)

        try:
            self.serve()
        except KeyboardInterrupt:
            self.interrupted = True
            logger.warning("Interrupted, shutting down OAuth callback listener")
        finally:
            if previous_handler is not None:
                signal.signal(signal.SIGTERM, previous_handler)
            self.close()

    def _handle_signal(self, signum, frame) -> None:
        logger.warning(f"Received signal {signum}, shutting down OAuth callback listener")
        self.interrupted = True
        self.stop()
