from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent import futures
from typing import List, Optional, Tuple

import httpx

import upnpstream.integrations
from upnpstream.config import StreamClientConfiguration
from upnpstream.error import (
    CancellationError,
    ClientStateError,
    ConstructionError,
    TimeoutError,
    error_for_exception,
)
from upnpstream.message import StreamRequestMessage, StreamResponseMessage
from upnpstream.status import error_types
from upnpstream.wire import HTTPRequest, decode_response, encode_request

logger = logging.getLogger(__name__)

# Interval at which a waiting caller checks its cancellation event and
# whether stop() abandoned its request.
CANCEL_POLL_INTERVAL = 0.05


class State(enum.Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"
    FAILED_TO_START = "failed_to_start"

    def __str__(self):
        return self.name


class StreamClient:
    """Blocking UPnP stream client on top of an httpx engine.

    The client is started when constructed and can be shared by any number
    of threads, each call to send_request performing one complete exchange.
    """

    __slots__ = (
        "configuration",
        "logger",
        "_state",
        "_lock",
        "_client",
        "_executor",
        "_error_types",
    )

    def __init__(
        self,
        configuration: Optional[StreamClientConfiguration] = None,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
        max_workers: Optional[int] = None,
    ):
        """Create and start a stream client.

        Args:
            configuration: Settings shared by all requests of the client.
                Uses StreamClientConfiguration.from_environment() by default.

            transport: Transport the httpx engine sends requests through.
                Uses an httpx connection pool by default.

            logger: Logger receiving the client's diagnostics. Uses the
                module logger by default.

            max_workers: Maximum number of exchanges in flight at once.

        Raises:
            ConstructionError: if the transport engine cannot be started.
        """
        self.configuration = configuration or StreamClientConfiguration.from_environment()
        self.logger = logger or logging.getLogger(__name__)
        self._state = State.CREATED
        self._lock = threading.Lock()
        self._error_types = error_types()

        self.logger.info("starting httpx stream client...")
        engine_timeout = self.configuration.engine_timeout_seconds
        try:
            self._client = httpx.Client(
                transport=transport,
                timeout=httpx.Timeout(engine_timeout),
                follow_redirects=False,
            )
            self._executor = futures.ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="upnpstream"
            )
        except Exception as e:
            self._state = State.FAILED_TO_START
            raise ConstructionError(f"could not start httpx client: {e}") from e

        self._state = State.STARTED
        self.logger.debug(
            "stream client started with %s second(s) engine timeout", engine_timeout
        )

    @property
    def state(self) -> State:
        return self._state

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()

    def send_request(
        self,
        message: StreamRequestMessage,
        cancel: Optional[threading.Event] = None,
    ) -> StreamResponseMessage:
        """Send a request message and wait for the response.

        Args:
            message: The request to send. It must not be modified until the
                call returns.

            cancel: Event that, once set, makes the call give up waiting for
                the response.

        Returns:
            The response message.

        Raises:
            ClientStateError: if the client is not started.
            MalformedRequestError: if the message cannot be sent as is.
            TransportError: if the exchange failed or did not complete within
                the configured timeout (TimeoutError).
            CancellationError: if the call was cancelled or interrupted.
            ProtocolClassificationError: if the response cannot be mapped to
                a response message.
        """
        if self._state is not State.STARTED:
            raise ClientStateError(f"stream client is {self._state}, cannot send {message}")

        request = encode_request(message, self.configuration, self.logger)
        self.logger.debug("sending request: %s", message)

        start = time.monotonic()
        try:
            future = self._executor.submit(self._execute, request)
        except RuntimeError as e:
            # The executor was shut down by a concurrent stop().
            raise ClientStateError(f"stream client is {self._state}, cannot send {message}") from e

        self._wait(future, message, cancel)
        try:
            status_code, headers, content = future.result()
        except (httpx.HTTPError, httpx.StreamError, httpx.InvalidURL, OSError) as e:
            self.logger.warning("request failed: %s: %s", message, e)
            raise error_for_exception(
                e, f"request {message} failed: {e}", self._error_types
            ) from e
        finally:
            self._check_duration(message, start)

        return decode_response(status_code, headers, content, self.logger)

    def _execute(self, request: HTTPRequest) -> Tuple[int, List[Tuple[str, str]], bytes]:
        engine_request = httpx.Request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.content,
            extensions={"timeout": self._client.timeout.as_dict()},
        )
        response = self._client.send(engine_request)
        try:
            content = response.read()
            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.headers.raw
            ]
            return response.status_code, headers, content
        finally:
            response.close()

    def _wait(
        self,
        future: futures.Future,
        message: StreamRequestMessage,
        cancel: Optional[threading.Event],
    ):
        # Future.cancel() does not wake futures.wait(), so every wait is
        # bounded by the poll interval and the future is checked each time.
        timeout = self.configuration.timeout_seconds
        deadline = time.monotonic() + timeout if timeout else None
        try:
            while True:
                if future.cancelled():
                    self.logger.info("request abandoned by stop(): %s", message)
                    raise ClientStateError(
                        f"stream client is {self._state}, request {message} was abandoned"
                    )
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    future.cancel()
                    self.logger.warning(
                        "request timed out after %d second(s): %s", timeout, message
                    )
                    raise TimeoutError(
                        f"request {message} timed out after {timeout} second(s)"
                    )
                if cancel is not None and cancel.is_set():
                    future.cancel()
                    self.logger.info("request cancelled: %s", message)
                    raise CancellationError(f"request {message} was cancelled")
                if remaining is None or remaining > CANCEL_POLL_INTERVAL:
                    remaining = CANCEL_POLL_INTERVAL
                done, _ = futures.wait([future], timeout=remaining)
                if done:
                    return
        except KeyboardInterrupt as e:
            future.cancel()
            self.logger.info("request interrupted: %s", message)
            raise CancellationError(f"request {message} was interrupted") from e

    def _check_duration(self, message: StreamRequestMessage, start: float):
        elapsed = time.monotonic() - start
        threshold = self.configuration.log_warning_seconds
        if threshold and elapsed > threshold:
            self.logger.warning(
                "request took %.1f second(s), more than %d: %s",
                elapsed,
                threshold,
                message,
            )

    def stop(self):
        """Stop the client and release the engine's resources.

        Stopping more than once has no effect. Requests still in flight are
        abandoned.
        """
        with self._lock:
            if self._state is not State.STARTED:
                return
            self._state = State.STOPPED

        self.logger.info("stopping httpx stream client...")
        try:
            self._client.close()
        except Exception as e:
            self.logger.info("error stopping HTTP client: %s", e)
        self._executor.shutdown(wait=False, cancel_futures=True)
