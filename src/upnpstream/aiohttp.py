"""UPnP stream client for asyncio applications, on top of aiohttp."""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

import aiohttp

import upnpstream.integrations
from upnpstream.client import State
from upnpstream.config import StreamClientConfiguration
from upnpstream.error import (
    ClientStateError,
    ConstructionError,
    TimeoutError,
    error_for_exception,
)
from upnpstream.message import StreamRequestMessage, StreamResponseMessage
from upnpstream.status import error_types
from upnpstream.wire import HTTPRequest, decode_response, encode_request

logger = logging.getLogger(__name__)

# Headers aiohttp would add on its own; requests carry the message headers
# and the ones derived from its body only.
SKIP_AUTO_HEADERS = ("Accept", "Accept-Encoding")


class AsyncStreamClient:
    """Asynchronous UPnP stream client.

    The client must be started, either with start() or by entering it as an
    async context manager, before sending requests. Cancelling the task that
    awaits send_request raises asyncio.CancelledError in it, as with any
    other coroutine.
    """

    configuration: StreamClientConfiguration
    logger: logging.Logger

    _connector: Optional[aiohttp.BaseConnector]
    _session: Optional[aiohttp.ClientSession]

    def __init__(
        self,
        configuration: Optional[StreamClientConfiguration] = None,
        connector: Optional[aiohttp.BaseConnector] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.configuration = configuration or StreamClientConfiguration.from_environment()
        self.logger = logger or logging.getLogger(__name__)
        self._connector = connector
        self._session = None
        self._state = State.CREATED
        self._error_types = error_types()

    @property
    def state(self) -> State:
        return self._state

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.stop()

    async def start(self):
        """Start the aiohttp engine.

        Raises:
            ClientStateError: if the client was already started or stopped.
            ConstructionError: if the engine cannot be started.
        """
        if self._state is not State.CREATED:
            raise ClientStateError(f"stream client is {self._state}, cannot start")

        self.logger.info("starting aiohttp stream client...")
        engine_timeout = self.configuration.engine_timeout_seconds
        try:
            self._session = aiohttp.ClientSession(
                connector=self._connector,
                timeout=aiohttp.ClientTimeout(
                    total=engine_timeout,
                    connect=engine_timeout,
                    sock_read=engine_timeout,
                ),
                skip_auto_headers=SKIP_AUTO_HEADERS,
                auto_decompress=True,
            )
        except Exception as e:
            self._state = State.FAILED_TO_START
            raise ConstructionError(f"could not start aiohttp client: {e}") from e
        self._state = State.STARTED

    async def send_request(self, message: StreamRequestMessage) -> StreamResponseMessage:
        """Send a request message and wait for the response.

        Raises:
            ClientStateError: if the client is not started.
            MalformedRequestError: if the message cannot be sent as is.
            TransportError: if the exchange failed or did not complete within
                the configured timeout (TimeoutError).
            ProtocolClassificationError: if the response cannot be mapped to
                a response message.
        """
        if self._state is not State.STARTED or self._session is None:
            raise ClientStateError(f"stream client is {self._state}, cannot send {message}")

        request = encode_request(message, self.configuration, self.logger)
        self.logger.debug("sending request: %s", message)

        timeout = self.configuration.timeout_seconds or None
        start = time.monotonic()
        try:
            status_code, headers, content = await asyncio.wait_for(
                self._execute(self._session, request), timeout
            )
        except asyncio.TimeoutError as e:
            self.logger.warning(
                "request timed out after %s second(s): %s", timeout, message
            )
            raise TimeoutError(
                f"request {message} timed out after {timeout} second(s)"
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            self.logger.warning("request failed: %s: %s", message, e)
            raise error_for_exception(
                e, f"request {message} failed: {e}", self._error_types
            ) from e
        finally:
            elapsed = time.monotonic() - start
            threshold = self.configuration.log_warning_seconds
            if threshold and elapsed > threshold:
                self.logger.warning(
                    "request took %.1f second(s), more than %d: %s",
                    elapsed,
                    threshold,
                    message,
                )

        return decode_response(status_code, headers, content, self.logger)

    async def _execute(
        self, session: aiohttp.ClientSession, request: HTTPRequest
    ) -> Tuple[int, List[Tuple[str, str]], bytes]:
        async with session.request(
            request.method,
            request.url,
            headers=request.headers,
            data=request.content,
            allow_redirects=False,
        ) as response:
            content = await response.read()
            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.raw_headers
            ]
            return response.status, headers, content

    async def stop(self):
        """Stop the client and close the aiohttp session. Stopping more than
        once, or a client that never started, has no effect."""
        if self._state is not State.STARTED:
            if self._state is State.CREATED:
                self._state = State.STOPPED
            return
        self._state = State.STOPPED

        self.logger.info("stopping aiohttp stream client...")
        session, self._session = self._session, None
        try:
            if session is not None:
                await session.close()
        except Exception as e:
            self.logger.info("error stopping HTTP client: %s", e)
