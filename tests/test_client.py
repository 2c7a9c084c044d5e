import logging
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List
from unittest import mock

import httpx
import pytest

from upnpstream import (
    ABSENT,
    BinaryBody,
    CancellationError,
    ClientStateError,
    ConstructionError,
    MalformedRequestError,
    ProtocolClassificationError,
    State,
    StreamClient,
    StreamClientConfiguration,
    StreamRequestMessage,
    TextBody,
    TransportError,
    UpnpHeaders,
)
from upnpstream import error
from upnpstream.status import ErrorKind, register_error_type
from upnpstream.mime import MimeType

CONFIG = StreamClientConfiguration(
    timeout_seconds=30,
    user_agent=lambda major, minor: f"TestClient/1.0 UPnP/{major}.{minor}",
)


class Recorder:
    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def client_for(handler, configuration=CONFIG) -> StreamClient:
    return StreamClient(configuration, transport=httpx.MockTransport(handler))


def status_request(**kwargs) -> StreamRequestMessage:
    return StreamRequestMessage.create("GET", "http://10.0.0.5:1400/status", **kwargs)


def test_get_status_example():
    recorder = Recorder(
        httpx.Response(
            200,
            headers=[("Content-Type", 'text/xml; charset="utf-8"')],
            content=b"<ok/>",
        )
    )
    with client_for(recorder) as client:
        response = client.send_request(
            StreamRequestMessage.create("GET", "http://10.0.0.5:1400/status")
        )

    (sent,) = recorder.requests
    assert sent.method == "GET"
    assert str(sent.url) == "http://10.0.0.5:1400/status"
    assert sent.headers.get_list("User-Agent") == ["TestClient/1.0 UPnP/1.0"]

    assert response.operation.status_code == 200
    assert response.operation.reason_phrase == "OK"
    assert isinstance(response.body, TextBody)
    assert response.body.content == "<ok/>"
    assert response.body.charset == "utf-8"
    assert response.body.mime_type.is_compatible(MimeType("text", "xml"))


def test_user_agent_not_duplicated():
    recorder = Recorder(httpx.Response(200))
    headers = UpnpHeaders([("User-Agent", "Device/2.0 UPnP/1.0")])
    with client_for(recorder) as client:
        client.send_request(status_request(headers=headers))
    assert recorder.requests[0].headers.get_list("user-agent") == ["Device/2.0 UPnP/1.0"]


def test_duplicate_request_headers_are_sent():
    recorder = Recorder(httpx.Response(200))
    headers = UpnpHeaders([("X-Dup", "1"), ("X-Dup", "2")])
    with client_for(recorder) as client:
        client.send_request(status_request(headers=headers))
    assert recorder.requests[0].headers.get_list("X-Dup") == ["1", "2"]


def test_text_body_is_sent():
    recorder = Recorder(httpx.Response(200))
    body = TextBody("<s:Envelope>Grüße</s:Envelope>")
    headers = UpnpHeaders(
        [("SOAPACTION", '"urn:schemas-upnp-org:service:RenderingControl:1#GetVolume"')]
    )
    message = StreamRequestMessage.create(
        "POST", "http://10.0.0.5:1400/control", body, headers
    )
    with client_for(recorder) as client:
        client.send_request(message)

    sent = recorder.requests[0]
    assert sent.content == body.content.encode("utf-8")
    assert sent.headers["Content-Length"] == str(len(sent.content))
    assert sent.headers["Content-Type"] == 'text/xml; charset="utf-8"'
    assert sent.headers["SOAPACTION"] == headers.get_first("SOAPACTION")


def test_binary_body_is_sent():
    recorder = Recorder(httpx.Response(200))
    payload = b"\x00\x01\x02\xff" * 64
    headers = UpnpHeaders([("Content-Type", "application/octet-stream")])
    message = StreamRequestMessage.create(
        "POST", "http://10.0.0.5:1400/upload", BinaryBody(payload), headers
    )
    with client_for(recorder) as client:
        client.send_request(message)

    sent = recorder.requests[0]
    assert sent.content == payload
    assert sent.headers["Content-Length"] == "256"


def test_binary_body_without_content_type_fails_before_sending():
    recorder = Recorder(httpx.Response(200))
    message = StreamRequestMessage.create(
        "POST", "http://10.0.0.5:1400/upload", BinaryBody(b"\x00")
    )
    with client_for(recorder) as client:
        with pytest.raises(MalformedRequestError):
            client.send_request(message)
    assert recorder.requests == []


def test_non_ascii_header_fails_before_sending():
    recorder = Recorder(httpx.Response(200))
    headers = UpnpHeaders([("X-Name", "Küche")])
    with client_for(recorder) as client:
        with pytest.raises(MalformedRequestError):
            client.send_request(status_request(headers=headers))
    assert recorder.requests == []


def test_binary_response():
    payload = bytes(range(256))
    recorder = Recorder(
        httpx.Response(
            200, headers={"Content-Type": "application/octet-stream"}, content=payload
        )
    )
    with client_for(recorder) as client:
        response = client.send_request(status_request())
    assert isinstance(response.body, BinaryBody)
    assert response.body.content == payload
    assert response.body.mime_type == MimeType("application", "octet-stream")


def test_empty_response_body_is_absent():
    with client_for(Recorder(httpx.Response(200))) as client:
        response = client.send_request(status_request())
    assert response.body is ABSENT


def test_failed_status_is_a_response():
    recorder = Recorder(httpx.Response(412, content=b"<error/>"))
    with client_for(recorder) as client:
        response = client.send_request(status_request())
    assert response.operation.reason_phrase == "Precondition Failed"
    assert response.operation.is_failed()


def test_duplicate_response_headers_are_preserved():
    recorder = Recorder(
        httpx.Response(200, headers=[("X-Dup", "1"), ("EXT", ""), ("X-Dup", "2")])
    )
    with client_for(recorder) as client:
        response = client.send_request(status_request())
    assert response.headers.get_all("X-Dup") == ["1", "2"]
    assert response.headers.contains("EXT")


def test_unknown_status_code():
    with client_for(Recorder(httpx.Response(299))) as client:
        with pytest.raises(ProtocolClassificationError):
            client.send_request(status_request())


def raiser(exc: Exception):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    return handler


@pytest.mark.parametrize(
    "exc,expected",
    [
        (httpx.ConnectError("connection refused"), error.TCPError),
        (httpx.ConnectTimeout("connect timed out"), error.TimeoutError),
        (httpx.ReadTimeout("read timed out"), error.TimeoutError),
        (httpx.RemoteProtocolError("illegal status line"), error.HTTPError),
        (httpx.ReadError("connection reset"), error.TCPError),
        (httpx.UnsupportedProtocol("unknown scheme"), MalformedRequestError),
    ],
)
def test_transport_failures_are_typed(exc, expected):
    with client_for(raiser(exc)) as client:
        with pytest.raises(expected) as mc:
            client.send_request(status_request())
    assert type(mc.value) is expected
    assert mc.value.__cause__ is exc


def test_error_types_registered_after_start_do_not_apply():
    exc = httpx.ReadError("connection reset")
    with client_for(raiser(exc)) as client:
        with mock.patch.dict("upnpstream.status._ERROR_TYPES"):
            register_error_type(httpx.ReadError, ErrorKind.DNS_ERROR)
            with pytest.raises(error.TCPError):
                client.send_request(status_request())

            with client_for(raiser(exc)) as later:
                with pytest.raises(error.DNSError):
                    later.send_request(status_request())


def test_dns_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        try:
            raise socket.gaierror(-2, "Name or service not known")
        except socket.gaierror as e:
            raise httpx.ConnectError(str(e)) from e

    with client_for(handler) as client:
        with pytest.raises(error.DNSError) as mc:
            client.send_request(status_request())
    assert isinstance(mc.value, TransportError)
    assert mc.value.retryable


def test_transport_failure_is_not_a_response():
    with client_for(raiser(httpx.ConnectError("refused"))) as client:
        with pytest.raises(TransportError):
            client.send_request(status_request())


def test_client_expires_slow_exchanges():
    release = threading.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        release.wait(5)
        return httpx.Response(200)

    config = StreamClientConfiguration(timeout_seconds=1, log_warning_seconds=0)
    try:
        with client_for(handler, config) as client:
            start = time.monotonic()
            with pytest.raises(error.TimeoutError):
                client.send_request(status_request())
            assert time.monotonic() - start < 4
    finally:
        release.set()


def test_cancel_event():
    release = threading.Event()
    cancel = threading.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        cancel.set()
        release.wait(5)
        return httpx.Response(200)

    try:
        with client_for(handler) as client:
            with pytest.raises(CancellationError) as mc:
                client.send_request(status_request(), cancel=cancel)
        assert not isinstance(mc.value, TransportError)
    finally:
        release.set()


def test_keyboard_interrupt_is_cancellation():
    with client_for(Recorder(httpx.Response(200))) as client:
        with mock.patch(
            "upnpstream.client.futures.wait", side_effect=KeyboardInterrupt
        ):
            with pytest.raises(CancellationError) as mc:
                client.send_request(status_request())
    assert isinstance(mc.value.__cause__, KeyboardInterrupt)


def test_slow_exchange_logs_warning(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        time.sleep(1.2)
        return httpx.Response(200)

    config = StreamClientConfiguration(timeout_seconds=10, log_warning_seconds=1)
    with caplog.at_level(logging.WARNING, logger="upnpstream.client"):
        with client_for(handler, config) as client:
            client.send_request(status_request())
    assert any("request took" in r.getMessage() for r in caplog.records)


def test_injected_logger():
    log = mock.Mock(spec=logging.Logger)
    log.isEnabledFor.return_value = False
    client = StreamClient(
        CONFIG, transport=httpx.MockTransport(Recorder(httpx.Response(200))), logger=log
    )
    client.send_request(status_request())
    client.stop()
    assert log.info.called


def test_concurrent_requests():
    def handler(request: httpx.Request) -> httpx.Response:
        time.sleep(0.05)
        return httpx.Response(200, content=request.url.path.encode())

    results = {}
    with client_for(handler) as client:

        def run(i: int):
            message = StreamRequestMessage.create("GET", f"http://10.0.0.5:1400/{i}")
            results[i] = client.send_request(message).body

        threads = [threading.Thread(target=run, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    assert {i: b.content for i, b in results.items()} == {i: f"/{i}" for i in range(16)}


def test_stop_releases_queued_and_in_flight_requests():
    started = threading.Event()
    release = threading.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        release.wait(5)
        return httpx.Response(200)

    config = StreamClientConfiguration(timeout_seconds=0)
    client = StreamClient(config, transport=httpx.MockTransport(handler), max_workers=1)
    outcomes = {}

    def run(i: int):
        try:
            outcomes[i] = client.send_request(status_request())
        except Exception as e:
            outcomes[i] = e

    threads = [threading.Thread(target=run, args=(i,)) for i in range(2)]
    try:
        threads[0].start()
        assert started.wait(5)
        # The second exchange waits for the only worker.
        threads[1].start()
        time.sleep(0.2)
        client.stop()
        threads[1].join(2)
        assert not threads[1].is_alive()
        assert isinstance(outcomes[1], ClientStateError)
    finally:
        release.set()

    threads[0].join(5)
    assert not threads[0].is_alive()
    assert 0 in outcomes


def test_lifecycle():
    client = client_for(Recorder(httpx.Response(200)))
    assert client.state is State.STARTED
    client.stop()
    assert client.state is State.STOPPED
    client.stop()
    assert client.state is State.STOPPED

    with pytest.raises(ClientStateError):
        client.send_request(status_request())


def test_stop_does_not_raise_on_teardown_errors():
    client = client_for(Recorder(httpx.Response(200)))
    with mock.patch.object(httpx.Client, "close", side_effect=RuntimeError("boom")):
        client.stop()
    assert client.state is State.STOPPED


def test_construction_failure():
    with mock.patch("httpx.Client", side_effect=RuntimeError("no sockets")):
        with pytest.raises(ConstructionError) as mc:
            StreamClient(CONFIG)
    assert isinstance(mc.value.__cause__, RuntimeError)


class _DeviceHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/slow":
            time.sleep(3)
        body = b'<?xml version="1.0"?><root/>'
        self.send_response(200)
        self.send_header("Content-Type", 'text/xml; charset="utf-8"')
        self.send_header("X-Dup", "1")
        self.send_header("X-Dup", "2")
        self.send_header("X-User-Agent", self.headers.get("User-Agent", ""))
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def device():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _DeviceHandler)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05})
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


def test_exchange_with_http_server(device):
    with StreamClient(CONFIG) as client:
        response = client.send_request(
            StreamRequestMessage.create("GET", f"{device}/description.xml")
        )
    assert response.operation.status_code == 200
    assert response.headers.get_all("X-Dup") == ["1", "2"]
    assert response.headers.get_first("X-User-Agent") == "TestClient/1.0 UPnP/1.0"
    assert isinstance(response.body, TextBody)
    assert response.body.content == '<?xml version="1.0"?><root/>'


def test_timeout_with_http_server(device):
    config = StreamClientConfiguration(timeout_seconds=1)
    with StreamClient(config) as client:
        with pytest.raises(error.TimeoutError):
            client.send_request(StreamRequestMessage.create("GET", f"{device}/slow"))


def test_connection_refused():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    with StreamClient(CONFIG) as client:
        with pytest.raises(error.TCPError):
            client.send_request(StreamRequestMessage.create("GET", f"http://127.0.0.1:{port}/"))
