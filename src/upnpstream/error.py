from builtins import TimeoutError as _TimeoutError
from typing import Dict, Optional, Type, cast

from upnpstream.status import ErrorKind, ErrorTypes, kind_for_error, register_error_type


class StreamClientError(Exception):
    """Base class for stream client exceptions."""

    _kind = ErrorKind.UNSPECIFIED

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def retryable(self) -> bool:
        return self._kind.retryable


class ConfigurationError(StreamClientError, ValueError):
    """Client configuration holds an invalid value."""

    _kind = ErrorKind.CONFIGURATION


class ConstructionError(StreamClientError, RuntimeError):
    """The transport engine could not be started. The client instance that
    raised it cannot be used."""

    _kind = ErrorKind.CONSTRUCTION


class ClientStateError(StreamClientError, RuntimeError):
    """A request was sent to a client that is not started."""

    _kind = ErrorKind.INVALID_STATE


class MalformedRequestError(StreamClientError, ValueError):
    """The request message cannot be translated to an HTTP request. Raised
    before any network activity."""

    _kind = ErrorKind.MALFORMED_REQUEST


class TransportError(StreamClientError, ConnectionError):
    """Generic transport error. Used in cases where a more specific error
    class is not available, but the exchange that failed may be attempted
    again."""

    _kind = ErrorKind.TRANSPORT


class TimeoutError(TransportError, _TimeoutError):
    """Exchange did not complete within the configured timeout."""

    _kind = ErrorKind.TIMEOUT


class DNSError(TransportError):
    """Host name of the request target could not be resolved."""

    _kind = ErrorKind.DNS_ERROR


class TCPError(TransportError):
    """Connection was refused, reset, or closed before a response."""

    _kind = ErrorKind.TCP_ERROR


class TLSError(TransportError):
    """TLS handshake with the remote peer failed."""

    _kind = ErrorKind.TLS_ERROR


class HTTPError(TransportError):
    """Remote peer sent something that is not valid HTTP."""

    _kind = ErrorKind.HTTP_ERROR


class CancellationError(StreamClientError, InterruptedError):
    """The calling thread gave up on the exchange before it completed."""

    _kind = ErrorKind.CANCELLED


class ProtocolClassificationError(StreamClientError, ValueError):
    """The response could not be mapped to a UPnP response message: unknown
    status code, or body undecodable with its declared charset."""

    _kind = ErrorKind.PROTOCOL


_ERRORS: Dict[ErrorKind, Type[StreamClientError]] = {
    ErrorKind.MALFORMED_REQUEST: MalformedRequestError,
    ErrorKind.CANCELLED: CancellationError,
    ErrorKind.TIMEOUT: TimeoutError,
    ErrorKind.DNS_ERROR: DNSError,
    ErrorKind.TCP_ERROR: TCPError,
    ErrorKind.TLS_ERROR: TLSError,
    ErrorKind.HTTP_ERROR: HTTPError,
}


def error_for_exception(
    error: BaseException, message: str, error_types: Optional[ErrorTypes] = None
) -> StreamClientError:
    """Wrap an exception raised by a transport engine in the stream client
    error matching its kind. The caller chains the original exception.

    error_types is the snapshot of registered error types to classify the
    exception with, the current registrations by default.
    """
    if isinstance(error, StreamClientError):
        return error
    return _ERRORS.get(kind_for_error(error, error_types), TransportError)(message)


def stream_client_error_kind(error: BaseException) -> ErrorKind:
    return cast(StreamClientError, error)._kind


register_error_type(StreamClientError, stream_client_error_kind)
