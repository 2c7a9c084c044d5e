import enum
import ssl
from http import HTTPStatus
from typing import Callable, Dict, Optional, Type, Union


def reason_phrase(status_code: int) -> Optional[str]:
    """Returns the reason phrase of a status code from the standard HTTP
    status table, or None if the code is not in the table."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return None


@enum.unique
class ErrorKind(str, enum.Enum):
    """Enumeration of the ways a stream client operation can fail."""

    UNSPECIFIED = "unspecified"
    CONFIGURATION = "configuration"
    CONSTRUCTION = "construction"
    INVALID_STATE = "invalid_state"
    MALFORMED_REQUEST = "malformed_request"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    DNS_ERROR = "dns_error"
    TCP_ERROR = "tcp_error"
    TLS_ERROR = "tls_error"
    HTTP_ERROR = "http_error"
    CANCELLED = "cancelled"
    PROTOCOL = "protocol"

    def __repr__(self):
        return self.name

    def __str__(self):
        return self.name

    @property
    def retryable(self) -> bool:
        """Whether the caller may attempt the same exchange again."""
        return self in {
            ErrorKind.TRANSPORT,
            ErrorKind.TIMEOUT,
            ErrorKind.DNS_ERROR,
            ErrorKind.TCP_ERROR,
            ErrorKind.TLS_ERROR,
            ErrorKind.HTTP_ERROR,
        }


ErrorKind.UNSPECIFIED.__doc__ = "Kind not specified (default)"
ErrorKind.CONFIGURATION.__doc__ = "Client configuration is invalid"
ErrorKind.CONSTRUCTION.__doc__ = "Transport engine failed to start"
ErrorKind.INVALID_STATE.__doc__ = "Client is not in a state accepting requests"
ErrorKind.MALFORMED_REQUEST.__doc__ = "Request message cannot be sent as is"
ErrorKind.TRANSPORT.__doc__ = "Exchange failed in the transport, may be retried"
ErrorKind.TIMEOUT.__doc__ = "Exchange did not complete in time, may be retried"
ErrorKind.DNS_ERROR.__doc__ = "Host name of the target could not be resolved"
ErrorKind.TCP_ERROR.__doc__ = "Connection was refused, reset or closed"
ErrorKind.TLS_ERROR.__doc__ = "TLS handshake or certificate verification failed"
ErrorKind.HTTP_ERROR.__doc__ = "Remote peer violated the HTTP protocol"
ErrorKind.CANCELLED.__doc__ = "Exchange was cancelled by the caller"
ErrorKind.PROTOCOL.__doc__ = "Response could not be classified"

ErrorTypes = Dict[
    Type[BaseException], Union[ErrorKind, Callable[[BaseException], ErrorKind]]
]

_ERROR_TYPES: ErrorTypes = {}


def error_types() -> ErrorTypes:
    """Returns a snapshot of the registered error types.

    Clients take one when they start so that registrations made afterwards
    do not change how their failures are classified.
    """
    return dict(_ERROR_TYPES)


def kind_for_error(
    error: BaseException, error_types: Optional[ErrorTypes] = None
) -> ErrorKind:
    """Returns the ErrorKind that corresponds to the specified error.

    The error is looked up in error_types when given, and in the registered
    error types otherwise.
    """
    # See if the error matches one of the registered types.
    kind_or_handler = _find_kind_or_handler(
        error, _ERROR_TYPES if error_types is None else error_types
    )
    if kind_or_handler is not None:
        if isinstance(kind_or_handler, ErrorKind):
            return kind_or_handler
        return kind_or_handler(error)
    # If not, resort to standard error categorization.
    #
    # See https://docs.python.org/3/library/exceptions.html
    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT
    elif isinstance(error, (InterruptedError, KeyboardInterrupt)):
        return ErrorKind.CANCELLED
    elif isinstance(error, ssl.SSLError) or isinstance(error, ssl.CertificateError):
        return ErrorKind.TLS_ERROR
    elif isinstance(error, ConnectionError):
        return ErrorKind.TCP_ERROR
    elif isinstance(error, (EOFError, OSError)):
        return ErrorKind.TRANSPORT
    return ErrorKind.UNSPECIFIED


def register_error_type(
    error_type: Type[BaseException],
    kind_or_handler: Union[ErrorKind, Callable[[BaseException], ErrorKind]],
):
    """Register an error type to ErrorKind mapping.

    The caller can either register a base exception and a handler, which
    derives an ErrorKind from errors of this type. Or, if there's only one
    exception to ErrorKind mapping to register, the caller can simply pass
    the exception class and the associated ErrorKind.
    """
    _ERROR_TYPES[error_type] = kind_or_handler


def _find_kind_or_handler(obj, error_types: ErrorTypes):
    for cls in type(obj).__mro__:
        try:
            return error_types[cls]
        except KeyError:
            pass

    return None  # not found
