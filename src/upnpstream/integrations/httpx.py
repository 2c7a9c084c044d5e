import httpx

from upnpstream.integrations._cause import socket_error_kind
from upnpstream.status import ErrorKind, register_error_type


def httpx_error_kind(error: BaseException) -> ErrorKind:
    # See https://www.python-httpx.org/exceptions/
    match error:
        case httpx.TimeoutException():
            return ErrorKind.TIMEOUT
        case httpx.ConnectError():
            return socket_error_kind(error) or ErrorKind.TCP_ERROR
        case httpx.ProtocolError():
            return ErrorKind.HTTP_ERROR
        case httpx.NetworkError():
            return ErrorKind.TCP_ERROR
        case httpx.UnsupportedProtocol() | httpx.InvalidURL():
            return ErrorKind.MALFORMED_REQUEST
        case httpx.DecodingError() | httpx.TooManyRedirects():
            return ErrorKind.HTTP_ERROR

    return ErrorKind.TRANSPORT


# Register base exceptions.
register_error_type(httpx.HTTPError, httpx_error_kind)
register_error_type(httpx.StreamError, httpx_error_kind)
register_error_type(httpx.InvalidURL, httpx_error_kind)
