import socket

import aiohttp

from upnpstream.status import ErrorKind, register_error_type


def aiohttp_error_kind(error: BaseException) -> ErrorKind:
    # See https://docs.aiohttp.org/en/stable/client_reference.html#hierarchy-of-exceptions
    match error:
        case aiohttp.ServerTimeoutError():
            return ErrorKind.TIMEOUT
        case aiohttp.ClientSSLError():
            return ErrorKind.TLS_ERROR
        case aiohttp.ClientConnectorError():
            if isinstance(error.os_error, socket.gaierror):
                return ErrorKind.DNS_ERROR
            return ErrorKind.TCP_ERROR
        case aiohttp.ClientConnectionError():
            return ErrorKind.TCP_ERROR
        case aiohttp.ClientPayloadError() | aiohttp.ClientResponseError():
            return ErrorKind.HTTP_ERROR
        case aiohttp.InvalidURL():
            return ErrorKind.MALFORMED_REQUEST

    return ErrorKind.TRANSPORT


# Register base exception.
register_error_type(aiohttp.ClientError, aiohttp_error_kind)
