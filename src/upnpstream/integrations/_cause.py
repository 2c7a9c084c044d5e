import socket
import ssl
from typing import Iterator, Optional

from upnpstream.status import ErrorKind


def causes(error: BaseException) -> Iterator[BaseException]:
    """Yields the exceptions chained to error, closest first."""
    seen = {id(error)}
    cause = error.__cause__ or error.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        yield cause
        cause = cause.__cause__ or cause.__context__


def socket_error_kind(error: BaseException) -> Optional[ErrorKind]:
    """Returns the kind of the first socket level error chained to error,
    None if there is none. Engines wrap resolver and TLS failures in their
    own connect errors."""
    for cause in causes(error):
        match cause:
            case socket.gaierror():
                return ErrorKind.DNS_ERROR
            case ssl.SSLError() | ssl.CertificateError():
                return ErrorKind.TLS_ERROR
    return None
