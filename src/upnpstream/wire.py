"""Translation between UPnP stream messages and HTTP requests and responses,
independent of the transport engine carrying them."""

import codecs
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from upnpstream.config import StreamClientConfiguration
from upnpstream.error import MalformedRequestError, ProtocolClassificationError
from upnpstream.headers import HeaderType, UpnpHeaders
from upnpstream.message import (
    ABSENT,
    BinaryBody,
    Body,
    StreamRequestMessage,
    StreamResponseMessage,
    TextBody,
    UpnpResponse,
)
from upnpstream.mime import DEFAULT_CHARSET, DEFAULT_CONTENT_TYPE_UTF8

logger = logging.getLogger(__name__)

# Header names are HTTP tokens; values are visible ASCII, spaces and tabs.
_HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_HEADER_VALUE = re.compile(r"[\t\x20-\x7e]*")


@dataclass
class HTTPRequest:
    """An engine-agnostic HTTP request, ready to be handed to a transport."""

    method: str
    url: str
    headers: List[Tuple[str, str]]
    content: Optional[bytes] = None

    def header(self, name: str) -> List[str]:
        name = name.lower()
        return [v for k, v in self.headers if k.lower() == name]


def encode_request(
    message: StreamRequestMessage,
    configuration: StreamClientConfiguration,
    log: logging.Logger = logger,
) -> HTTPRequest:
    """Build the HTTP request carrying a UPnP request message.

    The User-Agent header is added from the configuration when the message
    does not set one. Every header of the message is then copied verbatim,
    except Content-Length which is always derived from the encoded body.

    Raises:
        MalformedRequestError: if the message has a binary body but no
            Content-Type header, or a text body that cannot be encoded
            with its charset.
        MalformedRequestError: if a header name is not a token, or a header
            value contains characters other than visible ASCII, spaces and
            tabs (line breaks included).
    """
    operation = message.operation
    headers: List[Tuple[str, str]] = []

    if not message.headers.contains(HeaderType.USER_AGENT):
        headers.append(
            (
                HeaderType.USER_AGENT.http_name,
                configuration.user_agent_value(
                    operation.uda_major_version, operation.uda_minor_version
                ),
            )
        )

    for name, value in message.headers.items():
        if message.has_body() and name.lower() == "content-length":
            continue
        if log.isEnabledFor(logging.DEBUG):
            log.debug("setting header '%s': %s", name, value)
        headers.append((name, value))

    content = _encode_body(message, headers, log)
    for name, value in headers:
        _check_header(message, name, value)
    return HTTPRequest(operation.method, operation.uri, headers, content)


def _check_header(message: StreamRequestMessage, name: str, value: str):
    if not _HEADER_NAME.fullmatch(name):
        raise MalformedRequestError(
            f"invalid header name {name!r} in request message: {message}"
        )
    if not _HEADER_VALUE.fullmatch(value):
        raise MalformedRequestError(
            f"invalid value {value!r} of header '{name}' in request message: {message}"
        )


def _encode_body(
    message: StreamRequestMessage,
    headers: List[Tuple[str, str]],
    log: logging.Logger,
) -> Optional[bytes]:
    body = message.body
    has_content_type = message.headers.contains(HeaderType.CONTENT_TYPE)

    if isinstance(body, TextBody):
        # With a Content-Type header, its charset wins, UTF-8 otherwise.
        if has_content_type:
            charset = message.content_type_charset or DEFAULT_CHARSET
        else:
            charset = body.charset or DEFAULT_CHARSET
        try:
            content = body.content.encode(_codec(charset))
        except (LookupError, UnicodeEncodeError) as e:
            raise MalformedRequestError(
                f"cannot encode request body of {message} as {charset}: {e}"
            ) from e
        if not has_content_type:
            mime_type = body.mime_type or DEFAULT_CONTENT_TYPE_UTF8
            if mime_type.charset is None or mime_type.charset.lower() != charset.lower():
                mime_type = mime_type.with_charset(charset)
            headers.append((HeaderType.CONTENT_TYPE.http_name, str(mime_type)))

    elif isinstance(body, BinaryBody):
        log.debug("writing binary request body: %s", message)
        if not has_content_type:
            raise MalformedRequestError(
                f"missing content type header in request message: {message}"
            )
        content = bytes(body.content)

    else:
        return None

    headers.append((HeaderType.CONTENT_LENGTH.http_name, str(len(content))))
    return content


def decode_response(
    status_code: int,
    headers: Iterable[Tuple[str, str]],
    content: Optional[bytes],
    log: logging.Logger = logger,
) -> StreamResponseMessage:
    """Build the UPnP response message carried by an HTTP response.

    Raises:
        ProtocolClassificationError: if the status code is not in the HTTP
            status table, or the body cannot be decoded with the charset
            declared by its Content-Type.
    """
    operation = UpnpResponse(status_code)
    log.debug("received response: %s", operation)

    message = StreamResponseMessage(operation=operation, headers=UpnpHeaders(headers))
    message.body = _decode_body(message, content or b"", log)

    if log.isEnabledFor(logging.DEBUG):
        log.debug("response message complete: %s %r", message, message.body)
    return message


def _decode_body(
    message: StreamResponseMessage, content: bytes, log: logging.Logger
) -> Body:
    if not content:
        log.debug("response did not contain entity body")
        return ABSENT

    content_type = message.content_type
    if content_type is not None and not content_type.is_text():
        log.debug("response contains binary entity body")
        return BinaryBody(content, content_type)

    log.debug("response contains textual entity body")
    charset = (content_type.charset if content_type else None) or DEFAULT_CHARSET
    try:
        text = content.decode(_codec(charset))
    except (LookupError, UnicodeDecodeError) as e:
        raise ProtocolClassificationError(
            f"cannot decode response body as {charset}: {e}"
        ) from e
    return TextBody(text, charset, content_type or DEFAULT_CONTENT_TYPE_UTF8)


def _codec(charset: str) -> str:
    # Raises LookupError for charsets Python does not know about.
    return codecs.lookup(charset).name
