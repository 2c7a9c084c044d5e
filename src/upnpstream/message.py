"""UPnP message model: request and response operations, bodies, and the
stream messages carrying them."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urlsplit

from upnpstream.error import ProtocolClassificationError
from upnpstream.headers import HeaderType, UpnpHeaders
from upnpstream.mime import DEFAULT_CHARSET, DEFAULT_CONTENT_TYPE_UTF8, MimeType
from upnpstream.status import reason_phrase


class Absent:
    """Body of a message without an entity."""

    __slots__ = ()

    def __repr__(self):
        return "ABSENT"

    def __bool__(self):
        return False


ABSENT = Absent()


@dataclass(frozen=True)
class TextBody:
    content: str
    charset: str = DEFAULT_CHARSET
    mime_type: MimeType = DEFAULT_CONTENT_TYPE_UTF8


@dataclass(frozen=True)
class BinaryBody:
    content: bytes
    # Requests may leave the type unset; sending them fails.
    mime_type: Optional[MimeType] = None


Body = Union[Absent, TextBody, BinaryBody]


@dataclass(frozen=True)
class UpnpRequest:
    """Operation of a UPnP request: HTTP method, absolute target URI, and the
    UDA version the message was built for."""

    class Method(str, enum.Enum):
        GET = "GET"
        POST = "POST"
        NOTIFY = "NOTIFY"
        MSEARCH = "M-SEARCH"
        SUBSCRIBE = "SUBSCRIBE"
        UNSUBSCRIBE = "UNSUBSCRIBE"

        def __str__(self):
            return self.value

    method: str
    uri: str
    uda_major_version: int = 1
    uda_minor_version: int = 0

    def __post_init__(self):
        method = str(self.method).strip().upper()
        if not method or any(c.isspace() for c in method):
            raise ValueError(f"invalid HTTP method: {self.method!r}")
        object.__setattr__(self, "method", method)

        uri = str(self.uri)
        parts = urlsplit(uri)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"request URI must be absolute: {uri!r}")
        object.__setattr__(self, "uri", uri)

    def __str__(self):
        return f"{self.method} {self.uri}"


@dataclass(frozen=True)
class UpnpResponse:
    """Operation of a UPnP response: status code and reason phrase."""

    status_code: int
    reason_phrase: Optional[str] = None

    def __post_init__(self):
        if not 100 <= self.status_code <= 599:
            raise ProtocolClassificationError(
                f"status code out of range: {self.status_code}"
            )
        if self.reason_phrase is None:
            phrase = reason_phrase(self.status_code)
            if phrase is None:
                raise ProtocolClassificationError(
                    f"unknown status code: {self.status_code}"
                )
            object.__setattr__(self, "reason_phrase", phrase)

    def is_failed(self) -> bool:
        return self.status_code >= 300

    def __str__(self):
        return f"{self.status_code} {self.reason_phrase}"


@dataclass
class _StreamMessage:
    headers: UpnpHeaders = field(default_factory=UpnpHeaders)
    body: Body = ABSENT

    @property
    def content_type(self) -> Optional[MimeType]:
        """The parsed Content-Type header, None if missing or unparseable."""
        value = self.headers.get_first(HeaderType.CONTENT_TYPE)
        if value is None:
            return None
        try:
            return MimeType.parse(value)
        except ValueError:
            return None

    @property
    def content_type_charset(self) -> Optional[str]:
        content_type = self.content_type
        return content_type.charset if content_type is not None else None

    def has_body(self) -> bool:
        return not isinstance(self.body, Absent)

    def is_content_type_missing_or_text(self) -> bool:
        content_type = self.content_type
        return content_type is None or content_type.is_text()


@dataclass
class StreamRequestMessage(_StreamMessage):
    operation: UpnpRequest = field(kw_only=True)

    @classmethod
    def create(
        cls,
        method: Union[str, UpnpRequest.Method],
        uri: str,
        body: Body = ABSENT,
        headers: Optional[UpnpHeaders] = None,
    ) -> StreamRequestMessage:
        return cls(
            operation=UpnpRequest(str(method), uri),
            headers=headers if headers is not None else UpnpHeaders(),
            body=body,
        )

    def __str__(self):
        return f"(StreamRequestMessage) {self.operation}"


@dataclass
class StreamResponseMessage(_StreamMessage):
    operation: UpnpResponse = field(kw_only=True)

    def __str__(self):
        return f"(StreamResponseMessage) {self.operation}"
