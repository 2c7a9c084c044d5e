"""UPnP stream client: sends UPnP request messages over HTTP and returns
the UPnP response messages."""

import upnpstream.integrations
from upnpstream.client import State, StreamClient
from upnpstream.config import (
    PRODUCT_VERSION,
    ServerClientTokens,
    StreamClientConfiguration,
)
from upnpstream.error import (
    CancellationError,
    ClientStateError,
    ConfigurationError,
    ConstructionError,
    MalformedRequestError,
    ProtocolClassificationError,
    StreamClientError,
    TransportError,
)
from upnpstream.headers import HeaderType, UpnpHeaders
from upnpstream.message import (
    ABSENT,
    Absent,
    BinaryBody,
    Body,
    StreamRequestMessage,
    StreamResponseMessage,
    TextBody,
    UpnpRequest,
    UpnpResponse,
)
from upnpstream.mime import DEFAULT_CONTENT_TYPE, DEFAULT_CONTENT_TYPE_UTF8, MimeType
from upnpstream.status import ErrorKind

__version__ = PRODUCT_VERSION

__all__ = [
    "ABSENT",
    "Absent",
    "BinaryBody",
    "Body",
    "CancellationError",
    "ClientStateError",
    "ConfigurationError",
    "ConstructionError",
    "DEFAULT_CONTENT_TYPE",
    "DEFAULT_CONTENT_TYPE_UTF8",
    "ErrorKind",
    "HeaderType",
    "MalformedRequestError",
    "MimeType",
    "ProtocolClassificationError",
    "ServerClientTokens",
    "State",
    "StreamClient",
    "StreamClientConfiguration",
    "StreamClientError",
    "StreamRequestMessage",
    "StreamResponseMessage",
    "TextBody",
    "TransportError",
    "UpnpHeaders",
    "UpnpRequest",
    "UpnpResponse",
]
