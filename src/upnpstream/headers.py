import enum
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from multidict import CIMultiDict


@enum.unique
class HeaderType(str, enum.Enum):
    """Canonical identifiers of the headers used by UPnP, mapped to their
    name on the wire."""

    USER_AGENT = "User-Agent"
    CONTENT_TYPE = "Content-Type"
    CONTENT_LENGTH = "Content-Length"
    HOST = "Host"
    SERVER = "Server"
    SOAPACTION = "SOAPACTION"
    CALLBACK = "CALLBACK"
    NT = "NT"
    NTS = "NTS"
    SID = "SID"
    SEQ = "SEQ"
    TIMEOUT = "TIMEOUT"
    EXT = "EXT"
    LOCATION = "LOCATION"
    MAN = "MAN"
    ST = "ST"
    USN = "USN"
    MX = "MX"
    CACHE_CONTROL = "CACHE-CONTROL"
    EVENT_ID = "EVENT-ID"
    EVENT_KEY = "EVENT-KEY"

    def __str__(self):
        return self.value

    @property
    def http_name(self) -> str:
        return self.value


HeaderName = Union[str, HeaderType]


class UpnpHeaders:
    """Ordered, multi-valued collection of HTTP headers.

    Header names compare case-insensitively, the spelling used by the first
    occurrence of a name is the one reported by entries(). Values of a name
    keep their order of addition. A name is only present when it has at
    least one value.
    """

    __slots__ = ("_headers",)

    _headers: CIMultiDict[str]

    def __init__(self, headers: Optional[Iterable[Tuple[str, str]]] = None):
        self._headers = CIMultiDict()
        if headers is not None:
            for name, value in headers:
                self.add(name, value)

    def add(self, name: HeaderName, value: str):
        """Append a value to a header, preserving values added before."""
        if not isinstance(value, str):
            raise TypeError(
                f"header value must be a string, got {type(value).__name__}"
            )
        name = str(name)
        if not name:
            raise ValueError("header name must not be empty")
        self._headers.add(name, value)

    def contains(self, name: HeaderName) -> bool:
        return str(name) in self._headers

    def get_first(self, name: HeaderName) -> Optional[str]:
        return self._headers.get(str(name))

    def get_all(self, name: HeaderName) -> List[str]:
        return self._headers.getall(str(name), [])

    def entries(self) -> "_Entries":
        """Returns a lazy view of (name, values) pairs, in insertion order of
        the first occurrence of each name. The view can be iterated any
        number of times and reflects later additions."""
        return _Entries(self)

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yields every (name, value) pair in order of addition, duplicates
        included, each name spelled as it was added."""
        return iter(self._headers.items())

    def copy(self) -> "UpnpHeaders":
        return UpnpHeaders(self.items())

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (str, HeaderType)):
            return False
        return self.contains(name)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for name in self._headers.keys():
            key = name.lower()
            if key not in seen:
                seen.add(key)
                yield name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UpnpHeaders):
            return NotImplemented
        return [(k.lower(), v) for k, v in self.items()] == [
            (k.lower(), v) for k, v in other.items()
        ]

    def __repr__(self):
        return f"UpnpHeaders({list(self.items())!r})"


class _Entries:
    __slots__ = ("_headers",)

    def __init__(self, headers: UpnpHeaders):
        self._headers = headers

    def __iter__(self) -> Iterator[Tuple[str, List[str]]]:
        for name in self._headers:
            yield name, self._headers.get_all(name)

    def __len__(self) -> int:
        return len(self._headers)
