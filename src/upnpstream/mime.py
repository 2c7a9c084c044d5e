from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

_TOKEN = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


@dataclass(frozen=True)
class MimeType:
    """Structured content type descriptor.

    Parameter values are kept as they appeared on the wire (quotes
    included) so that formatting a parsed value reproduces it; use the
    param() accessor to read an unquoted value.
    """

    type: str
    subtype: str
    params: Tuple[Tuple[str, str], ...] = field(default=())

    @classmethod
    def parse(cls, value: str) -> MimeType:
        """Parse a Content-Type header value.

        Raises:
            ValueError: if the value is not a type/subtype pair optionally
                followed by name=value parameters.
        """
        parts = value.split(";")
        media = parts[0].strip()
        type_, sep, subtype = media.partition("/")
        type_, subtype = type_.strip(), subtype.strip()
        if not sep or not _TOKEN.match(type_) or not _TOKEN.match(subtype):
            raise ValueError(f"invalid mime type: {value!r}")

        params = []
        for part in parts[1:]:
            part = part.strip()
            if not part:
                continue
            name, sep, param = part.partition("=")
            name = name.strip()
            if not sep or not _TOKEN.match(name):
                raise ValueError(f"invalid mime type parameter {part!r} in {value!r}")
            params.append((name.lower(), param.strip()))
        return cls(type_.lower(), subtype.lower(), tuple(params))

    def param(self, name: str) -> Optional[str]:
        name = name.lower()
        for key, value in self.params:
            if key == name:
                return _unquote(value)
        return None

    @property
    def charset(self) -> Optional[str]:
        return self.param("charset")

    def with_charset(self, charset: str) -> MimeType:
        params = tuple((k, v) for k, v in self.params if k != "charset")
        return MimeType(self.type, self.subtype, params + (("charset", f'"{charset}"'),))

    def is_text(self) -> bool:
        return self.type == "text"

    def is_compatible(self, other: MimeType) -> bool:
        """Type and subtype match, ignoring parameters; * is a wildcard."""
        if "*" in (self.type, other.type):
            return True
        if self.type != other.type:
            return False
        return "*" in (self.subtype, other.subtype) or self.subtype == other.subtype

    def __str__(self):
        media = f"{self.type}/{self.subtype}"
        if not self.params:
            return media
        return media + "".join(f"; {k}={v}" for k, v in self.params)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


DEFAULT_CONTENT_TYPE = MimeType("text", "xml")
DEFAULT_CONTENT_TYPE_UTF8 = DEFAULT_CONTENT_TYPE.with_charset("utf-8")
DEFAULT_CHARSET = "UTF-8"
