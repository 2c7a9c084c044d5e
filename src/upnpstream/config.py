from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from typing import Callable, Optional

from upnpstream.error import ConfigurationError

ENGINE_TIMEOUT_MARGIN = 5
"""Seconds added to the configured timeout for the transport engine's own
timeouts. The client expires requests itself, the engine must not expire
them first."""

DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_LOG_WARNING_SECONDS = 5
DEFAULT_RETRY_COUNT = 0

PRODUCT_NAME = "upnpstream"
PRODUCT_VERSION = "0.1.0"


class NamedValueFromEnvironment:
    """A configuration value given either explicitly or through an
    environment variable; name reports where it came from so error messages
    point at the right knob."""

    __slots__ = ("_envvar", "_name", "_value", "_from_envvar")

    def __init__(self, envvar: str, name: str, value: Optional[str] = None):
        self._envvar = envvar
        self._name = name
        if value is None:
            self._value = os.environ.get(envvar) or ""
            self._from_envvar = True
        else:
            self._value = value
            self._from_envvar = False

    def __str__(self):
        return self.value

    @property
    def name(self) -> str:
        return self._envvar if self._from_envvar else self._name

    @property
    def value(self) -> str:
        return self._value

    def as_int(self, default: int) -> int:
        if not self._value:
            return default
        try:
            return int(self._value)
        except ValueError:
            raise ConfigurationError(
                f"invalid {self.name}: expected an integer, got {self._value!r}"
            ) from None


@dataclass(frozen=True)
class ServerClientTokens:
    """Product tokens of the User-Agent and Server headers required by UDA:
    <platform>/<version> UPnP/<major>.<minor> <product>/<version>."""

    major_version: int = 1
    minor_version: int = 0
    os_name: str = field(default_factory=lambda: platform.system() or "Unknown")
    os_version: str = field(default_factory=lambda: platform.release() or "0")
    product_name: str = PRODUCT_NAME
    product_version: str = PRODUCT_VERSION

    def __str__(self):
        return (
            f"{_token(self.os_name)}/{_token(self.os_version)} "
            f"UPnP/{self.major_version}.{self.minor_version} "
            f"{_token(self.product_name)}/{_token(self.product_version)}"
        )


def _token(value: str) -> str:
    return value.replace(" ", "_")


def default_user_agent(major_version: int, minor_version: int) -> str:
    return str(ServerClientTokens(major_version, minor_version))


@dataclass(frozen=True)
class StreamClientConfiguration:
    """Settings of a stream client, shared read-only by all its requests.

    Attributes:
        timeout_seconds: Maximum duration of one exchange. Zero disables
            expiration, leaving only the transport engine timeouts.

        log_warning_seconds: Exchanges slower than this are logged as a
            warning. Zero disables the warning.

        retry_count: Number of retries advertised to callers. The stream
            clients attempt every request exactly once.

        user_agent: Produces the default User-Agent header value from the
            UDA version of a request message.
    """

    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    log_warning_seconds: int = DEFAULT_LOG_WARNING_SECONDS
    retry_count: int = DEFAULT_RETRY_COUNT
    user_agent: Callable[[int, int], str] = default_user_agent

    def __post_init__(self):
        if self.timeout_seconds < 0:
            raise ConfigurationError(
                f"timeout_seconds must not be negative: {self.timeout_seconds}"
            )
        if self.log_warning_seconds < 0:
            raise ConfigurationError(
                f"log_warning_seconds must not be negative: {self.log_warning_seconds}"
            )
        if self.retry_count < 0:
            raise ConfigurationError(
                f"retry_count must not be negative: {self.retry_count}"
            )
        if not callable(self.user_agent):
            raise ConfigurationError("user_agent must be callable")

    @classmethod
    def from_environment(
        cls,
        timeout_seconds: Optional[int] = None,
        log_warning_seconds: Optional[int] = None,
        retry_count: Optional[int] = None,
        user_agent: Callable[[int, int], str] = default_user_agent,
    ) -> StreamClientConfiguration:
        """Create a configuration from the UPNP_STREAM_TIMEOUT_SECONDS,
        UPNP_STREAM_LOG_WARNING_SECONDS and UPNP_STREAM_RETRY_COUNT
        environment variables. Arguments take precedence over the
        environment.

        Raises:
            ConfigurationError: if a value is not an integer or is negative.
        """
        timeout = _setting("UPNP_STREAM_TIMEOUT_SECONDS", "timeout_seconds", timeout_seconds)
        warning = _setting(
            "UPNP_STREAM_LOG_WARNING_SECONDS", "log_warning_seconds", log_warning_seconds
        )
        retries = _setting("UPNP_STREAM_RETRY_COUNT", "retry_count", retry_count)
        return cls(
            timeout_seconds=timeout.as_int(DEFAULT_TIMEOUT_SECONDS),
            log_warning_seconds=warning.as_int(DEFAULT_LOG_WARNING_SECONDS),
            retry_count=retries.as_int(DEFAULT_RETRY_COUNT),
            user_agent=user_agent,
        )

    @property
    def engine_timeout_seconds(self) -> Optional[int]:
        if not self.timeout_seconds:
            return None
        return self.timeout_seconds + ENGINE_TIMEOUT_MARGIN

    def user_agent_value(self, major_version: int, minor_version: int) -> str:
        return self.user_agent(major_version, minor_version)


def _setting(envvar: str, name: str, value: Optional[int]) -> NamedValueFromEnvironment:
    return NamedValueFromEnvironment(envvar, name, None if value is None else str(value))
