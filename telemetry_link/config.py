"""Configuration for the telemetry data service."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import os
from typing import Any
from urllib.parse import urlsplit

import voluptuous as vol

from .const import (
    CONF_DEBUG_WS,
    CONF_USE_MOCK,
    CONF_WS_NORMALIZE,
    CONF_WS_URL,
    DEFAULT_WS_URL,
    ENV_KEYS,
)

_LOGGER = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the external configuration is invalid."""


def _ws_url(value: Any) -> str:
    """Validate a ``ws://`` or ``wss://`` URL."""

    url = str(value).strip()
    parsed = urlsplit(url)
    if parsed.scheme not in {"ws", "wss"} or not parsed.netloc:
        raise vol.Invalid(f"expected a ws:// or wss:// URL, got {value!r}")
    return url


CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_USE_MOCK, default=False): vol.Boolean(),
        vol.Optional(CONF_WS_URL, default=DEFAULT_WS_URL): _ws_url,
        vol.Optional(CONF_WS_NORMALIZE, default=False): vol.Boolean(),
        vol.Optional(CONF_DEBUG_WS, default=True): vol.Boolean(),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True, slots=True)
class TelemetryConfig:
    """Validated selection of the data service and its options."""

    use_mock: bool = False
    ws_url: str = DEFAULT_WS_URL
    ws_normalize: bool = False
    debug_ws: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TelemetryConfig:
        """Validate ``data`` against :data:`CONFIG_SCHEMA`."""

        try:
            validated = CONFIG_SCHEMA(dict(data))
        except vol.Invalid as err:
            raise ConfigError(f"invalid telemetry configuration: {err}") from err
        return cls(
            use_mock=validated[CONF_USE_MOCK],
            ws_url=validated[CONF_WS_URL],
            ws_normalize=validated[CONF_WS_NORMALIZE],
            debug_ws=validated[CONF_DEBUG_WS],
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TelemetryConfig:
        """Build the configuration from ``TELEMETRY_*`` environment variables."""

        env = os.environ if environ is None else environ
        data = {
            key: env[var]
            for key, var in ENV_KEYS.items()
            if env.get(var, "").strip()
        }
        _LOGGER.debug("Telemetry configuration keys from environment: %s", sorted(data))
        return cls.from_mapping(data)


__all__ = ["CONFIG_SCHEMA", "ConfigError", "TelemetryConfig"]
