"""Field extraction from analysis protocol messages.

Only the handful of fields the correlators need are read. Anything
malformed degrades to an empty string or None instead of raising.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping


logger = logging.getLogger(__name__)

SERVER_LOG_EVENT = "server.log"

LOG_ENTRY_TIME = "time"
LOG_ENTRY_KIND = "kind"
LOG_ENTRY_DATA = "data"
LOG_ENTRY_SDK_VERSION = "sdkVersion"


@dataclass(frozen=True, slots=True)
class ServerLogEntry:
    time: str
    kind: str
    data: str
    sdk_version: str = ""

    def format(self) -> str:
        """Pipe-delimited form sent as the analysisServerLog label."""
        return "|".join((
            LOG_ENTRY_TIME, self.time,
            LOG_ENTRY_KIND, self.kind,
            LOG_ENTRY_DATA, self.data,
        ))


def decode(message: str | bytes | Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Parse a raw JSON message; mappings pass through. None if unusable."""
    if message is None:
        return None
    if isinstance(message, Mapping):
        return dict(message)
    try:
        decoded = json.loads(message)
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring undecodable protocol message: {e}")
        return None
    return decoded if isinstance(decoded, dict) else None


def safe_string(obj: Mapping[str, Any] | None, name: str) -> str:
    """String value of obj[name], or "" when missing or not a scalar."""
    if not obj or not name:
        return ""
    value = obj.get(name)
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def message_id(message: Mapping[str, Any]) -> str | None:
    """The request/response id, or None for notifications."""
    if message.get("id") is None:
        return None
    return safe_string(message, "id") or None


def request_method(message: Mapping[str, Any]) -> str:
    return safe_string(message, "method")


def server_log_entry(message: Mapping[str, Any]) -> ServerLogEntry | None:
    """The log entry carried by a server.log notification, if this is one."""
    if safe_string(message, "event") != SERVER_LOG_EVENT:
        return None
    params = message.get("params")
    return parse_log_entry(params.get("entry") if isinstance(params, Mapping) else None)


def parse_log_entry(entry: Mapping[str, Any] | None) -> ServerLogEntry | None:
    """A ServerLogEntry from the entry object itself, or None if it isn't one."""
    if not isinstance(entry, Mapping):
        return None
    return ServerLogEntry(
        time=safe_string(entry, LOG_ENTRY_TIME),
        kind=safe_string(entry, LOG_ENTRY_KIND),
        data=safe_string(entry, LOG_ENTRY_DATA),
        sdk_version=safe_string(entry, LOG_ENTRY_SDK_VERSION),
    )
