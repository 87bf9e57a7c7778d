"""CloudEvents 1.0.2 envelopes and their validation."""

from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

APPLICATION_JSON = "application/json"
SPEC_VERSION = "1.0.2"

_TIME_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?(?P<tz>Z|z|[+-]\d{2}:\d{2})?$"
)
_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_SCHEME_TAIL = set(string.digits + "+-.")


class CloudEventError(ValueError):
    """Raised when a cloud event does not satisfy the specification."""


def validate_content_type(value: str) -> str:
    if value != APPLICATION_JSON:
        raise CloudEventError(
            "invalid cloud events content type, expected one of "
            f"[{APPLICATION_JSON}], got {value}"
        )
    return value


def validate_spec_version(value: str) -> str:
    if value != SPEC_VERSION:
        raise CloudEventError(
            f"invalid cloud events spec version, expect {SPEC_VERSION}, got {value}"
        )
    return value


def _split_scheme(uri: str) -> tuple[str, str] | None:
    for index, char in enumerate(uri):
        if char.isascii() and char.isalpha():
            continue
        if char in _SCHEME_TAIL:
            if index == 0:
                return "", uri
            continue
        if char == ":":
            if index == 0:
                return None
            return uri[:index].lower(), uri[index + 1:]
        return "", uri
    return "", uri


def _valid_authority(authority: str) -> bool:
    host = authority.rpartition("@")[2]
    if _INVALID_ESCAPE.search(host):
        return False
    if host.startswith("["):
        end = host.find("]")
        if end < 0:
            return False
        port = host[end + 1:]
        if port and not port.startswith(":"):
            return False
        return port[1:].isdigit() or port in ("", ":")
    if ":" in host:
        port = host.rpartition(":")[2]
        return port == "" or (port.isascii() and port.isdigit())
    return True


def _is_request_uri(uri: str) -> bool:
    if not uri:
        return False
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in uri):
        return False
    if uri == "*":
        return True
    split = _split_scheme(uri)
    if split is None:
        return False
    scheme, rest = split
    if rest.endswith("?") and rest.count("?") == 1:
        rest = rest[:-1]
    else:
        rest = rest.partition("?")[0]
    if not rest.startswith("/"):
        return bool(scheme)
    if scheme and rest.startswith("//"):
        authority, slash, path = rest[2:].partition("/")
        if not _valid_authority(authority):
            return False
        rest = slash + path
    return not _INVALID_ESCAPE.search(rest)


def validate_uri(value: str) -> str:
    """Accept absolute URIs and absolute paths, as an HTTP request line would."""
    uri = str(value)
    if not _is_request_uri(uri):
        raise CloudEventError(f"URI is not valid. Expected a valid URI, but got {uri}.")
    return uri


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    match = _TIME_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise CloudEventError(f"invalid event time {value!r}")
    text = match["base"].replace(" ", "T")
    if match["frac"]:
        text += "." + match["frac"][:6].ljust(6, "0")
    tz = match["tz"]
    if tz:
        text += "+00:00" if tz in ("Z", "z") else tz
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise CloudEventError(f"invalid event time {value!r}") from None


def _str(data: dict, key: str) -> str:
    value = data.get(key) or ""
    if not isinstance(value, str):
        raise CloudEventError(f'field "{key}" must be a string')
    return value


@dataclass
class Envelope:
    spec_version: str = SPEC_VERSION
    type: str = ""
    source: str = ""
    id: str = ""
    time: datetime | None = None
    data_content_type: str = APPLICATION_JSON
    data: Any = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {
            "specversion": self.spec_version,
            "type": self.type,
            "source": self.source,
            "id": self.id,
            "time": self.time.isoformat() if self.time is not None else None,
            "datacontenttype": self.data_content_type,
            "data": data,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Envelope:
        if not isinstance(data, dict):
            raise CloudEventError("cloud event must be a JSON object")
        return cls(
            spec_version=_str(data, "specversion"),
            type=_str(data, "type"),
            source=_str(data, "source"),
            id=_str(data, "id"),
            time=_parse_time(data.get("time")),
            data_content_type=_str(data, "datacontenttype"),
            data=data.get("data"),
        )


def wrap_payload(payload: Any, source: str, event_id: str, message_type: str) -> Envelope:
    """Wrap a payload into a new JSON cloud event stamped with the current time."""
    return Envelope(
        spec_version=SPEC_VERSION,
        type=message_type,
        source=source,
        id=event_id,
        time=datetime.now().astimezone(),
        data_content_type=APPLICATION_JSON,
        data=payload,
    )


def validate_envelope(envelope: Envelope) -> None:
    """Check content type, spec version and source of an incoming event."""
    try:
        validate_content_type(envelope.data_content_type)
    except CloudEventError as exc:
        raise CloudEventError(
            f"Kafka message payload needs to be JSON formatted, {exc}"
        ) from None
    validate_spec_version(envelope.spec_version)
    validate_uri(envelope.source)