"""Parsing of the identity header and of session JWT payloads."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote_plus

logger = logging.getLogger(__name__)

_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class HeaderError(ValueError):
    """Raised when an identity header or token cannot be decoded."""


@dataclass
class DecodedToken:
    user_id: str = ""
    org_id: str = ""
    account_number: str = ""
    username: str = ""


def parse_identity_header(header: str) -> dict[str, Any]:
    """Decode a base64 JSON identity header into a dictionary."""
    try:
        decoded = base64.b64decode(header, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HeaderError(f"error decoding Identity: {exc}") from None
    try:
        data = json.loads(decoded)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.error(
            "x-rh-identity header is not a valid json: %s. Identity: %s", exc, header
        )
        raise HeaderError(f"x-rh-identity header is not a valid json: {exc}") from None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise HeaderError("x-rh-identity header is not a valid json: expected an object")
    return data


def _query_unescape(text: str) -> str:
    match = _INVALID_ESCAPE.search(text)
    if match:
        raise HeaderError(f"invalid URL escape {text[match.start():match.start() + 3]!r}")
    return unquote_plus(text)


def parse_jwt_token(token: str) -> DecodedToken:
    """Read the payload of a JWT without verifying its signature."""
    parts = token.split(".")
    if len(parts) < 2:
        raise HeaderError("invalid token")
    payload = parts[1].replace("-/", "+").replace("_/", "/")
    remainder = len(payload) % 4
    if remainder == 1:
        raise HeaderError("invalid token")
    payload += "=" * ((4 - remainder) % 4)
    payload = payload.replace("-", "+").replace("_", "/")
    try:
        raw = base64.b64decode(payload, validate=True)
        text = raw.decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise HeaderError(f"invalid token payload: {exc}") from None
    text = _query_unescape(text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise HeaderError(f"invalid token payload: {exc}") from None
    if data is None:
        return DecodedToken()
    if not isinstance(data, dict):
        raise HeaderError("invalid token payload: expected an object")
    values = {}
    for key in ("user_id", "org_id", "account_number", "username"):
        value = data.get(key) or ""
        if not isinstance(value, str):
            raise HeaderError(f'invalid token payload: "{key}" must be a string')
        values[key] = value
    return DecodedToken(**values)