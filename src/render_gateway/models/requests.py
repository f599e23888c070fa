"""Decoding of ``POST /fetch`` request bodies.

Clients send either a JSON object ``{"url": ..., "format": ...}`` or a JSON
string whose content is that object (some no-code tools double-encode).
"""

from __future__ import annotations

import json

from pydantic import BaseModel, ValidationError, field_validator

from render_gateway.errors import InvalidRequestError

INVALID_BODY_MESSAGE = (
    'Invalid body. Send JSON like {"url":"https://example.com"} '
    "or a JSON string containing that object."
)


class FetchInput(BaseModel):
    url: str
    format: str = "html"

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        return v

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        return v.strip().lower()


def _decode(raw: bytes) -> object:
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, str):
            parsed = json.loads(parsed)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return parsed


def parse_fetch_body(raw: bytes, default_format: str | None = None) -> FetchInput:
    """Validate a raw request body. Raises ``InvalidRequestError``."""
    payload = _decode(raw)
    if not isinstance(payload, dict) or not isinstance(payload.get("url"), str):
        raise InvalidRequestError(INVALID_BODY_MESSAGE)

    data = {"url": payload["url"]}
    fmt = payload.get("format", default_format)
    if isinstance(fmt, str):
        data["format"] = fmt

    try:
        return FetchInput.model_validate(data)
    except ValidationError as exc:
        raise InvalidRequestError(INVALID_BODY_MESSAGE) from exc
