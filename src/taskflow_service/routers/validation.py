"""Shared request validation helpers for routers."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from taskflow_service.exceptions import InvalidPayloadError, ServiceError


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    # JSONDecodeError, UnicodeDecodeError and the integer digit limit are all ValueError
    try:
        data = json.loads(raw_body, parse_float=Decimal)
    except ValueError as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


def extract_string(data: dict[str, Any], field_name: str) -> str:
    """Extract a required non-empty string field from a parsed JSON body."""
    if field_name not in data:
        raise InvalidPayloadError(f"Missing required field: {field_name}")

    value = data[field_name]

    if value is None:
        raise InvalidPayloadError(f"Field '{field_name}' must not be null")

    if not isinstance(value, str):
        raise InvalidPayloadError(f"Field '{field_name}' must be a string")

    if not value.strip():
        raise InvalidPayloadError(f"Field '{field_name}' must not be empty")

    return value


def extract_optional_string(data: dict[str, Any], field_name: str) -> str | None:
    """Extract an optional string field; absent or null yields None."""
    value = data.get(field_name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidPayloadError(f"Field '{field_name}' must be a string")
    return value


def extract_reward(data: dict[str, Any]) -> object:
    """
    Extract the raw reward value.

    JSON numbers arrive as Decimal (see parse_json_body), so ``0.01`` stays
    exactly ``0.01``. Range and format checks happen in the registry.
    """
    if "reward" not in data or data["reward"] is None:
        raise InvalidPayloadError("Missing required field: reward")
    return data["reward"]
