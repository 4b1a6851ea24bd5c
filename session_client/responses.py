"""
Normalization of raw operation payloads into a tagged result.

Raw payloads come in two shapes:
  {"errors": [{"message": ..., "extensions": {"code": ...}}]}     transport-level errors
  {"data": {"response": {"status": ..., "data": ...}}}            operation result; data may be a JSON string
The executor only needs to tell AUTHORIZATION_FAILURE apart from everything else.
"""
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)

ResponseInterceptor = Callable[[Any], Any]

_AUTH_ERROR_CODES = {"UNAUTHENTICATED", "UNAUTHORIZED", "FORBIDDEN"}


class ErrorClass(str, Enum):
    SUCCESS = "SUCCESS"
    AUTHORIZATION_FAILURE = "AUTHORIZATION_FAILURE"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    NOT_FOUND = "NOT_FOUND"
    SERVER_FAILURE = "SERVER_FAILURE"


@dataclass(frozen=True)
class NormalizedResponse:
    success: bool
    error_class: ErrorClass
    data: Any = None
    errors: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None) -> "NormalizedResponse":
        return cls(success=True, error_class=ErrorClass.SUCCESS, data=data)

    @classmethod
    def failure(
        cls, error_class: ErrorClass, errors: dict[str, list[str]], data: Any = None
    ) -> "NormalizedResponse":
        return cls(success=False, error_class=error_class, data=data, errors=errors)

    @property
    def is_authorization_failure(self) -> bool:
        return self.error_class is ErrorClass.AUTHORIZATION_FAILURE


def _decode_data(value: Any) -> Any:
    """Operation data is usually a JSON-encoded string; pass anything else through."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _field_errors(items: Any) -> dict[str, list[str]]:
    """[{"path": ["email"], "message": "..."}] -> {"email": ["..."]}"""
    errors: dict[str, list[str]] = {}
    if not isinstance(items, list):
        return {"_validation": [str(items)]} if items else {"_validation": ["FIELD_ERROR"]}
    for item in items:
        if not isinstance(item, dict):
            errors.setdefault("_validation", []).append(str(item))
            continue
        path = item.get("path") or ["_validation"]
        key = str(path[0]) if isinstance(path, list) else str(path)
        errors.setdefault(key, []).append(str(item.get("message", "")))
    return errors


def _error_message(data: Any, default: str) -> str:
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    if isinstance(data, str) and data:
        return data
    return default


def _normalize_top_level_errors(errors: list) -> NormalizedResponse:
    messages = []
    auth = False
    for err in errors:
        if not isinstance(err, dict):
            messages.append(str(err))
            continue
        message = str(err.get("message", ""))
        code = str((err.get("extensions") or {}).get("code", "")).upper()
        if code in _AUTH_ERROR_CODES or "unauthorized" in message.lower():
            auth = True
        messages.append(message)
    if auth:
        return NormalizedResponse.failure(ErrorClass.AUTHORIZATION_FAILURE, {"_auth": messages})
    return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_graphql": messages})


def normalize(raw: Any) -> NormalizedResponse:
    """Map a raw payload onto NormalizedResponse. Never raises."""
    if not isinstance(raw, dict):
        return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_error": ["MALFORMED_RESPONSE"]})

    if raw.get("errors"):
        errors = raw["errors"] if isinstance(raw["errors"], list) else [raw["errors"]]
        return _normalize_top_level_errors(errors)

    response = (raw.get("data") or {}).get("response") if isinstance(raw.get("data"), dict) else None
    if not isinstance(response, dict):
        return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_error": ["MALFORMED_RESPONSE"]})

    status = str(response.get("status", "")).upper()
    data = _decode_data(response.get("data"))

    if status == "OK":
        return NormalizedResponse.ok(data)
    if status == "FIELD_ERROR":
        return NormalizedResponse.failure(ErrorClass.VALIDATION_FAILURE, _field_errors(data))
    if status in ("ITEM_NOT_FOUND", "NOT_FOUND"):
        return NormalizedResponse.failure(ErrorClass.NOT_FOUND, {"_id": ["ITEM_NOT_FOUND"]})
    if status == "UNAUTHORIZED":
        return NormalizedResponse.failure(
            ErrorClass.AUTHORIZATION_FAILURE, {"_auth": [_error_message(data, "UNAUTHORIZED")]}
        )
    if status == "ERROR":
        if isinstance(data, list):
            return NormalizedResponse.failure(
                ErrorClass.SERVER_FAILURE, {"_transaction": ["ONE_OR_MORE_OPERATIONS_FAILED"]}, data=data
            )
        return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_error": [_error_message(data, "ERROR")]})

    logger.debug("Unrecognized response status %r", status)
    return NormalizedResponse.failure(ErrorClass.SERVER_FAILURE, {"_error": [status or "UNKNOWN_STATUS"]})
