"""
Client-side token shape checks.
Decodes the JWT claim segment without verifying the signature: signature checks belong
to the server. Used to decide whether a token may be stored, never as an authorization decision.
"""
import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from jwt.utils import base64url_decode


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(str, Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    MISSING_CLAIMS = "MISSING_CLAIMS"
    WRONG_KIND = "WRONG_KIND"


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    expires_at: int  # epoch seconds (exp)
    issued_at: int | None = None
    kind: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def expires_at_ms(self) -> int:
        return int(self.expires_at * 1000)


@dataclass(frozen=True)
class TokenValidation:
    valid: bool
    claims: TokenClaims | None = None
    error: TokenError | None = None


def _fail(error: TokenError) -> TokenValidation:
    return TokenValidation(valid=False, error=error)


def decode_claims(token: str) -> dict[str, Any] | None:
    """Decode the middle segment of a three-part token. Returns None if it is not a JSON object."""
    segments = token.split(".")
    if len(segments) != 3 or not all(segments):
        return None
    try:
        payload = json.loads(base64url_decode(segments[1]))
    except ValueError:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are all ValueError
        return None
    return payload if isinstance(payload, dict) else None


def _is_timestamp(value: Any) -> bool:
    """JSON number usable as epoch seconds; rejects bools, NaN and infinities."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def validate_token(token: Any, expected_kind: TokenKind = TokenKind.ACCESS) -> TokenValidation:
    """
    Check that token is a well-formed JWT carrying sub and exp, and that its
    "type" claim (when present) matches expected_kind. Pure function.
    """
    if not isinstance(token, str) or not token:
        return _fail(TokenError.INVALID_FORMAT)
    payload = decode_claims(token)
    if payload is None:
        return _fail(TokenError.INVALID_FORMAT)

    sub = payload.get("sub")
    exp = payload.get("exp")
    if sub is None or sub == "" or exp is None:
        return _fail(TokenError.MISSING_CLAIMS)
    if not _is_timestamp(exp):
        return _fail(TokenError.INVALID_FORMAT)

    kind = payload.get("type")
    if kind is not None and kind != expected_kind.value:
        return _fail(TokenError.WRONG_KIND)

    iat = payload.get("iat")
    claims = TokenClaims(
        subject=str(sub),
        expires_at=int(exp),
        issued_at=int(iat) if _is_timestamp(iat) else None,
        kind=kind,
        raw=payload,
    )
    return TokenValidation(valid=True, claims=claims)
