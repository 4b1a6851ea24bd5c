"""
In-memory store for the session's access/refresh token pair.
Holds tokens and absolute expiries (epoch ms, 0 = unknown); answers validity and
"expiring soon" questions per urgency tier; fires the invalidation callback on clear.
One store per SessionClient; nothing here is process-global.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from session_client import config
from session_client.validation import TokenKind, TokenValidation, validate_token

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
InvalidationCallback = Callable[[], Any]


def now_ms() -> int:
    return int(time.time() * 1000)


class UrgencyTier(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"


@dataclass(frozen=True)
class ExpiryBuffers:
    """Lookahead (ms) before access token expiry at which each tier asks for renewal."""

    critical_ms: int = config.BUFFER_CRITICAL_MS
    high_ms: int = config.BUFFER_HIGH_MS
    normal_ms: int = config.BUFFER_NORMAL_MS

    def for_tier(self, tier: UrgencyTier) -> int:
        if tier is UrgencyTier.CRITICAL:
            return self.critical_ms
        if tier is UrgencyTier.HIGH:
            return self.high_ms
        return self.normal_ms


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str | None
    expires_at: int | None = None
    refresh_expires_at: int | None = None

    @classmethod
    def from_payload(cls, data: Any, now: int) -> "TokenPair | None":
        """
        Build from a login/renewal payload: token, refreshToken and either
        expiresIn/refreshExpiresIn (seconds) or expiresAt/refreshExpiresAt (epoch ms).
        Returns None when the payload carries no access token or a non-numeric expiry.
        """
        if not isinstance(data, dict) or not data.get("token"):
            return None

        def absolute(at_key: str, in_key: str) -> int | None:
            if data.get(at_key):
                return int(data[at_key])
            if data.get(in_key):
                return now + int(data[in_key]) * 1000
            return None

        try:
            expires_at = absolute("expiresAt", "expiresIn")
            refresh_expires_at = absolute("refreshExpiresAt", "refreshExpiresIn")
        except (TypeError, ValueError, OverflowError):
            return None
        return cls(
            access_token=data["token"],
            refresh_token=data.get("refreshToken") or None,
            expires_at=expires_at,
            refresh_expires_at=refresh_expires_at,
        )


@dataclass(frozen=True)
class TokenData:
    access_token: str
    refresh_token: str
    expires_at: int
    refresh_expires_at: int
    is_valid: bool
    is_expired: bool
    will_expire_soon: bool

    def as_dict(self) -> dict[str, Any]:
        """camelCase rendering for callers that persist snapshots as JSON."""
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
            "refreshExpiresAt": self.refresh_expires_at,
            "isValid": self.is_valid,
            "isExpired": self.is_expired,
            "willExpireSoon": self.will_expire_soon,
        }


class TokenStore:
    def __init__(
        self,
        buffers: ExpiryBuffers | None = None,
        clock: Clock | None = None,
    ):
        self.buffers = buffers or ExpiryBuffers()
        self.clock = clock or now_ms
        self._access_token = ""
        self._refresh_token = ""
        self._access_expires_at = 0
        self._refresh_expires_at = 0
        self._on_invalidated: InvalidationCallback | None = None
        self._generation = 0

    @property
    def access_token(self) -> str:
        return self._access_token

    @property
    def refresh_token(self) -> str:
        return self._refresh_token

    @property
    def access_expires_at(self) -> int:
        return self._access_expires_at

    @property
    def refresh_expires_at(self) -> int:
        return self._refresh_expires_at

    @property
    def is_empty(self) -> bool:
        return not (
            self._access_token
            or self._refresh_token
            or self._access_expires_at
            or self._refresh_expires_at
        )

    def set_invalidation_callback(self, callback: InvalidationCallback | None) -> None:
        """Single slot; None unregisters."""
        self._on_invalidated = callback

    @property
    def generation(self) -> int:
        """Bumped on every assign and every effective clear."""
        return self._generation

    def is_access_valid(self) -> bool:
        """True if the access token is well-formed and not past its hard expiry."""
        result = validate_token(self._access_token, TokenKind.ACCESS)
        if not result.valid:
            return False
        now = self.clock()
        if now >= result.claims.expires_at_ms:
            return False
        if self._access_expires_at and now >= self._access_expires_at:
            return False
        return True

    def is_access_expiring(self, tier: UrgencyTier = UrgencyTier.HIGH) -> bool:
        """
        True if now + tier buffer >= access expiry (proactive renewal).
        No access token, or no known expiry, counts as expiring.
        """
        if not self._access_token or not self._access_expires_at:
            return True
        return self.clock() + self.buffers.for_tier(tier) >= self._access_expires_at

    def has_usable_refresh(self) -> bool:
        """Refresh token present and, when its expiry is known, not yet passed."""
        if not self._refresh_token:
            return False
        if self._refresh_expires_at and self.clock() >= self._refresh_expires_at:
            return False
        return True

    def current_pair(self) -> TokenPair:
        return TokenPair(
            access_token=self._access_token,
            refresh_token=self._refresh_token,
            expires_at=self._access_expires_at,
            refresh_expires_at=self._refresh_expires_at,
        )

    def snapshot(self) -> TokenData:
        has_access = bool(self._access_token)
        return TokenData(
            access_token=self._access_token,
            refresh_token=self._refresh_token,
            expires_at=self._access_expires_at,
            refresh_expires_at=self._refresh_expires_at,
            is_valid=self.is_access_valid(),
            is_expired=has_access and self.is_access_expiring(UrgencyTier.HIGH),
            will_expire_soon=has_access and self.is_access_expiring(UrgencyTier.NORMAL),
        )

    def assign(
        self,
        access_token: str,
        refresh_token: str | None = None,
        expires_at: int | None = None,
        refresh_expires_at: int | None = None,
    ) -> TokenValidation:
        """
        Store a new pair after re-validating the access token.
        On validation failure the whole session is cleared instead of partially updated.
        refresh_token=None keeps the current refresh token (server did not rotate it);
        expires_at=None derives the access expiry from the exp claim.
        """
        result = validate_token(access_token, TokenKind.ACCESS)
        if not result.valid:
            logger.warning("Rejected access token (%s); clearing session", result.error.value)
            self.clear()
            return result

        if refresh_token is None:
            refresh_token = self._refresh_token
            if refresh_expires_at is None:
                refresh_expires_at = self._refresh_expires_at

        self._access_token = access_token
        self._access_expires_at = int(expires_at) if expires_at else result.claims.expires_at_ms
        self._refresh_token = refresh_token or ""
        self._refresh_expires_at = int(refresh_expires_at or 0)
        self._generation += 1
        logger.debug(
            "Stored tokens for sub=%s (access expires_at=%s)",
            result.claims.subject,
            self._access_expires_at,
        )
        return result

    def clear(self, notify: bool = True) -> bool:
        """
        Reset all four token fields. Fires the invalidation callback once per clearing
        event; no-op when already clear. Returns True if anything was cleared.
        """
        if self.is_empty:
            return False
        self._access_token = ""
        self._refresh_token = ""
        self._access_expires_at = 0
        self._refresh_expires_at = 0
        self._generation += 1
        logger.info("Session tokens cleared")
        if notify and self._on_invalidated is not None:
            try:
                self._on_invalidated()
            except Exception:
                # Session stays cleared whatever the observer does
                logger.exception("Token invalidation callback failed")
        return True
