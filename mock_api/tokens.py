"""
Token issuance and verification for the reference service.
Access tokens are HS256 JWTs carrying sub, exp, iat, type=access and a token epoch;
refresh tokens are opaque and rotated on every use.
"""
import logging
import secrets
import time
from dataclasses import dataclass, field

import jwt

logger = logging.getLogger(__name__)


class TokenRejected(Exception):
    """Access or refresh token is invalid, expired or revoked."""


@dataclass
class RefreshRecord:
    subject: str
    expires_at: float
    revoked: bool = False


@dataclass
class TokenIssuer:
    secret: str
    access_ttl: int
    refresh_ttl: int
    epoch: int = 0
    refresh_tokens: dict[str, RefreshRecord] = field(default_factory=dict)

    def issue(self, subject: str) -> dict:
        """Issue an access/refresh pair; returns the login/renewal payload."""
        now = int(time.time())
        access_token = jwt.encode(
            {
                "sub": subject,
                "exp": now + self.access_ttl,
                "iat": now,
                "type": "access",
                "epoch": self.epoch,
            },
            self.secret,
            algorithm="HS256",
        )
        refresh_token = secrets.token_urlsafe(48)
        self.refresh_tokens[refresh_token] = RefreshRecord(subject=subject, expires_at=now + self.refresh_ttl)
        return {
            "token": access_token,
            "refreshToken": refresh_token,
            "expiresIn": self.access_ttl,
            "refreshExpiresIn": self.refresh_ttl,
        }

    def rotate(self, refresh_token: str | None) -> dict:
        """Exchange a refresh token for a new pair; the presented token is revoked."""
        record = self.refresh_tokens.get(refresh_token or "")
        if record is None:
            raise TokenRejected("INVALID_REFRESH_TOKEN")
        if record.revoked:
            raise TokenRejected("REFRESH_TOKEN_REVOKED")
        if record.expires_at < time.time():
            raise TokenRejected("REFRESH_TOKEN_EXPIRED")
        record.revoked = True
        logger.info("refreshToken: new tokens issued for sub=%s (refresh token rotated)", record.subject)
        return self.issue(record.subject)

    def verify(self, token: str) -> dict:
        """Verify signature, exp, kind and epoch. Returns decoded claims."""
        try:
            claims = jwt.decode(token, self.secret, algorithms=["HS256"], options={"require": ["sub", "exp"]})
        except jwt.ExpiredSignatureError:
            raise TokenRejected("Token expired")
        except jwt.InvalidTokenError as e:
            logger.debug("JWT verification failed: %s", e)
            raise TokenRejected("Token verification failed")
        if claims.get("type") != "access":
            raise TokenRejected("Wrong token type")
        if claims.get("epoch") != self.epoch:
            raise TokenRejected("Token revoked")
        return claims

    def revoke_access_tokens(self) -> None:
        """Invalidate every outstanding access token; refresh tokens stay usable."""
        self.epoch += 1
