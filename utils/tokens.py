"""
Token issuance:
- short-lived HS256 access tokens (JWT via PyJWT), verified without a store lookup
- long-lived opaque refresh tokens, persisted by hash and checked against the store
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from utils.security import generate_token, hash_token


class TokenError(Exception):
    """Access token could not be verified."""


class InvalidSignature(TokenError):
    pass


class Expired(TokenError):
    pass


@dataclass(frozen=True)
class RefreshTokenMaterial:
    token: str
    token_hash: str
    expires_at: datetime


class TokenIssuer:
    """Mints and verifies tokens with a signing key injected at construction."""

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        issuer: str = "washco-api",
    ):
        if not secret:
            raise ValueError("a signing secret is required")
        self._secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def issue_access(self, user_id: str, email: str, role: str, tenant_id: Optional[str] = None) -> str:
        now = self._now()
        payload = {
            "iss": self.issuer,
            "sub": str(user_id),
            "email": email,
            "role": role,
            "tenant_id": tenant_id,
            "type": "access",
            "iat": int(now.timestamp()),
            "exp": int((now + self.access_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify_access(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate an access token. Raises Expired when the exp
        claim has passed and InvalidSignature for anything else wrong
        with the token (bad signature, wrong issuer, malformed, wrong type).
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise Expired("Token expired")
        except jwt.InvalidTokenError as exc:
            raise InvalidSignature(f"Invalid token: {exc}")

        if claims.get("type") != "access":
            raise InvalidSignature("Wrong token type")
        return claims

    def issue_refresh(self) -> RefreshTokenMaterial:
        token = generate_token()
        return RefreshTokenMaterial(
            token=token,
            token_hash=hash_token(token),
            expires_at=self._now() + self.refresh_ttl,
        )
