"""
Federated identity verification.

Signature, issuer, audience and expiry checks are delegated to
google-auth; every failure collapses into InvalidAssertion.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class InvalidAssertion(Exception):
    """The identity assertion could not be trusted."""


@dataclass(frozen=True)
class FederatedIdentity:
    subject_id: str
    email: Optional[str]
    display_name: Optional[str] = None
    picture_url: Optional[str] = None
    email_verified: bool = True


class IdentityVerifier:
    """Verifies a raw identity assertion for an expected audience."""

    def verify(self, raw_assertion: str, expected_audience: str) -> FederatedIdentity:
        raise NotImplementedError


class GoogleIdentityVerifier(IdentityVerifier):
    def __init__(self, request=None):
        # The transport caches Google's signing certificates between calls
        self._request = request or google_requests.Request()

    def verify(self, raw_assertion: str, expected_audience: str) -> FederatedIdentity:
        if not raw_assertion or not isinstance(raw_assertion, str):
            raise InvalidAssertion("Empty identity token")
        try:
            claims = id_token.verify_oauth2_token(raw_assertion, self._request, audience=expected_audience)
        except (ValueError, google_exceptions.GoogleAuthError) as exc:
            logger.info("Rejected Google ID token: %s", exc)
            raise InvalidAssertion("Invalid Google token") from exc

        if claims.get("iss") not in GOOGLE_ISSUERS or not claims.get("sub"):
            raise InvalidAssertion("Invalid Google token")

        return FederatedIdentity(
            subject_id=str(claims["sub"]),
            email=claims.get("email"),
            display_name=claims.get("name"),
            picture_url=claims.get("picture"),
            email_verified=claims.get("email_verified") in (True, "true"),
        )
