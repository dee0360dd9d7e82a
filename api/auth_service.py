"""
Auth core: register, login, Google sign-in, refresh, logout, logout-all,
change-password and profile operations.

AuthService holds no per-request state. The credential store is the only
point of concurrent mutation; its unique constraints (email, google_id,
phone) are what make duplicate creation race-safe, and an IntegrityError
from it is reported as AccountExists.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from api.errors import (
    AccountExists,
    BadRequest,
    InvalidCredentials,
    InvalidToken,
    NotConfigured,
    NotFound,
    TokenExpired,
    TokenRevoked,
    Unauthorized,
)
from models.base_model import utcnow
from models.credential_store import CredentialStore
from models.schemas.user import ProfileOutSchema, UserOutSchema
from models.user import DEFAULT_ROLE, User
from utils.identity import IdentityVerifier, InvalidAssertion
from utils.security import Argon2Hasher, hash_token
from utils.tokens import TokenIssuer

logger = logging.getLogger(__name__)

user_out_schema = UserOutSchema()
profile_out_schema = ProfileOutSchema()


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        issuer: TokenIssuer,
        hasher: Argon2Hasher,
        identity_verifier: Optional[IdentityVerifier] = None,
        google_client_id: Optional[str] = None,
        self_register_roles=("customer", "manager"),
    ):
        self.store = store
        self.issuer = issuer
        self.hasher = hasher
        self.identity_verifier = identity_verifier
        self.google_client_id = google_client_id
        self.self_register_roles = tuple(self_register_roles)

    # helpers

    @staticmethod
    def user_view(user: User) -> Dict[str, Any]:
        return user_out_schema.dump(user)

    def _find_by_identifier(self, identifier: str) -> Optional[User]:
        identifier = identifier.strip()
        if "@" in identifier:
            return self.store.find_user_by_email(identifier)
        return self.store.find_user_by_phone(identifier)

    def _issue_session(self, user: User) -> Dict[str, Any]:
        access_token = self.issuer.issue_access(user.id, user.email, user.role, user.tenant_id)
        material = self.issuer.issue_refresh()
        self.store.create_refresh_token(user.id, material.token_hash, material.expires_at)
        return {
            "user": self.user_view(user),
            "access_token": access_token,
            "refresh_token": material.token,
            "expires_at": material.expires_at,
        }

    # operations

    def register(
        self,
        email: str,
        password: str,
        full_name: str,
        phone: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Dict[str, Any]:
        email = email.strip().lower()
        if self.store.find_user_by_email(email):
            raise AccountExists()
        if phone and self.store.find_user_by_phone(phone):
            raise AccountExists("An account with this phone number already exists.")

        if role not in self.self_register_roles:
            role = DEFAULT_ROLE

        password_hash = self.hasher.hash(password)
        try:
            user = self.store.create_user(
                email=email,
                password_hash=password_hash,
                full_name=full_name,
                phone=phone,
                role=role,
            )
        except IntegrityError:
            # Lost a race with a concurrent registration
            raise AccountExists()

        logger.info("Registered user %s with role %s", user.id, user.role)
        return self.user_view(user)

    def login(self, identifier: str, password: str) -> Dict[str, Any]:
        user = self._find_by_identifier(identifier) if identifier else None
        if user is None or not user.has_password:
            self.hasher.dummy_verify(password or "")
            logger.info("Login failed: unknown account or no password set")
            raise InvalidCredentials()
        if not self.hasher.verify(user.password_hash, password or ""):
            logger.info("Login failed for user %s", user.id)
            raise InvalidCredentials()

        session = self._issue_session(user)
        logger.info("User %s logged in", user.id)
        return session

    def federated_login(self, raw_assertion: str) -> Dict[str, Any]:
        if not self.google_client_id or self.identity_verifier is None:
            raise NotConfigured()

        try:
            identity = self.identity_verifier.verify(raw_assertion, self.google_client_id)
        except InvalidAssertion:
            raise InvalidCredentials("Invalid Google token.")

        if not identity.email:
            raise BadRequest("Google account does not have an email address.")
        email = identity.email.strip().lower()

        user = self.store.find_user_by_google_id(identity.subject_id)
        if user is None:
            user = self.store.find_user_by_email(email)
            if user is not None:
                # Only a provider-verified email may claim an existing account
                if not identity.email_verified:
                    raise InvalidCredentials("Google email is not verified.")
                changes = {"google_id": identity.subject_id, "is_verified": True}
                if identity.picture_url and not user.avatar_url:
                    changes["avatar_url"] = identity.picture_url
                try:
                    user = self.store.update_user(user, **changes)
                except IntegrityError:
                    raise AccountExists("This Google account is linked to another user.")
                logger.info("Linked Google identity to user %s", user.id)
            else:
                try:
                    user = self.store.create_user(
                        email=email,
                        full_name=identity.display_name or email.split("@")[0],
                        role=DEFAULT_ROLE,
                        google_id=identity.subject_id,
                        avatar_url=identity.picture_url,
                    )
                except IntegrityError:
                    raise AccountExists()
                logger.info("Created user %s from Google sign-in", user.id)

        session = self._issue_session(user)
        logger.info("User %s signed in with Google", user.id)
        return session

    def refresh(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        if not refresh_token:
            raise Unauthorized()

        record = self.store.find_refresh_token(hash_token(refresh_token))
        if record is None:
            raise InvalidToken()
        if record.is_revoked:
            raise TokenRevoked()
        if record.is_expired(utcnow()):
            raise TokenExpired()

        # The refresh token itself is not rotated; claims follow the user's current role/tenant
        user = record.user
        access_token = self.issuer.issue_access(user.id, user.email, user.role, user.tenant_id)
        return {"access_token": access_token, "user": self.user_view(user)}

    def logout(self, refresh_token: Optional[str] = None) -> None:
        if not refresh_token:
            return
        self.store.revoke_refresh_token(hash_token(refresh_token))

    def logout_all(self, user_id: str) -> None:
        revoked = self.store.revoke_all_user_tokens(user_id)
        logger.info("Revoked %d refresh tokens for user %s", revoked, user_id)

    def change_password(
        self, user_id: str, current_password: Optional[str], new_password: str
    ) -> Dict[str, str]:
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFound()

        # Google-only accounts set their first password without a current one
        if user.has_password:
            if not current_password or not self.hasher.verify(user.password_hash, current_password):
                raise InvalidCredentials("Current password is incorrect.")

        # TODO: decide whether a password change should revoke the user's other refresh tokens
        self.store.set_password(user, self.hasher.hash(new_password))
        logger.info("Password changed for user %s", user.id)
        return {"message": "Password changed successfully."}

    def get_profile(self, user_id: str) -> Dict[str, Any]:
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFound()
        return profile_out_schema.dump(user)

    def update_profile(self, user_id: str, **changes) -> Dict[str, Any]:
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFound()

        allowed = {k: v for k, v in changes.items() if k in ("full_name", "phone")}
        phone = allowed.get("phone")
        if phone:
            owner = self.store.find_user_by_phone(phone)
            if owner is not None and owner.id != user.id:
                raise AccountExists("An account with this phone number already exists.")
        if allowed:
            try:
                user = self.store.update_user(user, **allowed)
            except IntegrityError:
                raise AccountExists("An account with this phone number already exists.")
        return profile_out_schema.dump(user)

    def cleanup_tokens(self) -> int:
        removed = self.store.delete_expired_or_revoked(utcnow())
        logger.info("Removed %d expired or revoked refresh tokens", removed)
        return removed
