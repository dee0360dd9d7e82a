"""
CredentialStore: persistence for user records and refresh-token records.

Pure storage. Every write commits through DBStorage.save(), which rolls
back and re-raises on failure; uniqueness violations therefore surface
to the caller as sqlalchemy.exc.IntegrityError.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, update

from models.base_model import utcnow
from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from models.user import User

# Attributes update_user() is allowed to touch
UPDATABLE_FIELDS = ("full_name", "phone", "is_verified", "tenant_id", "google_id", "avatar_url")


class CredentialStore:
    def __init__(self, storage: DBStorage):
        self.storage = storage

    @property
    def session(self):
        return self.storage.get_session()

    # users

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter(User.email == email.strip().lower()).first()

    def find_user_by_id(self, user_id: str) -> Optional[User]:
        return self.storage.get(User, user_id)

    def find_user_by_google_id(self, google_id: str) -> Optional[User]:
        return self.session.query(User).filter(User.google_id == google_id).first()

    def find_user_by_phone(self, phone: str) -> Optional[User]:
        return self.session.query(User).filter(User.phone == phone).first()

    def create_user(
        self,
        email: str,
        full_name: str,
        role: str,
        password_hash: Optional[str] = None,
        phone: Optional[str] = None,
        tenant_id: Optional[str] = None,
        google_id: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            full_name=full_name,
            phone=phone or None,
            role=role,
            tenant_id=tenant_id,
            # Seeded super admins and Google accounts start out verified
            is_verified=role == "super_admin" or google_id is not None,
            google_id=google_id,
            avatar_url=avatar_url,
        )
        self.storage.new(user)
        self.storage.save()
        return user

    def update_user(self, user: User, **changes) -> User:
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)}")
        for key, value in changes.items():
            setattr(user, key, value)
        self.storage.new(user)
        self.storage.save()
        return user

    def set_password(self, user: User, password_hash: str) -> User:
        user.password_hash = password_hash
        self.storage.new(user)
        self.storage.save()
        return user

    # refresh tokens

    def create_refresh_token(self, user_id: str, token_hash: str, expires_at: datetime) -> RefreshToken:
        record = RefreshToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at, is_revoked=False)
        self.storage.new(record)
        self.storage.save()
        return record

    def find_refresh_token(self, token_hash: str) -> Optional[RefreshToken]:
        return self.session.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()

    def revoke_refresh_token(self, token_hash: str) -> int:
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == token_hash)
            .values(is_revoked=True)
            .execution_options(synchronize_session="fetch")
        )
        self.storage.save()
        return result.rowcount

    def revoke_all_user_tokens(self, user_id: str) -> int:
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .values(is_revoked=True)
            .execution_options(synchronize_session="fetch")
        )
        self.storage.save()
        return result.rowcount

    def delete_expired_or_revoked(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        result = self.session.execute(
            delete(RefreshToken)
            .where(or_(RefreshToken.expires_at <= now, RefreshToken.is_revoked.is_(True)))
            .execution_options(synchronize_session="fetch")
        )
        self.storage.save()
        return result.rowcount
