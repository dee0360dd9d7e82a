"""
RefreshToken model: one row per issued refresh token.
Fields:
- token_hash: SHA-256 hex digest of the opaque token (the plaintext is never stored)
- user_id (String(36)) - FK to users.id
- is_revoked (bool, only ever flips False -> True)
- expires_at, created_at
"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, as_utc


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)

    user = relationship("User", lazy="joined")

    def is_expired(self, now: datetime) -> bool:
        return now >= as_utc(self.expires_at)

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} revoked={self.is_revoked}>"
