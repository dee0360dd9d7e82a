from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, CheckConstraint, Column, String

DEFAULT_ROLE = "customer"


class User(BaseModel, Base):
    """
    A WashCo account.

    An account signs in with a password, a Google identity, or both;
    the table constraint rejects a row carrying neither.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "password_hash IS NOT NULL OR google_id IS NOT NULL",
            name="ck_users_has_credential",
        ),
    )

    email = Column(String(255), nullable=False, unique=True, index=True)
    google_id = Column(String(255), nullable=True, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True, unique=True)
    role = Column(String(32), nullable=False, default=DEFAULT_ROLE)
    tenant_id = Column(String(36), nullable=True, index=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    avatar_url = Column(String(500), nullable=True)

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    def __repr__(self):
        return f"<User {self.email}>"
