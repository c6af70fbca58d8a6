"""SQLAlchemy models for the people a notification can name."""

from sqlalchemy import Column, String

from siteledger.infrastructure.database import Base


class UserModel(Base):
    """Admin-managed user, optionally linked to an auth identity."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    auth_user_id = Column(String(64), nullable=True, index=True)
    name = Column(String(120), nullable=True)
    email = Column(String(120), nullable=True)
    role = Column(String(30), nullable=True)
    created_by = Column(String(64), nullable=True)


class ProfileModel(Base):
    """Self-registration profile keyed by the auth identity."""

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    full_name = Column(String(120), nullable=True)
    role = Column(String(30), nullable=True)


__all__ = ["ProfileModel", "UserModel"]
