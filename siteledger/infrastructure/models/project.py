"""SQLAlchemy model for construction projects."""

from sqlalchemy import Column, String

from siteledger.infrastructure.database import Base


class ProjectModel(Base):
    """Construction project owned by the admin who created it."""

    __tablename__ = "projects"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    created_by = Column(String(64), nullable=True, index=True)


__all__ = ["ProjectModel"]
