"""SQLAlchemy model for tracker users."""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from .base import Base


class User(Base):
    """The owning-user identity. Authentication lives outside this package."""

    __tablename__ = 'users'

    id = Column(String(64), primary_key=True)
    github_username = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False,
                        default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<User(id='{self.id}', github_username='{self.github_username}')>"
