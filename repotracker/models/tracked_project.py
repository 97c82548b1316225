"""SQLAlchemy model for GitHub repositories a user tracks."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (JSON, BigInteger, Boolean, CheckConstraint, Column, DateTime, Index,
                        Integer, String, Text, UniqueConstraint)

from repotracker.health import compute_health, ensure_utc
from .base import Base

PROJECT_STATUSES = ('planning', 'in-progress', 'completed', 'archived')

# Columns overwritten wholesale on every reconciliation.
GITHUB_FIELDS = (
    'name', 'full_name', 'description', 'url', 'homepage', 'language',
    'stars', 'forks', 'is_private', 'topics', 'github_created_at', 'last_push_at',
)

# Columns only the user edits; reconciliation never writes them after creation.
USER_FIELDS = ('status', 'progress', 'notes', 'tech_stack', 'starred', 'active')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackedProject(Base):
    """One row per (owner_user_id, github_id)."""

    __tablename__ = 'tracked_projects'
    __table_args__ = (
        UniqueConstraint('owner_user_id', 'github_id', name='uq_tracked_projects_owner_github_id'),
        CheckConstraint('progress >= 0 AND progress <= 100', name='ck_tracked_projects_progress'),
        Index('ix_tracked_projects_owner_status', 'owner_user_id', 'status'),
        Index('ix_tracked_projects_owner_starred', 'owner_user_id', 'starred'),
        Index('ix_tracked_projects_owner_active', 'owner_user_id', 'active'),
    )

    id = Column(Integer, primary_key=True)
    owner_user_id = Column(String(64), nullable=False, index=True)
    github_id = Column(BigInteger, nullable=False)

    # Mirrored from GitHub
    name = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)  # "owner/name"
    description = Column(Text, nullable=False, default='')
    url = Column(String(255), nullable=False)
    homepage = Column(String(255), nullable=False, default='')
    language = Column(String(100), nullable=False, default='Unknown')
    stars = Column(Integer, nullable=False, default=0)
    forks = Column(Integer, nullable=False, default=0)
    is_private = Column(Boolean, nullable=False, default=False)
    topics = Column(JSON, nullable=False, default=list)
    github_created_at = Column(DateTime(timezone=True), nullable=True)
    last_push_at = Column(DateTime(timezone=True), nullable=True)

    # Owned by the user
    status = Column(String(20), nullable=False, default='in-progress')
    progress = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=False, default='')
    tech_stack = Column(JSON, nullable=False, default=list)
    starred = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)

    last_synced_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def needs_sync(self, now: Optional[datetime] = None, stale_hours: int = 24) -> bool:
        """True when the last reconciliation is older than ``stale_hours``."""
        now = now or _utcnow()
        last = ensure_utc(self.last_synced_at)
        if last is None:
            return True
        return last < now - timedelta(hours=stale_hours)

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Serialize the project together with its read-time health metrics."""
        health = compute_health(self.last_push_at, now=now)
        return {
            'id': self.id,
            'owner_user_id': self.owner_user_id,
            'github_id': self.github_id,
            'name': self.name,
            'full_name': self.full_name,
            'description': self.description,
            'url': self.url,
            'homepage': self.homepage,
            'language': self.language,
            'stars': self.stars,
            'forks': self.forks,
            'is_private': self.is_private,
            'topics': list(self.topics or []),
            'github_created_at': _isoformat(self.github_created_at),
            'last_push_at': _isoformat(self.last_push_at),
            'status': self.status,
            'progress': self.progress,
            'notes': self.notes,
            'tech_stack': list(self.tech_stack or []),
            'starred': self.starred,
            'active': self.active,
            'last_synced_at': _isoformat(self.last_synced_at),
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
            **health.model_dump(),
        }

    def __repr__(self):
        return f"<TrackedProject(owner='{self.owner_user_id}', full_name='{self.full_name}', status='{self.status}')>"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None
