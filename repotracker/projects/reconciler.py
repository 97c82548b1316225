"""Merges fetched GitHub repositories into a user's tracked projects.

GitHub-derived columns are overwritten on every pass; status, progress, notes,
tech stack, starred and active are set once at creation and never touched
again by reconciliation.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from common.logging import LoggingManager
from repotracker.errors import DuplicateKeyConflict, TrackerError, ValidationError
from repotracker.github.summary import RepositorySummary
from repotracker.models.tracked_project import GITHUB_FIELDS, TrackedProject
from .store import ProjectStore

logger = LoggingManager.get_logger('app.reconciler')


def default_user_fields() -> Dict[str, Any]:
    """Tracking fields for a newly created project."""
    return {
        'status': 'in-progress',
        'progress': 0,
        'notes': '',
        'tech_stack': [],
        'starred': False,
        'active': True,
    }


class SyncItemError(BaseModel):
    repo: str
    error: str
    kind: str


class BatchResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    projects: List[TrackedProject] = Field(default_factory=list)
    errors: List[SyncItemError] = Field(default_factory=list)

    @property
    def synced_count(self) -> int:
        return len(self.projects)

    @property
    def failed_count(self) -> int:
        return len(self.errors)


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def github_fields(summary: RepositorySummary) -> Dict[str, Any]:
    """The TrackedProject columns mirrored from a repository summary."""
    return {
        'name': summary.name,
        'full_name': summary.full_name,
        'description': summary.description or '',
        'url': summary.url,
        'homepage': summary.homepage or '',
        'language': summary.language,
        'stars': summary.stars,
        'forks': summary.forks,
        'is_private': summary.is_private,
        'topics': list(summary.topics),
        'github_created_at': _to_utc(summary.created_at),
        'last_push_at': _to_utc(summary.pushed_at),
    }


class ProjectReconciler:
    """Upserts repository summaries into TrackedProject rows keyed by (owner, github_id)."""

    def __init__(self, store: ProjectStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def reconcile_one(self, owner_user_id: str, summary: RepositorySummary) -> TrackedProject:
        if not owner_user_id:
            raise ValidationError("An owning user id is required")

        fields = github_fields(summary)
        fields['last_synced_at'] = self._clock()
        update_keys = GITHUB_FIELDS + ('last_synced_at',)

        try:
            project, created = self.store.upsert(
                owner_user_id, summary.github_id, {**default_user_fields(), **fields}, update_keys)
        except DuplicateKeyConflict:
            # Lost a first-insert race; the row exists now.
            logger.warning(f"Concurrent insert for {summary.full_name}; retrying as update")
            project = self.store.update_fields(owner_user_id, summary.github_id, fields)
            created = False

        logger.debug(f"{'Created' if created else 'Updated'} tracked project {summary.full_name} "
                     f"for user {owner_user_id}")
        return project

    def reconcile_batch(self, owner_user_id: str, summaries: Iterable[RepositorySummary],
                        github_username: Optional[str] = None) -> BatchResult:
        """Reconcile each summary independently; per-item failures are collected, not raised."""
        if not owner_user_id:
            raise ValidationError("An owning user id is required")

        result = BatchResult()
        for summary in summaries:
            try:
                result.projects.append(self.reconcile_one(owner_user_id, summary))
            except TrackerError as e:
                logger.error(f"Error syncing repo {summary.name}: {e.message}")
                result.errors.append(SyncItemError(repo=summary.name, error=e.message, kind=e.kind))

        if github_username:
            self._remember_github_username(owner_user_id, github_username)

        logger.info(f"Reconciled {result.synced_count} projects for user {owner_user_id} "
                    f"({result.failed_count} failed)")
        return result

    def _remember_github_username(self, owner_user_id: str, github_username: str) -> None:
        try:
            previous = self.store.set_github_username(owner_user_id, github_username)
        except TrackerError as e:
            logger.error(f"Could not store GitHub username for user {owner_user_id}: {e.message}")
            return
        if previous and previous != github_username:
            logger.warning(f"GitHub username for user {owner_user_id} changed from "
                           f"{previous} to {github_username}")
