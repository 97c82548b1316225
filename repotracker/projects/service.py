"""Project operations exposed by the CLI and the API."""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from common.logging import LoggingManager
from repotracker.config import Config, get_config
from repotracker.db import make_session_factory
from repotracker.errors import ValidationError
from repotracker.github.client import FetchResult, GitHubClient
from repotracker.github.summary import RepositoryFilters
from repotracker.health import HEALTH_STATUSES, compute_health
from repotracker.models.tracked_project import PROJECT_STATUSES, TrackedProject
from .reconciler import ProjectReconciler, SyncItemError
from .store import ProjectStore

logger = LoggingManager.get_logger('app.project_service')

MAX_NOTES_LENGTH = 2000
EDITABLE_FIELDS = ('status', 'progress', 'notes', 'tech_stack', 'starred')


class SyncReport(BaseModel):
    username: str
    fetched: int = 0
    synced_count: int = 0
    failed_count: int = 0
    projects: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[SyncItemError] = Field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return self.fetched > 0 and self.synced_count == 0


class ProjectService:
    """Ties the GitHub fetcher, the reconciler and the store together for one caller."""

    def __init__(self, github_client: GitHubClient, store: ProjectStore,
                 reconciler: Optional[ProjectReconciler] = None, config: Optional[Config] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.github = github_client
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.reconciler = reconciler or ProjectReconciler(store, clock=self._clock)
        self.config = config or get_config(load_env=False)

    # --- GitHub ---

    def fetch_live(self, username: str, filters: Optional[RepositoryFilters] = None) -> FetchResult:
        """Fetch repositories straight from GitHub; nothing is persisted."""
        return self.github.search_user_repositories(username, filters)

    def sync(self, owner_user_id: str, username: str,
             filters: Optional[RepositoryFilters] = None) -> SyncReport:
        """Fetch a user's repositories and reconcile them into tracked projects.

        Fetch errors (NotFound, RateLimited, UpstreamError) propagate before any
        reconciliation; per-repository failures are reported in the result.
        """
        if not owner_user_id:
            raise ValidationError("An owning user id is required")
        fetched = self.github.search_user_repositories(username, filters)
        if not fetched.repositories:
            logger.info(f"No repositories to sync for GitHub user {fetched.username}")
            return SyncReport(username=fetched.username)

        batch = self.reconciler.reconcile_batch(owner_user_id, fetched.repositories,
                                                github_username=fetched.username)
        now = self._clock()
        return SyncReport(
            username=fetched.username,
            fetched=fetched.count,
            synced_count=batch.synced_count,
            failed_count=batch.failed_count,
            projects=[project.to_dict(now=now) for project in batch.projects],
            errors=batch.errors,
        )

    def resync(self, owner_user_id: str, filters: Optional[RepositoryFilters] = None) -> SyncReport:
        """Sync again using the GitHub username stored by a previous sync."""
        username = self.store.get_github_username(owner_user_id)
        if not username:
            raise ValidationError(f"No GitHub username stored for user {owner_user_id}; run a sync first")
        logger.info(f"Re-syncing projects for user {owner_user_id} (GitHub: {username})")
        return self.sync(owner_user_id, username, filters)

    # --- Reads ---

    def _serialize(self, project: TrackedProject, now: datetime) -> Dict[str, Any]:
        data = project.to_dict(now=now)
        data['needs_sync'] = project.needs_sync(now=now, stale_hours=self.config.sync_stale_hours)
        return data

    def list_projects(self, owner_user_id: str, status: Optional[str] = None, starred: Optional[bool] = None,
                      language: Optional[str] = None) -> List[Dict[str, Any]]:
        if status and status not in PROJECT_STATUSES:
            raise ValidationError(f"{status} is not a valid status")
        projects = self.store.find_many(owner_user_id, status=status, starred=starred, language=language)
        now = self._clock()
        return [self._serialize(project, now) for project in projects]

    def starred_projects(self, owner_user_id: str) -> List[Dict[str, Any]]:
        return self.list_projects(owner_user_id, starred=True)

    def get_project(self, owner_user_id: str, project_id: int) -> Dict[str, Any]:
        project = self.store.get_by_id(owner_user_id, project_id)
        return self._serialize(project, self._clock())

    def project_stats(self, owner_user_id: str) -> Dict[str, Any]:
        projects = self.store.find_many(owner_user_id)
        now = self._clock()
        health = {status: 0 for status in HEALTH_STATUSES}
        for project in projects:
            health[compute_health(project.last_push_at, now=now).health_status] += 1

        total = len(projects)
        return {
            'total': total,
            'planning': sum(1 for p in projects if p.status == 'planning'),
            'in_progress': sum(1 for p in projects if p.status == 'in-progress'),
            'completed': sum(1 for p in projects if p.status == 'completed'),
            'archived': sum(1 for p in projects if p.status == 'archived'),
            'starred': sum(1 for p in projects if p.starred),
            'avg_progress': round(sum(p.progress for p in projects) / total, 2) if total else 0,
            'health': health,
        }

    # --- User edits ---

    def update_project(self, owner_user_id: str, project_id: int, **changes: Any) -> Dict[str, Any]:
        """Edit the user-owned tracking fields of a project."""
        fields = validate_tracking_fields(changes)
        if not fields:
            raise ValidationError(f"Nothing to update; editable fields are {', '.join(EDITABLE_FIELDS)}")
        project = self.store.update_by_id(owner_user_id, project_id, fields)
        logger.info(f"Updated project {project.full_name}: {sorted(fields)}")
        return self._serialize(project, self._clock())

    def remove_project(self, owner_user_id: str, project_id: int) -> None:
        """Stop tracking a project (soft delete)."""
        project = self.store.update_by_id(owner_user_id, project_id, {'active': False})
        logger.info(f"Removed project {project.full_name} from tracking")


def validate_tracking_fields(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Check user edits; unknown keys and None values are dropped."""
    fields = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS and value is not None}

    status = fields.get('status')
    if status is not None and status not in PROJECT_STATUSES:
        raise ValidationError(f"{status} is not a valid status")

    if 'progress' in fields:
        progress = fields['progress']
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationError("progress must be an integer between 0 and 100")

    if 'notes' in fields:
        if not isinstance(fields['notes'], str):
            raise ValidationError("notes must be a string")
        if len(fields['notes']) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")

    if 'tech_stack' in fields:
        stack = fields['tech_stack']
        if not isinstance(stack, list) or not all(isinstance(item, str) for item in stack):
            raise ValidationError("tech_stack must be a list of strings")
        fields['tech_stack'] = [item.strip() for item in stack if item.strip()]

    if 'starred' in fields and not isinstance(fields['starred'], bool):
        raise ValidationError("starred must be true or false")

    return fields


def create_service(config: Optional[Config] = None) -> ProjectService:
    """Wire a service against the configured database and GitHub credentials."""
    config = config or get_config()
    session_factory = make_session_factory(database_url=config.database_url)
    return ProjectService(GitHubClient(config=config), ProjectStore(session_factory), config=config)
