"""Persistence access for tracked projects and their owners."""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from common.logging import LoggingManager
from repotracker.errors import DuplicateKeyConflict, NotFound, PersistenceError
from repotracker.models.tracked_project import TrackedProject
from repotracker.models.user import User

logger = LoggingManager.get_logger('app.project_store')

NATIVE_UPSERT_DIALECTS = {
    'sqlite': sqlite_insert,
    'postgresql': pg_insert,
}

UNIQUE_KEY = ('owner_user_id', 'github_id')


class ProjectStore:
    """Reads and writes TrackedProject rows, one short-lived session per call."""

    def __init__(self, session_factory: sessionmaker):
        self.Session = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        session = self.Session()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Unique constraint hit while trying to {action}: {e.orig}")
            raise DuplicateKeyConflict(f"Could not {action}: record already exists") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error while trying to {action}: {e}")
            raise PersistenceError(f"Could not {action}: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> None:
        with self._session("reach the database") as session:
            session.execute(text("SELECT 1"))

    def find_one(self, owner_user_id: str, github_id: int) -> Optional[TrackedProject]:
        with self._session(f"load project {github_id}") as session:
            return session.query(TrackedProject).filter_by(
                owner_user_id=owner_user_id, github_id=github_id).first()

    def insert_one(self, values: Dict[str, Any]) -> TrackedProject:
        project = TrackedProject(**values)
        with self._session(f"create project {values.get('full_name')}") as session:
            session.add(project)
            session.flush()
        return project

    def update_fields(self, owner_user_id: str, github_id: int, fields: Dict[str, Any]) -> TrackedProject:
        with self._session(f"update project {github_id}") as session:
            project = session.query(TrackedProject).filter_by(
                owner_user_id=owner_user_id, github_id=github_id).first()
            if project is None:
                raise NotFound(f"No tracked project {github_id} for user {owner_user_id}")
            for key, value in fields.items():
                setattr(project, key, value)
        return project

    def upsert(self, owner_user_id: str, github_id: int, values: Dict[str, Any],
               update_keys: Iterable[str]) -> Tuple[TrackedProject, bool]:
        """Insert ``values`` or, when (owner, github_id) exists, overwrite only ``update_keys``.

        Returns the stored project and whether it was newly created.
        """
        update_keys = tuple(update_keys)
        values = dict(values, owner_user_id=owner_user_id, github_id=github_id)

        with self._session(f"upsert project {values.get('full_name')}") as session:
            insert_fn = NATIVE_UPSERT_DIALECTS.get(session.get_bind().dialect.name)
            existed = session.query(TrackedProject.id).filter_by(
                owner_user_id=owner_user_id, github_id=github_id).first() is not None

            if insert_fn is not None:
                now = datetime.now(timezone.utc)
                row = dict(values)
                row.setdefault('created_at', now)
                row.setdefault('updated_at', now)
                stmt = insert_fn(TrackedProject).values(**row)
                update_set = {key: stmt.excluded[key] for key in update_keys}
                # onupdate hooks do not run for ON CONFLICT updates
                update_set['updated_at'] = stmt.excluded['updated_at']
                stmt = stmt.on_conflict_do_update(index_elements=list(UNIQUE_KEY), set_=update_set)
                session.execute(stmt)
                project = session.query(TrackedProject).filter_by(
                    owner_user_id=owner_user_id, github_id=github_id).populate_existing().one()
            elif existed:
                project = session.query(TrackedProject).filter_by(
                    owner_user_id=owner_user_id, github_id=github_id).one()
                for key in update_keys:
                    setattr(project, key, values[key])
            else:
                project = TrackedProject(**values)
                session.add(project)
            session.flush()
        return project, not existed

    def find_many(self, owner_user_id: str, status: Optional[str] = None, starred: Optional[bool] = None,
                  language: Optional[str] = None, include_inactive: bool = False) -> List[TrackedProject]:
        """Projects for one owner, most recently updated first."""
        with self._session(f"list projects for {owner_user_id}") as session:
            query = session.query(TrackedProject).filter(TrackedProject.owner_user_id == owner_user_id)
            if not include_inactive:
                query = query.filter(TrackedProject.active.is_(True))
            if status:
                query = query.filter(TrackedProject.status == status)
            if starred is not None:
                query = query.filter(TrackedProject.starred.is_(starred))
            if language:
                query = query.filter(TrackedProject.language == language)
            return query.order_by(TrackedProject.updated_at.desc(), TrackedProject.id.desc()).all()

    def count(self, owner_user_id: str) -> int:
        with self._session(f"count projects for {owner_user_id}") as session:
            return session.query(TrackedProject).filter_by(owner_user_id=owner_user_id).count()

    def get_by_id(self, owner_user_id: str, project_id: int) -> TrackedProject:
        with self._session(f"load project #{project_id}") as session:
            project = session.get(TrackedProject, project_id)
            if project is None or project.owner_user_id != owner_user_id:
                raise NotFound(f"Project {project_id} not found")
            return project

    def update_by_id(self, owner_user_id: str, project_id: int, fields: Dict[str, Any]) -> TrackedProject:
        with self._session(f"update project #{project_id}") as session:
            project = session.get(TrackedProject, project_id)
            if project is None or project.owner_user_id != owner_user_id:
                raise NotFound(f"Project {project_id} not found")
            for key, value in fields.items():
                setattr(project, key, value)
        return project

    def get_github_username(self, owner_user_id: str) -> Optional[str]:
        with self._session(f"load user {owner_user_id}") as session:
            user = session.get(User, owner_user_id)
            return user.github_username if user else None

    def set_github_username(self, owner_user_id: str, github_username: str) -> Optional[str]:
        """Store the user's GitHub username, creating the user row if needed.

        Returns the previously stored username.
        """
        with self._session(f"set GitHub username for {owner_user_id}") as session:
            user = session.get(User, owner_user_id)
            if user is None:
                session.add(User(id=owner_user_id, github_username=github_username))
                return None
            previous = user.github_username
            user.github_username = github_username
            return previous
