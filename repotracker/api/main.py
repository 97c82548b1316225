"""Main FastAPI application."""
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from common.logging import LoggingManager
from repotracker.config import get_config
from repotracker.errors import TrackerError, ValidationError
from repotracker.github.summary import RepositoryFilters
from repotracker.projects.service import ProjectService, create_service

logger = LoggingManager.get_logger('app.api')

STATUS_BY_KIND = {
    "validation_error": 400,
    "not_found": 404,
    "duplicate_key": 409,
    "rate_limited": 429,
    "persistence_error": 500,
    "upstream_error": 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    LoggingManager.for_application(log_level=config.log_level, log_dir=config.log_dir,
                                   file_prefix="repotracker_api")
    logger.info("Repo Tracker API starting")
    yield


app = FastAPI(
    title="Repo Tracker API",
    description="Sync GitHub repositories into tracked projects and report their health",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=None)
def get_service() -> ProjectService:
    """Build the service once per process from the environment."""
    return create_service(get_config())


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """The owning user, resolved by the authentication layer in front of this API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    logger.warning(f"{request.method} {request.url.path} failed [{exc.kind}]: {exc.message}")
    return JSONResponse(status_code=status_code, content={"success": False, "error": exc.to_dict()})


# Pydantic models
class SyncRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    github_username: str
    filters: Optional[RepositoryFilters] = None


class ProjectUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Optional[str] = None
    progress: Optional[int] = None
    notes: Optional[str] = None
    tech_stack: Optional[List[str]] = None
    starred: Optional[bool] = None


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Repo Tracker API",
        "version": "1.0.0",
        "endpoints": {
            "projects": "/projects",
            "starred": "/projects/starred",
            "stats": "/projects/stats",
            "github": "/projects/github/{username}",
            "sync": "/projects/sync",
            "resync": "/projects/resync",
            "project": "/projects/{project_id}",
            "health": "/health",
        },
    }


@app.get("/health")
def health_check(service: ProjectService = Depends(get_service)):
    """Health check endpoint."""
    try:
        service.store.ping()
    except TrackerError as e:
        return {"status": "unhealthy", "error": e.message}
    return {"status": "healthy", "database": "connected"}


@app.get("/projects")
def list_projects(
    status: Optional[str] = None,
    starred: Optional[bool] = None,
    language: Optional[str] = None,
    owner_id: str = Depends(get_owner_id),
    service: ProjectService = Depends(get_service),
):
    """List active projects with their health metrics."""
    projects = service.list_projects(owner_id, status=status, starred=starred, language=language)
    return {"success": True, "count": len(projects), "data": projects}


@app.get("/projects/starred")
def starred_projects(owner_id: str = Depends(get_owner_id), service: ProjectService = Depends(get_service)):
    projects = service.starred_projects(owner_id)
    return {"success": True, "count": len(projects), "data": projects}


@app.get("/projects/stats")
def project_stats(owner_id: str = Depends(get_owner_id), service: ProjectService = Depends(get_service)):
    return {"success": True, "data": service.project_stats(owner_id)}


def get_query_filters(request: Request) -> RepositoryFilters:
    """Repository filters from the query string, as `minStars` or `min_stars`."""
    try:
        return RepositoryFilters.model_validate(dict(request.query_params))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid repository filters: {e.errors()[0]['msg']}") from e


@app.get("/projects/github/{username}")
def fetch_from_github(
    username: str,
    filters: RepositoryFilters = Depends(get_query_filters),
    owner_id: str = Depends(get_owner_id),
    service: ProjectService = Depends(get_service),
):
    """Live repositories from GitHub; nothing is saved."""
    result = service.fetch_live(username, filters)
    return {
        "success": True,
        "count": result.count,
        "data": [repo.model_dump(mode="json") for repo in result.repositories],
        "username": result.username,
        "source": "GitHub API",
    }


def _sync_response(report) -> Any:
    body: Dict[str, Any] = {
        "success": not report.all_failed,
        "count": report.synced_count,
        "data": report.projects,
        "errors": [error.model_dump() for error in report.errors],
        "username": report.username,
    }
    if report.all_failed:
        body["message"] = "All repositories failed to sync."
        return JSONResponse(status_code=500, content=body)
    body["message"] = f"Successfully synced {report.synced_count} of {report.fetched} repositories from GitHub"
    return body


@app.post("/projects/sync")
def sync_projects(
    request: SyncRequest,
    owner_id: str = Depends(get_owner_id),
    service: ProjectService = Depends(get_service),
):
    """Fetch from GitHub and save as tracked projects."""
    report = service.sync(owner_id, request.github_username, request.filters)
    return _sync_response(report)


@app.post("/projects/resync")
def resync_projects(owner_id: str = Depends(get_owner_id), service: ProjectService = Depends(get_service)):
    """Sync again with the GitHub username stored by the last sync."""
    return _sync_response(service.resync(owner_id))


@app.get("/projects/{project_id}")
def get_project(project_id: int, owner_id: str = Depends(get_owner_id),
                service: ProjectService = Depends(get_service)):
    return {"success": True, "data": service.get_project(owner_id, project_id)}


@app.patch("/projects/{project_id}")
def update_project(project_id: int, update: ProjectUpdate, owner_id: str = Depends(get_owner_id),
                   service: ProjectService = Depends(get_service)):
    """Update the user-owned tracking fields."""
    project = service.update_project(owner_id, project_id, **update.model_dump(exclude_none=True))
    return {"success": True, "data": project}


@app.delete("/projects/{project_id}")
def remove_project(project_id: int, owner_id: str = Depends(get_owner_id),
                   service: ProjectService = Depends(get_service)):
    """Remove a project from tracking (soft delete)."""
    service.remove_project(owner_id, project_id)
    return {"success": True, "message": "Project removed from tracking"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
