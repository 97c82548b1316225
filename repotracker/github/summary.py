"""Normalized repository records and the client-side filters applied to them."""
from datetime import datetime
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UNKNOWN_LANGUAGE = "Unknown"


class RepositorySummary(BaseModel):
    """One GitHub repository as returned by a fetch. Carries no ownership."""

    github_id: int
    name: str
    full_name: str
    description: Optional[str] = None
    url: str
    homepage: Optional[str] = None
    language: str = UNKNOWN_LANGUAGE
    stars: int = Field(default=0, ge=0)
    forks: int = Field(default=0, ge=0)
    watchers: int = 0
    open_issues: int = 0
    is_private: bool = False
    is_fork: bool = False
    archived: bool = False
    default_branch: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None  # metadata update, moves on a star
    pushed_at: Optional[datetime] = None  # last code push

    @classmethod
    def from_github_repo(cls, repo: Any) -> "RepositorySummary":
        """Build a summary from a PyGithub ``Repository`` object."""
        return cls(
            github_id=repo.id,
            name=repo.name,
            full_name=repo.full_name,
            description=repo.description,
            url=repo.html_url,
            homepage=repo.homepage or None,
            language=repo.language or UNKNOWN_LANGUAGE,
            stars=repo.stargazers_count or 0,
            forks=repo.forks_count or 0,
            watchers=repo.watchers_count or 0,
            open_issues=repo.open_issues_count or 0,
            is_private=bool(repo.private),
            is_fork=bool(repo.fork),
            archived=bool(repo.archived),
            default_branch=repo.default_branch,
            topics=list(repo.topics or []),
            created_at=repo.created_at,
            updated_at=repo.updated_at,
            pushed_at=repo.pushed_at,
        )


class RepositoryFilters(BaseModel):
    """Filters applied after the full repository list is fetched.

    Accepts both snake_case and camelCase keys (``min_stars`` / ``minStars``);
    unrecognized keys are ignored.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    language: Optional[str] = None
    min_stars: Optional[int] = None
    exclude_forks: bool = False
    only_public: bool = False
    exclude_archived: bool = False

    def matches(self, repo: RepositorySummary) -> bool:
        if self.language and repo.language.lower() != self.language.lower():
            return False
        if self.min_stars is not None and repo.stars < self.min_stars:
            return False
        if self.exclude_forks and repo.is_fork:
            return False
        if self.only_public and repo.is_private:
            return False
        if self.exclude_archived and repo.archived:
            return False
        return True

    def apply(self, repos: Iterable[RepositorySummary]) -> List[RepositorySummary]:
        """Keep matching repositories, preserving their original order."""
        return [repo for repo in repos if self.matches(repo)]
