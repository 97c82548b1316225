"""GitHub API client: lists a user's repositories and normalizes them."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from common.logging import LoggingManager
from repotracker.config import Config, get_config
from repotracker.errors import NotFound, RateLimited, UpstreamError, ValidationError
from .summary import RepositoryFilters, RepositorySummary

logger = LoggingManager.get_logger('app.github_client')

RATE_LIMIT_MESSAGE = "GitHub API rate limit exceeded. Set GITHUB_TOKEN to use an authenticated quota."


class FetchResult(BaseModel):
    """Repositories returned by a fetch, in GitHub's order (most recently updated first)."""
    username: str
    count: int = 0
    repositories: List[RepositorySummary] = Field(default_factory=list)


def _is_rate_limit(e: GithubException) -> bool:
    if isinstance(e, RateLimitExceededException):
        return True
    if e.status not in (403, 429):
        return False
    return "rate limit" in str(e.data).lower() or e.status == 429


def translate_github_error(e: Exception, subject: str) -> Exception:
    """Map a PyGithub/requests failure onto NotFound, RateLimited or UpstreamError."""
    if isinstance(e, UnknownObjectException) or (isinstance(e, GithubException) and e.status == 404):
        return NotFound(f'GitHub user or repository "{subject}" not found')
    if isinstance(e, GithubException) and _is_rate_limit(e):
        return RateLimited(RATE_LIMIT_MESSAGE)
    if isinstance(e, requests.exceptions.RetryError) and "403" in str(e):
        return RateLimited(RATE_LIMIT_MESSAGE)
    if isinstance(e, requests.exceptions.Timeout):
        return UpstreamError(f"GitHub request for {subject} timed out")
    if isinstance(e, GithubException):
        return UpstreamError(f"Failed to fetch {subject} from GitHub: {e.status} {e.data}")
    return UpstreamError(f"Failed to fetch {subject} from GitHub: {e}")


class GitHubClient:
    """Client for interacting with the GitHub API."""

    def __init__(self, token: Optional[str] = None, config: Optional[Config] = None, load_env: bool = True):
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token. Falls back to GITHUB_TOKEN; without one
                the anonymous (60 requests/hour) quota applies.
            config: Application configuration. Loaded from the environment when omitted.
            load_env: Whether to load environment variables from .env file (default: True).
        """
        self.config = config or get_config(load_env=load_env)
        self.token = token or self.config.github_token
        self.per_page = self.config.github_per_page

        # No retries: a rate-limited or failing call raises on the first response.
        options = dict(base_url=self.config.github_api_url, per_page=self.per_page,
                       timeout=self.config.github_timeout, retry=None)
        if self.token:
            logger.info("Initializing authenticated GitHub client")
            self.gh = Github(auth=Auth.Token(self.token), **options)
        else:
            logger.warning("No GitHub token configured; using the anonymous rate limit")
            self.gh = Github(**options)

    def fetch_user_repositories(self, username: str) -> FetchResult:
        """Fetch one page (up to ``per_page``) of a user's repositories, newest activity first.

        Raises:
            ValidationError: username is empty.
            NotFound: the user does not exist on GitHub.
            RateLimited: the API quota is exhausted.
            UpstreamError: any other transport or parse failure.
        """
        if not username or not username.strip():
            raise ValidationError("GitHub username is required")
        username = username.strip()

        logger.info(f"Fetching repositories from GitHub for user: {username}")
        try:
            user = self.gh.get_user(username)
            page = user.get_repos(sort="updated", direction="desc").get_page(0)
            repositories = [RepositorySummary.from_github_repo(repo) for repo in page]
        except (GithubException, requests.exceptions.RequestException) as e:
            logger.error(f"Error fetching GitHub repos for {username}: {e}")
            raise translate_github_error(e, username) from e
        except PydanticValidationError as e:
            logger.error(f"Unexpected repository payload for {username}: {e}")
            raise UpstreamError(f"GitHub returned malformed repository data for {username}") from e

        logger.info(f"GitHub API returned {len(repositories)} repositories for {username}")
        logger.debug(f"First repositories: {[r.full_name for r in repositories[:3]]}")
        return FetchResult(username=username, count=len(repositories), repositories=repositories)

    def search_user_repositories(self, username: str,
                                 filters: Optional[RepositoryFilters] = None) -> FetchResult:
        """Fetch a user's repositories and apply the filters client-side."""
        result = self.fetch_user_repositories(username)
        if filters is None:
            return result
        matched = filters.apply(result.repositories)
        logger.info(f"{len(matched)} of {result.count} repositories matched filters "
                    f"{filters.model_dump(exclude_defaults=True)}")
        return FetchResult(username=result.username, count=len(matched), repositories=matched)

    def get_repository(self, full_name: str) -> RepositorySummary:
        """Fetch a single repository by ``owner/name``."""
        logger.info(f"Fetching metadata for repository: {full_name}")
        try:
            return RepositorySummary.from_github_repo(self.gh.get_repo(full_name))
        except (GithubException, requests.exceptions.RequestException) as e:
            logger.error(f"Error fetching repository {full_name}: {e}")
            raise translate_github_error(e, full_name) from e

    def get_repository_languages(self, full_name: str) -> Dict[str, Any]:
        """Language breakdown by percentage of bytes, largest first.

        Returns an empty breakdown when GitHub cannot be reached.
        """
        try:
            raw = self.gh.get_repo(full_name).get_languages()
        except (GithubException, requests.exceptions.RequestException) as e:
            logger.warning(f"Could not fetch languages for {full_name}: {e}")
            return {"languages": [], "primary_language": "Unknown"}

        total = sum(raw.values())
        languages = [
            {
                "language": language,
                "bytes": size,
                "percentage": round(size / total * 100, 2) if total else 0.0,
            }
            for language, size in raw.items()
        ]
        languages.sort(key=lambda entry: entry["percentage"], reverse=True)
        primary = languages[0]["language"] if languages else "Unknown"
        return {"languages": languages, "primary_language": primary}

    def get_recent_commits(self, full_name: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent commits on the default branch; empty on upstream failure."""
        try:
            commits = self.gh.get_repo(full_name).get_commits()[:limit]
            return [
                {
                    "sha": c.sha,
                    "message": c.commit.message,
                    "author": c.commit.author.name,
                    "date": c.commit.author.date,
                    "url": c.html_url,
                }
                for c in commits
            ]
        except (GithubException, requests.exceptions.RequestException) as e:
            logger.warning(f"Could not fetch commits for {full_name}: {e}")
            return []

    def get_readme(self, full_name: str) -> str:
        """Decoded README text, or an empty string when there is none."""
        try:
            readme = self.gh.get_repo(full_name).get_readme()
            return readme.decoded_content.decode("utf-8", errors="ignore")
        except (GithubException, requests.exceptions.RequestException) as e:
            if isinstance(e, GithubException) and e.status == 404:
                logger.debug(f"No README file found for {full_name}.")
            else:
                logger.warning(f"Error fetching README for {full_name}: {e}")
            return ""

    def validate_username(self, username: str) -> bool:
        """True when the username exists on GitHub."""
        if not username:
            return False
        try:
            self.gh.get_user(username)
            return True
        except (GithubException, requests.exceptions.RequestException) as e:
            logger.debug(f"GitHub username {username} did not validate: {e}")
            return False

    def get_user_profile(self, username: str) -> Dict[str, Any]:
        """Public profile fields for a GitHub user."""
        try:
            user = self.gh.get_user(username)
            return {
                "login": user.login,
                "name": user.name,
                "avatar_url": user.avatar_url,
                "bio": user.bio,
                "company": user.company,
                "location": user.location,
                "email": user.email,
                "blog": user.blog,
                "public_repos": user.public_repos,
                "public_gists": user.public_gists,
                "followers": user.followers,
                "following": user.following,
                "created_at": user.created_at,
                "updated_at": user.updated_at,
                "html_url": user.html_url,
            }
        except (GithubException, requests.exceptions.RequestException) as e:
            logger.error(f"Error fetching user profile for {username}: {e}")
            raise translate_github_error(e, username) from e

    def get_rate_limit(self) -> dict:
        """Get the current core rate limit information.

        Returns:
            dict: remaining requests, limit, and reset time (UTC datetime).
        """
        logger.debug("Fetching GitHub API rate limit")
        try:
            remaining, limit = self.gh.rate_limiting
            reset_unix = self.gh.rate_limiting_resettime
        except (GithubException, requests.exceptions.RequestException) as e:
            raise translate_github_error(e, "rate limit") from e
        info = {
            "remaining": remaining,
            "limit": limit,
            "reset_time_unix": reset_unix,
            "reset_time": _from_unix(reset_unix),
        }
        logger.debug(f"Rate limit info: {info}")
        return info


def _from_unix(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)
