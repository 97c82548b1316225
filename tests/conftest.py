"""Shared fixtures: an in-memory store and builders for GitHub-shaped repositories."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from repotracker.db import make_session_factory
from repotracker.github.summary import RepositorySummary
from repotracker.projects.store import ProjectStore

NOW = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_github_repo(github_id=1, name="repo", owner="octo", language="Python", stars=0, forks=0,
                     private=False, fork=False, archived=False, pushed_days_ago=3, **overrides):
    """A MagicMock shaped like a PyGithub Repository."""
    attrs = {
        "id": github_id,
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": f"{name} description",
        "html_url": f"https://github.com/{owner}/{name}",
        "homepage": "",
        "language": language,
        "stargazers_count": stars,
        "forks_count": forks,
        "watchers_count": stars,
        "open_issues_count": 0,
        "private": private,
        "fork": fork,
        "archived": archived,
        "default_branch": "main",
        "topics": ["tracker"],
        "created_at": NOW - timedelta(days=400),
        "updated_at": NOW - timedelta(days=1),
        "pushed_at": NOW - timedelta(days=pushed_days_ago) if pushed_days_ago is not None else None,
    }
    attrs.update(overrides)
    repo = MagicMock()
    for key, value in attrs.items():
        setattr(repo, key, value)
    return repo


def make_summary(github_id=1, name="repo", **overrides) -> RepositorySummary:
    return RepositorySummary.from_github_repo(make_github_repo(github_id=github_id, name=name, **overrides))


@pytest.fixture
def session_factory():
    return make_session_factory(database_url="sqlite:///:memory:")


@pytest.fixture
def store(session_factory):
    return ProjectStore(session_factory)


@pytest.fixture(autouse=True)
def no_log_files(monkeypatch):
    """Keep CLI/API logging on the console only."""
    monkeypatch.setenv("LOG_DIR", "")
