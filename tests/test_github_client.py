"""Tests for the GitHub client implementation."""
import json
import os
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock, patch

import pytest
import requests
from github.GithubException import GithubException, RateLimitExceededException, UnknownObjectException

from conftest import make_github_repo
from repotracker.config import Config
from repotracker.errors import NotFound, RateLimited, UpstreamError, ValidationError
from repotracker.github.client import GitHubClient
from repotracker.github.summary import RepositoryFilters


@pytest.fixture
def mock_github():
    """Fixture to mock the PyGithub client class."""
    with patch("repotracker.github.client.Github") as mock:
        yield mock


@pytest.fixture
def config():
    with patch.dict(os.environ, {}, clear=True):
        return Config(load_env=False)


def set_repos(mock_github, repos):
    """Make gh.get_user(...).get_repos(...).get_page(0) return ``repos``."""
    user = mock_github.return_value.get_user.return_value
    user.get_repos.return_value.get_page.return_value = repos
    return user


def test_init_with_token(mock_github, config):
    client = GitHubClient(token="test_token", config=config)
    assert client.token == "test_token"
    _, kwargs = mock_github.call_args
    assert kwargs["auth"].token == "test_token"
    assert kwargs["per_page"] == 100
    assert kwargs["timeout"] == 15
    assert kwargs["retry"] is None
    assert kwargs["base_url"] == "https://api.github.com"


def test_init_without_token_is_anonymous(mock_github, config):
    client = GitHubClient(config=config)
    assert client.token is None
    _, kwargs = mock_github.call_args
    assert "auth" not in kwargs


def test_fetch_user_repositories_normalizes(mock_github, config):
    repos = [
        make_github_repo(github_id=11, name="api", stars=7, forks=2),
        make_github_repo(github_id=12, name="notes", language=None, pushed_days_ago=None),
    ]
    user = set_repos(mock_github, repos)

    result = GitHubClient(config=config).fetch_user_repositories("octo")

    mock_github.return_value.get_user.assert_called_once_with("octo")
    user.get_repos.assert_called_once_with(sort="updated", direction="desc")
    user.get_repos.return_value.get_page.assert_called_once_with(0)
    assert result.username == "octo"
    assert result.count == 2
    first, second = result.repositories
    assert first.github_id == 11
    assert first.full_name == "octo/api"
    assert first.url == "https://github.com/octo/api"
    assert first.stars == 7
    assert first.forks == 2
    assert first.topics == ["tracker"]
    assert first.pushed_at is not None
    assert second.language == "Unknown"
    assert second.pushed_at is None


def test_fetch_preserves_github_order(mock_github, config):
    set_repos(mock_github, [make_github_repo(github_id=i, name=f"r{i}") for i in (3, 1, 2)])
    result = GitHubClient(config=config).fetch_user_repositories("octo")
    assert [r.github_id for r in result.repositories] == [3, 1, 2]


@pytest.mark.parametrize("username", ["", "   ", None])
def test_fetch_requires_username(mock_github, config, username):
    client = GitHubClient(config=config)
    with pytest.raises(ValidationError):
        client.fetch_user_repositories(username)
    mock_github.return_value.get_user.assert_not_called()


def test_fetch_unknown_user_raises_not_found(mock_github, config):
    mock_github.return_value.get_user.side_effect = UnknownObjectException(404, {"message": "Not Found"}, None)
    with pytest.raises(NotFound) as excinfo:
        GitHubClient(config=config).fetch_user_repositories("ghost")
    assert "ghost" in excinfo.value.message
    assert excinfo.value.kind == "not_found"


def test_fetch_rate_limit_exception_raises_rate_limited(mock_github, config):
    mock_github.return_value.get_user.side_effect = RateLimitExceededException(
        403, {"message": "API rate limit exceeded"}, None)
    with pytest.raises(RateLimited) as excinfo:
        GitHubClient(config=config).fetch_user_repositories("octo")
    assert "GITHUB_TOKEN" in excinfo.value.message


def test_fetch_403_rate_limit_message_raises_rate_limited(mock_github, config):
    user = mock_github.return_value.get_user.return_value
    user.get_repos.return_value.get_page.side_effect = GithubException(
        403, {"message": "API rate limit exceeded for 10.0.0.1."}, None)
    with pytest.raises(RateLimited):
        GitHubClient(config=config).fetch_user_repositories("octo")


def test_fetch_403_without_rate_limit_is_upstream_error(mock_github, config):
    mock_github.return_value.get_user.side_effect = GithubException(403, {"message": "Forbidden"}, None)
    with pytest.raises(UpstreamError):
        GitHubClient(config=config).fetch_user_repositories("octo")


def test_fetch_server_error_raises_upstream_error(mock_github, config):
    mock_github.return_value.get_user.side_effect = GithubException(502, {"message": "Bad Gateway"}, None)
    with pytest.raises(UpstreamError) as excinfo:
        GitHubClient(config=config).fetch_user_repositories("octo")
    assert excinfo.value.kind == "upstream_error"


def test_fetch_timeout_raises_upstream_error(mock_github, config):
    mock_github.return_value.get_user.side_effect = requests.exceptions.ReadTimeout("read timed out")
    with pytest.raises(UpstreamError) as excinfo:
        GitHubClient(config=config).fetch_user_repositories("octo")
    assert "timed out" in excinfo.value.message


def test_fetch_malformed_payload_raises_upstream_error(mock_github, config):
    set_repos(mock_github, [make_github_repo(stargazers_count=-4)])
    with pytest.raises(UpstreamError):
        GitHubClient(config=config).fetch_user_repositories("octo")


def test_search_user_repositories_filters_client_side(mock_github, config):
    set_repos(mock_github, [
        make_github_repo(github_id=1, name="a", language="Go", stars=2),
        make_github_repo(github_id=2, name="b", language="JS", stars=10),
        make_github_repo(github_id=3, name="c", language="Go", stars=50),
    ])
    result = GitHubClient(config=config).search_user_repositories(
        "octo", RepositoryFilters(language="Go", min_stars=5))
    assert result.count == 1
    assert [r.github_id for r in result.repositories] == [3]


def test_search_user_repositories_without_filters(mock_github, config):
    set_repos(mock_github, [make_github_repo(github_id=1), make_github_repo(github_id=2, name="b")])
    result = GitHubClient(config=config).search_user_repositories("octo")
    assert result.count == 2


def test_get_repository(mock_github, config):
    mock_github.return_value.get_repo.return_value = make_github_repo(github_id=99, name="solo")
    summary = GitHubClient(config=config).get_repository("octo/solo")
    mock_github.return_value.get_repo.assert_called_once_with("octo/solo")
    assert summary.github_id == 99


def test_get_repository_not_found(mock_github, config):
    mock_github.return_value.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)
    with pytest.raises(NotFound):
        GitHubClient(config=config).get_repository("octo/nothing")


def test_get_repository_languages_percentages(mock_github, config):
    mock_github.return_value.get_repo.return_value.get_languages.return_value = {
        "CSS": 250, "JavaScript": 650, "HTML": 100}
    breakdown = GitHubClient(config=config).get_repository_languages("octo/site")
    assert breakdown["primary_language"] == "JavaScript"
    assert [entry["language"] for entry in breakdown["languages"]] == ["JavaScript", "CSS", "HTML"]
    assert breakdown["languages"][0]["percentage"] == 65.0


def test_get_repository_languages_on_error(mock_github, config):
    mock_github.return_value.get_repo.side_effect = GithubException(500, {"message": "boom"}, None)
    breakdown = GitHubClient(config=config).get_repository_languages("octo/site")
    assert breakdown == {"languages": [], "primary_language": "Unknown"}


def test_get_recent_commits(mock_github, config):
    commit = MagicMock()
    commit.sha = "abc123"
    commit.commit.message = "Fix parser"
    commit.commit.author.name = "Octo Cat"
    commit.html_url = "https://github.com/octo/api/commit/abc123"
    mock_github.return_value.get_repo.return_value.get_commits.return_value = [commit, commit, commit]

    commits = GitHubClient(config=config).get_recent_commits("octo/api", limit=2)

    assert len(commits) == 2
    assert commits[0]["sha"] == "abc123"
    assert commits[0]["author"] == "Octo Cat"


def test_get_readme_missing_returns_empty(mock_github, config):
    mock_github.return_value.get_repo.return_value.get_readme.side_effect = GithubException(
        404, {"message": "Not Found"}, None)
    assert GitHubClient(config=config).get_readme("octo/api") == ""


def test_get_readme_decodes(mock_github, config):
    mock_github.return_value.get_repo.return_value.get_readme.return_value.decoded_content = b"# API\n"
    assert GitHubClient(config=config).get_readme("octo/api") == "# API\n"


def test_validate_username(mock_github, config):
    client = GitHubClient(config=config)
    assert client.validate_username("octo") is True
    mock_github.return_value.get_user.side_effect = UnknownObjectException(404, {"message": "Not Found"}, None)
    assert client.validate_username("ghost") is False
    assert client.validate_username("") is False


def test_get_user_profile(mock_github, config):
    profile_user = mock_github.return_value.get_user.return_value
    profile_user.login = "octo"
    profile_user.public_repos = 12
    profile = GitHubClient(config=config).get_user_profile("octo")
    assert profile["login"] == "octo"
    assert profile["public_repos"] == 12


def test_get_rate_limit(mock_github, config):
    mock_github.return_value.rate_limiting = (42, 60)
    mock_github.return_value.rate_limiting_resettime = 1767225600
    info = GitHubClient(config=config).get_rate_limit()
    assert info["remaining"] == 42
    assert info["limit"] == 60
    assert info["reset_time"].year == 2026


def test_retry_error_after_403s_raises_rate_limited(mock_github, config):
    mock_github.return_value.get_user.side_effect = requests.exceptions.RetryError(
        "Max retries exceeded with url: /users/octo (Caused by ResponseError('too many 403 error responses'))")
    with pytest.raises(RateLimited):
        GitHubClient(config=config).fetch_user_repositories("octo")


class RateLimitedGitHub(BaseHTTPRequestHandler):
    """Answers every request the way GitHub does once the quota is spent."""
    requests_seen = 0

    def do_GET(self):
        type(self).requests_seen += 1
        body = json.dumps({
            "message": "API rate limit exceeded for 127.0.0.1.",
            "documentation_url": "https://docs.github.com/rest/overview/resources-in-the-rest-api#rate-limiting",
        }).encode()
        self.send_response(403)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("X-RateLimit-Limit", "60")
        self.send_header("X-RateLimit-Remaining", "0")
        self.send_header("X-RateLimit-Reset", str(int(time.time()) + 2))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def rate_limited_server():
    RateLimitedGitHub.requests_seen = 0
    server = ThreadingHTTPServer(("127.0.0.1", 0), RateLimitedGitHub)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_rate_limited_response_fails_fast_without_retrying(rate_limited_server):
    with patch.dict(os.environ, {"GITHUB_API_URL": rate_limited_server, "GITHUB_TIMEOUT": "5"}, clear=True):
        client = GitHubClient(config=Config(load_env=False))
        started = time.monotonic()
        with pytest.raises(RateLimited):
            client.fetch_user_repositories("octo")

    assert RateLimitedGitHub.requests_seen == 1
    assert time.monotonic() - started < 5
