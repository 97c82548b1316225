"""Error taxonomy shared by the fetcher, the store and the outer surfaces."""
from typing import Dict


class TrackerError(Exception):
    """Base class for errors reported to callers with a machine-readable kind."""
    kind = "tracker_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class NotFound(TrackerError):
    """The GitHub user (or a tracked project) does not exist."""
    kind = "not_found"


class RateLimited(TrackerError):
    """The GitHub API request quota is exhausted."""
    kind = "rate_limited"


class UpstreamError(TrackerError):
    """Any other transport or protocol failure talking to GitHub."""
    kind = "upstream_error"


class ValidationError(TrackerError):
    """Missing or malformed caller input."""
    kind = "validation_error"


class DuplicateKeyConflict(TrackerError):
    """A concurrent first-time insert won the (owner, github_id) unique key."""
    kind = "duplicate_key"


class PersistenceError(TrackerError):
    """The store is unavailable or a write failed for another reason."""
    kind = "persistence_error"
