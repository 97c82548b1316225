import os
from typing import Optional

from dotenv import load_dotenv


class Config:
    """Application configuration."""
    def __init__(self, load_env=True):
        if load_env:
            load_dotenv()
        self.github_token: Optional[str] = os.getenv("GITHUB_TOKEN") or None
        self.github_api_url = os.getenv("GITHUB_API_URL") or "https://api.github.com"
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///repotracker.db")
        self.github_per_page = int(os.getenv("GITHUB_PER_PAGE", "100"))
        self.github_timeout = int(os.getenv("GITHUB_TIMEOUT", "15"))
        self.sync_stale_hours = int(os.getenv("SYNC_STALE_HOURS", "24"))
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_dir = os.getenv("LOG_DIR", "logs") or None


def get_config(load_env=True):
    return Config(load_env=load_env)


if __name__ == '__main__':
    config = get_config()
    print(f"GitHub token set: {bool(config.github_token)}")
    print(f"Database URL: {config.database_url}")
    print(f"GitHub page size: {config.github_per_page}")
    print(f"GitHub timeout: {config.github_timeout}s")
    print(f"Sync stale after: {config.sync_stale_hours}h")
