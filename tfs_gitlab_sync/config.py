"""Application configuration"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # TFS / Azure DevOps (source)
    # Collection URL without the project segment, e.g.
    # https://tfs.company.com/tfs/DefaultCollection or https://dev.azure.com/org
    tfs_url: str
    tfs_project: str
    tfs_pat: SecretStr
    # Comma-separated allowlist of repositories. Empty means "every repo in the project".
    tfs_repos: str = ""
    # On-prem TFS commonly runs with self-signed certificates.
    tfs_verify_ssl: bool = False

    # GitLab (destination)
    gitlab_url: str
    gitlab_token: SecretStr
    gitlab_namespace: str = "tfs-mirrors"

    # Sync
    sync_interval: int = Field(default=60, gt=0, description="Seconds between cycles")
    work_dir: Path = Path("/repos")
    mr_label: str = "tfs-pr"
    # Regex searched (case-insensitive) in note author usernames.
    ai_reviewer_pattern: str = "coderabbit"
    http_timeout: float = Field(default=30.0, gt=0)
    git_timeout: int = Field(default=1800, gt=0)

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"

    @property
    def repo_names(self) -> List[str]:
        """Configured repository allowlist (empty when auto-discovering)."""
        return [name.strip() for name in self.tfs_repos.split(",") if name.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
