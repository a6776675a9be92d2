"""Bare git mirrors: TFS -> local mirror -> GitLab."""

import base64
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import quote

from tfs_gitlab_sync.exceptions import GitMirrorError

logger = logging.getLogger(__name__)

MASK = "****"


def basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Authorization: Basic {token}"


class GitMirror:
    """
    Keeps one bare ``--mirror`` clone per repository under ``work_dir`` and
    force-pushes it to GitLab.

    Credentials go through ``http.extraHeader`` rather than the URL: git
    re-sends extra headers on every redirect hop, which NTLM-fronted TFS
    servers need, and no token ends up in the mirror's config on disk.
    """

    def __init__(
        self,
        work_dir: Path,
        tfs_url: str,
        tfs_project: str,
        tfs_token: str,
        gitlab_url: str,
        gitlab_token: str,
        verify_ssl: bool = False,
        timeout: int = 1800,
        git_binary: str = "git",
    ):
        self.work_dir = Path(work_dir)
        self.tfs_url = tfs_url.rstrip("/")
        self.tfs_project = tfs_project
        self.gitlab_url = gitlab_url.rstrip("/")
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.git_binary = git_binary

        self._tfs_header = basic_auth_header("", tfs_token)
        self._gitlab_header = basic_auth_header("oauth2", gitlab_token)
        self._secrets = [
            s for s in (tfs_token, gitlab_token, self._tfs_header, self._gitlab_header) if s
        ]

    def mirror_path(self, name: str) -> Path:
        return self.work_dir / f"{name}.git"

    def source_url(self, name: str) -> str:
        return f"{self.tfs_url}/{quote(self.tfs_project)}/_git/{quote(name)}"

    def destination_url(self, path_with_namespace: str) -> str:
        return f"{self.gitlab_url}/{path_with_namespace}.git"

    def _mask(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, MASK)
        return text

    def _source_config(self) -> List[str]:
        config = ["-c", f"http.extraHeader={self._tfs_header}"]
        if not self.verify_ssl:
            config.extend(["-c", "http.sslVerify=false"])
        return config

    def _destination_config(self) -> List[str]:
        return ["-c", f"http.extraHeader={self._gitlab_header}"]

    def _run(self, args: Iterable[str], config: Optional[List[str]] = None, cwd: Optional[Path] = None) -> str:
        """Run git, returning stdout+stderr (masked). Raises GitMirrorError."""
        args = list(args)
        cmd = [self.git_binary, *(config or []), *args]
        label = f"git {args[0]}" if args else "git"
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")

        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise GitMirrorError(
                f"{label} timed out after {self.timeout} seconds", command=label
            ) from e
        except OSError as e:
            raise GitMirrorError(f"Could not run {label}: {e}", command=label) from e

        output = self._mask(f"{result.stdout or ''}{result.stderr or ''}".strip())
        if result.returncode != 0:
            raise GitMirrorError(
                f"{label} failed with exit code {result.returncode}",
                command=label,
                stderr=output[-2000:],
            )
        return output

    def clone_or_update(self, name: str) -> Path:
        """Clone the mirror on first run, otherwise fetch with prune."""
        mirror_dir = self.mirror_path(name)

        if mirror_dir.is_dir():
            logger.info(f"[{name}] Fetching updates from TFS...")
            self._run(["remote", "update", "--prune"], config=self._source_config(), cwd=mirror_dir)
            return mirror_dir

        self.work_dir.mkdir(parents=True, exist_ok=True)
        staging_dir = mirror_dir.with_name(mirror_dir.name + ".tmp")
        if staging_dir.exists():
            shutil.rmtree(staging_dir)

        logger.info(f"[{name}] Initial clone from TFS (this may take a while)...")
        try:
            self._run(
                ["clone", "--mirror", self.source_url(name), str(staging_dir)],
                config=self._source_config(),
            )
        except GitMirrorError:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise
        staging_dir.rename(mirror_dir)
        return mirror_dir

    def push(self, name: str, destination_path: str) -> None:
        """Push every ref, tag and deletion to GitLab."""
        mirror_dir = self.mirror_path(name)
        # Reset each run; the push URL carries no credentials.
        self._run(
            ["remote", "set-url", "--push", "origin", self.destination_url(destination_path)],
            cwd=mirror_dir,
        )
        logger.info(f"[{name}] Pushing to GitLab...")
        output = self._run(["push", "--mirror", "origin"], config=self._destination_config(), cwd=mirror_dir)
        if output:
            logger.debug(f"[{name}] {output}")

    def sync(self, name: str, destination_path: str) -> None:
        self.clone_or_update(name)
        self.push(name, destination_path)
