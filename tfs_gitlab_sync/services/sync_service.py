"""Sync cycle over all mirror targets"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tfs_gitlab_sync.config import Settings
from tfs_gitlab_sync.models import MirrorTarget, SyncStatus
from tfs_gitlab_sync.services.git_mirror import GitMirror
from tfs_gitlab_sync.services.gitlab_client import GitLabClient
from tfs_gitlab_sync.services.pr_bridge import PullRequestBridge
from tfs_gitlab_sync.services.tfs_client import TfsClient

logger = logging.getLogger(__name__)


class SyncService:
    """Runs sync cycles: every target repository, one at a time."""

    def __init__(
        self,
        tfs_client: TfsClient,
        bridge: PullRequestBridge,
        mirror: GitMirror,
        repo_names: Optional[List[str]] = None,
    ):
        self.tfs = tfs_client
        self.bridge = bridge
        self.mirror = mirror
        self.repo_names = list(repo_names or [])
        # Kept across cycles so resolved GitLab project ids stay cached.
        self.targets: Dict[str, MirrorTarget] = {}
        self.last_cycle: Optional[Dict[str, Any]] = None
        self._cycle_lock = threading.Lock()
        self._stop_requested = threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncService":
        """Wire every component from explicit settings."""
        tfs_pat = settings.tfs_pat.get_secret_value()
        gitlab_token = settings.gitlab_token.get_secret_value()

        tfs_client = TfsClient(
            settings.tfs_url,
            settings.tfs_project,
            tfs_pat,
            timeout=settings.http_timeout,
            verify_ssl=settings.tfs_verify_ssl,
        )
        gitlab_client = GitLabClient(settings.gitlab_url, gitlab_token, timeout=settings.http_timeout)
        mirror = GitMirror(
            settings.work_dir,
            settings.tfs_url,
            settings.tfs_project,
            tfs_pat,
            settings.gitlab_url,
            gitlab_token,
            verify_ssl=settings.tfs_verify_ssl,
            timeout=settings.git_timeout,
        )
        bridge = PullRequestBridge(
            tfs_client,
            gitlab_client,
            mirror,
            namespace=settings.gitlab_namespace,
            label=settings.mr_label,
            reviewer_pattern=settings.ai_reviewer_pattern,
        )
        return cls(tfs_client, bridge, mirror, repo_names=settings.repo_names)

    @staticmethod
    def _utcnow() -> str:
        return datetime.now(timezone.utc).isoformat()

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    def request_stop(self) -> None:
        """Finish the current repository, then stop; no new cycle starts."""
        self._stop_requested.set()

    def close(self) -> None:
        """Release the TFS HTTP connection pool."""
        self.tfs.close()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def resolve_targets(self) -> List[MirrorTarget]:
        """Configured allowlist, or every repository of the TFS project."""
        names = self.repo_names or self.tfs.list_repositories()
        targets = []
        for name in names:
            if name not in self.targets:
                self.targets[name] = MirrorTarget(name=name, mirror_path=self.mirror.mirror_path(name))
            targets.append(self.targets[name])
        return targets

    def sync_repository(self, target: MirrorTarget) -> Dict[str, Any]:
        logger.info(f"[{target.name}] ──────────────────────────────────────")
        try:
            return self.bridge.sync_repository(target)
        except Exception as e:
            logger.error(f"Sync failed for '{target.name}': {e}")
            return {"status": SyncStatus.FAILED.value, "error": str(e)}

    def run_cycle(self) -> Dict[str, Any]:
        """One full pass over all repositories."""
        if self.stop_requested:
            return {"status": SyncStatus.SKIPPED.value, "message": "Stop requested"}
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("Sync cycle already running, skipping")
            return {"status": SyncStatus.SKIPPED.value, "message": "Cycle already running"}

        try:
            started_at = self._utcnow()
            logger.info("── Sync cycle start ─────────────────────")
            repositories: Dict[str, Any] = {}
            try:
                targets = self.resolve_targets()
            except Exception as e:
                logger.warning(f"Could not list TFS repositories: {e}")
                result = {
                    "status": SyncStatus.FAILED.value,
                    "error": str(e),
                    "started_at": started_at,
                    "finished_at": self._utcnow(),
                    "repositories": repositories,
                }
                self.last_cycle = result
                return result

            for target in targets:
                if self.stop_requested:
                    logger.info("Stop requested, ending cycle early")
                    break
                repositories[target.name] = self.sync_repository(target)

            failed = [name for name, r in repositories.items() if r.get("status") != SyncStatus.SUCCESS.value]
            result = {
                "status": SyncStatus.FAILED.value if failed else SyncStatus.SUCCESS.value,
                "started_at": started_at,
                "finished_at": self._utcnow(),
                "repositories": repositories,
            }
            self.last_cycle = result
            logger.info(
                f"── Cycle complete: {len(repositories) - len(failed)} ok, {len(failed)} failed ──"
            )
            return result
        finally:
            self._cycle_lock.release()
