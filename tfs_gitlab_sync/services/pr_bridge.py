"""Per-repository cycle: project, mirror, pull request bridge"""

import logging
from typing import Any, Dict, List, Optional

from tfs_gitlab_sync.models import (
    DestinationMergeRequest,
    MirrorTarget,
    SourcePullRequest,
    SyncStatus,
)
from tfs_gitlab_sync.models.pull_request import ACTIVE
from tfs_gitlab_sync.services.comment_forwarder import ReviewCommentForwarder
from tfs_gitlab_sync.services.git_mirror import GitMirror
from tfs_gitlab_sync.services.gitlab_client import GitLabClient
from tfs_gitlab_sync.services.markers import MarkerCodec
from tfs_gitlab_sync.services.tfs_client import TfsClient

logger = logging.getLogger(__name__)


class PullRequestBridge:
    """Runs one repository through a sync cycle.

    Order matters: the mirror must be pushed before merge requests are
    created, since GitLab rejects MRs whose branches don't exist yet.
    """

    def __init__(
        self,
        tfs_client: TfsClient,
        gitlab_client: GitLabClient,
        mirror: GitMirror,
        namespace: str,
        label: str = "tfs-pr",
        reviewer_pattern: str = "coderabbit",
        markers: Optional[MarkerCodec] = None,
    ):
        self.tfs = tfs_client
        self.gitlab = gitlab_client
        self.mirror = mirror
        self.namespace = namespace
        self.label = label
        self.markers = markers or MarkerCodec()
        self.forwarder = ReviewCommentForwarder(
            tfs_client, gitlab_client, reviewer_pattern=reviewer_pattern, markers=self.markers
        )

    @staticmethod
    def _new_stats() -> Dict[str, int]:
        return {
            "created": 0,
            "reopened": 0,
            "forwarded": 0,
            "closed": 0,
            "errors": 0,
        }

    def ensure_project(self, target: MirrorTarget) -> int:
        """Resolve (or create) the GitLab project once per process."""
        if target.is_resolved:
            return target.destination_project_id
        project = self.gitlab.ensure_project(self.namespace, target.name)
        target.destination_project_id = int(project.id)
        target.destination_path = project.path_with_namespace
        return target.destination_project_id

    def sync_repository(self, target: MirrorTarget) -> Dict[str, Any]:
        """Sync one repository: ensure project, mirror, bridge PRs, close orphans."""
        repo = target.name
        stats = self._new_stats()

        try:
            project_id = self.ensure_project(target)
        except Exception as e:
            logger.warning(f"[{repo}] Could not get/create GitLab project, skipping: {e}")
            return {"status": SyncStatus.FAILED.value, "error": str(e), "stats": stats}

        try:
            self.mirror.sync(repo, target.destination_path)
        except Exception as e:
            logger.warning(f"[{repo}] Git sync failed, skipping PR bridge: {e}")
            return {"status": SyncStatus.FAILED.value, "error": str(e), "stats": stats}

        try:
            pull_requests = self.tfs.list_active_pull_requests(repo)
        except Exception as e:
            logger.warning(f"[{repo}] Could not fetch TFS PRs: {e}")
            return {"status": SyncStatus.FAILED.value, "error": str(e), "stats": stats}

        if pull_requests:
            self.bridge_pull_requests(target, project_id, pull_requests, stats)
        self.close_orphaned_merge_requests(target, project_id, stats)

        logger.info(f"[{repo}] Done: {stats}")
        return {"status": SyncStatus.SUCCESS.value, "stats": stats}

    def index_merge_requests(self, project_id: int) -> Dict[int, DestinationMergeRequest]:
        """Map TFS PR id -> bridged MR (any state). Newest MR wins on duplicates."""
        index: Dict[int, DestinationMergeRequest] = {}
        for mr in self.gitlab.list_merge_requests(project_id, labels=[self.label], state="all"):
            pr_id = self.markers.extract_correspondence(mr.description)
            if pr_id is not None and pr_id not in index:
                index[pr_id] = mr
        return index

    def bridge_pull_requests(
        self,
        target: MirrorTarget,
        project_id: int,
        pull_requests: List[SourcePullRequest],
        stats: Dict[str, int],
    ) -> None:
        repo = target.name
        try:
            index = self.index_merge_requests(project_id)
        except Exception as e:
            logger.warning(f"[{repo}] Could not list GitLab MRs, skipping PR bridge: {e}")
            stats["errors"] += 1
            return

        for pr in pull_requests:
            try:
                mr = index.get(pr.pull_request_id)
                if mr is None:
                    created = self.create_merge_request(target, project_id, pr)
                    if created is None:
                        stats["errors"] += 1
                    else:
                        index[pr.pull_request_id] = created
                        stats["created"] += 1
                    continue

                if mr.state == "closed":
                    # Only undo our own close; an MR a person closed stays closed.
                    if mr.closed_by != self.gitlab.current_username():
                        logger.info(
                            f"[{repo}] GitLab MR !{mr.iid} was closed by @{mr.closed_by}, leaving it closed"
                        )
                        continue
                    logger.info(
                        f"[{repo}] Reopening GitLab MR !{mr.iid} (TFS PR #{pr.pull_request_id} is active)"
                    )
                    self.gitlab.reopen_merge_request(project_id, mr.iid)
                    mr.state = "opened"
                    mr.closed_by = None
                    stats["reopened"] += 1

                result = self.forwarder.forward(target, project_id, mr, pr.pull_request_id)
                stats["forwarded"] += result["forwarded"]
                stats["errors"] += result["failed"]
            except Exception as e:
                logger.warning(f"[{repo}] Failed to bridge TFS PR #{pr.pull_request_id}: {e}")
                stats["errors"] += 1

    def merge_request_payload(self, pr: SourcePullRequest) -> Dict[str, Any]:
        header = f"**Mirrored from TFS PR #{pr.pull_request_id}**"
        body = self.markers.neutralize(pr.description)
        base = f"{header}\n\n{body}" if body else header
        return {
            "title": f"[TFS #{pr.pull_request_id}] {pr.title}",
            "source_branch": pr.source_branch,
            "target_branch": pr.target_branch,
            "description": self.markers.tag(base, pr.pull_request_id),
            "labels": self.label,
            "remove_source_branch": False,
        }

    def create_merge_request(
        self, target: MirrorTarget, project_id: int, pr: SourcePullRequest
    ) -> Optional[DestinationMergeRequest]:
        repo = target.name
        logger.info(f"[{repo}] Creating GitLab MR for TFS PR #{pr.pull_request_id}: {pr.title}")
        try:
            mr = self.gitlab.create_merge_request(project_id, self.merge_request_payload(pr))
        except Exception as e:
            logger.warning(
                f"[{repo}] Failed to create GitLab MR for TFS PR #{pr.pull_request_id} "
                f"(branches may not exist yet): {e}"
            )
            return None
        logger.info(f"[{repo}] GitLab MR !{mr.iid} created for TFS PR #{pr.pull_request_id}")
        return mr

    def close_orphaned_merge_requests(
        self, target: MirrorTarget, project_id: int, stats: Dict[str, int]
    ) -> None:
        """Close open bridged MRs whose TFS PR is completed, abandoned or gone."""
        repo = target.name
        try:
            open_mrs = self.gitlab.list_merge_requests(project_id, labels=[self.label], state="opened")
        except Exception as e:
            logger.warning(f"[{repo}] Could not list open GitLab MRs: {e}")
            stats["errors"] += 1
            return

        for mr in open_mrs:
            pr_id = self.markers.extract_correspondence(mr.description)
            if pr_id is None:
                continue
            try:
                status = self.tfs.get_pull_request_status(repo, pr_id)
            except Exception as e:
                logger.warning(f"[{repo}] Could not get status of TFS PR #{pr_id}: {e}")
                stats["errors"] += 1
                continue
            if status == ACTIVE:
                continue
            logger.info(f"[{repo}] Closing GitLab MR !{mr.iid} (TFS PR #{pr_id} is '{status}')")
            try:
                self.gitlab.close_merge_request(project_id, mr.iid)
                stats["closed"] += 1
            except Exception as e:
                logger.warning(f"[{repo}] Failed to close GitLab MR !{mr.iid}: {e}")
                stats["errors"] += 1
