"""Services"""

from tfs_gitlab_sync.services.comment_forwarder import ReviewCommentForwarder
from tfs_gitlab_sync.services.git_mirror import GitMirror
from tfs_gitlab_sync.services.gitlab_client import GitLabClient
from tfs_gitlab_sync.services.markers import MarkerCodec
from tfs_gitlab_sync.services.pr_bridge import PullRequestBridge
from tfs_gitlab_sync.services.sync_service import SyncService
from tfs_gitlab_sync.services.tfs_client import TfsClient

__all__ = [
    "GitLabClient",
    "GitMirror",
    "MarkerCodec",
    "PullRequestBridge",
    "ReviewCommentForwarder",
    "SyncService",
    "TfsClient",
]
