"""Domain models"""

from tfs_gitlab_sync.models.merge_request import DestinationMergeRequest, ReviewNote
from tfs_gitlab_sync.models.mirror_target import MirrorTarget
from tfs_gitlab_sync.models.pull_request import SourcePullRequest
from tfs_gitlab_sync.models.sync_status import SyncStatus

__all__ = [
    "MirrorTarget",
    "SourcePullRequest",
    "DestinationMergeRequest",
    "ReviewNote",
    "SyncStatus",
]
