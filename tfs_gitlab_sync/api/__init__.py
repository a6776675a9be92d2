"""API routes"""

from tfs_gitlab_sync.api import sync

__all__ = ["sync"]
