"""Sync status enumeration"""
import enum


class SyncStatus(str, enum.Enum):
    """Outcome of one repository's cycle"""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
