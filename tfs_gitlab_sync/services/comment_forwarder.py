"""Forward AI review notes from GitLab merge requests to TFS pull requests"""

import logging
import re
from typing import Dict, List, Optional, Set

from tfs_gitlab_sync.models import DestinationMergeRequest, MirrorTarget, ReviewNote
from tfs_gitlab_sync.services.gitlab_client import GitLabClient
from tfs_gitlab_sync.services.markers import MarkerCodec
from tfs_gitlab_sync.services.tfs_client import TfsClient

logger = logging.getLogger(__name__)


class ReviewCommentForwarder:
    """Posts each AI review note once, in ascending id order, as a TFS thread.

    The MR's watermark marker records the last forwarded note. It only moves
    across the contiguous run of notes that actually reached TFS, so a failed
    post is retried next cycle instead of being skipped.
    """

    def __init__(
        self,
        tfs_client: TfsClient,
        gitlab_client: GitLabClient,
        reviewer_pattern: str = "coderabbit",
        markers: Optional[MarkerCodec] = None,
    ):
        self.tfs = tfs_client
        self.gitlab = gitlab_client
        self.reviewer_re = re.compile(reviewer_pattern, re.IGNORECASE)
        self.markers = markers or MarkerCodec()

    def is_review_note(self, note: ReviewNote) -> bool:
        if note.system:
            return False
        return bool(note.author) and self.reviewer_re.search(note.author) is not None

    def pending_notes(self, notes: List[ReviewNote], watermark: int) -> List[ReviewNote]:
        return sorted(
            (n for n in notes if n.id > watermark and self.is_review_note(n)),
            key=lambda n: n.id,
        )

    def format_thread(self, note: ReviewNote, mr_iid: int) -> str:
        body = self.markers.neutralize(note.body)
        return (
            f"**AI review from @{note.author} (GitLab MR !{mr_iid}):**\n\n"
            f"{body}\n\n{self.markers.note_marker(note.id)}"
        )

    def _already_forwarded(self, repository: str, pull_request_id: int) -> Set[int]:
        """Note ids already present on the TFS PR (posted but maybe not watermarked)."""
        seen: Set[int] = set()
        for thread in self.tfs.list_threads(repository, pull_request_id):
            for comment in thread.get("comments") or []:
                seen |= self.markers.extract_note_ids(comment.get("content"))
        return seen

    def forward(
        self,
        target: MirrorTarget,
        project_id: int,
        mr: DestinationMergeRequest,
        pull_request_id: int,
    ) -> Dict[str, int]:
        """Forward unseen review notes of one MR. Returns counters."""
        stats = {"forwarded": 0, "failed": 0}
        repo = target.name
        last_sync_id = self.markers.extract_watermark(mr.description)

        notes = self.gitlab.list_merge_request_notes(project_id, mr.iid)
        pending = self.pending_notes(notes, last_sync_id)
        if not pending:
            return stats

        try:
            existing = self._already_forwarded(repo, pull_request_id)
        except Exception as e:
            logger.warning(
                f"[{repo}] Could not read threads of TFS PR #{pull_request_id}, "
                f"skipping comment sync this cycle: {e}"
            )
            stats["failed"] += 1
            return stats

        watermark = last_sync_id
        for note in pending:
            if note.id in existing:
                watermark = note.id
                continue
            try:
                self.tfs.create_thread(repo, pull_request_id, self.format_thread(note, mr.iid))
            except Exception as e:
                logger.warning(
                    f"[{repo}] Failed to post note {note.id} to TFS PR #{pull_request_id}: {e}"
                )
                stats["failed"] += 1
                break
            watermark = note.id
            stats["forwarded"] += 1

        if watermark > last_sync_id:
            new_description = self.markers.replace_watermark(mr.description, watermark)
            try:
                self.gitlab.update_merge_request(project_id, mr.iid, {"description": new_description})
                mr.description = new_description
            except Exception as e:
                # Threads carry note markers, so the next cycle won't post them twice.
                logger.warning(f"[{repo}] Failed to update watermark on MR !{mr.iid}: {e}")

        if stats["forwarded"]:
            logger.info(
                f"[{repo}] Forwarded {stats['forwarded']} review comment(s) to TFS PR #{pull_request_id}"
            )
        return stats
