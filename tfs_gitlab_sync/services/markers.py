"""Sync state embedded in merge request descriptions.

Two hidden HTML comments carry all durable state of the bridge:

* ``<!-- TFS_PR_ID:42 -->``  links a GitLab MR to its TFS pull request.
  Written once when the MR is created and never rewritten.
* ``<!-- LAST_SYNC:101 -->`` is the id of the last GitLab note forwarded to
  TFS. Only ever moves forward.

Forwarded TFS comments additionally carry ``<!-- GITLAB_NOTE_ID:101 -->`` so
a thread that was posted but not yet recorded by the watermark is recognised.

The format is shared with existing mirrors and must not change.
"""

import re
from typing import Optional, Set


class MarkerCodec:
    """Encode/decode sync markers. Pure text transforms, no I/O."""

    PR_KEY = "TFS_PR_ID"
    WATERMARK_KEY = "LAST_SYNC"
    NOTE_KEY = "GITLAB_NOTE_ID"

    _PR_MARKER_RE = re.compile(r"<!--\s*TFS_PR_ID:\s*(?P<id>\d+)\s*-->")
    _WATERMARK_RE = re.compile(r"<!--\s*LAST_SYNC:\s*(?P<id>\d+)\s*-->")
    # Also matches malformed watermarks so replace_watermark leaves exactly one.
    _ANY_WATERMARK_RE = re.compile(r"[ \t]*<!--\s*LAST_SYNC:[^>]*-->")
    _NOTE_MARKER_RE = re.compile(r"<!--\s*GITLAB_NOTE_ID:\s*(?P<id>\d+)\s*-->")
    _MARKER_OPEN_RE = re.compile(r"<!--(?=\s*(?:TFS_PR_ID|LAST_SYNC|GITLAB_NOTE_ID)\s*:)")

    @classmethod
    def _pr_marker(cls, source_pr_id: int) -> str:
        return f"<!-- {cls.PR_KEY}:{int(source_pr_id)} -->"

    @classmethod
    def _watermark_marker(cls, note_id: int) -> str:
        return f"<!-- {cls.WATERMARK_KEY}:{int(note_id)} -->"

    @classmethod
    def note_marker(cls, note_id: int) -> str:
        return f"<!-- {cls.NOTE_KEY}:{int(note_id)} -->"

    @classmethod
    def neutralize(cls, text: Optional[str]) -> str:
        """Escape marker-like comments in free text so they can't be parsed as ours."""
        return cls._MARKER_OPEN_RE.sub("&lt;!--", text or "")

    @classmethod
    def tag(cls, description: Optional[str], source_pr_id: int) -> str:
        """Append the correspondence marker. Only used when the MR is created."""
        desc = description or ""
        if cls.extract_correspondence(desc) is not None:
            return desc
        return f"{desc}\n\n{cls._pr_marker(source_pr_id)}"

    @classmethod
    def extract_correspondence(cls, description: Optional[str]) -> Optional[int]:
        if not description:
            return None
        matches = cls._PR_MARKER_RE.findall(description)
        if not matches:
            return None
        return int(matches[-1])

    @classmethod
    def extract_watermark(cls, description: Optional[str]) -> int:
        """Last forwarded note id; 0 when absent or malformed."""
        if not description:
            return 0
        matches = cls._WATERMARK_RE.findall(description)
        if not matches:
            return 0
        return int(matches[-1])

    @classmethod
    def replace_watermark(cls, description: Optional[str], note_id: int) -> str:
        desc = cls._ANY_WATERMARK_RE.sub("", description or "").rstrip()
        marker = cls._watermark_marker(note_id)
        if not desc:
            return marker
        return f"{desc}\n{marker}"

    @classmethod
    def extract_note_ids(cls, text: Optional[str]) -> Set[int]:
        if not text:
            return set()
        return {int(m) for m in cls._NOTE_MARKER_RE.findall(text)}
