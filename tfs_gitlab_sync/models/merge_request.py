"""GitLab merge request and note models"""
from dataclasses import dataclass, field
from typing import Any, List, Optional


def _safe_attr(obj: Any, name: str, default: Any = None) -> Any:
    """Get attribute or dict key safely (python-gitlab resources and plain dicts)."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


@dataclass
class DestinationMergeRequest:
    """The GitLab MR mirroring one TFS pull request."""

    iid: int
    title: str = ""
    description: str = ""
    state: str = "opened"
    labels: List[str] = field(default_factory=list)
    # Username that closed the MR, None while open.
    closed_by: Optional[str] = None

    @classmethod
    def from_gitlab(cls, mr: Any) -> "DestinationMergeRequest":
        return cls(
            iid=int(_safe_attr(mr, "iid")),
            title=_safe_attr(mr, "title") or "",
            description=_safe_attr(mr, "description") or "",
            state=_safe_attr(mr, "state") or "opened",
            labels=list(_safe_attr(mr, "labels") or []),
            closed_by=_safe_attr(_safe_attr(mr, "closed_by"), "username"),
        )


@dataclass(frozen=True)
class ReviewNote:
    """A note (comment) on a GitLab merge request."""

    id: int
    author: str
    body: str
    system: bool = False

    @classmethod
    def from_gitlab(cls, note: Any) -> "ReviewNote":
        return cls(
            id=int(_safe_attr(note, "id")),
            author=_safe_attr(_safe_attr(note, "author"), "username") or "",
            body=_safe_attr(note, "body") or "",
            system=bool(_safe_attr(note, "system", False)),
        )
