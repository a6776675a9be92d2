"""TFS pull request model"""
from dataclasses import dataclass
from typing import Any, Dict

ACTIVE = "active"


def strip_ref(ref_name: str) -> str:
    """refs/heads/feature/x -> feature/x"""
    prefix = "refs/heads/"
    if ref_name.startswith(prefix):
        return ref_name[len(prefix):]
    return ref_name


@dataclass(frozen=True)
class SourcePullRequest:
    """Snapshot of an active TFS pull request for one poll cycle."""

    pull_request_id: int
    title: str
    source_branch: str
    target_branch: str
    description: str = ""
    status: str = ACTIVE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SourcePullRequest":
        return cls(
            pull_request_id=int(data["pullRequestId"]),
            title=data.get("title") or "",
            source_branch=strip_ref(data.get("sourceRefName") or ""),
            target_branch=strip_ref(data.get("targetRefName") or ""),
            description=data.get("description") or "",
            status=data.get("status") or "",
        )
