"""Mirror target model"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class MirrorTarget:
    """One TFS repository replicated into GitLab.

    The destination fields are filled in by the first successful
    ensure-project call and reused for the rest of the process lifetime.
    """

    name: str
    mirror_path: Path
    destination_project_id: Optional[int] = None
    destination_path: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.destination_project_id is not None and bool(self.destination_path)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "mirror_path": str(self.mirror_path),
            "destination_project_id": self.destination_project_id,
            "destination_path": self.destination_path,
        }
