"""GitLab API client wrapper"""
import gitlab
import logging
from typing import List, Dict, Any, Optional

from tfs_gitlab_sync.models import DestinationMergeRequest, ReviewNote

logger = logging.getLogger(__name__)


class GitLabClient:
    """Wrapper for GitLab API operations used by the bridge"""

    def __init__(self, url: str, access_token: str, timeout: float = 30.0):
        """Initialize GitLab client"""
        self.url = url.rstrip("/")
        self.gl = gitlab.Gitlab(self.url, private_token=access_token, timeout=timeout)
        # Group ids never change once created; resolve each path at most once per process.
        self._group_ids: Dict[str, int] = {}
        self._username: Optional[str] = None

    @staticmethod
    def _is_not_found(exc: Exception) -> bool:
        return getattr(exc, "response_code", None) == 404

    def current_username(self) -> str:
        """Username behind the access token, resolved on first use."""
        if self._username is None:
            try:
                self.gl.auth()
            except Exception as e:
                logger.error(f"Failed to authenticate with GitLab: {e}")
                raise
            self._username = self.gl.user.username
        return self._username

    def _project(self, project_id: int):
        # lazy=True: build the resource without a GET, calls go straight to sub-resources.
        return self.gl.projects.get(project_id, lazy=True)

    # Groups

    def get_group(self, path: str) -> Optional[Any]:
        """Get group by full path, None if it does not exist."""
        try:
            return self.gl.groups.get(path)
        except gitlab.exceptions.GitlabGetError as e:
            if self._is_not_found(e):
                return None
            logger.error(f"Failed to get group {path}: {e}")
            raise

    def create_group(self, path: str) -> Any:
        try:
            group = self.gl.groups.create({"name": path, "path": path, "visibility": "private"})
            logger.info(f"Created GitLab group '{path}' (id={group.id})")
            return group
        except Exception as e:
            logger.error(f"Failed to create group {path}: {e}")
            raise

    def ensure_group(self, path: str) -> int:
        """Resolve or create a group, returning its id."""
        if path in self._group_ids:
            return self._group_ids[path]
        group = self.get_group(path)
        if group is None:
            group = self.create_group(path)
        self._group_ids[path] = int(group.id)
        return self._group_ids[path]

    # Projects

    def get_project(self, path: str) -> Optional[Any]:
        """Get project by ID or full path, None if it does not exist."""
        try:
            return self.gl.projects.get(path)
        except gitlab.exceptions.GitlabGetError as e:
            if self._is_not_found(e):
                return None
            logger.error(f"Failed to get project {path}: {e}")
            raise

    def create_project(self, name: str, namespace_id: int) -> Any:
        try:
            project = self.gl.projects.create(
                {
                    "name": name,
                    "path": name,
                    "namespace_id": int(namespace_id),
                    "visibility": "private",
                    "initialize_with_readme": False,
                    "merge_method": "merge",
                }
            )
            logger.info(f"Created GitLab project '{project.path_with_namespace}' (id={project.id})")
            return project
        except Exception as e:
            logger.error(f"Failed to create project {name}: {e}")
            raise

    def ensure_project(self, namespace: str, name: str) -> Any:
        """Resolve or create ``namespace/name``. Lookup before create."""
        group_id = self.ensure_group(namespace)
        project = self.get_project(f"{namespace}/{name}")
        if project is None:
            project = self.create_project(name, group_id)
        return project

    # Merge requests

    def list_merge_requests(
        self, project_id: int, labels: Optional[List[str]] = None, state: str = "all"
    ) -> List[DestinationMergeRequest]:
        """All merge requests matching labels/state, newest first (all pages)."""
        try:
            params: Dict[str, Any] = {
                "state": state,
                "order_by": "created_at",
                "sort": "desc",
                "per_page": 100,
            }
            if labels:
                params["labels"] = labels
            mrs = self._project(project_id).mergerequests.list(get_all=True, **params)
            return [DestinationMergeRequest.from_gitlab(mr) for mr in mrs]
        except Exception as e:
            logger.error(f"Failed to list merge requests for project {project_id}: {e}")
            raise

    def create_merge_request(self, project_id: int, mr_data: Dict[str, Any]) -> DestinationMergeRequest:
        try:
            mr = self._project(project_id).mergerequests.create(mr_data)
            logger.info(f"Created merge request !{mr.iid} in project {project_id}")
            return DestinationMergeRequest.from_gitlab(mr)
        except Exception as e:
            logger.error(f"Failed to create merge request in project {project_id}: {e}")
            raise

    def update_merge_request(self, project_id: int, mr_iid: int, mr_data: Dict[str, Any]) -> Any:
        try:
            result = self._project(project_id).mergerequests.update(mr_iid, mr_data)
            logger.debug(f"Updated merge request !{mr_iid} in project {project_id}")
            return result
        except Exception as e:
            logger.error(f"Failed to update merge request !{mr_iid} in project {project_id}: {e}")
            raise

    def close_merge_request(self, project_id: int, mr_iid: int) -> Any:
        return self.update_merge_request(project_id, mr_iid, {"state_event": "close"})

    def reopen_merge_request(self, project_id: int, mr_iid: int) -> Any:
        return self.update_merge_request(project_id, mr_iid, {"state_event": "reopen"})

    def list_merge_request_notes(self, project_id: int, mr_iid: int) -> List[ReviewNote]:
        """Get all notes (comments) on a merge request, oldest first"""
        try:
            mr = self._project(project_id).mergerequests.get(mr_iid, lazy=True)
            notes = mr.notes.list(get_all=True, per_page=100, order_by="created_at", sort="asc")
            return [ReviewNote.from_gitlab(n) for n in notes]
        except Exception as e:
            logger.error(f"Failed to get notes for merge request !{mr_iid}: {e}")
            raise
