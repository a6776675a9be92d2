"""TFS / Azure DevOps REST API client."""

import base64
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from tfs_gitlab_sync.exceptions import TfsApiError
from tfs_gitlab_sync.models import SourcePullRequest
from tfs_gitlab_sync.models.pull_request import ACTIVE

logger = logging.getLogger(__name__)


class TfsClient:
    """
    Client for the TFS / Azure DevOps git REST API.

    Redirects are followed by hand: on-prem TFS behind NTLM negotiation
    answers with 301/302 hops, and httpx (like most clients) drops the
    Authorization header once the redirect leaves the original origin.
    Every hop here is sent with the same Basic credentials.
    """

    API_VERSION = "1.0"
    MAX_REDIRECTS = 5
    PAGE_SIZE = 100
    NOT_FOUND_STATUS = "notFound"

    def __init__(
        self,
        url: str,
        project: str,
        personal_access_token: str,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            url: Collection URL, without the project segment
            project: Team project name
            personal_access_token: PAT used for Basic auth
            timeout: Per-request timeout in seconds
            verify_ssl: Verify TLS certificates
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.url = url.rstrip("/")
        self.project = project
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._transport = transport

        auth_string = base64.b64encode(f":{personal_access_token}".encode()).decode()
        self.headers = {
            "Authorization": f"Basic {auth_string}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                headers=self.headers,
                timeout=self.timeout,
                verify=self.verify_ssl,
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "TfsClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _build_url(self, path: str) -> str:
        return f"{self.url}/{quote(self.project)}/_apis/git/{path.lstrip('/')}"

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, re-authenticating every redirect hop."""
        for _ in range(self.MAX_REDIRECTS + 1):
            response = self.client.request(method, url, **kwargs)
            if not response.is_redirect:
                return response
            location = response.headers.get("location")
            if not location:
                return response
            next_url = response.url.join(location)
            logger.debug(f"Following redirect {response.status_code} -> {next_url}")
            if response.status_code == 303:
                method = "GET"
                kwargs.pop("json", None)
            url = str(next_url)
        raise TfsApiError(f"Too many redirects for {method} {url}")

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Optional[dict]:
        """
        Make an authenticated request and decode the JSON body.

        Returns None for 404 when ``allow_not_found`` is set.

        Raises:
            TfsApiError: On transport errors, HTTP errors and non-JSON bodies
        """
        url = self._build_url(path)
        query = {"api-version": self.API_VERSION}
        query.update(params or {})
        logger.debug(f"TFS request: {method} {url}")

        try:
            response = self._send(method, url, params=query, **kwargs)
        except httpx.HTTPError as e:
            raise TfsApiError(f"Request failed: {method} {path}: {e}") from e

        if response.status_code == 404 and allow_not_found:
            return None
        if response.status_code >= 400:
            raise TfsApiError(
                f"TFS API request failed: {method} {path} -> {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            # TFS answers 203 with an HTML sign-in page when the PAT is rejected.
            raise TfsApiError(
                f"Unexpected non-JSON response for {method} {path}",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

    @staticmethod
    def _repo(repository: str) -> str:
        return quote(repository, safe="")

    def list_repositories(self) -> List[str]:
        """Names of all repositories in the project."""
        data = self._request("GET", "repositories") or {}
        return [repo["name"] for repo in data.get("value", []) if repo.get("name")]

    def list_active_pull_requests(self, repository: str) -> List[SourcePullRequest]:
        """All active pull requests of a repository (empty if the repo is unknown)."""
        pull_requests: List[SourcePullRequest] = []
        skip = 0
        while True:
            data = self._request(
                "GET",
                f"repositories/{self._repo(repository)}/pullrequests",
                params={
                    "searchCriteria.status": ACTIVE,
                    "status": ACTIVE,
                    "$top": self.PAGE_SIZE,
                    "$skip": skip,
                },
                allow_not_found=True,
            )
            if data is None:
                return pull_requests
            page = data.get("value", [])
            pull_requests.extend(SourcePullRequest.from_api(item) for item in page)
            if len(page) < self.PAGE_SIZE:
                return pull_requests
            skip += len(page)

    def get_pull_request(self, repository: str, pull_request_id: int) -> Optional[SourcePullRequest]:
        data = self._request(
            "GET",
            f"repositories/{self._repo(repository)}/pullrequests/{int(pull_request_id)}",
            allow_not_found=True,
        )
        if not data:
            return None
        return SourcePullRequest.from_api(data)

    def get_pull_request_status(self, repository: str, pull_request_id: int) -> str:
        """active / completed / abandoned, or notFound when the PR does not exist."""
        pr = self.get_pull_request(repository, pull_request_id)
        if pr is None:
            return self.NOT_FOUND_STATUS
        return pr.status or self.NOT_FOUND_STATUS

    def list_threads(self, repository: str, pull_request_id: int) -> List[dict]:
        data = self._request(
            "GET",
            f"repositories/{self._repo(repository)}/pullrequests/{int(pull_request_id)}/threads",
            allow_not_found=True,
        )
        if not data:
            return []
        return data.get("value", [])

    def create_thread(self, repository: str, pull_request_id: int, content: str) -> dict:
        """Post a new active comment thread on a pull request."""
        payload = {
            "comments": [{"parentCommentId": 0, "content": content, "commentType": 1}],
            "status": 1,
        }
        thread = self._request(
            "POST",
            f"repositories/{self._repo(repository)}/pullrequests/{int(pull_request_id)}/threads",
            json=payload,
        )
        logger.debug(f"Created thread on TFS PR #{pull_request_id} in {repository}")
        return thread or {}
