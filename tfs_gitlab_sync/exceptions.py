"""Error types raised by the sync engine."""


class SyncError(Exception):
    """Base exception for all sync errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class TfsApiError(SyncError):
    """Error talking to the TFS / Azure DevOps REST API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        details = {"status_code": status_code}
        if response_body:
            details["response_body"] = response_body[:500]
        super().__init__(message, details=details)
        self.status_code = status_code
        self.response_body = response_body


class GitMirrorError(SyncError):
    """A git subprocess failed or timed out."""

    def __init__(self, message: str, command: str | None = None, stderr: str | None = None):
        super().__init__(message, details={"command": command, "stderr": stderr})
        self.command = command
        self.stderr = stderr
