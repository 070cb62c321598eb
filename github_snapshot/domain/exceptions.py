from typing import Optional


class SnapshotException(Exception):
    """Base exception for all snapshot-related errors."""
    pass

class MissingCredentialException(SnapshotException):
    """Raised when no GitHub token is supplied."""
    def __init__(self, message: str = "GITHUB_TOKEN is required."):
        super().__init__(message)

class ConfigurationException(SnapshotException):
    """Raised when a required setting is missing or invalid."""
    pass

class GitHubRequestException(SnapshotException):
    """Raised when the GitHub GraphQL aggregate query cannot be completed."""
    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        suffix = f" (status: {status})" if status is not None else ""
        super().__init__(f"{message}{suffix}")

class InvalidCredentialException(SnapshotException):
    """Raised when GitHub rejects the supplied token (HTTP 401)."""
    def __init__(self, message: str = "GitHub rejected the supplied token."):
        super().__init__(message)
