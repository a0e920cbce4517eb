"""
Exception hierarchy for goal-sync.

This module defines custom exceptions with clear messages and
actionable guidance for users.
"""


class GoalSyncError(Exception):
    """Base exception for all goal-sync errors."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


# Issue tracker errors


class IssueTrackerError(GoalSyncError):
    """Base class for remote issue tracker errors."""


class GitHubCLINotFoundError(IssueTrackerError):
    """The gh CLI tool is not installed or not in PATH."""

    def __init__(self) -> None:
        super().__init__(
            "GitHub CLI (gh) not found",
            "Install it from https://cli.github.com/ and ensure it's in your PATH",
        )


class TrackerAuthError(IssueTrackerError):
    """Authentication with the issue tracker failed or is not configured."""

    def __init__(self, details: str = "") -> None:
        message = "Issue tracker authentication failed"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Run 'gh auth login' (GitHub) or check your API token (Gitea)",
        )


class TrackerAPIError(IssueTrackerError):
    """The issue tracker rejected a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        status_info = f" (HTTP {status_code})" if status_code else ""
        super().__init__(
            f"Issue tracker API error{status_info}: {message}",
            "Check that the repository exists and you have access to it",
        )

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class TrackerNetworkError(IssueTrackerError):
    """Network error communicating with the issue tracker."""

    def __init__(self, details: str = "") -> None:
        message = "Network error connecting to the issue tracker"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check your internet connection and rerun the command to resume",
        )


class TrackerRateLimitError(IssueTrackerError):
    """Issue tracker API rate limit exceeded."""

    def __init__(self, reset_time: str | None = None) -> None:
        message = "Issue tracker rate limit exceeded"
        hint = "Wait a few minutes, increase --sleep, and rerun the command to resume"
        if reset_time:
            hint = f"Rate limit resets at {reset_time}. Wait and rerun the command to resume."
        super().__init__(message, hint)


class TrackerTimeoutError(IssueTrackerError):
    """An issue tracker call timed out."""

    def __init__(self, timeout_seconds: int) -> None:
        super().__init__(
            f"Issue tracker call timed out after {timeout_seconds} seconds",
            "Check your network or raise --timeout",
        )


# Goal document errors


class GoalDocumentError(GoalSyncError):
    """Base class for goal document errors."""


class GoalLoadError(GoalDocumentError):
    """A goal document is malformed."""

    def __init__(self, file_path: str, field: str | None = None, details: str = "") -> None:
        self.file_path = file_path
        self.field = field
        message = f"Malformed goal document '{file_path}'"
        if field:
            message = f"{message}: missing or invalid field '{field}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Fix the document's metadata table and rerun",
        )


class MilestoneDirectoryError(GoalDocumentError):
    """The same milestone period is encoded by more than one directory."""

    def __init__(self, period: str, paths: list[str]) -> None:
        self.period = period
        super().__init__(
            f"Ambiguous milestone period '{period}': found in {', '.join(paths)}",
            "Keep exactly one directory per milestone period",
        )


class GoalWriteError(GoalDocumentError):
    """Failed to write a goal document."""

    def __init__(self, file_path: str, details: str = "") -> None:
        message = f"Failed to update goal document '{file_path}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check that you have write permissions, then rerun the command to resume",
        )


# Index and reconciliation errors


class IssueIndexError(GoalSyncError):
    """The current tracking issues could not be listed."""

    def __init__(self, repository: str, details: str = "") -> None:
        message = f"Could not list tracking issues for '{repository}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "No changes were made; fix the problem and rerun the command",
        )


class IdentityConflictError(GoalSyncError):
    """An issue number is already claimed by a different goal."""

    def __init__(self, identity: str, number: int, other: str) -> None:
        super().__init__(
            f"Issue #{number} recorded for '{identity}' belongs to '{other}'",
            "Correct the 'Tracking issue' row in one of the goal documents",
        )


class ForeignTrackingIssueError(GoalSyncError):
    """A goal document records a tracking issue in another repository."""

    def __init__(self, identity: str, reference: str, repository: str) -> None:
        super().__init__(
            f"'{identity}' records tracking issue {reference}, outside {repository}",
            f"Point the 'Tracking issue' row at an issue in {repository}, or clear it",
        )


class UnmanagedIssueError(GoalSyncError):
    """The issue a goal document records was never a tracking issue."""

    def __init__(self, identity: str, number: int, label: str) -> None:
        super().__init__(
            f"Issue #{number} recorded for '{identity}' has no marker and no '{label}' label",
            f"Label #{number} '{label}' to adopt it, or correct the 'Tracking issue' row",
        )


# Configuration errors


class ConfigError(GoalSyncError):
    """Configuration error."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message, hint)


class InvalidRepositoryError(ConfigError):
    """Invalid repository format."""

    def __init__(self, repo: str) -> None:
        super().__init__(
            f"Invalid repository format: '{repo}'",
            "Use format 'owner/repo', e.g., 'rust-lang/rust-project-goals'",
        )
