from __future__ import annotations

from typing import override


class ShaderEditError(Exception):
    """Base exception for shaderedit errors."""

    def format_user_message(self) -> str:
        """Format a user-friendly error message."""
        return str(self)

    def get_suggestion(self) -> str | None:
        """Return actionable suggestion for resolving the error."""
        return None


class ConfigError(ShaderEditError):
    """Raised when a config file cannot be read or fails validation."""

    pass


class ProjectError(ShaderEditError):
    """Base class for project-related errors."""

    pass


class ProjectFileError(ProjectError):
    """Raised when a project file is missing, unreadable or malformed."""

    @override
    def get_suggestion(self) -> str:
        return "Check that the project file exists and lists passes with 'name', 'vs' and 'ps'"


class PassNotFoundError(ProjectError):
    """Raised when a pass name does not exist in the project."""

    _name: str

    def __init__(self, name: str) -> None:
        self._name = name
        super().__init__(f"Unknown shader pass: '{name}'")

    @override
    def __reduce__(self) -> tuple[type, tuple[str]]:
        return (self.__class__, (self._name,))


class DuplicatePassError(ProjectError):
    """Raised when adding or renaming a pass would duplicate an existing name."""

    pass


class UnsavedChangesError(ShaderEditError):
    """Raised when closing a panel with unsaved edits and no save decision."""

    @override
    def get_suggestion(self) -> str:
        return "Pass save=True to keep the edits or save=False to discard them"


class TrackingError(ShaderEditError):
    """Base class for file-change tracking errors."""

    pass


class NotifierInitError(TrackingError):
    """Raised when the OS change-notification mechanism itself is unusable.

    Fatal to the watcher (not to the editor): tracking stops and must be
    re-enabled explicitly.
    """

    @override
    def get_suggestion(self) -> str:
        return "Raise the OS watch limit or enable tracking.force_polling, then re-enable tracking"


class WatchAcquireError(TrackingError):
    """Raised when a single directory cannot be watched (missing, unreadable)."""

    pass


class EventReadError(TrackingError):
    """Raised on a transient failure reading change events."""

    pass
