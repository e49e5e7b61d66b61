"""
Error taxonomy for marklog.

Every error raised by the core derives from MarklogError and carries an
``exit_code`` the calling layer can hand back to the shell, plus structured
attributes so callers never have to parse messages.
"""
from typing import Optional


class MarklogError(Exception):
    """Base exception for all marklog errors."""

    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateUrl(MarklogError):
    """Raised when a URL already maps to an active bookmark."""

    exit_code = 2

    def __init__(self, url: str, existing_id: Optional[int] = None) -> None:
        self.url = url
        self.existing_id = existing_id
        if existing_id is not None:
            message = f"URL already exists (bookmark {existing_id}): {url}"
        else:
            message = f"URL already exists: {url}"
        super().__init__(message)


class NoSuchId(MarklogError):
    """Raised when an explicit single bookmark id does not exist."""

    exit_code = 3

    def __init__(self, bookmark_id: int) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark with ID {bookmark_id} not found")


class MalformedTagExpression(MarklogError):
    """Raised when a tag expression cannot be parsed."""

    exit_code = 4

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"Malformed tag expression '{expression}': {reason}")


class EmptyLog(MarklogError):
    """Raised when undo is requested but the undo log holds nothing."""

    exit_code = 5

    def __init__(self, requested: int = 1) -> None:
        self.requested = requested
        super().__init__("Nothing to undo")


class StoreUnavailable(MarklogError):
    """Raised on I/O or transactional failure of the underlying store."""

    exit_code = 6

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Database error: {reason}")


class InvalidSearchPattern(MarklogError):
    """Raised when a regex search keyword does not compile."""

    exit_code = 4

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid search pattern '{pattern}': {reason}")


class MutationVetoed(MarklogError):
    """Raised when a pre-mutation hook refuses an operation."""

    exit_code = 7

    def __init__(self, plugin_name: str, operation: str, reason: str = "") -> None:
        self.plugin_name = plugin_name
        self.operation = operation
        self.reason = reason
        message = f"Plugin '{plugin_name}' vetoed {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
