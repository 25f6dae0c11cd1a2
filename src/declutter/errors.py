"""Error taxonomy for declutter.

Per-item errors are recovered where they happen and end up as
``FailedEntry`` records. Only ``SessionError`` is meant to reach the caller.
"""


class DeclutterError(Exception):
    """Base class for declutter errors."""


class SessionError(DeclutterError):
    """A scan session could not be created at all (e.g. no home directory)."""


class HashFailure(DeclutterError):
    """A file could not be read for hashing."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class SoftDeleteFailure(DeclutterError):
    """Moving an item to the trash failed."""


class DirectRemoveFailure(DeclutterError):
    """Removing an item in place failed."""


class PrivilegeError(DeclutterError):
    """Privilege escalation was declined or is unavailable."""


class TransformValidationFailure(DeclutterError):
    """A transformed binary did not pass validation."""
