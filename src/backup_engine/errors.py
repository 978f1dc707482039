"""Backup engine exception hierarchy.

Two tiers:

- Run-level errors (``ArchiveError``, ``RestoreInProgressError``,
  ``RequestError`` and the access errors) abort a run before or during
  archive opening and surface to the caller as a single top-level error.
- ``DatasetError`` is unit-level: it is raised by an archive when one
  table's dataset cannot be parsed and is always caught by the table
  restorer, which records it in that table's result.
"""


class BackupEngineError(Exception):
    """Base exception for all backup engine failures."""


class ArchiveError(BackupEngineError):
    """Raised when an archive cannot be found, downloaded, or opened."""


class DatasetError(BackupEngineError):
    """Raised when a single table dataset inside an archive is unparseable."""


class RestoreInProgressError(BackupEngineError):
    """Raised when a restore is requested while another one is running."""


class RequestError(BackupEngineError):
    """Raised for malformed restore/export requests."""


class AuthenticationError(BackupEngineError):
    """Raised when caller authentication is missing or invalid."""


class AuthorizationError(BackupEngineError):
    """Raised when an authenticated caller lacks the admin role."""
