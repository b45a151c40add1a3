"""Error kinds raised while syncing collections.

Per-file errors (ParseError, UpstreamError) are caught by the sync engine
and recorded as failures; ConfigError and FilesystemError are fatal.
"""

from pathlib import Path


class PostmanSyncError(Exception):
    """Base class for every error raised by postman-sync."""


class ConfigError(PostmanSyncError):
    """Required configuration (the API key) is missing."""


class ParseError(PostmanSyncError):
    """A collection definition file is not a well-formed JSON object."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid JSON: {path} ({reason})")


class UpstreamError(PostmanSyncError):
    """The Postman API answered with a non-2xx status, or could not be reached."""

    def __init__(self, method: str, url: str, status: int | None, body: str):
        self.method = method
        self.url = url
        self.status = status
        self.body = body
        if status is None:
            super().__init__(f"{method} failed: {body}")
        else:
            super().__init__(f"{method} failed {status}: {body}")


class FilesystemError(PostmanSyncError):
    """The services directory or the mapping document is not accessible."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
