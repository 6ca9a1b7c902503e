"""
Error taxonomy shared by the store, the artifact coordinator and the sync engine.
Every error carries a short machine-readable ``reason`` that routers return to callers.
"""

from __future__ import annotations
from typing import List, Optional


class FrameArtError(Exception):
    reason = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.reason, "message": self.message}


class ConfigurationError(FrameArtError):
    """Repo, remote, branch or LFS misconfigured. Fatal to sync, not to serving."""
    reason = "configuration"

    def __init__(self, message: str = "", errors: Optional[List[str]] = None) -> None:
        super().__init__(message or "; ".join(errors or []))
        self.errors = list(errors or [])


class ConflictError(FrameArtError):
    """Naming collision or a remote that has diverged. Never auto-resolved."""
    reason = "conflict"


class MalformedFilenameError(FrameArtError):
    reason = "malformed_filename"


class CorruptStoreError(FrameArtError):
    """metadata.json is unreadable. Must not be papered over by reinitialising."""
    reason = "corrupt_store"


class UploadError(FrameArtError):
    reason = "upload_failed"


class SyncTimeoutError(FrameArtError):
    """A git operation did not finish in time. Recoverable: retry later."""
    reason = "sync_timeout"


class NotFoundError(FrameArtError):
    reason = "not_found"


class LockTimeoutError(FrameArtError):
    reason = "lock_timeout"


class GitCommandError(FrameArtError):
    reason = "git_command_failed"

    def __init__(self, args: List[str], returncode: int, stderr: str = "", stdout: str = "") -> None:
        detail = (stderr or stdout).strip()
        super().__init__(f"git {' '.join(args)} failed ({returncode}): {detail}")
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout


class InvalidRequestError(FrameArtError):
    """Caller supplied a missing or unusable value (empty tag, TV without an IP, ...)."""
    reason = "invalid_request"
