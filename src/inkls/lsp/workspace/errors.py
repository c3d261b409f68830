"""Error taxonomy of the workspace compilation orchestrator.

None of these are fatal: every one is caught by ``WorkspaceRegistry`` (or the
LSP feature calling into it), logged, and turned into a notification where
the user needs to know about it.
"""

from pathlib import Path
from typing import Optional


class WorkspaceError(Exception):
    """Base class for recoverable workspace errors."""
    pass


class MirrorCreationError(WorkspaceError):
    """Raised when a workspace mirror cannot be created or fully populated.

    ``mirror_path`` is set when a scratch directory was already created and
    is left behind, partially populated.
    """

    def __init__(self, message: str, root_path: Optional[Path] = None, mirror_path: Optional[Path] = None):
        super().__init__(message)
        self.root_path = root_path
        self.mirror_path = mirror_path


class FileCopyError(WorkspaceError):
    """Raised when a single file cannot be written into a mirror."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when a document or command references a path outside every workspace."""

    def __init__(self, path: Path):
        super().__init__(
            f"The temporary workspace is missing or {path.name} is not in the workspace."
        )
        self.path = path


class CompilerInvocationError(WorkspaceError):
    """Raised when the compiler cannot be spawned or exceeds its allotted time."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class DiagnosticParseError(WorkspaceError):
    """Raised when a failing compiler report yields no recognizable diagnostic."""

    def __init__(self, message: str, raw_output: str = "", exit_status: Optional[int] = None):
        super().__init__(message)
        self.raw_output = raw_output
        self.exit_status = exit_status
