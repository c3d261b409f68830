"""LSP features for the Ink language server."""

from .commands.commands import register_commands
from .diagnostics.diagnostics import CompilationService, DiagnosticsPublisher, register_diagnostics
from .workspace_folders.workspace_folders import register_workspace_events

__all__ = [
    "register_commands",
    "register_diagnostics",
    "register_workspace_events",
    "CompilationService",
    "DiagnosticsPublisher",
]
