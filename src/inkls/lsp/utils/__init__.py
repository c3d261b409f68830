"""LSP utility modules for the Ink language server."""

from .document_event_coordinator import DocumentEventCoordinator
from .models import (
    Capabilities,
    CompileRequest,
    CompilerOutput,
    DocumentDiagnostic,
    DocumentTarget,
    DocumentUri,
    Mirror,
    MirrorEntry,
    OpenDocument,
    Workspace,
    WorkspaceState,
)
from .notifier import LanguageServerNotifier

__all__ = [
    "DocumentEventCoordinator",
    "LanguageServerNotifier",
    "Capabilities",
    "CompileRequest",
    "CompilerOutput",
    "DocumentDiagnostic",
    "DocumentTarget",
    "DocumentUri",
    "Mirror",
    "MirrorEntry",
    "OpenDocument",
    "Workspace",
    "WorkspaceState",
]
