"""Workspace compilation orchestrator: mirrors, scheduling, compiler and diagnostics."""

from .compiler import CompilerInvoker
from .documents import DocumentSynchronizer
from .errors import (
    CompilerInvocationError,
    DiagnosticParseError,
    FileCopyError,
    MirrorCreationError,
    WorkspaceError,
    WorkspaceNotFoundError,
)
from .mirror import DirectoryMirror
from .registry import CompileSummary, ConnectionNotifier, DiagnosticsSink, SyncStatus, WorkspaceRegistry
from .scheduler import CompileOutcome, CompileScheduler
from .translator import DiagnosticTranslator

__all__ = [
    "CompilerInvoker",
    "DocumentSynchronizer",
    "DirectoryMirror",
    "CompileScheduler",
    "CompileOutcome",
    "DiagnosticTranslator",
    "WorkspaceRegistry",
    "CompileSummary",
    "SyncStatus",
    "ConnectionNotifier",
    "DiagnosticsSink",
    "WorkspaceError",
    "MirrorCreationError",
    "FileCopyError",
    "WorkspaceNotFoundError",
    "CompilerInvocationError",
    "DiagnosticParseError",
]
