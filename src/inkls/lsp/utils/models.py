"""
Data models for the Ink language server.

This module defines the records shared by the workspace orchestrator and
the LSP features: workspaces and their lifecycle states, mirror entries,
generation-tagged compile requests, and translated diagnostics.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Set, Union

from lsprotocol import types


class WorkspaceState(str, Enum):
    """
    Lifecycle of a workspace.

    ``UNINITIALIZED -> MIRROR_PENDING -> READY <-> COMPILE_IN_FLIGHT -> REMOVED``

    A workspace whose mirror could not be created stays ``MIRROR_PENDING``
    and is retried on the next compile trigger.
    """

    UNINITIALIZED = "uninitialized"
    MIRROR_PENDING = "mirror_pending"
    READY = "ready"
    COMPILE_IN_FLIGHT = "compile_in_flight"
    REMOVED = "removed"


@dataclass
class Capabilities:
    """Client capabilities the server cares about. Defaults to none."""

    configuration: bool = False
    workspace_folder: bool = False
    diagnostic: bool = False

    @classmethod
    def from_client(cls, client_capabilities: Optional[types.ClientCapabilities]) -> "Capabilities":
        capabilities = cls()
        if client_capabilities is None:
            return capabilities

        workspace = client_capabilities.workspace
        if workspace is not None:
            capabilities.configuration = bool(workspace.configuration)
            capabilities.workspace_folder = bool(workspace.workspace_folders)

        if client_capabilities.text_document is not None:
            capabilities.diagnostic = bool(client_capabilities.text_document.publish_diagnostics)

        return capabilities


@dataclass(frozen=True)
class MirrorEntry:
    """
    A source file present in a mirror.

    Attributes:
        relative_path: Path of the file relative to the workspace root
        fingerprint: SHA-256 of the bytes last written to the mirror
        size: Number of bytes last written
    """

    relative_path: PurePosixPath
    fingerprint: str
    size: int


@dataclass
class Mirror:
    """A private copy of a workspace's source tree."""

    path: Path
    entries: Dict[PurePosixPath, MirrorEntry] = field(default_factory=dict)

    @property
    def output_path(self) -> Path:
        """Where the compiled story is written, beside the mirror rather than inside it."""
        return self.path.with_name(f"{self.path.name}.json")


@dataclass
class Workspace:
    """
    One editor-reported workspace folder.

    Attributes:
        uri: URI of the client's ``WorkspaceFolder``, used as identifier
        root_path: File system path of the folder
        name: Display name reported by the client
        mirror: The mirror, only set once it was successfully created
        state: Current lifecycle state
        published_uris: Document URIs the last accepted compile published for
    """

    uri: str
    root_path: Path
    name: str = ""
    mirror: Optional[Mirror] = None
    state: WorkspaceState = WorkspaceState.UNINITIALIZED
    published_uris: Set[str] = field(default_factory=set)
    io_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def mirror_path(self) -> Optional[Path]:
        return self.mirror.path if self.mirror else None

    @property
    def is_ready(self) -> bool:
        return self.mirror is not None and self.state in (
            WorkspaceState.READY,
            WorkspaceState.COMPILE_IN_FLIGHT,
        )


@dataclass(frozen=True)
class CompileRequest:
    """A compile trigger tagged with the workspace's generation counter."""

    workspace_id: str
    generation: int


@dataclass(frozen=True)
class CompilerOutput:
    """What the compiler reported: combined stdout/stderr text and exit status.

    ``mirror_path`` is the directory the compiler ran in, which may no
    longer be the workspace's mirror by the time the report is read.
    """

    raw_output: str
    exit_status: int
    entry_path: PurePosixPath
    mirror_path: Optional[Path] = None


@dataclass(frozen=True)
class DocumentDiagnostic:
    """An LSP diagnostic addressed to an original document URI."""

    uri: str
    diagnostic: types.Diagnostic


@dataclass(frozen=True)
class OpenDocument:
    """A document the client sent in full."""

    uri: str
    version: int
    text: str


@dataclass(frozen=True)
class DocumentUri:
    """A bare document reference, as carried by command arguments."""

    uri: str


DocumentTarget = Union[OpenDocument, DocumentUri]
