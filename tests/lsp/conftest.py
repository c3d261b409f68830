import shutil
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
from lsprotocol import types

from inkls.lsp.utils.paths import path_to_uri
from inkls.lsp.workspace.compiler import CompilerInvoker
from inkls.lsp.workspace.documents import DocumentSynchronizer
from inkls.lsp.workspace.mirror import DirectoryMirror
from inkls.lsp.workspace.registry import WorkspaceRegistry

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_COMPILER = FIXTURES_DIR / "fake_inklecate.py"
INK_PROJECT = FIXTURES_DIR / "ink-project"


class RecordingSink:
    """Diagnostics sink keeping every publication in order."""

    def __init__(self):
        self.published: List[Tuple[str, List[types.Diagnostic]]] = []

    def publish(self, uri: str, diagnostics: List[types.Diagnostic]) -> None:
        self.published.append((uri, list(diagnostics)))

    def latest(self, uri: str) -> Optional[List[types.Diagnostic]]:
        for published_uri, diagnostics in reversed(self.published):
            if published_uri == uri:
                return diagnostics
        return None


class RecordingNotifier:
    """Notifier keeping every message by kind."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.infos: List[str] = []
        self.server_errors: List[Optional[str]] = []

    def show_error_message(self, message: str) -> None:
        self.errors.append(message)

    def show_warning_message(self, message: str) -> None:
        self.warnings.append(message)

    def show_information_message(self, message: str) -> None:
        self.infos.append(message)

    def report_server_error(self, message: Optional[str] = None) -> None:
        self.server_errors.append(message)


@pytest.fixture
def ink_project(tmp_path) -> Path:
    """A writable copy of the fixture project."""
    project = tmp_path / "project"
    shutil.copytree(INK_PROJECT, project)
    return project


@pytest.fixture
def project_uri(ink_project) -> str:
    return path_to_uri(ink_project)


@pytest.fixture
def mirror_root(tmp_path) -> Path:
    return tmp_path / "mirrors"


@pytest.fixture
def directory_mirror(mirror_root) -> DirectoryMirror:
    return DirectoryMirror(temp_root=mirror_root)


@pytest.fixture
def fake_invoker() -> CompilerInvoker:
    """Invoker running the fake compiler with the current interpreter."""
    return CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=10)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def registry(directory_mirror, fake_invoker, sink, notifier) -> WorkspaceRegistry:
    return WorkspaceRegistry(
        mirror=directory_mirror,
        invoker=fake_invoker,
        documents=DocumentSynchronizer(),
        sink=sink,
        notifier=notifier,
    )
