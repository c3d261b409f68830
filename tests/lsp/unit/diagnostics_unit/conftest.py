from unittest.mock import Mock

import pytest

from inkls.lsp.features.diagnostics.diagnostics import CompilationService, DiagnosticsPublisher
from inkls.lsp.workspace.documents import DocumentSynchronizer
from inkls.lsp.workspace.registry import WorkspaceRegistry


@pytest.fixture
def server():
    """Mock language server recording published diagnostics."""
    return Mock()


@pytest.fixture
def documents():
    return DocumentSynchronizer()


@pytest.fixture
def publisher(server, documents):
    publisher = DiagnosticsPublisher(documents)
    publisher.set_server(server)
    return publisher


@pytest.fixture
def live_registry(directory_mirror, fake_invoker, documents, publisher, notifier):
    return WorkspaceRegistry(
        mirror=directory_mirror,
        invoker=fake_invoker,
        documents=documents,
        sink=publisher,
        notifier=notifier,
    )


@pytest.fixture
def compilation_service(live_registry):
    return CompilationService(live_registry)
