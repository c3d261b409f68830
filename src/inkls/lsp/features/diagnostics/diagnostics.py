"""Diagnostics publishing and compile-on-edit for the LSP server."""

import logging
from typing import Dict, List, Optional, Tuple

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from inkls.lsp.utils.document_event_coordinator import DocumentEventCoordinator
from inkls.lsp.utils.models import OpenDocument
from inkls.lsp.workspace.documents import DocumentSynchronizer
from inkls.lsp.workspace.registry import SyncStatus, WorkspaceRegistry


logger = logging.getLogger(__name__)


class DiagnosticsPublisher:
    """Publishes diagnostics lists to the client, replacing earlier ones per document."""

    def __init__(self, documents: Optional[DocumentSynchronizer] = None):
        self._documents = documents
        self._diagnostics: Dict[str, Tuple[Optional[int], List[types.Diagnostic]]] = {}
        self._server: Optional[LanguageServer] = None

    def set_server(self, server: LanguageServer) -> None:
        """Set the server instance for publishing diagnostics."""
        self._server = server

    def get_diagnostics(self, document_uri: str) -> Tuple[Optional[int], List[types.Diagnostic]]:
        """
        Get the diagnostics last published for a document.

        Returns:
            Tuple of (version, diagnostics)
        """
        return self._diagnostics.get(document_uri, (None, []))

    def publish(self, uri: str, diagnostics: List[types.Diagnostic]) -> None:
        """
        Publish diagnostics for a document.

        The version is only attached when the document is open, since
        inklecate reports on files the editor may not have loaded. A list
        identical to the one last published for the same version is not
        sent again.
        """
        if not self._server:
            logger.error("Server not set - cannot publish diagnostics")
            return

        tracked = self._documents.get(uri) if self._documents else None
        version = tracked.version if tracked else None
        if diagnostics and self._diagnostics.get(uri) == (version, list(diagnostics)):
            logger.debug(f"Diagnostics of {uri} are unchanged, not publishing them again")
            return

        self._server.text_document_publish_diagnostics(
            types.PublishDiagnosticsParams(uri=uri, diagnostics=list(diagnostics), version=version)
        )

        if diagnostics:
            self._diagnostics[uri] = (version, list(diagnostics))
        else:
            self._diagnostics.pop(uri, None)


class CompilationService:
    """
    Keeps workspace mirrors in sync with the editor and compiles on every edit.

    Implements the ``DocumentEventHandler`` protocol of the coordinator.
    """

    def __init__(self, registry: WorkspaceRegistry, server: Optional[LanguageServer] = None):
        self._registry = registry
        self._server = server

    def _current_text(self, uri: str) -> Optional[str]:
        if not self._server:
            return None
        return self._server.workspace.get_text_document(uri).source

    async def handle_document_open(self, params: types.DidOpenTextDocumentParams) -> SyncStatus:
        """Mirror and compile each document when it is opened"""
        item = params.text_document
        document = OpenDocument(uri=item.uri, version=item.version, text=item.text)
        self._registry.documents.open(document)
        return await self._registry.update_document_and_compile(document)

    async def handle_document_change(self, params: types.DidChangeTextDocumentParams) -> SyncStatus:
        """Mirror and compile each document when it is changed"""
        uri = params.text_document.uri
        text = self._current_text(uri)
        if text is None:
            # Full sync: the last change carries the whole document
            text = params.content_changes[-1].text if params.content_changes else ""
        document = OpenDocument(uri=uri, version=params.text_document.version, text=text)
        return await self._registry.update_document_and_compile(document)

    async def handle_document_save(self, params: types.DidSaveTextDocumentParams) -> SyncStatus:
        """Compile again on save, with the saved text when the client sends it"""
        uri = params.text_document.uri
        text = params.text if params.text is not None else self._current_text(uri)
        if text is None:
            logger.warning(f"No content available for saved document {uri}")
            return SyncStatus.FAILED

        tracked = self._registry.documents.get(uri)
        document = OpenDocument(uri=uri, version=tracked.version if tracked else 0, text=text)
        return await self._registry.update_document_and_compile(document)

    def handle_document_close(self, params: types.DidCloseTextDocumentParams) -> None:
        """Forget the document; its diagnostics stay since the project still has them"""
        self._registry.documents.close(params.text_document.uri)


def register_diagnostics(
    server: LanguageServer,
    coordinator: DocumentEventCoordinator,
    registry: WorkspaceRegistry,
) -> CompilationService:
    """
    Register compile-on-edit with the coordinator.

    Args:
        server: The language server instance
        coordinator: Coordinator distributing document events
        registry: The workspace registry

    Returns:
        The compilation service instance
    """
    try:
        service = CompilationService(registry, server)
        coordinator.register_handler(service)
        logger.info("Diagnostics functionality registered successfully")
        return service

    except Exception as e:
        logger.error(f"Error registering diagnostics functionality: {e}")
        raise
