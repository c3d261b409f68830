import pytest
from lsprotocol import types

from inkls.lsp.features.diagnostics.diagnostics import DiagnosticsPublisher
from inkls.lsp.utils.models import OpenDocument
from inkls.lsp.utils.paths import path_to_uri
from inkls.lsp.workspace.registry import SyncStatus


def diagnostic(message: str) -> types.Diagnostic:
    return types.Diagnostic(
        range=types.Range(start=types.Position(line=0, character=0), end=types.Position(line=1, character=0)),
        message=message,
    )


def published_params(server):
    return [call.args[0] for call in server.text_document_publish_diagnostics.call_args_list]


def test_publish_attaches_version_of_open_document(publisher, server, documents):
    documents.open(OpenDocument(uri="file:///story/main.ink", version=7, text=""))

    publisher.publish("file:///story/main.ink", [diagnostic("boom")])

    params = published_params(server)[0]
    assert params.uri == "file:///story/main.ink"
    assert params.version == 7
    assert [d.message for d in params.diagnostics] == ["boom"]
    assert publisher.get_diagnostics("file:///story/main.ink")[0] == 7


def test_publish_without_open_document_has_no_version(publisher, server):
    publisher.publish("file:///story/intro.ink", [diagnostic("boom")])

    assert published_params(server)[0].version is None


def test_empty_publication_clears_stored_diagnostics(publisher, server):
    publisher.publish("file:///story/main.ink", [diagnostic("boom")])
    publisher.publish("file:///story/main.ink", [])

    assert publisher.get_diagnostics("file:///story/main.ink") == (None, [])
    assert published_params(server)[-1].diagnostics == []


def test_publish_without_server_is_logged(caplog):
    publisher = DiagnosticsPublisher()

    publisher.publish("file:///story/main.ink", [diagnostic("boom")])

    assert "Server not set" in caplog.text
    assert publisher.get_diagnostics("file:///story/main.ink") == (None, [])


def test_unchanged_diagnostics_are_not_published_again(publisher, server, documents):
    documents.open(OpenDocument(uri="file:///story/main.ink", version=3, text=""))

    publisher.publish("file:///story/main.ink", [diagnostic("boom")])
    publisher.publish("file:///story/main.ink", [diagnostic("boom")])

    assert len(published_params(server)) == 1


def test_same_diagnostics_for_a_new_version_are_published(publisher, server, documents):
    documents.open(OpenDocument(uri="file:///story/main.ink", version=3, text=""))
    publisher.publish("file:///story/main.ink", [diagnostic("boom")])

    documents.change(OpenDocument(uri="file:///story/main.ink", version=4, text=""))
    publisher.publish("file:///story/main.ink", [diagnostic("boom")])

    assert [params.version for params in published_params(server)] == [3, 4]
    assert publisher.get_diagnostics("file:///story/main.ink")[0] == 4


@pytest.mark.asyncio
async def test_open_compiles_and_publishes(compilation_service, live_registry, ink_project, project_uri, server):
    await live_registry.add_workspace(project_uri, "project")
    uri = path_to_uri(ink_project / "main.ink")

    status = await compilation_service.handle_document_open(
        types.DidOpenTextDocumentParams(
            text_document=types.TextDocumentItem(
                uri=uri,
                language_id="ink",
                version=1,
                text="// report: ERROR: line 2: Unexpected content\n// exit: 1\n",
            )
        )
    )

    assert status == SyncStatus.COMPILED
    params = published_params(server)[-1]
    assert params.uri == uri
    assert params.version == 1
    assert params.diagnostics[0].source == "inklecate"


@pytest.mark.asyncio
async def test_change_uses_full_text_of_last_change(compilation_service, live_registry, ink_project, project_uri):
    await live_registry.add_workspace(project_uri, "project")
    uri = path_to_uri(ink_project / "main.ink")

    await compilation_service.handle_document_change(
        types.DidChangeTextDocumentParams(
            text_document=types.VersionedTextDocumentIdentifier(uri=uri, version=2),
            content_changes=[
                types.TextDocumentContentChangeWholeDocument(text="First.\n"),
                types.TextDocumentContentChangeWholeDocument(text="Second.\n"),
            ],
        )
    )

    mirror_path = live_registry.get(project_uri).workspace.mirror_path
    assert (mirror_path / "main.ink").read_text(encoding="utf-8") == "Second.\n"


@pytest.mark.asyncio
async def test_save_without_text_or_server_fails(compilation_service):
    status = await compilation_service.handle_document_save(
        types.DidSaveTextDocumentParams(text_document=types.TextDocumentIdentifier(uri="file:///story/main.ink"))
    )

    assert status == SyncStatus.FAILED


@pytest.mark.asyncio
async def test_save_with_text_compiles(compilation_service, live_registry, ink_project, project_uri):
    await live_registry.add_workspace(project_uri, "project")
    uri = path_to_uri(ink_project / "main.ink")

    status = await compilation_service.handle_document_save(
        types.DidSaveTextDocumentParams(text_document=types.TextDocumentIdentifier(uri=uri), text="Saved.\n")
    )

    assert status == SyncStatus.COMPILED


def test_close_forgets_document(compilation_service, documents):
    documents.open(OpenDocument(uri="file:///story/main.ink", version=1, text=""))

    compilation_service.handle_document_close(
        types.DidCloseTextDocumentParams(text_document=types.TextDocumentIdentifier(uri="file:///story/main.ink"))
    )

    assert documents.get("file:///story/main.ink") is None
