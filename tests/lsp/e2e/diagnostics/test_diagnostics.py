import asyncio

import pytest
from lsprotocol.types import (
    TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS,
    DiagnosticSeverity,
    DidOpenTextDocumentParams,
    ExecuteCommandParams,
    TextDocumentItem,
)
from pytest_lsp import LanguageClient


@pytest.mark.asyncio
async def test_open_document_publishes_compiler_diagnostics(client: LanguageClient, project_dir):
    """Opening a document compiles the story and publishes inklecate's report"""
    uri = (project_dir / "main.ink").as_uri()
    content = (
        "INCLUDE chapters/intro.ink\n"
        "-> intro\n"
        "// report: ERROR: 'main.ink' line 2: Divert target not found\n"
        "// exit: 1\n"
    )

    # Start waiting for diagnostics before opening the document
    diagnostics_task = asyncio.create_task(client.wait_for_notification(TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS))

    client.text_document_did_open(
        DidOpenTextDocumentParams(
            text_document=TextDocumentItem(uri=uri, language_id="ink", version=1, text=content)
        )
    )

    await asyncio.wait_for(diagnostics_task, timeout=30.0)

    assert uri in client.diagnostics, "Diagnostics should be published for the opened document"
    diagnostics = client.diagnostics[uri]
    assert len(diagnostics) == 1
    assert diagnostics[0].severity == DiagnosticSeverity.Error
    assert diagnostics[0].source == "inklecate"
    assert diagnostics[0].range.start.line == 1
    assert diagnostics[0].message == "Divert target not found"


@pytest.mark.asyncio
async def test_compile_story_command(client: LanguageClient, project_dir):
    """The compile command compiles the main story of the workspace"""
    result = await asyncio.wait_for(
        client.workspace_execute_command_async(ExecuteCommandParams(command="ink.compileStory")),
        timeout=30.0,
    )

    assert result["workspace"] == project_dir.as_uri()
    assert result["published"] is True
    assert result["diagnostics"] == 0
