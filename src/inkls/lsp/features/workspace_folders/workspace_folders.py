"""Workspace folder, watched file and configuration change notifications."""

import logging
from pathlib import Path
from typing import List

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from inkls.lsp.utils.paths import uri_to_path
from inkls.lsp.workspace.registry import WorkspaceRegistry

logger = logging.getLogger(__name__)


class WorkspaceEventService:
    """Applies workspace-level notifications to the registry."""

    def __init__(self, registry: WorkspaceRegistry):
        self._registry = registry

    async def handle_workspace_folders_change(self, params: types.DidChangeWorkspaceFoldersParams) -> None:
        event = params.event
        for folder in event.removed:
            await self._registry.remove_workspace(folder.uri)
        if event.added:
            await self._registry.initialize_workspaces([(folder.uri, folder.name) for folder in event.added])

    async def handle_watched_files_change(self, params: types.DidChangeWatchedFilesParams) -> None:
        """Copy created files into the mirrors; other change types are left alone."""
        created: List[Path] = []
        for change in params.changes:
            if change.type != types.FileChangeType.Created:
                continue
            try:
                created.append(uri_to_path(change.uri))
            except ValueError as e:
                logger.warning(f"Ignoring created file: {e}")

        if created:
            await self._registry.copy_newly_created_files(created)

    def handle_configuration_change(self, params: types.DidChangeConfigurationParams) -> None:
        self._registry.documents.invalidate_settings()


def register_workspace_events(server: LanguageServer, registry: WorkspaceRegistry) -> WorkspaceEventService:
    """
    Register workspace-level notifications.

    Args:
        server: The language server instance
        registry: The workspace registry

    Returns:
        The workspace event service instance
    """
    service = WorkspaceEventService(registry)

    @server.feature(types.WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
    async def did_change_workspace_folders(params: types.DidChangeWorkspaceFoldersParams):
        try:
            await service.handle_workspace_folders_change(params)
        except Exception as e:
            logger.exception(f"Error handling workspace folder change: {e}")

    @server.feature(types.WORKSPACE_DID_CHANGE_WATCHED_FILES)
    async def did_change_watched_files(params: types.DidChangeWatchedFilesParams):
        try:
            await service.handle_watched_files_change(params)
        except Exception as e:
            logger.exception(f"Error handling watched file changes: {e}")

    @server.feature(types.WORKSPACE_DID_CHANGE_CONFIGURATION)
    def did_change_configuration(params: types.DidChangeConfigurationParams):
        service.handle_configuration_change(params)

    logger.info("Workspace events registered successfully")
    return service
