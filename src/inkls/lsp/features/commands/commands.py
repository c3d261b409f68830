"""Commands executed through ``workspace/executeCommand``."""

import logging
from typing import Any, Dict, Optional

from pygls.lsp.server import LanguageServer

from inkls.lsp.workspace.documents import DocumentSynchronizer
from inkls.lsp.workspace.registry import WorkspaceRegistry

logger = logging.getLogger(__name__)

COMPILE_STORY_COMMAND = "ink.compileStory"


class CommandService:
    """Runs commands against the workspace registry."""

    def __init__(self, registry: WorkspaceRegistry):
        self._registry = registry

    async def compile_story(self, *arguments: Any) -> Optional[Dict[str, Any]]:
        """
        Compile the story of the document given as first argument.

        Without argument, the main story of the first workspace is compiled.

        Returns:
            A summary of the compilation, or None if nothing could be compiled
        """
        if len(arguments) > 1:
            logger.debug(f"Ignoring {len(arguments) - 1} extra argument(s) of {COMPILE_STORY_COMMAND}")

        target = DocumentSynchronizer.resolve_target(arguments[0] if arguments else None)
        summary = await self._registry.compile_target(target)
        return summary.to_dict() if summary else None


def register_commands(server: LanguageServer, registry: WorkspaceRegistry) -> CommandService:
    """
    Register the server's commands.

    Args:
        server: The language server instance
        registry: The workspace registry

    Returns:
        The command service instance
    """
    service = CommandService(registry)

    @server.command(COMPILE_STORY_COMMAND)
    async def compile_story(ls: LanguageServer, *arguments: Any):
        """Compile a story and publish its diagnostics"""
        try:
            return await service.compile_story(*arguments)
        except Exception as e:
            logger.exception(f"Error running {COMPILE_STORY_COMMAND}: {e}")
            registry.notifier.report_server_error(str(e))
            return None

    logger.info("Commands registered successfully")
    return service
