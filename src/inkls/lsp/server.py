import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from inkls import __version__
from inkls.config.settings import CONFIGURATION_SECTION
from inkls.config.types import ServerConfig

from .features.commands.commands import register_commands
from .features.diagnostics.diagnostics import DiagnosticsPublisher, register_diagnostics
from .features.workspace_folders.workspace_folders import register_workspace_events
from .utils.document_event_coordinator import DocumentEventCoordinator
from .utils.models import Capabilities
from .utils.notifier import LanguageServerNotifier
from .utils.paths import uri_to_path
from .workspace.compiler import CompilerInvoker
from .workspace.documents import DocumentSynchronizer
from .workspace.mirror import DirectoryMirror
from .workspace.registry import WorkspaceRegistry

logger = logging.getLogger(__name__)


class ServerInitializationState:
    """Tracks the initialization state of the LSP server components."""

    def __init__(self):
        self.features_registered = False
        self.initialization_errors = []

    def add_error(self, component: str, error: Exception):
        """Add an initialization error for tracking."""
        self.initialization_errors.append((component, str(error)))
        logger.error(f"Initialization error in {component}: {error}")

    def get_error_summary(self) -> str:
        """Get a summary of initialization errors."""
        if not self.initialization_errors:
            return "No initialization errors"

        return f"Initialization errors: {'; '.join([f'{comp}: {err}' for comp, err in self.initialization_errors])}"


class InkLSPServer:
    """
    LSP Server compiling Ink projects with inklecate.

    Every workspace folder opened by the client is mirrored to a temporary
    directory. Edits are written into the mirror and the whole story is
    compiled again, inklecate's report being published as diagnostics.
    """

    def __init__(self, config: ServerConfig, port: Optional[int] = None):
        """
        Initialize the Ink LSP Server.

        Args:
            config: Server configuration loaded from ~/.inkls/config.yml
            port: Port number for LSP server (if applicable)
        """
        self.config = config
        self.port = port or 3000

        self.ls = LanguageServer("inkls", __version__, text_document_sync_kind=types.TextDocumentSyncKind.Full)
        self.document_coordinator = DocumentEventCoordinator()
        self.init_state = ServerInitializationState()

        compiler_config = config["compiler"]
        mirror_config = config["mirror"]
        self.mirror = DirectoryMirror(
            extensions=mirror_config.get("extensions") or (".ink",),
            temp_root=mirror_config.get("temp_root"),
        )
        self.invoker = CompilerInvoker(
            executable=compiler_config.get("executable"),
            launcher=compiler_config.get("launcher") or (),
            timeout=compiler_config.get("timeout") or 30.0,
        )
        self.documents = DocumentSynchronizer(fetch_settings=self._fetch_settings)
        self.publisher = DiagnosticsPublisher(self.documents)
        self.publisher.set_server(self.ls)
        self.registry = WorkspaceRegistry(
            mirror=self.mirror,
            invoker=self.invoker,
            documents=self.documents,
            sink=self.publisher,
            notifier=LanguageServerNotifier(self.ls),
            folder_provider=self._client_folders,
        )

        self._setup_server()

        logger.info(f"Ink LSP Server initialized on port {self.port}")
        logger.info(self.init_state.get_error_summary())

    def _setup_server(self):
        """Register protocol handlers, then the features."""
        self._register_handlers()

        try:
            self._register_features()
            self.init_state.features_registered = True
            logger.info("LSP features initialized successfully")
        except Exception as e:
            self.init_state.add_error("Feature Registration", e)

    async def _fetch_settings(self, uri: str) -> Any:
        """Ask the client for the ``ink`` section scoped to ``uri``."""
        result = await self.ls.workspace_configuration_async(
            types.ConfigurationParams(
                items=[types.ConfigurationItem(scope_uri=uri, section=CONFIGURATION_SECTION)]
            )
        )
        return result[0] if result else None

    def _client_folders(self) -> List[Tuple[str, str]]:
        """The client's workspace folders, or its root when it has none."""
        folders = [(folder.uri, folder.name) for folder in self.ls.workspace.folders.values()]
        if not folders and self.ls.workspace.root_uri:
            root_uri = self.ls.workspace.root_uri
            folders.append((root_uri, uri_to_path(root_uri).name))
        return folders

    async def initialize_workspaces(self) -> Dict[str, bool]:
        """
        Mirror the client's workspace folders.

        Nothing is mirrored when the features failed to register, since no
        edit would ever reach the mirrors.

        Returns:
            Readiness per workspace URI
        """
        if not self.init_state.features_registered:
            logger.error(f"LSP: Features are not registered, skipping workspace initialization. "
                         f"{self.init_state.get_error_summary()}")
            return {}

        try:
            ready = await self.registry.initialize_workspaces(self._client_folders())
            logger.info(f"LSP: {sum(ready.values())}/{len(ready)} workspace(s) ready")
            return ready
        except Exception as e:
            self.init_state.add_error("Workspace Initialization", e)
            return {}

    def _register_handlers(self):
        """Register LSP protocol handlers."""

        @self.ls.feature(types.INITIALIZED)
        async def initialized(params: types.InitializedParams):
            """Create the mirror of every workspace folder."""
            logger.info("LSP: Server initialized successfully")
            capabilities = Capabilities.from_client(self.ls.client_capabilities)
            self.documents.capabilities = capabilities
            if not capabilities.workspace_folder:
                logger.info("The client does not support workspace folders, using its root")

            await self.initialize_workspaces()

        @self.ls.feature(types.SHUTDOWN)
        def shutdown(params=None):
            """Handle LSP shutdown request."""
            logger.info("LSP: Handling shutdown request")
            self.document_coordinator.clear_handlers()
            return None

        @self.ls.feature(types.EXIT)
        def exit_handler(params=None):
            """Handle exit notification."""
            logger.info("LSP: Server exiting")

    def _register_features(self):
        """
        Register LSP features with the server.

        Diagnostics must come before the coordinator registers with the
        server, since it refuses to do so without handlers.
        """
        logger.info("LSP: Registering features...")

        register_diagnostics(self.ls, self.document_coordinator, self.registry)
        self.document_coordinator.register_with_server(self.ls)
        register_commands(self.ls, self.registry)
        register_workspace_events(self.ls, self.registry)

        logger.info("LSP: Feature registration completed")

    def _cleanup_resources(self):
        """Delete the mirrors of every workspace."""
        logger.info("Cleaning up LSP server resources...")

        try:
            self.document_coordinator.clear_handlers()
        except Exception as e:
            logger.error(f"Error clearing document handlers: {e}")

        if len(self.registry):
            try:
                asyncio.run(self.registry.shutdown())
            except Exception as e:
                logger.error(f"Error deleting temporary compilation directories: {e}")

        logger.info("LSP server resource cleanup completed")

    def start(self, host: str = "localhost", use_tcp: bool = False):
        """Start the LSP server

        Args:
            host: Host to bind to when using TCP (default: localhost)
            use_tcp: Whether to use TCP instead of stdio
        """
        logger.info("Starting Ink LSP Server...")

        try:
            if use_tcp:
                logger.info(f"Starting LSP TCP server on {host}:{self.port}...")
                self.ls.start_tcp(host, self.port)
                logger.info("LSP TCP server finished")
            else:
                logger.info("Starting LSP IO server...")
                self.ls.start_io()
                logger.info("LSP IO server finished")
        except KeyboardInterrupt:
            logger.info("Received shutdown signal")
        except BrokenPipeError:
            logger.info("Broken pipe - client disconnected")
        except EOFError:
            logger.info("EOF - no more input from client")
        except Exception:
            logger.exception("Error in LSP server")
        finally:
            self.shutdown()

    def shutdown(self):
        """Shutdown the LSP server and cleanup resources"""
        logger.info("Shutting down Ink LSP Server...")
        self._cleanup_resources()
