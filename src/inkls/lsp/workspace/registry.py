"""
Workspace registry - the orchestrator the LSP features call into.

The registry holds one ``ManagedWorkspace`` per workspace folder reported
by the client, keyed by the folder URI. Each one owns its mirror, its
compile scheduler and the set of URIs it last published diagnostics for;
nothing mutable is shared between workspaces, so a workspace whose mirror
can't be created never holds back another one.

Every error of ``inkls.lsp.workspace.errors`` stops here: it is logged,
turned into a user-visible notification where relevant, and reported to
the caller as a ``SyncStatus`` or ``CompileSummary`` instead of an
exception.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from lsprotocol import types

from inkls.config.types import InkSettings
from inkls.lsp.utils.models import (
    CompileRequest,
    CompilerOutput,
    DocumentDiagnostic,
    DocumentTarget,
    DocumentUri,
    Mirror,
    OpenDocument,
    Workspace,
    WorkspaceState,
)
from inkls.lsp.utils.paths import relative_to_root, uri_to_path
from inkls.lsp.workspace.compiler import CompilerInvoker
from inkls.lsp.workspace.documents import DocumentSynchronizer
from inkls.lsp.workspace.errors import (
    CompilerInvocationError,
    DiagnosticParseError,
    FileCopyError,
    MirrorCreationError,
    WorkspaceNotFoundError,
)
from inkls.lsp.workspace.mirror import DirectoryMirror
from inkls.lsp.workspace.scheduler import CompileOutcome, CompileScheduler
from inkls.lsp.workspace.translator import DiagnosticTranslator, group_by_uri

logger = logging.getLogger(__name__)


class ConnectionNotifier(Protocol):
    """User-visible notifications sent to the client."""

    def show_error_message(self, message: str) -> None:
        ...

    def show_warning_message(self, message: str) -> None:
        ...

    def show_information_message(self, message: str) -> None:
        ...

    def report_server_error(self, message: Optional[str] = None) -> None:
        ...


class DiagnosticsSink(Protocol):
    """Receives the diagnostics to publish for one document, replacing earlier ones."""

    def publish(self, uri: str, diagnostics: List[types.Diagnostic]) -> None:
        ...


WorkspaceFolderProvider = Callable[[], Iterable[Tuple[str, str]]]


class SyncStatus(str, Enum):
    """Result of a document or file event."""

    COMPILED = "compiled"
    APPLIED = "applied"
    NOT_READY = "not_ready"
    UNKNOWN_WORKSPACE = "unknown_workspace"
    FAILED = "failed"


@dataclass
class CompileSummary:
    """What happened to a compile trigger, as returned to commands."""

    workspace: str
    generation: int
    published: bool
    diagnostics: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workspace": self.workspace,
            "generation": self.generation,
            "published": self.published,
            "diagnostics": self.diagnostics,
            "error": self.error,
        }


@dataclass
class ManagedWorkspace:
    """A workspace together with the components private to it."""

    workspace: Workspace
    scheduler: CompileScheduler[CompilerOutput]
    init_generation: int = 0

    @property
    def id(self) -> str:
        return self.workspace.uri


class WorkspaceRegistry:
    """
    Maintains the local workspaces, mirroring the workspaces handled by the client.

    Since inklecate needs the whole project to report anything, the
    workspace of every document must be known before it can be compiled.
    """

    def __init__(
        self,
        mirror: DirectoryMirror,
        invoker: CompilerInvoker,
        documents: DocumentSynchronizer,
        sink: DiagnosticsSink,
        notifier: ConnectionNotifier,
        translator: Optional[DiagnosticTranslator] = None,
        folder_provider: Optional[WorkspaceFolderProvider] = None,
    ):
        """
        Initialize the registry.

        Args:
            mirror: Creates and updates mirrors
            invoker: Runs the compiler
            documents: Open documents and their settings
            sink: Where diagnostics are published
            notifier: Where user-visible messages go
            translator: Report parser, defaults to one resolving URIs through ``documents``
            folder_provider: Returns the client's current ``(uri, name)`` folders, used to
                re-initialize when a document belongs to no known workspace
        """
        self.mirror = mirror
        self.invoker = invoker
        self.documents = documents
        self.sink = sink
        self.notifier = notifier
        self.translator = translator or DiagnosticTranslator(uri_for_path=documents.uri_for_path)
        self.folder_provider = folder_provider
        self._workspaces: Dict[str, ManagedWorkspace] = {}

    # Lookup

    def __contains__(self, uri: str) -> bool:
        return uri in self._workspaces

    def __len__(self) -> int:
        return len(self._workspaces)

    def workspaces(self) -> List[Workspace]:
        return [managed.workspace for managed in self._workspaces.values()]

    def get(self, uri: str) -> Optional[ManagedWorkspace]:
        return self._workspaces.get(uri)

    def state_of(self, uri: str) -> WorkspaceState:
        managed = self._workspaces.get(uri)
        return managed.workspace.state if managed else WorkspaceState.REMOVED

    def find_workspace(self, path: Path) -> Optional[ManagedWorkspace]:
        """Return the innermost workspace containing ``path``."""
        best: Optional[ManagedWorkspace] = None
        for managed in self._workspaces.values():
            root = managed.workspace.root_path
            if relative_to_root(path, root) is None:
                continue
            if best is None or len(root.parts) > len(best.workspace.root_path.parts):
                best = managed
        return best

    # Lifecycle

    def register_workspace(self, uri: str, name: str = "") -> ManagedWorkspace:
        """Track a workspace folder without creating its mirror yet."""
        managed = self._workspaces.get(uri)
        if managed is not None:
            return managed

        workspace = Workspace(uri=uri, root_path=uri_to_path(uri), name=name)
        managed = ManagedWorkspace(workspace=workspace, scheduler=CompileScheduler(uri))
        self._workspaces[uri] = managed
        logger.info(f"Registered workspace {name or uri}")
        return managed

    async def add_workspace(self, uri: str, name: str = "") -> bool:
        """Register a workspace folder and create its mirror."""
        managed = self.register_workspace(uri, name)
        return await self.initialize_workspace(managed)

    async def initialize_workspace(self, managed: ManagedWorkspace) -> bool:
        """
        Create (or recreate) the mirror of a workspace.

        The mirror is copied from disk, then the content last received for
        each open document of the workspace is written over it, so unsaved
        edits survive the rebuild. A later initialization of the same
        workspace supersedes this one: the mirror created here is then
        thrown away. On failure the previous mirror, if any, stays in place.

        Returns:
            True if the workspace is ready afterwards
        """
        workspace = managed.workspace
        if workspace.state == WorkspaceState.REMOVED:
            return False

        managed.init_generation += 1
        generation = managed.init_generation
        if workspace.mirror is None:
            workspace.state = WorkspaceState.MIRROR_PENDING

        try:
            mirror = await self.mirror.create_mirror(workspace.root_path)
            await self.mirror.overlay_documents(mirror, workspace.root_path, self._open_documents_of(managed))
        except MirrorCreationError as e:
            logger.error(f"Could not create the temporary workspace for {workspace.uri}: {e}")
            if e.mirror_path is not None:
                await self.mirror.delete_mirror(Mirror(path=e.mirror_path))
            if generation == managed.init_generation and workspace.state != WorkspaceState.REMOVED:
                if workspace.mirror is None or not self.mirror.exists(workspace.mirror):
                    workspace.state = WorkspaceState.MIRROR_PENDING
                self.notifier.report_server_error(str(e))
            return workspace.is_ready

        if generation != managed.init_generation or workspace.state == WorkspaceState.REMOVED:
            logger.debug(f"Discarding superseded mirror {mirror.path} of {workspace.uri}")
            await self.mirror.delete_mirror(mirror)
            return workspace.is_ready

        previous = workspace.mirror
        workspace.mirror = mirror
        if workspace.state != WorkspaceState.COMPILE_IN_FLIGHT:
            workspace.state = WorkspaceState.READY
        logger.info(f"Temporary compilation directory successfully created at: {mirror.path}")

        if previous is not None and previous.path != mirror.path:
            await self.mirror.delete_mirror(previous)
        return True

    def _open_documents_of(self, managed: ManagedWorkspace) -> List[Tuple[Path, bytes]]:
        """Open documents whose innermost workspace is ``managed``."""
        return [
            (path, content)
            for path, content in self.documents.contents()
            if self.find_workspace(path) is managed
        ]

    async def initialize_workspaces(self, folders: Iterable[Tuple[str, str]]) -> Dict[str, bool]:
        """Register and initialize several workspace folders concurrently."""
        started = time.perf_counter()
        managed_list = [self.register_workspace(uri, name) for uri, name in folders]
        pending = [managed for managed in managed_list if not managed.workspace.is_ready]
        await asyncio.gather(*(self.initialize_workspace(managed) for managed in pending))
        elapsed = time.perf_counter() - started
        logger.info(f"All temporary compilation directories were processed in {elapsed:.3f}s.")
        return {managed.id: managed.workspace.is_ready for managed in managed_list}

    async def remove_workspace(self, uri: str) -> bool:
        """
        Stop tracking a workspace, clear its diagnostics and delete its mirror.

        Returns:
            True if the workspace was known
        """
        managed = self._workspaces.pop(uri, None)
        if managed is None:
            return False

        workspace = managed.workspace
        workspace.state = WorkspaceState.REMOVED
        managed.init_generation += 1

        for published_uri in sorted(workspace.published_uris):
            self.sink.publish(published_uri, [])
        workspace.published_uris.clear()

        if workspace.mirror is not None:
            await self.mirror.delete_mirror(workspace.mirror)
            workspace.mirror = None

        logger.info(f"Removed workspace {workspace.name or uri}")
        return True

    async def shutdown(self) -> None:
        """Delete every mirror."""
        for uri in list(self._workspaces):
            managed = self._workspaces.pop(uri)
            managed.workspace.state = WorkspaceState.REMOVED
            if managed.workspace.mirror is not None:
                await self.mirror.delete_mirror(managed.workspace.mirror)
                managed.workspace.mirror = None

    async def _reinitialize_from_client(self) -> None:
        if self.folder_provider is None:
            return
        logger.warning("The temporary workspace does not exist, attempting to restore…")
        await self.initialize_workspaces(list(self.folder_provider()))

    async def _locate(self, path: Path) -> ManagedWorkspace:
        """
        Find the workspace of ``path``, re-initializing from the client once if needed.

        Raises:
            WorkspaceNotFoundError: If the path still belongs to no workspace
        """
        managed = self.find_workspace(path)
        if managed is None:
            await self._reinitialize_from_client()
            managed = self.find_workspace(path)
        if managed is None:
            raise WorkspaceNotFoundError(path)
        return managed

    async def _ensure_ready(self, managed: ManagedWorkspace) -> bool:
        """Retry a pending mirror, or recreate one that vanished from disk."""
        workspace = managed.workspace
        if workspace.state == WorkspaceState.UNINITIALIZED:
            return False
        if workspace.state == WorkspaceState.MIRROR_PENDING:
            logger.info(f"Retrying creation of the temporary workspace for {workspace.uri}")
            return await self.initialize_workspace(managed)
        if workspace.mirror is not None and not self.mirror.exists(workspace.mirror):
            logger.warning(f"Temporary compilation directory {workspace.mirror.path} is missing, recreating it")
            workspace.state = WorkspaceState.MIRROR_PENDING
            return await self.initialize_workspace(managed)
        return workspace.is_ready

    # Document and file events

    async def update_document(self, document: OpenDocument) -> SyncStatus:
        """
        Write the content of an open document into its workspace mirror.

        Returns:
            ``APPLIED`` on success, otherwise why nothing was written
        """
        status, _ = await self._apply_document(document)
        return status

    async def update_document_and_compile(self, document: OpenDocument) -> SyncStatus:
        """
        Update the content of the given document in the workspace mirror and compile the project.

        Args:
            document: The document, with its full text

        Returns:
            ``COMPILED`` once the compile request completed (published or superseded)
        """
        status, managed = await self._apply_document(document)
        if status != SyncStatus.APPLIED or managed is None:
            return status

        settings = await self.documents.resolve_settings(document.uri)
        await self.compile_workspace(managed, settings)
        return SyncStatus.COMPILED

    async def _apply_document(self, document: OpenDocument) -> Tuple[SyncStatus, Optional[ManagedWorkspace]]:
        path = uri_to_path(document.uri)
        self.documents.change(document)

        if not self.mirror.is_source_file(path):
            logger.debug(f"Ignoring {document.uri}, not an Ink file")
            return SyncStatus.FAILED, None

        try:
            managed = await self._locate(path)
        except WorkspaceNotFoundError as e:
            logger.error(str(e))
            self.notifier.show_error_message(str(e))
            return SyncStatus.UNKNOWN_WORKSPACE, None

        if not await self._ensure_ready(managed):
            logger.info("The workspace is not ready yet, try compiling again in a few seconds…")
            return SyncStatus.NOT_READY, managed

        relative = relative_to_root(path, managed.workspace.root_path)
        if relative is None:
            logger.error(f"{document.uri} is not inside workspace {managed.workspace.uri}")
            return SyncStatus.UNKNOWN_WORKSPACE, None
        try:
            await self.mirror.apply_document_update(
                managed.workspace, relative, self.documents.content_for(document)
            )
        except FileCopyError as e:
            logger.error(f"Could not update '{document.uri}', {e}")
            self.notifier.report_server_error(str(e))
            return SyncStatus.FAILED, managed

        return SyncStatus.APPLIED, managed

    async def copy_newly_created_files(self, paths: Sequence[Path]) -> Dict[Path, SyncStatus]:
        """Copy files (or directories) reported as created into their workspace mirrors."""
        results: Dict[Path, SyncStatus] = {}
        for path in paths:
            managed = self.find_workspace(path)
            if managed is None:
                logger.error("The temporary workspace is undefined, cannot copy newly created files.")
                self.notifier.report_server_error(f"No workspace contains {path}")
                results[path] = SyncStatus.UNKNOWN_WORKSPACE
                continue

            if not managed.workspace.is_ready:
                logger.warning("The workspace is not ready yet, ignoring newly created files")
                results[path] = SyncStatus.NOT_READY
                continue

            if not path.is_dir() and not self.mirror.is_source_file(path):
                logger.debug(f"Ignoring newly created non-Ink file {path}")
                results[path] = SyncStatus.FAILED
                continue

            try:
                await self.mirror.apply_newly_created_file(managed.workspace, path)
                results[path] = SyncStatus.APPLIED
            except FileCopyError as e:
                logger.error(f"Could not copy newly created file {path}: {e}")
                results[path] = SyncStatus.FAILED
        return results

    # Compilation

    async def compile_target(self, target: Optional[DocumentTarget]) -> Optional[CompileSummary]:
        """
        Compile the story of a command target.

        Without a target, the ``mainStoryPath`` of the first workspace is used.

        Returns:
            The summary, or None if the target belongs to no usable workspace
        """
        if target is None:
            if not self._workspaces and self.folder_provider is not None:
                await self._reinitialize_from_client()
            if not self._workspaces:
                self.notifier.show_error_message("No workspace is open, cannot compile the story.")
                return None
            first = next(iter(self._workspaces.values()))
            settings = await self.documents.resolve_settings(first.workspace.uri)
            main_story = first.workspace.root_path / settings["mainStoryPath"]
            target = DocumentUri(uri=self.documents.uri_for_path(main_story))

        if isinstance(target, OpenDocument):
            status, managed = await self._apply_document(target)
            if status != SyncStatus.APPLIED or managed is None:
                return None
        else:
            path = uri_to_path(target.uri)
            try:
                managed = await self._locate(path)
            except WorkspaceNotFoundError as e:
                logger.error("The temporary workspace is still missing, aborting command.")
                self.notifier.show_error_message(str(e))
                return None
            if not await self._ensure_ready(managed):
                self.notifier.show_warning_message("The workspace is not ready yet, try again in a few seconds.")
                return None

        entry = relative_to_root(uri_to_path(target.uri), managed.workspace.root_path)
        settings = await self.documents.resolve_settings(target.uri)
        return await self.compile_workspace(managed, settings, entry)

    async def compile_workspace(
        self,
        managed: ManagedWorkspace,
        settings: InkSettings,
        entry_path: Optional[PurePosixPath] = None,
    ) -> CompileSummary:
        """
        Compile a ready workspace and publish the result if it is still current.

        Args:
            managed: The workspace
            settings: Settings of the triggering document
            entry_path: Entry file relative to the root, defaults to ``mainStoryPath``
        """
        workspace = managed.workspace
        entry = entry_path or PurePosixPath(settings["mainStoryPath"])
        if not await self._ensure_ready(managed):
            return CompileSummary(
                workspace=workspace.uri,
                generation=managed.scheduler.latest_requested,
                published=False,
                error="The workspace is not ready",
            )

        request = managed.scheduler.admit()

        published: List[int] = []

        async def invoke(compile_request: CompileRequest) -> CompilerOutput:
            mirror = workspace.mirror
            if mirror is None:
                raise CompilerInvocationError(f"Workspace {workspace.uri} lost its temporary compilation directory")
            workspace.state = WorkspaceState.COMPILE_IN_FLIGHT
            try:
                return await self.invoker.invoke(mirror.path, settings, entry, mirror.output_path)
            finally:
                if workspace.state == WorkspaceState.COMPILE_IN_FLIGHT:
                    workspace.state = WorkspaceState.READY

        def deliver(outcome: CompileOutcome[CompilerOutput]) -> None:
            published.append(self._deliver(managed, outcome, entry))

        outcome = await managed.scheduler.run(request, invoke, deliver)
        summary = CompileSummary(
            workspace=workspace.uri,
            generation=request.generation,
            published=outcome.accepted and outcome.error is None,
            diagnostics=published[0] if published else 0,
            error=str(outcome.error) if outcome.error else None,
        )
        return summary

    def _deliver(self, managed: ManagedWorkspace, outcome: CompileOutcome[CompilerOutput], entry: PurePosixPath) -> int:
        """Translate and publish an accepted outcome. Returns the number of diagnostics."""
        workspace = managed.workspace
        if workspace.state == WorkspaceState.REMOVED:
            return 0

        if outcome.error is not None:
            logger.error(f"Compilation of {workspace.uri} failed: {outcome.error}")
            self.notifier.report_server_error(str(outcome.error))
            return 0

        output = outcome.result
        if output is None:
            logger.error(f"Compilation of {workspace.uri} completed without a report")
            return 0

        # The report refers to the directory the compiler ran in, which may have been replaced since
        mirror_path = output.mirror_path or workspace.mirror_path
        if mirror_path is None:
            logger.error(f"No temporary compilation directory to read the report of {workspace.uri} against")
            return 0

        try:
            diagnostics = self.translator.translate(output, mirror_path, workspace)
        except DiagnosticParseError as e:
            logger.warning(f"Unrecognized compiler report for {workspace.uri}: {e}")
            self.notifier.show_warning_message(f"inklecate returned an unexpected report: {e}")
            diagnostics = [self.translator.synthetic_diagnostic(e, output.entry_path, workspace)]

        self._publish(workspace, diagnostics)
        logger.debug(
            f"Published {len(diagnostics)} diagnostic(s) for generation {outcome.request.generation} "
            f"of {workspace.uri}"
        )
        return len(diagnostics)

    def _publish(self, workspace: Workspace, diagnostics: List[DocumentDiagnostic]) -> None:
        grouped = group_by_uri(diagnostics)
        for stale_uri in sorted(workspace.published_uris - set(grouped)):
            self.sink.publish(stale_uri, [])
        for uri, items in grouped.items():
            self.sink.publish(uri, items)
        workspace.published_uris = set(grouped)
