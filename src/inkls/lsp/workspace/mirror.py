"""
Directory mirror - private on-disk copies of workspace source trees.

inklecate needs the whole project on disk to compile a story, but the
editor holds unsaved edits in memory. Each workspace therefore gets a
scratch directory under the temporary root holding a copy of its Ink
files only; edits and newly created files are written there and the
compiler runs against it. The user's workspace is never written to.

All file system work runs in a worker thread so that the event loop keeps
serving notifications while large projects are copied.
"""

import asyncio
import hashlib
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from inkls.lsp.utils.models import Mirror, MirrorEntry, Workspace
from inkls.lsp.utils.paths import is_source_file, relative_to_root
from inkls.lsp.workspace.errors import FileCopyError, MirrorCreationError

logger = logging.getLogger(__name__)

MIRROR_PREFIX = "inkls-"


def _fingerprint(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class DirectoryMirror:
    """
    Creates, updates and deletes workspace mirrors.

    The mirror keeps no per-workspace state of its own: everything it
    touches hangs off the ``Workspace`` it is given, and writes into one
    mirror are serialized through that workspace's ``io_lock`` so that the
    last applied update always wins.
    """

    def __init__(self, extensions: Sequence[str] = (".ink",), temp_root: Optional[Union[str, Path]] = None):
        """
        Initialize the directory mirror.

        Args:
            extensions: File suffixes considered source files
            temp_root: Directory holding the mirrors, defaults to the platform temporary directory
        """
        if not extensions:
            raise ValueError("At least one source extension is required")

        self.extensions: Tuple[str, ...] = tuple(extensions)
        self.temp_root = Path(temp_root) if temp_root else Path(tempfile.gettempdir())

    def is_source_file(self, path: Union[Path, PurePosixPath]) -> bool:
        return is_source_file(path, self.extensions)

    async def create_mirror(self, root_path: Path) -> Mirror:
        """
        Create a fresh mirror of the workspace at ``root_path``.

        Args:
            root_path: Root of the workspace to copy

        Returns:
            The created mirror

        Raises:
            MirrorCreationError: If the scratch directory can't be created or a source file can't be read.
                When the directory was already created, its path is carried by the error so the caller
                can delete it.
        """
        started = time.perf_counter()
        mirror = await asyncio.to_thread(self._create_mirror_sync, root_path)
        elapsed = time.perf_counter() - started
        logger.info(
            f"Mirror of {root_path} created at {mirror.path} "
            f"({len(mirror.entries)} files in {elapsed:.3f}s)"
        )
        return mirror

    def _create_mirror_sync(self, root_path: Path) -> Mirror:
        if not root_path.is_dir():
            logger.error(f"Workspace directory {root_path} does not exist")
            raise MirrorCreationError(f"Workspace directory {root_path} does not exist", root_path)

        try:
            self.temp_root.mkdir(parents=True, exist_ok=True)
            mirror_path = Path(tempfile.mkdtemp(prefix=MIRROR_PREFIX, dir=self.temp_root))
        except OSError as e:
            logger.error(f"Could not create the temporary compilation directory: {e}")
            raise MirrorCreationError(
                f"Could not create the temporary compilation directory: {e}", root_path
            ) from e

        logger.debug(f"Temporary compilation directory created at {mirror_path}")

        mirror = Mirror(path=mirror_path)
        try:
            relative_paths = self._walk_sources(root_path)
        except MirrorCreationError as e:
            e.mirror_path = mirror_path
            raise

        for relative_path in relative_paths:
            try:
                content = (root_path / relative_path).read_bytes()
                mirror.entries[relative_path] = self._write_entry(mirror_path, relative_path, content)
            except OSError as e:
                logger.error(f"Could not copy {relative_path} into {mirror_path}: {e}")
                raise MirrorCreationError(
                    f"Could not copy {relative_path} into the temporary directory: {e}", root_path, mirror_path
                ) from e

        return mirror

    async def overlay_documents(
        self, mirror: Mirror, root_path: Path, documents: Iterable[Tuple[Path, bytes]]
    ) -> List[MirrorEntry]:
        """
        Write editor content over a freshly created mirror.

        Documents outside ``root_path`` or that aren't source files are skipped.

        Raises:
            MirrorCreationError: If a document can't be written; the error carries the mirror path
        """
        overlays = []
        for path, content in documents:
            relative = relative_to_root(path, root_path)
            if relative is None or not self.is_source_file(relative):
                continue
            overlays.append((relative, content))

        if not overlays:
            return []

        try:
            entries = await asyncio.to_thread(self._overlay_sync, mirror.path, overlays)
        except OSError as e:
            logger.error(f"Could not restore open documents into {mirror.path}: {e}")
            raise MirrorCreationError(
                f"Could not restore open documents into the temporary directory: {e}", root_path, mirror.path
            ) from e

        for entry in entries:
            mirror.entries[entry.relative_path] = entry
        logger.debug(f"Restored {len(entries)} open document(s) into {mirror.path}")
        return entries

    def _overlay_sync(self, mirror_path: Path, overlays: List[Tuple[PurePosixPath, bytes]]) -> List[MirrorEntry]:
        return [self._write_entry(mirror_path, relative, content) for relative, content in overlays]

    def _walk_sources(self, directory: Path, root_path: Optional[Path] = None) -> List[PurePosixPath]:
        """List source files below ``directory``, relative to ``root_path``."""
        root_path = root_path or directory
        sources: List[PurePosixPath] = []

        def raise_walk_error(error: OSError) -> None:
            raise error

        try:
            for current, dirnames, filenames in os.walk(directory, onerror=raise_walk_error):
                dirnames.sort()
                for filename in sorted(filenames):
                    absolute = Path(current) / filename
                    if not self.is_source_file(absolute):
                        continue
                    relative = relative_to_root(absolute, root_path)
                    if relative is not None:
                        sources.append(relative)
        except OSError as e:
            raise MirrorCreationError(f"Could not list {directory}: {e}", root_path) from e

        return sources

    @staticmethod
    def _write_entry(mirror_path: Path, relative_path: PurePosixPath, content: bytes) -> MirrorEntry:
        destination = mirror_path / relative_path
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
        return MirrorEntry(relative_path=relative_path, fingerprint=_fingerprint(content), size=len(content))

    def _require_mirror(self, workspace: Workspace) -> Mirror:
        if workspace.mirror is None:
            raise FileCopyError(f"Workspace {workspace.uri} has no temporary compilation directory")
        return workspace.mirror

    def _checked_relative_path(self, workspace: Workspace, path: Union[Path, PurePosixPath]) -> PurePosixPath:
        """Resolve ``path`` (relative or absolute) against the workspace root, refusing escapes."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = workspace.root_path / candidate

        relative = relative_to_root(candidate, workspace.root_path)
        if relative is None:
            raise FileCopyError(f"{path} is not inside workspace {workspace.root_path}", Path(path))
        if not self.is_source_file(relative):
            raise FileCopyError(f"{relative} is not an Ink file and is not mirrored", Path(path))
        return relative

    async def apply_document_update(
        self, workspace: Workspace, relative_path: Union[Path, PurePosixPath], content: Union[str, bytes]
    ) -> MirrorEntry:
        """
        Overwrite (or create) one mirrored file with the given content.

        Args:
            workspace: Workspace owning the mirror
            relative_path: Path of the document, relative to the workspace root
            content: New content of the document

        Returns:
            The updated mirror entry

        Raises:
            FileCopyError: If the path escapes the workspace, isn't a source file, or can't be written
        """
        mirror = self._require_mirror(workspace)
        relative = self._checked_relative_path(workspace, relative_path)
        data = content.encode("utf-8") if isinstance(content, str) else content

        async with workspace.io_lock:
            current = mirror.entries.get(relative)
            if (
                current is not None
                and current.fingerprint == _fingerprint(data)
                and (mirror.path / relative).is_file()
            ):
                logger.debug(f"{relative} is unchanged in {mirror.path}")
                return current

            try:
                entry = await asyncio.to_thread(self._write_entry, mirror.path, relative, data)
            except OSError as e:
                logger.error(f"Could not update {relative} in {mirror.path}: {e}")
                raise FileCopyError(f"Could not update {relative}: {e}", mirror.path / relative) from e

            mirror.entries[relative] = entry
            logger.debug(f"Updated {relative} in {mirror.path}")
            return entry

    async def apply_newly_created_file(self, workspace: Workspace, absolute_path: Path) -> List[MirrorEntry]:
        """
        Copy a file reported as created into the mirror.

        Directories are accepted too: every source file they contain is copied.

        Args:
            workspace: Workspace owning the mirror
            absolute_path: Path of the created file or directory

        Returns:
            The mirror entries written

        Raises:
            FileCopyError: If the path escapes the workspace or can't be copied
        """
        mirror = self._require_mirror(workspace)
        async with workspace.io_lock:
            try:
                copied = await asyncio.to_thread(self._copy_created_sync, workspace, mirror, absolute_path)
            except OSError as e:
                logger.error(f"Could not copy newly created {absolute_path}: {e}")
                raise FileCopyError(f"Could not copy {absolute_path}: {e}", absolute_path) from e
            except MirrorCreationError as e:
                raise FileCopyError(str(e), absolute_path) from e

        for entry in copied:
            mirror.entries[entry.relative_path] = entry
        logger.debug(f"Copied {len(copied)} newly created file(s) into {mirror.path}")
        return copied

    def _copy_created_sync(self, workspace: Workspace, mirror: Mirror, absolute_path: Path) -> List[MirrorEntry]:
        if absolute_path.is_dir():
            if relative_to_root(absolute_path, workspace.root_path) is None:
                raise FileCopyError(f"{absolute_path} is not inside workspace {workspace.root_path}", absolute_path)
            relatives: Iterable[PurePosixPath] = self._walk_sources(absolute_path, workspace.root_path)
        else:
            relatives = [self._checked_relative_path(workspace, absolute_path)]

        copied = []
        for relative in relatives:
            content = (workspace.root_path / relative).read_bytes()
            copied.append(self._write_entry(mirror.path, relative, content))
        return copied

    async def delete_mirror(self, mirror: Mirror) -> bool:
        """
        Delete a mirror and its compiled output, best-effort.

        Returns:
            True if everything was removed
        """
        return await asyncio.to_thread(self._delete_mirror_sync, mirror)

    @staticmethod
    def _delete_mirror_sync(mirror: Mirror) -> bool:
        removed = True
        try:
            shutil.rmtree(mirror.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not delete temporary compilation directory {mirror.path}: {e}")
            removed = False

        try:
            mirror.output_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not delete compiled story {mirror.output_path}: {e}")
            removed = False

        return removed

    @staticmethod
    def exists(mirror: Mirror) -> bool:
        return mirror.path.is_dir()

