"""Open document tracking and per-document settings resolution."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from inkls.config.settings import get_default_settings, normalize_settings
from inkls.config.types import InkSettings
from inkls.lsp.utils.models import Capabilities, DocumentTarget, DocumentUri, OpenDocument
from inkls.lsp.utils.paths import path_to_uri, uri_to_path

logger = logging.getLogger(__name__)

SettingsFetcher = Callable[[str], Awaitable[Any]]


@dataclass
class TrackedDocument:
    """An open document. ``content`` holds the bytes of the last update received for it."""

    uri: str
    version: int
    path: Path
    content: Optional[bytes] = None


class DocumentSynchronizer:
    """
    Tracks the documents open in the editor and their settings.

    Settings are fetched from the client with ``workspace/configuration``.
    While a fetch for a URI is outstanding every caller shares it, so a
    burst of edits costs a single round-trip; the result stays cached until
    the document is closed or the configuration changes.
    """

    def __init__(self, fetch_settings: Optional[SettingsFetcher] = None, capabilities: Optional[Capabilities] = None):
        """
        Initialize the synchronizer.

        Args:
            fetch_settings: Coroutine function returning the raw ``ink`` section for a URI
            capabilities: Client capabilities; without ``configuration`` defaults are used
        """
        self._fetch_settings = fetch_settings
        self.capabilities = capabilities or Capabilities()
        self._documents: Dict[str, TrackedDocument] = {}
        self._settings: Dict[str, "asyncio.Future[InkSettings]"] = {}

    def open(self, document: OpenDocument) -> TrackedDocument:
        tracked = TrackedDocument(
            uri=document.uri,
            version=document.version,
            path=uri_to_path(document.uri),
            content=self.content_for(document),
        )
        self._documents[document.uri] = tracked
        return tracked

    def change(self, document: OpenDocument) -> TrackedDocument:
        tracked = self._documents.get(document.uri)
        if tracked is None:
            return self.open(document)
        if document.version < tracked.version:
            logger.debug(f"Out of order version {document.version} for {document.uri}")
        tracked.version = max(tracked.version, document.version)
        tracked.content = self.content_for(document)
        return tracked

    def contents(self) -> List[Tuple[Path, bytes]]:
        """Path and last received content of every open document."""
        return [
            (tracked.path, tracked.content)
            for tracked in self._documents.values()
            if tracked.content is not None
        ]

    def close(self, uri: str) -> None:
        """Forget a closed document and its cached settings."""
        self._documents.pop(uri, None)
        future = self._settings.pop(uri, None)
        if future is not None and not future.done():
            future.cancel()

    def get(self, uri: str) -> Optional[TrackedDocument]:
        return self._documents.get(uri)

    def invalidate_settings(self) -> None:
        """Drop every cached setting, e.g. after ``workspace/didChangeConfiguration``."""
        logger.debug(f"Invalidating {len(self._settings)} cached document settings")
        self._settings.clear()

    def uri_for_path(self, path: Path) -> str:
        """Return the URI the client uses for ``path`` when the document is open."""
        for tracked in self._documents.values():
            if tracked.path == path:
                return tracked.uri
        return path_to_uri(path)

    @staticmethod
    def content_for(document: OpenDocument) -> bytes:
        """Bytes written to the mirror for an open document."""
        return document.text.encode("utf-8")

    @staticmethod
    def resolve_target(argument: Any) -> Optional[DocumentTarget]:
        """
        Turn a command argument into a document target.

        Accepts a URI string, a mapping with ``uri`` (and optionally
        ``version``/``text``), or an existing target. Anything else is
        logged and ignored.
        """
        if argument is None:
            return None
        if isinstance(argument, (OpenDocument, DocumentUri)):
            return argument
        if isinstance(argument, str):
            return DocumentUri(uri=argument)
        if isinstance(argument, dict) and isinstance(argument.get("uri"), str):
            if isinstance(argument.get("text"), str):
                return OpenDocument(
                    uri=argument["uri"], version=int(argument.get("version") or 0), text=argument["text"]
                )
            return DocumentUri(uri=argument["uri"])

        logger.warning(f"Ignoring unsupported document argument: {argument!r}")
        return None

    async def resolve_settings(self, uri: str) -> InkSettings:
        """
        Return the settings that apply to ``uri``.

        Args:
            uri: Document URI used as configuration scope

        Returns:
            Settings merged over the defaults
        """
        if not self.capabilities.configuration or self._fetch_settings is None:
            return get_default_settings()

        future = self._settings.get(uri)
        if future is None:
            future = asyncio.ensure_future(self._fetch(uri))
            self._settings[uri] = future

        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            if future.cancelled():
                return get_default_settings()
            raise
        except Exception as e:
            logger.error(f"Could not fetch settings for {uri}: {e}")
            if self._settings.get(uri) is future:
                del self._settings[uri]
            return get_default_settings()

    async def _fetch(self, uri: str) -> InkSettings:
        assert self._fetch_settings is not None
        raw = await self._fetch_settings(uri)
        return normalize_settings(raw)
