"""User-visible notifications sent through ``window/showMessage``."""

import logging
from typing import Optional

from lsprotocol import types
from pygls.lsp.server import LanguageServer

logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = (
    "The Ink language server encountered an error. "
    "Check the server log for more information."
)


class LanguageServerNotifier:
    """Shows messages in the editor; failures to send are logged, never raised."""

    def __init__(self, server: LanguageServer):
        self._server = server

    def _show(self, message_type: types.MessageType, message: str) -> None:
        try:
            self._server.window_show_message(types.ShowMessageParams(type=message_type, message=message))
        except Exception as e:
            logger.error(f"Could not show message '{message}': {e}")

    def show_error_message(self, message: str) -> None:
        self._show(types.MessageType.Error, message)

    def show_warning_message(self, message: str) -> None:
        self._show(types.MessageType.Warning, message)

    def show_information_message(self, message: str) -> None:
        self._show(types.MessageType.Info, message)

    def report_server_error(self, message: Optional[str] = None) -> None:
        text = SERVER_ERROR_MESSAGE if not message else f"{SERVER_ERROR_MESSAGE} ({message})"
        self._show(types.MessageType.Error, text)
