"""
Diagnostic translator - from inklecate's text report to LSP diagnostics.

inklecate reports one finding per line::

    ERROR: 'story/chapter1.ink' line 12: Expected ... but saw ...
    WARNING: line 3: Apparent loose end ...
    TODO: 'main.ink' line 40, column 2: write the ending

Paths are relative to the working directory of the compiler, i.e. the
mirror. They are re-joined onto the workspace root so that diagnostics
land on the documents the user is editing.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional

from lsprotocol import types

from inkls.lsp.utils.models import CompilerOutput, DocumentDiagnostic, Workspace
from inkls.lsp.utils.paths import path_to_uri, relative_to_root
from inkls.lsp.workspace.errors import DiagnosticParseError

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "inklecate"

REPORT_LINE = re.compile(
    r"^\s*(?P<severity>RUNTIME ERROR|RUNTIME WARNING|ERROR|WARNING|TODO)\s*:\s*"
    r"(?:'(?P<path>[^']+)'\s+)?"
    r"line\s+(?P<line>\d+)"
    r"(?:\s*,?\s*col(?:umn)?\s+(?P<column>\d+))?"
    r"\s*:\s*(?P<message>.*?)\s*$",
    re.IGNORECASE,
)

SEVERITIES: Dict[str, types.DiagnosticSeverity] = {
    "ERROR": types.DiagnosticSeverity.Error,
    "RUNTIME ERROR": types.DiagnosticSeverity.Error,
    "WARNING": types.DiagnosticSeverity.Warning,
    "RUNTIME WARNING": types.DiagnosticSeverity.Warning,
    "TODO": types.DiagnosticSeverity.Information,
}


@dataclass(frozen=True)
class ReportEntry:
    """One parsed report line, still in mirror coordinates (1-based)."""

    severity: types.DiagnosticSeverity
    relative_path: PurePosixPath
    line: int
    column: Optional[int]
    message: str


class DiagnosticTranslator:
    """Parses compiler reports into diagnostics addressed to original documents."""

    def __init__(self, uri_for_path: Optional[Callable[[Path], str]] = None):
        """
        Args:
            uri_for_path: Maps an original file path to the URI published for it.
                Defaults to a plain ``file://`` URI.
        """
        self._uri_for_path = uri_for_path or path_to_uri

    def parse_line(self, line: str, mirror_path: Path, entry_path: PurePosixPath) -> Optional[ReportEntry]:
        """
        Parse a single report line.

        Returns:
            The entry, or None if the line isn't a diagnostic inside the mirror
        """
        match = REPORT_LINE.match(line)
        if not match:
            return None

        raw_path = match.group("path")
        if raw_path is None:
            relative = entry_path
        else:
            candidate = Path(raw_path)
            if candidate.is_absolute():
                relative_to_mirror = relative_to_root(candidate, mirror_path)
                if relative_to_mirror is None:
                    logger.debug(f"Ignoring diagnostic outside of the mirror: {raw_path}")
                    return None
                relative = relative_to_mirror
            else:
                relative = PurePosixPath(candidate.as_posix())
            if ".." in relative.parts:
                logger.debug(f"Ignoring diagnostic escaping the mirror: {raw_path}")
                return None

        column = match.group("column")
        return ReportEntry(
            severity=SEVERITIES[match.group("severity").upper()],
            relative_path=relative,
            line=int(match.group("line")),
            column=int(column) if column is not None else None,
            message=match.group("message") or match.group("severity").capitalize(),
        )

    def to_diagnostic(self, entry: ReportEntry, workspace: Workspace) -> DocumentDiagnostic:
        """Address a report entry to the original document in ``workspace``."""
        line = max(entry.line - 1, 0)
        character = max(entry.column - 1, 0) if entry.column is not None else 0
        uri = self._uri_for_path(workspace.root_path / entry.relative_path)

        return DocumentDiagnostic(
            uri=uri,
            diagnostic=types.Diagnostic(
                range=types.Range(
                    start=types.Position(line=line, character=character),
                    end=types.Position(line=line + 1, character=0),
                ),
                message=entry.message,
                severity=entry.severity,
                source=DIAGNOSTIC_SOURCE,
            ),
        )

    def translate(self, output: CompilerOutput, mirror_path: Path, workspace: Workspace) -> List[DocumentDiagnostic]:
        """
        Translate a whole report.

        Unparseable lines are skipped. A report from a failed compilation
        that yields no diagnostic at all is an error, so that failures are
        never silently shown as a clean story.

        Args:
            output: The compiler's report
            mirror_path: Mirror the compiler ran in
            workspace: Workspace the mirror belongs to

        Returns:
            Diagnostics in report order

        Raises:
            DiagnosticParseError: If a non-zero exit status came with no recognizable diagnostic
        """
        diagnostics: List[DocumentDiagnostic] = []
        skipped = 0

        for line in output.raw_output.splitlines():
            if not line.strip():
                continue
            entry = self.parse_line(line, mirror_path, output.entry_path)
            if entry is None:
                skipped += 1
                continue
            diagnostics.append(self.to_diagnostic(entry, workspace))

        if skipped:
            logger.debug(f"Skipped {skipped} unrecognized line(s) in the compiler report")

        if not diagnostics and output.exit_status != 0:
            raise DiagnosticParseError(
                f"The compiler exited with status {output.exit_status} without a recognizable diagnostic",
                raw_output=output.raw_output,
                exit_status=output.exit_status,
            )

        return diagnostics

    def synthetic_diagnostic(self, error: DiagnosticParseError, entry_path: PurePosixPath, workspace: Workspace) -> DocumentDiagnostic:
        """Single diagnostic standing in for a report that couldn't be parsed."""
        first_line = next((line.strip() for line in error.raw_output.splitlines() if line.strip()), "")
        message = f"inklecate failed (exit status {error.exit_status})"
        if first_line:
            message = f"{message}: {first_line}"

        return DocumentDiagnostic(
            uri=self._uri_for_path(workspace.root_path / entry_path),
            diagnostic=types.Diagnostic(
                range=types.Range(
                    start=types.Position(line=0, character=0),
                    end=types.Position(line=1, character=0),
                ),
                message=message,
                severity=types.DiagnosticSeverity.Error,
                source=DIAGNOSTIC_SOURCE,
            ),
        )


def group_by_uri(diagnostics: List[DocumentDiagnostic]) -> Dict[str, List[types.Diagnostic]]:
    grouped: Dict[str, List[types.Diagnostic]] = {}
    for item in diagnostics:
        grouped.setdefault(item.uri, []).append(item.diagnostic)
    return grouped
