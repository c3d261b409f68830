"""Spawning inklecate against a workspace mirror."""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence

from inkls.config.types import InkSettings
from inkls.lsp.utils.models import CompilerOutput
from inkls.lsp.workspace.errors import CompilerInvocationError

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "inklecate"


class CompilerInvoker:
    """
    Runs the external compiler and collects its report.

    The compiler is started with the mirror as working directory and the
    entry file as argument; standard output and error are captured
    together. A non-zero exit status is returned as-is: inklecate uses it
    to signal a story with errors, which the translator interprets.
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        launcher: Sequence[str] = (),
        timeout: float = 30.0,
    ):
        """
        Initialize the invoker.

        Args:
            executable: Default compiler path, used when settings don't name one
            launcher: Arguments prepended to the command line (e.g. ``["mono"]``)
            timeout: Seconds to wait for the compiler before giving up on it
        """
        self.executable = executable
        self.launcher = list(launcher)
        self.timeout = timeout

    def build_command(self, settings: InkSettings, entry_path: PurePosixPath, output_path: Path) -> List[str]:
        executable = settings.get("inklecateExecutablePath") or self.executable or DEFAULT_EXECUTABLE
        launcher = list(self.launcher)
        if not launcher and settings.get("runThroughMono"):
            launcher = ["mono"]

        return [*launcher, executable, "-o", str(output_path), str(entry_path)]

    async def invoke(
        self,
        mirror_path: Path,
        settings: InkSettings,
        entry_path: Optional[PurePosixPath] = None,
        output_path: Optional[Path] = None,
    ) -> CompilerOutput:
        """
        Compile the story whose entry file lives in ``mirror_path``.

        Args:
            mirror_path: Mirror directory, used as working directory
            settings: Settings of the document that triggered the compile
            entry_path: Entry file relative to the mirror, defaults to ``mainStoryPath``
            output_path: Where the compiled story goes, defaults to a file beside the mirror

        Returns:
            The compiler's report and exit status

        Raises:
            CompilerInvocationError: If the compiler can't be spawned or runs past the timeout
        """
        entry = entry_path or PurePosixPath(settings["mainStoryPath"])
        output = output_path or mirror_path.with_name(f"{mirror_path.name}.json")
        command = self.build_command(settings, entry, output)
        logger.debug(f"Running {' '.join(command)} in {mirror_path}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(mirror_path),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            logger.error(f"Could not start the compiler '{command[0]}': {e}")
            raise CompilerInvocationError(f"Could not start the compiler '{command[0]}': {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"The compiler did not finish within {self.timeout}s, killing it")
            await self._kill(process)
            raise CompilerInvocationError(
                f"The compiler did not finish within {self.timeout} seconds", timed_out=True
            )
        except BaseException:
            # Cancelled (e.g. at shutdown): the child must not outlive the request
            logger.warning(f"Compilation in {mirror_path} was interrupted, killing the compiler")
            await self._kill(process)
            raise

        raw_output = stdout.decode("utf-8", errors="replace").lstrip("\ufeff")
        exit_status = process.returncode if process.returncode is not None else -1
        logger.debug(f"Compiler exited with status {exit_status}")
        return CompilerOutput(
            raw_output=raw_output, exit_status=exit_status, entry_path=entry, mirror_path=mirror_path
        )

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
