import asyncio
import os
import sys
from pathlib import Path, PurePosixPath

import pytest

from inkls.config.settings import get_default_settings
from inkls.lsp.workspace.compiler import DEFAULT_EXECUTABLE, CompilerInvoker
from inkls.lsp.workspace.errors import CompilerInvocationError

FAKE_COMPILER = Path(__file__).parent.parent.parent / "fixtures" / "fake_inklecate.py"


@pytest.fixture
def mirror(tmp_path) -> Path:
    path = tmp_path / "inkls-mirror"
    path.mkdir()
    return path


def write_entry(mirror: Path, text: str, name: str = "main.ink") -> None:
    (mirror / name).write_text(text, encoding="utf-8")


def test_default_command_line(tmp_path):
    invoker = CompilerInvoker()
    output = tmp_path / "story.json"

    command = invoker.build_command(get_default_settings(), PurePosixPath("main.ink"), output)

    assert command == [DEFAULT_EXECUTABLE, "-o", str(output), "main.ink"]


def test_settings_executable_overrides_configured_one(tmp_path):
    invoker = CompilerInvoker(executable="/usr/bin/inklecate")
    settings = get_default_settings()
    settings["inklecateExecutablePath"] = "/opt/ink/inklecate.exe"
    settings["runThroughMono"] = True

    command = invoker.build_command(settings, PurePosixPath("story/start.ink"), tmp_path / "out.json")

    assert command[:2] == ["mono", "/opt/ink/inklecate.exe"]
    assert command[-1] == "story/start.ink"


def test_configured_launcher_wins_over_mono(tmp_path):
    invoker = CompilerInvoker(executable="inklecate.exe", launcher=["wine"])
    settings = get_default_settings()
    settings["runThroughMono"] = True

    command = invoker.build_command(settings, PurePosixPath("main.ink"), tmp_path / "out.json")

    assert command[:2] == ["wine", "inklecate.exe"]


@pytest.mark.asyncio
async def test_invoke_runs_in_mirror_and_captures_report(mirror):
    write_entry(mirror, "// report: ERROR: line 2: Unexpected content\n// exit: 1\n")
    invoker = CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=10)

    result = await invoker.invoke(mirror, get_default_settings())

    assert result.exit_status == 1
    assert result.raw_output.strip() == "ERROR: line 2: Unexpected content"
    assert result.entry_path == PurePosixPath("main.ink")
    assert result.mirror_path == mirror
    assert (mirror / "compile.started").is_file()


@pytest.mark.asyncio
async def test_invoke_writes_output_beside_mirror(mirror):
    write_entry(mirror, "Hello.\n")
    invoker = CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=10)

    result = await invoker.invoke(mirror, get_default_settings())

    assert result.exit_status == 0
    assert mirror.with_name(f"{mirror.name}.json").is_file()
    assert not (mirror / f"{mirror.name}.json").exists()


@pytest.mark.asyncio
async def test_invoke_uses_given_entry(mirror):
    (mirror / "chapters").mkdir()
    write_entry(mirror, "// report: TODO: line 1: finish\n", name="chapters/intro.ink")
    invoker = CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=10)

    result = await invoker.invoke(mirror, get_default_settings(), PurePosixPath("chapters/intro.ink"))

    assert result.entry_path == PurePosixPath("chapters/intro.ink")
    assert "TODO: line 1: finish" in result.raw_output


@pytest.mark.asyncio
async def test_byte_order_mark_is_stripped(mirror):
    write_entry(mirror, "// bom\n// report: WARNING: line 1: careful\n")
    invoker = CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=10)

    result = await invoker.invoke(mirror, get_default_settings())

    assert result.raw_output.startswith("WARNING")


@pytest.mark.asyncio
async def test_missing_executable_raises(mirror):
    write_entry(mirror, "Hello.\n")
    invoker = CompilerInvoker(executable=str(mirror / "no-such-inklecate"))

    with pytest.raises(CompilerInvocationError) as error:
        await invoker.invoke(mirror, get_default_settings())

    assert not error.value.timed_out


@pytest.mark.asyncio
async def test_timeout_kills_the_compiler(mirror):
    write_entry(mirror, "// sleep: 10\n")
    invoker = CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=0.5)

    with pytest.raises(CompilerInvocationError) as error:
        await invoker.invoke(mirror, get_default_settings())

    assert error.value.timed_out


@pytest.mark.skipif(sys.platform == "win32", reason="probing a process id with signal 0 is POSIX only")
@pytest.mark.asyncio
async def test_cancelled_compile_kills_the_compiler(mirror):
    write_entry(mirror, "// sleep: 10\n")
    invoker = CompilerInvoker(executable=str(FAKE_COMPILER), launcher=[sys.executable], timeout=30)
    pid_file = mirror / "compiler.pid"

    task = asyncio.create_task(invoker.invoke(mirror, get_default_settings()))

    async def started():
        while not (pid_file.is_file() and pid_file.read_text()):
            await asyncio.sleep(0.01)

    await asyncio.wait_for(started(), 5.0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    # Killed and reaped: the process id no longer exists
    with pytest.raises(ProcessLookupError):
        os.kill(int(pid_file.read_text()), 0)
