import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_lsp
import yaml
from lsprotocol.types import (
    ClientCapabilities,
    InitializeParams,
    WorkspaceFolder,
)
from pytest_lsp import ClientServerConfig, LanguageClient

FIXTURES_DIR = Path(__file__).parent.parent.parent / "fixtures"

# Isolated copy of the fixture project and a server config running the fake compiler
E2E_DIR = Path(tempfile.mkdtemp(prefix="inkls-e2e-"))
PROJECT_DIR = E2E_DIR / "project"
shutil.copytree(FIXTURES_DIR / "ink-project", PROJECT_DIR)
CONFIG_PATH = E2E_DIR / "config.yml"
CONFIG_PATH.write_text(
    yaml.safe_dump(
        {
            "inkls": 1,
            "compiler": {
                "executable": str(FIXTURES_DIR / "fake_inklecate.py"),
                "launcher": [sys.executable],
                "timeout": 10,
            },
            "mirror": {"temp_root": str(E2E_DIR / "mirrors")},
        }
    ),
    encoding="utf-8",
)


@pytest.fixture
def project_dir() -> Path:
    return PROJECT_DIR


@pytest_lsp.fixture(
    config=ClientServerConfig(
        server_command=[sys.executable, "-m", "inkls", "lsp"],
        server_env={**os.environ, "INKLS_CONFIG": str(CONFIG_PATH)},
    ),
)
async def client(lsp_client: LanguageClient):
    # Setup
    params = InitializeParams(
        capabilities=ClientCapabilities(),
        workspace_folders=[WorkspaceFolder(uri=PROJECT_DIR.as_uri(), name="project")],
    )
    await lsp_client.initialize_session(params)

    yield

    # Teardown
    await lsp_client.shutdown_session()
