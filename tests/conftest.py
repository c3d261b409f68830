"""
Global pytest configuration and fixtures.
"""

import os

import pytest


@pytest.fixture(autouse=True)
def isolate_server_environment(request):
    """Keep the developer's own server configuration out of the tests.

    ``INKLS_CONFIG`` and ``INKLS_DEBUG`` are removed for every test and
    restored afterwards. Config unit tests set them explicitly through
    ``monkeypatch`` when they need them.
    """
    saved = {name: os.environ.pop(name, None) for name in ("INKLS_CONFIG", "INKLS_DEBUG")}
    yield
    for name, value in saved.items():
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value
