"""Per-document settings sent by the client under the ``ink`` section."""

import copy
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

from jsonschema import ValidationError, validate

from inkls.config.types import InkSettings

logger = logging.getLogger(__name__)

__all__ = ["CONFIGURATION_SECTION", "get_default_settings", "normalize_settings"]

CONFIGURATION_SECTION = "ink"

_DEFAULT_SETTINGS: InkSettings = {
    "mainStoryPath": "main.ink",
    "inklecateExecutablePath": None,
    "runThroughMono": False,
}


@lru_cache(maxsize=1)
def _settings_schema() -> Dict[str, Any]:
    schema_path = Path(__file__).parent / "config_schemas" / "ink-settings-schema-1.json"
    with open(schema_path) as schema_file:
        return cast(Dict[str, Any], json.load(schema_file))


def get_default_settings() -> InkSettings:
    """Return a fresh copy of the default settings."""
    return copy.deepcopy(_DEFAULT_SETTINGS)


def normalize_settings(raw: Optional[Mapping[str, Any]]) -> InkSettings:
    """Merge client supplied settings over the defaults.

    Unknown keys are kept, ``None`` values fall back to the default for
    that key. If the merged settings do not validate, the defaults are
    returned and the problem is logged.

    Args:
        raw: The value returned by ``workspace/configuration``, may be None

    Returns:
        Validated settings
    """
    settings: Dict[str, Any] = dict(get_default_settings())
    if raw:
        for key, value in raw.items():
            if value is not None:
                settings[key] = value

    try:
        validate(instance=settings, schema=_settings_schema())
    except ValidationError as e:
        logger.warning(f"Ignoring invalid ink settings ({e.message}), using defaults")
        return get_default_settings()

    return cast(InkSettings, settings)
