import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union, cast

import yaml
from jsonschema import ValidationError, validate

from inkls.config.types import ServerConfig

logger = logging.getLogger(__name__)

__all__ = ["load_server_config", "default_server_config"]

DEFAULT_COMPILER_TIMEOUT = 30.0
DEFAULT_EXTENSIONS = [".ink"]


def _apply_defaults(config: Dict[str, Any]) -> ServerConfig:
    """Apply default values to the server config"""
    config = config.copy()

    if "inkls" not in config:
        config["inkls"] = 1

    compiler = dict(config.get("compiler") or {})
    if "executable" not in compiler:
        compiler["executable"] = None
    if "launcher" not in compiler or compiler["launcher"] is None:
        compiler["launcher"] = []
    if "timeout" not in compiler or compiler["timeout"] is None:
        compiler["timeout"] = DEFAULT_COMPILER_TIMEOUT
    config["compiler"] = compiler

    mirror = dict(config.get("mirror") or {})
    if "temp_root" not in mirror:
        mirror["temp_root"] = None
    if not mirror.get("extensions"):
        mirror["extensions"] = list(DEFAULT_EXTENSIONS)
    config["mirror"] = mirror

    return cast(ServerConfig, config)


def default_server_config() -> ServerConfig:
    """Return the configuration used when no config file exists."""
    return _apply_defaults({})


def load_server_config(path: Optional[Union[str, Path]] = None) -> ServerConfig:
    """Load the server configuration.

    The file is looked up in this order:

    1. the ``path`` argument (``--config`` on the command line),
    2. the ``INKLS_CONFIG`` environment variable,
    3. ``~/.inkls/config.yml``.

    Example:
        inkls: 1
        compiler:
          executable: /usr/local/bin/inklecate
          timeout: 10
        mirror:
          extensions: [".ink"]

    Args:
        path: Optional explicit path to the YAML file

    Returns:
        The validated server configuration

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist
        ValueError: If the file doesn't match the configuration schema
    """
    explicit = path is not None or "INKLS_CONFIG" in os.environ
    if path is None:
        path = os.environ.get("INKLS_CONFIG", Path.home() / ".inkls" / "config.yml")
    path = Path(path)
    logger.debug(f"Looking for server config at: {path}")

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Ink language server config not found at {path}")
        logger.warning(f"Ink language server config not found at {path}, using defaults")
        config: Dict[str, Any] = {}
    else:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
            logger.debug(f"Loaded server config from file: {config}")
        if not isinstance(config, dict):
            raise ValueError(f"Invalid server config: expected a mapping in {path}")

    validated_config = _apply_defaults(config)
    logger.debug(f"Config after applying defaults: {validated_config}")

    schema_path = Path(__file__).parent / "config_schemas" / "inkls-config-schema-1.json"
    with open(schema_path) as schema_file:
        schema = json.load(schema_file)

    try:
        validate(instance=validated_config, schema=schema)
    except ValidationError as e:
        raise ValueError(f"Invalid server config: {e.message}")

    return validated_config
