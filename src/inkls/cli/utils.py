import logging
import os
import traceback
from typing import Any, Dict

import click


def get_env_flag(env_var: str, default: bool = False) -> bool:
    """Get a boolean flag from an environment variable.

    Args:
        env_var: Name of the environment variable
        default: Default value if environment variable is not set

    Returns:
        True if the environment variable is set to "1", "true", or "yes" (case insensitive)
        False otherwise
    """
    value = os.environ.get(env_var, "").lower()
    return value in ("1", "true", "yes") if value else default


def configure_logging(debug: bool = False) -> None:
    """Configure logging for all modules.

    Records are written to stderr so that the stdio transport used by
    editors stays free of anything but protocol messages.

    Args:
        debug: Whether to enable debug logging
    """
    if not debug:
        debug = get_env_flag("INKLS_DEBUG")

    log_level = logging.DEBUG if debug else logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers to avoid duplicate messages
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    formatter = logging.Formatter("%(levelname)s:%(name)s:%(message)s")
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for logger_name in logging.root.manager.loggerDict:
        logger = logging.getLogger(logger_name)
        logger.setLevel(log_level)
        logger.propagate = True


def format_error(error: Exception, debug: bool = False) -> Dict[str, Any]:
    """Format an error for output.

    Args:
        error: The exception that occurred
        debug: Whether to include debug information

    Returns:
        Dict containing error information
    """
    error_info = {"error": str(error)}

    if debug:
        error_info["traceback"] = traceback.format_exc()
        error_info["type"] = error.__class__.__name__

    return error_info


def output_error(error: Exception, debug: bool = False) -> None:
    """Print an error on stderr and abort the current command.

    Args:
        error: The exception that occurred
        debug: Whether to include the traceback
    """
    error_info = format_error(error, debug)

    click.echo(f"Error: {error_info['error']}", err=True)
    if debug and "traceback" in error_info:
        click.echo("\nTraceback:", err=True)
        click.echo(error_info["traceback"], err=True)

    raise click.Abort()
