"""Helpers converting between document URIs and file system paths."""

import os
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Union

from pygls.uris import from_fs_path, to_fs_path


def uri_to_path(uri: str) -> Path:
    """Convert a ``file://`` URI (or a bare path) to a path."""
    if "://" not in uri:
        return Path(uri)
    fs_path = to_fs_path(uri)
    if fs_path is None:
        raise ValueError(f"Not a file URI: {uri}")
    return Path(fs_path)


def path_to_uri(path: Path) -> str:
    uri = from_fs_path(str(path))
    if uri is None:
        raise ValueError(f"Cannot build a URI for {path}")
    return uri


def relative_to_root(path: Path, root: Path) -> Optional[PurePosixPath]:
    """
    Return ``path`` relative to ``root``, or None when it escapes the root.

    Both paths are normalized lexically first so that ``..`` segments cannot
    be used to leave the root.
    """
    normalized_path = Path(os.path.normpath(os.path.abspath(path)))
    normalized_root = Path(os.path.normpath(os.path.abspath(root)))
    try:
        relative = normalized_path.relative_to(normalized_root)
    except ValueError:
        return None
    if relative == Path("."):
        return None
    return PurePosixPath(relative.as_posix())


def is_source_file(path: Union[PurePosixPath, Path], extensions: Iterable[str]) -> bool:
    suffix = path.suffix.lower()
    return any(suffix == extension.lower() for extension in extensions)
