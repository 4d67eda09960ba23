"""Input validation helpers for command-line file handling."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Union
from urllib.parse import urlparse


def _has_url_scheme(path_str: str) -> bool:
    """Return True if *path_str* looks like a URL with a scheme.

    Single-letter schemes such as ``"C"`` are treated as drive letters on
    Windows and therefore ignored.
    """
    parsed = urlparse(path_str)
    return bool(parsed.scheme and len(parsed.scheme) > 1)


def _normalise_exts(allowed_exts: Iterable[str]) -> set[str]:
    return {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in allowed_exts}


def validate_input_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Validate a user-supplied input *path* (file or directory).

    URLs are rejected, the path must exist, and files must carry one of
    *allowed_exts*.  Returns the resolved ``Path``.
    """
    path_str = str(path)
    if _has_url_scheme(path_str):
        raise ValueError("URLs are not allowed")

    p = Path(path_str).expanduser()
    try:
        p = p.resolve(strict=True)
    except FileNotFoundError as exc:
        raise ValueError(f"File does not exist: {path_str}") from exc

    if p.is_dir():
        return p
    if not p.is_file():
        raise ValueError(f"Not a file: {path_str}")

    if p.suffix.lower() not in _normalise_exts(allowed_exts):
        raise ValueError(f"Unsupported file extension: {p.suffix}")

    return p


def expand_input_paths(paths: Iterable[Union[str, Path]], allowed_exts: Iterable[str]) -> List[Path]:
    """Validate *paths*, replacing directories by their matching files.

    Directory contents are sorted by name and not searched recursively.
    """
    exts = _normalise_exts(allowed_exts)
    expanded: List[Path] = []
    for raw in paths:
        p = validate_input_path(raw, exts)
        if p.is_dir():
            expanded.extend(
                sorted(
                    (child for child in p.iterdir() if child.is_file() and child.suffix.lower() in exts),
                    key=lambda child: child.name,
                )
            )
        else:
            expanded.append(p)
    return expanded


def validate_output_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Validate an output file *path*.

    Ensures the directory exists, the extension is allowed and the path does not
    contain a URL scheme.  Returns the resolved ``Path``.
    """
    path_str = str(path)
    if _has_url_scheme(path_str):
        raise ValueError("URLs are not allowed")

    p = Path(path_str).expanduser()
    p = p.resolve()

    if not p.parent.exists():
        raise ValueError(f"Directory does not exist: {p.parent}")

    if p.suffix.lower() not in _normalise_exts(allowed_exts):
        raise ValueError(f"Unsupported file extension: {p.suffix}")

    return p
