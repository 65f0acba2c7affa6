"""Resolution of import specifiers to project-relative file paths."""

from __future__ import annotations

import posixpath
from typing import Iterable, Optional, Protocol, Set

from .language import Language


class FileLookup(Protocol):
    """Minimal filesystem view needed for resolution."""

    def exists(self, path: str) -> bool:
        ...

    def is_dir(self, path: str) -> bool:
        ...


class KnownFiles:
    """Lookup backed by an in-memory set of project-relative file paths."""

    def __init__(self, paths: Iterable[str]) -> None:
        self._files: Set[str] = set(paths)

    def exists(self, path: str) -> bool:
        return path in self._files

    def is_dir(self, path: str) -> bool:
        return False


def resolve(source_path: str, specifier: str, lookup: FileLookup) -> Optional[str]:
    """Resolve ``specifier`` imported by ``source_path``; None when unresolvable.

    Filesystem errors raised by ``lookup`` are treated as a miss.
    """
    language = Language.for_path(source_path)
    if language is None or not specifier:
        return None
    try:
        if language is Language.PYTHON:
            return _resolve_python(source_path, specifier, lookup)
        if language is Language.JAVASCRIPT or language is Language.CSS:
            return _resolve_relative_module(source_path, specifier, lookup, language)
    except OSError:
        return None
    raise AssertionError(f"Unhandled language: {language}")  # pragma: no cover


def _resolve_relative_module(
    source_path: str, specifier: str, lookup: FileLookup, language: Language
) -> Optional[str]:
    # Bare specifiers name external packages.
    if not specifier.startswith((".", "/")):
        return None

    if specifier.startswith("/"):
        candidate = _normalize(specifier.lstrip("/"))
    else:
        candidate = _normalize(_join(posixpath.dirname(source_path), specifier))
    if candidate is None:
        return None

    extensions = language.resolvable_extensions
    if candidate != ".":
        if lookup.exists(candidate) and not lookup.is_dir(candidate):
            return candidate
        for ext in extensions:
            with_ext = f"{candidate}{ext}"
            if lookup.exists(with_ext):
                return with_ext

    directory = "" if candidate == "." else candidate
    for ext in extensions:
        index_path = _join(directory, f"index{ext}")
        if lookup.exists(index_path):
            return index_path

    return None


def _resolve_python(source_path: str, specifier: str, lookup: FileLookup) -> Optional[str]:
    dot_count = len(specifier) - len(specifier.lstrip("."))
    module_part = specifier[dot_count:]

    if dot_count == 0:
        base = ""
    else:
        base = posixpath.dirname(source_path)
        for _ in range(dot_count - 1):
            if not base:
                return None
            base = posixpath.dirname(base)

    if not module_part:
        init_path = _join(base, "__init__.py")
        return init_path if lookup.exists(init_path) else None

    module_path = _join(base, module_part.replace(".", "/"))
    candidate = f"{module_path}.py"
    if lookup.exists(candidate):
        return candidate

    package_init = _join(module_path, "__init__.py")
    if lookup.exists(package_init):
        return package_init
    return None


def _join(base: str, relative: str) -> str:
    return f"{base}/{relative}" if base else relative


def _normalize(path: str) -> Optional[str]:
    normalized = posixpath.normpath(path)
    if normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


__all__ = ["FileLookup", "KnownFiles", "resolve"]
