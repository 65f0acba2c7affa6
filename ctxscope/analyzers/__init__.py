"""Import scanning and resolution for supported language families."""

from __future__ import annotations

from .language import Language
from .resolver import FileLookup, KnownFiles, resolve
from .scanner import scan

__all__ = ["FileLookup", "KnownFiles", "Language", "resolve", "scan"]
