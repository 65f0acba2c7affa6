"""Project-rooted file access with ignore-aware listing and change watching."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .ignore import IgnoreRules
from .logging import get_logger

ChangeCallback = Callable[[str, str], None]

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

logger = get_logger("filestore")


class LocalFileStore:
    """File Store over a local directory tree.

    Paths accepted by every method may be absolute or project-relative; paths
    returned are project-relative posix strings.
    """

    def __init__(self, root: Path | str, ignore_rules: IgnoreRules | None = None) -> None:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")
        self._root = root_path
        self.ignore_rules = ignore_rules

    @property
    def root(self) -> Path:
        return self._root

    def to_absolute(self, path: str | Path) -> Path:
        candidate = Path(str(path).replace("\\", "/"))
        if candidate.is_absolute():
            return candidate
        return self._root / candidate

    def to_relative(self, path: str | Path) -> str:
        absolute = self.to_absolute(path)
        try:
            return absolute.relative_to(self._root).as_posix()
        except ValueError:
            return absolute.as_posix()

    def exists(self, path: str | Path) -> bool:
        return self.to_absolute(path).exists()

    def is_dir(self, path: str | Path) -> bool:
        return self.to_absolute(path).is_dir()

    def read(self, path: str | Path) -> str:
        """Return file text; raises OSError or UnicodeDecodeError for unreadable files."""
        return self.to_absolute(path).read_text(encoding="utf-8")

    def write(self, path: str | Path, content: str) -> None:
        target = self.to_absolute(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def remove(self, path: str | Path) -> None:
        self.to_absolute(path).unlink(missing_ok=True)

    def is_ignored(self, path: str | Path, is_dir: bool = False) -> bool:
        if self.ignore_rules is None:
            return False
        return self.ignore_rules.is_ignored(self.to_relative(path), is_dir)

    def list_dir(self, path: str | Path = ".") -> List[str]:
        """Return sorted entry names of a directory, skipping ignored entries."""
        directory = self.to_absolute(path)
        rel_dir = self.to_relative(directory)
        names: List[str] = []
        with os.scandir(directory) as iterator:
            for entry in iterator:
                if entry.name in _EXCLUDED_FILES:
                    continue
                rel_path = entry.name if rel_dir in {"", "."} else f"{rel_dir}/{entry.name}"
                if self.is_ignored(rel_path, _entry_is_dir(entry)):
                    continue
                names.append(entry.name)
        return sorted(names)

    def all_files(self) -> List[str]:
        """Return every non-ignored project file as a sorted list of relative paths."""
        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(self._root, onerror=_log_walk_error):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(self._root).as_posix() if current_dir != self._root else ""

            kept_dirs = []
            for name in sorted(dirnames):
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if self.is_ignored(rel_path, True):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if self.is_ignored(rel_path, False):
                    continue
                files.append(rel_path)
        return sorted(files)

    def watch(self, callback: ChangeCallback) -> Callable[[], None]:
        """Watch the whole tree; ``callback(event, rel_path)`` runs on the observer thread.

        Events are ``add``, ``change``, ``unlink``, ``addDir`` and ``unlinkDir``.
        Returns a function that stops the watcher.
        """
        handler = _ChangeForwarder(self, callback)
        observer = Observer()
        observer.schedule(handler, str(self._root), recursive=True)
        observer.daemon = True
        observer.start()
        logger.debug("Watching %s for changes", self._root)

        def _unsubscribe() -> None:
            observer.stop()
            observer.join(timeout=5)

        return _unsubscribe


class _ChangeForwarder(FileSystemEventHandler):
    """Translates watchdog events into project-relative change notifications."""

    def __init__(self, store: LocalFileStore, callback: ChangeCallback) -> None:
        super().__init__()
        self._store = store
        self._callback = callback

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward("addDir" if event.is_directory else "add", event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._forward("change", event.src_path, False)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward("unlinkDir" if event.is_directory else "unlink", event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self.on_deleted(event)
        dest = getattr(event, "dest_path", None)
        if dest:
            self._forward("addDir" if event.is_directory else "add", dest, event.is_directory)

    def _forward(self, name: str, raw_path: object, is_dir: bool) -> None:
        path = os.fsdecode(raw_path)  # type: ignore[arg-type]
        rel_path = self._store.to_relative(path)
        if rel_path.startswith("/") or self._store.is_ignored(rel_path, is_dir):
            return
        self._callback(name, rel_path)


def _entry_is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir()
    except OSError:
        return False


def _log_walk_error(error: OSError) -> None:
    logger.debug("Skipping unreadable directory: %s", error)


__all__ = ["ChangeCallback", "LocalFileStore"]
