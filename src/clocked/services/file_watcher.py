"""File system watcher for session index changes, with debounced signals."""

import logging
import os

from PySide6.QtCore import QObject, Signal, QFileSystemWatcher, QTimer

logger = logging.getLogger(__name__)

DEBOUNCE_MS = 100


class IndexWatcher(QObject):
    """Watches the Claude projects tree for session index changes."""

    index_changed = Signal(str)      # sessions-index.json path
    project_changed = Signal(str)    # project directory path
    projects_root_changed = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._watcher = QFileSystemWatcher(self)
        self._debounce_timers: dict[str, QTimer] = {}
        self._projects_root = ""
        self._watched_indexes: set[str] = set()

        self._watcher.fileChanged.connect(self._on_file_changed)
        self._watcher.directoryChanged.connect(self._on_directory_changed)

    @property
    def projects_root(self) -> str:
        return self._projects_root

    def start(self, projects_root: str):
        """Start watching the projects root directory."""
        self.stop()
        self._projects_root = projects_root
        self._watcher.addPath(projects_root)

    def stop(self):
        """Stop all file watching."""
        if self._watcher.files():
            self._watcher.removePaths(self._watcher.files())
        if self._watcher.directories():
            self._watcher.removePaths(self._watcher.directories())
        self._watched_indexes.clear()
        for timer in self._debounce_timers.values():
            timer.stop()
        self._debounce_timers.clear()
        self._projects_root = ""

    def watch_project_dirs(self, project_dirs: list[str]):
        """Replace the set of watched project directories (the root stays)."""
        for d in self._watcher.directories():
            if d != self._projects_root:
                self._watcher.removePath(d)
        for d in project_dirs:
            if d and d != self._projects_root:
                self._watcher.addPath(d)

    def watch_index_files(self, index_paths: list[str]):
        """Replace the set of watched sessions-index.json files."""
        stale = self._watched_indexes - set(index_paths)
        for path in stale:
            self._watcher.removePath(path)
            self._watched_indexes.discard(path)
        for path in index_paths:
            if path not in self._watched_indexes:
                self._watcher.addPath(path)
                self._watched_indexes.add(path)

    def _on_file_changed(self, path: str):
        self._debounce(path, lambda: self._emit_file_changed(path))

    def _on_directory_changed(self, path: str):
        self._debounce(path, lambda: self._emit_dir_changed(path))

    def _debounce(self, key: str, callback):
        """Debounce a callback by DEBOUNCE_MS using the given key."""
        if key in self._debounce_timers:
            self._debounce_timers[key].stop()
        else:
            timer = QTimer(self)
            timer.setSingleShot(True)
            self._debounce_timers[key] = timer

        timer = self._debounce_timers[key]
        try:
            timer.timeout.disconnect()
        except (RuntimeError, TypeError):
            pass
        timer.timeout.connect(callback)
        timer.start(DEBOUNCE_MS)

    def _emit_file_changed(self, path: str):
        if path not in self._watched_indexes:
            return
        # Editors and atomic writes replace the file, which drops the watch
        if os.path.exists(path) and path not in self._watcher.files():
            self._watcher.addPath(path)
        self.index_changed.emit(path)

    def _emit_dir_changed(self, path: str):
        if path == self._projects_root:
            self.projects_root_changed.emit()
        else:
            self.project_changed.emit(path)
