"""Application configuration manager wrapping QSettings."""

import logging
import os
from pathlib import Path

from PySide6.QtCore import QObject, Signal, Slot, QSettings

logger = logging.getLogger(__name__)

# Default values
DEFAULTS = {
    "general/projectsRoot": "~/.claude/projects",
    "general/databasePath": "~/.clocked/cache.db",
    "general/syncOnStartup": True,
    "general/pruneOrphans": True,
    "general/watchForChanges": False,
    "advanced/debugLogging": False,
}


class ConfigManager(QObject):
    """Where the app reads Claude data from and keeps its cache."""

    settings_changed = Signal(str)  # key

    def __init__(self, parent=None):
        super().__init__(parent)
        self._settings = QSettings()

    @Slot(str, result=str)
    def get_string(self, key: str) -> str:
        return str(self._settings.value(key, DEFAULTS.get(key, "")))

    @Slot(str, result=int)
    def get_int(self, key: str) -> int:
        val = self._settings.value(key, DEFAULTS.get(key, 0))
        try:
            return int(val)
        except (ValueError, TypeError):
            return DEFAULTS.get(key, 0)

    @Slot(str, result=bool)
    def get_bool(self, key: str) -> bool:
        val = self._settings.value(key, DEFAULTS.get(key, False))
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.lower() in ("true", "1", "yes")
        return bool(val)

    @Slot(str, str)
    def set_string(self, key: str, value: str):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, int)
    def set_int(self, key: str, value: int):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str, bool)
    def set_bool(self, key: str, value: bool):
        self._settings.setValue(key, value)
        self.settings_changed.emit(key)

    @Slot(str)
    def reset(self, key: str):
        """Forget a stored value so the default applies again."""
        self._settings.remove(key)
        self.settings_changed.emit(key)

    def projects_root(self) -> Path:
        return Path(os.path.expanduser(self.get_string("general/projectsRoot")))

    def database_path(self) -> Path:
        return Path(os.path.expanduser(self.get_string("general/databasePath")))

    @Slot()
    def clear_cache(self):
        """Delete the cache database so the next start rebuilds it."""
        db_path = self.database_path()
        for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            logger.info("Removed %s", path)
