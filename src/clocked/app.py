"""Application entry point: headless sync and reporting."""

import argparse
import logging
import signal
import sys
from dataclasses import asdict

import orjson
from PySide6.QtCore import QCoreApplication

from clocked.services.analytics import month_bounds
from clocked.services.cache_store import CacheStore
from clocked.services.config_manager import ConfigManager
from clocked.services.sync_service import SyncService
from clocked.services.time_calculator import format_time_split, time_split_for_sessions
from clocked.types import TimeSplit

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="clocked", description="Sync and summarise Claude Code sessions.")
    parser.add_argument("--month", help="print the YYYY-MM summary as JSON after syncing")
    parser.add_argument("--no-sync", action="store_true", help="skip the startup sync pass")
    parser.add_argument("--watch", action="store_true", help="keep running and re-sync on changes")
    return parser.parse_args(argv)


def _month_time_split(store: CacheStore, projects_root, month: str) -> TimeSplit:
    start, end = month_bounds(month)
    # list_sessions_in_range is inclusive; the month end is not
    sessions = [s for s in store.list_sessions_in_range(start, end) if s.created < end]
    return time_split_for_sessions(projects_root, sessions)


def run(argv: list[str] | None = None) -> int:
    """Launch the application."""
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("Clocked")
    app.setOrganizationName("clocked")
    app.setOrganizationDomain("clocked.local")

    config = ConfigManager()
    setup_logging(config.get_bool("advanced/debugLogging"))

    store = CacheStore(config.database_path())
    service = SyncService(
        store,
        projects_root=config.projects_root(),
        prune_orphans=config.get_bool("general/pruneOrphans"),
    )

    ret = 0
    try:
        if not args.no_sync and config.get_bool("general/syncOnStartup"):
            result = service.sync()
            if result is not None and not result.success:
                ret = 1
            elif result is not None and result.projects_root is None:
                logger.info("No Claude projects directory at %s", service.projects_root)

        if args.month:
            try:
                summary = store.monthly_summary(args.month)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 2
            if service.projects_root.is_dir():
                summary.time_split = _month_time_split(store, service.projects_root, args.month)
                logger.debug("Time split for %s: %s", args.month, format_time_split(summary.time_split))
            sys.stdout.write(orjson.dumps(asdict(summary), option=orjson.OPT_INDENT_2).decode() + "\n")

        if args.watch or config.get_bool("general/watchForChanges"):
            # Allow Ctrl+C to kill the app
            signal.signal(signal.SIGINT, signal.SIG_DFL)
            service.enable_watching()
            ret = app.exec()
    finally:
        service.cleanup()
        store.close()
    return ret
