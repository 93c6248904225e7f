from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import SiteConfig, load_site_config
from .errors import SiteError
from .server import PreviewServer

logger = logging.getLogger(__name__)


class RebuildScheduler:
    """Run rebuilds on a worker thread, at most one at a time.

    :meth:`schedule` only records the request and returns, so the watchdog
    dispatch thread never blocks on a build. Requests that arrive while a
    rebuild runs collapse into a single follow-up rebuild.
    """

    def __init__(self, build: Callable[[], object], on_success: Optional[Callable[[], None]] = None):
        self.build = build
        self.on_success = on_success
        self._wake = threading.Condition()
        self._busy = False
        self._pending = False
        self._reason = ""
        self._stopped = False
        self._thread: Optional[threading.Thread] = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> bool:
        return self._pending

    def start(self) -> None:
        self._thread = threading.Thread(target=self._worker, name="rebuild-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Drop any queued rebuild and wait for a running one to finish."""
        with self._wake:
            self._stopped = True
            self._pending = False
            self._wake.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def schedule(self, reason: str) -> bool:
        """Queue a rebuild.

        Returns False when the request was folded into one already queued.
        """
        with self._wake:
            if self._stopped or self._pending:
                return False
            self._pending = True
            if self._busy:
                logger.info("[watch] rebuild queued: %s", reason)
                self._reason = "queued changes"
            else:
                self._reason = reason
            self._wake.notify_all()
            return True

    def _worker(self) -> None:
        while True:
            with self._wake:
                while not self._pending and not self._stopped:
                    self._wake.wait()
                if self._stopped:
                    return
                self._pending = False
                self._busy = True
                reason = self._reason
            logger.info("[watch] rebuild triggered: %s", reason)
            try:
                self._run_once()
            finally:
                with self._wake:
                    self._busy = False

    def _run_once(self) -> None:
        try:
            self.build()
        except SiteError as exc:
            logger.error("[watch] rebuild failed: %s", exc)
            return
        except Exception:
            logger.exception("[watch] rebuild failed")
            return
        if self.on_success is not None:
            self.on_success()
        logger.info("[watch] rebuild complete")


class RebuildHandler(FileSystemEventHandler):
    def __init__(
        self,
        scheduler: RebuildScheduler,
        root: Path,
        ignore: tuple[Path, ...] = (),
        only: Optional[Path] = None,
    ):
        super().__init__()
        self.scheduler = scheduler
        self.root = root
        self.ignore = tuple(path.resolve() for path in ignore)
        self.only = only.resolve() if only is not None else None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed", "closed_no_write"):
            return
        changed = Path(str(event.src_path)).resolve()
        if self.only is not None and changed != self.only:
            return
        if any(changed.is_relative_to(path) for path in self.ignore):
            return
        try:
            relative = changed.relative_to(self.root).as_posix()
        except ValueError:
            relative = changed.as_posix()
        self.scheduler.schedule(f"{event.event_type}: {relative}")


def watch_targets(config: SiteConfig) -> list[tuple[Path, bool, Optional[Path]]]:
    """Directories to watch: (directory, recursive, single file of interest)."""
    targets: list[tuple[Path, bool, Optional[Path]]] = []
    for directory in (config.content_dir, config.public_dir):
        if directory.is_dir():
            targets.append((directory, True, None))
    if config.config_path is not None and config.config_path.parent.is_dir():
        targets.append((config.config_path.parent, False, config.config_path))
    return targets


def run_dev(
    config_path: Optional[Path],
    overrides: Optional[dict] = None,
    stop: Optional[threading.Event] = None,
) -> None:
    """Build in development mode, serve with live reload, rebuild on change."""
    overrides = dict(overrides or {}, mode="development")

    def load() -> SiteConfig:
        return load_site_config(config_path, overrides=overrides)

    config = load()
    build_site(config)

    preview = PreviewServer(
        config.output_dir, config.base_path, config.host, config.port, live_reload=True
    )
    # reload the config on every rebuild so edits to it take effect
    scheduler = RebuildScheduler(lambda: build_site(load()), on_success=preview.trigger_reload)
    scheduler.start()
    observer = Observer()
    for directory, recursive, only in watch_targets(config):
        handler = RebuildHandler(scheduler, config.project_root, ignore=(config.output_dir,), only=only)
        observer.schedule(handler, str(directory), recursive=recursive)
        logger.info("[watch] watching %s", directory)

    stop = stop or threading.Event()

    def request_stop(signum, frame) -> None:
        logger.info("[watch] received %s, shutting down...", signal.Signals(signum).name)
        stop.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, request_stop)
        signal.signal(signal.SIGTERM, request_stop)

    observer.start()
    preview.start()
    try:
        while not stop.wait(0.5):
            pass
    finally:
        observer.stop()
        observer.join()
        scheduler.stop()
        preview.shutdown()
