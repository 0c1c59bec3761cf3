"""
SLA Runtime Services
====================

Process-level machinery around the SLA context:
- SLAConfigManager: sla_config.yaml (warning window, default SLA pair),
  hot reloaded through a watchdog observer
- SLAScheduler: APScheduler job that runs the periodic SLA sweep
"""

import threading
from pathlib import Path
from typing import Awaitable, Callable, Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.sla.application.services import ISLAConfigProvider
from ticketflow.sla.domain import SLAConfig

logger = get_logger(__name__)

SWEEP_JOB_ID = "sla_sweep"


class ConfigFileHandler(FileSystemEventHandler):
    """
    Reloads the SLA config when its file is written or replaced.

    Editors that save through a temp file and rename produce a move or
    create event rather than a modify, so all three are watched.
    """

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        super().__init__()
        self._manager = config_manager
        self._target = config_path.resolve()

    def _touches_target(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", None)]
        return any(p and Path(p).resolve() == self._target for p in paths)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in ("modified", "created", "moved"):
            return
        if self._touches_target(event):
            logger.info(
                "SLA config file changed",
                extra={"path": str(self._target), "event": event.event_type}
            )
            self._manager.reload()


class SLAConfigManager(ISLAConfigProvider):
    """
    Current SLA configuration, swapped atomically on reload.

    The first load is strict: a malformed file stops startup. Later
    reloads are lenient: a malformed file is logged and the last good
    configuration stays in effect.
    """

    def __init__(self):
        self._current: Optional[SLAConfig] = None
        self._lock = threading.Lock()
        self._source: Optional[Path] = None
        self._observer: Optional[Observer] = None

    @staticmethod
    def _read(path: Path) -> SLAConfig:
        if not path.exists():
            logger.warning("SLA config file not found, using defaults", extra={"path": str(path)})
            return SLAConfig()

        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        return SLAConfig.model_validate(raw or {})

    def _swap(self, config: SLAConfig) -> None:
        with self._lock:
            self._current = config

    def load(self, path: Path) -> SLAConfig:
        self._source = Path(path)
        config = self._read(self._source)
        self._swap(config)
        logger.info("SLA configuration loaded", extra={"path": str(self._source), **config.model_dump()})
        return config

    def reload(self) -> bool:
        """Re-read the file; False (and no change) when it cannot be used."""
        if self._source is None:
            return False

        try:
            config = self._read(self._source)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.error(
                "Rejected SLA config reload, previous values stay in effect",
                extra={"path": str(self._source), "error": str(e)}
            )
            return False

        self._swap(config)
        logger.info("SLA configuration reloaded", extra=config.model_dump())
        return True

    def start_watching(self) -> None:
        """Watch the config file's directory. No-op when the file is absent."""
        if self._source is None:
            raise RuntimeError("SLA configuration not loaded; call load() first")
        if not self._source.exists():
            logger.info("No SLA config file to watch", extra={"path": str(self._source)})
            return

        observer = Observer()
        observer.schedule(
            ConfigFileHandler(self, self._source), str(self._source.parent), recursive=False
        )
        try:
            observer.start()
        except OSError as e:
            # inotify limits in some containers
            logger.warning("SLA config hot reload unavailable", extra={"error": str(e)})
            return

        self._observer = observer
        logger.info("Watching SLA config file", extra={"path": str(self._source)})

    def stop_watching(self) -> None:
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)

    def get_config(self) -> SLAConfig:
        with self._lock:
            if self._current is None:
                raise RuntimeError("SLA configuration not loaded")
            return self._current


class SLAScheduler:
    """Runs one coroutine on a fixed interval inside the app's event loop."""

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def start(self, job_func: Callable[[], Awaitable[None]]) -> None:
        if self.is_running:
            logger.warning("SLA sweep already scheduled")
            return

        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            job_func,
            IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name="SLA sweep",
            # A slow sweep is skipped, not stacked
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.interval_seconds,
            replace_existing=True
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("SLA sweep scheduled", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None:
            return
        scheduler.shutdown(wait=False)
        logger.info("SLA sweep stopped")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running
