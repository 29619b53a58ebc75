"""Periodic clean-up of stopped containers and dangling images."""

from __future__ import annotations

import logging
import threading

from containerz.docker.api import DockerClient, PruneReport

logger = logging.getLogger(__name__)

#: Seconds between two clean-up runs.
CLEANING_INTERVAL = 24 * 60 * 60.0


class Vacuum:
    """Removes stopped containers and unnamed images at a fixed interval."""

    def __init__(self, cli: DockerClient, interval: float = CLEANING_INTERVAL) -> None:
        self.cli = cli
        self.interval = interval
        self._quit = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start cleaning in a background thread."""
        logger.info("janitor-starting")
        self._thread = threading.Thread(target=self._vacuum, name="janitor", daemon=True)
        self._thread.start()
        logger.info("janitor-started")

    def stop(self) -> None:
        """Stop cleaning and wait for the background thread to finish."""
        logger.info("janitor-stopping")
        self._quit.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        logger.info("janitor-stopped")

    def _vacuum(self) -> None:
        while not self._quit.wait(self.interval):
            self._clean()
        logger.info("janitor was told to quit so it is")

    def _clean(self) -> None:
        try:
            cnt_report = self.cli.containers_prune()
        except Exception as exc:  # noqa: BLE001 - keep cleaning on engine errors
            logger.error("unable to vacuum containers %s", exc)
            cnt_report = PruneReport()
        try:
            img_report = self.cli.images_prune()
        except Exception as exc:  # noqa: BLE001
            logger.error("unable to vacuum images %s", exc)
            img_report = PruneReport()
        logger.info(
            "Removed %d containers reclaiming %d bytes",
            len(cnt_report.deleted),
            cnt_report.space_reclaimed,
        )
        logger.info(
            "Removed %d images reclaiming %d bytes",
            len(img_report.deleted),
            img_report.space_reclaimed,
        )