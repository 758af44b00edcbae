from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Callable

from .constants import EXIT_GENERAL_ERROR

logger = logging.getLogger(__name__)

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalHandler:
    """Graceful shutdown on SIGINT/SIGTERM.

    The first signal runs ``on_shutdown`` (which should stop the crawl and
    cancel its task); a second one exits the process immediately.
    """

    def __init__(
        self,
        on_shutdown: Callable[[], None],
        *,
        exit_code: int = EXIT_GENERAL_ERROR,
        exit_func: Callable[[int], None] = os._exit,
    ) -> None:
        self._on_shutdown = on_shutdown
        self.exit_code = exit_code
        self._exit = exit_func
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []
        self._in_progress = False

    @property
    def cleanup_in_progress(self) -> bool:
        return self._in_progress

    def handle(self, signum: int) -> None:
        if self._in_progress:
            logger.warning("Force exit")
            self._exit(self.exit_code)
            return

        self._in_progress = True
        logger.warning("Received %s. Cleaning up...", signal.Signals(signum).name)
        self._on_shutdown()

    def install(self, loop: asyncio.AbstractEventLoop) -> bool:
        self.uninstall()
        self._loop = loop
        for sig in _SIGNALS:
            try:
                loop.add_signal_handler(sig, self.handle, sig)
            except (NotImplementedError, RuntimeError) as e:
                # Windows event loops have no add_signal_handler.
                logger.debug("Signal handlers unavailable: %s", e)
                self.uninstall()
                return False
            self._installed.append(sig)
        return True

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._installed = []
        self._loop = None
