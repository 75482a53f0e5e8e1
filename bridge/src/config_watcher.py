"""
Debounced hot reload of the bridge config file.

A single file write can produce several change notifications. The
:class:`ConfigReloader` state machine (``WATCHING -> DEBOUNCING ->
RELOADING -> WATCHING``) uses the file's modification time as the
de-duplication key, so notifications carrying an already handled mtime are
ignored and one write triggers at most one reload.

:func:`watch_config` is the notification source: it samples the file's
``st_mtime_ns`` at a fixed period and feeds each observation to the
reloader. A reload swaps the settings in the shared
:class:`~bridge.src.config.SettingsHolder`; the poll loop picks them up on
its next cycle. A reload that fails to parse or validate keeps the previous
settings.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from bridge.src.config import load_settings

if TYPE_CHECKING:
    from bridge.src.config import BridgeSettings, SettingsHolder

logger = logging.getLogger(__name__)

WATCH_PERIOD_S: float = 1.0


class ReloadState(enum.Enum):
    WATCHING = "watching"
    DEBOUNCING = "debouncing"
    RELOADING = "reloading"


class ConfigReloader:
    """Reloads settings at most once per distinct file modification time.

    Args:
        path: Config file to reload.
        holder: Settings holder to update.
        initial_mtime: Modification time of the already loaded file, so the
            first observation of an unchanged file is not a reload.
        loader: Settings loader; defaults to :func:`load_settings`.
    """

    def __init__(
        self,
        path: str | Path,
        holder: SettingsHolder,
        *,
        initial_mtime: int | None = None,
        loader: Callable[[Path], BridgeSettings] = load_settings,
    ) -> None:
        self.path = Path(path)
        self._holder = holder
        self._loader = loader
        self._last_key = initial_mtime
        self.state = ReloadState.WATCHING
        self.reload_count = 0

    def notify(self, mtime: int) -> bool:
        """Handle one change notification.

        Args:
            mtime: Modification time of the file when the change was seen.

        Returns:
            ``True`` if the settings were reloaded.
        """
        self.state = ReloadState.DEBOUNCING
        if mtime == self._last_key:
            self.state = ReloadState.WATCHING
            return False
        self._last_key = mtime

        self.state = ReloadState.RELOADING
        try:
            settings = self._loader(self.path)
        except (OSError, tomllib.TOMLDecodeError, ValidationError):
            logger.error(
                "Config reload of %s failed, keeping previous settings",
                self.path,
                exc_info=True,
            )
            return False
        finally:
            self.state = ReloadState.WATCHING

        self._holder.replace(settings)
        self.reload_count += 1
        logger.info("Config reloaded from %s", self.path)
        return True


def current_mtime(path: Path) -> int | None:
    """Return the file's mtime in ns, or None if it cannot be read."""
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return None


async def watch_config(
    reloader: ConfigReloader,
    shutdown_event: asyncio.Event,
    *,
    period_s: float = WATCH_PERIOD_S,
) -> None:
    """Feed file modification times to *reloader* until shutdown.

    Args:
        reloader: The debounced reloader.
        shutdown_event: Event to signal graceful shutdown.
        period_s: Seconds between file checks.
    """
    logger.info("Watching %s for changes (period=%ss)", reloader.path, period_s)
    while not shutdown_event.is_set():
        mtime = current_mtime(reloader.path)
        if mtime is not None:
            reloader.notify(mtime)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=period_s)
    logger.info("Config watcher stopped")
