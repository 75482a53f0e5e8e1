"""
Bridge daemon entrypoint for the Neurio-to-MQTT pipeline.

Runs three concurrent asyncio tasks on one event loop:
1. **Poll loop**: :class:`~bridge.src.poller.PollCycle` queries every sensor,
   replaces the readings snapshot and publishes successful readings to MQTT.
2. **Config watcher**: reloads the TOML config when the file changes,
   debounced on its modification time.
3. **HTTP server**: uvicorn serving the read-only status endpoints.

Signals:
- SIGUSR1 publishes the Home Assistant discovery topics once (retained).
- SIGTERM/SIGINT set a shared shutdown event; every task finishes its
  current iteration and the process exits.

Structured JSON logging is used for all events. Configuration errors at
startup and failure to bind the HTTP port are fatal.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import uvicorn

from bridge.src.api import BridgeContext, create_app
from bridge.src.config import SettingsHolder, config_file_path, load_settings
from bridge.src.config_watcher import ConfigReloader, current_mtime, watch_config
from bridge.src.discovery import DiscoveryBuilder
from bridge.src.metadata import HttpMetadataFetcher
from bridge.src.poller import PollCycle
from bridge.src.publisher import Publisher
from bridge.src.snapshot import SnapshotStore

if TYPE_CHECKING:
    from bridge.src.config import BridgeSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging for the bridge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible fingerprint of a secret for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: BridgeSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    The MQTT password is replaced by a fingerprint.

    Args:
        settings: The loaded bridge settings.
    """
    sensors = ", ".join(f"{s.name}@{s.host}" for s in settings.registry()) or "none"
    logger.info(
        "Bridge starting with config: "
        "http_port=%s, sensors=[%s], query_interval_ms=%s, "
        "mqtt=%s://%s:%s, mqtt_user=%s, mqtt_password=%s, "
        "topic=%s, discovery_topic=%s",
        settings.bridge.port,
        sensors,
        settings.query_interval_ms,
        settings.mqtt.proto,
        settings.mqtt.host,
        settings.mqtt.port,
        settings.mqtt.user or "anonymous",
        _masked_token(settings.mqtt.password),
        settings.mqtt.topic,
        settings.homeassistant.discovery_topic,
    )


# ---------------------------------------------------------------------------
# Single-shot actions (easily testable)
# ---------------------------------------------------------------------------


async def publish_discovery_once(
    *,
    builder: DiscoveryBuilder,
    store: SnapshotStore,
    publisher: Publisher,
) -> bool:
    """Build discovery descriptors for the current snapshot and publish them.

    Catches all exceptions so that a failed pass never takes the daemon down.

    Returns:
        True if descriptors were published.
    """
    try:
        descriptors = await builder.build(store.snapshot)
        return await publisher.publish_discovery(descriptors)
    except Exception:
        logger.error("Discovery publish error", exc_info=True)
        return False


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


async def _serve_http(server: uvicorn.Server, shutdown_event: asyncio.Event) -> None:
    """Run uvicorn until shutdown; a stopped server shuts the bridge down."""

    async def _stop_on_shutdown() -> None:
        await shutdown_event.wait()
        server.should_exit = True

    stopper = asyncio.create_task(_stop_on_shutdown())
    try:
        await server.serve()
    finally:
        stopper.cancel()
        shutdown_event.set()


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run tasks.

    Sets up SIGTERM/SIGINT handlers for graceful shutdown and SIGUSR1 for
    an on-demand discovery publish.
    """
    configure_logging()

    path = config_file_path()
    settings = load_settings(path)
    log_config_summary(settings)

    holder = SettingsHolder(settings)
    store = SnapshotStore()
    publisher = Publisher(holder)
    shutdown_event = asyncio.Event()
    discovery_tasks: set[asyncio.Task] = set()

    async with httpx.AsyncClient() as client:
        builder = DiscoveryBuilder(holder, HttpMetadataFetcher(client))
        poll_cycle = PollCycle(
            settings=holder,
            client=client,
            store=store,
            publisher=publisher,
        )
        reloader = ConfigReloader(path, holder, initial_mtime=current_mtime(path))

        def _on_discovery_signal() -> None:
            logger.info("Publishing Home Assistant discovery topics to MQTT")
            task = asyncio.create_task(
                publish_discovery_once(builder=builder, store=store, publisher=publisher)
            )
            discovery_tasks.add(task)
            task.add_done_callback(discovery_tasks.discard)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: _handle_signal(shutdown_event))
        loop.add_signal_handler(signal.SIGUSR1, _on_discovery_signal)

        app = create_app(BridgeContext(settings=holder, store=store, discovery=builder))
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=settings.bridge.host,
                port=settings.bridge.port,
                log_config=None,
            )
        )
        logger.info("Listening on %s:%d", settings.bridge.host, settings.bridge.port)

        await asyncio.gather(
            _serve_http(server, shutdown_event),
            poll_cycle.run_forever(shutdown_event),
            watch_config(reloader, shutdown_event),
        )
        if discovery_tasks:
            await asyncio.gather(*discovery_tasks, return_exceptions=True)

    logger.info("Shutdown complete")


def main() -> None:
    """Synchronous entrypoint for the bridge daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
