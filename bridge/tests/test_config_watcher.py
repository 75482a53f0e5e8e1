"""
Unit tests for debounced config reload.

Tests verify:
- Two notifications with the same mtime reload at most once.
- The initial mtime counts as already handled.
- A changed mtime reloads and swaps the holder's settings.
- A broken config file keeps the previous settings.
- The watch loop picks up a real file rewrite and stops on shutdown.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from bridge.src.config import BridgeSettings, SettingsHolder, load_settings
from bridge.src.config_watcher import (
    ConfigReloader,
    ReloadState,
    current_mtime,
    watch_config,
)

_CONFIG_A = '[sensors.garage]\nhost = "10.0.0.5"\n'
_CONFIG_B = '[sensors.shed]\nhost = "10.0.0.6"\n'


def _write(path: Path, content: str, mtime_ns: int) -> None:
    """Atomically replace *path* so a watcher never sees a half-written file."""
    staged = path.with_suffix(".staged")
    staged.write_text(content)
    os.utime(staged, ns=(mtime_ns, mtime_ns))
    os.replace(staged, path)


class TestConfigReloader:
    """Debounce state machine."""

    def test_same_mtime_reloads_once(self) -> None:
        loader = MagicMock(return_value=BridgeSettings())
        reloader = ConfigReloader("c.toml", SettingsHolder(BridgeSettings()), loader=loader)

        assert reloader.notify(1_000) is True
        assert reloader.notify(1_000) is False

        loader.assert_called_once()
        assert reloader.reload_count == 1
        assert reloader.state is ReloadState.WATCHING

    def test_initial_mtime_is_not_a_change(self) -> None:
        loader = MagicMock()
        reloader = ConfigReloader(
            "c.toml",
            SettingsHolder(BridgeSettings()),
            initial_mtime=1_000,
            loader=loader,
        )

        assert reloader.notify(1_000) is False
        loader.assert_not_called()

    def test_new_mtime_swaps_settings(self) -> None:
        new_settings = BridgeSettings(sensors={"shed": {"host": "10.0.0.6"}})
        holder = SettingsHolder(BridgeSettings())
        reloader = ConfigReloader(
            "c.toml",
            holder,
            initial_mtime=1_000,
            loader=MagicMock(return_value=new_settings),
        )

        assert reloader.notify(2_000) is True
        assert holder.current is new_settings

    def test_broken_file_keeps_previous_settings(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        _write(path, _CONFIG_A, 1_000_000_000)
        original = load_settings(path)
        holder = SettingsHolder(original)
        reloader = ConfigReloader(path, holder, initial_mtime=current_mtime(path))

        _write(path, "[sensors\n", 2_000_000_000)

        assert reloader.notify(current_mtime(path)) is False
        assert holder.current is original
        assert reloader.state is ReloadState.WATCHING

    def test_reload_from_real_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        _write(path, _CONFIG_A, 1_000_000_000)
        holder = SettingsHolder(load_settings(path))
        reloader = ConfigReloader(path, holder, initial_mtime=current_mtime(path))

        _write(path, _CONFIG_B, 2_000_000_000)
        reloader.notify(current_mtime(path))

        assert [s.name for s in holder.current.registry()] == ["shed"]

    def test_current_mtime_missing_file(self, tmp_path: Path) -> None:
        assert current_mtime(tmp_path / "gone.toml") is None


class TestWatchConfig:
    """Polling watch loop."""

    @pytest.mark.asyncio
    async def test_picks_up_rewrite_once(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        _write(path, _CONFIG_A, 1_000_000_000)
        holder = SettingsHolder(load_settings(path))
        reloader = ConfigReloader(path, holder, initial_mtime=current_mtime(path))
        shutdown = asyncio.Event()

        task = asyncio.create_task(watch_config(reloader, shutdown, period_s=0.01))
        await asyncio.sleep(0.05)
        _write(path, _CONFIG_B, 2_000_000_000)
        await asyncio.sleep(0.1)
        shutdown.set()
        await asyncio.wait_for(task, timeout=2)

        assert reloader.reload_count == 1
        assert [s.name for s in holder.current.registry()] == ["shed"]

    @pytest.mark.asyncio
    async def test_missing_file_is_ignored(self, tmp_path: Path) -> None:
        loader = MagicMock()
        reloader = ConfigReloader(
            tmp_path / "gone.toml", SettingsHolder(BridgeSettings()), loader=loader
        )
        shutdown = asyncio.Event()

        task = asyncio.create_task(watch_config(reloader, shutdown, period_s=0.01))
        await asyncio.sleep(0.05)
        shutdown.set()
        await asyncio.wait_for(task, timeout=2)

        loader.assert_not_called()
