"""Tests for config reload in the watch command."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from qmdsync.cli.sync import reload_config
from qmdsync.client.ops import IndexClient
from qmdsync.config.models import SyncConfig, SyncMode, TimeoutsConfig
from qmdsync.sync.coordinator import SyncCoordinator


@pytest.fixture(autouse=True)
def no_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("qmdsync.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml")


@pytest.fixture
def coordinator() -> SyncCoordinator:
    client = MagicMock(spec=IndexClient)
    return SyncCoordinator(client, SyncConfig(sync_mode=SyncMode.ON_STARTUP))


class TestReloadConfig:
    def test_given_changed_file_when_reloaded_then_sync_and_timeouts_applied(
        self, tmp_path: Path, coordinator: SyncCoordinator
    ) -> None:
        # Given
        config_file = tmp_path / "qmdsync.yaml"
        config_file.write_text(
            "sync:\n"
            "  sync_mode: on-change\n"
            "  collection_dir: /elsewhere\n"
            "timeouts:\n"
            "  incremental_sec: 30\n"
            "  status_format: json\n"
        )
        vault = tmp_path / "vault"

        # When
        applied = reload_config(coordinator, vault, {"config_file": config_file})

        # Then
        assert applied is True
        assert coordinator.config.sync_mode is SyncMode.ON_CHANGE
        assert coordinator.config.collection_dir == str(vault)
        timeouts = coordinator._client.set_timeouts.call_args.args[0]  # type: ignore[attr-defined]
        assert isinstance(timeouts, TimeoutsConfig)
        assert timeouts.incremental_sec == 30
        assert timeouts.status_format == "json"
        assert coordinator._incremental_timeout_sec == 30

    def test_given_invalid_file_when_reloaded_then_settings_kept(
        self, tmp_path: Path, coordinator: SyncCoordinator
    ) -> None:
        config_file = tmp_path / "qmdsync.yaml"
        config_file.write_text("sync:\n  sync_mode: sometimes\n")

        applied = reload_config(coordinator, tmp_path, {"config_file": config_file})

        assert applied is False
        assert coordinator.config.sync_mode is SyncMode.ON_STARTUP
        coordinator._client.set_timeouts.assert_not_called()  # type: ignore[attr-defined]

    def test_given_tool_override_when_reloaded_then_override_kept(
        self, tmp_path: Path, coordinator: SyncCoordinator
    ) -> None:
        config_file = tmp_path / "qmdsync.yaml"
        config_file.write_text("sync:\n  tool_path: /from/file/qmd\n")

        reload_config(
            coordinator,
            tmp_path,
            {"config_file": config_file, "sync": {"tool_path": "/cli/qmd"}},
        )

        assert coordinator.config.tool_path == "/cli/qmd"
        coordinator._client.set_tool_path.assert_called_once_with("/cli/qmd")  # type: ignore[attr-defined]
