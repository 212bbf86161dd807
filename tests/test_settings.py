from __future__ import annotations

from pathlib import Path

import pytest

from viewingdesk.core.runtime import SchedulerRuntime
from viewingdesk.core.settings import BookingPolicy, SchedulerSettings
from viewingdesk.data.directory import StaticDirectory

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def test_example_config_loads():
    settings = SchedulerSettings.from_file(CONFIG_DIR / "scheduler.example.yml")
    assert settings.timezone == "Europe/London"
    assert settings.directory.path == (CONFIG_DIR / "directory.example.yml").resolve()
    assert settings.store_path.is_absolute()
    assert settings.policy == BookingPolicy()


def test_relative_paths_and_runtime(tmp_path):
    (tmp_path / "dir.yml").write_text("agents: {}\nproperties: [p-1]\n")
    config = tmp_path / "scheduler.yml"
    config.write_text(
        "store_path: data/appointments.json\n"
        "audit_log_path: logs/audit.log\n"
        "directory: {path: dir.yml}\n"
        "policy: {min_lead_time_minutes: 0, max_attendees: 4}\n"
    )
    settings = SchedulerSettings.from_file(config)
    assert settings.store_path == (tmp_path / "data" / "appointments.json").resolve()

    runtime = SchedulerRuntime.from_settings(settings, audit=False)
    assert isinstance(runtime.directory, StaticDirectory)
    assert runtime.audit_logger is None
    assert runtime.booking.policy.max_attendees == 4


@pytest.mark.parametrize(
    "body",
    [
        "directory: {path: d.yml}\nunknown_key: 1\n",
        "directory: {path: d.yml}\npolicy: {min_duration_minutes: 90, max_duration_minutes: 30}\n",
        "directory: {path: d.yml, base_url: 'http://x.test'}\n",
        "directory: {}\n",
        "directory: {path: d.yml}\ntimezone: Mars/Olympus\n",
    ],
)
def test_invalid_settings(tmp_path, body):
    config = tmp_path / "scheduler.yml"
    config.write_text(body)
    with pytest.raises(ValueError):
        SchedulerSettings.from_file(config)
