"""Tests for the emitter entry point."""

import pytest

import main as entry
from log_emitter.output import LocalOutputError


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(entry.signal, "signal", lambda *args: None)


class TestMain:
    def test_missing_sink_host_exits_2(self, monkeypatch):
        monkeypatch.delenv("SINK_HOST", raising=False)
        monkeypatch.delenv("EMITTER_CONFIG", raising=False)
        assert entry.main([]) == 2

    def test_bad_interval_exits_2(self, monkeypatch):
        monkeypatch.delenv("EMITTER_CONFIG", raising=False)
        assert entry.main(["--sink-host", "elk", "--interval", "0"]) == 2

    def test_missing_config_file_exits_2(self):
        assert entry.main(["--config", "/nonexistent/emitter.yaml"]) == 2

    def test_runs_configured_emitters(self, monkeypatch):
        monkeypatch.delenv("EMITTER_CONFIG", raising=False)
        seen = []

        def fake_run_emitters(configs, shutdown_event):
            seen.extend(configs)

        monkeypatch.setattr(entry, "run_emitters", fake_run_emitters)
        assert entry.main(["--sink-host", "elk", "--service-name", "checkout-svc"]) == 0
        assert [c.service_name for c in seen] == ["checkout-svc"]

    def test_local_output_failure_exits_1(self, monkeypatch):
        monkeypatch.delenv("EMITTER_CONFIG", raising=False)

        def failing_run_emitters(configs, shutdown_event):
            raise LocalOutputError("stdout closed")

        monkeypatch.setattr(entry, "run_emitters", failing_run_emitters)
        assert entry.main(["--sink-host", "elk"]) == 1
