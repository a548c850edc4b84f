"""Tests for the JSONL activity log."""

import json
from datetime import datetime, timedelta
from pathlib import Path

from ddcli.activity_log import ActivityEntry, ActivityLog
from ddcli.shell.models import ExecutionOutcome, RiskLevel, RiskVerdict


def read_lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestLifecycle:
    def test_open_and_close(self, tmp_path: Path):
        log = ActivityLog(tmp_path / "logs")
        assert not log.is_open

        log.open()
        assert log.is_open
        assert log.path.name == f"ddcli-{datetime.now():%Y-%m-%d}.jsonl"

        log.close()
        assert not log.is_open

    def test_context_manager(self, tmp_path: Path):
        with ActivityLog(tmp_path / "logs") as log:
            log.log("custom", "ok", "hello")

        assert not log.is_open
        assert read_lines(log.path)[0]["message"] == "hello"

    def test_disabled_log_writes_nothing(self, tmp_path: Path):
        """Test that a disabled log creates no files."""
        with ActivityLog(tmp_path / "logs", enabled=False) as log:
            entry = log.log("custom", "ok", "hello")

        assert entry.message == "hello"
        assert not (tmp_path / "logs").exists()

    def test_unopened_log_is_noop(self, tmp_path: Path):
        log = ActivityLog(tmp_path / "logs")

        log.log("custom", "ok", "hello")

        assert not log.path.exists()


class TestEntries:
    def test_log_command(self, tmp_path: Path):
        outcome = ExecutionOutcome(
            success=False,
            stdout="x" * 1000,
            stderr="boom",
            exit_code=2,
            command="make",
            duration_ms=12,
        )
        verdict = RiskVerdict(RiskLevel.LOW, safe=True, requires_confirmation=False)

        with ActivityLog(tmp_path, session_id="s1") as log:
            log.log_command(outcome, verdict, working_dir="/tmp")

        entry = read_lines(log.path)[0]
        assert entry["kind"] == "command"
        assert entry["status"] == "failed"
        assert entry["session_id"] == "s1"
        assert entry["data"]["exit_code"] == 2
        assert entry["data"]["risk_level"] == "low"
        assert entry["data"]["working_dir"] == "/tmp"
        assert len(entry["data"]["stdout_preview"]) == 500
        assert entry["data"]["stderr_preview"] == "boom"
        assert "timed_out" not in entry["data"]

    def test_log_api_call_keeps_summary(self, tmp_path: Path):
        """Test that only a short response summary is kept."""
        with ActivityLog(tmp_path) as log:
            log.log_api_call("openai", "list files", success=True, response="y" * 300)
            log.log_api_call("openai", "list files", success=False, error="API server error")

        success, failure = read_lines(log.path)
        assert success["status"] == "success"
        assert len(success["data"]["response_preview"]) == 103
        assert failure["status"] == "failed"
        assert failure["data"]["error"] == "API server error"
        assert "response_preview" not in failure["data"]

    def test_security_and_config_events(self, tmp_path: Path):
        with ActivityLog(tmp_path) as log:
            log.log_security_event("blocked", "rm -rf /", "Command contains a blocked operation: rm -rf /")
            log.log_config_change("reset", "configuration reset to defaults")

        security, config = read_lines(log.path)
        assert security["kind"] == "security"
        assert security["status"] == "blocked"
        assert security["data"]["command"] == "rm -rf /"
        assert config["kind"] == "config"
        assert config["message"] == "Config [reset]: configuration reset to defaults"


class TestQuery:
    def test_filters(self, tmp_path: Path):
        with ActivityLog(tmp_path, session_id="a") as log:
            log.log_api_call("openai", "q1", success=True)
            log.log_security_event("cancelled", "rm x")
            log.log_api_call("openai", "q2", success=True)

            api_calls = list(log.query(kind="api_call"))
            limited = list(log.query(limit=1))
            other_session = list(log.query(session_id="b"))

        assert [e.data["query"] for e in api_calls] == ["q1", "q2"]
        assert len(limited) == 1
        assert other_session == []

    def test_skips_malformed_lines(self, tmp_path: Path):
        log = ActivityLog(tmp_path)
        log.path.write_text('not json\n{"timestamp": "t", "session_id": "s", "kind": "k", "status": "ok", "message": "m"}\n')

        entries = list(log.query())

        assert entries == [ActivityEntry(timestamp="t", session_id="s", kind="k", status="ok", message="m")]

    def test_missing_directory(self, tmp_path: Path):
        assert list(ActivityLog(tmp_path / "missing").query()) == []


class TestCleanup:
    def test_removes_old_files(self, tmp_path: Path):
        """Test that only files older than the retention period are removed."""
        old = tmp_path / f"ddcli-{datetime.now() - timedelta(days=10):%Y-%m-%d}.jsonl"
        recent = tmp_path / f"ddcli-{datetime.now() - timedelta(days=1):%Y-%m-%d}.jsonl"
        unrelated = tmp_path / "ddcli-notes.jsonl"
        for path in (old, recent, unrelated):
            path.write_text("")

        removed = ActivityLog(tmp_path).cleanup_old_logs(retention_days=7)

        assert removed == 1
        assert not old.exists()
        assert recent.exists()
        assert unrelated.exists()
