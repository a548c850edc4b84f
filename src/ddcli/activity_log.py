"""Activity logging for translations and command execution.

- JSONL format with daily rotation
- Explicit lifecycle: opened at startup, flushed and closed at shutdown
- Query interface for reading entries back
"""

import json
import uuid
import warnings
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import IO, Any, Iterator

from ddcli.constants import truncate
from ddcli.shell.models import ExecutionOutcome, RiskVerdict

LOG_FILE_PREFIX = "ddcli-"
MAX_PREVIEW_LENGTH = 500
API_RESPONSE_PREVIEW_LENGTH = 100


@dataclass
class ActivityEntry:
    """A single activity record.

    Attributes:
        timestamp: ISO timestamp of the event.
        session_id: Identifier grouping the entries of one invocation.
        kind: "command", "api_call", "security" or "config".
        status: "success", "failed", "blocked", "cancelled", ...
        message: Short description of the event.
        data: Event-specific fields.
    """

    timestamp: str
    session_id: str
    kind: str
    status: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {k: v for k, v in asdict(self).items() if v not in (None, {}, "")}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityEntry":
        """Create from dictionary."""
        return cls(
            timestamp=data.get("timestamp", ""),
            session_id=data.get("session_id", ""),
            kind=data.get("kind", ""),
            status=data.get("status", ""),
            message=data.get("message", ""),
            data=data.get("data", {}),
        )


class ActivityLog:
    """Writes activity entries to a daily JSONL file.

    Used as a context manager, or opened and closed explicitly:

        with ActivityLog(settings.log_dir) as activity:
            activity.log_api_call("openai", "list files", success=True)
    """

    def __init__(
        self,
        log_dir: Path | str,
        enabled: bool = True,
        session_id: str | None = None,
        max_preview_length: int = MAX_PREVIEW_LENGTH,
    ):
        """Initialize the activity log.

        Args:
            log_dir: Directory for log files.
            enabled: When False every call is a no-op.
            session_id: Session identifier for grouping entries.
            max_preview_length: Maximum length for output previews.
        """
        self.log_dir = Path(log_dir).expanduser()
        self.enabled = enabled
        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.max_preview_length = max_preview_length
        self._stream: IO[str] | None = None
        self._path: Path | None = None

    def __enter__(self) -> "ActivityLog":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def path(self) -> Path:
        return self._path or self._get_log_file()

    def open(self) -> None:
        """Open today's log file for appending."""
        if not self.enabled or self._stream is not None:
            return
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._path = self._get_log_file()
            self._stream = open(self._path, "a", encoding="utf-8")
        except OSError as e:
            # Activity logging must not stop the command pipeline
            warnings.warn(f"Failed to open activity log: {e}")
            self._stream = None

    def close(self) -> None:
        """Flush and close the log file."""
        if self._stream is None:
            return
        try:
            self._stream.flush()
            self._stream.close()
        finally:
            self._stream = None

    def _get_log_file(self, date: datetime | None = None) -> Path:
        if date is None:
            date = datetime.now()
        return self.log_dir / f"{LOG_FILE_PREFIX}{date.strftime('%Y-%m-%d')}.jsonl"

    def log(self, kind: str, status: str, message: str, **data: Any) -> ActivityEntry:
        """Write an activity entry.

        Args:
            kind: Entry kind.
            status: Entry status.
            message: Short description.
            **data: Event-specific fields.

        Returns:
            The created ActivityEntry.
        """
        entry = ActivityEntry(
            timestamp=datetime.now().isoformat(),
            session_id=self.session_id,
            kind=kind,
            status=status,
            message=message,
            data={k: v for k, v in data.items() if v is not None},
        )

        if self._stream is not None:
            try:
                self._stream.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
                self._stream.flush()
            except OSError as e:
                warnings.warn(f"Failed to write activity log: {e}")

        return entry

    def log_command(
        self,
        outcome: ExecutionOutcome,
        verdict: RiskVerdict | None = None,
        working_dir: str | None = None,
    ) -> ActivityEntry:
        """Record a command execution."""
        status = "success" if outcome.success else "failed"
        return self.log(
            "command",
            status,
            f"Command [{status.upper()}]: {outcome.command}",
            command=outcome.command,
            exit_code=outcome.exit_code,
            duration_ms=outcome.duration_ms,
            timed_out=outcome.timed_out or None,
            risk_level=verdict.risk_level.value if verdict else None,
            working_dir=working_dir,
            stdout_preview=outcome.stdout[: self.max_preview_length] or None,
            stderr_preview=outcome.stderr[: self.max_preview_length] or None,
        )

    def log_api_call(
        self,
        provider: str,
        query: str,
        success: bool,
        response: str | None = None,
        error: str | None = None,
    ) -> ActivityEntry:
        """Record a translation API call. Only a response summary is kept."""
        status = "success" if success else "failed"
        return self.log(
            "api_call",
            status,
            f'API [{status.upper()}] Provider: {provider}, Query: "{query}"',
            provider=provider,
            query=query,
            response_preview=truncate(response, API_RESPONSE_PREVIEW_LENGTH) if response else None,
            error=error,
        )

    def log_security_event(
        self,
        event: str,
        command: str,
        details: str | None = None,
    ) -> ActivityEntry:
        """Record a security event (blocked, cancelled, confirmed, ...)."""
        return self.log(
            "security",
            event,
            f"Security [{event}]: {command}",
            command=command,
            details=details,
        )

    def log_config_change(self, action: str, details: str) -> ActivityEntry:
        return self.log("config", action, f"Config [{action}]: {details}")

    def query(
        self,
        kind: str | None = None,
        session_id: str | None = None,
        days: int = 7,
        limit: int = 100,
    ) -> Iterator[ActivityEntry]:
        """Read entries back from the log files of the last ``days`` days.

        Args:
            kind: Filter by entry kind.
            session_id: Filter by session.
            days: How many days back to read.
            limit: Maximum entries to return.

        Yields:
            Matching ActivityEntry objects, oldest first.
        """
        if not self.log_dir.exists():
            return

        if self._stream is not None:
            self._stream.flush()

        current = datetime.now() - timedelta(days=days - 1)
        end = datetime.now()
        count = 0

        while current.date() <= end.date() and count < limit:
            log_file = self._get_log_file(current)
            current += timedelta(days=1)
            if not log_file.exists():
                continue

            with open(log_file, encoding="utf-8") as f:
                for line in f:
                    if count >= limit:
                        return
                    try:
                        entry = ActivityEntry.from_dict(json.loads(line))
                    except json.JSONDecodeError:
                        continue  # Skip malformed lines
                    if kind and entry.kind != kind:
                        continue
                    if session_id and entry.session_id != session_id:
                        continue
                    yield entry
                    count += 1

    def cleanup_old_logs(self, retention_days: int = 7) -> int:
        """Remove log files older than the retention period.

        Returns:
            Number of files removed.
        """
        if not self.log_dir.exists():
            return 0

        cutoff = datetime.now() - timedelta(days=retention_days)
        removed = 0

        for log_file in self.log_dir.glob(f"{LOG_FILE_PREFIX}*.jsonl"):
            try:
                date_str = log_file.stem.replace(LOG_FILE_PREFIX, "")
                file_date = datetime.strptime(date_str, "%Y-%m-%d")
                if file_date < cutoff:
                    log_file.unlink()
                    removed += 1
            except (ValueError, OSError):
                continue  # Skip files with unexpected format

        return removed
