"""Governance log files written by the continuous monitor."""

import json
import logging
import os
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from .errors import StartupError
from .models import SEVERITY_ORDER, AnalysisResult, MonitorStats, Severity

logger = logging.getLogger(__name__)

CONTEXT_LOG = "context.log"
SUMMARY_LOG = "summary.log"
APP_LOG = "monitor.log"
DAILY_PREFIX = "monitor-"
VIOLATIONS_PREFIX = "violations-"

DEFAULT_MAX_LOG_SIZE = 10 * 1024 * 1024


def daily_line(result: AnalysisResult, now: datetime) -> str:
    """One fixed-width line per analysis for the daily monitor log."""
    ai_flag = "[AI]" if result.ai_detection and result.ai_detection.is_likely_ai else ""
    name = os.path.basename(result.file)
    severity = result.highest_severity().value.upper()
    return (
        f"{now:%H:%M:%S} | {name:<25} | {len(result.violations):>3} violations | "
        f"{severity:<8} {ai_flag}"
    ).rstrip()


def violations_report(result: AnalysisResult, now: datetime) -> str:
    """Severity-grouped block describing every violation of one analysis."""
    lines = [
        "=" * 100,
        f"VIOLATIONS REPORT - {now.isoformat(timespec='seconds')}",
        f"FILE: {result.file}",
        f"TOTAL VIOLATIONS: {len(result.violations)}",
        "=" * 100,
    ]

    for severity in sorted(Severity, key=lambda s: -SEVERITY_ORDER[s]):
        group = [v for v in result.violations if v.severity == severity]
        if not group:
            continue
        lines.append("")
        lines.append(f"{severity.value.upper()} SEVERITY ({len(group)} issues):")
        lines.append("-" * 50)
        for index, violation in enumerate(group, 1):
            lines.append(f"{index}. {violation.message}")
            location = f"   Line {violation.line}"
            if violation.column is not None:
                location += f", Column {violation.column}"
            lines.append(location)
            rule = violation.rule_id or violation.type or "unknown"
            if violation.category:
                rule += f" ({violation.category})"
            lines.append(f"   Rule: {rule}")
            if violation.suggestion:
                lines.append(f"   Suggestion: {violation.suggestion}")

    return "\n".join(lines) + "\n\n"


def summary_report(stats: MonitorStats, uptime_seconds: float, now: datetime) -> str:
    border = "*" * 80
    return "\n".join(
        [
            border,
            "MANASX MONITORING SUMMARY",
            border,
            f"Generated: {now.isoformat(timespec='seconds')}",
            f"Files Watched: {stats.files_watched}",
            f"Changes Detected: {stats.changes_detected}",
            f"Violations Found: {stats.violations_found}",
            f"AI Code Detected: {stats.ai_code_detected}",
            f"Uptime: {round(uptime_seconds)} seconds",
            border,
            "",
        ]
    )


class GovernanceLog:
    """Append-only text and NDJSON logs under one directory.

    Every append checks the target's size and rotates it to
    ``<file>.<epoch-ms>`` before writing, in one synchronous call, so
    concurrent analyses on the event loop never interleave a rotation.
    """

    def __init__(
        self,
        log_dir: str | Path,
        max_log_size: int = DEFAULT_MAX_LOG_SIZE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.log_dir = Path(log_dir)
        self.max_log_size = max_log_size
        self.clock = clock

    @property
    def context_path(self) -> Path:
        return self.log_dir / CONTEXT_LOG

    @property
    def summary_path(self) -> Path:
        return self.log_dir / SUMMARY_LOG

    @property
    def app_log_path(self) -> Path:
        return self.log_dir / APP_LOG

    def daily_path(self, day: Optional[datetime] = None) -> Path:
        day = day or self.clock()
        return self.log_dir / f"{DAILY_PREFIX}{day:%Y-%m-%d}.log"

    def violations_path(self, day: Optional[datetime] = None) -> Path:
        day = day or self.clock()
        return self.log_dir / f"{VIOLATIONS_PREFIX}{day:%Y-%m-%d}.log"

    def prepare(self) -> None:
        """Create the log directory and rotate any oversized log already in it.

        Raises:
            StartupError: If the directory cannot be created or written
        """
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StartupError(f"Cannot create log directory {self.log_dir}: {e}") from e
        if not os.access(self.log_dir, os.W_OK):
            raise StartupError(f"Log directory {self.log_dir} is not writable")

        for path in self.log_dir.glob("*.log"):
            self._rotate_if_needed(path)

    def _rotate_if_needed(self, path: Path) -> Optional[Path]:
        try:
            if not path.exists() or path.stat().st_size <= self.max_log_size:
                return None
            rotated = path.with_name(f"{path.name}.{int(time.time() * 1000)}")
            path.rename(rotated)
        except OSError as e:
            logger.warning(f"Could not rotate log {path}: {e}")
            return None
        logger.info(f"Rotated {path.name} to {rotated.name}")
        return rotated

    def _append(self, path: Path, text: str) -> None:
        self._rotate_if_needed(path)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")

    def write_context(self, record: dict[str, Any]) -> None:
        """Append one JSON record to the context log."""
        self._append(self.context_path, json.dumps(record, default=str) + "\n")

    def write_daily(self, result: AnalysisResult) -> None:
        now = self.clock()
        self._append(self.daily_path(now), daily_line(result, now) + "\n")

    def write_violations(self, result: AnalysisResult) -> None:
        if not result.violations:
            return
        now = self.clock()
        self._append(self.violations_path(now), violations_report(result, now))

    def write_summary(self, stats: MonitorStats, uptime_seconds: float) -> None:
        """Overwrite the summary report with the final stats of a session."""
        try:
            self.summary_path.write_text(
                summary_report(stats, uptime_seconds, self.clock()), encoding="utf-8"
            )
        except OSError as e:
            logger.error(f"Failed to write summary report: {e}")

    def recent_entries(self, limit: int = 5) -> list[dict[str, Any]]:
        """Return the last ``limit`` ``file_analyzed`` records, oldest first."""
        if limit <= 0 or not self.context_path.exists():
            return []

        entries = []
        try:
            with open(self.context_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug(f"Skipping malformed context record: {line[:80]}")
                        continue
                    if isinstance(record, dict) and record.get("event") == "file_analyzed":
                        entries.append(record)
        except OSError as e:
            logger.warning(f"Could not read context log: {e}")
            return []

        return entries[-limit:]

    def clean_old_logs(self, days: int = 7) -> list[Path]:
        """Delete daily and violations logs last modified more than ``days`` ago.

        Returns:
            The files that were removed
        """
        if not self.log_dir.exists():
            return []

        cutoff = (self.clock() - timedelta(days=days)).timestamp()
        removed = []
        for path in self.log_dir.iterdir():
            if not path.name.startswith((DAILY_PREFIX, VIOLATIONS_PREFIX)):
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path)
            except OSError as e:
                logger.warning(f"Could not remove old log {path}: {e}")

        if removed:
            logger.info(f"Removed {len(removed)} old log files from {self.log_dir}")
        return removed
