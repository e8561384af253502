"""Tests for governance log files."""

import json
import os
import time
from datetime import datetime

import pytest

from manasx.errors import StartupError
from manasx.logs import GovernanceLog, daily_line
from manasx.models import AIDetectionSummary, AnalysisResult, MonitorStats, Severity, Violation

FIXED_NOW = datetime(2025, 3, 14, 9, 26, 53)


def make_result(*severities, file="src/components/UserCard.js", ai=False):
    return AnalysisResult(
        file=file,
        violations=[
            Violation(
                rule_id=f"rule-{i}",
                category="security",
                severity=severity,
                message=f"problem {i}",
                line=i + 1,
                column=3,
                suggestion="fix it" if i == 0 else None,
            )
            for i, severity in enumerate(severities)
        ],
        ai_detection=AIDetectionSummary(is_likely_ai=ai, confidence=0.7 if ai else 0.1),
    )


@pytest.fixture
def governance_log(tmp_path):
    log = GovernanceLog(tmp_path / ".manasx", clock=lambda: FIXED_NOW)
    log.prepare()
    return log


class TestPrepare:
    """Tests for GovernanceLog.prepare."""

    def test_creates_directory(self, tmp_path):
        log = GovernanceLog(tmp_path / "a" / "b")
        log.prepare()
        assert (tmp_path / "a" / "b").is_dir()

    def test_unusable_directory(self, tmp_path):
        blocker = tmp_path / "file.txt"
        blocker.write_text("x")

        with pytest.raises(StartupError):
            GovernanceLog(blocker / "logs").prepare()

    def test_rotates_oversized_logs(self, tmp_path):
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        (log_dir / "context.log").write_text("x" * 100)

        GovernanceLog(log_dir, max_log_size=10).prepare()

        assert not (log_dir / "context.log").exists()
        assert len(list(log_dir.glob("context.log.*"))) == 1


class TestContextLog:
    """Tests for the NDJSON context log."""

    def test_recent_entries_filters_and_limits(self, governance_log):
        governance_log.write_context({"event": "monitor_started"})
        for i in range(4):
            governance_log.write_context({"event": "file_analyzed", "file": f"f{i}.js"})
        governance_log.write_context({"event": "monitor_stopped"})

        entries = governance_log.recent_entries(2)

        assert [e["file"] for e in entries] == ["f2.js", "f3.js"]

    def test_recent_entries_skip_malformed_lines(self, governance_log):
        governance_log.write_context({"event": "file_analyzed", "file": "a.js"})
        with open(governance_log.context_path, "a") as f:
            f.write("{truncated\n")

        assert [e["file"] for e in governance_log.recent_entries(5)] == ["a.js"]

    def test_recent_entries_without_log(self, tmp_path):
        assert GovernanceLog(tmp_path / "none").recent_entries(5) == []

    def test_records_are_json(self, governance_log):
        governance_log.write_context({"event": "file_analyzed", "timestamp": FIXED_NOW})

        line = governance_log.context_path.read_text().strip()
        assert json.loads(line)["timestamp"] == str(FIXED_NOW)

    def test_append_rotates_when_too_large(self, tmp_path):
        log = GovernanceLog(tmp_path, max_log_size=50)
        log.write_context({"event": "file_analyzed", "padding": "x" * 60})
        log.write_context({"event": "file_analyzed", "file": "new.js"})

        rotated = list(tmp_path.glob("context.log.*"))
        assert len(rotated) == 1
        assert rotated[0].suffix[1:].isdigit()
        assert [e.get("file") for e in log.recent_entries(5)] == ["new.js"]


class TestReports:
    """Tests for daily, violations and summary reports."""

    def test_daily_line(self):
        line = daily_line(make_result(Severity.LOW, Severity.HIGH, ai=True), FIXED_NOW)

        assert line == "09:26:53 | UserCard.js               |   2 violations | HIGH     [AI]"

    def test_daily_line_without_violations(self):
        line = daily_line(make_result(), FIXED_NOW)

        assert line.endswith("|   0 violations | INFO")

    def test_write_daily(self, governance_log):
        governance_log.write_daily(make_result(Severity.LOW))
        governance_log.write_daily(make_result())

        path = governance_log.log_dir / "monitor-2025-03-14.log"
        assert len(path.read_text().splitlines()) == 2

    def test_violations_only_when_present(self, governance_log):
        governance_log.write_violations(make_result())

        assert not governance_log.violations_path().exists()

    def test_violations_grouped_by_severity(self, governance_log):
        governance_log.write_violations(make_result(Severity.LOW, Severity.CRITICAL, Severity.LOW))

        text = (governance_log.log_dir / "violations-2025-03-14.log").read_text()
        assert "FILE: src/components/UserCard.js" in text
        assert "TOTAL VIOLATIONS: 3" in text
        assert text.index("CRITICAL SEVERITY (1 issues):") < text.index("LOW SEVERITY (2 issues):")
        assert "Line 1, Column 3" in text
        assert "Rule: rule-0 (security)" in text
        assert "Suggestion: fix it" in text
        assert "MEDIUM SEVERITY" not in text

    def test_summary(self, governance_log):
        stats = MonitorStats(files_watched=12, changes_detected=4, violations_found=7, ai_code_detected=1)

        governance_log.write_summary(stats, 125.4)

        text = governance_log.summary_path.read_text()
        assert "MANASX MONITORING SUMMARY" in text
        assert "Files Watched: 12" in text
        assert "Violations Found: 7" in text
        assert "AI Code Detected: 1" in text
        assert "Uptime: 125 seconds" in text


class TestCleanOldLogs:
    """Tests for GovernanceLog.clean_old_logs."""

    def test_removes_only_old_daily_and_violation_logs(self, tmp_path):
        log = GovernanceLog(tmp_path)
        old = time.time() - 10 * 86400
        for name in ("monitor-2020-01-01.log", "violations-2020-01-01.log", "context.log"):
            path = tmp_path / name
            path.write_text("x")
            os.utime(path, (old, old))
        (tmp_path / "monitor-today.log").write_text("x")

        removed = log.clean_old_logs(7)

        assert sorted(p.name for p in removed) == ["monitor-2020-01-01.log", "violations-2020-01-01.log"]
        assert (tmp_path / "context.log").exists()
        assert (tmp_path / "monitor-today.log").exists()
