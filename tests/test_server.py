"""Tests for the MCP tool surface."""

import json

import pytest

from manasx import server
from manasx.classifier import NullClassifier
from manasx.learner import save_profile
from manasx.monitor import ContinuousMonitor


@pytest.fixture(autouse=True)
def server_monitor(settings):
    """Point the server at a monitor over tmp_path."""
    server._monitor = ContinuousMonitor(settings, classifier=NullClassifier())
    server._watch_on_start = False
    yield server._monitor
    server._monitor = None


class TestQueryTools:
    """Tests for read-only tools."""

    @pytest.mark.asyncio
    async def test_health_check(self):
        health = json.loads(await server.health_check())

        assert health["healthy"] is True
        assert health["monitor"] == "idle"
        assert "timestamp" in health

    @pytest.mark.asyncio
    async def test_check_code_compliance(self):
        report = json.loads(await server.check_code_compliance("const result = eval(userInput);", "src/a.js"))

        assert report["file"] == "src/a.js"
        assert report["summary"]["severity"] == "critical"
        assert [v["ruleId"] for v in report["violations"]] == ["security/no-eval"]

    @pytest.mark.asyncio
    async def test_organizational_context_without_patterns(self):
        context = json.loads(await server.get_organizational_context())

        assert context["hasLearnedPatterns"] is False
        assert context["patternsSummary"] is None

    @pytest.mark.asyncio
    async def test_recent_activity_empty(self):
        assert json.loads(await server.get_recent_activity(3)) == []


class TestLearningTools:
    """Tests for learn_patterns and detect_drift."""

    @pytest.mark.asyncio
    async def test_learn_then_detect(self, write_file, tmp_path):
        for i in range(12):
            write_file(f"src/module{i}.js", "let userName = 1;\nfunction loadUser() {}\n")
        target = write_file("src/check.js", "let user_name = 1;\n")

        learned = json.loads(await server.learn_patterns(str(tmp_path), max_files=100))

        assert learned["filesAnalyzed"] == 13
        assert learned["confidence"] == "medium"
        assert learned["recommendations"]["naming"]["variables"] == "camelCase"
        assert (tmp_path / "patterns.json").exists()

        drift = json.loads(await server.detect_drift(str(target)))
        assert drift["complianceScore"] == 98
        assert drift["violations"][0]["type"] == "naming_drift"

    @pytest.mark.asyncio
    async def test_learn_missing_directory(self, tmp_path):
        message = await server.learn_patterns(str(tmp_path / "missing"))

        assert message.startswith("Failed to learn patterns")
        assert "LEARN-ERR-" in message

    @pytest.mark.asyncio
    async def test_detect_drift_without_patterns(self, write_file):
        target = write_file("a.js", "let a = 1;")

        message = await server.detect_drift(str(target))

        assert message.startswith("No learned patterns found")

    @pytest.mark.asyncio
    async def test_detect_drift_undecodable_file(self, camel_profile, tmp_path):
        save_profile(camel_profile, tmp_path / "patterns.json")
        bad = tmp_path / "bad.js"
        bad.write_bytes(b"let a = '\xff\xfe';")

        message = await server.detect_drift(str(bad))

        assert message.startswith("Failed to detect drift")
        assert "DRIFT-ERR-" in message


class TestRuleTools:
    """Tests for init_rules and validate_rules."""

    @pytest.mark.asyncio
    async def test_init_then_validate(self, tmp_path):
        path = tmp_path / "manasx-rules.json"

        message = await server.init_rules(str(path), author="tester")
        assert "6 rules" in message

        report = json.loads(await server.validate_rules(str(path)))
        assert report["valid"] is True
        assert report["rulesCount"] == 6
        assert report["errors"] == []

    @pytest.mark.asyncio
    async def test_validate_broken_file(self, tmp_path):
        path = tmp_path / "manasx-rules.json"
        path.write_text("{not json")

        message = await server.validate_rules(str(path))

        assert message.startswith("Invalid rule configuration")
        assert "RULES-ERR-" in message


def test_parse_args():
    args = server.parse_args(["--watch", "--directory", "src"])

    assert args.watch
    assert args.directory == "src"
    assert not args.verbose
