"""Tests for AI-code detection and auditing."""

import pytest

from manasx.ai_auditor import AIAuditor, audit_score
from manasx.ai_detector import AIDetector, calculate_confidence, summarize
from manasx.classifier import ClassificationResult, CodeClassifier
from manasx.errors import ClassifierUnavailable
from manasx.models import AIIndicator, AISection, Severity, Violation

PLACEHOLDER_CODE = "\n".join(
    [
        "// Your code here",
        "// Your code here",
        "// Add your logic here",
        "// Implementation goes here",
        "// Your code here",
        "// Add your code here",
    ]
)

PLAIN_CODE = "let total = 0;\nfor (const n of numbers) total += n;\n"


class FixedClassifier(CodeClassifier):
    """Classifier returning a canned result."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    async def classify(self, text, filename):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


class TestConfidence:
    """Tests for calculate_confidence function."""

    def test_no_indicators(self):
        assert calculate_confidence([]) == 0.0

    def test_capped(self):
        indicators = [AIIndicator(type="ai_signature", description="d", confidence=1.0)] * 50
        assert calculate_confidence(indicators) == 0.95

    def test_few_indicators_are_damped(self):
        one = [AIIndicator(type="ai_signature", description="d", confidence=0.8)]
        assert calculate_confidence(one) < 0.8 * 0.3


class TestAIDetector:
    """Tests for AIDetector class."""

    @pytest.mark.asyncio
    async def test_placeholder_heavy_code_is_flagged(self):
        result = await AIDetector().detect(PLACEHOLDER_CODE, "gen.js")

        assert result.is_likely_ai
        assert 0.6 <= result.confidence < 0.8
        assert len(result.indicators) == 6
        assert [s.line for s in result.sections] == [1, 2, 3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_plain_code(self):
        result = await AIDetector().detect(PLAIN_CODE, "sum.js")

        assert not result.is_likely_ai
        assert result.recommendation == "No strong indicators of AI generation detected."

    @pytest.mark.asyncio
    async def test_classifier_reasons_become_indicators(self):
        classifier = FixedClassifier(
            ClassificationResult(
                is_likely_ai=True,
                confidence=0.9,
                reasons=["generic names", "template structure"],
                sections=[AISection(line=2, reason="boilerplate", confidence=0.9)],
            )
        )

        result = await AIDetector(classifier).detect(PLAIN_CODE, "sum.js")

        ai_indicators = [i for i in result.indicators if i.type == "ai_analysis"]
        assert [i.description for i in ai_indicators] == ["generic names", "template structure"]
        assert any(s.reason == "boilerplate" for s in result.sections)

    @pytest.mark.asyncio
    async def test_classifier_failure_keeps_heuristics(self):
        classifier = FixedClassifier(error=ClassifierUnavailable("down"))

        result = await AIDetector(classifier).detect(PLACEHOLDER_CODE, "gen.js")

        assert classifier.calls == 1
        assert result.is_likely_ai
        assert all(i.type != "ai_analysis" for i in result.indicators)

    @pytest.mark.asyncio
    async def test_summarize_keeps_strongest(self):
        result = await AIDetector().detect(PLACEHOLDER_CODE + "\nimport * as fs from 'fs';\n", "gen.js")

        summary = summarize(result)
        assert len(summary.indicators) == 3
        assert all(i.type == "ai_signature" for i in summary.indicators)
        assert summary.to_json_dict()["isLikelyAI"] is True


class TestAIAuditor:
    """Tests for AIAuditor class."""

    @pytest.mark.asyncio
    async def test_placeholder_audit(self):
        audit = await AIAuditor().audit(PLACEHOLDER_CODE, "gen.js")

        assert audit.is_ai_generated
        rule_ids = [v.rule_id for v in audit.violations]
        assert rule_ids.count("no-ai-placeholders") == 6
        assert rule_ids.count("require-human-comments") == 1
        assert len(rule_ids) == 7
        assert audit.violations[0].severity == Severity.HIGH
        assert audit.violations[-1].severity == Severity.MEDIUM
        assert audit.overall_score == 35
        assert all(v.source == "ai_audit" for v in audit.violations)
        assert {a["action"] for a in audit.suggested_actions} == {
            "Address code quality issues",
            "Improve documentation",
        }

    @pytest.mark.asyncio
    async def test_human_review_marker(self):
        content = "// Reviewed by: Dana\n" + PLACEHOLDER_CODE

        audit = await AIAuditor().audit(content, "gen.js")

        assert "require-human-comments" not in [v.rule_id for v in audit.violations]

    @pytest.mark.asyncio
    async def test_human_code_is_not_audited(self):
        audit = await AIAuditor().audit(PLAIN_CODE, "sum.js")

        assert not audit.is_ai_generated
        assert audit.violations == []
        assert audit.overall_score == 100

    @pytest.mark.asyncio
    async def test_functions_near_sections_need_tests(self):
        content = PLACEHOLDER_CODE + "\nfunction computeTotals(items) {\n  return items.length;\n}\n"

        audit = await AIAuditor().audit(content, "gen.js")
        tests = [v for v in audit.violations if v.rule_id == "require-unit-tests"]

        assert len(tests) == 1
        assert "computeTotals" in tests[0].message
        assert tests[0].line == 7

        audit = await AIAuditor().audit(content, "gen.test.js")
        assert "require-unit-tests" not in [v.rule_id for v in audit.violations]


def test_audit_score_floor():
    violations = [Violation(rule_id="r", severity=Severity.CRITICAL, message="m")] * 10
    assert audit_score(violations) == 0
