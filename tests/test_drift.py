"""Tests for drift detection."""

import pytest

from manasx.drift import DriftDetector, compliance_score, overall_score
from manasx.errors import UnreadableFileError
from manasx.learner import PatternLearner
from manasx.models import (
    ArchitectureRecommendations,
    FileDriftResult,
    ImportRecommendations,
    PatternProfile,
    Recommendations,
    Severity,
    Violation,
)


def violation(severity):
    return Violation(rule_id="r", severity=severity, message="m")


class TestScoring:
    """Tests for compliance_score and overall_score."""

    def test_no_violations_is_perfect(self):
        assert compliance_score([]) == 100

    @pytest.mark.parametrize(
        "severities,expected",
        [
            ([Severity.LOW], 98),
            ([Severity.MEDIUM], 94),
            ([Severity.HIGH], 90),
            ([Severity.CRITICAL], 80),
            ([Severity.INFO], 99),
            ([Severity.CRITICAL] * 5, 0),
            ([Severity.CRITICAL] * 50, 0),
        ],
    )
    def test_weights(self, severities, expected):
        assert compliance_score([violation(s) for s in severities]) == expected

    def test_adding_a_violation_never_raises_the_score(self):
        sequence = [Severity.LOW, Severity.INFO, Severity.CRITICAL, Severity.MEDIUM, Severity.HIGH] * 4
        scores = [compliance_score([violation(s) for s in sequence[:n]]) for n in range(len(sequence) + 1)]

        assert all(0 <= s <= 100 for s in scores)
        assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))

    def test_overall_score_is_rounded_mean(self):
        results = [
            FileDriftResult(file="a.js", compliance_score=100),
            FileDriftResult(file="b.js", compliance_score=95),
        ]
        assert overall_score(results) == 98
        assert overall_score([]) == 100


class TestNamingDrift:
    """Tests for naming drift."""

    def test_learned_camel_case_flags_snake_variable(self, write_file, tmp_path):
        for i in range(54):
            write_file(f"project/file{i}.js", "let userName = 'a';\n")
        for i in range(54, 60):
            write_file(f"project/file{i}.js", "let user_name = 'a';\n")
        profile = PatternLearner().learn(tmp_path / "project")

        detector = DriftDetector(profile, root_dir=tmp_path)
        result = detector.analyze_content("var my_var = 1", "check.js")

        assert len(result.violations) == 1
        drift = result.violations[0]
        assert drift.type == "naming_drift"
        assert drift.severity == Severity.LOW
        assert drift.line == 1
        assert drift.expected == "camelCase"
        assert drift.actual == "snake_case"
        assert drift.suggestion == "myVar"
        assert result.compliance_score == 98

    def test_file_naming(self, tmp_path):
        profile = PatternProfile.model_validate(
            {"recommendations": {"naming": {"files": "kebab-case"}}}
        )
        result = DriftDetector(profile, root_dir=tmp_path).analyze_content("const a = 1;", "src/userCard.js")

        assert [v.category for v in result.violations] == ["file_naming"]
        assert result.violations[0].severity == Severity.MEDIUM
        assert result.violations[0].suggestion == "user-card"

    def test_constants_checked_only_for_upper_case(self, tmp_path):
        profile = PatternProfile.model_validate(
            {"recommendations": {"naming": {"constants": "UPPER_CASE"}}}
        )
        detector = DriftDetector(profile, root_dir=tmp_path)

        assert detector.analyze_content("const MAX_SIZE = 1;", "a.js").violations == []

    def test_literal_constant_in_camel_case(self, tmp_path):
        profile = PatternProfile.model_validate(
            {"recommendations": {"naming": {"constants": "UPPER_CASE"}}}
        )
        detector = DriftDetector(profile, root_dir=tmp_path)

        result = detector.analyze_content("const maxRetries = 3;\n", "a.js")

        assert [v.category for v in result.violations] == ["constant_naming"]
        assert result.violations[0].actual == "camelCase"
        assert result.violations[0].suggestion == "MAX_RETRIES"
        assert result.violations[0].line == 1

    def test_single_word_names_are_not_drift(self, camel_profile, tmp_path):
        result = DriftDetector(camel_profile, root_dir=tmp_path).analyze_content(
            "let count = 0;\nfunction run() {}\n", "a.js"
        )
        assert result.violations == []

    def test_repeated_drift_rolls_up(self, camel_profile, tmp_path):
        content = "let first_name = 1;\nlet last_name = 2;\n"
        result = DriftDetector(camel_profile, root_dir=tmp_path).analyze_content(content, "a.js")

        assert len(result.suggestions) == 1
        assert result.suggestions[0].affected_lines == [1, 2]
        assert result.suggestions[0].priority == Severity.LOW

    def test_violation_context(self, camel_profile, tmp_path):
        content = "// header\nconst a = 1;\nlet bad_name = 2;\nconst b = 3;\n"
        result = DriftDetector(camel_profile, root_dir=tmp_path).analyze_content(
            content, "a.js", context_size=1
        )

        context = result.violations[0].context
        assert context.before == ["const a = 1;"]
        assert context.line == "let bad_name = 2;"
        assert context.after == ["const b = 3;"]


class TestImportDrift:
    """Tests for import drift."""

    @pytest.fixture
    def detector(self, tmp_path):
        profile = PatternProfile(
            recommendations=Recommendations(
                imports=ImportRecommendations(style="absolute", extensions="implicit")
            )
        )
        return DriftDetector(profile, root_dir=tmp_path)

    def test_relative_import_when_absolute_preferred(self, detector):
        result = detector.analyze_content("import { a } from './a';\n", "x.js")

        assert [v.rule_id for v in result.violations] == ["consistent_import_style"]
        assert result.violations[0].severity == Severity.LOW

    def test_discouraged_library(self, detector):
        result = detector.analyze_content("import cp from 'node:child_process';\n", "x.js")

        assert [v.category for v in result.violations] == ["discouraged_library"]
        assert result.violations[0].severity == Severity.HIGH

    def test_extension_drift_is_info(self, detector):
        content = "import x from 'lib/x.js';\n"

        assert detector.analyze_content(content, "x.js").violations == []
        result = detector.analyze_content(content, "x.js", include_info=True)
        assert [v.category for v in result.violations] == ["import_extensions"]


class TestStructureDrift:
    """Tests for architecture and comment drift."""

    def test_nested_common_folder_is_accepted(self, tmp_path):
        profile = PatternProfile(
            recommendations=Recommendations(
                architecture=ArchitectureRecommendations(common_folders=["src"])
            )
        )
        detector = DriftDetector(profile, root_dir=tmp_path)

        assert detector.analyze_content("const a = 1;", "src/components/a.js", include_info=True).violations == []
        result = detector.analyze_content("const a = 1;", "scripts/a.js", include_info=True)
        assert [v.category for v in result.violations] == ["folder_structure"]

    def test_missing_comments_against_dense_standard(self, commented_profile, tmp_path):
        result = DriftDetector(commented_profile, root_dir=tmp_path).analyze_content(
            "const a = 1;\n", "a.js"
        )

        assert [v.category for v in result.violations] == ["comment_density"]
        assert result.violations[0].severity == Severity.HIGH
        assert result.compliance_score == 90

    def test_comment_style_is_info(self, commented_profile, tmp_path):
        content = "/** doc */\n/** doc */\nconst a = 1;\n"
        result = DriftDetector(commented_profile, root_dir=tmp_path).analyze_content(
            content, "a.js", include_info=True
        )

        assert "comment_style" in [v.category for v in result.violations]


class TestDetectDrift:
    """Tests for file and directory entry points."""

    def test_empty_file_is_fully_compliant(self, camel_profile, write_file, tmp_path):
        path = write_file("empty.js", "")

        result = DriftDetector(camel_profile, root_dir=tmp_path).detect_drift(path)

        assert result.compliance_score == 100
        assert result.violations == []
        assert result.passed

    def test_directory_score_is_mean(self, camel_profile, write_file, tmp_path):
        write_file("src/clean.js", "let userName = 1;\n")
        write_file("src/drifted.js", "let user_name = 1;\nlet other_name = 2;\n")

        result = DriftDetector(camel_profile, root_dir=tmp_path).detect_drift(tmp_path / "src")

        scores = sorted(f.compliance_score for f in result.files)
        assert scores == [96, 100]
        assert result.summary.overall_score == 98
        assert result.summary.files_analyzed == 2
        assert result.summary.low_violations == 2

    def test_threshold(self, camel_profile, tmp_path):
        detector = DriftDetector(camel_profile, root_dir=tmp_path)
        content = "\n".join(f"let bad_name{i} = {i};" for i in range(10))

        result = detector.analyze_content(content, "a.js", threshold=0.9)
        assert result.compliance_score == 80
        assert not result.passed

    def test_missing_path(self, camel_profile, tmp_path):
        with pytest.raises(FileNotFoundError):
            DriftDetector(camel_profile, root_dir=tmp_path).detect_drift(tmp_path / "nope.js")

    def test_undecodable_file(self, camel_profile, tmp_path):
        bad = tmp_path / "bad.js"
        bad.write_bytes(b"let a = '\xff\xfe';")
        detector = DriftDetector(camel_profile, root_dir=tmp_path)

        with pytest.raises(UnreadableFileError):
            detector.detect_drift(bad)

        result = detector.detect_drift(tmp_path)
        assert result.summary.files_analyzed == 0
