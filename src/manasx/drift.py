"""Drift detection: compare files against a learned pattern profile."""

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from .config import DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS
from .errors import UnreadableFileError
from .learner import find_code_files
from .models import (
    SEVERITY_WEIGHTS,
    DirectoryDriftResult,
    DriftSummary,
    FileDriftResult,
    NamingStyle,
    PatternProfile,
    Severity,
    Suggestion,
    Violation,
    ViolationContext,
)
from .tokenizer import (
    DENSITY_LEVELS,
    RegexTokenizer,
    Tokenizer,
    column_of,
    convert_naming_style,
    detect_naming_style,
    line_of,
)

logger = logging.getLogger(__name__)

DISCOURAGED_MODULES = ("eval", "vm", "child_process")

# Severity of a comment-density deficit, by number of buckets missing
DENSITY_DEFICIT_SEVERITY = {1: Severity.LOW, 2: Severity.MEDIUM, 3: Severity.HIGH}


def compliance_score(violations: Iterable[Violation]) -> int:
    """Score in [0, 100]: ``100 - min(2 * total_weight, 100)``."""
    total = sum(SEVERITY_WEIGHTS[Severity.coerce(v.severity)] for v in violations)
    return int(max(0, 100 - min(total * 2, 100)))


def overall_score(results: list[FileDriftResult]) -> int:
    """Rounded mean of per-file scores; 100 when there are none."""
    if not results:
        return 100
    return round(sum(r.compliance_score for r in results) / len(results))


def get_context(lines: list[str], line: int, context_size: int) -> ViolationContext:
    start = max(0, line - context_size - 1)
    end = min(len(lines), line + context_size)
    return ViolationContext(
        before=lines[start : max(0, line - 1)],
        line=lines[line - 1] if 0 < line <= len(lines) else "",
        after=lines[line:end],
    )


def generate_suggestions(violations: list[Violation]) -> list[Suggestion]:
    """Roll up every (type, category) group with more than one violation."""
    groups: dict[tuple[Optional[str], str], list[Violation]] = {}
    for violation in violations:
        groups.setdefault((violation.type, violation.category), []).append(violation)

    suggestions = []
    for (_, category), members in groups.items():
        if len(members) > 1:
            suggestions.append(
                Suggestion(
                    category=category,
                    message=f"Consider fixing all {len(members)} {category.replace('_', ' ')} violations",
                    affected_lines=[v.line for v in members],
                    priority=members[0].severity,
                )
            )
    return suggestions


class DriftDetector:
    """Flag per-file deviations from a learned :class:`PatternProfile`."""

    def __init__(
        self,
        profile: PatternProfile,
        tokenizer: Optional[Tokenizer] = None,
        root_dir: Optional[str | Path] = None,
        extensions: Optional[list[str]] = None,
        ignore_patterns: Optional[list[str]] = None,
    ):
        self.profile = profile
        self.tokenizer = tokenizer or RegexTokenizer()
        self.root_dir = Path(root_dir) if root_dir else Path(os.getcwd())
        self.extensions = extensions or list(DEFAULT_EXTENSIONS)
        self.ignore_patterns = ignore_patterns if ignore_patterns is not None else list(DEFAULT_IGNORE_DIRS)

    def detect_drift(
        self,
        path: str | Path,
        threshold: float = 0.7,
        include_info: bool = False,
        context_size: int = 3,
    ) -> FileDriftResult | DirectoryDriftResult:
        """Analyze a file or every source file under a directory.

        Args:
            path: File or directory to analyze
            threshold: Minimum score ratio for a file to pass
            include_info: Keep informational violations in the result
            context_size: Lines of surrounding text attached to each violation

        Returns:
            A file result or a directory result, depending on ``path``

        Raises:
            FileNotFoundError: If ``path`` does not exist
            UnreadableFileError: If ``path`` is a file that cannot be decoded
        """
        path = Path(path)
        if path.is_dir():
            return self.analyze_directory(path, threshold, include_info, context_size)

        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Cannot decode {path}: {e}")
            raise UnreadableFileError(f"{path} is not valid UTF-8 text") from e
        return self.analyze_content(content, str(path), threshold, include_info, context_size)

    def analyze_directory(
        self,
        directory: str | Path,
        threshold: float = 0.7,
        include_info: bool = False,
        context_size: int = 3,
    ) -> DirectoryDriftResult:
        files = find_code_files(directory, self.extensions, self.ignore_patterns)
        summary = DriftSummary()
        results: list[FileDriftResult] = []

        for file_path in files:
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping {file_path}: {e}")
                continue

            result = self.analyze_content(content, str(file_path), threshold, include_info, context_size)
            results.append(result)
            summary.files_analyzed += 1
            summary.total_violations += len(result.violations)
            for violation in result.violations:
                if violation.severity == Severity.CRITICAL:
                    summary.critical_violations += 1
                elif violation.severity == Severity.HIGH:
                    summary.high_violations += 1
                elif violation.severity == Severity.MEDIUM:
                    summary.medium_violations += 1
                elif violation.severity == Severity.LOW:
                    summary.low_violations += 1

        summary.overall_score = overall_score(results)
        logger.info(
            f"Drift analysis of {directory}: {summary.files_analyzed} files, "
            f"score {summary.overall_score}"
        )
        return DirectoryDriftResult(directory=str(directory), summary=summary, files=results)

    def analyze_content(
        self,
        content: str,
        file_path: str,
        threshold: float = 0.7,
        include_info: bool = False,
        context_size: int = 3,
    ) -> FileDriftResult:
        """Run all drift analyses on in-memory text."""
        if not content.strip():
            return FileDriftResult(file=file_path, compliance_score=100, passed=100 >= threshold * 100)

        violations: list[Violation] = []
        violations.extend(self._naming_drift(content, file_path))
        violations.extend(self._import_drift(content, file_path))
        violations.extend(self._architecture_drift(file_path))
        violations.extend(self._comment_drift(content, file_path))

        if not include_info:
            violations = [v for v in violations if v.severity != Severity.INFO]

        lines = content.split("\n")
        violations = [
            v.model_copy(update={"context": get_context(lines, v.line, context_size)})
            for v in violations
        ]

        score = compliance_score(violations)
        return FileDriftResult(
            file=file_path,
            compliance_score=score,
            passed=score >= threshold * 100,
            violations=violations,
            suggestions=generate_suggestions(violations),
        )

    def _violation(self, content: Optional[str], offset: Optional[int], **fields) -> Violation:
        if content is not None and offset is not None:
            fields.setdefault("line", line_of(content, offset))
            fields.setdefault("column", column_of(content, offset))
        else:
            fields.setdefault("line", 1)
            fields.setdefault("column", 1)
        return Violation(source="drift", **fields)

    def _naming_drift(self, content: str, file_path: str) -> list[Violation]:
        naming = self.profile.recommendations.naming
        violations = []

        if naming.files:
            actual = detect_naming_style(Path(file_path).stem)
            if actual != NamingStyle.UNKNOWN and actual.value != naming.files:
                violations.append(
                    self._violation(
                        None,
                        None,
                        rule_id="consistent_file_naming",
                        type="naming_drift",
                        category="file_naming",
                        severity=Severity.MEDIUM,
                        file=file_path,
                        message=f"File naming style '{actual.value}' differs from project standard '{naming.files}'",
                        expected=naming.files,
                        actual=actual.value,
                        suggestion=convert_naming_style(Path(file_path).stem, naming.files),
                    )
                )

        for kind, expected, tokens in (
            ("variable", naming.variables, self.tokenizer.variables(content)),
            ("function", naming.functions, self.tokenizer.functions(content)),
        ):
            if not expected:
                continue
            for token in tokens:
                actual = detect_naming_style(token.name)
                if actual == NamingStyle.UNKNOWN or actual.value == expected:
                    continue
                violations.append(
                    self._violation(
                        content,
                        token.offset,
                        rule_id=f"consistent_{kind}_naming",
                        type="naming_drift",
                        category=f"{kind}_naming",
                        severity=Severity.LOW,
                        file=file_path,
                        message=(
                            f"{kind.capitalize()} '{token.name}' uses '{actual.value}' naming "
                            f"but project standard is '{expected}'"
                        ),
                        expected=expected,
                        actual=actual.value,
                        suggestion=convert_naming_style(token.name, expected),
                    )
                )

        if naming.constants == NamingStyle.UPPER_CASE.value:
            for token in self.tokenizer.constants(content):
                actual = detect_naming_style(token.name)
                if actual in (NamingStyle.UPPER_CASE, NamingStyle.UNKNOWN):
                    continue
                violations.append(
                    self._violation(
                        content,
                        token.offset,
                        rule_id="consistent_constant_naming",
                        type="naming_drift",
                        category="constant_naming",
                        severity=Severity.LOW,
                        file=file_path,
                        message=f"Constant '{token.name}' should use UPPER_CASE naming convention",
                        expected=NamingStyle.UPPER_CASE.value,
                        actual=actual.value,
                        suggestion=convert_naming_style(token.name, NamingStyle.UPPER_CASE),
                    )
                )

        return violations

    def _import_drift(self, content: str, file_path: str) -> list[Violation]:
        imports = self.profile.recommendations.imports
        violations = []

        for token in self.tokenizer.imports(content):
            actual_style = "relative" if token.is_relative else "absolute"
            if imports.style == "absolute" and token.is_relative:
                violations.append(
                    self._violation(
                        content,
                        token.offset,
                        rule_id="consistent_import_style",
                        type="import_drift",
                        category="import_style",
                        severity=Severity.LOW,
                        file=file_path,
                        message="Relative import detected but project prefers absolute imports",
                        expected=imports.style,
                        actual=actual_style,
                    )
                )
            elif imports.style == "relative" and not token.is_relative and token.path.startswith("@"):
                violations.append(
                    self._violation(
                        content,
                        token.offset,
                        rule_id="consistent_import_style",
                        type="import_drift",
                        category="import_style",
                        severity=Severity.LOW,
                        file=file_path,
                        message="Absolute import for internal module but project prefers relative imports",
                        expected=imports.style,
                        actual=actual_style,
                    )
                )

            if imports.extensions:
                actual_ext = "explicit" if token.has_extension else "implicit"
                if actual_ext != imports.extensions:
                    violations.append(
                        self._violation(
                            content,
                            token.offset,
                            rule_id="consistent_import_extensions",
                            type="import_drift",
                            category="import_extensions",
                            severity=Severity.INFO,
                            file=file_path,
                            message=f"Import uses {actual_ext} extensions but project standard is {imports.extensions}",
                            expected=imports.extensions,
                            actual=actual_ext,
                        )
                    )

            library = token.library.removeprefix("node:")
            if library in DISCOURAGED_MODULES:
                violations.append(
                    self._violation(
                        content,
                        token.offset,
                        rule_id="discouraged_library_usage",
                        type="import_drift",
                        category="discouraged_library",
                        severity=Severity.HIGH,
                        file=file_path,
                        message=f"Import of discouraged library '{library}'",
                        actual=token.path,
                    )
                )

        return violations

    def _architecture_drift(self, file_path: str) -> list[Violation]:
        common = self.profile.recommendations.architecture.common_folders
        if not common:
            return []

        path = Path(file_path)
        if path.is_absolute():
            path = Path(os.path.relpath(path, self.root_dir))
        folder = path.parent.as_posix()
        folder = "" if folder == "." else folder

        if any(folder == f or folder.startswith(f + "/") for f in common):
            return []

        return [
            self._violation(
                None,
                None,
                rule_id="consistent_folder_structure",
                type="architecture_drift",
                category="folder_structure",
                severity=Severity.INFO,
                file=file_path,
                message="File location may not follow established folder patterns",
                expected=f"One of: {', '.join(common)}",
                actual=folder,
            )
        ]

    def _comment_drift(self, content: str, file_path: str) -> list[Violation]:
        comments = self.profile.recommendations.comments
        if not comments.style or not comments.density:
            return []

        stats = self.tokenizer.comments(content)
        violations = []

        dominant = stats.dominant_style
        if dominant is not None and dominant != comments.style:
            violations.append(
                self._violation(
                    None,
                    None,
                    rule_id="consistent_comment_style",
                    type="comment_drift",
                    category="comment_style",
                    severity=Severity.INFO,
                    file=file_path,
                    message=f"Comment style '{dominant}' differs from project standard '{comments.style}'",
                    expected=comments.style,
                    actual=dominant,
                )
            )

        if comments.density in DENSITY_LEVELS and stats.density != comments.density:
            deficit = DENSITY_LEVELS.index(comments.density) - DENSITY_LEVELS.index(stats.density)
            severity = DENSITY_DEFICIT_SEVERITY.get(deficit, Severity.INFO)
            violations.append(
                self._violation(
                    None,
                    None,
                    rule_id="consistent_comment_density",
                    type="comment_drift",
                    category="comment_density",
                    severity=severity,
                    file=file_path,
                    message=f"Comment density '{stats.density}' differs from project standard '{comments.density}'",
                    expected=comments.density,
                    actual=stats.density,
                )
            )

        return violations
