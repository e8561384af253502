"""Audit rules applied to files flagged as AI-generated."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from .ai_detector import HIGH_CONFIDENCE, AIDetector
from .models import (
    SEVERITY_ORDER,
    AIDetectionResult,
    AISection,
    AuditResult,
    NamingStyle,
    PatternProfile,
    Severity,
    Violation,
)
from .tokenizer import RegexTokenizer, convert_naming_style, detect_naming_style, line_of

logger = logging.getLogger(__name__)

AUDIT_PENALTIES = {
    Severity.CRITICAL: 20,
    Severity.HIGH: 10,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}

HUMAN_REVIEW_MARKERS = [
    re.compile(r"//\s*Reviewed by:", re.IGNORECASE),
    re.compile(r"//\s*Human verified:", re.IGNORECASE),
    re.compile(r"//\s*@reviewed", re.IGNORECASE),
    re.compile(r"/\*\*[\s\S]*?@human-verified[\s\S]*?\*/"),
]

COMPLEXITY_PATTERNS = [
    re.compile(r"for\s*\([^)]*\)\s*\{[\s\S]*?for\s*\([^)]*\)"),
    re.compile(r"if\s*\([^)]*\)\s*\{[\s\S]*?if\s*\([^)]*\)\s*\{[\s\S]*?if"),
    re.compile(r"\.map\([\s\S]*?\.filter\([\s\S]*?\.reduce"),
    re.compile(r"try\s*\{[\s\S]*?catch[\s\S]*?finally"),
]
EXPLANATION_COMMENT = re.compile(r"//\s*(?:This|The|Explanation|Logic|Algorithm|Purpose|Why)")

PLACEHOLDER_PATTERNS = [
    re.compile(r"//\s*TODO:", re.IGNORECASE),
    re.compile(r"//\s*FIXME:", re.IGNORECASE),
    re.compile(r"//\s*Add your.*here", re.IGNORECASE),
    re.compile(r"//\s*Implementation.*here", re.IGNORECASE),
    re.compile(r"//\s*Your code here", re.IGNORECASE),
    re.compile(r"/\*\s*TODO[\s\S]*?\*/", re.IGNORECASE),
]

SECURITY_PATTERNS = [
    (re.compile(r"eval\s*\("), "Code execution vulnerability"),
    (re.compile(r"innerHTML\s*="), "XSS vulnerability"),
    (re.compile(r"exec\s*\("), "Command injection vulnerability"),
    (re.compile(r"\.query\s*\("), "SQL injection vulnerability"),
    (re.compile(r"crypto\.createHash"), "Cryptographic implementation"),
    (re.compile(r"jwt\.sign"), "Authentication token handling"),
    (re.compile(r"password", re.IGNORECASE), "Password handling"),
]

PERFORMANCE_PATTERNS = [
    (re.compile(r"for\s*\([^)]*\)\s*\{[\s\S]*?for\s*\([^)]*\)"), "Nested loops"),
    (re.compile(r"\.forEach\s*\([\s\S]*?\.forEach"), "Nested forEach operations"),
    (re.compile(r"setTimeout\s*\([\s\S]*?setTimeout"), "Multiple setTimeout calls"),
    (re.compile(r"new\s+RegExp\s*\(.*\)"), "RegExp construction in loop"),
    (re.compile(r"JSON\.parse\s*\([\s\S]*?JSON\.stringify"), "Inefficient JSON operations"),
]

FUNCTION_LIKE = re.compile(r"function|const.*=.*=>")
ERROR_HANDLING = re.compile(r"try\s*\{|catch\s*\(|throw\s+new\s+Error")

_tokenizer = RegexTokenizer()

AuditCheck = Callable[[str, list[AISection], str, Optional[PatternProfile]], list[Violation]]


@dataclass(frozen=True)
class AuditRule:
    id: str
    category: str
    description: str
    severity: Severity
    check: AuditCheck


def near(sections: list[AISection], line: int, distance: int) -> bool:
    return any(abs(section.line - line) <= distance for section in sections)


def section_window(lines: list[str], line: int, radius: int = 5) -> str:
    return "\n".join(lines[max(0, line - radius) : line + radius])


def _finding(rule_id: str, category: str, severity: Severity, file_path: str, message: str, **fields) -> Violation:
    return Violation(
        rule_id=rule_id,
        category=category,
        severity=severity,
        message=message,
        file=file_path,
        source="ai_audit",
        **fields,
    )


def check_human_comments(content, sections, file_path, profile):
    if not sections or any(p.search(content) for p in HUMAN_REVIEW_MARKERS):
        return []
    return [
        _finding(
            "require-human-comments",
            "documentation",
            Severity.MEDIUM,
            file_path,
            "AI-generated code must include human review comments",
            suggestion='Add comments like "// Reviewed by: [Name]" or "// @human-verified" to indicate human oversight',
        )
    ]


def check_unit_tests(content, sections, file_path, profile):
    if ".test." in file_path or ".spec." in file_path:
        return []
    functions = [
        (token.name, line_of(content, token.offset))
        for token in _tokenizer.functions(content)
        if near(sections, line_of(content, token.offset), 5)
    ]
    if not functions:
        return []
    return [
        _finding(
            "require-unit-tests",
            "documentation",
            Severity.HIGH,
            file_path,
            f"AI-generated functions need unit tests: {', '.join(name for name, _ in functions)}",
            line=functions[0][1],
            suggestion="Create unit tests for AI-generated functions to ensure correctness and maintainability",
        )
    ]


def check_complexity_comments(content, sections, file_path, profile):
    lines = content.split("\n")
    violations = []
    for section in sections:
        window = section_window(lines, section.line)
        if any(p.search(window) for p in COMPLEXITY_PATTERNS) and not EXPLANATION_COMMENT.search(window):
            violations.append(
                _finding(
                    "require-complexity-comments",
                    "documentation",
                    Severity.MEDIUM,
                    file_path,
                    "Complex AI-generated code needs explanatory comments",
                    line=section.line,
                    suggestion="Add comments explaining the purpose and logic of complex AI-generated code sections",
                )
            )
    return violations


def check_placeholders(content, sections, file_path, profile):
    violations = []
    for pattern in PLACEHOLDER_PATTERNS:
        for match in pattern.finditer(content):
            violations.append(
                _finding(
                    "no-ai-placeholders",
                    "quality",
                    Severity.HIGH,
                    file_path,
                    "Remove AI placeholder comments and implement proper code",
                    line=line_of(content, match.start()),
                    evidence=match.group(0).strip(),
                    suggestion="Replace placeholder comments with actual implementation or remove if not needed",
                )
            )
    return violations


def check_consistent_naming(content, sections, file_path, profile):
    expected = profile.recommendations.naming.functions if profile else None
    if not expected:
        return []
    violations = []
    for token in _tokenizer.functions(content):
        line = line_of(content, token.offset)
        if not near(sections, line, 3):
            continue
        actual = detect_naming_style(token.name)
        if actual == NamingStyle.UNKNOWN or actual.value == expected:
            continue
        violations.append(
            _finding(
                "consistent-naming",
                "quality",
                Severity.MEDIUM,
                file_path,
                f"AI-generated function '{token.name}' should use {expected} naming convention",
                line=line,
                expected=expected,
                actual=actual.value,
                suggestion=f"Rename to: {convert_naming_style(token.name, expected)}",
            )
        )
    return violations


def _near_pattern_findings(
    content, sections, file_path, patterns, distance, rule_id, category, severity, message, suggestion
):
    violations = []
    for pattern, label in patterns:
        for match in pattern.finditer(content):
            line = line_of(content, match.start())
            if near(sections, line, distance):
                violations.append(
                    _finding(
                        rule_id,
                        category,
                        severity,
                        file_path,
                        f"{message}: {label}",
                        line=line,
                        evidence=match.group(0)[:100],
                        suggestion=suggestion,
                    )
                )
    return violations


def check_security_review(content, sections, file_path, profile):
    return _near_pattern_findings(
        content,
        sections,
        file_path,
        SECURITY_PATTERNS,
        3,
        "ai-security-review",
        "security",
        Severity.HIGH,
        "AI-generated code with security implications needs human security review",
        "Have security team review AI-generated security-sensitive code",
    )


def check_performance_review(content, sections, file_path, profile):
    return _near_pattern_findings(
        content,
        sections,
        file_path,
        PERFORMANCE_PATTERNS,
        5,
        "ai-performance-review",
        "performance",
        Severity.MEDIUM,
        "AI-generated code may have performance issues",
        "Review AI-generated code for performance optimization opportunities",
    )


def check_error_handling(content, sections, file_path, profile):
    lines = content.split("\n")
    violations = []
    for section in sections:
        window = section_window(lines, section.line)
        if FUNCTION_LIKE.search(window) and not ERROR_HANDLING.search(window):
            violations.append(
                _finding(
                    "org/require-error-handling",
                    "organizational",
                    Severity.MEDIUM,
                    file_path,
                    "AI-generated functions must include proper error handling",
                    line=section.line,
                    suggestion="Add try-catch blocks or proper error validation to AI-generated functions",
                )
            )
    return violations


AI_AUDIT_RULES = [
    AuditRule(
        id="require-human-comments",
        category="documentation",
        description="AI-generated code must include human review comments",
        severity=Severity.MEDIUM,
        check=check_human_comments,
    ),
    AuditRule(
        id="require-unit-tests",
        category="documentation",
        description="AI-generated functions must have corresponding unit tests",
        severity=Severity.HIGH,
        check=check_unit_tests,
    ),
    AuditRule(
        id="require-complexity-comments",
        category="documentation",
        description="Complex AI-generated logic must have explanatory comments",
        severity=Severity.MEDIUM,
        check=check_complexity_comments,
    ),
    AuditRule(
        id="no-ai-placeholders",
        category="quality",
        description="AI-generated code must not contain placeholder comments",
        severity=Severity.HIGH,
        check=check_placeholders,
    ),
    AuditRule(
        id="consistent-naming",
        category="quality",
        description="AI-generated code should follow project naming conventions",
        severity=Severity.MEDIUM,
        check=check_consistent_naming,
    ),
    AuditRule(
        id="ai-security-review",
        category="security",
        description="AI-generated code with security implications needs extra review",
        severity=Severity.HIGH,
        check=check_security_review,
    ),
    AuditRule(
        id="ai-performance-review",
        category="performance",
        description="AI-generated performance-critical code needs review",
        severity=Severity.MEDIUM,
        check=check_performance_review,
    ),
    AuditRule(
        id="org/require-error-handling",
        category="organizational",
        description="AI-generated functions must include proper error handling",
        severity=Severity.MEDIUM,
        check=check_error_handling,
    ),
]


def audit_score(violations: list[Violation]) -> int:
    penalty = sum(AUDIT_PENALTIES.get(v.severity, 0) for v in violations)
    return max(0, 100 - min(penalty, 100))


def ai_recommendations(detection: AIDetectionResult, violations: list[Violation]) -> list[str]:
    recommendations = []
    if detection.confidence > HIGH_CONFIDENCE:
        recommendations.append("High confidence AI-generated code detected. Ensure thorough code review.")
    if any(v.severity == Severity.HIGH for v in violations):
        recommendations.append("High-severity violations found in AI code. Address before merging.")
    if any(v.category == "security" for v in violations):
        recommendations.append("Security-related AI code detected. Mandatory security team review required.")
    if any(v.rule_id == "require-unit-tests" for v in violations):
        recommendations.append("Create comprehensive unit tests for AI-generated functions.")
    if any(v.rule_id == "require-complexity-comments" for v in violations):
        recommendations.append("Add explanatory comments to complex AI-generated logic sections.")
    if not recommendations:
        recommendations.append("AI-generated code follows basic standards. Consider adding human review comments.")
    return recommendations


def action_plan(violations: list[Violation]) -> list[dict[str, str]]:
    by_category: dict[str, int] = {}
    for violation in violations:
        by_category[violation.category] = by_category.get(violation.category, 0) + 1

    actions = []
    if by_category.get("security"):
        actions.append(
            {
                "priority": "high",
                "action": "Schedule security team review",
                "reason": f"{by_category['security']} security-related violations in AI code",
            }
        )
    if by_category.get("quality"):
        actions.append(
            {
                "priority": "medium",
                "action": "Address code quality issues",
                "reason": f"{by_category['quality']} quality violations need attention",
            }
        )
    if by_category.get("documentation"):
        actions.append(
            {
                "priority": "low",
                "action": "Improve documentation",
                "reason": f"{by_category['documentation']} documentation issues found",
            }
        )
    if not actions:
        actions.append(
            {
                "priority": "low",
                "action": "Add human review marker",
                "reason": "Mark AI code as reviewed by human developer",
            }
        )
    return actions


class AIAuditor:
    """Apply the AI-code audit rules to files the detector flags."""

    def __init__(self, detector: Optional[AIDetector] = None, rules: Optional[list[AuditRule]] = None):
        self.detector = detector or AIDetector()
        self.rules = rules if rules is not None else list(AI_AUDIT_RULES)

    async def audit(
        self,
        content: str,
        file_path: str,
        detection: Optional[AIDetectionResult] = None,
        profile: Optional[PatternProfile] = None,
    ) -> AuditResult:
        """Audit ``content``, detecting first unless a detection is supplied.

        Args:
            content: Source text
            file_path: Path used in violations
            detection: Result of an earlier :meth:`AIDetector.detect` call
            profile: Learned profile for the naming check

        Returns:
            Audit result; files not flagged as AI carry no violations
        """
        if detection is None:
            detection = await self.detector.detect(content, file_path)

        if not detection.is_likely_ai:
            return AuditResult(
                file_path=file_path,
                is_ai_generated=False,
                confidence=detection.confidence,
                recommendations=["No AI-generated code detected"],
            )

        violations: list[Violation] = []
        for rule in self.rules:
            try:
                violations.extend(rule.check(content, detection.sections, file_path, profile))
            except Exception as e:
                logger.warning(f"Error applying AI audit rule {rule.id} to {file_path}: {e}", exc_info=True)

        violations.sort(key=lambda v: -SEVERITY_ORDER[v.severity])
        return AuditResult(
            file_path=file_path,
            is_ai_generated=True,
            confidence=detection.confidence,
            violations=violations,
            recommendations=ai_recommendations(detection, violations),
            overall_score=audit_score(violations),
            suggested_actions=action_plan(violations),
        )
