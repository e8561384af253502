"""Data models for learned patterns, rule configuration and analysis results."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Severity levels for violations."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @classmethod
    def coerce(cls, value: Any) -> "Severity":
        """Map any value onto a severity; unrecognized values become INFO."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.INFO


CANONICAL_RULE_SEVERITIES = ("critical", "high", "medium", "low")

SEVERITY_WEIGHTS: dict[Severity, float] = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 5,
    Severity.MEDIUM: 3,
    Severity.LOW: 1,
    Severity.INFO: 0.5,
}

SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


class NamingStyle(str, Enum):
    """Identifier casing conventions."""

    CAMEL_CASE = "camelCase"
    SNAKE_CASE = "snake_case"
    PASCAL_CASE = "PascalCase"
    KEBAB_CASE = "kebab-case"
    UPPER_CASE = "UPPER_CASE"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    """Coarse confidence of a learned profile."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self, **kwargs: Any) -> dict[str, Any]:
        """Dump to plain JSON types using the external key names."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)


# --- Pattern profile -------------------------------------------------------


class NamingRecommendations(CamelModel):
    variables: str | None = None
    functions: str | None = None
    constants: str | None = None
    files: str | None = None


class ImportRecommendations(CamelModel):
    style: str | None = None
    extensions: str | None = None
    popular_libraries: list[str] = Field(default_factory=list)


class ArchitectureRecommendations(CamelModel):
    export_style: str | None = None
    common_folders: list[str] = Field(default_factory=list)


class TestingRecommendations(CamelModel):
    __test__ = False

    file_naming: str | None = None
    framework: str | None = None


class CommentRecommendations(CamelModel):
    style: str | None = None
    density: str | None = None


class Recommendations(CamelModel):
    naming: NamingRecommendations = Field(default_factory=NamingRecommendations)
    imports: ImportRecommendations = Field(default_factory=ImportRecommendations)
    architecture: ArchitectureRecommendations = Field(
        default_factory=ArchitectureRecommendations
    )
    testing: TestingRecommendations = Field(default_factory=TestingRecommendations)
    comments: CommentRecommendations = Field(default_factory=CommentRecommendations)


class PatternProfile(CamelModel):
    """Conventions learned from one pass over a source tree."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now, description="When learning ran")
    confidence: Confidence = Field(default=Confidence.LOW, description="Sample-size confidence")
    files_analyzed: int = Field(default=0, description="Number of files read successfully")
    recommendations: Recommendations = Field(default_factory=Recommendations)
    raw_counts: dict[str, Any] = Field(default_factory=dict, description="Underlying tallies")


# --- Rule configuration ----------------------------------------------------


class RuleMetadata(CamelModel):
    model_config = ConfigDict(extra="allow")

    version: str
    name: str
    description: str = ""
    author: str = ""
    created: str | None = None


class GlobalSettings(CamelModel):
    model_config = ConfigDict(extra="allow")

    severity: str = "medium"
    autofix: bool = False


class RuleDefinition(CamelModel):
    """A rule as written in the configuration file."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    description: str = ""
    severity: str | None = None
    enabled: bool = True
    parameters: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None


class RuleCategory(CamelModel):
    model_config = ConfigDict(extra="allow")

    enabled: bool = False
    description: str = ""
    rules: dict[str, RuleDefinition] = Field(default_factory=dict)


class RuleException(CamelModel):
    """Suppression of a (file, rule) pair; a missing side means ``*``."""

    file: str | None = None
    rule: str | None = None
    justification: str | None = None


class RuleConfig(CamelModel):
    """Versioned organizational rule configuration."""

    model_config = ConfigDict(extra="allow")

    metadata: RuleMetadata
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings, alias="global")
    rules: dict[str, RuleCategory] = Field(default_factory=dict)
    exceptions: list[RuleException] = Field(default_factory=list)

    def rule_count(self) -> int:
        """Number of rules declared in enabled categories."""
        return sum(len(category.rules) for category in self.rules.values() if category.enabled)


class Rule(CamelModel):
    """Resolved in-memory form of a configured rule."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: str
    name: str
    description: str = ""
    severity: Severity = Severity.MEDIUM
    enabled: bool = True
    parameters: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Severity:
        return Severity.coerce(value)


# --- Violations and drift --------------------------------------------------


class ViolationContext(CamelModel):
    before: list[str] = Field(default_factory=list)
    line: str = ""
    after: list[str] = Field(default_factory=list)


class Violation(CamelModel):
    """A single finding produced by drift detection, a rule or the AI audit."""

    model_config = ConfigDict(frozen=True)

    rule_id: str = Field(..., description="Rule identifier, e.g. 'security/no-eval'")
    type: str | None = Field(default=None, description="Drift type, e.g. 'naming_drift'")
    category: str = Field(default="general", description="Rule or drift category")
    severity: Severity = Field(default=Severity.INFO)
    message: str
    file: str = ""
    line: int = 1
    column: int | None = None
    suggestion: str | None = None
    context: ViolationContext | None = None
    expected: str | None = None
    actual: str | None = None
    evidence: str | None = None
    source: str = Field(default="rule", description="drift, rule or ai_audit")

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Severity:
        return Severity.coerce(value)


class Suggestion(CamelModel):
    type: str = "bulk_fix"
    category: str
    message: str
    affected_lines: list[int] = Field(default_factory=list)
    priority: Severity = Severity.INFO


class FileDriftResult(CamelModel):
    file: str
    timestamp: datetime = Field(default_factory=datetime.now)
    compliance_score: int = 100
    passed: bool = True
    violations: list[Violation] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)


class DriftSummary(CamelModel):
    files_analyzed: int = 0
    total_violations: int = 0
    critical_violations: int = 0
    high_violations: int = 0
    medium_violations: int = 0
    low_violations: int = 0
    overall_score: int = 100


class DirectoryDriftResult(CamelModel):
    directory: str
    timestamp: datetime = Field(default_factory=datetime.now)
    summary: DriftSummary = Field(default_factory=DriftSummary)
    files: list[FileDriftResult] = Field(default_factory=list)


# --- AI detection ----------------------------------------------------------


class AIIndicator(CamelModel):
    type: str
    description: str
    confidence: float
    evidence: str = ""
    line: int | None = None


class AISection(CamelModel):
    line: int
    reason: str = ""
    confidence: float = 0.5


class AIDetectionResult(CamelModel):
    file_path: str
    timestamp: datetime = Field(default_factory=datetime.now)
    is_likely_ai: bool = Field(default=False, alias="isLikelyAI")
    confidence: float = 0.0
    indicators: list[AIIndicator] = Field(default_factory=list)
    sections: list[AISection] = Field(default_factory=list)
    recommendation: str = ""


class AIDetectionSummary(CamelModel):
    is_likely_ai: bool = Field(default=False, alias="isLikelyAI")
    confidence: float = 0.0
    indicators: list[AIIndicator] = Field(default_factory=list)
    recommendation: str = ""


class AuditResult(CamelModel):
    file_path: str
    timestamp: datetime = Field(default_factory=datetime.now)
    is_ai_generated: bool = Field(default=False, alias="isAIGenerated")
    confidence: float = 0.0
    violations: list[Violation] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    overall_score: int = 100
    suggested_actions: list[dict[str, str]] = Field(default_factory=list)


# --- Monitoring ------------------------------------------------------------


class AnalysisResult(CamelModel):
    """Outcome of analyzing one file for one settled change."""

    file: str
    timestamp: datetime = Field(default_factory=datetime.now)
    violations: list[Violation] = Field(default_factory=list)
    ai_detection: AIDetectionSummary | None = None
    drift_score: int | None = None
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    def highest_severity(self) -> Severity:
        highest = Severity.INFO
        for violation in self.violations:
            if SEVERITY_ORDER[violation.severity] > SEVERITY_ORDER[highest]:
                highest = violation.severity
        return highest

    def summary(self) -> dict[str, Any]:
        return {
            "hasViolations": bool(self.violations),
            "hasInsights": bool(self.insights),
            "totalIssues": len(self.violations),
            "severity": self.highest_severity().value,
        }


class MonitorStats(CamelModel):
    files_watched: int = 0
    changes_detected: int = 0
    violations_found: int = 0
    ai_code_detected: int = Field(default=0, alias="aiCodeDetected")
    start_time: datetime | None = None


class OrganizationalContext(CamelModel):
    """Read-only snapshot handed to external tooling."""

    has_learned_patterns: bool = False
    has_organizational_rules: bool = False
    patterns_summary: dict[str, Any] | None = None
    monitoring_stats: dict[str, Any] = Field(default_factory=dict)
    recent_issues: list[dict[str, Any]] = Field(default_factory=list)
