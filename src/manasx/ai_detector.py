"""Heuristic and model-assisted detection of AI-generated code."""

import logging
import math
import re
from typing import Optional

from .classifier import CodeClassifier, NullClassifier
from .errors import ClassifierError
from .models import AIDetectionResult, AIDetectionSummary, AIIndicator, AISection
from .tokenizer import RegexTokenizer, Tokenizer, line_of

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6
LOW_CONFIDENCE = 0.4

# Sections are only derived from indicators at least this confident
SECTION_MIN_CONFIDENCE = 0.5

INDICATOR_WEIGHTS = {
    "ai_signature": 1.0,
    "error_handling_pattern": 0.8,
    "comment_pattern": 0.7,
    "structure_pattern": 0.6,
    "ai_analysis": 0.8,
    "documentation_pattern": 0.5,
    "naming_pattern": 0.4,
    "import_pattern": 0.3,
}

COMMENT_PATTERNS = [
    re.compile(r"/\*\*\s*\n\s*\*\s*.*\s*\n\s*\*\s*@param.*\s*\n\s*\*\s*@returns.*\s*\n\s*\*/"),
    re.compile(r"//\s*TODO:\s*Implement", re.IGNORECASE),
    re.compile(r"//\s*Helper function", re.IGNORECASE),
    re.compile(r"//\s*Main logic", re.IGNORECASE),
    re.compile(r"/\*\*[\s\S]*?This function[\s\S]*?\*/"),
    re.compile(r"//\s*Example usage:", re.IGNORECASE),
]

NAMING_PATTERNS = [
    re.compile(
        r"^(helper|util|process|handle|manage|create|get|set|update|delete|validate|format"
        r"|parse|convert|transform|calculate)[A-Z]"
    ),
    re.compile(r"^[a-z]+([A-Z][a-z]+){2,}$"),
    re.compile(r"^(is|has|can|should|will)[A-Z]"),
]

# (indicator type, description, confidence, evidence length, patterns)
LINE_PATTERN_GROUPS = [
    (
        "structure_pattern",
        "AI-typical code structure detected",
        0.5,
        100,
        [
            re.compile(r"try\s*\{[\s\S]*?\}\s*catch\s*\(\s*error?\s*\)\s*\{\s*console\.(log|error)"),
            re.compile(
                r"(?:let|const|var)\s+(result|data|response|output|input|temp|item|element"
                r"|value|obj|arr)\s*="
            ),
            re.compile(r"if\s*\(\s*!\s*\w+\s*\)\s*\{[\s\S]*?return"),
            re.compile(r"if\s*\(\s*typeof\s+\w+\s*===?\s*['\"`]undefined['\"`]\s*\)"),
        ],
    ),
    (
        "import_pattern",
        "AI-typical import pattern detected",
        0.3,
        None,
        [
            re.compile(r"import\s+\*\s+as\s+\w+\s+from"),
            re.compile(r"import\s+\{[\s\S]*?\}\s+from\s+['\"`][./]*utils"),
            re.compile(r"import.*path.*from\s+['\"`]path['\"`]"),
        ],
    ),
    (
        "error_handling_pattern",
        "AI-typical error handling detected",
        0.7,
        150,
        [
            re.compile(r"catch\s*\(\s*(?:error?|err?|e)\s*\)\s*\{\s*throw\s+new\s+Error"),
            re.compile(r"catch\s*\(\s*(?:error?|err?|e)\s*\)\s*\{\s*console\.error.*return"),
            re.compile(r"if\s*\(\s*!.*\)\s*throw\s+new\s+Error\("),
        ],
    ),
    (
        "documentation_pattern",
        "AI-typical documentation detected",
        0.5,
        100,
        [
            re.compile(r"/\*\*[\s\S]*?@example[\s\S]*?\*/"),
            re.compile(r"/\*\*[\s\S]*?@description[\s\S]*?\*/"),
            re.compile(r"//\s*Usage:", re.IGNORECASE),
            re.compile(r"//\s*Returns:", re.IGNORECASE),
        ],
    ),
    (
        "ai_signature",
        "Strong AI code signature detected",
        0.8,
        100,
        [
            re.compile(r"function\s+\w+\s*\([^)]*\)\s*\{[\s\S]*?//\s*Implementation"),
            re.compile(r"//\s*Add your.*here", re.IGNORECASE),
            re.compile(r"//\s*Your code here", re.IGNORECASE),
            re.compile(r"//\s*Implementation goes here", re.IGNORECASE),
            re.compile(r"(?:let|const|var)\s+(config|options|settings|params|args)\s*=\s*\{"),
        ],
    ),
]


def calculate_confidence(indicators: list[AIIndicator]) -> float:
    """Weighted mean confidence, damped for few indicators and capped at 0.95."""
    if not indicators:
        return 0.0

    total_weight = 0.0
    weighted_score = 0.0
    for indicator in indicators:
        weight = INDICATOR_WEIGHTS.get(indicator.type, 0.5)
        total_weight += weight
        weighted_score += indicator.confidence * weight

    average = weighted_score / total_weight if total_weight else 0.0
    return min(average * (1 - math.exp(-len(indicators) / 3)), 0.95)


def recommendation_for(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return (
            "This code appears to be AI-generated with high confidence. Consider adding human "
            "review comments and ensuring it follows organizational standards."
        )
    if confidence >= MEDIUM_CONFIDENCE:
        return (
            "This code shows patterns consistent with AI generation. Review for adherence to "
            "coding standards and add appropriate documentation."
        )
    if confidence >= LOW_CONFIDENCE:
        return (
            "Some AI-typical patterns detected. Verify the code follows established patterns "
            "and conventions."
        )
    return "No strong indicators of AI generation detected."


def summarize(result: AIDetectionResult, top: int = 3) -> AIDetectionSummary:
    """Trim a detection result to the fields carried by an analysis result."""
    strongest = sorted(result.indicators, key=lambda i: -i.confidence)[:top]
    return AIDetectionSummary(
        is_likely_ai=result.is_likely_ai,
        confidence=result.confidence,
        indicators=strongest,
        recommendation=result.recommendation,
    )


class AIDetector:
    """Score how likely a piece of code is to be AI-generated."""

    def __init__(
        self,
        classifier: Optional[CodeClassifier] = None,
        tokenizer: Optional[Tokenizer] = None,
    ):
        self.classifier = classifier or NullClassifier()
        self.tokenizer = tokenizer or RegexTokenizer()

    async def detect(self, content: str, file_path: str) -> AIDetectionResult:
        """Combine heuristic indicators with the classifier's opinion.

        Args:
            content: Source text
            file_path: Path used for reporting and for the classifier prompt

        Returns:
            Detection result; classifier failures only remove its contribution
        """
        indicators = self.analyze_patterns(content)
        sections = [
            AISection(line=i.line, reason=i.description, confidence=i.confidence)
            for i in indicators
            if i.line is not None and i.confidence >= SECTION_MIN_CONFIDENCE
        ]

        try:
            classification = await self.classifier.classify(content, file_path)
        except ClassifierError as e:
            logger.warning(f"AI analysis failed for {file_path}: {e}")
        else:
            for reason in classification.reasons:
                indicators.append(
                    AIIndicator(
                        type="ai_analysis",
                        description=reason,
                        confidence=classification.confidence or 0.5,
                        evidence="AI analysis",
                    )
                )
            sections.extend(classification.sections)

        confidence = calculate_confidence(indicators)
        return AIDetectionResult(
            file_path=file_path,
            is_likely_ai=confidence >= MEDIUM_CONFIDENCE,
            confidence=confidence,
            indicators=indicators,
            sections=sorted(sections, key=lambda s: s.line),
            recommendation=recommendation_for(confidence),
        )

    def analyze_patterns(self, content: str) -> list[AIIndicator]:
        indicators: list[AIIndicator] = []

        for pattern in COMMENT_PATTERNS:
            match = pattern.search(content)
            if match:
                indicators.append(
                    AIIndicator(
                        type="comment_pattern",
                        description="AI-typical comment structure detected",
                        confidence=0.6,
                        evidence=match.group(0)[:100],
                        line=line_of(content, match.start()),
                    )
                )

        for token in self.tokenizer.functions(content):
            if any(pattern.search(token.name) for pattern in NAMING_PATTERNS):
                indicators.append(
                    AIIndicator(
                        type="naming_pattern",
                        description="AI-typical function naming detected",
                        confidence=0.4,
                        evidence=token.name,
                        line=line_of(content, token.offset),
                    )
                )

        for kind, description, confidence, evidence_len, patterns in LINE_PATTERN_GROUPS:
            for pattern in patterns:
                for match in pattern.finditer(content):
                    evidence = match.group(0)
                    indicators.append(
                        AIIndicator(
                            type=kind,
                            description=description,
                            confidence=confidence,
                            evidence=evidence[:evidence_len] if evidence_len else evidence,
                            line=line_of(content, match.start()),
                        )
                    )

        return indicators
