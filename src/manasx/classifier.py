"""External model classifier for AI provenance, best-practice and performance review."""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .config import Settings
from .errors import ClassifierError, ClassifierUnavailable, InvalidClassifierResponse
from .models import AISection

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


@dataclass
class ClassificationResult:
    """Outcome of an AI-provenance classification."""

    is_likely_ai: bool = False
    confidence: float = 0.0
    reasons: list[str] = field(default_factory=list)
    sections: list[AISection] = field(default_factory=list)


def empty_performance_report() -> dict[str, Any]:
    return {"metrics": {}, "issues": [], "suggestions": []}


def extract_json(content: str, pattern: re.Pattern = _JSON_OBJECT) -> Any:
    """Parse a model reply, falling back to the first JSON-looking span.

    Raises:
        InvalidClassifierResponse: If no JSON can be recovered
    """
    text = _CODE_FENCE.sub("", content.strip())
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = pattern.search(text)
    if match is None:
        raise InvalidClassifierResponse("No JSON found in classifier response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise InvalidClassifierResponse(f"Malformed JSON in classifier response: {e}") from e


def best_practice_prompt(code: str, filename: str) -> str:
    return (
        "You are an expert JavaScript reviewer. Analyze the following code for best practices, "
        "maintainability, and style.\n"
        "Identify specific lines with issues and provide suggestions in this JSON array format:\n"
        '[{"line": <line number>, "message": <short message>, "suggestion": <suggestion>}].\n'
        "Only output JSON.\n\n"
        f"File: {filename}\nCode:\n{code}\n"
    )


def performance_prompt(code: str, filename: str) -> str:
    return (
        f"You are a code performance analysis assistant. Analyze the following {filename} file for "
        "performance metrics, common performance issues, and actionable suggestions.\n"
        "Return ONLY a valid JSON object with these keys:\n"
        "- metrics: an object with keys like cyclomaticComplexity, functionCount, loopCount, "
        "maxNestingDepth, and any other relevant metrics.\n"
        "- issues: an array of objects; each has type, message, line, and code snippet.\n"
        "- suggestions: an array of actionable suggestions to improve performance.\n\n"
        "DO NOT include any extra text, comments, or markdown. Return ONLY the JSON.\n\n"
        f"Code to analyze:\n---\n{code}\n---\n"
    )


def provenance_prompt(code: str, filename: str) -> str:
    return (
        "Analyze the following code to determine if it was likely generated by an AI assistant "
        "(like ChatGPT, Claude, Copilot, etc.).\n\n"
        "Look for patterns such as:\n"
        "- Overly verbose comments or documentation\n"
        "- Generic variable names (result, data, response, etc.)\n"
        "- Template-like code structure\n"
        "- Defensive programming patterns\n"
        "- AI-typical error handling\n"
        "- Perfect formatting and consistent style\n"
        "- Generic function names\n"
        "- Educational comments\n\n"
        "Return a JSON object with:\n"
        '{"isLikelyAI": boolean, "confidence": number (0-1), '
        '"reasons": ["specific reasons why this might be AI-generated"], '
        '"sections": [{"line": number, "reason": "why this section looks AI-generated"}]}\n\n'
        f"File: {filename}\nCode to analyze:\n```\n{code}\n```\n"
    )


def parse_classification(data: Any) -> ClassificationResult:
    """Validate a provenance reply into a :class:`ClassificationResult`."""
    if not isinstance(data, dict):
        raise InvalidClassifierResponse("Classifier response is not a JSON object")

    try:
        confidence = float(data.get("confidence") or 0.0)
    except (TypeError, ValueError) as e:
        raise InvalidClassifierResponse(f"Invalid confidence: {data.get('confidence')!r}") from e
    confidence = min(max(confidence, 0.0), 1.0)

    raw_reasons = data.get("reasons")
    if isinstance(raw_reasons, str):
        raw_reasons = [raw_reasons]
    elif not isinstance(raw_reasons, list):
        raw_reasons = []
    reasons = [str(r) for r in raw_reasons if r]

    raw_sections = data.get("sections")
    if not isinstance(raw_sections, list):
        raw_sections = []
    sections = []
    for item in raw_sections:
        if not isinstance(item, dict):
            continue
        try:
            line = int(item.get("line"))
        except (TypeError, ValueError):
            continue
        sections.append(
            AISection(line=line, reason=str(item.get("reason", "")), confidence=confidence or 0.5)
        )

    return ClassificationResult(
        is_likely_ai=bool(data.get("isLikelyAI", False)),
        confidence=confidence,
        reasons=reasons,
        sections=sections,
    )


class CodeClassifier:
    """Interface to a model that classifies and reviews source code."""

    async def classify(self, text: str, filename: str) -> ClassificationResult:
        """Classify the provenance of ``text``.

        Raises:
            ClassifierUnavailable: If the model cannot be reached
            InvalidClassifierResponse: If the reply cannot be parsed
        """
        raise NotImplementedError

    async def review_best_practices(self, text: str, filename: str) -> list[dict[str, Any]]:
        return []

    async def analyze_performance(self, text: str, filename: str) -> dict[str, Any]:
        return empty_performance_report()

    async def close(self) -> None:
        pass


class NullClassifier(CodeClassifier):
    """Classifier used when no model is configured; always neutral."""

    async def classify(self, text: str, filename: str) -> ClassificationResult:
        return ClassificationResult()


class ChatModelClassifier(CodeClassifier):
    """Classifier backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.groq.com/openai/v1/chat/completions",
        model: str = "llama3-70b-8192",
        timeout: float = 30.0,
        temperature: float = 0.2,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.temperature = temperature
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _complete(self, prompt: str) -> str:
        """Send one user prompt and return the reply text."""
        if not self.api_key:
            raise ClassifierUnavailable("Classifier API key is not set")

        try:
            response = await self.client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": self.temperature,
                },
            )
        except httpx.TimeoutException as e:
            raise ClassifierUnavailable(f"Classifier request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ClassifierUnavailable(f"Classifier request failed: {e}") from e

        if response.status_code >= 400:
            raise ClassifierUnavailable(
                f"Classifier API error {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidClassifierResponse(f"Classifier returned non-JSON body: {e}") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if not isinstance(message, dict):
                message = {}
            if isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(choices[0].get("text"), str):
                return choices[0]["text"]
        raise InvalidClassifierResponse("Unexpected response format from classifier")

    async def classify(self, text: str, filename: str) -> ClassificationResult:
        content = await self._complete(provenance_prompt(text, filename))
        return parse_classification(extract_json(content, _JSON_OBJECT))

    async def review_best_practices(self, text: str, filename: str) -> list[dict[str, Any]]:
        """Best-practice review as ``[{line, message, suggestion}]``; empty on failure."""
        try:
            content = await self._complete(best_practice_prompt(text, filename))
            data = extract_json(content, _JSON_ARRAY)
        except ClassifierError as e:
            logger.warning(f"Best-practice review failed for {filename}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Best-practice review for {filename} was not a list")
            return []
        return [
            {
                "line": item.get("line"),
                "message": item.get("message", ""),
                "suggestion": item.get("suggestion", ""),
            }
            for item in data
            if isinstance(item, dict)
        ]

    async def analyze_performance(self, text: str, filename: str) -> dict[str, Any]:
        """Performance review as ``{metrics, issues, suggestions}``; empty on failure."""
        try:
            content = await self._complete(performance_prompt(text, filename))
            data = extract_json(content, _JSON_OBJECT)
        except ClassifierError as e:
            logger.warning(f"Performance analysis failed for {filename}: {e}")
            return empty_performance_report()

        if not isinstance(data, dict):
            return empty_performance_report()
        report = empty_performance_report()
        for key in report:
            if isinstance(data.get(key), type(report[key])):
                report[key] = data[key]
        return report


def build_classifier(settings: Settings) -> CodeClassifier:
    """Chat-model classifier when an API key is configured, otherwise the null one."""
    if settings.classifier_api_key:
        return ChatModelClassifier(
            api_key=settings.classifier_api_key,
            api_url=settings.classifier_api_url,
            model=settings.classifier_model,
            timeout=settings.classifier_timeout,
        )
    logger.info("No classifier API key configured; AI detection uses heuristics only")
    return NullClassifier()
