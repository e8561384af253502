"""Tests for the external code classifier."""

import json

import httpx
import pytest

from manasx.ai_detector import AIDetector
from manasx.classifier import (
    ChatModelClassifier,
    NullClassifier,
    build_classifier,
    extract_json,
    parse_classification,
)
from manasx.config import get_settings
from manasx.errors import ClassifierUnavailable, InvalidClassifierResponse


def chat_reply(content, status_code=200):
    """Build a MockTransport handler answering every request with ``content``."""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            status_code, json={"choices": [{"message": {"role": "assistant", "content": content}}]}
        )

    handler.requests = requests
    return handler


def make_classifier(handler, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatModelClassifier(api_key=api_key, api_url="https://models.test/v1/chat/completions", client=client)


class TestExtractJson:
    """Tests for extract_json function."""

    def test_code_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_embedded_object(self):
        assert extract_json('Here you go: {"a": [1, 2]} hope it helps') == {"a": [1, 2]}

    def test_no_json(self):
        with pytest.raises(InvalidClassifierResponse):
            extract_json("no structured data here")


class TestParseClassification:
    """Tests for parse_classification function."""

    def test_sections_and_clamping(self):
        result = parse_classification(
            {
                "isLikelyAI": True,
                "confidence": 1.7,
                "reasons": ["generic names", ""],
                "sections": [{"line": "4", "reason": "boilerplate"}, {"line": None}, "junk"],
            }
        )

        assert result.is_likely_ai
        assert result.confidence == 1.0
        assert result.reasons == ["generic names"]
        assert [(s.line, s.reason) for s in result.sections] == [(4, "boilerplate")]

    def test_not_an_object(self):
        with pytest.raises(InvalidClassifierResponse):
            parse_classification(["a"])

    def test_non_list_reasons_and_sections_are_ignored(self):
        result = parse_classification({"isLikelyAI": True, "confidence": 0.8, "reasons": 5, "sections": 7})

        assert result.is_likely_ai
        assert result.reasons == []
        assert result.sections == []

    def test_single_string_reason(self):
        result = parse_classification({"reasons": "generic names"})

        assert result.reasons == ["generic names"]


class TestChatModelClassifier:
    """Tests for ChatModelClassifier class."""

    @pytest.mark.asyncio
    async def test_classify(self):
        reply = json.dumps({"isLikelyAI": True, "confidence": 0.9, "reasons": ["template"], "sections": []})
        handler = chat_reply(f"```json\n{reply}\n```")
        classifier = make_classifier(handler)

        result = await classifier.classify("const a = 1;", "a.js")

        assert result.is_likely_ai
        assert result.confidence == 0.9
        request = handler.requests[0]
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert "AI assistant" in body["messages"][0]["content"]
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_http_error_is_unavailable(self):
        classifier = make_classifier(chat_reply("{}", status_code=503))

        with pytest.raises(ClassifierUnavailable):
            await classifier.classify("x", "a.js")
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        classifier = make_classifier(handler)
        with pytest.raises(ClassifierUnavailable):
            await classifier.classify("x", "a.js")
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_missing_key(self):
        classifier = make_classifier(chat_reply("{}"), api_key=None)

        with pytest.raises(ClassifierUnavailable):
            await classifier.classify("x", "a.js")
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        def handler(request):
            return httpx.Response(200, json={"result": "?"})

        classifier = make_classifier(handler)
        with pytest.raises(InvalidClassifierResponse):
            await classifier.classify("x", "a.js")
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_choices_not_a_list(self):
        def handler(request):
            return httpx.Response(200, json={"choices": {"x": 1}})

        classifier = make_classifier(handler)
        with pytest.raises(InvalidClassifierResponse):
            await classifier.classify("x", "a.js")
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_message_not_an_object(self):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": "hi"}]})

        classifier = make_classifier(handler)
        with pytest.raises(InvalidClassifierResponse):
            await classifier.classify("x", "a.js")
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_best_practices(self):
        reply = json.dumps([{"line": 3, "message": "Use const", "suggestion": "const x"}, "junk"])
        classifier = make_classifier(chat_reply(reply))

        findings = await classifier.review_best_practices("let x = 1", "a.js")

        assert findings == [{"line": 3, "message": "Use const", "suggestion": "const x"}]
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_reviews_degrade_to_empty(self):
        classifier = make_classifier(chat_reply("not json at all", status_code=500))

        assert await classifier.review_best_practices("x", "a.js") == []
        assert await classifier.analyze_performance("x", "a.js") == {
            "metrics": {},
            "issues": [],
            "suggestions": [],
        }
        await classifier.client.aclose()

    @pytest.mark.asyncio
    async def test_performance_keeps_known_keys(self):
        reply = json.dumps({"metrics": {"loopCount": 2}, "issues": "bad", "extra": 1})
        classifier = make_classifier(chat_reply(reply))

        report = await classifier.analyze_performance("x", "a.js")

        assert report == {"metrics": {"loopCount": 2}, "issues": [], "suggestions": []}
        await classifier.client.aclose()


class TestBuildClassifier:
    """Tests for build_classifier function."""

    def test_without_key(self):
        settings = get_settings(_env_file=None, classifier_api_key=None)
        assert isinstance(build_classifier(settings), NullClassifier)

    def test_with_key(self):
        settings = get_settings(_env_file=None, classifier_api_key="k", classifier_model="m")
        classifier = build_classifier(settings)
        assert isinstance(classifier, ChatModelClassifier)
        assert classifier.model == "m"

    @pytest.mark.asyncio
    async def test_null_classifier_is_neutral(self):
        result = await NullClassifier().classify("x", "a.js")
        assert not result.is_likely_ai
        assert result.reasons == []


class TestMalformedRepliesInDetector:
    """Malformed classifier replies never cost the heuristic detection."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"choices": [{"message": {"content": '{"isLikelyAI": true, "reasons": 5}'}}]},
            {"choices": [{"message": {"content": '{"isLikelyAI": true, "sections": 7}'}}]},
            {"choices": {"x": 1}},
        ],
    )
    async def test_detect_survives(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        classifier = make_classifier(handler)
        code = "// Your code here\n// Add your logic here\nconst total = 1;\n"

        result = await AIDetector(classifier).detect(code, "gen.js")

        assert result.indicators
        assert all(i.type != "ai_analysis" for i in result.indicators)
        await classifier.client.aclose()
