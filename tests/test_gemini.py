"""
Unit tests for selfiepro/adapters/gemini.py.

The Gemini REST API is replaced with httpx.MockTransport, so no network is used.
Covers: claim parsing and sentinel normalisation, request shape,
transport / malformed-response failures, image composition.
"""
import json
import pytest
import httpx

from selfiepro.adapters.base import AnalysisUnavailable, ComposeUnavailable, ImagePayload
from selfiepro.adapters.gemini import GeminiImageComposer, GeminiReceiptAnalyzer, parse_claim
from selfiepro.models import UNKNOWN

VALID_CLAIM = {
    "verified": True,
    "confidence": 92,
    "reason": "Amount Rs. 699 visible",
    "transactionId": "ABC123",
    "senderName": "Sana",
    "timestamp": "1 Nov 9:00AM",
    "isEdited": False,
}


def gemini_text_response(payload):
    return {"candidates": [{"content": {"parts": [{"text": json.dumps(payload)}]}}]}


def analyzer_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiReceiptAnalyzer(model="test-vision", client=client, api_key="k", api_base="https://gemini.test/v1beta")


def composer_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiImageComposer(model="test-image", client=client, api_key="k", api_base="https://gemini.test/v1beta")


# ---------------------------------------------------------------------------
# parse_claim()
# ---------------------------------------------------------------------------
class TestParseClaim:
    def test_valid_payload(self):
        claim = parse_claim(VALID_CLAIM)
        assert claim.amount_verified is True
        assert claim.confidence == 92
        assert claim.transaction_id == "ABC123"
        assert claim.sender_name == "Sana"
        assert claim.timestamp_text == "1 Nov 9:00AM"
        assert claim.is_edited is False

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_fields_become_unknown(self, value):
        claim = parse_claim({**VALID_CLAIM, "transactionId": value, "senderName": value, "timestamp": value})
        assert claim.transaction_id == UNKNOWN
        assert claim.sender_name == UNKNOWN
        assert claim.timestamp_text == UNKNOWN

    def test_known_values_are_only_stripped(self):
        claim = parse_claim({**VALID_CLAIM, "timestamp": "  23 Oct, 10:30 PM "})
        assert claim.timestamp_text == "23 Oct, 10:30 PM"

    @pytest.mark.parametrize("raw,expected", [(150, 100), (-5, 0), ("87", 87), ("n/a", 0)])
    def test_confidence_clamped(self, raw, expected):
        assert parse_claim({**VALID_CLAIM, "confidence": raw}).confidence == expected

    def test_non_boolean_verified_is_not_verified(self):
        assert parse_claim({**VALID_CLAIM, "verified": "true"}).amount_verified is False

    @pytest.mark.parametrize("value", ["true", "yes", "false", 1, 0, None])
    def test_non_boolean_edited_counts_as_edited(self, value):
        assert parse_claim({**VALID_CLAIM, "isEdited": value}).is_edited is True

    def test_explicit_false_edited_is_clean(self):
        assert parse_claim({**VALID_CLAIM, "isEdited": False}).is_edited is False

    def test_missing_field_raises(self):
        payload = dict(VALID_CLAIM)
        del payload["isEdited"]
        with pytest.raises(AnalysisUnavailable, match="isEdited"):
            parse_claim(payload)


# ---------------------------------------------------------------------------
# GeminiReceiptAnalyzer.extract()
# ---------------------------------------------------------------------------
class TestReceiptAnalyzer:
    async def test_extract_success_and_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_text_response(VALID_CLAIM))

        claim = await analyzer_with(handler).extract(b"img", "image/jpeg", 699, 100)

        assert claim.transaction_id == "ABC123"
        assert seen["url"] == "https://gemini.test/v1beta/models/test-vision:generateContent"
        assert seen["key"] == "k"
        parts = seen["body"]["contents"][0]["parts"]
        assert "599" in parts[0]["text"] and "799" in parts[0]["text"]
        assert parts[1]["inlineData"]["mimeType"] == "image/jpeg"
        assert parts[1]["inlineData"]["data"] == "aW1n"
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"

    async def test_http_error_raises_analysis_unavailable(self):
        analyzer = analyzer_with(lambda request: httpx.Response(503, text="overloaded"))
        with pytest.raises(AnalysisUnavailable):
            await analyzer.extract(b"img", "image/png", 699, 100)

    async def test_connection_error_raises_analysis_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AnalysisUnavailable):
            await analyzer_with(handler).extract(b"img", "image/png", 699, 100)

    async def test_empty_candidates_raises(self):
        analyzer = analyzer_with(lambda request: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(AnalysisUnavailable, match="No response"):
            await analyzer.extract(b"img", "image/png", 699, 100)

    async def test_invalid_json_raises(self):
        body = {"candidates": [{"content": {"parts": [{"text": "not json"}]}}]}
        analyzer = analyzer_with(lambda request: httpx.Response(200, json=body))
        with pytest.raises(AnalysisUnavailable, match="invalid JSON"):
            await analyzer.extract(b"img", "image/png", 699, 100)

    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway error</html>"),
        httpx.Response(200, json=[]),
        httpx.Response(200, json="ok"),
        httpx.Response(200, json={"candidates": "none"}),
        httpx.Response(200, json={"candidates": [{"content": {"parts": ["text"]}}]}),
    ])
    async def test_malformed_reply_raises_analysis_unavailable(self, response):
        analyzer = analyzer_with(lambda request: response)
        with pytest.raises(AnalysisUnavailable):
            await analyzer.extract(b"img", "image/png", 699, 100)

    async def test_fraudulent_receipt_is_a_claim_not_an_error(self):
        payload = {**VALID_CLAIM, "verified": False, "isEdited": True, "confidence": 99}
        analyzer = analyzer_with(lambda request: httpx.Response(200, json=gemini_text_response(payload)))
        claim = await analyzer.extract(b"img", "image/png", 699, 100)
        assert claim.is_edited is True
        assert claim.amount_verified is False


# ---------------------------------------------------------------------------
# GeminiImageComposer.compose()
# ---------------------------------------------------------------------------
class TestImageComposer:
    async def test_returns_data_url(self):
        body = {"candidates": [{"content": {"parts": [
            {"text": "here you go"},
            {"inlineData": {"mimeType": "image/png", "data": "iVBORw0KGgo="}},
        ]}}]}
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=body)

        composer = composer_with(handler)
        result = await composer.compose(
            ImagePayload(b"me", "image/png"),
            [ImagePayload(b"celeb1", "image/png"), ImagePayload(b"celeb2", "image/jpeg")],
            "Dhaba",
        )

        assert result == "data:image/png;base64,iVBORw0KGgo="
        parts = seen["body"]["contents"][0]["parts"]
        assert len(parts) == 4  # prompt + user + 2 celebrities
        assert "dhaba" in parts[0]["text"].lower()

    async def test_no_image_raises(self):
        body = {"candidates": [{"content": {"parts": [{"text": "refused"}]}}]}
        composer = composer_with(lambda request: httpx.Response(200, json=body))
        with pytest.raises(ComposeUnavailable):
            await composer.compose(ImagePayload(b"me", "image/png"), [], "Mall")

    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway error</html>"),
        httpx.Response(200, json=[]),
    ])
    async def test_malformed_reply_raises(self, response):
        composer = composer_with(lambda request: response)
        with pytest.raises(ComposeUnavailable):
            await composer.compose(ImagePayload(b"me", "image/png"), [], "Mall")

    async def test_http_error_raises(self):
        composer = composer_with(lambda request: httpx.Response(500))
        with pytest.raises(ComposeUnavailable):
            await composer.compose(ImagePayload(b"me", "image/png"), [], "Mall")
