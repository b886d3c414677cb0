"""
Gemini REST adapters.

Receipt analysis:
  POST {GEMINI_API_BASE}/models/{VISION_MODEL}:generateContent
  The response is forced to JSON through a responseSchema with seven fields:
  verified / confidence / reason / transactionId / senderName / timestamp / isEdited

Group selfie composition:
  POST {GEMINI_API_BASE}/models/{IMAGE_MODEL}:generateContent
  The first inlineData part of the first candidate is the generated image.
"""
import base64
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from selfiepro import config
from selfiepro.adapters.base import (
    DEFAULT_TEMPLATE,
    SCENE_TEMPLATES,
    AnalysisUnavailable,
    BaseImageComposer,
    BaseReceiptAnalyzer,
    ComposeUnavailable,
    ImagePayload,
    VerificationClaim,
)
from selfiepro.models import UNKNOWN

logger = logging.getLogger("selfiepro.vision")

CLAIM_FIELDS = ["verified", "confidence", "reason", "transactionId", "senderName", "timestamp", "isEdited"]

CLAIM_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "verified": {"type": "BOOLEAN"},
        "confidence": {"type": "INTEGER"},
        "reason": {"type": "STRING"},
        "transactionId": {"type": "STRING"},
        "senderName": {"type": "STRING"},
        "timestamp": {"type": "STRING"},
        "isEdited": {"type": "BOOLEAN"},
    },
    "required": CLAIM_FIELDS,
}

RECEIPT_PROMPT = """
Act as a forensic document examiner. Analyze this payment receipt screenshot
(JazzCash, Easypaisa, Nayapay or bank transfer) for approximately {expected} {currency}.

Step 1: Validation
- Check whether the amount is between {low} and {high}.
- Extract the Transaction ID (TID / Trx ID).
- Extract the sender name, if visible.
- Extract the exact date and time string shown on the receipt.

Step 2: Forgery analysis
- Does the Transaction ID font match the other numbers on the screen?
- Is the Transaction ID aligned with its neighbours?
- Is there pixelation, blurring or colour patching behind the Transaction ID?

Return JSON:
- verified: true ONLY if the amount is in range.
- confidence: 0-100.
- reason: short explanation.
- transactionId: the ID found, or "UNKNOWN".
- senderName: the sender, or "UNKNOWN".
- timestamp: the date/time string exactly as displayed, or "UNKNOWN".
- isEdited: true if there is ANY sign of digital manipulation.
"""


def _known(value: Any) -> str:
    """Collapse missing / blank model output to the UNKNOWN sentinel."""
    if value is None:
        return UNKNOWN
    value = str(value).strip()
    return value or UNKNOWN


def parse_claim(payload: Dict[str, Any]) -> VerificationClaim:
    """Build a VerificationClaim from the model's JSON object."""
    missing = [f for f in CLAIM_FIELDS if f not in payload]
    if missing:
        raise AnalysisUnavailable(f"Vision response missing fields: {', '.join(missing)}")

    try:
        confidence = int(payload["confidence"])
    except (TypeError, ValueError):
        confidence = 0

    return VerificationClaim(
        amount_verified=payload["verified"] is True,
        confidence=max(0, min(100, confidence)),
        reason=str(payload["reason"] or ""),
        transaction_id=_known(payload["transactionId"]),
        sender_name=_known(payload["senderName"]),
        timestamp_text=_known(payload["timestamp"]),
        # anything but an explicit false counts as edited
        is_edited=payload["isEdited"] is not False,
    )


def _parts(body: Dict[str, Any]):
    candidates = body.get("candidates")
    if not isinstance(candidates, list):
        return
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if isinstance(part, dict):
                yield part


def _first_text(body: Dict[str, Any]) -> Optional[str]:
    for part in _parts(body):
        if isinstance(part.get("text"), str) and part["text"]:
            return part["text"]
    return None


def _first_inline_data(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for part in _parts(body):
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict) and inline.get("data"):
            return inline
    return None


def _inline_part(image: ImagePayload) -> Dict[str, Any]:
    return {
        "inlineData": {
            "mimeType": image.mime_type,
            "data": base64.b64encode(image.data).decode("ascii"),
        }
    }


class MalformedResponse(ValueError):
    pass


class _GeminiClient:
    def __init__(
        self,
        model: str,
        timeout: float,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self.timeout = timeout
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.api_base = (api_base or config.GEMINI_API_BASE).rstrip("/")
        self._client = client

    async def generate_content(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call generateContent.

        Raises httpx.HTTPError on transport or HTTP failure, and MalformedResponse
        when a successful reply is not a JSON object.
        """
        url = f"{self.api_base}/models/{self.model}:generateContent"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        if self._client is not None:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse("Gemini returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise MalformedResponse("Gemini returned a non-object body")
        return body


class GeminiReceiptAnalyzer(BaseReceiptAnalyzer):
    """Receipt analysis through the Gemini vision model."""

    def __init__(self, model: Optional[str] = None, client: Optional[httpx.AsyncClient] = None, **kwargs):
        self._gemini = _GeminiClient(
            model or config.VISION_MODEL, config.VISION_TIMEOUT_SECONDS, client=client, **kwargs
        )

    async def extract(self, image_bytes, mime_type, expected_amount, tolerance) -> VerificationClaim:
        prompt = RECEIPT_PROMPT.format(
            expected=expected_amount,
            currency=config.CURRENCY,
            low=expected_amount - tolerance,
            high=expected_amount + tolerance,
        )
        payload = {
            "contents": [{"parts": [{"text": prompt}, _inline_part(ImagePayload(image_bytes, mime_type))]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": CLAIM_SCHEMA,
            },
        }

        try:
            body = await self._gemini.generate_content(payload)
        except (httpx.HTTPError, MalformedResponse) as e:
            logger.warning("Receipt analysis request failed: %s", e.__class__.__name__)
            raise AnalysisUnavailable(f"Vision service error: {e}") from e

        text = _first_text(body)
        if not text:
            raise AnalysisUnavailable("No response from verification model")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise AnalysisUnavailable("Verification model returned invalid JSON") from e
        if not isinstance(data, dict):
            raise AnalysisUnavailable("Verification model returned a non-object")

        claim = parse_claim(data)
        logger.debug(
            "Receipt analyzed: verified=%s confidence=%s edited=%s",
            claim.amount_verified, claim.confidence, claim.is_edited,
        )
        return claim


class GeminiImageComposer(BaseImageComposer):
    """Group selfie generation through the Gemini image model."""

    def __init__(self, model: Optional[str] = None, client: Optional[httpx.AsyncClient] = None, **kwargs):
        self._gemini = _GeminiClient(
            model or config.IMAGE_MODEL, config.COMPOSE_TIMEOUT_SECONDS, client=client, **kwargs
        )

    async def compose(
        self,
        user_image: ImagePayload,
        celebrity_images: List[ImagePayload],
        template: str,
        custom_instructions: Optional[str] = None,
    ) -> str:
        scene = SCENE_TEMPLATES.get(template) or SCENE_TEMPLATES[DEFAULT_TEMPLATE]
        prompt = (
            "Generate a realistic group selfie of the people in the reference images. "
            f"Setting: {scene}. Keep every face identical to its reference photo."
        )
        if custom_instructions:
            prompt += f"\nUser instructions: {custom_instructions}"

        parts = [{"text": prompt}, _inline_part(user_image)]
        parts.extend(_inline_part(img) for img in celebrity_images)
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": "3:4", "imageSize": "1K"},
            },
        }

        try:
            body = await self._gemini.generate_content(payload)
        except (httpx.HTTPError, MalformedResponse) as e:
            logger.warning("Image generation request failed: %s", e.__class__.__name__)
            raise ComposeUnavailable(f"Image service error: {e}") from e

        inline = _first_inline_data(body)
        if inline is None:
            raise ComposeUnavailable("No image data found in response")
        mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
        return f"data:{mime};base64,{inline['data']}"
