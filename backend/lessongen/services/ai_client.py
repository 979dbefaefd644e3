"""
Provider adapters for lesson generation.

Primary provider:
  Google Gemini generateContent REST API, called with httpx.

Secondary provider:
  OpenAI-compatible chat completions through the Helicone AI gateway.
  When its key is set it is tried first and Gemini becomes its fallback.

Both adapters return a ProviderResult or raise AdapterError; callers never
see httpx or openai exceptions.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from lessongen.config import settings
from lessongen.lesson_engine.prompts import SYSTEM_PROMPT

GEMINI_PROVIDER = "gemini"
HELICONE_PROVIDER = "helicone"

GEMINI_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# Opening or closing fence, with an optional language tag (```ts, ```typescript, ```)
_CODE_FENCE = re.compile(r"```[\w+#.-]*[ \t]*\n?")


class AdapterError(Exception):
    """A provider could not produce usable content."""


@dataclass(frozen=True)
class ProviderResult:
    text: str
    provider: str
    model: str
    response_metadata: dict[str, Any] = field(default_factory=dict)


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers and surrounding whitespace."""
    return _CODE_FENCE.sub("", text).strip()


# ─────────────────────────────────────────────────────────────────────────────
# Gemini (primary)
# ─────────────────────────────────────────────────────────────────────────────

def _build_gemini_body(prompt: str) -> dict:
    """Build JSON body for POST /models/{model}:generateContent."""
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": settings.LESSON_LLM_TEMPERATURE,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 8192,
        },
        "safetySettings": [
            {"category": category, "threshold": "BLOCK_NONE"}
            for category in GEMINI_SAFETY_CATEGORIES
        ],
    }


def _extract_gemini_result(data: Any) -> ProviderResult:
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        raise AdapterError("Invalid response structure from Gemini API")

    candidate = candidates[0]
    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        raise AdapterError("No content in Gemini API response")

    raw_text = parts[0].get("text")
    if raw_text is not None and not isinstance(raw_text, str):
        raise AdapterError("No content in Gemini API response")

    text = strip_code_fences(raw_text or "")
    if not text:
        raise AdapterError("Empty text in Gemini API response")

    return ProviderResult(
        text=text,
        provider=GEMINI_PROVIDER,
        model=settings.GEMINI_MODEL,
        response_metadata={
            "model": content.get("role") or "model",
            "finishReason": candidate.get("finishReason"),
            "safetyRatings": candidate.get("safetyRatings"),
        },
    )


async def generate_with_gemini(
    prompt: str,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    trace_id: Optional[str] = None,
) -> ProviderResult:
    """Generate lesson text with Gemini.

    Args:
        http_client: Reused when given; otherwise a client is opened and
                     closed around the single request.
        trace_id:    Accepted for parity with the Helicone adapter; Gemini has
                     no request-tagging header.
    """
    if not settings.GEMINI_API_KEY:
        raise AdapterError("GEMINI_API_KEY is not configured")

    url = f"{settings.GEMINI_BASE_URL.rstrip('/')}/models/{settings.GEMINI_MODEL}:generateContent"
    headers = {
        "Content-Type": "application/json",
        "x-goog-api-key": settings.GEMINI_API_KEY,
    }

    client = http_client or httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS)
    try:
        response = await client.post(url, headers=headers, json=_build_gemini_body(prompt))
    except httpx.HTTPError as e:
        raise AdapterError(f"Gemini request failed: {e}") from e
    finally:
        if http_client is None:
            await client.aclose()

    if not response.is_success:
        raise AdapterError(f"Gemini API returned {response.status_code}: {response.text}")

    try:
        data = response.json()
    except ValueError as e:
        raise AdapterError("Gemini API returned a non-JSON body") from e

    return _extract_gemini_result(data)


# ─────────────────────────────────────────────────────────────────────────────
# Helicone gateway via OpenAI SDK (secondary)
# ─────────────────────────────────────────────────────────────────────────────

def _helicone_client(
    trace_id: Optional[str],
    http_client: Optional[httpx.AsyncClient],
) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.HELICONE_API_KEY,
        base_url=settings.HELICONE_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        # The fallback chain is the only retry policy
        max_retries=0,
        default_headers={
            "Helicone-Auth": settings.HELICONE_API_KEY,
            "Helicone-Property-User": "anonymous",
            "Helicone-Property-TraceId": trace_id or "",
        },
        http_client=http_client,
    )


async def generate_with_helicone(
    prompt: str,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    trace_id: Optional[str] = None,
) -> ProviderResult:
    """Generate lesson text through the Helicone gateway."""
    if not settings.HELICONE_API_KEY:
        raise AdapterError("HELICONE_API_KEY is not configured")

    client = _helicone_client(trace_id, http_client)
    try:
        completion = await client.chat.completions.create(
            model=settings.HELICONE_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=settings.LESSON_LLM_TEMPERATURE,
        )
    except OpenAIError as e:
        raise AdapterError(f"Helicone request failed: {e}") from e
    finally:
        if http_client is None:
            await client.close()

    if not completion.choices:
        raise AdapterError("No choices in Helicone response")

    text = strip_code_fences(completion.choices[0].message.content or "")
    if not text:
        raise AdapterError("Empty content in Helicone response")

    return ProviderResult(
        text=text,
        provider=HELICONE_PROVIDER,
        model=settings.HELICONE_MODEL,
        response_metadata={
            "id": completion.id,
            "created": completion.created,
            "model": completion.model,
        },
    )


# ─────────────────────────────────────────────────────────────────────────────
# Status helpers
# ─────────────────────────────────────────────────────────────────────────────

def gemini_configured() -> bool:
    return bool(settings.GEMINI_API_KEY)


def helicone_configured() -> bool:
    return bool(settings.HELICONE_API_KEY)


def ai_provider_name() -> str:
    if helicone_configured():
        return f"Helicone ({settings.HELICONE_MODEL})"
    if gemini_configured():
        return f"Gemini ({settings.GEMINI_MODEL})"
    return "none"


async def ai_health_check() -> dict:
    """Live connectivity test — called by /api/health/ai."""
    provider = ai_provider_name()
    if provider == "none":
        return {
            "provider": "none",
            "status": "unconfigured",
            "message": "Set HELICONE_API_KEY or GEMINI_API_KEY in backend/.env.",
        }

    generate = generate_with_helicone if helicone_configured() else generate_with_gemini
    try:
        result = await generate("Reply with exactly: OK")
        return {"provider": provider, "status": "ok", "test_reply": result.text}
    except AdapterError as e:
        return {"provider": provider, "status": "error", "error": str(e)}
