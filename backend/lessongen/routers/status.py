"""Status router — provider credential probe and health checks."""

from fastapi import APIRouter

from lessongen.schemas.lesson import GeminiStatusResponse
from lessongen.services.ai_client import ai_health_check, ai_provider_name, gemini_configured

router = APIRouter(tags=["status"])


@router.get("/api/gemini-status", response_model=GeminiStatusResponse)
def gemini_status():
    # Only whether the key exists; never the key itself
    return GeminiStatusResponse(has_key=gemini_configured())


@router.get("/health")
def health():
    return {"status": "ok", "ai_provider": ai_provider_name()}


@router.get("/api/health/ai")
async def health_ai():
    """Live connectivity test for the preferred AI provider.

    Returns:
        provider: which AI is active
        status:   "ok" | "error" | "unconfigured"
        test_reply / error: result of a tiny test call
    """
    return await ai_health_check()
