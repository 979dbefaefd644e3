"""Lesson generator — FastAPI Application Entry Point."""

import logging
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from lessongen.config import settings
from lessongen.middleware.rate_limit import limiter
from lessongen.routers import lessons, status
from lessongen.services.ai_client import ai_provider_name
from lessongen.services.lesson_store import LessonStore

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ── CORS origins from env (supports dev localhost + production domain) ──────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Lesson Generator",
    description="Generate TypeScript lesson modules from a plain-language outline.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(lessons.router)
app.include_router(status.router)


@app.on_event("startup")
async def on_startup():
    """Open the lesson store, fail stale generations and log the AI provider."""
    if getattr(app.state, "store", None) is None:
        app.state.store = LessonStore.from_url(settings.DATABASE_URL)

    app.state.store.fail_stale_generating(timedelta(minutes=settings.STALE_GENERATION_MINUTES))

    provider = ai_provider_name()
    if provider == "none":
        print("\n" + "=" * 60)
        print("  ⚠  AI NOT CONFIGURED — lessons will use mock content")
        print("  Set one or both keys in backend/.env:")
        print("    GEMINI_API_KEY=AIza...")
        print("    HELICONE_API_KEY=sk-helicone-...")
        print("  and restart. Visit /api/health/ai to verify.")
        print("=" * 60 + "\n")
    else:
        logger.info("AI provider: %s", provider)


@app.get("/")
def root():
    return {
        "name": "Lesson Generator API",
        "version": "1.0.0",
        "docs": "/docs",
        "ai_provider": ai_provider_name(),
    }
