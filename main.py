"""
Icebreaker Coach — FastAPI Application

Generates personalized conversation starters for a user heading into a
social event. An OpenAI model writes the prompts when available; a curated,
rule-based generator covers every failure so the user always gets a batch.

Endpoints:
  POST /api/generate-icebreakers            — Completion path (soft failures flagged, not thrown)
  POST /api/icebreakers                     — Generation with built-in fallback
  POST /api/icebreakers/{id}/rating         — Rate a generated icebreaker (1-5)
  GET  /api/profile, PUT /api/profile       — Read / save the signed-in user's profile
  GET  /api/event-types                     — Known event types
  GET  /api/health                          — Health check
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from icebreaker.completion import CompletionClient
from icebreaker.models import (
    EVENT_NAMES,
    EventTypeInfo,
    GenerateRequest,
    GenerationOutcome,
    HealthResponse,
    IcebreakersResponse,
    RatingRequest,
    RatingResponse,
    UserProfile,
)
from icebreaker.service import IcebreakerService, RatingError
from icebreaker.settings import get_settings
from icebreaker.storage import IcebreakerStore

load_dotenv()
settings = get_settings()

# ── Logging ──
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
)
logger = logging.getLogger("icebreaker_coach")

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def build_service() -> IcebreakerService:
    completion = CompletionClient.from_api_key(
        settings.openai_api_key or None,
        model=settings.openai_model,
        timeout=settings.completion_timeout,
        max_retries=settings.completion_max_retries,
    )
    store = IcebreakerStore.from_credentials(settings.supabase_url, settings.supabase_key)
    return IcebreakerService(completion=completion, store=store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service on startup unless one was injected (tests)."""
    if getattr(app.state, "service", None) is None:
        app.state.service = build_service()
    service: IcebreakerService = app.state.service
    mode = "AI-powered" if service.completion.enabled else "Curated only (no API key)"
    storage = "Supabase" if service.store is not None else "disabled"
    logger.info("╔══════════════════════════════════════════════╗")
    logger.info("║   Icebreaker Coach — Ready!                  ║")
    logger.info("║   Mode: %-36s ║", mode)
    logger.info("║   Persistence: %-29s ║", storage)
    logger.info("╚══════════════════════════════════════════════╝")
    yield
    logger.info("Shutting down Icebreaker Coach...")


# ── FastAPI App ──
app = FastAPI(
    title="Icebreaker Coach",
    description="Personalized icebreakers for dates, parties, networking and more.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=CORS_HEADERS,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━ DEPENDENCIES ━━━━━━━━━━━━━━━━━━━━━━━━━━━


def get_service(request: Request) -> IcebreakerService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def optional_user_id(
    authorization: Optional[str] = Header(default=None),
    service: IcebreakerService = Depends(get_service),
) -> Optional[str]:
    """User id for the bearer token, or None for anonymous callers."""
    token = _bearer_token(authorization)
    if token is None or service.store is None:
        return None
    try:
        return await service.store.get_user_id(token)
    except Exception:
        logger.exception("Auth backend unavailable; treating caller as anonymous")
        return None


async def required_user_id(
    user_id: Optional[str] = Depends(optional_user_id),
    service: IcebreakerService = Depends(get_service),
) -> str:
    if service.store is None:
        raise HTTPException(status_code=503, detail="Persistence not configured")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━ ROUTES ━━━━━━━━━━━━━━━━━━━━━━━━━━━


@app.get("/api/health", response_model=HealthResponse)
async def health_check(service: IcebreakerService = Depends(get_service)):
    """Health check endpoint."""
    return HealthResponse(ai_enabled=service.completion.enabled, storage_enabled=service.store is not None)


@app.get("/api/event-types", response_model=list[EventTypeInfo])
async def list_event_types():
    return [EventTypeInfo(id=event_id, name=name) for event_id, name in EVENT_NAMES.items()]


@app.options("/api/generate-icebreakers")
async def generate_icebreakers_preflight():
    return Response(status_code=200)


@app.post("/api/generate-icebreakers")
async def generate_icebreakers(
    request: GenerateRequest,
    user_id: Optional[str] = Depends(optional_user_id),
    service: IcebreakerService = Depends(get_service),
):
    """
    Generate icebreakers through the completion API.

    API failures are reported with HTTP 200 and `fallbackRequired: true`
    (plus `isRateLimit` for 429) so the client can switch to the curated
    set. Only unexpected internal faults return HTTP 500.
    """
    try:
        result = await service.generate(request.user_profile, request.event_type, request.event_name, user_id)
    except Exception as e:
        logger.exception("Error in generate-icebreakers")
        return JSONResponse(status_code=500, content={"error": str(e)})

    if not result.success:
        return JSONResponse(content=result.failure.model_dump(mode="json", by_alias=True, exclude_none=True))
    return IcebreakersResponse(icebreakers=result.icebreakers).model_dump(mode="json", by_alias=True, exclude_none=True)


@app.post("/api/icebreakers", response_model=GenerationOutcome, response_model_exclude_none=True)
async def icebreakers_with_fallback(
    request: GenerateRequest,
    user_id: Optional[str] = Depends(optional_user_id),
    service: IcebreakerService = Depends(get_service),
):
    """Generate icebreakers, substituting the curated set on any AI failure."""
    try:
        return await service.generate_with_fallback(
            request.user_profile, request.event_type, request.event_name, user_id
        )
    except Exception as e:
        logger.exception("Error in icebreakers")
        return JSONResponse(status_code=500, content={"error": str(e)})


@app.post("/api/icebreakers/{icebreaker_id}/rating", response_model=RatingResponse)
async def rate_icebreaker(
    icebreaker_id: str,
    request: RatingRequest,
    user_id: str = Depends(required_user_id),
    service: IcebreakerService = Depends(get_service),
):
    try:
        saved = await service.rate(user_id, icebreaker_id, request.rating)
    except RatingError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return RatingResponse(icebreaker_id=icebreaker_id, rating=request.rating, saved=saved)


@app.get("/api/profile", response_model=UserProfile)
async def get_profile(
    user_id: str = Depends(required_user_id),
    service: IcebreakerService = Depends(get_service),
):
    profile = await service.store.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@app.put("/api/profile", response_model=UserProfile)
async def save_profile(
    profile: UserProfile,
    user_id: str = Depends(required_user_id),
    service: IcebreakerService = Depends(get_service),
):
    logger.info("Saving profile for user %s", user_id)
    return await service.store.upsert_profile(user_id, profile)


# ── Run ──
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
