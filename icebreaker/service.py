"""
Icebreaker Service

The generation entry point used by the HTTP layer:

    profile + event
         │
         ▼
    CompletionClient ──success──▶ persist batch (best effort) ──▶ AI / generic batch
         │
      failure (classified)
         │
         ▼
    Fallback Generator ──▶ curated batch + user-facing notice
"""

from __future__ import annotations

import logging
from typing import Optional

from .classifier import notice_for
from .completion import CompletionClient
from .fallback import generate_fallback
from .models import (
    Classification,
    GenerationOutcome,
    GenerationResult,
    IcebreakerRecord,
    Provenance,
    UserProfile,
)
from .storage import IcebreakerStore

logger = logging.getLogger(__name__)


class RatingError(ValueError):
    """Rating outside the accepted 1-5 range."""


class IcebreakerService:
    """Composes the completion path, persistence and the curated fallback."""

    def __init__(self, completion: CompletionClient, store: Optional[IcebreakerStore] = None):
        self.completion = completion
        self.store = store

    async def generate(
        self,
        profile: UserProfile,
        event_type: str,
        event_name: Optional[str],
        user_id: Optional[str] = None,
    ) -> GenerationResult:
        """
        Completion-path generation. A successful batch is saved for the
        authenticated user; a failure is returned as-is for the caller to
        degrade on.
        """
        result = await self.completion.generate(profile, event_type, event_name)
        if result.success:
            logger.info("Generated %d %s icebreakers for %s", len(result.icebreakers),
                        result.provenance.value, event_type)
            await self._save_batch(user_id, event_type, event_name, result.icebreakers)
        else:
            logger.info("Completion path failed for %s: %s (rate limit=%s)",
                        event_type, result.failure.error, result.failure.is_rate_limit)
        return result

    async def generate_with_fallback(
        self,
        profile: UserProfile,
        event_type: str,
        event_name: Optional[str],
        user_id: Optional[str] = None,
    ) -> GenerationOutcome:
        """Always returns a non-empty batch, tagged with how it was produced."""
        result = await self.generate(profile, event_type, event_name, user_id)
        if result.success and result.icebreakers:
            return GenerationOutcome(icebreakers=result.icebreakers, provenance=result.provenance)

        failure = result.failure
        classification = Classification(
            is_rate_limit=bool(failure and failure.is_rate_limit),
            fallback_required=True,
        )
        return GenerationOutcome(
            icebreakers=generate_fallback(profile, event_type),
            provenance=Provenance.FALLBACK,
            is_rate_limit=classification.is_rate_limit,
            notice=notice_for(classification),
        )

    async def rate(self, user_id: str, icebreaker_id: str, rating: int) -> bool:
        """Record a 1-5 rating. Returns whether it was persisted."""
        if not 1 <= rating <= 5:
            raise RatingError(f"rating must be between 1 and 5, got {rating}")
        if self.store is None:
            return False
        try:
            await self.store.save_rating(user_id, icebreaker_id, rating)
        except Exception:
            logger.exception("Error saving rating for icebreaker %s", icebreaker_id)
            return False
        return True

    async def _save_batch(
        self,
        user_id: Optional[str],
        event_type: str,
        event_name: Optional[str],
        icebreakers: list[IcebreakerRecord],
    ) -> None:
        if self.store is None or user_id is None:
            return
        try:
            await self.store.save_icebreakers(user_id, event_type, event_name, icebreakers)
        except Exception:
            logger.exception("Error saving icebreakers for user %s", user_id)
