"""
Supabase-backed persistence and auth.

Tables:
  profiles            one row per user (unique user_id)
  icebreakers         generated records, keyed by the generated id
  icebreaker_ratings  one row per (user_id, icebreaker_id); last write wins
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from functools import wraps
from typing import Any, Optional

from supabase import AuthError, Client, create_client

from .models import IcebreakerRecord, UserProfile

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
ICEBREAKERS_TABLE = "icebreakers"
RATINGS_TABLE = "icebreaker_ratings"

# The Supabase SDK is synchronous; keep its calls off the event loop.
_db_executor = concurrent.futures.ThreadPoolExecutor(
    max_workers=10,
    thread_name_prefix="supabase-db",
)


def run_sync(func):
    """Run a synchronous Supabase operation in the bounded DB thread pool."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_db_executor, lambda: func(*args, **kwargs))
    return wrapper


def _profile_to_row(user_id: str, profile: UserProfile) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "name": profile.name,
        "age": profile.age.value if profile.age else None,
        "gender": profile.gender.value if profile.gender else None,
        "city": profile.city,
        "temperament": profile.temperament.value if profile.temperament else None,
        "preferred_environment": profile.preferred_environment.value if profile.preferred_environment else None,
        "bio": profile.bio,
        "profession": profile.profession,
        "interests": profile.interests,
    }


def _row_to_profile(row: dict[str, Any]) -> UserProfile:
    return UserProfile(
        name=row.get("name") or "",
        age=row.get("age"),
        gender=row.get("gender"),
        city=row.get("city"),
        temperament=row.get("temperament"),
        preferred_environment=row.get("preferred_environment"),
        bio=row.get("bio"),
        profession=row.get("profession"),
        interests=row.get("interests") or [],
    )


class IcebreakerStore:
    """Record-oriented access to profiles, generated icebreakers and ratings."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, key: str) -> Optional[IcebreakerStore]:
        if not url or not key:
            logger.warning("Supabase credentials not configured; persistence disabled")
            return None
        return cls(create_client(url, key))

    # ── Auth ──

    @run_sync
    def get_user_id(self, access_token: str) -> Optional[str]:
        """Resolve an access token to the hosted-auth user id (None if invalid)."""
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as e:
            logger.info("Rejected access token: %s", e)
            return None
        if response is None or response.user is None:
            return None
        return str(response.user.id)

    # ── Profiles ──

    @run_sync
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        response = self.client.table(PROFILES_TABLE)\
            .select("*")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not response.data:
            return None
        return _row_to_profile(response.data[0])

    @run_sync
    def upsert_profile(self, user_id: str, profile: UserProfile) -> UserProfile:
        response = self.client.table(PROFILES_TABLE)\
            .upsert(_profile_to_row(user_id, profile), on_conflict="user_id")\
            .execute()
        return _row_to_profile(response.data[0]) if response.data else profile

    # ── Icebreakers ──

    @run_sync
    def save_icebreakers(
        self,
        user_id: str,
        event_type: str,
        event_name: Optional[str],
        icebreakers: list[IcebreakerRecord],
    ) -> int:
        """Insert one generated batch; returns the number of rows written."""
        if not icebreakers:
            return 0
        rows = [
            {
                "id": record.id,
                "user_id": user_id,
                "text": record.text,
                "category": record.category,
                "difficulty": record.difficulty.value,
                "event_type": event_type,
                "event_name": event_name,
            }
            for record in icebreakers
        ]
        response = self.client.table(ICEBREAKERS_TABLE).insert(rows).execute()
        return len(response.data or [])

    @run_sync
    def save_rating(self, user_id: str, icebreaker_id: str, rating: int) -> dict[str, Any]:
        """Upsert the (user, icebreaker) rating row."""
        data = {"user_id": user_id, "icebreaker_id": icebreaker_id, "rating": rating}
        response = self.client.table(RATINGS_TABLE)\
            .upsert(data, on_conflict="user_id,icebreaker_id")\
            .execute()
        return response.data[0] if response.data else data
