"""
Pydantic models for the Icebreaker Coach service.
Defines the user profile, event context, icebreaker records, and the
request/response envelopes of the generation endpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    """Base for models exchanged with the web client (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────────────────── Enums ────────────────────────────

class AgeBracket(str, Enum):
    AGE_18_24 = "18-24"
    AGE_25_34 = "25-34"
    AGE_35_44 = "35-44"
    AGE_45_54 = "45-54"
    AGE_55_PLUS = "55+"


class Gender(str, Enum):
    FEMALE = "female"
    MALE = "male"
    NON_BINARY = "non-binary"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


class Temperament(str, Enum):
    """Self-reported social comfort, ordered from most shy to most outgoing."""
    VERY_SHY = "very-shy"
    SOMEWHAT_SHY = "somewhat-shy"
    BALANCED = "balanced"
    OUTGOING = "outgoing"
    VERY_OUTGOING = "very-outgoing"


class Environment(str, Enum):
    SMALL_GROUPS = "small-groups"
    MEDIUM_GROUPS = "medium-groups"
    LARGE_GROUPS = "large-groups"
    ONE_ON_ONE = "one-on-one"
    PROFESSIONAL = "professional"


class EventType(str, Enum):
    DATE = "date"
    PARTY = "party"
    NETWORKING = "networking"
    CASUAL_MEETUP = "casual-meetup"
    GROUP_ACTIVITY = "group-activity"
    CLASS_WORKSHOP = "class-workshop"
    FAMILY_GATHERING = "family-gathering"
    OTHER = "other"


EVENT_NAMES: dict[str, str] = {
    EventType.DATE.value: "First Date",
    EventType.PARTY.value: "Party / Social Gathering",
    EventType.NETWORKING.value: "Professional Networking",
    EventType.CASUAL_MEETUP.value: "Casual Meetup",
    EventType.GROUP_ACTIVITY.value: "Group Activity",
    EventType.CLASS_WORKSHOP.value: "Class / Workshop",
    EventType.FAMILY_GATHERING.value: "Family Gathering",
    EventType.OTHER.value: "Other Event",
}


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def _missing_(cls, value: object):
        # Older clients label the top tier "advanced".
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "advanced":
                return cls.HARD
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def rank(self) -> int:
        return list(Difficulty).index(self)


class Provenance(str, Enum):
    """Which generation path produced a record."""
    AI = "ai"
    GENERIC = "generic"
    FALLBACK = "fallback"


# ──────────────────────────── Profile & Event ────────────────────────────

_PROFILE_CHOICES: dict[str, type[Enum]] = {
    "age": AgeBracket,
    "gender": Gender,
    "temperament": Temperament,
    "preferred_environment": Environment,
}


class UserProfile(WireModel):
    """Profile captured during onboarding; the input to every generation call."""
    name: str = ""
    age: Optional[AgeBracket] = None
    gender: Optional[Gender] = None
    city: Optional[str] = None
    temperament: Optional[Temperament] = None
    preferred_environment: Optional[Environment] = None
    bio: Optional[str] = None
    profession: Optional[str] = None
    interests: list[str] = Field(default_factory=list)

    @field_validator("city", "bio", "profession", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("age", "gender", "temperament", "preferred_environment", mode="before")
    @classmethod
    def _unknown_choice_is_missing(cls, value: Any, info: ValidationInfo) -> Any:
        # Form selects submit "" until the user picks something; older
        # clients may send labels this service no longer offers.
        if not isinstance(value, str):
            return value
        choice = value.strip()
        if not choice:
            return None
        try:
            return _PROFILE_CHOICES[info.field_name](choice)
        except ValueError:
            logger.warning("Ignoring unknown %s %r in profile", info.field_name, choice)
            return None

    @field_validator("interests", mode="before")
    @classmethod
    def _split_interests(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class EventContext(WireModel):
    event_type: str
    event_name: str

    @classmethod
    def for_type(cls, event_type: str) -> EventContext:
        """Build the context for an event type, deriving its display name."""
        name = EVENT_NAMES.get(event_type)
        if name is None:
            name = event_type.replace("-", " ").replace("_", " ").strip().title() or EVENT_NAMES["other"]
        return cls(event_type=event_type, event_name=name)


# ──────────────────────────── Icebreakers ────────────────────────────

class IcebreakerRecord(WireModel):
    """A single conversation starter with its metadata."""
    id: str
    text: str
    category: str
    difficulty: Difficulty
    provenance: Provenance
    rating: Optional[int] = Field(default=None, ge=1, le=5)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, value: Any) -> Any:
        return Difficulty(value) if isinstance(value, str) else value


class ModelIcebreaker(BaseModel):
    """One element of the JSON array the completion model must return."""
    model_config = ConfigDict(extra="ignore")

    text: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    difficulty: Difficulty

    @field_validator("text", "category", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("category")
    @classmethod
    def _lower_category(cls, value: str) -> str:
        return value.lower()

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, value: Any) -> Any:
        return Difficulty(value) if isinstance(value, str) else value


# ──────────────────────────── Generation Results ────────────────────────────

class Classification(WireModel):
    is_rate_limit: bool = False
    fallback_required: bool = False


class GenerationFailure(WireModel):
    """Structured (non-exception) failure of the completion path."""
    error: str
    details: Optional[str] = None
    is_rate_limit: bool = False
    fallback_required: bool = True


class GenerationResult(BaseModel):
    """Result of one completion-path generation: a batch or a failure."""
    success: bool
    icebreakers: list[IcebreakerRecord] = Field(default_factory=list)
    provenance: Optional[Provenance] = None
    failure: Optional[GenerationFailure] = None


class GenerationOutcome(WireModel):
    """What the caller ultimately shows: always a non-empty batch."""
    icebreakers: list[IcebreakerRecord]
    provenance: Provenance
    is_rate_limit: bool = False
    notice: Optional[str] = None


# ──────────────────────────── API Request / Response ────────────────────────────

class GenerateRequest(WireModel):
    """Incoming request to generate icebreakers."""
    user_profile: UserProfile
    event_type: str = Field(..., min_length=1)
    event_name: Optional[str] = None


class IcebreakersResponse(WireModel):
    icebreakers: list[IcebreakerRecord]


class RatingRequest(WireModel):
    rating: int = Field(..., ge=1, le=5)


class RatingResponse(WireModel):
    icebreaker_id: str
    rating: int
    saved: bool


class EventTypeInfo(WireModel):
    id: str
    name: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str = "1.0.0"
    ai_enabled: bool = False
    storage_enabled: bool = False
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")
