"""
Guided flow: welcome → profile → event → icebreakers.

Each step is its own state model carrying exactly the data that step has,
so "icebreakers without a profile" cannot be represented. Transitions are
plain functions returning a new state; `IcebreakerSession` wraps them for
one user and sequences regenerations so only the latest request's result
is ever shown.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .classifier import classify, notice_for
from .completion import to_records
from .fallback import generate_fallback
from .models import (
    EventContext,
    GenerationOutcome,
    IcebreakerRecord,
    ModelIcebreaker,
    Provenance,
    UserProfile,
)

logger = logging.getLogger(__name__)


class FlowError(ValueError):
    """Transition not allowed from the current step."""


class FlowStep(str, Enum):
    WELCOME = "welcome"
    PROFILE = "profile"
    EVENT = "event"
    ICEBREAKERS = "icebreakers"


# ──────────────────────────── States ────────────────────────────

class WelcomeState(BaseModel):
    step: Literal[FlowStep.WELCOME] = FlowStep.WELCOME


class ProfileState(BaseModel):
    step: Literal[FlowStep.PROFILE] = FlowStep.PROFILE
    draft: Optional[UserProfile] = None


class EventState(BaseModel):
    step: Literal[FlowStep.EVENT] = FlowStep.EVENT
    profile: UserProfile


class IcebreakersState(BaseModel):
    step: Literal[FlowStep.ICEBREAKERS] = FlowStep.ICEBREAKERS
    profile: UserProfile
    event: EventContext
    icebreakers: list[IcebreakerRecord] = Field(default_factory=list)
    provenance: Optional[Provenance] = None
    notice: Optional[str] = None
    ratings: dict[str, int] = Field(default_factory=dict)


FlowState = Union[WelcomeState, ProfileState, EventState, IcebreakersState]


# ──────────────────────────── Transitions ────────────────────────────

def _require(state: FlowState, expected: type, action: str) -> None:
    if not isinstance(state, expected):
        raise FlowError(f"cannot {action} from the {state.step.value} step")


def start(state: FlowState) -> ProfileState:
    _require(state, WelcomeState, "start")
    return ProfileState()


def complete_profile(state: FlowState, profile: UserProfile) -> EventState:
    _require(state, ProfileState, "complete the profile")
    return EventState(profile=profile)


def select_event(state: FlowState, event_type: str, event_name: Optional[str] = None) -> IcebreakersState:
    _require(state, EventState, "select an event")
    event = EventContext.for_type(event_type)
    if event_name:
        event = event.model_copy(update={"event_name": event_name})
    return IcebreakersState(profile=state.profile, event=event)


def go_back(state: FlowState) -> FlowState:
    """icebreakers → event, event → profile (profile kept as draft), else welcome."""
    if isinstance(state, IcebreakersState):
        return EventState(profile=state.profile)
    if isinstance(state, EventState):
        return ProfileState(draft=state.profile)
    return WelcomeState()


def start_over(state: Optional[FlowState] = None) -> WelcomeState:
    return WelcomeState()


# ──────────────────────────── Sequencing ────────────────────────────

class RequestSequencer:
    """Monotonic request tokens; only the most recently issued one is current."""

    def __init__(self):
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest


Generator = Callable[[UserProfile, str, Optional[str]], Awaitable[GenerationOutcome]]


class IcebreakerSession:
    """One user's walk through the flow, including regenerations and ratings."""

    def __init__(self, state: Optional[FlowState] = None):
        self.state: FlowState = state or WelcomeState()
        self.sequencer = RequestSequencer()

    @property
    def step(self) -> FlowStep:
        return self.state.step

    # ── navigation ──

    def start(self) -> None:
        self.state = start(self.state)

    def complete_profile(self, profile: UserProfile) -> None:
        self.state = complete_profile(self.state, profile)

    def select_event(self, event_type: str, event_name: Optional[str] = None) -> None:
        self.state = select_event(self.state, event_type, event_name)
        self.sequencer.issue()

    def go_back(self) -> None:
        self.state = go_back(self.state)
        # Results still in flight belong to the screen we just left.
        self.sequencer.issue()

    def start_over(self) -> None:
        self.state = start_over(self.state)
        self.sequencer.issue()

    # ── generation ──

    def begin_generation(self) -> int:
        """Issue the token for a new (re)generation request."""
        _require(self.state, IcebreakersState, "generate icebreakers")
        return self.sequencer.issue()

    def apply_outcome(self, token: int, outcome: GenerationOutcome) -> bool:
        """Show `outcome` if `token` is still current; returns whether it was applied."""
        if not self.sequencer.is_current(token) or not isinstance(self.state, IcebreakersState):
            logger.debug("Discarding superseded generation result (token %d, latest %d)",
                         token, self.sequencer.latest)
            return False
        self.state = self.state.model_copy(update={
            "icebreakers": list(outcome.icebreakers),
            "provenance": outcome.provenance,
            "notice": outcome.notice,
            "ratings": {},
        })
        return True

    def apply_response(self, token: int, http_status: Optional[int], body: Optional[Mapping[str, Any]]) -> bool:
        """
        Apply a raw generation-endpoint response.

        A soft failure (or any unusable body) is replaced with the curated
        fallback batch and the matching notice.
        """
        if not isinstance(self.state, IcebreakersState):
            return False
        return self.apply_outcome(token, self._outcome_from_response(http_status, body))

    async def regenerate(self, generate: Generator) -> bool:
        """Request a fresh batch; a newer request started meanwhile wins."""
        token = self.begin_generation()
        state = self.state
        outcome = await generate(state.profile, state.event.event_type, state.event.event_name)
        return self.apply_outcome(token, outcome)

    def _outcome_from_response(self, http_status: Optional[int], body: Optional[Mapping[str, Any]]) -> GenerationOutcome:
        state = self.state
        classification = classify(http_status, body)
        if not classification.fallback_required:
            try:
                records = _records_from_body((body or {}).get("icebreakers"))
            except (TypeError, ValidationError) as e:
                logger.warning("Invalid icebreakers in generation response: %s", e)
                records = []
            if records:
                return GenerationOutcome(icebreakers=records, provenance=records[0].provenance)
            classification = classification.model_copy(update={"fallback_required": True})

        return GenerationOutcome(
            icebreakers=generate_fallback(state.profile, state.event.event_type),
            provenance=Provenance.FALLBACK,
            is_rate_limit=classification.is_rate_limit,
            notice=notice_for(classification),
        )

    # ── ratings ──

    def rate(self, icebreaker_id: str, rating: int) -> IcebreakerRecord:
        """Attach a rating to a shown record; text/category/difficulty are untouched."""
        _require(self.state, IcebreakersState, "rate an icebreaker")
        if not 1 <= rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {rating}")
        updated: Optional[IcebreakerRecord] = None
        icebreakers = []
        for record in self.state.icebreakers:
            if record.id == icebreaker_id:
                record = record.model_copy(update={"rating": rating})
                updated = record
            icebreakers.append(record)
        if updated is None:
            raise KeyError(icebreaker_id)
        self.state = self.state.model_copy(update={
            "icebreakers": icebreakers,
            "ratings": {**self.state.ratings, icebreaker_id: rating},
        })
        return updated


def _records_from_body(raw: Any) -> list[IcebreakerRecord]:
    """
    Records from a generation response body. Bare `{text, category,
    difficulty}` items (no id/provenance) are treated as an AI batch and
    given fresh ids.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TypeError(f"icebreakers must be a list, got {type(raw).__name__}")
    if all(isinstance(item, Mapping) and "id" in item and "provenance" in item for item in raw):
        return [IcebreakerRecord.model_validate(item) for item in raw]
    return to_records([ModelIcebreaker.model_validate(item) for item in raw])
