"""
Fallback Generator

Deterministic, offline icebreakers used whenever the completion path fails.
For a (profile, event type) pair it:
  1. Picks the template list for the event type (unknown → casual-meetup)
  2. Keeps only easy prompts for very shy users
  3. Appends one personalized prompt per bio keyword match
  4. Returns the first six

Same inputs always give the same batch; nothing here performs I/O.
"""

from __future__ import annotations

import logging
from typing import Optional

from .models import Difficulty, IcebreakerRecord, Provenance, Temperament, UserProfile

logger = logging.getLogger(__name__)

MAX_FALLBACK_ICEBREAKERS = 6
DEFAULT_EVENT_TYPE = "casual-meetup"


def _template(record_id: str, text: str, category: str, difficulty: Difficulty) -> IcebreakerRecord:
    return IcebreakerRecord(
        id=record_id,
        text=text,
        category=category,
        difficulty=difficulty,
        provenance=Provenance.FALLBACK,
    )


# ──────────────────────────── Templates ────────────────────────────

FALLBACK_TEMPLATES: dict[str, tuple[IcebreakerRecord, ...]] = {
    "date": (
        _template("date-1", "I have to ask - what's the story behind your smile? It's quite infectious!",
                  "Compliment", Difficulty.EASY),
        _template("date-2", "So, what's been the highlight of your week so far?",
                  "Open Question", Difficulty.EASY),
        _template("date-3", "I'm curious - if you could have dinner with anyone, dead or alive, who would it be and why?",
                  "Thought-Provoking", Difficulty.MEDIUM),
        _template("date-4", "This might sound random, but what's something you've learned recently that surprised you?",
                  "Personal", Difficulty.MEDIUM),
    ),
    "party": (
        _template("party-1", "Hi! I love your energy - how do you know [host's name]?",
                  "Connection", Difficulty.EASY),
        _template("party-2", "This music is great! Are you into this genre, or do you have different favorites?",
                  "Interest", Difficulty.EASY),
        _template("party-3", "I'm trying to guess - are you more of a morning person or a night owl? "
                             "You seem like you have great energy!",
                  "Playful", Difficulty.MEDIUM),
    ),
    "networking": (
        _template("network-1", "Hi, I'm [name]. What brings you to this event?",
                  "Professional", Difficulty.EASY),
        _template("network-2", "I'm impressed by the turnout tonight. What's your connection to [industry/organization]?",
                  "Professional", Difficulty.EASY),
        _template("network-3", "I'd love to hear your perspective - what trends are you seeing in your field right now?",
                  "Industry", Difficulty.MEDIUM),
    ),
    "casual-meetup": (
        _template("casual-1", "I love the vibe here! Do you come to this place often?",
                  "Environment", Difficulty.EASY),
        _template("casual-2", "That book/drink/item looks interesting! How are you finding it?",
                  "Observation", Difficulty.EASY),
        _template("casual-3", "I'm trying to decide what to order - any recommendations?",
                  "Advice", Difficulty.EASY),
    ),
    "group-activity": (
        _template("group-1", "Is this your first time joining, or are you a regular?",
                  "Open Question", Difficulty.EASY),
        _template("group-2", "You look like you know what you're doing - any tips for a beginner?",
                  "Advice", Difficulty.EASY),
        _template("group-3", "What got you into this in the first place?",
                  "Interest", Difficulty.MEDIUM),
    ),
    "class-workshop": (
        _template("class-1", "What made you sign up for this class?",
                  "Open Question", Difficulty.EASY),
        _template("class-2", "Did you catch that last point? I'd love to compare notes.",
                  "Connection", Difficulty.EASY),
        _template("class-3", "How do you think you'll use what we're learning here?",
                  "Thought-Provoking", Difficulty.MEDIUM),
    ),
    "family-gathering": (
        _template("family-1", "It's been too long! What have you been up to lately?",
                  "Open Question", Difficulty.EASY),
        _template("family-2", "Everything looks delicious - did you make any of this?",
                  "Compliment", Difficulty.EASY),
        _template("family-3", "What's your favorite memory from one of these get-togethers?",
                  "Personal", Difficulty.MEDIUM),
    ),
}

# Ordered: earlier keywords win the remaining slots after truncation.
KEYWORD_TRIGGERS: tuple[tuple[str, IcebreakerRecord], ...] = (
    ("coffee", _template("personal-coffee",
                         "I noticed you're a coffee person too - what's your go-to order?",
                         "Personal Interest", Difficulty.EASY)),
    ("book", _template("personal-books",
                       "You seem like someone who might have great book recommendations. "
                       "What's the last good book you read?",
                       "Personal Interest", Difficulty.MEDIUM)),
)


# ──────────────────────────── Selection ────────────────────────────

def templates_for(event_type: Optional[str]) -> tuple[IcebreakerRecord, ...]:
    """Template list for an event type; unknown types use casual-meetup."""
    templates = FALLBACK_TEMPLATES.get(event_type or "")
    if templates is None:
        logger.debug("No fallback templates for event type %r, using %s", event_type, DEFAULT_EVENT_TYPE)
        return FALLBACK_TEMPLATES[DEFAULT_EVENT_TYPE]
    return templates


def allowed_difficulties(records: list[IcebreakerRecord], temperament: Optional[Temperament]) -> set[Difficulty]:
    """
    Difficulties a user of this temperament may see from `records`.

    Very shy users get easy prompts only. If a list has no easy prompt,
    the gate relaxes to the easiest difficulty the list does have, so the
    filter never empties a non-empty list.
    """
    if temperament != Temperament.VERY_SHY:
        return set(Difficulty)
    if any(r.difficulty == Difficulty.EASY for r in records) or not records:
        return {Difficulty.EASY}
    easiest = min(records, key=lambda r: r.difficulty.rank).difficulty
    logger.info("No easy fallback prompts available, relaxing shy filter to %s", easiest.value)
    return {easiest}


def keyword_matches(bio: Optional[str]) -> list[IcebreakerRecord]:
    text = (bio or "").lower()
    return [record for keyword, record in KEYWORD_TRIGGERS if keyword in text]


def generate_fallback(profile: UserProfile, event_type: Optional[str]) -> list[IcebreakerRecord]:
    """
    Build the curated icebreaker batch for a profile and event type.

    Returns between one and six records, all tagged `Provenance.FALLBACK`.
    """
    candidates = list(templates_for(event_type)) + keyword_matches(profile.bio)
    allowed = allowed_difficulties(candidates, profile.temperament)

    icebreakers = [r for r in candidates if r.difficulty in allowed]

    return [r.model_copy() for r in icebreakers[:MAX_FALLBACK_ICEBREAKERS]]
