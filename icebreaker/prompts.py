"""
Prompts for the icebreaker completion model.

The system prompt embeds the user's profile and the event context and pins
the model to a strict JSON output contract that `completion.parse_icebreakers`
validates. Every profile line is always present; missing values render as
`Not provided` so the model never has to guess whether a field exists.
"""

from __future__ import annotations

from typing import Optional

from .models import UserProfile

NOT_PROVIDED = "Not provided"

CATEGORY_LABELS = ("fun", "professional", "creative", "personal")
DIFFICULTY_LABELS = ("easy", "medium", "hard")
BATCH_SIZE = 6

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ICEBREAKER GENERATOR PROMPT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

ICEBREAKER_SYSTEM_PROMPT = """\
You are an expert at creating engaging icebreaker questions. Generate {count} personalized \
icebreaker questions based on the user's profile and event context.

User Profile:
- Bio: {bio}
- Temperament: {temperament}
- Age: {age}
- Profession: {profession}
- Interests: {interests}

Event Context:
- Type: {event_type}
- Name: {event_name}

Requirements:
1. Create {count} unique icebreaker questions
2. Make them appropriate for the event type and user's personality
3. Mix different difficulty levels ({difficulties})
4. Include various categories ({categories})
5. Make them engaging and conversation-starting
6. Consider the user's temperament when crafting questions

Return ONLY a JSON array of objects with this exact format:
[
  {{
    "text": "Your icebreaker question here?",
    "category": "{category_choices}",
    "difficulty": "{difficulty_choices}"
  }}
]"""

ICEBREAKER_USER_PROMPT = "Generate personalized icebreaker questions for this profile and event."


def _or_placeholder(value: Optional[object]) -> str:
    if value is None:
        return NOT_PROVIDED
    text = getattr(value, "value", value)
    text = str(text).strip()
    return text or NOT_PROVIDED


def build_system_prompt(profile: UserProfile, event_type: str, event_name: Optional[str]) -> str:
    """Render the instruction for one profile + event pair."""
    interests = ", ".join(i.strip() for i in profile.interests if i and i.strip())
    return ICEBREAKER_SYSTEM_PROMPT.format(
        count=BATCH_SIZE,
        bio=_or_placeholder(profile.bio),
        temperament=_or_placeholder(profile.temperament),
        age=_or_placeholder(profile.age),
        profession=_or_placeholder(profile.profession),
        interests=interests or NOT_PROVIDED,
        event_type=_or_placeholder(event_type),
        event_name=_or_placeholder(event_name),
        difficulties=", ".join(DIFFICULTY_LABELS),
        categories=", ".join(CATEGORY_LABELS),
        category_choices="|".join(CATEGORY_LABELS),
        difficulty_choices="|".join(DIFFICULTY_LABELS),
    )


def build_messages(profile: UserProfile, event_type: str, event_name: Optional[str]) -> list[dict[str, str]]:
    """System + user message pair for the chat-completion call."""
    return [
        {"role": "system", "content": build_system_prompt(profile, event_type, event_name)},
        {"role": "user", "content": ICEBREAKER_USER_PROMPT},
    ]
