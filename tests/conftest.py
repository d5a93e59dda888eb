import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from icebreaker.completion import CompletionClient
from icebreaker.models import UserProfile
from icebreaker.service import IcebreakerService

CHAT_URL = "https://api.openai.com/v1/chat/completions"


def chat_response(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def status_error(status, message="boom"):
    body = {"error": {"message": message}}
    response = httpx.Response(status, request=httpx.Request("POST", CHAT_URL), json=body)
    cls = {
        429: openai.RateLimitError,
        500: openai.InternalServerError,
        401: openai.AuthenticationError,
    }.get(status, openai.APIStatusError)
    return cls(message, response=response, body=body)


def timeout_error():
    return openai.APITimeoutError(request=httpx.Request("POST", CHAT_URL))


class FakeCompletions:
    """Replays queued contents (str) or raises queued exceptions."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return chat_response(reply)


class FakeLLM:
    def __init__(self, *replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


class FakeStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.batches = []
        self.ratings = {}
        self.profiles = {}
        self.tokens = {"good-token": "user-1"}

    async def get_user_id(self, access_token):
        return self.tokens.get(access_token)

    async def get_profile(self, user_id):
        return self.profiles.get(user_id)

    async def upsert_profile(self, user_id, profile):
        self.profiles[user_id] = profile
        return profile

    async def save_icebreakers(self, user_id, event_type, event_name, icebreakers):
        if self.fail:
            raise RuntimeError("database down")
        self.batches.append((user_id, event_type, event_name, icebreakers))
        return len(icebreakers)

    async def save_rating(self, user_id, icebreaker_id, rating):
        if self.fail:
            raise RuntimeError("database down")
        self.ratings[(user_id, icebreaker_id)] = rating
        return {"user_id": user_id, "icebreaker_id": icebreaker_id, "rating": rating}


AI_BATCH = [
    {"text": "What's the best concert you've been to?", "category": "fun", "difficulty": "easy"},
    {"text": "What project are you proudest of?", "category": "professional", "difficulty": "medium"},
    {"text": "If you could design a city, what would it have?", "category": "creative", "difficulty": "hard"},
    {"text": "What's your favorite way to unwind?", "category": "personal", "difficulty": "easy"},
    {"text": "Which book changed how you think?", "category": "personal", "difficulty": "medium"},
    {"text": "What's a hobby you'd pick up tomorrow?", "category": "fun", "difficulty": "easy"},
]


@pytest.fixture
def ai_batch_json():
    return json.dumps(AI_BATCH)


@pytest.fixture
def profile():
    return UserProfile(
        name="Sam",
        age="25-34",
        gender="prefer-not-to-say",
        city="Lisbon",
        temperament="balanced",
        preferred_environment="small-groups",
        bio="Designer who loves coffee and long walks",
    )


@pytest.fixture
def shy_profile():
    return UserProfile(name="Ari", temperament="very-shy", bio="")


@pytest.fixture
def make_service():
    def _make(*replies, store=None, max_retries=1):
        llm = FakeLLM(*replies) if replies else None
        completion = CompletionClient(llm_client=llm, max_retries=max_retries)
        return IcebreakerService(completion=completion, store=store)
    return _make
