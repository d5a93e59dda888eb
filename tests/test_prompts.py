from icebreaker.models import UserProfile
from icebreaker.prompts import (
    ICEBREAKER_USER_PROMPT,
    NOT_PROVIDED,
    build_messages,
    build_system_prompt,
)


def test_missing_fields_render_placeholder():
    prompt = build_system_prompt(UserProfile(name="x"), "party", None)
    for label in ("Bio", "Temperament", "Age", "Profession", "Interests", "Name"):
        assert f"- {label}: {NOT_PROVIDED}" in prompt
    assert "- Type: party" in prompt


def test_profile_fields_are_embedded():
    profile = UserProfile(
        name="Sam",
        age="35-44",
        temperament="somewhat-shy",
        bio="Amateur baker",
        profession="Nurse",
        interests=["climbing", " jazz "],
    )
    prompt = build_system_prompt(profile, "networking", "Professional Networking")
    assert "- Bio: Amateur baker" in prompt
    assert "- Temperament: somewhat-shy" in prompt
    assert "- Age: 35-44" in prompt
    assert "- Profession: Nurse" in prompt
    assert "- Interests: climbing, jazz" in prompt
    assert "- Name: Professional Networking" in prompt


def test_output_contract_is_stated():
    prompt = build_system_prompt(UserProfile(), "date", "First Date")
    assert "Return ONLY a JSON array" in prompt
    assert '"category": "fun|professional|creative|personal"' in prompt
    assert '"difficulty": "easy|medium|hard"' in prompt
    assert "Generate 6 personalized" in prompt


def test_braces_in_bio_are_kept_verbatim():
    prompt = build_system_prompt(UserProfile(bio="I {love} JSON"), "date", None)
    assert "- Bio: I {love} JSON" in prompt


def test_messages_are_system_then_user():
    messages = build_messages(UserProfile(), "date", "First Date")
    assert [m["role"] for m in messages] == ["system", "user"]
    assert messages[1]["content"] == ICEBREAKER_USER_PROMPT
