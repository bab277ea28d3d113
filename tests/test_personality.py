from __future__ import annotations

import json
from pathlib import Path

import pytest

from agents.personality import PersonalityProfile, list_characters, load_character


def test_system_prompt_includes_optional_fields() -> None:
    profile = PersonalityProfile(
        name="Sage",
        description="a calm mentor",
        style="measured",
        motto="Slow is smooth",
        traits=["patient", "curious"],
        interests=["history"],
        emoji="🦉",
    )

    assert profile.generate_system_prompt() == (
        "You are Sage 🦉 , a calm mentor. Your communication style is measured."
        '\nYour motto is: "Slow is smooth"'
        "\nYour key traits are: patient, curious"
        "\nYour interests include: history"
        "\nAlways stay in character and respond as this personality would."
    )


def test_system_prompt_defaults() -> None:
    assert PersonalityProfile(name="Bot").generate_system_prompt() == (
        "You are Bot, an AI assistant. Your communication style is helpful and professional.\n"
        "Always stay in character and respond as this personality would."
    )


def test_unknown_fields_round_trip() -> None:
    data = {"name": "Sage", "style": "measured", "voice": "low"}
    profile = PersonalityProfile.from_dict(data)

    assert profile.extra == {"voice": "low"}
    assert profile.to_dict() == data


@pytest.mark.parametrize("raw", ['{"style": "x"}', '{"name": ""}', "[1, 2]"])
def test_invalid_character_rejected(raw: str) -> None:
    with pytest.raises(ValueError):
        PersonalityProfile.from_json(raw)


def test_list_and_load_characters(tmp_path: Path) -> None:
    (tmp_path / "sage.json").write_text(json.dumps({"name": "Sage"}))
    (tmp_path / "bot.json").write_text(json.dumps({"name": "Bot"}))
    (tmp_path / "notes.txt").write_text("ignored")

    assert list_characters(tmp_path) == ["bot", "sage"]
    assert load_character("sage", tmp_path).name == "Sage"
    with pytest.raises(FileNotFoundError, match="available: bot, sage"):
        load_character("pirate", tmp_path)


def test_bundled_characters_load() -> None:
    from infrastructure.config import CHARACTERS_DIR

    for name in list_characters(CHARACTERS_DIR):
        assert load_character(name).generate_system_prompt()
