"""
Personality profiles - typed character configuration.

A character file is a JSON object with a required ``name`` and optional
``description``, ``style``, ``motto``, ``traits``, ``interests`` and
``emoji``.  Any other fields are kept in ``extra`` so new attributes
survive a load/dump round trip.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

PathLike = Union[str, Path]

_KNOWN_FIELDS = {"name", "description", "style", "motto", "traits", "interests", "emoji"}


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


@dataclass
class PersonalityProfile:
    """
    A character the agent can speak as.

    Attributes:
        name: Display name (required).
        description: Who the character is.
        style: Communication style.
        motto: Optional catch-phrase.
        traits: Key personality traits.
        interests: Topics the character cares about.
        emoji: Signature emoji shown next to the name.
        extra: Any additional fields from the character file.
    """

    name: str
    description: Optional[str] = None
    style: Optional[str] = None
    motto: Optional[str] = None
    traits: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    emoji: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersonalityProfile":
        """Create from dictionary; unknown fields go to ``extra``."""
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("personality requires a non-empty 'name'")
        return cls(
            name=name,
            description=_str_or_none(data.get("description")),
            style=_str_or_none(data.get("style")),
            motto=_str_or_none(data.get("motto")),
            traits=_str_list(data.get("traits")),
            interests=_str_list(data.get("interests")),
            emoji=_str_or_none(data.get("emoji")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )

    @classmethod
    def from_json(cls, raw: str) -> "PersonalityProfile":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("personality file must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: PathLike) -> "PersonalityProfile":
        """Load a character file."""
        with open(path, "r", encoding="utf-8") as f:
            profile = cls.from_json(f.read())
        logger.debug("Loaded personality '{}' from {}", profile.name, path)
        return profile

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = dict(self.extra)
        data["name"] = self.name
        for key in ("description", "style", "motto", "emoji"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.traits:
            data["traits"] = list(self.traits)
        if self.interests:
            data["interests"] = list(self.interests)
        return data

    def generate_system_prompt(self) -> str:
        """Render the system prompt that keeps the model in character."""
        description = self.description or "an AI assistant"
        style = self.style or "helpful and professional"
        emoji = f" {self.emoji} " if self.emoji else ""
        motto = f'\nYour motto is: "{self.motto}"' if self.motto else ""
        traits = f"\nYour key traits are: {', '.join(self.traits)}" if self.traits else ""
        interests = f"\nYour interests include: {', '.join(self.interests)}" if self.interests else ""

        return (
            f"You are {self.name}{emoji}, {description}. "
            f"Your communication style is {style}.{motto}{traits}{interests}\n"
            "Always stay in character and respond as this personality would."
        )

    def __str__(self) -> str:
        return self.name


def list_characters(characters_dir: PathLike) -> List[str]:
    """Names of the character files (without ``.json``) in a directory."""
    directory = Path(characters_dir)
    if not directory.is_dir():
        return []
    return sorted(p.stem for p in directory.glob("*.json"))


def load_character(name: str, characters_dir: Optional[PathLike] = None) -> PersonalityProfile:
    """Load ``{characters_dir}/{name}.json``."""
    if characters_dir is None:
        from infrastructure.config import CHARACTERS_DIR
        characters_dir = CHARACTERS_DIR
    path = Path(characters_dir) / f"{name}.json"
    if not path.exists():
        available = ", ".join(list_characters(characters_dir)) or "none"
        raise FileNotFoundError(f"Character '{name}' not found (available: {available})")
    return PersonalityProfile.load(path)
