"""An in-memory collection of named skills with JSON persistence."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Optional, Union

MAX_SKILLS = 16

_ROOT_KEY = "skills"
_ID_KEY = "id"
_NAME_KEY = "name"
_DESCRIPTION_KEY = "description"
_INSTRUCTIONS_KEY = "instructions"


class SkillError(Exception):
    """Raised when a skill operation or payload is invalid."""


@dataclass(frozen=True)
class SkillItem:
    """One skill: an identifier, a display name and free-form guidance."""

    id: str
    name: str
    description: str = ""
    instructions: str = ""


def _validate(item: SkillItem) -> None:
    if not item.id:
        raise SkillError("Skill id is required")
    if not item.name:
        raise SkillError("Skill name is required")


def _text_field(obj: dict, key: str) -> str:
    value = obj.get(key)
    return value if isinstance(value, str) else ""


class SkillStore:
    """Holds up to ``MAX_SKILLS`` skills, unique by id regardless of case.

    Skills occupy fixed slots: a new skill takes the first free slot, so
    listing order follows slot order rather than insertion order.
    """

    def __init__(self) -> None:
        self._slots: list[Optional[SkillItem]] = [None] * MAX_SKILLS

    def _index_of(self, skill_id: str) -> Optional[int]:
        wanted = skill_id.lower()
        for index, item in enumerate(self._slots):
            if item is not None and item.id.lower() == wanted:
                return index
        return None

    def add(self, item: SkillItem) -> None:
        """Store ``item``; raise ``SkillError`` if invalid, a duplicate, or full."""
        _validate(item)
        if self._index_of(item.id) is not None:
            raise SkillError("Skill already exists")
        try:
            free = self._slots.index(None)
        except ValueError:
            raise SkillError("Skill storage is full") from None
        self._slots[free] = item

    def list(self) -> list[SkillItem]:
        """All stored skills in slot order."""
        return [item for item in self._slots if item is not None]

    def get(self, skill_id: str) -> Optional[SkillItem]:
        """The skill with this id (any case), or None."""
        index = self._index_of(skill_id)
        return None if index is None else self._slots[index]

    def remove(self, skill_id: str) -> None:
        """Remove the skill with this id; raise ``KeyError`` if absent."""
        index = self._index_of(skill_id)
        if index is None:
            raise KeyError(skill_id)
        self._slots[index] = None

    def update(self, skill_id: str, updated_item: SkillItem) -> None:
        """Replace the skill ``skill_id`` with ``updated_item`` in the same slot."""
        _validate(updated_item)
        index = self._index_of(skill_id)
        if index is None:
            raise SkillError("Skill not found")
        if skill_id.lower() != updated_item.id.lower() and self._index_of(updated_item.id) is not None:
            raise SkillError("Target skill id already exists")
        self._slots[index] = updated_item

    def to_json(self) -> str:
        """Serialize all skills as a compact JSON document."""
        payload = {
            _ROOT_KEY: [
                {
                    _ID_KEY: item.id,
                    _NAME_KEY: item.name,
                    _DESCRIPTION_KEY: item.description,
                    _INSTRUCTIONS_KEY: item.instructions,
                }
                for item in self.list()
            ]
        }
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)

    def load_json(self, payload: str) -> None:
        """Replace all skills with those in ``payload``; on error nothing changes."""
        try:
            doc = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise SkillError(f"Failed to parse skill payload: {exc}") from exc

        skills = doc.get(_ROOT_KEY) if isinstance(doc, dict) else None
        if not isinstance(skills, list):
            raise SkillError("Invalid skill payload: missing skills array")

        loaded: list[SkillItem] = []
        for value in skills:
            if len(loaded) >= MAX_SKILLS:
                raise SkillError("Skill payload exceeds in-memory capacity")
            if not isinstance(value, dict):
                raise SkillError("Invalid skill payload: one item is not an object")
            item = SkillItem(
                id=_text_field(value, _ID_KEY),
                name=_text_field(value, _NAME_KEY),
                description=_text_field(value, _DESCRIPTION_KEY),
                instructions=_text_field(value, _INSTRUCTIONS_KEY),
            )
            if not item.id or not item.name:
                raise SkillError("Invalid skill payload: id/name cannot be empty")
            loaded.append(item)

        self._slots = loaded + [None] * (MAX_SKILLS - len(loaded))

    def save_to_file(self, path: Union[str, os.PathLike]) -> None:
        """Write all skills as JSON to ``path``."""
        path_text = os.fspath(path)
        if not path_text:
            raise SkillError("FS path is required")
        payload = self.to_json()
        try:
            with open(path_text, "w", encoding="utf-8") as handle:
                handle.write(payload)
        except OSError as exc:
            raise SkillError(f"Unable to open file for write: {path_text}") from exc

    def load_from_file(self, path: Union[str, os.PathLike]) -> None:
        """Replace all skills with those stored as JSON in ``path``."""
        path_text = os.fspath(path)
        if not path_text:
            raise SkillError("FS path is required")
        try:
            with open(path_text, "r", encoding="utf-8") as handle:
                payload = handle.read()
        except OSError as exc:
            raise SkillError(f"Unable to open file for read: {path_text}") from exc
        if not payload:
            raise SkillError("Skill file is empty")
        self.load_json(payload)

    def __len__(self) -> int:
        return sum(1 for item in self._slots if item is not None)