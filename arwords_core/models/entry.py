# =============================================================================
# arwords_core/models/entry.py
# Dictionary Entry Records
# =============================================================================
"""
Typed records for dictionary content.

Rows from the remote store and the local SQLite file are converted into
these records at the boundary; nothing past the gateway or the local store
handles untyped dicts.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from arwords_core.errors import DataValidationError


class PartOfSpeech(str, Enum):
    """Grammatical category of an entry."""
    NOUN = "Noun"
    VERB = "Verb"
    ADJECTIVE = "Adjective"
    ADVERB = "Adverb"
    PRONOUN = "Pronoun"
    PREPOSITION = "Preposition"
    CONJUNCTION = "Conjunction"
    INTERJECTION = "Interjection"

    @classmethod
    def parse(cls, value: Any) -> PartOfSpeech:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise DataValidationError(
            "Unknown part of speech",
            field="part_of_speech",
            value=value,
        )


class FrequencyTag(str, Enum):
    """How common an entry is in general usage."""
    VERY_FREQUENT = "VERY_FREQUENT"
    FREQUENT = "FREQUENT"
    COMMON = "COMMON"
    UNCOMMON = "UNCOMMON"
    RARE = "RARE"
    NOT_DEFINED = "NOT_DEFINED"

    @classmethod
    def parse(cls, value: Any) -> FrequencyTag:
        if value is None or value == "":
            return cls.NOT_DEFINED
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper().replace(" ", "_")
            if normalized in cls.__members__:
                return cls[normalized]
        raise DataValidationError(
            "Unknown frequency tag",
            field="general_frequency_tag",
            value=value,
        )


def _require(row: Mapping[str, Any], key: str) -> Any:
    value = row.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise DataValidationError(f"Missing required field '{key}'", field=key)
    return value


def _as_detail(value: Any) -> str:
    # Remote conjugation details arrive as JSON objects; locally they are text
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


@dataclass(frozen=True)
class Variant:
    """An inflected or spelled form of an entry."""
    id: str
    entry_id: str
    transliteration: str
    detail: str
    script_variant: Optional[str] = None
    audio_ref: Optional[str] = None
    dialect_ids: Tuple[str, ...] = ()

    @classmethod
    def from_remote(cls, row: Mapping[str, Any], entry_id: Optional[str] = None) -> Variant:
        """Build from a `word_forms` row, optionally with nested dialect links."""
        detail = row.get("conjugation_details")
        if detail is None:
            raise DataValidationError(
                "Missing required field 'conjugation_details'",
                field="conjugation_details",
            )
        dialects = tuple(
            str(link["dialect_id"])
            for link in row.get("word_form_dialects") or ()
            if link.get("dialect_id") is not None
        )
        return cls(
            id=str(_require(row, "id")),
            entry_id=str(entry_id or _require(row, "word_id")),
            transliteration=str(_require(row, "transliteration")),
            detail=_as_detail(detail),
            script_variant=row.get("arabic_script_variant"),
            audio_ref=row.get("audio_url"),
            dialect_ids=dialects,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Variant:
        """Build from a local `variants` row."""
        return cls(
            id=str(row["id"]),
            entry_id=str(row["entry_id"]),
            transliteration=row["transliteration"],
            detail=row["detail"],
            script_variant=row["script_variant"],
            audio_ref=row["audio_ref"],
        )

    def to_row(self) -> Tuple[Any, ...]:
        return (
            self.id,
            self.entry_id,
            self.script_variant,
            self.transliteration,
            self.detail,
            self.audio_ref,
        )


@dataclass(frozen=True)
class Entry:
    """A dictionary headword with its ordered variants."""
    id: str
    term: str
    script: str
    category: PartOfSpeech
    definition: Optional[str] = None
    frequency: Optional[FrequencyTag] = None
    variants: Tuple[Variant, ...] = ()
    is_favorite: bool = False

    @classmethod
    def from_remote(cls, row: Mapping[str, Any]) -> Entry:
        """Build from a `words` row with nested `word_forms`."""
        entry_id = str(_require(row, "id"))
        variants = tuple(
            Variant.from_remote(form, entry_id=entry_id)
            for form in row.get("word_forms") or ()
        )
        return cls(
            id=entry_id,
            term=str(_require(row, "english_term")),
            script=str(_require(row, "primary_arabic_script")),
            category=PartOfSpeech.parse(row.get("part_of_speech")),
            definition=row.get("english_definition"),
            frequency=FrequencyTag.parse(row.get("general_frequency_tag")),
            variants=variants,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any], variants: Iterable[Variant] = ()) -> Entry:
        """Build from a local `entries` row."""
        return cls(
            id=str(row["id"]),
            term=row["term"],
            script=row["script"],
            category=PartOfSpeech.parse(row["category"]),
            definition=row["definition"],
            frequency=FrequencyTag.parse(row["frequency"]),
            variants=tuple(variants),
            is_favorite=bool(row["is_favorite"]),
        )

    def with_favorite(self, flag: bool) -> Entry:
        return replace(self, is_favorite=flag)

    def to_row(self) -> Tuple[Any, ...]:
        return (
            self.id,
            self.term,
            self.script,
            self.category.value,
            self.definition,
            self.frequency.value if self.frequency else None,
            1 if self.is_favorite else 0,
        )


@dataclass(frozen=True)
class FavoriteLink:
    """A (user, entry) favorites relation."""
    user_id: str
    entry_id: str
    created_at: Optional[datetime] = None

    def to_remote(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "word_id": self.entry_id}
