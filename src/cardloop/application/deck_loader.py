"""
Deck payload loading.

Validates JSON deck payloads of the form {"id": ..., "cards": [...]} and
writes their cards to the store.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from cardloop.domain.constants import AUDIO_DIR
from cardloop.domain.errors import InvalidArgument
from cardloop.domain.models import Card
from cardloop.domain.ports import ReviewStore

logger = logging.getLogger(__name__)

ABSOLUTE_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


class CardPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str
    front: str
    back: str
    audio: str
    audio_slow: str | None = None
    notes: str | None = None
    tags: list[str] = []
    sequence: int | None = None
    external_id: str | None = None

    @field_validator("id", "front", "back", "audio")
    @classmethod
    def non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v


class DeckPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str
    cards: list[dict[str, Any]]

    @field_validator("id")
    @classmethod
    def non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("deck id must not be empty")
        return v


def normalize_audio_path(path: str | None, deck_id: str) -> str:
    """
    Resolve a card audio reference.

    Absolute URLs are kept. A leading slash is dropped. A bare file name is
    placed under audio/<deck_id>/.
    """
    safe_path = path.strip() if isinstance(path, str) else ""
    if not safe_path:
        return ""
    if ABSOLUTE_URL_PATTERN.match(safe_path):
        return safe_path

    without_leading_slash = safe_path[1:] if safe_path.startswith("/") else safe_path
    if "/" in without_leading_slash:
        return without_leading_slash
    return f"{AUDIO_DIR}/{deck_id}/{without_leading_slash}"


def _card_label(raw: Any) -> str:
    if isinstance(raw, dict) and isinstance(raw.get("id"), str) and raw["id"].strip():
        return raw["id"]
    return "unknown"


def load_deck_payload(payload: dict[str, Any]) -> list[Card]:
    """
    Validate a deck payload and convert it into cards.

    Raises:
        InvalidArgument: The deck or one of its cards is malformed.
    """
    try:
        deck = DeckPayload.model_validate(payload)
    except ValidationError as e:
        raise InvalidArgument(f"Invalid deck payload: {e.errors()[0]['msg']}") from e

    cards: list[Card] = []
    for raw in deck.cards:
        try:
            item = CardPayload.model_validate(raw)
        except ValidationError as e:
            raise InvalidArgument(f"Invalid card payload: {_card_label(raw)}") from e

        cards.append(
            Card(
                id=item.id,
                deck_id=deck.id,
                front=item.front,
                back=item.back,
                audio=normalize_audio_path(item.audio, deck.id),
                audio_slow=normalize_audio_path(item.audio_slow, deck.id) or None,
                notes=item.notes,
                tags=tuple(item.tags),
                sequence=item.sequence,
                external_id=item.external_id,
            )
        )
    return cards


class DeckImporter:
    """Import deck payload files into a store."""

    def __init__(self, store: ReviewStore):
        self._store = store

    async def import_payload(self, payload: dict[str, Any] | list[dict[str, Any]]) -> int:
        decks = payload if isinstance(payload, list) else [payload]
        cards: list[Card] = []
        for deck in decks:
            cards.extend(load_deck_payload(deck))

        async with self._store.transaction():
            written = await self._store.put_cards(cards)

        logger.info(f"Imported {written} cards from {len(decks)} deck(s)")
        return written

    async def import_file(self, path: Path) -> int:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidArgument(
                f"{path.name} is not valid JSON: {e.msg} (line {e.lineno})"
            ) from e
        return await self.import_payload(payload)
