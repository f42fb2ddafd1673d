import json

import pytest

from cardloop.application.deck_loader import DeckImporter, load_deck_payload, normalize_audio_path
from cardloop.domain.errors import InvalidArgument


def deck(cards, deck_id="spanish"):
    return {"id": deck_id, "cards": cards}


def card(card_id="c1", **extra):
    return {"id": card_id, "front": "hola", "back": "hello", "audio": "c1.mp3", **extra}


@pytest.mark.parametrize(
    "path,expected",
    [
        ("https://cdn.example.com/a.mp3", "https://cdn.example.com/a.mp3"),
        ("/audio/spanish/a.mp3", "audio/spanish/a.mp3"),
        ("a.mp3", "audio/spanish/a.mp3"),
        ("other/a.mp3", "other/a.mp3"),
        ("  ", ""),
        (None, ""),
    ],
)
def test_normalize_audio_path(path, expected):
    assert normalize_audio_path(path, "spanish") == expected


def test_load_deck_payload_builds_cards():
    cards = load_deck_payload(
        deck([card(tags=["greeting"], sequence=4, audio_slow="c1-slow.mp3", extra="ignored")])
    )

    assert len(cards) == 1
    loaded = cards[0]
    assert loaded.deck_id == "spanish"
    assert loaded.audio == "audio/spanish/c1.mp3"
    assert loaded.audio_slow == "audio/spanish/c1-slow.mp3"
    assert loaded.tags == ("greeting",)
    assert loaded.sequence == 4


def test_load_deck_payload_strips_whitespace():
    loaded = load_deck_payload(deck([card(front="  hola  ")]))[0]
    assert loaded.front == "hola"


@pytest.mark.parametrize("missing", ["id", "front", "back", "audio"])
def test_card_missing_required_field(missing):
    raw = card()
    raw[missing] = ""
    with pytest.raises(InvalidArgument, match="Invalid card payload"):
        load_deck_payload(deck([raw]))


def test_card_error_names_card():
    raw = card("broken")
    del raw["back"]
    with pytest.raises(InvalidArgument, match="broken"):
        load_deck_payload(deck([raw]))


def test_invalid_deck_payload():
    with pytest.raises(InvalidArgument, match="Invalid deck payload"):
        load_deck_payload({"cards": []})


@pytest.mark.asyncio
async def test_import_payload_list_of_decks(store):
    importer = DeckImporter(store)

    written = await importer.import_payload(
        [deck([card("a"), card("b")]), deck([card("x")], deck_id="french")]
    )

    assert written == 3
    assert [c.id for c in await store.get_deck_cards("spanish")] == ["a", "b"]
    assert (await store.get_card("x")).deck_id == "french"


@pytest.mark.asyncio
async def test_import_is_all_or_nothing(store):
    with pytest.raises(InvalidArgument):
        await DeckImporter(store).import_payload(deck([card("a"), {"id": "bad"}]))
    assert await store.list_cards() == []


@pytest.mark.asyncio
async def test_import_file(store, tmp_path):
    path = tmp_path / "deck.json"
    path.write_text(json.dumps(deck([card("a")])), encoding="utf-8")

    assert await DeckImporter(store).import_file(path) == 1


@pytest.mark.asyncio
async def test_import_file_invalid_json(store, tmp_path):
    path = tmp_path / "deck.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidArgument, match="not valid JSON"):
        await DeckImporter(store).import_file(path)
