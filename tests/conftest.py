import pytest

from cardloop.domain.models import Card
from cardloop.infrastructure.adapters.sqlite_store import SqliteStore


@pytest.fixture
def store():
    """An empty in-memory store."""
    s = SqliteStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults."""

    def _make(card_id: str, deck_id: str = "deck-1", sequence: int | None = None) -> Card:
        return Card(
            id=card_id,
            deck_id=deck_id,
            front=f"front {card_id}",
            back=f"back {card_id}",
            audio=f"audio/{deck_id}/{card_id}.mp3",
            sequence=sequence,
        )

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    for key in (
        "CARDLOOP_DB_PATH",
        "CARDLOOP_LOG_DIR",
        "CARDLOOP_NEW_CARD_LIMIT",
        "CARDLOOP_MODE",
        "CARDLOOP_VERBOSE",
    ):
        monkeypatch.delenv(key, raising=False)
    return home
