"""
Composition root.
Centralizes construction of the store, the session queue and the services around them.
"""

from dataclasses import dataclass

from cardloop.application.config import AppConfig
from cardloop.application.deck_loader import DeckImporter
from cardloop.application.deck_service import DeckService
from cardloop.application.review_service import ReviewService
from cardloop.application.session import SessionQueue
from cardloop.application.stats.service import DeckStatsService
from cardloop.infrastructure.adapters.sqlite_store import SqliteStore


@dataclass
class AppContext:
    """Everything a UI layer needs, wired to one store."""

    config: AppConfig
    store: SqliteStore
    session: SessionQueue
    reviews: ReviewService
    decks: DeckService
    stats: DeckStatsService
    importer: DeckImporter

    def close(self) -> None:
        self.store.close()


def get_store(config: AppConfig) -> SqliteStore:
    return SqliteStore(config.db_path)


def build_context(config: AppConfig, store: SqliteStore | None = None) -> AppContext:
    """
    Wire a fresh session and its services.

    Args:
        config: Resolved configuration.
        store: Existing store to reuse; opened from config.db_path if not provided.
    """
    store = store or get_store(config)
    session = SessionQueue(
        store,
        preferences=store,
        new_card_limit=config.new_card_limit,
        mode=config.mode,
    )
    return AppContext(
        config=config,
        store=store,
        session=session,
        reviews=ReviewService(store, store, session),
        decks=DeckService(store),
        stats=DeckStatsService(store, store),
        importer=DeckImporter(store),
    )
