"""
Ports (interfaces) for persisted state.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager

from .models import Card, ReviewLogEntry, ReviewState


class ReviewStore(ABC):
    """
    Port for cards and review states.

    Implementations must raise StorageFailure when the backing store rejects
    an operation.

    Implementations:
        - SqliteStore: Local SQLite database.
    """

    @abstractmethod
    async def get_review(self, card_id: str) -> ReviewState | None:
        """Fetch the review state for a card, or None if it was never reviewed."""

    @abstractmethod
    async def put_review(self, review: ReviewState) -> None:
        """Upsert a review state keyed by its card id."""

    @abstractmethod
    async def get_reviews_for_cards(self, card_ids: list[str]) -> list[ReviewState]:
        """Fetch every existing review state among the given card ids."""

    @abstractmethod
    async def get_due_reviews_by_deck(self, deck_id: str, before_iso: str) -> list[ReviewState]:
        """
        Fetch non-suspended reviews of a deck with due <= before_iso.

        Returns:
            Reviews sorted ascending by due.
        """

    @abstractmethod
    async def list_reviews(self) -> list[ReviewState]:
        """Fetch every review state."""

    @abstractmethod
    async def get_card(self, card_id: str) -> Card | None:
        pass

    @abstractmethod
    async def get_deck_cards(self, deck_id: str) -> list[Card]:
        """Fetch all cards of a deck in store order."""

    @abstractmethod
    async def list_cards(self) -> list[Card]:
        pass

    @abstractmethod
    async def put_cards(self, cards: Iterable[Card]) -> int:
        """Upsert cards. Returns the number written."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Scope the enclosed operations into one atomic unit."""


class ReviewLogSink(ABC):
    """Append-only sink for review log entries."""

    @abstractmethod
    async def append(self, entry: ReviewLogEntry) -> int:
        """Append an entry and return its assigned id."""

    @abstractmethod
    async def list_logs(self) -> list[ReviewLogEntry]:
        """Fetch every log entry. Used by reporting only."""


class PreferenceStore(ABC):
    """Small key/value store for session-continuation preferences."""

    @abstractmethod
    async def get_preference(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set_preference(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove_preference(self, key: str) -> None:
        pass
