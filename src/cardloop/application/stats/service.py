"""
Deck Stats Service: Application layer orchestrator.

Coordinates fetching cards, reviews and logs from the store and summarizing
them with the report calculator.
"""

import logging
from datetime import datetime, timezone

from cardloop.domain.constants import DEFAULT_FORECAST_DAYS
from cardloop.domain.models import Card
from cardloop.domain.ports import ReviewLogSink, ReviewStore

from .calculator import DailyCount, DeckSummary, ReportCalculator, StreakStats

logger = logging.getLogger(__name__)


class DeckStatsService:
    """
    Application service for deck and review reporting.

    Follows Dependency Inversion: depends on the store ports,
    not concrete adapter implementations.
    """

    def __init__(
        self,
        store: ReviewStore,
        log_sink: ReviewLogSink | None = None,
        calculator: ReportCalculator | None = None,
    ):
        """
        Args:
            store: The repository (port) for cards and reviews.
            log_sink: Review log, needed for streak stats only.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._store = store
        self._logs = log_sink
        self._calc = calculator or ReportCalculator()

    async def list_decks(self, now: datetime | None = None) -> list[DeckSummary]:
        """Summarize every deck that has at least one card, sorted by deck id."""
        current = now or datetime.now(timezone.utc)
        cards = await self._store.list_cards()

        decks: dict[str, list[Card]] = {}
        for card in cards:
            decks.setdefault(card.deck_id, []).append(card)

        summaries = []
        for deck_id, deck_cards in decks.items():
            reviews = await self._store.get_reviews_for_cards([card.id for card in deck_cards])
            summaries.append(self._calc.summarize_deck(deck_id, deck_cards, reviews, current))

        return sorted(summaries, key=lambda summary: summary.deck_id)

    async def review_stats(self, now: datetime | None = None) -> StreakStats:
        current = now or datetime.now(timezone.utc)
        logs = await self._logs.list_logs() if self._logs is not None else []
        return self._calc.streak_stats(logs, current)

    async def due_forecast(
        self,
        days: int = DEFAULT_FORECAST_DAYS,
        now: datetime | None = None,
    ) -> list[DailyCount]:
        current = now or datetime.now(timezone.utc)
        reviews = await self._store.list_reviews()
        return self._calc.due_forecast(reviews, current, days)
