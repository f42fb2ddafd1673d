"""
Report calculator for deck summaries, review streaks and due forecasts.

This is a pure computation module with no I/O. Day boundaries are UTC.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from cardloop.application.scheduler import is_due, parse_iso, to_iso
from cardloop.domain.constants import DEFAULT_FORECAST_DAYS, STREAK_WINDOW_DAYS
from cardloop.domain.models import Card, ReviewLogEntry, ReviewState


@dataclass
class DeckSummary:
    deck_id: str
    total: int
    due_today: int
    hard_count: int
    new_count: int
    suspended: int


@dataclass
class DailyCount:
    date: str
    count: int


@dataclass
class StreakStats:
    """
    Review activity derived from the review log.

    Attributes:
        today_reviewed: Log entries dated today.
        streak: Consecutive days with at least one review, ending today.
        last_reviewed: Most recent log timestamp, if any.
        daily_counts: Per-day counts for the trailing window, oldest first.
    """

    today_reviewed: int
    streak: int
    last_reviewed: str | None
    daily_counts: list[DailyCount] = field(default_factory=list)


def end_of_day_iso(moment: datetime) -> str:
    end = datetime.combine(moment.astimezone(timezone.utc).date(), time.max, tzinfo=timezone.utc)
    return to_iso(end)


class ReportCalculator:
    """
    Computes aggregate reports from cards, review states and log entries.

    Stateless and side-effect free.
    """

    def summarize_deck(
        self,
        deck_id: str,
        cards: list[Card],
        reviews: list[ReviewState],
        now: datetime,
    ) -> DeckSummary:
        end_of_today = end_of_day_iso(now)
        suspended_ids = {review.card_id for review in reviews if review.suspended}
        reviewed_ids = {review.card_id for review in reviews}
        active = [review for review in reviews if not review.suspended]

        return DeckSummary(
            deck_id=deck_id,
            total=len(cards),
            due_today=sum(1 for review in reviews if is_due(review, end_of_today)),
            hard_count=sum(1 for review in active if review.hard_flag),
            new_count=sum(
                1 for card in cards if card.id not in reviewed_ids and card.id not in suspended_ids
            ),
            suspended=len(suspended_ids),
        )

    def streak_stats(
        self,
        logs: list[ReviewLogEntry],
        now: datetime,
        window: int = STREAK_WINDOW_DAYS,
    ) -> StreakStats:
        today = now.astimezone(timezone.utc).date()
        counts: dict[date, int] = {}
        last_reviewed: str | None = None

        for entry in logs:
            if not entry.when:
                continue
            if last_reviewed is None or entry.when > last_reviewed:
                last_reviewed = entry.when
            day = parse_iso(entry.when).date()
            counts[day] = counts.get(day, 0) + 1

        daily_counts = [
            DailyCount(date=day.isoformat(), count=counts.get(day, 0))
            for day in (today - timedelta(days=window - 1 - i) for i in range(window))
        ]

        # Consecutive days ending today; no review today means no streak.
        streak = 0
        for entry in reversed(daily_counts):
            if entry.count == 0:
                break
            streak += 1

        return StreakStats(
            today_reviewed=counts.get(today, 0),
            streak=streak,
            last_reviewed=last_reviewed,
            daily_counts=daily_counts,
        )

    def due_forecast(
        self,
        reviews: list[ReviewState],
        now: datetime,
        days: int = DEFAULT_FORECAST_DAYS,
    ) -> list[DailyCount]:
        today = now.astimezone(timezone.utc).date()
        counts: dict[date, int] = {}
        for review in reviews:
            if review.suspended:
                continue
            day = parse_iso(review.due).date()
            counts[day] = counts.get(day, 0) + 1

        return [
            DailyCount(date=day.isoformat(), count=counts.get(day, 0))
            for day in (today + timedelta(days=i) for i in range(max(0, days)))
        ]
