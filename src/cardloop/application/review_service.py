"""
Review Service: Application layer orchestrator for grading.

Coordinates the scheduler, the review store, the review log and the session
queue for every grading or disabling action on the current card.
"""

import logging
import time
from dataclasses import replace

from cardloop.domain.errors import InvalidArgument, NotFound, StorageFailure
from cardloop.domain.models import (
    Card,
    Grade,
    GradeResult,
    ReviewHistory,
    ReviewLogEntry,
    ReviewState,
    SessionStats,
)
from cardloop.domain.ports import ReviewLogSink, ReviewStore

from .scheduler import create_initial_review_state, history_of, normalize_iso, schedule_next
from .session import SessionQueue

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Grades the session's current card and advances the queue.

    Each operation persists before it advances, so a storage failure leaves
    the current card in place and the user may retry.
    """

    def __init__(
        self,
        store: ReviewStore,
        log_sink: ReviewLogSink | None,
        session: SessionQueue,
    ):
        self._store = store
        self._logs = log_sink
        self.session = session
        self.stats = SessionStats()
        self._current_card: Card | None = None
        self._card_started: float | None = None

    def reset_stats(self) -> None:
        self.stats = SessionStats()

    async def get_history(self, card_id: str) -> ReviewHistory:
        return history_of(await self._store.get_review(card_id), card_id)

    async def load_current_card(self) -> Card | None:
        """
        Fetch the card at the head of the queue and start its timer.

        Raises:
            NotFound: The card was removed from storage after the queue was built.
        """
        card_id = self.session.current_card_id
        if card_id is None:
            self._current_card = None
            self._card_started = None
            return None

        card = await self._store.get_card(card_id)
        if card is None:
            self._current_card = None
            logger.warning(f"Card '{card_id}' at head of queue is missing from storage")
            raise NotFound("Card", card_id)

        self._current_card = card
        self.start_card()
        return card

    def start_card(self) -> None:
        self._card_started = time.monotonic()

    def _elapsed_ms(self) -> int:
        if self._card_started is None:
            return 0
        return int((time.monotonic() - self._card_started) * 1000)

    def _require_current(self) -> str:
        card_id = self.session.current_card_id
        if card_id is None:
            raise InvalidArgument("No card is awaiting review.")
        if self.session.loading:
            raise InvalidArgument("The review queue is still loading.")
        return card_id

    async def submit_grade(
        self,
        grade: int,
        mark_hard: bool = False,
        now: str | None = None,
    ) -> ReviewState:
        """
        Grade the current card, persist the result and advance the queue.

        Args:
            grade: 1 (again), 2 (hard) or 3 (easy).
            mark_hard: User override that flags the card as hard regardless of grade.
            now: ISO instant of the grading event. Defaults to the current time.

        Returns:
            The persisted ReviewState.

        Raises:
            InvalidArgument: No current card, queue loading, answer not revealed,
                or an unsupported grade.
            StorageFailure: The session is left unchanged.
        """
        card_id = self._require_current()
        if not self.session.revealed:
            raise InvalidArgument("Reveal the answer before grading.")

        current_time = normalize_iso(now)
        previous = await self.get_history(card_id)
        scheduled = schedule_next(previous, grade, card_id=card_id, now=current_time)
        next_review = replace(scheduled, suspended=False, hard_flag=mark_hard)

        try:
            await self._store.put_review(next_review)
        except StorageFailure as e:
            logger.error(f"Failed to save review for '{card_id}': {e}")
            raise

        duration_ms = self._elapsed_ms()
        await self._append_log(card_id, int(grade), current_time, duration_ms)

        self.stats.reviewed += 1
        self.stats.hard += 1 if (grade == Grade.HARD or mark_hard) else 0
        self.stats.again += 1 if grade == Grade.AGAIN else 0
        self.stats.duration_ms += duration_ms

        self.session.next_card(
            GradeResult(card_id=card_id, grade=Grade(grade), hard_flag=next_review.hard_flag)
        )
        self._current_card = None
        self._card_started = None
        return next_review

    async def _append_log(self, card_id: str, grade: int, when: str, duration_ms: int) -> None:
        if self._logs is None:
            return

        deck_id = (
            self._current_card.deck_id
            if self._current_card is not None and self._current_card.id == card_id
            else self.session.deck_id
        )
        if not deck_id:
            return

        entry = ReviewLogEntry(
            when=when,
            card_id=card_id,
            deck_id=deck_id,
            grade=grade,
            mode=self.session.mode,
            duration_ms=duration_ms,
        )
        try:
            await self._logs.append(entry)
        except StorageFailure as e:
            # The review itself is already persisted; the log is analytics only.
            logger.warning(f"Failed to append review log for '{card_id}': {e}")

    async def disable_current_card(self) -> ReviewState:
        """Suspend the current card and advance without counting a grade."""
        card_id = self._require_current()

        existing = await self._store.get_review(card_id)
        base = existing or create_initial_review_state(card_id)
        disabled = replace(base, suspended=True)

        try:
            await self._store.put_review(disabled)
        except StorageFailure as e:
            logger.error(f"Failed to disable card '{card_id}': {e}")
            raise

        logger.info(f"Suspended card '{card_id}'")
        self.session.next_card(GradeResult(card_id=card_id))
        self._current_card = None
        self._card_started = None
        return disabled
