"""
Session queue for a single deck review session.

Builds the day's review order (due reviews first, then a capped number of new
cards) and advances it as cards are graded, deferring "hard" cards to one
re-review pass once the primary queue is exhausted.

The queue owns no persistent state. Every grading decision is flushed to the
store before the queue advances, so a session can be discarded at any time.
"""

import logging

from cardloop.domain.constants import LAST_REVIEWED_DECK_KEY, NEW_CARD_LIMIT
from cardloop.domain.models import Card, Grade, GradeResult, SessionMode
from cardloop.domain.ports import PreferenceStore, ReviewStore

from .scheduler import normalize_iso

logger = logging.getLogger(__name__)


def card_sort_key(card: Card) -> tuple[int, int, str]:
    """Sequence-bearing cards first, by sequence; the rest by id."""
    if card.sequence is not None:
        return (0, card.sequence, "")
    return (1, 0, card.id)


def build_combined_queue(
    due_ids: list[str],
    deck_cards: list[Card],
    reviewed_ids: set[str],
    suspended_ids: set[str],
    new_card_limit: int,
) -> list[str]:
    """
    Combine due ids with new card ids.

    New cards are deck cards without a review record, in deck order, capped at
    `new_card_limit`. Suspended ids are dropped and the first occurrence of an
    id wins, so due cards always precede new cards.
    """
    ordered = sorted(deck_cards, key=card_sort_key)
    new_ids = [
        card.id
        for card in ordered
        if card.id not in reviewed_ids and card.id not in suspended_ids
    ][: max(0, new_card_limit)]

    combined: list[str] = []
    seen: set[str] = set()
    for card_id in [*due_ids, *new_ids]:
        if card_id in suspended_ids or card_id in seen:
            continue
        seen.add(card_id)
        combined.append(card_id)
    return combined


class SessionQueue:
    """
    Review queue for one deck.

    Constructed explicitly by the composition root and passed to whichever
    component needs it; there is no module-level session.
    """

    def __init__(
        self,
        store: ReviewStore,
        preferences: PreferenceStore | None = None,
        new_card_limit: int = NEW_CARD_LIMIT,
        mode: SessionMode = "input",
    ):
        """
        Args:
            store: Source of cards and review states.
            preferences: Where the last reviewed deck is remembered. Optional.
            new_card_limit: Maximum new cards added per queue load.
            mode: Initial session mode.
        """
        self._store = store
        self._preferences = preferences
        self.new_card_limit = new_card_limit
        self.mode: SessionMode = mode

        self.deck_id: str | None = None
        self.queue: list[str] = []
        self.hard_queue: list[str] = []
        self.current_card_id: str | None = None
        self.revealed = False
        self.loading = False

        self._promoted = False
        self._generation = 0

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _clear_queue(self) -> None:
        self.queue = []
        self.hard_queue = []
        self.current_card_id = None
        self.revealed = False
        self._promoted = False

    async def _persist_last_deck(self, deck_id: str | None) -> None:
        if self._preferences is None:
            return
        if deck_id:
            await self._preferences.set_preference(LAST_REVIEWED_DECK_KEY, deck_id)
        else:
            await self._preferences.remove_preference(LAST_REVIEWED_DECK_KEY)

    def snapshot(self) -> dict:
        return {
            "deck_id": self.deck_id,
            "mode": self.mode,
            "queue": list(self.queue),
            "hard_queue": list(self.hard_queue),
            "current_card_id": self.current_card_id,
            "revealed": self.revealed,
            "loading": self.loading,
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def set_mode(self, mode: SessionMode) -> None:
        self.mode = mode

    async def set_deck(self, deck_id: str | None) -> None:
        """Switch decks, discarding any in-progress queue."""
        if deck_id == self.deck_id:
            return
        self._generation += 1
        self.deck_id = deck_id
        self.loading = False
        self._clear_queue()
        await self._persist_last_deck(deck_id)

    async def load_queue_for_today(self, deck_id: str, now: str | None = None) -> list[str]:
        """
        Build today's queue for `deck_id`.

        Returns:
            The combined queue. A load superseded by a newer load, reset or
            deck switch is discarded and returns the queue currently in place.

        Raises:
            StorageFailure: The queue is left empty and not loading.
        """
        self._generation += 1
        generation = self._generation

        self.loading = True
        self.deck_id = deck_id
        self._clear_queue()

        try:
            current_time = normalize_iso(now)
            due_reviews = await self._store.get_due_reviews_by_deck(deck_id, current_time)
            due_ids = [review.card_id for review in due_reviews]

            deck_cards = await self._store.get_deck_cards(deck_id)
            deck_card_ids = [card.id for card in deck_cards]
            existing = (
                await self._store.get_reviews_for_cards(deck_card_ids) if deck_card_ids else []
            )

            if generation != self._generation:
                logger.info(f"Discarding stale queue load for deck '{deck_id}'")
                return list(self.queue)

            await self._persist_last_deck(deck_id)
        except Exception as e:
            logger.error(f"Failed to load queue for deck '{deck_id}': {e}")
            if generation == self._generation:
                self.loading = False
                self._clear_queue()
            raise

        if generation != self._generation:
            logger.info(f"Discarding stale queue load for deck '{deck_id}'")
            return list(self.queue)

        suspended_ids = {review.card_id for review in existing if review.suspended}
        reviewed_ids = {review.card_id for review in existing}

        combined = build_combined_queue(
            due_ids, deck_cards, reviewed_ids, suspended_ids, self.new_card_limit
        )

        self.queue = combined
        self.current_card_id = combined[0] if combined else None
        self.loading = False

        logger.info(f"Loaded deck '{deck_id}': {len(combined)} cards ({len(due_ids)} due)")
        return list(combined)

    def reveal(self) -> None:
        self.revealed = True

    def next_card(self, result: GradeResult | None = None) -> str | None:
        """
        Advance past the card that was just dealt with.

        A hard result (grade 2 or an explicit hard flag) defers the card to the
        hard queue. When the primary queue runs out, the hard queue is promoted
        once; hard results during that re-pass are not deferred again.

        Returns:
            The new current card id, or None when the session is finished.
        """
        active_id = result.card_id if result else self.current_card_id
        if not active_id:
            self.revealed = False
            return None

        remaining = [card_id for card_id in self.queue if card_id != active_id]
        hard_queue = [card_id for card_id in self.hard_queue if card_id != active_id]

        is_hard = result is not None and (result.grade == Grade.HARD or result.hard_flag)
        if is_hard and not self._promoted and active_id not in hard_queue:
            hard_queue.append(active_id)

        if not remaining and hard_queue:
            logger.debug(f"Promoting {len(hard_queue)} hard cards for a re-pass")
            remaining = hard_queue
            hard_queue = []
            self._promoted = True

        self.queue = remaining
        self.hard_queue = hard_queue
        self.current_card_id = remaining[0] if remaining else None
        self.revealed = False
        return self.current_card_id

    async def reset_session(self) -> None:
        """Return to the initial empty state and forget the last reviewed deck."""
        self._generation += 1
        self.deck_id = None
        self.loading = False
        self._clear_queue()
        await self._persist_last_deck(None)

    async def last_deck(self) -> str | None:
        if self._preferences is None:
            return None
        return await self._preferences.get_preference(LAST_REVIEWED_DECK_KEY)
