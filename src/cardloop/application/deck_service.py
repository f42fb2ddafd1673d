"""Deck browsing and per-card flag management."""

import logging
from dataclasses import replace

from cardloop.domain.models import DeckCardDetail, ReviewState
from cardloop.domain.ports import ReviewStore

from .scheduler import create_initial_review_state
from .session import card_sort_key

logger = logging.getLogger(__name__)


class DeckService:
    """Read and adjust the cards of a deck outside a review session."""

    def __init__(self, store: ReviewStore):
        self._store = store

    async def get_deck_cards(self, deck_id: str) -> list[DeckCardDetail]:
        """
        List a deck's cards joined with their review state, in deck order.
        """
        cards = await self._store.get_deck_cards(deck_id)
        card_ids = [card.id for card in cards]
        reviews = await self._store.get_reviews_for_cards(card_ids) if card_ids else []
        review_map = {review.card_id: review for review in reviews}

        details = [DeckCardDetail(card=card, review=review_map.get(card.id)) for card in cards]
        return sorted(details, key=lambda detail: card_sort_key(detail.card))

    async def set_card_suspended(self, card_id: str, suspended: bool) -> ReviewState:
        async with self._store.transaction():
            existing = await self._store.get_review(card_id)
            review = replace(existing or create_initial_review_state(card_id), suspended=suspended)
            await self._store.put_review(review)

        logger.info(f"Card '{card_id}' suspended={suspended}")
        return review

    async def set_card_hard_flag(self, card_id: str, hard_flag: bool) -> ReviewState:
        async with self._store.transaction():
            existing = await self._store.get_review(card_id)
            review = replace(existing or create_initial_review_state(card_id), hard_flag=hard_flag)
            await self._store.put_review(review)

        logger.info(f"Card '{card_id}' hard_flag={hard_flag}")
        return review
