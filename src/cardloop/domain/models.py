"""
Domain models for review scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Literal

SessionMode = Literal["input", "output"]


class Grade(IntEnum):
    """Three-point recall grade."""

    AGAIN = 1  # Failed recall
    HARD = 2  # Recalled with difficulty
    EASY = 3  # Recalled easily


@dataclass(frozen=True)
class Card:
    """
    A flashcard owned by a deck.

    Attributes:
        id: Unique card identifier.
        deck_id: Deck the card belongs to.
        front: Prompt side text.
        back: Answer side text.
        audio: Path or URL of the primary audio clip.
        sequence: Optional explicit position inside the deck.
    """

    id: str
    deck_id: str
    front: str
    back: str
    audio: str = ""
    audio_slow: str | None = None
    notes: str | None = None
    tags: tuple[str, ...] = ()
    sequence: int | None = None
    external_id: str | None = None


@dataclass(frozen=True)
class ReviewState:
    """
    Scheduling state for a single card.

    Attributes:
        card_id: The card this state belongs to.
        interval: Days until the next due date; 0 means due immediately.
        due: ISO-8601 UTC instant at or after which the card is reviewable.
        ease: Interval growth multiplier, always within [1.3, 3.0].
        streak: Consecutive successful recalls.
        lapses: Lifetime count of failed recalls.
        suspended: Excluded from every queue when True. Defaults to False.
        hard_flag: Marked difficult by the user. Defaults to False.
    """

    card_id: str
    interval: int
    due: str
    ease: float
    streak: int
    lapses: int
    suspended: bool = False
    hard_flag: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "card_id": self.card_id,
            "interval": self.interval,
            "due": self.due,
            "ease": self.ease,
            "streak": self.streak,
            "lapses": self.lapses,
            "suspended": self.suspended,
            "hard_flag": self.hard_flag,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ReviewState":
        return cls(
            card_id=record["card_id"],
            interval=int(record["interval"]),
            due=record["due"],
            ease=float(record["ease"]),
            streak=int(record["streak"]),
            lapses=int(record["lapses"]),
            suspended=bool(record.get("suspended") or False),
            hard_flag=bool(record.get("hard_flag") or False),
        )


@dataclass(frozen=True)
class Unreviewed:
    """A card with no review record yet."""

    card_id: str | None = None


@dataclass(frozen=True)
class Reviewed:
    """A card with an existing review record."""

    state: ReviewState

    @property
    def card_id(self) -> str:
        return self.state.card_id


ReviewHistory = Unreviewed | Reviewed


@dataclass(frozen=True)
class ReviewLogEntry:
    """
    An immutable review log entry.

    Attributes:
        when: ISO-8601 UTC timestamp of the grading event.
        card_id: The graded card.
        deck_id: Deck the card belonged to at grading time.
        grade: Grade submitted (1-3).
        mode: Session mode at grading time.
        duration_ms: Time spent on the card before grading.
        id: Store-assigned id, None until appended.
    """

    when: str
    card_id: str
    deck_id: str
    grade: int
    mode: SessionMode
    duration_ms: int
    id: int | None = None


@dataclass(frozen=True)
class GradeResult:
    """Outcome passed to the queue when a card has been dealt with."""

    card_id: str
    grade: Grade | None = None
    hard_flag: bool = False


@dataclass
class SessionStats:
    """Running totals for the current review session."""

    reviewed: int = 0
    hard: int = 0
    again: int = 0
    duration_ms: int = 0


@dataclass
class DeckCardDetail:
    """A card joined with its review state, for deck browsing."""

    card: Card
    review: ReviewState | None = None
