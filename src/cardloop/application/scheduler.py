"""
Three-grade review scheduler.

Maps (previous review state, grade, now) to the next review state.
This is a pure computation module with no I/O; only the defaulting of
`now` reads the clock.
"""

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from cardloop.domain.constants import (
    AGAIN_EASE_DELTA,
    DEFAULT_EASE,
    EASY_EASE_DELTA,
    HARD_EASE_DELTA,
    HARD_INTERVAL_FACTOR,
    MAX_EASE,
    MIN_EASE,
)
from cardloop.domain.errors import InvalidArgument
from cardloop.domain.models import Grade, Reviewed, ReviewHistory, ReviewState, Unreviewed


def to_iso(moment: datetime) -> str:
    """Format a datetime as a UTC ISO-8601 string with millisecond precision."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def normalize_iso(value: str | None) -> str:
    """Canonical UTC form of `value`, or the current time when it is empty."""
    return to_iso(parse_iso(value)) if value else now_iso()


def add_days(iso: str, days: int) -> str:
    """
    Advance the UTC calendar date of `iso` by `days`, keeping the time of day.

    Negative and fractional day counts are truncated toward zero and floored at 0.
    """
    return to_iso(parse_iso(iso) + timedelta(days=max(0, math.trunc(days))))


def is_due(review: ReviewState, now: str | None = None) -> bool:
    """A review is due when it is not suspended and its due instant has passed."""
    if review.suspended:
        return False
    return review.due <= normalize_iso(now)


def clamp_ease(value: float) -> float:
    if not math.isfinite(value):
        value = DEFAULT_EASE
    return min(MAX_EASE, max(MIN_EASE, value))


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero."""
    magnitude = math.floor(abs(value) + 0.5)
    return int(magnitude if value >= 0 else -magnitude)


def create_initial_review_state(card_id: str, now: str | None = None) -> ReviewState:
    """Default state for a card that has never been reviewed."""
    return ReviewState(
        card_id=card_id,
        interval=0,
        due=normalize_iso(now),
        ease=DEFAULT_EASE,
        streak=0,
        lapses=0,
    )


def history_of(review: ReviewState | None, card_id: str | None = None) -> ReviewHistory:
    """Wrap an optional stored review into an explicit history variant."""
    if review is None:
        return Unreviewed(card_id)
    return Reviewed(review)


def _coerce_grade(grade: int) -> Grade:
    if isinstance(grade, bool):
        raise InvalidArgument(f"Unsupported grade: {grade!r}")
    try:
        return Grade(grade)
    except ValueError as e:
        raise InvalidArgument(f"Unsupported grade: {grade!r}. Expected 1, 2 or 3.") from e


def _resolve_base(
    previous: ReviewHistory | ReviewState | None,
    card_id: str | None,
    now: str,
) -> tuple[ReviewState, bool]:
    """Return the base state and whether it was synthesized for this call."""
    if isinstance(previous, Reviewed):
        return previous.state, False
    if isinstance(previous, ReviewState):
        return previous, False

    resolved_id = (previous.card_id if isinstance(previous, Unreviewed) else None) or card_id
    if not resolved_id:
        raise InvalidArgument("a card identifier must be supplied when no prior review exists")
    return create_initial_review_state(resolved_id, now), True


def schedule_next(
    previous: ReviewHistory | ReviewState | None,
    grade: int,
    *,
    card_id: str | None = None,
    now: str | None = None,
) -> ReviewState:
    """
    Compute the review state that follows a grading event.

    Args:
        previous: Prior state. None or Unreviewed means the card was never reviewed.
        grade: 1 (again), 2 (hard) or 3 (easy).
        card_id: Required when there is no prior state.
        now: ISO instant of the grading event. Defaults to the current time.

    Returns:
        A new ReviewState. `suspended` and `hard_flag` are carried through unchanged.

    Raises:
        InvalidArgument: On an unsupported grade or a missing card id.
    """
    checked = _coerce_grade(grade)
    current_time = normalize_iso(now)
    base, is_initial = _resolve_base(previous, card_id, current_time)

    ease = base.ease
    interval = base.interval
    streak = base.streak
    lapses = base.lapses

    if checked is Grade.AGAIN:
        ease = clamp_ease(ease + AGAIN_EASE_DELTA)
        interval = 0
        streak = 0
        lapses += 1
    elif checked is Grade.HARD:
        ease = clamp_ease(ease + HARD_EASE_DELTA)
        if is_initial:
            interval = 1
            streak = 1
        else:
            prior_interval = interval if interval > 0 else 1
            interval = max(1, round_half_away(prior_interval * HARD_INTERVAL_FACTOR))
            streak = max(1, streak)
    else:
        ease = clamp_ease(ease + EASY_EASE_DELTA)
        prior_interval = interval if interval > 0 else 1
        interval = 1 if is_initial else max(1, round_half_away(prior_interval * ease))
        streak += 1

    return replace(
        base,
        ease=ease,
        interval=interval,
        streak=streak,
        lapses=lapses,
        due=current_time if checked is Grade.AGAIN else add_days(current_time, interval),
    )
