"""
Review scheduler: a simplified SM-2 update rule.

    delta = 0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)
    ease' = round2(max(1.3, ease + delta))
    interval' = 1                        if q < 3
              = 6                        if interval == 1
              = round(interval * ease')  otherwise

Every call site (explicit 0-5 rating, LLM-graded answer) goes through
compute_next_review(); callers derive the quality and persist the result.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

INITIAL_INTERVAL = 1
INITIAL_EASINESS = 2.5
MIN_EASINESS = 1.3
PASSING_QUALITY = 3
FIRST_PASS_INTERVAL = 6

# Quality assigned to an LLM verdict: correct / incorrect
CORRECT_QUALITY = 5
INCORRECT_QUALITY = 2


class InvalidInputError(ValueError):
    """Raised when scheduler inputs fall outside their documented domain."""


@dataclass(frozen=True)
class ScheduleResult:
    new_interval: int
    new_easiness_factor: float


def _round_half_up(value: float, ndigits: int = 0) -> float:
    # Half-up on the binary float, like JS Math.round: 2.135 -> 2.13. Not Decimal.
    scale = 10**ndigits
    return math.floor(value * scale + 0.5) / scale


def _validate(current_interval: object, easiness_factor: object, quality: object) -> None:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidInputError(f"quality must be an integer, got {quality!r}")
    if not 0 <= quality <= 5:
        raise InvalidInputError(f"quality must be between 0 and 5, got {quality}")

    if isinstance(current_interval, bool) or not isinstance(current_interval, int):
        raise InvalidInputError(
            f"current_interval must be an integer, got {current_interval!r}"
        )
    if current_interval < 1:
        raise InvalidInputError(
            f"current_interval must be >= 1, got {current_interval}"
        )

    if isinstance(easiness_factor, bool) or not isinstance(easiness_factor, (int, float)):
        raise InvalidInputError(
            f"easiness_factor must be a number, got {easiness_factor!r}"
        )
    if not math.isfinite(easiness_factor) or easiness_factor < MIN_EASINESS:
        raise InvalidInputError(
            f"easiness_factor must be a finite number >= {MIN_EASINESS}, "
            f"got {easiness_factor}"
        )


def compute_next_review(
    current_interval: int,
    easiness_factor: float,
    quality: int,
) -> ScheduleResult:
    """
    Compute the next interval and ease factor after one review.

    Raises InvalidInputError for out-of-domain input instead of letting a
    meaningless schedule reach storage.
    """
    _validate(current_interval, easiness_factor, quality)

    miss = 5 - quality
    delta = 0.1 - miss * (0.08 + miss * 0.02)
    new_ease = _round_half_up(max(MIN_EASINESS, easiness_factor + delta), 2)

    if quality < PASSING_QUALITY:
        new_interval = 1
    elif current_interval == 1:
        new_interval = FIRST_PASS_INTERVAL
    else:
        new_interval = int(_round_half_up(current_interval * new_ease))

    return ScheduleResult(new_interval=new_interval, new_easiness_factor=new_ease)


def next_review_at(new_interval: int, now: datetime | None = None) -> datetime:
    """Absolute due time for an interval, measured from now (UTC)."""
    base = now or datetime.now(timezone.utc)
    return base + timedelta(days=new_interval)


def quality_from_correct(correct: bool) -> int:
    return CORRECT_QUALITY if correct else INCORRECT_QUALITY


def is_pass(quality: int) -> bool:
    return quality >= PASSING_QUALITY
