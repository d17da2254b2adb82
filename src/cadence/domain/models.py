"""
Domain models for review scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from . import constants as C


class Rating(str, Enum):
    """Button pressed after revealing a card, ordered worst to best."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def button(self) -> int:
        """1=Again, 2=Hard, 3=Good, 4=Easy."""
        return list(Rating).index(self) + 1

    @classmethod
    def from_button(cls, button: int) -> "Rating":
        ratings = list(cls)
        if not 1 <= button <= len(ratings):
            raise ValueError(f"Unknown rating button: {button}")
        return ratings[button - 1]


class Stage(str, Enum):
    """Where a card sits in the New -> Learning -> Review state machine."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"


@dataclass(frozen=True)
class SchedulerConfig:
    """
    Numeric knobs for the interval scheduler.

    Attributes:
        initial_ease: Ease factor given to brand-new cards.
        minimum_ease: Floor the ease factor is clamped to after every update.
        again_penalty: Subtracted from ease on a lapse.
        hard_penalty: Subtracted from ease on Hard in the Review stage.
        easy_bonus: Added to ease on Easy in the Review stage.
        hard_multiplier: Interval growth on Hard.
        easy_multiplier: Extra growth on Easy, applied on top of ease.
        learning_steps: Sub-day learning steps in minutes, ascending.
        hard_step_multiplier: Growth applied when Hard repeats a learning step.
        graduating_interval: Days given when the final learning step is passed.
        easy_interval: Days given when a learning card is rated Easy.
        max_interval_days: Cap for every computed interval.
    """

    initial_ease: float = C.INITIAL_EASE
    minimum_ease: float = C.MINIMUM_EASE
    again_penalty: float = C.AGAIN_EASE_PENALTY
    hard_penalty: float = C.HARD_EASE_PENALTY
    easy_bonus: float = C.EASY_EASE_BONUS
    hard_multiplier: float = C.HARD_MULTIPLIER
    easy_multiplier: float = C.EASY_MULTIPLIER
    learning_steps: tuple[int, ...] = C.LEARNING_STEPS_MINUTES
    hard_step_multiplier: float = C.HARD_STEP_MULTIPLIER
    graduating_interval: int = C.GRADUATING_INTERVAL_DAYS
    easy_interval: int = C.EASY_INTERVAL_DAYS
    max_interval_days: int = C.MAX_INTERVAL_DAYS


@dataclass(frozen=True)
class CardRecord:
    """
    Scheduling state of a single card, as held by the card store.

    Attributes:
        id: Stable card identifier.
        due_at: When the card becomes eligible for review (None = never scheduled).
        interval_days: Current spacing. Fractional while learning, whole days in review.
        ease_factor: Interval growth multiplier.
        repetitions: Consecutive successful reviews; reset on a lapse.
        lapses: Number of Again ratings ever recorded.
        stage: New, Learning or Review.
        learning_step: Index into the learning-step table while learning.
    """

    id: str
    due_at: datetime | None = None
    interval_days: float = 0.0
    ease_factor: float = C.INITIAL_EASE
    repetitions: int = 0
    lapses: int = 0
    stage: Stage = Stage.NEW
    learning_step: int = 0

    # Bookkeeping
    created_at: datetime | None = None
    last_reviewed_at: datetime | None = None

    # Content (for display purposes)
    front: str | None = None
    back: str | None = None

    @property
    def is_new(self) -> bool:
        return self.stage == Stage.NEW

    def is_due(self, now: datetime) -> bool:
        if self.stage == Stage.NEW:
            return False
        return self.due_at is None or self.due_at <= now


@dataclass(frozen=True)
class QueueEntry:
    """
    A card's slot in the current sitting.

    The same card id may appear twice when a failed card is requeued;
    `is_again_requeue` tells the retry apart from the original slot.
    """

    card: CardRecord
    position: int = 0
    is_again_requeue: bool = False

    @property
    def card_id(self) -> str:
        return self.card.id

    @property
    def is_new(self) -> bool:
        return self.card.is_new


@dataclass(frozen=True)
class ReviewLogEntry:
    """
    One rating as written to the review log.

    Attributes:
        card_id: The card that was rated.
        rating: Button pressed.
        previous_stage / new_stage: Stage before and after the rating.
        previous_interval / new_interval: Interval in days before and after.
        previous_ease / new_ease: Ease factor before and after.
        new_due: Due date assigned by the rating.
        reviewed_at: When the rating happened.
        algorithm_version: Scheduler revision that produced the new state.
    """

    card_id: str
    rating: Rating
    previous_stage: Stage
    new_stage: Stage
    previous_interval: float
    new_interval: float
    previous_ease: float
    new_ease: float
    new_due: datetime | None
    reviewed_at: datetime
    algorithm_version: str = C.ALGORITHM_VERSION


@dataclass(frozen=True)
class IntervalPreviews:
    """Human-readable intervals each rating would produce, e.g. "10m", "4d"."""

    again: str
    hard: str
    good: str
    easy: str

    def for_rating(self, rating: Rating) -> str:
        return getattr(self, rating.value)


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Display-ready partition of a sitting.

    Counts always sum to `total`; percentages are each count over `total`.
    """

    total: int = 0
    completed_count: int = 0
    review_count: int = 0
    new_count: int = 0
    again_count: int = 0
    completed_pct: float = 0.0
    review_pct: float = 0.0
    new_pct: float = 0.0
    again_pct: float = 0.0

    @property
    def remaining_count(self) -> int:
        return self.review_count + self.new_count + self.again_count

    def as_dict(self) -> dict[str, float]:
        return {
            "total": self.total,
            "completed_count": self.completed_count,
            "review_count": self.review_count,
            "new_count": self.new_count,
            "again_count": self.again_count,
            "completed_pct": self.completed_pct,
            "review_pct": self.review_pct,
            "new_pct": self.new_pct,
            "again_pct": self.again_pct,
        }


@dataclass
class SessionCounters:
    """Read-only counters a caller renders next to the current card."""

    total_cards: int = 0
    reviewed_count: int = 0
    cumulative_reviewed_count: int = 0
    total_new_cards: int = 0
    new_cards_available_today: int = 0
    new_cards_per_day: int = C.DEFAULT_NEW_CARDS_PER_DAY
    current_index: int = 0
