"""
Interval scheduler: SM-2 style spacing with sub-day learning steps.

This is a pure computation module with no I/O. Every method takes the
current time as an argument so results are reproducible.

State machine:
    New      -> Learning on any rating (Good/Easy start further along the steps)
    Learning -> Learning on Again/Hard, or on Good before the final step
             -> Review on Good past the final step, or on Easy
    Review   -> Learning on Again (a lapse), Review otherwise
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.application.utils.display import format_interval
from cadence.domain.constants import (
    EASE_PRECISION,
    INTERVAL_PRECISION,
    LEARNING_STEPS_MINUTES,
    MINUTES_PER_DAY,
)
from cadence.domain.models import (
    CardRecord,
    IntervalPreviews,
    Rating,
    SchedulerConfig,
    Stage,
)

logger = logging.getLogger(__name__)


def new_card(
    card_id: str,
    front: str | None = None,
    back: str | None = None,
    created_at: datetime | None = None,
    config: SchedulerConfig | None = None,
) -> CardRecord:
    """Build the record for a card that has never been reviewed."""
    config = config or SchedulerConfig()
    return CardRecord(
        id=card_id,
        due_at=None,
        interval_days=0.0,
        ease_factor=config.initial_ease,
        repetitions=0,
        lapses=0,
        stage=Stage.NEW,
        learning_step=0,
        created_at=created_at,
        front=front,
        back=back,
    )


class IntervalScheduler:
    """
    Maps (record, rating, now) to the record's next scheduling state.

    Stateless and side-effect free. Never raises on a malformed record;
    out-of-range values are clamped before the transition is applied.
    """

    def __init__(self, config: SchedulerConfig | None = None):
        self.config = config or SchedulerConfig()
        self._steps = tuple(self.config.learning_steps) or LEARNING_STEPS_MINUTES

    def schedule(self, card: CardRecord, rating: Rating, now: datetime) -> CardRecord:
        """
        Compute the record that results from rating `card` at `now`.

        Returns a new CardRecord; the input is never modified.
        """
        rating = Rating(rating)
        card = self.sanitize(card)

        if card.stage == Stage.NEW:
            result = self._from_new(card, rating)
        elif card.stage == Stage.LEARNING:
            result = self._from_learning(card, rating)
        else:
            result = self._from_review(card, rating)

        return replace(result, due_at=now + self._offset(result), last_reviewed_at=now)

    def preview(self, card: CardRecord, now: datetime) -> IntervalPreviews:
        """
        Label each rating with the interval it would produce.

        Runs `schedule` speculatively for all four ratings against the same
        unmodified record.
        """
        labels = {
            rating.value: format_interval(self.schedule(card, rating, now).interval_days)
            for rating in Rating
        }
        return IntervalPreviews(**labels)

    def sanitize(self, card: CardRecord) -> CardRecord:
        """
        Clamp a record into a valid scheduling state.

        Corrupt state must never block a review, so nothing here raises.
        """
        changes: dict = {}

        interval = card.interval_days
        if not isinstance(interval, (int, float)) or not math.isfinite(interval) or interval < 0:
            changes["interval_days"] = 0.0
            interval = 0.0

        ease = card.ease_factor
        if not isinstance(ease, (int, float)) or not math.isfinite(ease):
            ease = self.config.initial_ease
        clamped_ease = self._clamp_ease(ease)
        if clamped_ease != card.ease_factor:
            changes["ease_factor"] = clamped_ease

        if card.repetitions < 0:
            changes["repetitions"] = 0
        if card.lapses < 0:
            changes["lapses"] = 0

        if card.stage == Stage.LEARNING:
            step = min(max(card.learning_step, 0), len(self._steps) - 1)
            if step != card.learning_step:
                changes["learning_step"] = step
        elif card.stage == Stage.REVIEW and interval < 1:
            changes["interval_days"] = float(self.config.graduating_interval)

        if changes:
            logger.debug(f"Clamped malformed record {card.id}: {changes}")
            return replace(card, **changes)
        return card

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _from_new(self, card: CardRecord, rating: Rating) -> CardRecord:
        last = len(self._steps) - 1

        if rating == Rating.AGAIN:
            return self._relearn(card)
        if rating == Rating.HARD:
            return self._at_step(card, 0, self._hard_minutes(0))
        if rating == Rating.GOOD:
            step = min(1, last)
            return self._at_step(card, step, self._steps[step])
        return self._at_step(card, last, self._steps[last])

    def _from_learning(self, card: CardRecord, rating: Rating) -> CardRecord:
        step = card.learning_step

        if rating == Rating.AGAIN:
            return self._relearn(card)
        if rating == Rating.HARD:
            return self._at_step(card, step, self._hard_minutes(step))
        if rating == Rating.GOOD:
            if step + 1 < len(self._steps):
                return self._at_step(card, step + 1, self._steps[step + 1])
            return self._graduate(card, self.config.graduating_interval)
        return self._graduate(card, self.config.easy_interval)

    def _from_review(self, card: CardRecord, rating: Rating) -> CardRecord:
        cfg = self.config
        interval = card.interval_days
        ease = card.ease_factor

        if rating == Rating.AGAIN:
            lapsed_ease = self._clamp_ease(ease - cfg.again_penalty)
            return self._relearn(replace(card, ease_factor=lapsed_ease))

        if rating == Rating.HARD:
            new_interval = interval * cfg.hard_multiplier
            new_ease = self._clamp_ease(ease - cfg.hard_penalty)
        elif rating == Rating.GOOD:
            new_interval = interval * ease
            new_ease = self._clamp_ease(ease)
        else:
            new_interval = interval * ease * cfg.easy_multiplier
            new_ease = self._clamp_ease(ease + cfg.easy_bonus)

        return replace(
            card,
            stage=Stage.REVIEW,
            interval_days=self._whole_days(new_interval),
            ease_factor=new_ease,
            repetitions=card.repetitions + 1,
            learning_step=0,
        )

    def _relearn(self, card: CardRecord) -> CardRecord:
        """A lapse: back to the first learning step."""
        return replace(
            card,
            stage=Stage.LEARNING,
            learning_step=0,
            interval_days=self._step_days(self._steps[0]),
            repetitions=0,
            lapses=card.lapses + 1,
        )

    def _at_step(self, card: CardRecord, step: int, minutes: float) -> CardRecord:
        return replace(
            card,
            stage=Stage.LEARNING,
            learning_step=step,
            interval_days=self._step_days(minutes),
        )

    def _graduate(self, card: CardRecord, days: int) -> CardRecord:
        return replace(
            card,
            stage=Stage.REVIEW,
            learning_step=0,
            interval_days=self._whole_days(days),
            repetitions=1,
        )

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _hard_minutes(self, step: int) -> float:
        # Stays sub-day so the card keeps learning
        return min(self._steps[step] * self.config.hard_step_multiplier, MINUTES_PER_DAY - 1)

    def _step_days(self, minutes: float) -> float:
        return round(minutes / MINUTES_PER_DAY, INTERVAL_PRECISION)

    def _whole_days(self, days: float) -> float:
        # Halves round up
        return float(min(max(math.floor(days + 0.5), 1), self.config.max_interval_days))

    def _clamp_ease(self, ease: float) -> float:
        return max(self.config.minimum_ease, round(ease, EASE_PRECISION))

    def _offset(self, card: CardRecord) -> timedelta:
        if card.stage == Stage.LEARNING:
            return timedelta(minutes=round(card.interval_days * MINUTES_PER_DAY))
        return timedelta(days=card.interval_days)
