"""Centralized constants for cadence.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Ease factor ----------
INITIAL_EASE = 2.5
MINIMUM_EASE = 1.3
EASE_PRECISION = 2  # decimal places

# Ease adjustments per rating (Review stage)
AGAIN_EASE_PENALTY = 0.20
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

# ---------- Interval growth ----------
HARD_MULTIPLIER = 1.2
EASY_MULTIPLIER = 1.3  # Applied on top of ease factor
MAX_INTERVAL_DAYS = 365

# ---------- Learning ----------
LEARNING_STEPS_MINUTES = (10, 60, 360)
HARD_STEP_MULTIPLIER = 1.5
GRADUATING_INTERVAL_DAYS = 1
EASY_INTERVAL_DAYS = 4

MINUTES_PER_DAY = 24 * 60
INTERVAL_PRECISION = 6  # decimal places for fractional (sub-day) intervals

# ---------- Session ----------
DEFAULT_NEW_CARDS_PER_DAY = 10  # 0 = unlimited
DEFAULT_REQUEUE_OFFSET = 3  # Entries between a failed card and its retry

# ---------- Review log ----------
ALGORITHM_VERSION = "sm2-steps-v1.0"
