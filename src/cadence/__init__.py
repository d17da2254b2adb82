"""cadence: spaced-repetition review scheduling."""

from cadence.consts import VERSION

__version__ = VERSION
