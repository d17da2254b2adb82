"""Exception hierarchy for cadence.

Nothing here is fatal to the process: every error means either
"nothing changed, try again" or a caller contract was broken.
"""


class CadenceError(Exception):
    """Base class for all cadence errors."""


class StoreError(CadenceError):
    """
    A card store operation failed (network, lock, disk).

    Transient and retryable. Session state is left untouched when this is
    raised from a rating.
    """

    def __init__(self, message: str, card_id: str | None = None):
        super().__init__(message)
        self.card_id = card_id


class NoCurrentCardError(CadenceError):
    """A rating was submitted while the session has no current card."""


class DeckFileError(CadenceError):
    """A deck file could not be parsed into cards."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line

    def __str__(self) -> str:
        base = super().__str__()
        if self.line is not None:
            return f"line {self.line}: {base}"
        return base
