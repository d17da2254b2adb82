"""
Progress calculator for deriving display segments from a review queue.

This is a pure computation module with no I/O.
"""

from collections.abc import Sequence

from cadence.domain.models import ProgressSnapshot, QueueEntry


class ProgressCalculator:
    """
    Partitions a sitting into completed, review, new and again segments.

    Stateless and side-effect free: identical queue state always yields an
    identical snapshot.
    """

    def compute(self, current_index: int, queue: Sequence[QueueEntry]) -> ProgressSnapshot:
        """
        Project (current_index, queue) into counts and percentages.

        Entries before `current_index` are completed. Remaining entries are
        split into again-requeues, new cards and everything else.
        """
        total = len(queue)
        if total == 0:
            return ProgressSnapshot()

        completed = min(max(current_index, 0), total)
        remaining = queue[completed:]

        again = sum(1 for entry in remaining if entry.is_again_requeue)
        new = sum(1 for entry in remaining if not entry.is_again_requeue and entry.is_new)
        review = len(remaining) - again - new

        return ProgressSnapshot(
            total=total,
            completed_count=completed,
            review_count=review,
            new_count=new,
            again_count=again,
            completed_pct=self._pct(completed, total),
            review_pct=self._pct(review, total),
            new_pct=self._pct(new, total),
            again_pct=self._pct(again, total),
        )

    def _pct(self, count: int, total: int) -> float:
        return count / total * 100
