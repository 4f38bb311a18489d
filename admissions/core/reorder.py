#!/usr/bin/env python

"""
    Manual re-ranking of waitlist entries within a partition.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from admissions.core.exceptions import InvalidPositionError

logger = logging.getLogger(__name__)


class PositionReorderer:

    def __init__(self, store):
        self.store = store

    def reorder(self, entry_id, new_position):
        """
        Moves an active entry to `new_position` (1-based) in its
        `(school_id, program)` partition, shifting the entries in between.

        Args:
            entry_id: Waitlist entry to move.
            new_position: Target position, 1 <= new_position <= active count.

        Returns:
            The entry as stored after the move.

        Raises:
            EntryNotFoundError: If the entry does not exist.
            InvalidPositionError: If the position is out of range or the
                entry is no longer active. Nothing is written.
            TransactionConflictError: If the partition could not be locked
                or the write failed; nothing is committed and the call can
                be retried as-is.
        """
        if isinstance(new_position, bool) or not isinstance(new_position, int):
            raise InvalidPositionError(f"Position must be an integer, got {new_position!r}.")

        school_id, program = self.store.get(entry_id).partition

        with self.store.transaction(school_id, program):
            entry = self.store.get(entry_id, for_update=True)
            if not entry.is_active:
                raise InvalidPositionError(
                    f"Entry {entry_id} is {entry.status}; its position is frozen.")

            active_count = len(self.store.list_by_partition(school_id, program, for_update=True))
            if not 1 <= new_position <= active_count:
                raise InvalidPositionError(
                    f"Position {new_position} is outside 1..{active_count} for {program}.")

            # Gaps left by terminal entries close first so the shift
            # window is measured in contiguous ranks
            if self._renormalize(school_id, program):
                entry = self.store.get(entry_id)

            old_position = entry.waitlist_position
            if new_position == old_position:
                return entry

            if new_position < old_position:
                self.store.shift_positions(
                    school_id, program, new_position, old_position - 1, +1, exclude_id=entry_id)
            else:
                self.store.shift_positions(
                    school_id, program, old_position + 1, new_position, -1, exclude_id=entry_id)
            self.store.update_position(entry_id, new_position)

            repaired = self._renormalize(school_id, program)
            if repaired:
                logger.warning(f"Repaired {repaired} drifted positions in {(school_id, program)}")

        logger.info(f"Moved waitlist entry {entry_id} from {old_position} to {new_position}")
        return self.store.get(entry_id)

    def next_position(self, school_id, program):
        """Closes any gaps, then returns the position just past the last
        active entry. Must run inside the partition's transaction."""
        repaired = self._renormalize(school_id, program)
        if repaired:
            logger.info(f"Closed {repaired} gap(s) in {(school_id, program)} before appending")
        return self.store.count_active(school_id, program) + 1

    def renormalize(self, school_id, program):
        """Rewrites active positions to 1..N in (position, created_at) order.
        Returns the number of entries that changed."""
        with self.store.transaction(school_id, program):
            return self._renormalize(school_id, program)

    def renormalize_all(self):
        repaired = {}
        for school_id, program in self.store.partitions():
            if count := self.renormalize(school_id, program):
                repaired[(school_id, program)] = count
        return repaired

    def _renormalize(self, school_id, program):
        repaired = 0
        for rank, entry in enumerate(self.store.list_by_partition(school_id, program), start=1):
            if entry.waitlist_position != rank:
                self.store.update_position(entry.id, rank)
                repaired += 1
        return repaired
