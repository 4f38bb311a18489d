"""
    Tagged partial updates for waitlist entries.

    Every field of an `EntryPatch` is either `UNSET` (leave the stored value
    alone) or a concrete value, where `None` means "clear it".
"""

from dataclasses import dataclass, fields
from admissions.core.exceptions import InvalidScoreError


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return 'UNSET'


UNSET = _Unset()

UI_SCORE_MIN = 0
UI_SCORE_MAX = 10


def to_ui_score(priority_score: int) -> int:
    """0-100 stored score to the 1-10 UI scale, rounding half up."""
    return (int(priority_score or 0) + 5) // 10


def to_db_score(ui_score: int) -> int:
    if isinstance(ui_score, bool) or not isinstance(ui_score, int):
        raise InvalidScoreError(f"Priority score must be a whole number, got {ui_score!r}.")
    if not UI_SCORE_MIN <= ui_score <= UI_SCORE_MAX:
        raise InvalidScoreError(
            f"Priority score must be between {UI_SCORE_MIN} and {UI_SCORE_MAX}, got {ui_score!r}.")
    return ui_score * 10


@dataclass(frozen=True)
class EntryPatch:
    notes: object = UNSET
    priority_score_ui: object = UNSET

    def is_empty(self):
        return all(getattr(self, f.name) is UNSET for f in fields(self))

    def to_columns(self) -> dict:
        """Stored column values for the fields that are present."""
        columns = {}
        if self.notes is not UNSET:
            columns['notes'] = self.notes
        if self.priority_score_ui is not UNSET:
            columns['priority_score'] = to_db_score(self.priority_score_ui)
        return columns
