#!/usr/bin/env python

"""
    Priority scoring for waitlisted leads.

    Scores are additive bonuses on top of the lead's own score, rounded and
    clamped to 0-100. Labels are derived from the stored score alone.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
import math
from dataclasses import dataclass, field
from typing import List, Optional
from admissions.configs import DEFAULT_LEAD_SCORE
from admissions.core.utils import as_utc, utcnow

SCORE_MIN = 0
SCORE_MAX = 100

HIGH_PRIORITY_BONUS = 20
SIBLING_BONUS = 10
OPEN_SPOTS_BONUS = 10
OVERDUE_FOLLOW_UP_BONUS = 5

HIGH_LABEL_THRESHOLD = 80
SIBLING_LABEL_THRESHOLD = 50


class PriorityHint(str, enum.Enum):
    NONE = 'none'
    HIGH = 'high'
    SIBLING = 'sibling'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls((value or 'none').strip().lower())
        except ValueError:
            return cls.NONE


@dataclass
class PrioritySignals:
    base_score: Optional[float] = None
    priority_hint: PriorityHint = PriorityHint.NONE
    available_spots: int = 0
    next_follow_up: Optional[object] = None
    status: Optional[str] = None
    child_name: Optional[str] = None

    @property
    def normalized_status(self):
        return (self.status or '').strip().lower()


@dataclass
class PriorityAnalysis:
    priority_score: int
    label: str
    summary: str
    recommendations: List[str] = field(default_factory=list)


def clamp_score(value) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, math.floor(value + 0.5)))


def priority_label(score) -> str:
    # "Sibling" is the historical name of the middle band, it does not
    # look at sibling status.
    score = score or 0
    if score >= HIGH_LABEL_THRESHOLD:
        return 'High'
    if score >= SIBLING_LABEL_THRESHOLD:
        return 'Sibling'
    return 'Standard'


class PriorityScorer:

    def __init__(self, default_base_score=DEFAULT_LEAD_SCORE):
        self.default_base_score = default_base_score

    def _follow_up_overdue(self, signals, now):
        return signals.next_follow_up is not None and as_utc(signals.next_follow_up) <= now

    def score(self, signals: PrioritySignals, now=None) -> int:
        now = as_utc(now) or utcnow()
        hint = PriorityHint.parse(signals.priority_hint)
        score = self.default_base_score if signals.base_score is None else signals.base_score

        if hint is PriorityHint.HIGH:
            score += HIGH_PRIORITY_BONUS
        elif hint is PriorityHint.SIBLING:
            score += SIBLING_BONUS

        if (signals.available_spots or 0) > 0 and signals.normalized_status == 'waitlisted':
            score += OPEN_SPOTS_BONUS

        if self._follow_up_overdue(signals, now):
            score += OVERDUE_FOLLOW_UP_BONUS

        return clamp_score(score)

    label = staticmethod(priority_label)

    def analyze(self, signals: PrioritySignals, now=None) -> PriorityAnalysis:
        """Score plus a staff-facing summary and outreach recommendations."""
        now = as_utc(now) or utcnow()
        hint = PriorityHint.parse(signals.priority_hint)
        status = signals.normalized_status
        spots = signals.available_spots or 0
        recommendations = []

        if hint is PriorityHint.HIGH:
            recommendations.append('Prioritize outreach due to high lead priority.')
        elif hint is PriorityHint.SIBLING:
            recommendations.append('Sibling lead detected. Highlight family benefits.')

        if spots > 0 and status == 'waitlisted':
            recommendations.append('Program has openings. Consider sending an offer.')

        if self._follow_up_overdue(signals, now):
            recommendations.append(
                'Follow-up date has passed. Contact the family as soon as possible.')

        if not status or status == 'new':
            recommendations.append(
                'No recent engagement recorded. Introduce the program and schedule a call.')
        elif status == 'toured':
            recommendations.append(
                'Lead already toured. Share enrollment paperwork and next steps.')

        if not recommendations:
            recommendations.append('Maintain regular communication cadence.')

        summary = [f"{signals.child_name or 'This lead'} is currently {status or 'waiting'}."]
        if spots > 0:
            summary.append(f"{spots} spot(s) are available in the requested program.")
        if hint is not PriorityHint.NONE:
            summary.append(f"Priority level: {hint.value}.")
        if signals.next_follow_up is not None:
            summary.append(f"Next follow-up scheduled for {as_utc(signals.next_follow_up).isoformat()}.")

        score = self.score(signals, now=now)
        return PriorityAnalysis(
            priority_score=score,
            label=priority_label(score),
            summary=' '.join(summary),
            recommendations=recommendations,
        )
