import datetime
import pytest
from admissions.core.scoring import (
    PriorityHint,
    PriorityScorer,
    PrioritySignals,
    clamp_score,
    priority_label,
)
from tests.conftest import T0


@pytest.fixture
def scorer():
    return PriorityScorer(default_base_score=50)


def test_base_score_defaults_when_lead_has_none(scorer):
    assert scorer.score(PrioritySignals(), now=T0) == 50
    assert scorer.score(PrioritySignals(base_score=0), now=T0) == 0


@pytest.mark.parametrize("hint,expected", [
    (PriorityHint.HIGH, 60),
    ('sibling', 50),
    ('SIBLING ', 50),
    ('none', 40),
    ('vip', 40),
    (None, 40),
])
def test_priority_hint_bonus(scorer, hint, expected):
    assert scorer.score(PrioritySignals(base_score=40, priority_hint=hint), now=T0) == expected


def test_open_spots_bonus_only_for_waitlisted(scorer):
    signals = PrioritySignals(base_score=40, available_spots=2, status='Waitlisted')
    assert scorer.score(signals, now=T0) == 50
    signals.status = 'contacted'
    assert scorer.score(signals, now=T0) == 40
    signals = PrioritySignals(base_score=40, available_spots=0, status='waitlisted')
    assert scorer.score(signals, now=T0) == 40


def test_overdue_follow_up_bonus(scorer):
    past = T0 - datetime.timedelta(days=1)
    future = T0 + datetime.timedelta(days=1)
    assert scorer.score(PrioritySignals(base_score=40, next_follow_up=past), now=T0) == 45
    assert scorer.score(PrioritySignals(base_score=40, next_follow_up=T0), now=T0) == 45
    assert scorer.score(PrioritySignals(base_score=40, next_follow_up=future), now=T0) == 40


def test_naive_follow_up_is_treated_as_utc(scorer):
    naive_past = datetime.datetime(2024, 12, 31, 9, 0)
    assert scorer.score(PrioritySignals(base_score=40, next_follow_up=naive_past), now=T0) == 45


def test_bonuses_stack_and_clamp(scorer):
    signals = PrioritySignals(
        base_score=90,
        priority_hint='high',
        available_spots=3,
        status='waitlisted',
        next_follow_up=T0 - datetime.timedelta(hours=1),
    )
    assert scorer.score(signals, now=T0) == 100


@pytest.mark.parametrize("value,expected", [
    (-12, 0), (0, 0), (49.5, 50), (49.4, 49), (72.5, 73), (100, 100), (135, 100),
])
def test_clamp_score(value, expected):
    assert clamp_score(value) == expected


@pytest.mark.parametrize("score,label", [
    (None, 'Standard'), (0, 'Standard'), (49, 'Standard'),
    (50, 'Sibling'), (79, 'Sibling'), (80, 'High'), (100, 'High'),
])
def test_priority_label(score, label):
    assert priority_label(score) == label
    assert PriorityScorer.label(score) == label


def test_analyze_high_priority_with_openings(scorer):
    follow_up = T0 - datetime.timedelta(days=2)
    analysis = scorer.analyze(PrioritySignals(
        base_score=60,
        priority_hint='high',
        available_spots=2,
        next_follow_up=follow_up,
        status='waitlisted',
        child_name='Ada',
    ), now=T0)

    assert analysis.priority_score == 95
    assert analysis.label == 'High'
    assert analysis.recommendations == [
        'Prioritize outreach due to high lead priority.',
        'Program has openings. Consider sending an offer.',
        'Follow-up date has passed. Contact the family as soon as possible.',
    ]
    assert analysis.summary.startswith('Ada is currently waitlisted.')
    assert '2 spot(s) are available' in analysis.summary
    assert 'Priority level: high.' in analysis.summary
    assert follow_up.isoformat() in analysis.summary


def test_analyze_toured_and_new_leads(scorer):
    toured = scorer.analyze(PrioritySignals(base_score=50, status='toured'), now=T0)
    assert toured.recommendations == [
        'Lead already toured. Share enrollment paperwork and next steps.']

    new = scorer.analyze(PrioritySignals(base_score=50), now=T0)
    assert new.recommendations == [
        'No recent engagement recorded. Introduce the program and schedule a call.']
    assert new.summary == 'This lead is currently waiting.'


def test_analyze_falls_back_to_regular_cadence(scorer):
    analysis = scorer.analyze(PrioritySignals(base_score=30, status='contacted'), now=T0)
    assert analysis.recommendations == ['Maintain regular communication cadence.']
    assert analysis.label == 'Standard'
