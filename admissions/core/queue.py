#!/usr/bin/env python

"""
    Ranked waitlist views for staff and parents.

    Both views rank each `(school_id, program)` partition by
    `(priority_score DESC, created_at ASC)` for display. That display rank
    is computed here and is independent of the stored, manually adjustable
    `waitlist_position`, which the staff view reports alongside it.

    The staff view can instead be ordered across partitions by position,
    priority or date with `QueueScope.sort_by`.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List, Optional
from admissions.configs import QUEUE_DEFAULT_LIMIT, QUEUE_MAX_LIMIT
from admissions.core.capacity import CapacityAggregator
from admissions.core.exceptions import LeadNotFoundError, UpstreamUnavailableError
from admissions.core.patch import to_ui_score
from admissions.core.scoring import priority_label
from admissions.core.siblings import SiblingResolver
from admissions.core.utils import as_utc, normalize_email

logger = logging.getLogger(__name__)

NO_CLASSES = 'No classes'
UNKNOWN_SCHOOL = 'Unknown School'
UNKNOWN_CHILD = 'Unknown Child'
UNKNOWN_PARENT = 'Unknown Parent'

# Leads in these states have already converted and never show as waitlisted
CONVERTED_LEAD_STATUSES = frozenset({'enrolled', 'registered'})

PARENT_STATUS_LABELS = {
    'contacted': 'Contacted',
    'interested': 'Interested',
    'toured': 'Toured',
    'enrolled': 'Enrolled',
    'declined': 'Declined',
}

WAIT_TIME_ESTIMATES = (
    (3, '1-2 weeks'),
    (6, '2-4 weeks'),
    (10, '1-2 months'),
)
LONGEST_WAIT_ESTIMATE = '2-3 months'


def display_status(status) -> str:
    return PARENT_STATUS_LABELS.get((status or '').strip().lower(), 'Waitlisted')


def estimate_wait_time(position) -> str:
    for limit, estimate in WAIT_TIME_ESTIMATES:
        if position <= limit:
            return estimate
    return LONGEST_WAIT_ESTIMATE


def display_rank_key(entry):
    created_at = as_utc(entry.created_at)
    return (-(entry.priority_score or 0), created_at.timestamp() if created_at else 0.0)


def _timestamp(value):
    value = as_utc(value)
    return value.timestamp() if value else 0.0


SORT_KEYS = {
    'position': lambda row: row['waitlist_position'] or 0,
    'priority': lambda row: row['priority_score'] or 0,
    'date': lambda row: _timestamp(row['created_at']),
}


def sort_rows(rows, sort_by, sort_order='asc'):
    """Orders staff rows across partitions. Priority ties fall back to
    ascending position; other ties keep their display order."""
    if not sort_by:
        return rows
    key = SORT_KEYS.get(sort_by, SORT_KEYS['position'])
    if sort_by == 'priority':
        rows = sorted(rows, key=SORT_KEYS['position'])
    return sorted(rows, key=key, reverse=(sort_order or 'asc').lower() == 'desc')


def rank_partitions(entries):
    """Groups entries by partition and orders each group for display."""
    partitions = OrderedDict()
    for entry in entries:
        partitions.setdefault(entry.partition, []).append(entry)
    for group in partitions.values():
        group.sort(key=display_rank_key)
    return partitions


@dataclass
class QueueScope:
    school_ids: List[str] = field(default_factory=list)
    program: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None
    page: int = 1
    limit: int = QUEUE_DEFAULT_LIMIT
    sort_by: Optional[str] = None
    sort_order: str = 'asc'

    @property
    def take(self):
        return max(1, min(self.limit or QUEUE_DEFAULT_LIMIT, QUEUE_MAX_LIMIT))

    @property
    def skip(self):
        return (max(1, self.page or 1) - 1) * self.take


class QueueAssembler:

    def __init__(self, store, leads, enrollments, capacity: CapacityAggregator,
                 siblings: SiblingResolver, schools):
        self.store = store
        self.leads = leads
        self.enrollments = enrollments
        self.capacity = capacity
        self.siblings = siblings
        self.schools = schools

    def _lead_map(self, entries):
        try:
            return self.leads.get_leads(sorted({e.lead_id for e in entries}))
        except UpstreamUnavailableError as e:
            logger.warning(f"Lead details unavailable for waitlist view: {e}")
            return {}

    def _school_names(self, school_ids):
        try:
            return self.schools.get_school_names(sorted(school_ids))
        except UpstreamUnavailableError as e:
            logger.warning(f"School names unavailable for waitlist view: {e}")
            return {}

    def _enrolled_lead_ids(self, school_id, lead_ids):
        try:
            return self.enrollments.list_active_enrollment_lead_ids(school_id, sorted(lead_ids))
        except UpstreamUnavailableError as e:
            logger.warning(f"Enrollment lookup unavailable for school {school_id}: {e}")
            return set()

    @staticmethod
    def _matches(lead, search):
        if not search:
            return True
        needle = search.strip().lower()
        haystack = (
            getattr(lead, 'child_name', None),
            getattr(lead, 'parent_name', None),
            getattr(lead, 'parent_email', None),
        )
        return any(needle in (value or '').lower() for value in haystack)

    def get_queue(self, scope: QueueScope = None):
        scope = scope or QueueScope()
        entries = self.store.list_active(
            school_ids=scope.school_ids, program=scope.program, status=scope.status)
        leads = self._lead_map(entries)

        enrolled = set()
        for school_id in {e.school_id for e in entries}:
            enrolled |= self._enrolled_lead_ids(
                school_id, {e.lead_id for e in entries if e.school_id == school_id})

        visible = []
        for entry in entries:
            lead = leads.get(entry.lead_id)
            lead_status = (getattr(lead, 'lead_status', None) or '').lower()
            if entry.lead_id in enrolled or lead_status == 'enrolled':
                continue
            if not self._matches(lead, scope.search):
                continue
            visible.append(entry)

        school_ids = list(OrderedDict.fromkeys(e.school_id for e in visible))
        per_school, combined = self.capacity.snapshot_many(school_ids)
        siblings = {
            school_id: self.siblings.resolve(school_id, [
                getattr(leads.get(e.lead_id), 'parent_email', None)
                for e in visible if e.school_id == school_id
            ])
            for school_id in school_ids
        }
        names = self._school_names(school_ids)

        rows = []
        for (school_id, program), ranked in rank_partitions(visible).items():
            snapshot = per_school.get(school_id, {})
            has_classes = program in snapshot
            available = CapacityAggregator.available(snapshot, program)
            for rank, entry in enumerate(ranked, start=1):
                lead = leads.get(entry.lead_id)
                parent_email = getattr(lead, 'parent_email', None) or ''
                rows.append({
                    'id': entry.id,
                    'lead_id': entry.lead_id,
                    'school_id': school_id,
                    'school': names.get(school_id) or UNKNOWN_SCHOOL,
                    'program': program,
                    'waitlist_position': entry.waitlist_position,
                    'position_in_program': rank,
                    'program_position': f"{rank} of {len(ranked)}" if has_classes else NO_CLASSES,
                    'available_spots': available,
                    'priority_score': entry.priority_score or 0,
                    'priority_score_ui': to_ui_score(entry.priority_score),
                    'priority': priority_label(entry.priority_score),
                    'status': entry.status,
                    'display_status': display_status(entry.status),
                    'has_siblings': SiblingResolver.has_siblings(
                        siblings.get(school_id, {}), parent_email, entry.lead_id),
                    'notes': entry.notes or getattr(lead, 'notes', None) or '',
                    'offer_date': entry.offer_date,
                    'created_at': entry.created_at,
                    'updated_at': entry.updated_at,
                    'lead': {
                        'child_name': getattr(lead, 'child_name', None) or UNKNOWN_CHILD,
                        'parent_name': getattr(lead, 'parent_name', None) or UNKNOWN_PARENT,
                        'parent_email': parent_email,
                        'parent_phone': getattr(lead, 'parent_phone', None) or '',
                        'lead_status': getattr(lead, 'lead_status', None) or '',
                    },
                })

        total = len(rows)
        schools = self._school_summary(rows)
        rows = sort_rows(rows, scope.sort_by, scope.sort_order)
        return {
            'entries': rows[scope.skip:scope.skip + scope.take],
            'capacity_by_program': {program: bucket.to_dict() for program, bucket in combined.items()},
            'schools': schools,
            'stats': {
                'total_waitlisted': total,
                'total_schools': len(schools),
            },
            'pagination': {
                'page': max(1, scope.page or 1),
                'limit': scope.take,
                'total': total,
                'total_pages': max(1, math.ceil(total / scope.take)),
            },
        }

    @staticmethod
    def _school_summary(rows):
        schools = OrderedDict()
        for row in rows:
            school = schools.setdefault(row['school_id'], {
                'id': row['school_id'],
                'name': row['school'],
                'total_waitlist': 0,
                'program_breakdown': OrderedDict(),
            })
            school['total_waitlist'] += 1
            breakdown = school['program_breakdown']
            breakdown[row['program']] = breakdown.get(row['program'], 0) + 1
        return [
            dict(school, program_breakdown=[
                {'program': program, 'count': count}
                for program, count in school['program_breakdown'].items()
            ])
            for school in schools.values()
        ]

    def get_parent_view(self, parent_email):
        """
        Waitlist entries for one family, as the parent sees them.

        Positions are a per-partition counter over the family's own visible
        entries, not the global `waitlist_position`.
        """
        email = normalize_email(parent_email)
        if not email:
            raise LeadNotFoundError("Parent email is required to view waitlist information.")

        leads = {
            lead.id: lead for lead in self.leads.find_leads_by_parent_email(email)
            if (lead.lead_status or '').lower() not in CONVERTED_LEAD_STATUSES
        }
        if not leads:
            return []

        entries = self.store.list_by_leads(sorted(leads))
        enrolled = self._enrolled_lead_ids(None, {e.lead_id for e in entries})
        visible = [e for e in entries if e.lead_id not in enrolled]
        if not visible:
            return []

        school_ids = list(OrderedDict.fromkeys(e.school_id for e in visible))
        names = self._school_names(school_ids)
        siblings = {school_id: self.siblings.resolve(school_id, [email]) for school_id in school_ids}

        counters = {}
        rows = []
        for entry in sorted(visible, key=display_rank_key):
            counters[entry.partition] = position = counters.get(entry.partition, 0) + 1
            lead = leads[entry.lead_id]
            rows.append({
                'id': entry.id,
                'child_name': lead.child_name or UNKNOWN_CHILD,
                'program': entry.program,
                'school_id': entry.school_id,
                'school': names.get(entry.school_id) or UNKNOWN_SCHOOL,
                'position': position,
                'status': display_status(entry.status),
                'priority': priority_label(entry.priority_score),
                'priority_score': entry.priority_score or 0,
                'date_applied': entry.created_at,
                'estimated_time': estimate_wait_time(position),
                'last_updated': entry.updated_at,
                'notes': entry.notes or lead.notes or None,
                'sibling_enrolled': SiblingResolver.has_siblings(
                    siblings.get(entry.school_id, {}), email, entry.lead_id),
                'tour_scheduled': entry.offer_date,
            })
        return rows
