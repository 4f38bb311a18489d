import logging
from admissions.configs import DEFAULT_PROGRAM
from admissions.core import db as database
from admissions.core.capacity import CapacityAggregator
from admissions.core.exceptions import AlreadyQueuedError
from admissions.core.lookups import LeadLookup, EnrollmentLookup, ClassLookup, SchoolLookup
from admissions.core.models import WaitlistEntry, WaitlistStatus
from admissions.core.patch import EntryPatch
from admissions.core.queue import QueueAssembler, QueueScope
from admissions.core.reorder import PositionReorderer
from admissions.core.scoring import PriorityScorer, PrioritySignals
from admissions.core.siblings import SiblingResolver
from admissions.core.store import SQLWaitlistStore
from admissions.core.transitions import AdmissionTransition

logger = logging.getLogger(__name__)


class AdmissionsAPI:
    """Entry point for everything outside the waitlist engine."""

    def __init__(self, store, leads, enrollments, classes, schools, scorer=None):
        self.store = store
        self.leads = leads
        self.scorer = scorer or PriorityScorer()
        self.capacity = CapacityAggregator(classes)
        self.siblings = SiblingResolver(enrollments)
        self.reorderer = PositionReorderer(store)
        self.transitions = AdmissionTransition(store)
        self.queue = QueueAssembler(
            store, leads, enrollments, self.capacity, self.siblings, schools)

    @classmethod
    def from_session(cls, db=None):
        db = db or database.session
        return cls(
            SQLWaitlistStore(db),
            LeadLookup(db),
            EnrollmentLookup(db),
            ClassLookup(db),
            SchoolLookup(db),
        )

    def get_queue(self, scope=None, **filters):
        return self.queue.get_queue(scope or QueueScope(**filters))

    def get_parent_view(self, parent_email):
        return self.queue.get_parent_view(parent_email)

    def count_waitlist(self, status=None, school_id=None):
        """Entries of every status, terminal included, unless narrowed."""
        if status:
            status = WaitlistStatus.parse(status).value
        return self.store.count(status=status, school_ids=[school_id] if school_id else None)

    def reorder(self, entry_id, new_position):
        return self.reorderer.reorder(entry_id, new_position)

    def renormalize_all(self):
        return self.reorderer.renormalize_all()

    def update_status(self, entry_id, status):
        return self.transitions.set_status(entry_id, status)

    def update_fields(self, entry_id, patch: EntryPatch):
        entry = self.store.get(entry_id)
        if patch.is_empty():
            return entry
        with self.store.transaction(*entry.partition):
            entry = self.store.update_fields(entry_id, patch)
        logger.info(f"Updated waitlist entry {entry_id}: {sorted(patch.to_columns())}")
        return entry

    def enqueue(self, lead_id, school_id=None, program=None):
        """
        Adds a lead to the back of its program's waitlist.

        Raises:
            LeadNotFoundError: If the lead does not exist.
            AlreadyQueuedError: If the lead already holds an active entry.
        """
        lead = self.leads.get_lead(lead_id)
        school_id = school_id or lead.school_id
        program = program or lead.program or DEFAULT_PROGRAM

        if existing := self.store.find_active_by_lead(lead_id):
            raise AlreadyQueuedError(f"Lead {lead_id} is already waitlisted as {existing.id}.")

        with self.store.transaction(school_id, program, lead_id=lead_id):
            if existing := self.store.find_active_by_lead(lead_id):
                raise AlreadyQueuedError(f"Lead {lead_id} is already waitlisted as {existing.id}.")
            entry = self.store.create(WaitlistEntry(
                lead_id=lead_id,
                school_id=school_id,
                program=program,
                waitlist_position=self.reorderer.next_position(school_id, program),
                priority_score=0,
                status=WaitlistStatus.WAITLISTED.value,
            ))
        logger.info(f"Lead {lead_id} joined {program} waitlist at position {entry.waitlist_position}")
        return entry

    def _signals(self, entry, priority_hint=None, next_follow_up=None):
        lead = self.leads.get_lead(entry.lead_id)
        snapshot = self.capacity.snapshot(entry.school_id)
        return PrioritySignals(
            base_score=lead.lead_score,
            priority_hint=priority_hint,
            available_spots=CapacityAggregator.available(snapshot, entry.program),
            next_follow_up=next_follow_up if next_follow_up is not None else lead.next_follow_up_at,
            status=entry.status,
            child_name=lead.child_name,
        )

    def analyze(self, entry_id, priority_hint=None, next_follow_up=None, now=None):
        entry = self.store.get(entry_id)
        return self.scorer.analyze(self._signals(entry, priority_hint, next_follow_up), now=now)

    def recompute_priority(self, entry_id, priority_hint=None, next_follow_up=None, now=None):
        entry = self.store.get(entry_id)
        score = self.scorer.score(self._signals(entry, priority_hint, next_follow_up), now=now)
        with self.store.transaction(*entry.partition):
            entry = self.store.update_fields(entry_id, {'priority_score': score})
        logger.info(f"Recomputed priority for waitlist entry {entry_id}: {score}")
        return entry
