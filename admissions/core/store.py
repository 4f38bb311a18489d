#!/usr/bin/env python

"""
    Waitlist persistence for Admissions.

    `WaitlistStore` is the only place waitlist rows are read or written.
    Every mutation happens inside `transaction(school_id, program)`, which
    holds the partition lock for its whole duration and either commits all
    of its writes or none of them.

    Two implementations share that contract:

    * `SQLWaitlistStore` over a SQLAlchemy session. On PostgreSQL it also
      takes transaction-scoped advisory locks on the lead and partition,
      and the partition's rows with SELECT ... FOR UPDATE.
    * `MemoryWaitlistStore`, a process-local store that snapshots the
      partition on entry and restores it on failure.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
import threading
from contextlib import contextmanager, ExitStack
from sqlalchemy import func, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from admissions.configs import WAITLIST_LOCK_TIMEOUT
from admissions.core.db import session as default_session
from admissions.core.exceptions import AlreadyQueuedError, EntryNotFoundError, TransactionConflictError
from admissions.core.models import (
    WaitlistEntry,
    WaitlistStatus,
    ACTIVE_STATUSES,
    ACTIVE_LEAD_INDEX,
    is_terminal_status,
    new_id,
)
from admissions.core.patch import EntryPatch
from admissions.core.utils import utcnow

logger = logging.getLogger(__name__)

# pg_advisory_xact_lock(int, int) namespaces; released at commit or rollback
LEAD_LOCK_SPACE = 1
PARTITION_LOCK_SPACE = 2
ADVISORY_LOCK = text("SELECT pg_advisory_xact_lock(:space, hashtext(:key))")

# Columns that must never change through `update_fields`
PROTECTED_FIELDS = frozenset({'id', 'lead_id', 'school_id', 'program', 'waitlist_position', 'created_at'})


class PartitionLocks:
    """One lock per `(school_id, program)` partition and one per lead;
    distinct keys never contend. Lead locks are always taken before the
    partition lock."""

    PARTITION = 'partition'
    LEAD = 'lead'

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def get(self, key, kind=PARTITION):
        with self._guard:
            return self._locks.setdefault((kind, key), threading.Lock())

    @contextmanager
    def hold(self, key, timeout=None, kind=PARTITION):
        lock = self.get(key, kind)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise TransactionConflictError(
                f"Timed out after {timeout}s waiting for waitlist {kind} {key}.")
        try:
            yield
        finally:
            lock.release()


# Shared by every SQL store in the process so concurrent requests serialize
partition_locks = PartitionLocks()


def _sort_key(entry):
    return (entry.waitlist_position, entry.created_at, entry.id)


class WaitlistStore:

    def __init__(self, locks=None, lock_timeout=None):
        self.locks = locks or PartitionLocks()
        self.lock_timeout = WAITLIST_LOCK_TIMEOUT if lock_timeout is None else lock_timeout
        self._local = threading.local()

    @property
    def current_partition(self):
        return getattr(self._local, 'partition', None)

    @contextmanager
    def transaction(self, school_id, program, lead_id=None):
        """
        Locks the partition, and the lead when `lead_id` is given, for the
        duration of one all-or-nothing unit of work. Pass `lead_id` for any
        write that can give that lead an active entry.
        """
        key = (school_id, program)
        current = self.current_partition
        if current is not None:
            # Nested use joins the enclosing unit of work
            if current != key:
                raise RuntimeError(
                    f"Cannot open partition {key} inside a transaction on {current}.")
            if lead_id is not None and lead_id != self.current_lead:
                raise RuntimeError(
                    f"Lead {lead_id} must be locked by the outermost transaction on {key}.")
            yield self
            return
        with ExitStack() as stack:
            if lead_id is not None:
                stack.enter_context(
                    self.locks.hold(lead_id, self.lock_timeout, kind=PartitionLocks.LEAD))
            stack.enter_context(self.locks.hold(key, self.lock_timeout))
            self._local.partition = key
            self._local.lead = lead_id
            try:
                with self._unit_of_work():
                    yield self
            finally:
                self._local.partition = None
                self._local.lead = None

    @property
    def current_lead(self):
        return getattr(self._local, 'lead', None)

    def _unit_of_work(self):
        raise NotImplementedError

    def _require_transaction(self, entry):
        if self.current_partition != entry.partition:
            raise RuntimeError(
                f"Waitlist writes to {entry.partition} must run inside "
                f"store.transaction({entry.school_id!r}, {entry.program!r}).")

    @staticmethod
    def _changes(patch):
        changes = patch.to_columns() if isinstance(patch, EntryPatch) else dict(patch)
        illegal = PROTECTED_FIELDS.intersection(changes)
        if illegal:
            raise ValueError(f"Fields cannot be patched: {sorted(illegal)}")
        return changes

    # Reads
    def get(self, entry_id, for_update=False):
        raise NotImplementedError

    def list_by_partition(self, school_id, program, include_terminal=False, for_update=False):
        raise NotImplementedError

    def count_active(self, school_id, program):
        raise NotImplementedError

    def find_active_by_lead(self, lead_id):
        raise NotImplementedError

    def list_active(self, school_ids=None, program=None, status=None):
        raise NotImplementedError

    def list_by_leads(self, lead_ids, include_terminal=False):
        raise NotImplementedError

    def count(self, status=None, school_ids=None):
        """Entries of any status, optionally narrowed by status and schools."""
        raise NotImplementedError

    def partitions(self):
        raise NotImplementedError

    # Writes (transaction only)
    def create(self, entry):
        raise NotImplementedError

    def update_position(self, entry_id, position):
        raise NotImplementedError

    def shift_positions(self, school_id, program, low, high, delta, exclude_id=None):
        """Add `delta` to every active position in [low, high]."""
        raise NotImplementedError

    def update_fields(self, entry_id, patch):
        raise NotImplementedError


class SQLWaitlistStore(WaitlistStore):

    def __init__(self, db=None, locks=None, **kwargs):
        super().__init__(locks=locks or partition_locks, **kwargs)
        self.db = db or default_session

    @contextmanager
    def _unit_of_work(self):
        try:
            self._lock_database()
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Waitlist transaction on {self.current_partition} rolled back: {e}")
            raise TransactionConflictError(f"Waitlist update failed, safe to retry: {e}") from e
        except BaseException:
            self.db.rollback()
            raise

    def _lock_database(self):
        """Serializes instances sharing one PostgreSQL database. Advisory
        locks cover empty partitions and inserts, which row locks miss."""
        if self.db.get_bind().dialect.name != 'postgresql':
            return
        self.db.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout * 1000)}ms'"))
        if self.current_lead is not None:
            self.db.execute(ADVISORY_LOCK, {'space': LEAD_LOCK_SPACE, 'key': str(self.current_lead)})
        school_id, program = self.current_partition
        self.db.execute(ADVISORY_LOCK, {'space': PARTITION_LOCK_SPACE, 'key': f"{school_id}:{program}"})

    def _active(self, query):
        return query.filter(WaitlistEntry.status.in_(ACTIVE_STATUSES))

    def _ordered(self, query):
        return query.order_by(
            WaitlistEntry.waitlist_position.asc(),
            WaitlistEntry.created_at.asc(),
            WaitlistEntry.id.asc(),
        )

    def get(self, entry_id, for_update=False):
        query = self.db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        if entry := query.first():
            return entry
        raise EntryNotFoundError(f"Waitlist entry {entry_id} not found.")

    def list_by_partition(self, school_id, program, include_terminal=False, for_update=False):
        query = self.db.query(WaitlistEntry).filter(
            WaitlistEntry.school_id == school_id,
            WaitlistEntry.program == program,
        )
        if not include_terminal:
            query = self._active(query)
        if for_update:
            query = query.with_for_update().populate_existing()
        return self._ordered(query).all()

    def count_active(self, school_id, program):
        return self._active(self.db.query(func.count(WaitlistEntry.id)).filter(
            WaitlistEntry.school_id == school_id,
            WaitlistEntry.program == program,
        )).scalar() or 0

    def find_active_by_lead(self, lead_id):
        return self._active(self.db.query(WaitlistEntry).filter(
            WaitlistEntry.lead_id == lead_id)).first()

    def list_active(self, school_ids=None, program=None, status=None):
        query = self._active(self.db.query(WaitlistEntry))
        if school_ids:
            query = query.filter(WaitlistEntry.school_id.in_(list(school_ids)))
        if program:
            query = query.filter(
                func.lower(WaitlistEntry.program).contains(program.strip().lower(), autoescape=True))
        if status:
            query = query.filter(WaitlistEntry.status == status)
        return self._ordered(query.order_by(
            WaitlistEntry.school_id.asc(), WaitlistEntry.program.asc())).all()

    def count(self, status=None, school_ids=None):
        query = self.db.query(func.count(WaitlistEntry.id))
        if status:
            query = query.filter(WaitlistEntry.status == status)
        if school_ids:
            query = query.filter(WaitlistEntry.school_id.in_(list(school_ids)))
        return query.scalar() or 0

    def list_by_leads(self, lead_ids, include_terminal=False):
        if not lead_ids:
            return []
        query = self.db.query(WaitlistEntry).filter(WaitlistEntry.lead_id.in_(list(lead_ids)))
        if not include_terminal:
            query = self._active(query)
        return self._ordered(query).all()

    def partitions(self):
        rows = self._active(self.db.query(
            WaitlistEntry.school_id, WaitlistEntry.program).distinct()).all()
        return sorted((school_id, program) for school_id, program in rows)

    def _flush(self, entry):
        try:
            self.db.flush()
        except IntegrityError as e:
            if ACTIVE_LEAD_INDEX in str(e.orig) or 'waitlist.lead_id' in str(e.orig):
                raise AlreadyQueuedError(
                    f"Lead {entry.lead_id} already has an active waitlist entry.") from e
            raise

    def create(self, entry):
        self._require_transaction(entry)
        self.db.add(entry)
        self._flush(entry)
        return entry

    def update_position(self, entry_id, position):
        entry = self.get(entry_id)
        self._require_transaction(entry)
        entry.waitlist_position = position
        self.db.flush()
        return entry

    def shift_positions(self, school_id, program, low, high, delta, exclude_id=None):
        if self.current_partition != (school_id, program):
            raise RuntimeError(f"Shifting {(school_id, program)} requires its transaction.")
        stmt = (
            update(WaitlistEntry)
            .where(
                WaitlistEntry.school_id == school_id,
                WaitlistEntry.program == program,
                WaitlistEntry.status.in_(ACTIVE_STATUSES),
                WaitlistEntry.waitlist_position >= low,
                WaitlistEntry.waitlist_position <= high,
            )
            .values(waitlist_position=WaitlistEntry.waitlist_position + delta)
            .execution_options(synchronize_session='fetch')
        )
        if exclude_id is not None:
            stmt = stmt.where(WaitlistEntry.id != exclude_id)
        result = self.db.execute(stmt)
        self.db.flush()
        return result.rowcount

    def update_fields(self, entry_id, patch):
        changes = self._changes(patch)
        entry = self.get(entry_id)
        self._require_transaction(entry)
        for field, value in changes.items():
            setattr(entry, field, value)
        self._flush(entry)
        return entry


class MemoryWaitlistStore(WaitlistStore):
    """Process-local store with all-or-nothing partition transactions.

    Rows are kept as plain dicts and handed out as detached
    `WaitlistEntry` copies, so callers can only change them through the
    store. `on_write` is called after every write, which lets tests force
    thread switches between the steps of a transaction.
    """

    def __init__(self, entries=(), on_write=None, **kwargs):
        super().__init__(**kwargs)
        self._rows = {}
        self._guard = threading.RLock()
        self.on_write = on_write
        for entry in entries:
            self._rows[entry.id] = self._row(entry)

    @staticmethod
    def _row(entry):
        row = entry.to_dict()
        now = utcnow()
        row['priority_score'] = row['priority_score'] or 0
        row['status'] = row['status'] or WaitlistStatus.WAITLISTED.value
        row['created_at'] = row['created_at'] or now
        row['updated_at'] = row['updated_at'] or row['created_at']
        return row

    def _partition_rows(self, key):
        return {id_: row for id_, row in self._rows.items()
                if (row['school_id'], row['program']) == key}

    @contextmanager
    def _unit_of_work(self):
        key = self.current_partition
        with self._guard:
            snapshot = {id_: dict(row) for id_, row in self._partition_rows(key).items()}
        try:
            yield
        except BaseException:
            with self._guard:
                for id_ in self._partition_rows(key):
                    del self._rows[id_]
                self._rows.update(snapshot)
            logger.warning(f"Waitlist transaction on {key} rolled back")
            raise

    def _written(self):
        if self.on_write is not None:
            self.on_write()

    def _entries(self, predicate):
        with self._guard:
            entries = [WaitlistEntry(**row) for row in self._rows.values() if predicate(row)]
        return sorted(entries, key=_sort_key)

    def get(self, entry_id, for_update=False):
        with self._guard:
            row = self._rows.get(entry_id)
            if row is None:
                raise EntryNotFoundError(f"Waitlist entry {entry_id} not found.")
            return WaitlistEntry(**row)

    def list_by_partition(self, school_id, program, include_terminal=False, for_update=False):
        return self._entries(lambda row: (
            row['school_id'] == school_id and row['program'] == program
            and (include_terminal or not is_terminal_status(row['status']))))

    def count_active(self, school_id, program):
        return len(self.list_by_partition(school_id, program))

    def find_active_by_lead(self, lead_id):
        entries = self._entries(lambda row: (
            row['lead_id'] == lead_id and not is_terminal_status(row['status'])))
        return entries[0] if entries else None

    def list_active(self, school_ids=None, program=None, status=None):
        school_ids = set(school_ids or ())
        entries = self._entries(lambda row: (
            not is_terminal_status(row['status'])
            and (not school_ids or row['school_id'] in school_ids)
            and (not program or program.strip().lower() in (row['program'] or '').lower())
            and (not status or row['status'] == status)))
        return sorted(entries, key=lambda e: (e.school_id, e.program) + _sort_key(e))

    def count(self, status=None, school_ids=None):
        school_ids = set(school_ids or ())
        with self._guard:
            return sum(
                1 for row in self._rows.values()
                if (not status or row['status'] == status)
                and (not school_ids or row['school_id'] in school_ids))

    def list_by_leads(self, lead_ids, include_terminal=False):
        lead_ids = set(lead_ids or ())
        return self._entries(lambda row: (
            row['lead_id'] in lead_ids
            and (include_terminal or not is_terminal_status(row['status']))))

    def partitions(self):
        with self._guard:
            return sorted({(row['school_id'], row['program']) for row in self._rows.values()
                           if not is_terminal_status(row['status'])})

    def _check_single_active(self, row):
        """Mirrors the database's one-active-entry-per-lead index."""
        if is_terminal_status(row['status']):
            return
        for other in self._rows.values():
            if (other['id'] != row['id'] and other['lead_id'] == row['lead_id']
                    and not is_terminal_status(other['status'])):
                raise AlreadyQueuedError(
                    f"Lead {row['lead_id']} already has active waitlist entry {other['id']}.")

    def create(self, entry):
        self._require_transaction(entry)
        if entry.id is None:
            entry.id = new_id()
        row = self._row(entry)
        with self._guard:
            self._check_single_active(row)
            self._rows[row['id']] = row
        self._written()
        return WaitlistEntry(**row)

    def _update(self, entry_id, changes):
        entry = self.get(entry_id)
        self._require_transaction(entry)
        with self._guard:
            row = self._rows[entry_id]
            if 'status' in changes:
                self._check_single_active(dict(row, status=changes['status']))
            row.update(changes)
            row['updated_at'] = utcnow()
            entry = WaitlistEntry(**row)
        self._written()
        return entry

    def update_position(self, entry_id, position):
        return self._update(entry_id, {'waitlist_position': position})

    def shift_positions(self, school_id, program, low, high, delta, exclude_id=None):
        if self.current_partition != (school_id, program):
            raise RuntimeError(f"Shifting {(school_id, program)} requires its transaction.")
        shifted = 0
        for entry in self.list_by_partition(school_id, program):
            if entry.id != exclude_id and low <= entry.waitlist_position <= high:
                self._update(entry.id, {'waitlist_position': entry.waitlist_position + delta})
                shifted += 1
        return shifted

    def update_fields(self, entry_id, patch):
        return self._update(entry_id, self._changes(patch))
