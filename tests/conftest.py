#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.conftest
    ~~~~~~~~~~~~~~

    Shared fixtures: an in-memory SQLite database with the admissions
    tables, and helpers to seed schools, leads, classes and waitlists.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import os
os.environ.setdefault("TESTING", "true")

import datetime
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from admissions.core.db import Base
from admissions.core.models import (
    School, Lead, Enrollment, SchoolClass, WaitlistEntry, WaitlistStatus,
)
from admissions.core.store import MemoryWaitlistStore, PartitionLocks, SQLWaitlistStore

T0 = datetime.datetime(2025, 1, 1, 9, 0, tzinfo=datetime.timezone.utc)


def at(minutes):
    return T0 + datetime.timedelta(minutes=minutes)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


class Seeder:
    """Writes fixture rows straight to the database, bypassing the engine."""

    def __init__(self, db):
        self.db = db
        self._leads = 0

    def school(self, id='s1', name='Maple Street'):
        school = School(id=id, name=name)
        self.db.add(school)
        self.db.commit()
        return school

    def lead(self, school_id='s1', **kwargs):
        self._leads += 1
        n = self._leads
        values = {
            'id': f'lead-{n}',
            'child_name': f'Child {n}',
            'parent_name': f'Parent {n}',
            'parent_email': f'parent{n}@example.com',
            'parent_phone': f'555-010{n}',
            'program': 'toddler',
            'lead_status': 'new',
            'lead_score': 50,
            'created_at': at(n),
        }
        values.update(kwargs)
        lead = Lead(school_id=school_id, **values)
        self.db.add(lead)
        self.db.commit()
        return lead

    def classroom(self, school_id='s1', program='toddler', capacity=10, enrolled=0):
        cls = SchoolClass(school_id=school_id, name=f'{program} room', program=program,
                          capacity=capacity, current_enrollment=enrolled)
        self.db.add(cls)
        self.db.commit()
        return cls

    def enrollment(self, lead_id, school_id='s1', status='active'):
        enrollment = Enrollment(lead_id=lead_id, school_id=school_id, status=status)
        self.db.add(enrollment)
        self.db.commit()
        return enrollment

    def entry(self, lead, position, program='toddler', status=WaitlistStatus.WAITLISTED.value,
              priority_score=0, created_at=None, **kwargs):
        entry = WaitlistEntry(
            id=kwargs.pop('id', f'w-{lead.id}'),
            lead_id=lead.id,
            school_id=lead.school_id,
            program=program,
            waitlist_position=position,
            priority_score=priority_score,
            status=status,
            created_at=created_at or at(position),
            **kwargs,
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def waitlist(self, count, school_id='s1', program='toddler'):
        """`count` active entries at positions 1..count, ids e1..eN."""
        entries = []
        for position in range(1, count + 1):
            lead = self.lead(school_id=school_id, program=program)
            entries.append(self.entry(lead, position, program=program, id=f'e{position}'))
        return entries


@pytest.fixture
def seed(db_session):
    seeder = Seeder(db_session)
    seeder.school()
    return seeder


@pytest.fixture
def sql_store(db_session):
    return SQLWaitlistStore(db_session, locks=PartitionLocks(), lock_timeout=1)


def memory_entries(count, school_id='s1', program='toddler', prefix='e'):
    return [
        WaitlistEntry(
            id=f'{prefix}{position}',
            lead_id=f'lead-{prefix}{position}',
            school_id=school_id,
            program=program,
            waitlist_position=position,
            priority_score=0,
            status=WaitlistStatus.WAITLISTED.value,
            created_at=at(position),
        )
        for position in range(1, count + 1)
    ]


@pytest.fixture
def memory_store():
    return MemoryWaitlistStore(memory_entries(5), lock_timeout=1)


def positions(store, school_id='s1', program='toddler'):
    """{entry id: position} for the active entries of a partition."""
    return {e.id: e.waitlist_position for e in store.list_by_partition(school_id, program)}


def assert_contiguous(store, school_id='s1', program='toddler'):
    found = sorted(e.waitlist_position for e in store.list_by_partition(school_id, program))
    assert found == list(range(1, len(found) + 1))


@pytest.fixture(params=['sql', 'memory'])
def store(request, db_session):
    """Both store implementations, each holding active entries e1..e5."""
    if request.param == 'sql':
        seeder = Seeder(db_session)
        seeder.school()
        seeder.waitlist(5)
        return SQLWaitlistStore(db_session, locks=PartitionLocks(), lock_timeout=1)
    return MemoryWaitlistStore(memory_entries(5), lock_timeout=1)
