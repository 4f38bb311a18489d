#!/usr/bin/env python

"""
    Waitlist Models for Admissions,
    including the waitlist entry table and the external records
    (schools, leads, enrollments, classes) the engine reads.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
import uuid
from sqlalchemy import Column, String, Boolean, Integer, DateTime, Text, ForeignKey, Index, text
from admissions.core.db import Base
from admissions.core.exceptions import InvalidStatusError
from admissions.core.utils import utcnow


def new_id():
    return str(uuid.uuid4())


class WaitlistStatus(str, enum.Enum):
    WAITLISTED = 'waitlisted'
    CONTACTED = 'contacted'
    INTERESTED = 'interested'
    TOURED = 'toured'
    DECLINED = 'declined'
    ENROLLED = 'enrolled'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidStatusError(f"Unknown waitlist status: {value!r}.")

    @property
    def is_terminal(self):
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({WaitlistStatus.DECLINED, WaitlistStatus.ENROLLED})

ACTIVE_STATUSES = tuple(s.value for s in WaitlistStatus if s not in TERMINAL_STATUSES)

# At most one active entry per lead, across every partition
ACTIVE_LEAD_INDEX = 'uq_waitlist_active_lead'
ACTIVE_LEAD_WHERE = "status IN (" + ", ".join(f"'{s}'" for s in ACTIVE_STATUSES) + ")"


def is_terminal_status(status) -> bool:
    try:
        return WaitlistStatus.parse(status).is_terminal
    except InvalidStatusError:
        return False


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = 'active'
    PENDING = 'pending'
    WITHDRAWN = 'withdrawn'
    COMPLETED = 'completed'


class School(Base):
    __tablename__ = 'schools'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(String(36), primary_key=True, default=new_id)
    school_id = Column(String(36), ForeignKey('schools.id'), nullable=False, index=True)
    child_name = Column(String(255))
    parent_name = Column(String(255))
    parent_email = Column(String(255), index=True)
    parent_phone = Column(String(50))
    program = Column(String(100))
    lead_status = Column(String(30), default='new', nullable=False)
    lead_score = Column(Integer)
    notes = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    next_follow_up_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Enrollment(Base):
    __tablename__ = 'enrollments'

    id = Column(String(36), primary_key=True, default=new_id)
    lead_id = Column(String(36), ForeignKey('leads.id'), nullable=False, index=True)
    school_id = Column(String(36), ForeignKey('schools.id'), nullable=False)
    status = Column(String(20), default=EnrollmentStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class SchoolClass(Base):
    __tablename__ = 'classes'

    id = Column(String(36), primary_key=True, default=new_id)
    school_id = Column(String(36), ForeignKey('schools.id'), nullable=False, index=True)
    name = Column(String(255))
    program = Column(String(100))
    capacity = Column(Integer, default=0, nullable=False)
    current_enrollment = Column(Integer, default=0, nullable=False)


class WaitlistEntry(Base):
    __tablename__ = 'waitlist'

    id = Column(String(36), primary_key=True, default=new_id)
    lead_id = Column(String(36), ForeignKey('leads.id', ondelete='CASCADE'), nullable=False, index=True)
    school_id = Column(String(36), ForeignKey('schools.id'), nullable=False)
    program = Column(String(100), nullable=False)
    waitlist_position = Column(Integer, nullable=False)
    priority_score = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default=WaitlistStatus.WAITLISTED.value, nullable=False)
    notes = Column(Text)
    offer_date = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_waitlist_partition', 'school_id', 'program', 'waitlist_position'),
        Index(ACTIVE_LEAD_INDEX, 'lead_id', unique=True,
              postgresql_where=text(ACTIVE_LEAD_WHERE), sqlite_where=text(ACTIVE_LEAD_WHERE)),
    )

    FIELDS = (
        'id', 'lead_id', 'school_id', 'program', 'waitlist_position',
        'priority_score', 'status', 'notes', 'offer_date', 'created_at', 'updated_at',
    )

    @property
    def partition(self):
        return (self.school_id, self.program)

    @property
    def is_active(self):
        return not is_terminal_status(self.status)

    def to_dict(self):
        return {field: getattr(self, field) for field in self.FIELDS}

    def __repr__(self):
        return (f"<WaitlistEntry(id='{self.id}', partition={self.partition}, "
                f"position={self.waitlist_position}, status='{self.status}')>")
