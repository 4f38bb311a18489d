#!/usr/bin/env python

"""
    Read-only lookups against the lead, enrollment, class and school
    tables owned by the rest of the intake system.

    Database failures surface as `UpstreamUnavailableError` so callers can
    decide whether to degrade or fail.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from functools import wraps
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from admissions.core.db import session as default_session
from admissions.core.exceptions import LeadNotFoundError, UpstreamUnavailableError
from admissions.core.models import Lead, Enrollment, EnrollmentStatus, SchoolClass, School
from admissions.core.utils import normalize_email

logger = logging.getLogger(__name__)


def upstream(name):
    def decorator(func_):
        @wraps(func_)
        def wrapper(self, *args, **kwargs):
            try:
                return func_(self, *args, **kwargs)
            except SQLAlchemyError as e:
                self.db.rollback()
                raise UpstreamUnavailableError(f"{name} lookup failed: {e}") from e
        return wrapper
    return decorator


class Lookup:

    def __init__(self, db=None):
        self.db = db or default_session


class LeadLookup(Lookup):

    @upstream('lead')
    def get_lead(self, lead_id):
        if lead := self.db.get(Lead, lead_id):
            return lead
        raise LeadNotFoundError(f"Lead {lead_id} not found.")

    @upstream('lead')
    def get_leads(self, lead_ids):
        if not lead_ids:
            return {}
        leads = self.db.query(Lead).filter(Lead.id.in_(list(lead_ids))).all()
        return {lead.id: lead for lead in leads}

    @upstream('lead')
    def find_leads_by_parent_email(self, email):
        email = normalize_email(email)
        if not email:
            return []
        return self.db.query(Lead).filter(
            func.lower(Lead.parent_email) == email
        ).order_by(Lead.created_at.asc()).all()


class EnrollmentLookup(Lookup):

    @upstream('enrollment')
    def list_active_enrollment_lead_ids(self, school_id, lead_ids):
        """Lead ids among `lead_ids` with an active enrollment; any school
        when `school_id` is None."""
        if not lead_ids:
            return set()
        query = self.db.query(Enrollment.lead_id).filter(
            Enrollment.lead_id.in_(list(lead_ids)),
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        if school_id is not None:
            query = query.filter(Enrollment.school_id == school_id)
        return {lead_id for (lead_id,) in query.all() if lead_id}

    @upstream('enrollment')
    def find_active_enrollments_by_parent_emails(self, school_id, emails):
        emails = sorted({normalize_email(e) for e in emails if normalize_email(e)})
        if not emails:
            return []
        rows = (
            self.db.query(Lead.parent_email, Enrollment.lead_id)
            .select_from(Enrollment)
            .join(Lead, Lead.id == Enrollment.lead_id)
            .filter(
                func.lower(Lead.parent_email).in_(emails),
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
                Enrollment.school_id == school_id,
            )
            .all()
        )
        return [(parent_email, lead_id) for parent_email, lead_id in rows]


class ClassLookup(Lookup):

    @upstream('class')
    def list_classes(self, school_id):
        rows = self.db.query(
            SchoolClass.program, SchoolClass.capacity, SchoolClass.current_enrollment
        ).filter(SchoolClass.school_id == school_id).all()
        return [
            {'program': program, 'capacity': capacity, 'current_enrollment': enrolled}
            for program, capacity, enrolled in rows
        ]


class SchoolLookup(Lookup):

    @upstream('school')
    def get_school_names(self, school_ids):
        if not school_ids:
            return {}
        rows = self.db.query(School.id, School.name).filter(School.id.in_(list(school_ids))).all()
        return dict(rows)
