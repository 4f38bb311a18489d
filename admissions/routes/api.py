#!/usr/bin/env python

"""
    API routes for Admissions,
    exposing the waitlist queue, parent view and staff edits.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from contextlib import contextmanager
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from admissions.core import db as database
from admissions.core.api import AdmissionsAPI
from admissions.core.patch import EntryPatch, UNSET
from admissions.core.queue import QueueScope
from admissions.core.exceptions import (
    AdmissionsAPIError,
    AlreadyQueuedError,
    EntryNotFoundError,
    InvalidPositionError,
    InvalidScoreError,
    InvalidStatusError,
    LeadNotFoundError,
    TransactionConflictError,
    UpstreamUnavailableError,
)
from admissions.configs import QUEUE_DEFAULT_LIMIT, QUEUE_MAX_LIMIT
from admissions.schemas import waitlist as schemas

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    EntryNotFoundError: status.HTTP_404_NOT_FOUND,
    LeadNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidPositionError: status.HTTP_400_BAD_REQUEST,
    InvalidStatusError: status.HTTP_400_BAD_REQUEST,
    InvalidScoreError: status.HTTP_400_BAD_REQUEST,
    AlreadyQueuedError: status.HTTP_409_CONFLICT,
    TransactionConflictError: status.HTTP_409_CONFLICT,
    UpstreamUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

router = APIRouter()


def get_api():
    db = database.SessionLocal()
    try:
        yield AdmissionsAPI.from_session(db)
    finally:
        db.close()


@contextmanager
def api_errors():
    try:
        yield
    except AdmissionsAPIError as e:
        code = ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST)
        if code >= 500 or isinstance(e, TransactionConflictError):
            logger.error(f"Waitlist request failed: {e}")
        raise HTTPException(status_code=code, detail=str(e))


@router.get("/waitlist", response_model=schemas.QueueResponse)
def get_queue(
        school_ids: Optional[str] = None,
        program: Optional[str] = None,
        status_filter: Optional[str] = Query(None, alias="status"),
        search: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(QUEUE_DEFAULT_LIMIT, ge=1, le=QUEUE_MAX_LIMIT),
        sort_by: Optional[str] = Query(None, pattern="^(position|priority|date)$"),
        sort_order: str = Query("asc", pattern="^(asc|desc)$"),
        api: AdmissionsAPI = Depends(get_api)):
    scope = QueueScope(
        school_ids=[s.strip() for s in (school_ids or '').split(',') if s.strip()],
        program=program,
        status=status_filter,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    with api_errors():
        return api.get_queue(scope)


@router.get("/waitlist/count", response_model=schemas.CountResponse)
def count_waitlist(
        status_filter: Optional[str] = Query(None, alias="status"),
        school_id: Optional[str] = None,
        api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        return {'count': api.count_waitlist(status=status_filter, school_id=school_id)}


@router.get("/waitlist/parent", response_model=List[schemas.ParentWaitlistEntry])
def get_parent_view(email: str, api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        return api.get_parent_view(email)


@router.post("/waitlist", response_model=schemas.WaitlistEntry, status_code=status.HTTP_201_CREATED)
def enqueue(payload: schemas.EnqueueRequest, api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        entry = api.enqueue(payload.lead_id, school_id=payload.school_id, program=payload.program)
        return schemas.WaitlistEntry.model_validate(entry)


@router.patch("/waitlist/{entry_id}/position", response_model=schemas.WaitlistEntry)
def reorder(entry_id: str, payload: schemas.PositionRequest, api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        return schemas.WaitlistEntry.model_validate(api.reorder(entry_id, payload.position))


@router.patch("/waitlist/{entry_id}/status", response_model=schemas.WaitlistEntry)
def update_status(entry_id: str, payload: schemas.StatusRequest, api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        return schemas.WaitlistEntry.model_validate(api.update_status(entry_id, payload.status))


@router.patch("/waitlist/{entry_id}", response_model=schemas.WaitlistEntry)
def update_entry(entry_id: str, payload: schemas.EntryUpdateRequest, api: AdmissionsAPI = Depends(get_api)):
    data = payload.model_dump(exclude_unset=True)
    patch = EntryPatch(
        notes=data.get('notes', UNSET),
        priority_score_ui=data.get('priority_score', UNSET),
    )
    with api_errors():
        return schemas.WaitlistEntry.model_validate(api.update_fields(entry_id, patch))


@router.post("/waitlist/{entry_id}/priority", response_model=schemas.WaitlistEntry)
def recompute_priority(entry_id: str, payload: schemas.PriorityRequest, api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        entry = api.recompute_priority(
            entry_id, priority_hint=payload.priority_hint, next_follow_up=payload.next_follow_up)
        return schemas.WaitlistEntry.model_validate(entry)


@router.post("/waitlist/{entry_id}/analysis", response_model=schemas.PriorityAnalysis)
def analyze(entry_id: str, payload: schemas.PriorityRequest, api: AdmissionsAPI = Depends(get_api)):
    with api_errors():
        analysis = api.analyze(
            entry_id, priority_hint=payload.priority_hint, next_follow_up=payload.next_follow_up)
        return schemas.PriorityAnalysis(**vars(analysis))
