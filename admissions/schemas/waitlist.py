from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from admissions.core.models import WaitlistStatus
from admissions.core.scoring import PriorityHint


class WaitlistEntry(BaseModel):
    id: str
    lead_id: str
    school_id: str
    program: str
    waitlist_position: int
    priority_score: int
    status: str
    notes: Optional[str] = None
    offer_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QueueLead(BaseModel):
    child_name: str
    parent_name: str
    parent_email: str
    parent_phone: str
    lead_status: str


class QueueEntry(BaseModel):
    id: str
    lead_id: str
    school_id: str
    school: str
    program: str
    waitlist_position: int
    position_in_program: int
    program_position: str
    available_spots: int
    priority_score: int
    priority_score_ui: int
    priority: str
    status: str
    display_status: str
    has_siblings: bool
    notes: str
    offer_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    lead: QueueLead


class ProgramCapacity(BaseModel):
    capacity: int
    enrolled: int
    available: int


class ProgramCount(BaseModel):
    program: str
    count: int


class QueueSchool(BaseModel):
    id: str
    name: str
    total_waitlist: int
    program_breakdown: List[ProgramCount]


class QueueStats(BaseModel):
    total_waitlisted: int
    total_schools: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class QueueResponse(BaseModel):
    entries: List[QueueEntry]
    capacity_by_program: Dict[str, ProgramCapacity]
    schools: List[QueueSchool]
    stats: QueueStats
    pagination: Pagination


class CountResponse(BaseModel):
    count: int


class ParentWaitlistEntry(BaseModel):
    id: str
    child_name: str
    program: str
    school_id: str
    school: str
    position: int
    status: str
    priority: str
    priority_score: int
    date_applied: Optional[datetime] = None
    estimated_time: str
    last_updated: Optional[datetime] = None
    notes: Optional[str] = None
    sibling_enrolled: bool
    tour_scheduled: Optional[datetime] = None


class PriorityAnalysis(BaseModel):
    priority_score: int
    label: str
    summary: str
    recommendations: List[str]


class EnqueueRequest(BaseModel):
    lead_id: str
    school_id: Optional[str] = None
    program: Optional[str] = None


class PositionRequest(BaseModel):
    position: int = Field(..., ge=1)


class StatusRequest(BaseModel):
    status: WaitlistStatus


class EntryUpdateRequest(BaseModel):
    """Omitted fields are left alone; an explicit null clears `notes`."""
    notes: Optional[str] = None
    priority_score: Optional[int] = Field(None, ge=0, le=10)


class PriorityRequest(BaseModel):
    priority_hint: PriorityHint = PriorityHint.NONE
    next_follow_up: Optional[datetime] = None
