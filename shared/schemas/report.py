"""
ITSM Ticket Intelligence - Report Schemas

Structured output handed to the HTML renderer and KB draft writer.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from shared.dates import utcnow

from .pattern import KnowledgeGap, RecurringPattern
from .ticket import CanonicalTicket

DRAFT_WORKFLOW_STATE = "draft"


class RoleBucket(str, Enum):
    """Role a ticket was found under in a per-user query, in merge order"""
    REQUESTER = "Requester"
    ASSIGNEE = "Assignee"
    MENTIONED = "Mentioned"


class TimelineEntry(BaseModel):
    """One ticket on a timeline"""
    date: str
    number: str
    ticket_type: str = ""
    short_description: str = ""
    state: str = ""
    is_open: bool = True


class TicketStats(BaseModel):
    """Derived counts over a ticket set"""
    total: int = 0
    open: int = 0
    closed: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_state: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Patterns, gaps and summary text from one analysis run"""
    patterns: list[RecurringPattern] = Field(default_factory=list)
    gaps: list[KnowledgeGap] = Field(default_factory=list)
    summary: str = ""
    used_ai: bool = False
    warnings: list[str] = Field(default_factory=list)


class CIReport(BaseModel):
    """Everything known about one configuration item"""
    ci_name: str
    generated_at: datetime = Field(default_factory=utcnow)
    tickets: list[CanonicalTicket] = Field(default_factory=list)
    open_items: list[CanonicalTicket] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    stats: TicketStats = Field(default_factory=TicketStats)
    analysis: AnalysisResult = Field(default_factory=AnalysisResult)


class UserReport(BaseModel):
    """Tickets a user requested, worked on, or was mentioned in"""
    user: str
    generated_at: datetime = Field(default_factory=utcnow)
    buckets: dict[str, list[CanonicalTicket]] = Field(default_factory=dict)
    open_items: list[CanonicalTicket] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    stats: TicketStats = Field(default_factory=TicketStats)
    analysis: AnalysisResult = Field(default_factory=AnalysisResult)


class KBDraft(BaseModel):
    """
    Knowledge-base article draft generated from a gap.
    Always unpublished: workflow_state is forced to draft.
    """
    gap_type: str
    topic: str
    related_tickets: list[str] = Field(default_factory=list)
    suggested_title: str
    suggested_content: str = ""
    category: str = ""
    workflow_state: str = DRAFT_WORKFLOW_STATE

    @field_validator("workflow_state", mode="before")
    @classmethod
    def _force_draft(cls, value):
        return DRAFT_WORKFLOW_STATE
