"""
ITSM Ticket Intelligence - Ticket Schemas

Defines the CanonicalTicket every source is normalized into, the tagged raw
record variants, and knowledge-base articles.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from shared.dates import parse_date

# Substrings that mark a free-text state as no longer open
CLOSED_STATE_WORDS = ("closed", "resolved", "cancelled", "completed", "done")


class TicketType(str, Enum):
    """Canonical ticket types"""
    INCIDENT = "Incident"
    CHANGE_REQUEST = "ChangeRequest"
    PROBLEM = "Problem"
    SERVICE_REQUEST = "ServiceRequest"
    REQUESTED_ITEM = "RequestedItem"


class TicketSource(str, Enum):
    """Provenance tag for a ticket"""
    SERVICENOW = "servicenow"
    JIRA = "jira"
    FILE = "file"


class UserRole(str, Enum):
    """Which people fields a user filter matches against"""
    REQUESTER = "Requester"
    ASSIGNEE = "Assignee"
    BOTH = "Both"
    ALL = "All"


def is_open_state(state: Optional[str]) -> bool:
    """A state is open unless it mentions one of the closed-state words.

    Source systems use unbounded free-text states, so this is a substring
    heuristic rather than an enum lookup.
    """
    lowered = (state or "").lower()
    return not any(word in lowered for word in CLOSED_STATE_WORDS)


class CanonicalTicket(BaseModel):
    """
    Normalized ticket record shared by every source.
    Built once during normalization and never mutated.
    """
    class Config:
        frozen = True

    # Identity
    number: str
    ticket_type: str = TicketType.INCIDENT.value
    source: str = TicketSource.FILE.value

    # Content
    short_description: str = ""
    description: str = ""
    state: str = ""
    priority: str = ""
    category: str = ""
    subcategory: str = ""

    # Raw date strings; parsed on demand so unparseable values survive for display
    opened_at: str = ""
    closed_at: str = ""
    resolved_at: str = ""

    # People
    assigned_to: str = ""
    caller_name: str = ""

    # Resolution detail
    close_notes: str = ""
    work_notes: str = ""
    ci_name: str = ""

    @field_validator("ticket_type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        if isinstance(value, TicketType):
            return value.value
        return value or TicketType.INCIDENT.value

    @property
    def opened_date(self) -> Optional[datetime]:
        return parse_date(self.opened_at)

    @property
    def is_open(self) -> bool:
        return is_open_state(self.state)


class RawTicketRecord(BaseModel):
    """
    Raw record exactly as received from a source, tagged with its schema.
    """
    source: TicketSource
    table: str = ""  # ServiceNow table name; empty for other sources
    raw_payload: dict = Field(default_factory=dict)


class KBArticle(BaseModel):
    """Existing knowledge-base article, used only for gap analysis"""
    number: str
    title: str = ""
    content: str = ""
    category: str = ""
    last_updated: str = ""
    workflow_state: str = ""
