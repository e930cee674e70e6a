"""
ITSM Ticket Intelligence - Pattern Schemas

Outputs of recurring-issue detection and knowledge-gap analysis.
"""

from enum import Enum

from pydantic import BaseModel, Field


class GapType(str, Enum):
    """Kind of knowledge-base gap"""
    MISSING = "Missing"
    STALE = "Stale"
    INCOMPLETE = "Incomplete"


class RecurringPattern(BaseModel):
    """
    A group of tickets sharing a common cause or topic.
    ticket_numbers keeps discovery order.
    """
    pattern_label: str
    occurrence_count: int = 0
    ticket_numbers: list[str] = Field(default_factory=list)
    first_seen: str = ""
    last_seen: str = ""
    suggested_resolution: str = ""
    estimated_impact: str = ""

    class Config:
        json_schema_extra = {
            "example": {
                "pattern_label": "Category: Hardware > Disk",
                "occurrence_count": 3,
                "ticket_numbers": ["INC0010001", "INC0010004", "INC0010007"],
                "first_seen": "2026-03-02 09:14:00",
                "last_seen": "2026-05-20 16:40:00",
                "suggested_resolution": "Extend the data volume and rotate logs",
                "estimated_impact": "Low (3 tickets)",
            }
        }


class KnowledgeGap(BaseModel):
    """A topic with ticket volume but no adequate KB article"""
    gap_type: GapType = GapType.MISSING
    topic: str
    related_ticket_numbers: list[str] = Field(default_factory=list)
    suggested_title: str = ""
    suggested_content: str = ""

    class Config:
        use_enum_values = True
