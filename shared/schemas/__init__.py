"""ITSM Ticket Intelligence Shared Schemas"""

from .pattern import GapType, KnowledgeGap, RecurringPattern
from .report import (
    DRAFT_WORKFLOW_STATE,
    AnalysisResult,
    CIReport,
    KBDraft,
    RoleBucket,
    TicketStats,
    TimelineEntry,
    UserReport,
)
from .ticket import (
    CanonicalTicket,
    KBArticle,
    RawTicketRecord,
    TicketSource,
    TicketType,
    UserRole,
    is_open_state,
)

__all__ = [
    # Ticket schemas
    "CanonicalTicket",
    "RawTicketRecord",
    "KBArticle",
    "TicketType",
    "TicketSource",
    "UserRole",
    "is_open_state",
    # Pattern schemas
    "GapType",
    "RecurringPattern",
    "KnowledgeGap",
    # Report schemas
    "RoleBucket",
    "TimelineEntry",
    "TicketStats",
    "AnalysisResult",
    "CIReport",
    "UserReport",
    "KBDraft",
    "DRAFT_WORKFLOW_STATE",
]
