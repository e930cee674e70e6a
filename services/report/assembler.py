"""
Report Assembler
Role-bucket merging, timelines and derived counts for CI and user reports
"""

from collections import Counter
from typing import Iterable, Mapping, Optional

import structlog

from shared.dates import date_sort_key, format_day
from shared.schemas.report import (
    AnalysisResult,
    CIReport,
    RoleBucket,
    TicketStats,
    TimelineEntry,
    UserReport,
)
from shared.schemas.ticket import CanonicalTicket, is_open_state

logger = structlog.get_logger()

ROLE_ORDER = (RoleBucket.REQUESTER, RoleBucket.ASSIGNEE, RoleBucket.MENTIONED)


def is_open(ticket: CanonicalTicket) -> bool:
    return is_open_state(ticket.state)


def sort_tickets(tickets: Iterable[CanonicalTicket]) -> list[CanonicalTicket]:
    """Opened date ascending; unparseable dates first, ties keep input order"""
    return sorted(tickets, key=lambda t: date_sort_key(t.opened_at))


def dedupe_tickets(tickets: Iterable[CanonicalTicket]) -> list[CanonicalTicket]:
    """First occurrence of each ticket number wins"""
    seen: set[str] = set()
    unique = []
    for ticket in tickets:
        if ticket.number in seen:
            continue
        seen.add(ticket.number)
        unique.append(ticket)
    return unique


def merge_role_buckets(
    buckets: Mapping[RoleBucket, Iterable[CanonicalTicket]],
) -> dict[RoleBucket, list[CanonicalTicket]]:
    """
    Merge per-role query results in the fixed order Requester -> Assignee ->
    Mentioned. A ticket number lands only in the first bucket it appears in.
    """
    seen: set[str] = set()
    merged: dict[RoleBucket, list[CanonicalTicket]] = {}
    for role in ROLE_ORDER:
        kept = []
        for ticket in buckets.get(role, []):
            if ticket.number in seen:
                continue
            seen.add(ticket.number)
            kept.append(ticket)
        merged[role] = sort_tickets(kept)
    return merged


def build_timeline(tickets: Iterable[CanonicalTicket]) -> list[TimelineEntry]:
    """One entry per ticket, dated YYYY-MM-DD when the opened date parses"""
    return [
        TimelineEntry(
            date=format_day(t.opened_at),
            number=t.number,
            ticket_type=t.ticket_type,
            short_description=t.short_description,
            state=t.state,
            is_open=is_open(t),
        )
        for t in sort_tickets(tickets)
    ]


def compute_stats(tickets: Iterable[CanonicalTicket]) -> TicketStats:
    tickets = list(tickets)
    open_count = sum(1 for t in tickets if is_open(t))
    return TicketStats(
        total=len(tickets),
        open=open_count,
        closed=len(tickets) - open_count,
        by_type=dict(Counter(t.ticket_type for t in tickets).most_common()),
        by_state=dict(Counter(t.state or "Unknown" for t in tickets).most_common()),
        by_priority=dict(Counter(t.priority or "Unknown" for t in tickets).most_common()),
    )


def build_ci_report(
    ci_name: str,
    tickets: Iterable[CanonicalTicket],
    analysis: Optional[AnalysisResult] = None,
) -> CIReport:
    """Everything about one configuration item, deduplicated and date-sorted"""
    ordered = sort_tickets(dedupe_tickets(tickets))
    logger.info("Assembled CI report", ci_name=ci_name, tickets=len(ordered))
    return CIReport(
        ci_name=ci_name,
        tickets=ordered,
        open_items=[t for t in ordered if is_open(t)],
        timeline=build_timeline(ordered),
        stats=compute_stats(ordered),
        analysis=analysis or AnalysisResult(),
    )


def build_user_report(
    user: str,
    buckets: Mapping[RoleBucket, Iterable[CanonicalTicket]],
    analysis: Optional[AnalysisResult] = None,
) -> UserReport:
    """Role-bucketed tickets for one user"""
    merged = merge_role_buckets(buckets)
    all_tickets = sort_tickets(t for role in ROLE_ORDER for t in merged[role])
    logger.info(
        "Assembled user report",
        user=user,
        **{role.value.lower(): len(merged[role]) for role in ROLE_ORDER},
    )
    return UserReport(
        user=user,
        buckets={role.value: merged[role] for role in ROLE_ORDER},
        open_items=[t for t in all_tickets if is_open(t)],
        timeline=build_timeline(all_tickets),
        stats=compute_stats(all_tickets),
        analysis=analysis or AnalysisResult(),
    )

