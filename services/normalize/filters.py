"""
Post-normalization filters: age cutoff, configuration item, and user role.
"""

from datetime import datetime
from typing import Iterable, Optional

from shared.dates import subtract_months, utcnow
from shared.schemas.ticket import CanonicalTicket, UserRole


def cutoff_date(months_back: int, now: Optional[datetime] = None) -> datetime:
    return subtract_months(now or utcnow(), months_back)


def within_cutoff(ticket: CanonicalTicket, cutoff: datetime) -> bool:
    """Tickets without a parseable opened date are never cut off"""
    opened = ticket.opened_date
    if opened is None:
        return True
    return opened >= cutoff


def _contains(haystack: str, needle: str) -> bool:
    return needle in (haystack or "").lower()


def matches_ci(ticket: CanonicalTicket, ci_name: str) -> bool:
    needle = ci_name.strip().lower()
    return (
        _contains(ticket.ci_name, needle)
        or _contains(ticket.short_description, needle)
        or _contains(ticket.description, needle)
    )


def matches_user(ticket: CanonicalTicket, user: str, role: UserRole = UserRole.BOTH) -> bool:
    needle = user.strip().lower()
    is_caller = _contains(ticket.caller_name, needle)
    is_assignee = _contains(ticket.assigned_to, needle)

    if role == UserRole.REQUESTER:
        return is_caller
    if role == UserRole.ASSIGNEE:
        return is_assignee
    if role == UserRole.ALL:
        return (
            is_caller
            or is_assignee
            or _contains(ticket.description, needle)
            or _contains(ticket.work_notes, needle)
        )
    return is_caller or is_assignee


def apply_filters(
    tickets: Iterable[CanonicalTicket],
    ci_name: Optional[str] = None,
    user: Optional[str] = None,
    role: UserRole = UserRole.BOTH,
) -> list[CanonicalTicket]:
    """Apply the optional CI and user filters, preserving order"""
    result = list(tickets)
    if ci_name:
        result = [t for t in result if matches_ci(t, ci_name)]
    if user:
        result = [t for t in result if matches_user(t, user, role)]
    return result
