"""
Prompt templates for ticket summaries, recurring patterns and KB gaps.

The section headings requested here are what parser.py segments on.
"""

from typing import Iterable, Optional

from shared.schemas.ticket import CanonicalTicket, KBArticle

# Longest ticket block sent to the model
MAX_PROMPT_TICKETS = 300


SUMMARY_PROMPT = """You are an IT service-management analyst. Summarize the tickets below for {subject}.

CRITICAL RULES:
1. ONLY use information present in the tickets
2. Reference ticket numbers when you describe an issue
3. Do NOT invent root causes, fixes or dates

TICKETS ({ticket_count}, one per line):
[Type] Number | OpenedAt | ShortDescription | State | Priority | AssignedTo | CloseNotes
{tickets}

Write a short report with these sections:
## Overview
## Open Items
## Notable Issues
## Recommendations"""


PATTERN_PROMPT = """You are an IT problem-management analyst. Find recurring issues in the tickets below.

Only report a pattern if at least {min_occurrences} tickets share the same underlying cause.

TICKETS ({ticket_count}, one per line):
[Type] Number | OpenedAt | ShortDescription | State | Priority | AssignedTo | CloseNotes
{tickets}

For EACH pattern use exactly this format:

### Pattern N: <short descriptive title>
- Occurrences: <number of tickets>
- Tickets: <comma-separated ticket numbers>
- Impact: <High/Medium/Low and why>
- Suggested Fix: <permanent fix or workaround>

Do not add any other sections."""


GAP_PROMPT = """You are a knowledge-management analyst. Compare the tickets below with the existing knowledge-base articles and find documentation gaps.

Gap types:
- Missing: recurring topic with no article
- Stale: an article exists but the tickets show it is out of date
- Incomplete: an article exists but misses steps the tickets needed

EXISTING KB ARTICLES:
{articles}

TICKETS ({ticket_count}, one per line):
[Type] Number | OpenedAt | ShortDescription | State | Priority | AssignedTo | CloseNotes
{tickets}

For EACH gap use exactly this format:

### Missing: <topic>   (or "### Stale: <topic>" / "### Incomplete: <topic>")
- Tickets: <comma-separated ticket numbers>
- Suggested Title: <article title>
- Suggested Content:
<article outline with numbered steps>

Do not add any other sections."""


def _cell(value: str) -> str:
    return " ".join((value or "").split()).replace("|", "/")


def format_ticket_line(ticket: CanonicalTicket) -> str:
    """[Type] Number | OpenedAt | ShortDescription | State | Priority | AssignedTo | CloseNotes"""
    return (
        f"[{ticket.ticket_type}] {ticket.number} | {_cell(ticket.opened_at)} | "
        f"{_cell(ticket.short_description)} | {_cell(ticket.state)} | "
        f"{_cell(ticket.priority)} | {_cell(ticket.assigned_to)} | "
        f"{_cell(ticket.close_notes)[:300]}"
    )


def format_tickets(
    tickets: Iterable[CanonicalTicket],
    limit: Optional[int] = MAX_PROMPT_TICKETS,
) -> str:
    tickets = list(tickets)
    if limit is not None:
        tickets = tickets[:limit]
    return "\n".join(format_ticket_line(t) for t in tickets)


def format_articles(articles: Iterable[KBArticle]) -> str:
    lines = [
        f"{a.number} | {_cell(a.title)} | {_cell(a.category)} | updated {a.last_updated or 'unknown'}"
        for a in articles
    ]
    return "\n".join(lines) if lines else "None"


def build_summary_prompt(tickets: list[CanonicalTicket], subject: str = "this ticket set") -> str:
    return SUMMARY_PROMPT.format(
        subject=subject,
        ticket_count=len(tickets),
        tickets=format_tickets(tickets),
    )


def build_pattern_prompt(tickets: list[CanonicalTicket], min_occurrences: int) -> str:
    return PATTERN_PROMPT.format(
        min_occurrences=min_occurrences,
        ticket_count=len(tickets),
        tickets=format_tickets(tickets),
    )


def build_gap_prompt(tickets: list[CanonicalTicket], articles: list[KBArticle]) -> str:
    return GAP_PROMPT.format(
        articles=format_articles(articles),
        ticket_count=len(tickets),
        tickets=format_tickets(tickets),
    )
