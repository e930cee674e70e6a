"""
Basic Pattern Detector
Deterministic, AI-free grouping of tickets into recurring patterns and KB gaps
"""

from typing import Iterable, Optional

import structlog

from shared.dates import date_sort_key
from shared.schemas.pattern import GapType, KnowledgeGap, RecurringPattern
from shared.schemas.ticket import CanonicalTicket, KBArticle

logger = structlog.get_logger()

SIGNATURE_WORDS = 5
SIGNATURE_MIN_WORD_LENGTH = 4


def description_signature(short_description: str) -> str:
    """First 5 words longer than 3 characters, lower-cased, single-spaced"""
    words = [w for w in (short_description or "").lower().split() if len(w) >= SIGNATURE_MIN_WORD_LENGTH]
    return " ".join(words[:SIGNATURE_WORDS])


def seen_range(tickets: Iterable[CanonicalTicket]) -> tuple[str, str]:
    """(first_seen, last_seen) opened_at values; unparseable dates sort earliest"""
    ordered = sorted(tickets, key=lambda t: date_sort_key(t.opened_at))
    if not ordered:
        return "", ""
    return ordered[0].opened_at, ordered[-1].opened_at


def impact_estimate(count: int) -> str:
    if count >= 10:
        level = "High"
    elif count >= 5:
        level = "Medium"
    else:
        level = "Low"
    return f"{level} ({count} tickets)"


def _first_close_note(tickets: list[CanonicalTicket]) -> str:
    for ticket in tickets:
        if ticket.close_notes.strip():
            return ticket.close_notes.strip()
    return ""


def _group(tickets: Iterable[CanonicalTicket], key) -> dict:
    """Group preserving first-seen group order and member order"""
    groups: dict = {}
    for ticket in tickets:
        k = key(ticket)
        if k is None:
            continue
        groups.setdefault(k, []).append(ticket)
    return groups


class BasicPatternDetector:
    """
    Groups tickets by (category, subcategory) and by a short-description
    signature. Exact matching only: differently worded tickets never group,
    and the same tickets may appear in both a category and a signature pattern.
    """

    def __init__(self, min_occurrences: int = 3):
        self.min_occurrences = max(1, min_occurrences)

    def _pattern(self, label: str, members: list[CanonicalTicket]) -> RecurringPattern:
        first_seen, last_seen = seen_range(members)
        return RecurringPattern(
            pattern_label=label,
            occurrence_count=len(members),
            ticket_numbers=[t.number for t in members],
            first_seen=first_seen,
            last_seen=last_seen,
            suggested_resolution=(
                _first_close_note(members)
                or "Review the ticket history for a common root cause and document the fix."
            ),
            estimated_impact=impact_estimate(len(members)),
        )

    def category_patterns(self, tickets: list[CanonicalTicket]) -> list[RecurringPattern]:
        groups = _group(tickets, lambda t: (t.category, t.subcategory))
        return [
            self._pattern(f"Category: {category} > {subcategory}", members)
            for (category, subcategory), members in groups.items()
            if len(members) >= self.min_occurrences
        ]

    def description_patterns(self, tickets: list[CanonicalTicket]) -> list[RecurringPattern]:
        groups = _group(tickets, lambda t: description_signature(t.short_description) or None)
        return [
            self._pattern(f"Similar: {members[0].short_description}", members)
            for members in groups.values()
            if len(members) >= self.min_occurrences
        ]

    def detect_patterns(self, tickets: list[CanonicalTicket]) -> list[RecurringPattern]:
        """
        Category patterns followed by description patterns, stable-sorted by
        occurrence count descending.
        """
        patterns = self.category_patterns(tickets) + self.description_patterns(tickets)
        patterns.sort(key=lambda p: p.occurrence_count, reverse=True)
        logger.info(
            "Basic pattern detection complete",
            tickets=len(tickets),
            patterns=len(patterns),
            min_occurrences=self.min_occurrences,
        )
        return patterns

    def detect_gaps(
        self,
        tickets: list[CanonicalTicket],
        articles: Optional[list[KBArticle]] = None,
    ) -> list[KnowledgeGap]:
        """
        Missing gaps for categories with enough tickets and no KB article
        whose category or title contains the category name.
        """
        articles = articles or []
        gaps = []
        groups = _group(tickets, lambda t: t.category.strip() or None)
        for category, members in groups.items():
            if len(members) < self.min_occurrences:
                continue
            if has_matching_article(category, articles):
                continue
            gaps.append(KnowledgeGap(
                gap_type=GapType.MISSING,
                topic=category,
                related_ticket_numbers=[t.number for t in members],
                suggested_title=f"Troubleshooting {category} issues",
                suggested_content=draft_outline(category, members),
            ))
        gaps.sort(key=lambda g: len(g.related_ticket_numbers), reverse=True)
        logger.info("Basic gap detection complete", gaps=len(gaps), articles=len(articles))
        return gaps


def has_matching_article(topic: str, articles: list[KBArticle]) -> bool:
    needle = topic.lower()
    return any(
        needle in (a.category or "").lower() or needle in (a.title or "").lower()
        for a in articles
    )


def draft_outline(topic: str, tickets: list[CanonicalTicket]) -> str:
    """Article outline built from the tickets' own descriptions and close notes"""
    symptoms = []
    for t in tickets:
        if t.short_description and t.short_description not in symptoms:
            symptoms.append(t.short_description)
    fixes = []
    for t in tickets:
        note = t.close_notes.strip()
        if note and note not in fixes:
            fixes.append(note)

    lines = [f"Topic: {topic}", "", "Symptoms:"]
    lines.extend(f"- {s}" for s in symptoms[:5])
    lines.extend(["", "Resolution steps:"])
    if fixes:
        lines.extend(f"{i}. {fix}" for i, fix in enumerate(fixes[:5], start=1))
    else:
        lines.append("1. No resolution notes recorded; capture the fix on the next occurrence.")
    lines.extend(["", "Related tickets: " + ", ".join(t.number for t in tickets[:10])])
    return "\n".join(lines)
