"""
Free-Text Response Parser
Turns an unstructured LLM completion into RecurringPattern / KnowledgeGap records.

The model is asked for a fixed layout (see prompts.py) but nothing here
assumes it complied. Parsing never raises: a non-blank response that yields
no recognizable section becomes one record carrying the raw text.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

import structlog

from shared.dates import date_sort_key
from shared.schemas.pattern import GapType, KnowledgeGap, RecurringPattern
from shared.schemas.ticket import CanonicalTicket

from .detector import impact_estimate

logger = structlog.get_logger()

MIN_SECTION_CHARS = 20
MIN_TITLE_CHARS = 3
PATTERN_FALLBACK_LINES = 3
FALLBACK_TICKET_LIMIT = 10
FALLBACK_LABEL = "AI analysis (unstructured response)"

# Line that opens a new section: "#", "##" or "### 2", or a Pattern/Missing/
# Stale/Incomplete label followed by up to three words or numbers and a colon,
# bold or plain ("**Stale Article:**", "Pattern 2:").
HEADING_RE = re.compile(
    r"^[ \t]*(?:"
    r"#{1,3}(?!#)[ \t]*\d*"
    r"|[*_]{0,2}(?:pattern|missing|stale|incomplete)(?:[ \t]+(?:#?\d+|[A-Za-z]+)){0,3}"
    r"[ \t]*[*_]{0,2}[ \t]*:"
    r")",
    re.IGNORECASE | re.MULTILINE,
)

TICKET_ID_RE = re.compile(r"\b[A-Z]{2,6}-?\d{5,10}\b")

OCCURRENCES_RE = re.compile(r"occurrences?[*_]{0,2}[ \t]*[:=][ \t]*[*_]{0,2}[ \t]*(\d+)", re.IGNORECASE)

CONTENT_LABEL_RE = re.compile(
    r"^[ \t]*(?:[-*+][ \t]+)?(?:#{1,6}[ \t]*)?[*_]{0,2}"
    r"(?:suggested[ \t]+fix|suggested[ \t]+resolution|suggested[ \t]+content"
    r"|resolution|recommendations?|outline|steps)"
    r"[*_]{0,2}[ \t]*(?::[*_]{0,2}[ \t]*(?P<inline>.*))?$",
    re.IGNORECASE | re.MULTILINE,
)

# Lines that end a labeled content block inside a section
SUBHEADING_RE = re.compile(
    r"^[ \t]*(?:"
    r"#{1,6}[ \t]"
    r"|(?:[-*+][ \t]+)?[*_]{2}[^*_\n]{1,60}[*_]{2}[ \t]*:?[ \t]*$"
    r"|(?:[-*+][ \t]+)?[*_]{0,2}(?:occurrences?|tickets?|related[ \t]+tickets|(?:estimated[ \t]+)?impact"
    r"|root[ \t]+cause|first[ \t]+seen|last[ \t]+seen|time[ \t]+range|suggested[ \t]+title"
    r"|title|topic|evidence|category)[*_]{0,2}[ \t]*:"
    r")",
    re.IGNORECASE,
)

IMPACT_RE = re.compile(
    r"^[ \t]*(?:[-*+][ \t]+)?[*_]{0,2}(?:estimated[ \t]+)?impact[*_]{0,2}[ \t]*:[*_]{0,2}[ \t]*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)

SUGGESTED_TITLE_RE = re.compile(
    r"^[ \t]*(?:[-*+][ \t]+)?[*_]{0,2}suggested[ \t]+title[*_]{0,2}[ \t]*:[*_]{0,2}[ \t]*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)

LABEL_PREFIX_RE = re.compile(
    r"^(?:pattern|missing|stale|incomplete)(?:"
    r"(?:[ \t]+(?:gap|article|kb[ \t]+article|documentation))?[ \t]*#?\d*[ \t]*[:.)\-–]"
    r"|(?:[ \t]+[A-Za-z]+){1,3}[ \t]*#?\d*[ \t]*:"
    r")[ \t]*",
    re.IGNORECASE,
)
NUMBERING_RE = re.compile(r"^(?:#?\d+[.):]|\d+[ \t]+-)[ \t]*")


def _strip_emphasis(text: str) -> str:
    return text.replace("**", "").replace("__", "").strip().strip("*_`").strip()


def clean_title(line: str) -> str:
    """Heading text without markdown markers, numbering or a bare section label"""
    text = re.sub(r"^[ \t]*#{1,6}[ \t]*", "", line)
    text = _strip_emphasis(text)
    text = LABEL_PREFIX_RE.sub("", text)
    text = NUMBERING_RE.sub("", text)
    return text.strip(" \t-:*_`")


def split_sections(text: str) -> list[str]:
    """
    Split a response at heading-like lines.

    Text before the first heading is introductory and dropped, so a response
    without any heading yields no sections. Sections under 20 characters are
    noise and dropped.
    """
    starts = [m.start() for m in HEADING_RE.finditer(text)]
    sections = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(text)
        section = text[start:end].strip()
        if len(section) >= MIN_SECTION_CHARS:
            sections.append(section)
    return sections


def extract_ticket_numbers(text: str) -> list[str]:
    """Ticket identifiers in first-seen order, without duplicates"""
    seen: list[str] = []
    for match in TICKET_ID_RE.findall(text):
        if match not in seen:
            seen.append(match)
    return seen


def extract_occurrences(text: str, ticket_numbers: list[str]) -> int:
    match = OCCURRENCES_RE.search(text)
    if match:
        return int(match.group(1))
    return max(1, len(ticket_numbers))


def extract_labeled_content(text: str) -> Optional[str]:
    """Text under the first Suggested Fix / Resolution / Outline / ... label"""
    match = CONTENT_LABEL_RE.search(text)
    if not match:
        return None
    collected = []
    inline = (match.group("inline") or "").strip()
    if inline:
        collected.append(_strip_emphasis(inline))
    for line in text[match.end():].splitlines()[1:]:
        if SUBHEADING_RE.match(line) or HEADING_RE.match(line):
            break
        collected.append(line.rstrip())
    return "\n".join(collected).strip()


def _single_line_value(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    return _strip_emphasis(match.group(1)) if match else ""


def classify_gap(text: str) -> GapType:
    lowered = text.lower()
    if "stale" in lowered:
        return GapType.STALE
    if "incomplete" in lowered:
        return GapType.INCOMPLETE
    return GapType.MISSING


@dataclass
class ParsedSection:
    """Fields pulled from one section, shared by both output modes"""
    title: str
    body_lines: list[str]
    text: str
    ticket_numbers: list[str] = field(default_factory=list)


def parse_section(section: str) -> Optional[ParsedSection]:
    """Title, body and ticket ids of a section; None when the title is too short"""
    lines = section.splitlines()
    non_empty = [i for i, line in enumerate(lines) if line.strip()]
    if not non_empty:
        return None

    title_index = non_empty[0]
    title = clean_title(lines[title_index])
    if not title and len(non_empty) > 1:
        # Bare label line such as "**Pattern 1:**"; the title is on the next line
        title_index = non_empty[1]
        title = clean_title(lines[title_index])
    if len(title) < MIN_TITLE_CHARS:
        return None

    body_lines = [line.rstrip() for line in lines[title_index + 1:] if line.strip()]
    return ParsedSection(
        title=title,
        body_lines=body_lines,
        text=section,
        ticket_numbers=extract_ticket_numbers(section),
    )


class ResponseParser:
    """
    Parses completions against the ticket set that was sent in the prompt.
    The ticket set supplies dates for first/last seen and the fallback list.
    """

    def __init__(self, tickets: Optional[Iterable[CanonicalTicket]] = None):
        self.tickets = list(tickets or [])
        self._by_number = {}
        for ticket in self.tickets:
            self._by_number.setdefault(ticket.number, ticket)

    def _seen_range(self, ticket_numbers: list[str]) -> tuple[str, str]:
        matched = [self._by_number[n] for n in ticket_numbers if n in self._by_number]
        if not matched:
            return "", ""
        matched.sort(key=lambda t: date_sort_key(t.opened_at))
        return matched[0].opened_at, matched[-1].opened_at

    def _fallback_numbers(self) -> list[str]:
        return [t.number for t in self.tickets[:FALLBACK_TICKET_LIMIT]]

    def parse_patterns(self, text: Optional[str]) -> list[RecurringPattern]:
        """Recurring-issue records, sorted by occurrence count descending"""
        if not text or not text.strip():
            return []

        patterns = []
        for section in split_sections(text):
            parsed = parse_section(section)
            if parsed is None:
                continue
            count = extract_occurrences(section, parsed.ticket_numbers)
            content = extract_labeled_content(section)
            if content is None:
                content = "\n".join(parsed.body_lines[-PATTERN_FALLBACK_LINES:])
            first_seen, last_seen = self._seen_range(parsed.ticket_numbers)
            patterns.append(RecurringPattern(
                pattern_label=parsed.title,
                occurrence_count=count,
                ticket_numbers=parsed.ticket_numbers,
                first_seen=first_seen,
                last_seen=last_seen,
                suggested_resolution=content,
                estimated_impact=_single_line_value(IMPACT_RE, section) or impact_estimate(count),
            ))

        if not patterns:
            logger.warning("No structured patterns in AI response, keeping raw text",
                           response_chars=len(text))
            numbers = self._fallback_numbers()
            first_seen, last_seen = self._seen_range(numbers)
            count = max(1, len(numbers))
            patterns.append(RecurringPattern(
                pattern_label=FALLBACK_LABEL,
                occurrence_count=count,
                ticket_numbers=numbers,
                first_seen=first_seen,
                last_seen=last_seen,
                suggested_resolution=text,
                estimated_impact=impact_estimate(count),
            ))

        patterns.sort(key=lambda p: p.occurrence_count, reverse=True)
        return patterns

    def parse_gaps(self, text: Optional[str]) -> list[KnowledgeGap]:
        """Knowledge-gap records, sorted by related ticket count descending"""
        if not text or not text.strip():
            return []

        gaps = []
        for section in split_sections(text):
            parsed = parse_section(section)
            if parsed is None:
                continue
            content = extract_labeled_content(section)
            if content is None:
                content = "\n".join(parsed.body_lines)
            gaps.append(KnowledgeGap(
                gap_type=classify_gap(section),
                topic=parsed.title,
                related_ticket_numbers=parsed.ticket_numbers,
                suggested_title=_single_line_value(SUGGESTED_TITLE_RE, section) or parsed.title,
                suggested_content=content,
            ))

        if not gaps:
            logger.warning("No structured gaps in AI response, keeping raw text",
                           response_chars=len(text))
            gaps.append(KnowledgeGap(
                gap_type=GapType.MISSING,
                topic=FALLBACK_LABEL,
                related_ticket_numbers=self._fallback_numbers(),
                suggested_title=FALLBACK_LABEL,
                suggested_content=text,
            ))

        gaps.sort(key=lambda g: len(g.related_ticket_numbers), reverse=True)
        return gaps
