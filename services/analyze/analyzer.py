"""
Ticket Analyzer
Runs AI pattern/gap/summary analysis with a deterministic fallback
"""

from typing import Optional, Protocol

import structlog

from shared.errors import UpstreamRequestError
from shared.schemas.report import AnalysisResult
from shared.schemas.ticket import CanonicalTicket, KBArticle

from .detector import BasicPatternDetector
from .parser import ResponseParser
from .prompts import build_gap_prompt, build_pattern_prompt, build_summary_prompt

logger = structlog.get_logger()

EMPTY_WARNING = "No tickets matched; nothing to analyze."


class Completer(Protocol):
    def complete(self, prompt: str) -> str: ...


def basic_summary(tickets: list[CanonicalTicket], subject: str = "this ticket set") -> str:
    """Plain-text summary used when no AI summary is available"""
    open_count = sum(1 for t in tickets if t.is_open)
    by_type: dict[str, int] = {}
    for ticket in tickets:
        by_type[ticket.ticket_type] = by_type.get(ticket.ticket_type, 0) + 1
    type_text = ", ".join(f"{count} {name}" for name, count in sorted(by_type.items()))
    lines = [
        f"{len(tickets)} tickets for {subject} ({type_text or 'none'}).",
        f"{open_count} still open, {len(tickets) - open_count} closed or resolved.",
    ]
    open_items = [t for t in tickets if t.is_open][:10]
    if open_items:
        lines.append("Open items:")
        lines.extend(f"- {t.number}: {t.short_description} [{t.state}]" for t in open_items)
    return "\n".join(lines)


class TicketAnalyzer:
    """
    Pattern, gap and summary analysis over canonical tickets.

    Without a completion client the basic detector runs. When the completion
    call fails with UpstreamRequestError the failure is caught once, recorded
    as a warning, and the basic detector runs instead. A blank completion is
    treated the same way for that call only.
    """

    def __init__(
        self,
        completion_client: Optional[Completer] = None,
        min_occurrences: int = 3,
    ):
        self.completion_client = completion_client
        self.min_occurrences = min_occurrences
        self.detector = BasicPatternDetector(min_occurrences=min_occurrences)
        self._ai_error: Optional[str] = None

    def _complete(self, prompt: str, result: AnalysisResult, task: str) -> Optional[str]:
        """Completion text, or None after recording a fallback warning"""
        if self.completion_client is None:
            return None
        if self._ai_error:
            # AI stays off for the rest of the run after the first failure
            result.warnings.append(f"AI {task} skipped after earlier failure ({self._ai_error}).")
            return None
        try:
            text = self.completion_client.complete(prompt)
        except UpstreamRequestError as e:
            self._ai_error = str(e)
            message = f"AI {task} unavailable ({e}); used basic detection instead."
            logger.warning("AI request failed, falling back", task=task, error=str(e),
                           status_code=e.status_code)
            result.warnings.append(message)
            return None
        if not text or not text.strip():
            logger.warning("AI returned an empty completion, falling back", task=task)
            result.warnings.append(f"AI {task} returned no text; used basic detection instead.")
            return None
        result.used_ai = True
        return text

    def find_patterns(self, tickets: list[CanonicalTicket]) -> AnalysisResult:
        result = AnalysisResult()
        if not tickets:
            logger.warning("Pattern analysis skipped, no tickets")
            result.warnings.append(EMPTY_WARNING)
            return result

        text = self._complete(build_pattern_prompt(tickets, self.min_occurrences), result, "pattern analysis")
        if text is None:
            result.patterns = self.detector.detect_patterns(tickets)
        else:
            result.patterns = ResponseParser(tickets).parse_patterns(text)
        return result

    def find_gaps(
        self,
        tickets: list[CanonicalTicket],
        articles: Optional[list[KBArticle]] = None,
    ) -> AnalysisResult:
        result = AnalysisResult()
        articles = articles or []
        if not tickets:
            logger.warning("Gap analysis skipped, no tickets")
            result.warnings.append(EMPTY_WARNING)
            return result

        text = self._complete(build_gap_prompt(tickets, articles), result, "gap analysis")
        if text is None:
            result.gaps = self.detector.detect_gaps(tickets, articles)
        else:
            result.gaps = ResponseParser(tickets).parse_gaps(text)
        return result

    def summarize(self, tickets: list[CanonicalTicket], subject: str = "this ticket set") -> AnalysisResult:
        result = AnalysisResult()
        if not tickets:
            result.warnings.append(EMPTY_WARNING)
            return result

        text = self._complete(build_summary_prompt(tickets, subject), result, "summary")
        if text is None:
            result.summary = basic_summary(tickets, subject)
        else:
            result.summary = text.strip()
        return result

    def analyze(
        self,
        tickets: list[CanonicalTicket],
        subject: str = "this ticket set",
        include_summary: bool = True,
    ) -> AnalysisResult:
        """Summary plus recurring patterns, merged into one result"""
        patterns = self.find_patterns(tickets)
        if not include_summary:
            return patterns
        summary = self.summarize(tickets, subject)
        return AnalysisResult(
            patterns=patterns.patterns,
            summary=summary.summary,
            used_ai=patterns.used_ai or summary.used_ai,
            warnings=_unique(patterns.warnings + summary.warnings),
        )


def _unique(items: list[str]) -> list[str]:
    seen: list[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
