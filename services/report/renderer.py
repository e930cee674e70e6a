"""
HTML Report Renderer
Standalone HTML pages for CI and user reports. All ticket text is escaped.
"""

from html import escape
from pathlib import Path
from typing import Union

import structlog

from shared.schemas.report import AnalysisResult, CIReport, TicketStats, TimelineEntry, UserReport
from shared.schemas.ticket import CanonicalTicket

logger = structlog.get_logger()

STYLE = """
    body {
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
        line-height: 1.5;
        max-width: 1100px;
        margin: 0 auto;
        padding: 20px;
        color: #333;
    }
    h1 { color: #2F5496; border-bottom: 2px solid #2F5496; padding-bottom: 10px; }
    h2 { color: #2F5496; margin-top: 30px; }
    table { border-collapse: collapse; width: 100%; margin: 16px 0; }
    th, td { border: 1px solid #ddd; padding: 6px 8px; text-align: left; vertical-align: top; }
    th { background-color: #2F5496; color: white; }
    tr:nth-child(even) { background-color: #f9f9f9; }
    .open { color: #b00020; font-weight: bold; }
    .warning { background: #fff4e5; border-left: 4px solid #ff9800; padding: 8px 12px; }
    pre { white-space: pre-wrap; background: #f4f4f4; padding: 10px; border-radius: 3px; }
"""


def _e(value) -> str:
    return escape(str(value if value is not None else ""))


def _table(headers: list[str], rows: list[list]) -> str:
    if not rows:
        return "<p><em>None.</em></p>"
    head = "".join(f"<th>{_e(h)}</th>" for h in headers)
    body = "\n".join(
        "<tr>" + "".join(f"<td>{_e(cell)}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<table><thead><tr>{head}</tr></thead><tbody>\n{body}\n</tbody></table>"


def render_stats(stats: TicketStats) -> str:
    rows = [["Total", stats.total], ["Open", stats.open], ["Closed", stats.closed]]
    rows += [[f"Type: {k}", v] for k, v in stats.by_type.items()]
    rows += [[f"Priority: {k}", v] for k, v in stats.by_priority.items()]
    return _table(["Metric", "Count"], rows)


def render_tickets(tickets: list[CanonicalTicket]) -> str:
    return _table(
        ["Number", "Type", "Opened", "Short description", "State", "Priority", "Assigned to"],
        [
            [t.number, t.ticket_type, t.opened_at, t.short_description, t.state, t.priority, t.assigned_to]
            for t in tickets
        ],
    )


def render_timeline(entries: list[TimelineEntry]) -> str:
    if not entries:
        return "<p><em>None.</em></p>"
    items = "\n".join(
        f"<li>{_e(e.date)} <strong>{_e(e.number)}</strong> [{_e(e.ticket_type)}] "
        f"{_e(e.short_description)} "
        f"<span class=\"{'open' if e.is_open else 'closed'}\">{_e(e.state)}</span></li>"
        for e in entries
    )
    return f"<ul>\n{items}\n</ul>"


def render_analysis(analysis: AnalysisResult) -> str:
    parts = []
    for warning in analysis.warnings:
        parts.append(f'<p class="warning">{_e(warning)}</p>')
    if analysis.summary:
        parts.append(f"<h2>Summary</h2>\n<pre>{_e(analysis.summary)}</pre>")

    parts.append("<h2>Recurring Patterns</h2>")
    parts.append(_table(
        ["Pattern", "Occurrences", "First seen", "Last seen", "Impact", "Tickets", "Suggested resolution"],
        [
            [p.pattern_label, p.occurrence_count, p.first_seen, p.last_seen, p.estimated_impact,
             ", ".join(p.ticket_numbers), p.suggested_resolution]
            for p in analysis.patterns
        ],
    ))
    if analysis.gaps:
        parts.append("<h2>Knowledge Gaps</h2>")
        parts.append(_table(
            ["Type", "Topic", "Suggested title", "Related tickets"],
            [
                [g.gap_type, g.topic, g.suggested_title, ", ".join(g.related_ticket_numbers)]
                for g in analysis.gaps
            ],
        ))
    source = "AI-assisted" if analysis.used_ai else "basic detection"
    parts.append(f"<p><small>Analysis: {_e(source)}</small></p>")
    return "\n".join(parts)


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{_e(title)}</title>
    <style>{STYLE}</style>
</head>
<body>
<h1>{_e(title)}</h1>
{body}
</body>
</html>
"""


def render_ci_report(report: CIReport) -> str:
    body = "\n".join([
        f"<p>Generated {_e(report.generated_at.strftime('%Y-%m-%d %H:%M'))} UTC</p>",
        "<h2>Overview</h2>",
        render_stats(report.stats),
        render_analysis(report.analysis),
        f"<h2>Open Items ({len(report.open_items)})</h2>",
        render_tickets(report.open_items),
        "<h2>Timeline</h2>",
        render_timeline(report.timeline),
    ])
    return _page(f"CI Report: {report.ci_name}", body)


def render_user_report(report: UserReport) -> str:
    sections = [
        f"<p>Generated {_e(report.generated_at.strftime('%Y-%m-%d %H:%M'))} UTC</p>",
        "<h2>Overview</h2>",
        render_stats(report.stats),
        render_analysis(report.analysis),
        f"<h2>Open Items ({len(report.open_items)})</h2>",
        render_tickets(report.open_items),
    ]
    for role, tickets in report.buckets.items():
        sections.append(f"<h2>{_e(role)} ({len(tickets)})</h2>")
        sections.append(render_tickets(tickets))
    sections += ["<h2>Timeline</h2>", render_timeline(report.timeline)]
    return _page(f"User Report: {report.user}", "\n".join(sections))


def write_report(html_text: str, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html_text, encoding="utf-8")
    logger.info("Wrote HTML report", path=str(path), chars=len(html_text))
    return path
