"""
KB Draft Writer
Turns knowledge gaps into article drafts, on disk or pushed to ServiceNow
"""

import re
from pathlib import Path
from typing import Iterable, Union

import structlog

from shared.schemas.pattern import KnowledgeGap
from shared.schemas.report import KBDraft

logger = structlog.get_logger()


def gap_to_draft(gap: KnowledgeGap, category: str = "") -> KBDraft:
    gap_type = gap.gap_type.value if hasattr(gap.gap_type, "value") else str(gap.gap_type)
    return KBDraft(
        gap_type=gap_type,
        topic=gap.topic,
        related_tickets=list(gap.related_ticket_numbers),
        suggested_title=gap.suggested_title or gap.topic,
        suggested_content=gap.suggested_content,
        category=category,
    )


def slugify(text: str, max_length: int = 60) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "draft"


def _front_value(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_draft_markdown(draft: KBDraft) -> str:
    """Markdown body with a front-matter header describing the gap"""
    related = ", ".join(draft.related_tickets)
    lines = [
        "---",
        f"title: {_front_value(draft.suggested_title)}",
        f"gap_type: {draft.gap_type}",
        f"topic: {_front_value(draft.topic)}",
        f"related_tickets: [{related}]",
        f"workflow_state: {draft.workflow_state}",
        "---",
        "",
        f"# {draft.suggested_title}",
        "",
        draft.suggested_content.strip(),
        "",
    ]
    return "\n".join(lines)


def write_drafts(drafts: Iterable[KBDraft], output_dir: Union[str, Path]) -> list[Path]:
    """One Markdown file per draft, numbered in input order"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for i, draft in enumerate(drafts, start=1):
        path = output_dir / f"{i:02d}-{slugify(draft.suggested_title)}.md"
        path.write_text(render_draft_markdown(draft), encoding="utf-8")
        paths.append(path)
    logger.info("Wrote KB drafts", count=len(paths), output_dir=str(output_dir))
    return paths


def push_drafts(drafts: Iterable[KBDraft], client) -> list[dict]:
    """Create each draft through a client exposing create_kb_draft"""
    created = []
    for draft in drafts:
        created.append(client.create_kb_draft(draft))
    logger.info("Pushed KB drafts", count=len(created))
    return created
