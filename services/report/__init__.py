"""
Report Service
Assembles CI and user reports and writes them out

Components:
- assembler.py: role-bucket merge, timelines, stats, report models
- renderer.py: standalone HTML rendering
- kb_drafts.py: KB article drafts from knowledge gaps
"""

from .assembler import (
    build_ci_report,
    build_timeline,
    build_user_report,
    compute_stats,
    is_open,
    merge_role_buckets,
    sort_tickets,
)
from .kb_drafts import gap_to_draft, push_drafts, write_drafts
from .renderer import render_ci_report, render_user_report, write_report

__all__ = [
    "build_ci_report",
    "build_user_report",
    "build_timeline",
    "compute_stats",
    "is_open",
    "merge_role_buckets",
    "sort_tickets",
    "gap_to_draft",
    "push_drafts",
    "write_drafts",
    "render_ci_report",
    "render_user_report",
    "write_report",
]
