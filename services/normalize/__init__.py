"""
Normalize Service
Converts raw ServiceNow, Jira and export-file records to CanonicalTicket format

Components:
- normalizer.py: TicketNormalizer with backend lookup tables
- columns.py: export header alias inference
- filters.py: age cutoff, CI and user-role filters
"""

from .columns import FIELD_ALIASES, resolve_columns
from .filters import apply_filters, matches_ci, matches_user
from .normalizer import TicketNormalizer, normalize_export_rows, normalize_priority

__all__ = [
    "TicketNormalizer",
    "normalize_export_rows",
    "normalize_priority",
    "FIELD_ALIASES",
    "resolve_columns",
    "apply_filters",
    "matches_ci",
    "matches_user",
]
