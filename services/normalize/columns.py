"""
Export column inference.
Maps unknown export headers onto CanonicalTicket fields via an ordered alias table.
"""

from typing import Iterable

# Ordered (canonical field, aliases) pairs. Alias order is match precedence.
FIELD_ALIASES: list[tuple[str, list[str]]] = [
    ("number", [
        "number", "ticket_number", "ticket number", "ticket", "ticket_id", "id",
        "key", "issue key", "issue_key", "ref", "reference", "incident_number",
    ]),
    ("ticket_type", [
        "type", "ticket_type", "ticket type", "issue type", "issue_type",
        "issuetype", "record_type", "sys_class_name", "task type",
    ]),
    ("short_description", [
        "short_description", "short description", "summary", "title", "subject",
    ]),
    ("description", [
        "description", "details", "long_description", "body", "full description",
    ]),
    ("state", ["state", "status", "ticket_status", "incident_state"]),
    ("priority", ["priority", "severity", "urgency"]),
    ("category", ["category", "component", "components", "service"]),
    ("subcategory", ["subcategory", "sub_category", "sub category", "subtype", "labels"]),
    ("opened_at", [
        "opened_at", "opened", "opened on", "created", "created_at", "created on",
        "created_on", "sys_created_on", "open_date", "date",
    ]),
    ("closed_at", ["closed_at", "closed", "closed on", "closed_on", "close_date"]),
    ("resolved_at", [
        "resolved_at", "resolved", "resolved on", "resolved_on",
        "resolutiondate", "resolution_date", "resolution date",
    ]),
    ("assigned_to", ["assigned_to", "assigned to", "assignee", "assigned", "owner", "agent"]),
    ("caller_name", [
        "caller_name", "caller", "caller_id", "requester", "requested_by",
        "requested by", "requested_for", "reporter", "opened_by", "opened by", "customer",
    ]),
    ("close_notes", [
        "close_notes", "close notes", "resolution notes", "resolution_notes",
        "resolution", "close_note",
    ]),
    ("work_notes", ["work_notes", "work notes", "worknotes", "comments", "notes"]),
    ("ci_name", [
        "ci_name", "cmdb_ci", "configuration item", "configuration_item", "ci",
        "affected_ci", "asset", "host", "server", "application",
    ]),
]


def _clean(header: str) -> str:
    return str(header).strip().lower()


def resolve_columns(
    keys: Iterable[str],
    aliases: list[tuple[str, list[str]]] = FIELD_ALIASES,
) -> dict[str, str]:
    """
    Resolve canonical field -> source key from one record's key set.

    Keys compare case-insensitively after trimming. An exact canonical-name
    match takes precedence; otherwise the first alias present wins. Fields
    with no match are left out of the mapping.
    """
    present: dict[str, str] = {}
    for key in keys:
        # First spelling wins if two headers collapse to the same cleaned form
        present.setdefault(_clean(key), key)

    mapping: dict[str, str] = {}
    for field, field_aliases in aliases:
        canonical = _clean(field)
        if canonical in present:
            mapping[field] = present[canonical]
            continue
        for alias in field_aliases:
            cleaned = _clean(alias)
            if cleaned in present:
                mapping[field] = present[cleaned]
                break
    return mapping
