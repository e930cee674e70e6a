"""
Ticket Normalizer
Converts raw ServiceNow, Jira and export-file records to CanonicalTicket format
"""

from datetime import datetime
from typing import Any, Iterable, Optional

import structlog

from shared.schemas.ticket import (
    CanonicalTicket,
    RawTicketRecord,
    TicketSource,
    TicketType,
    UserRole,
)

from .columns import FIELD_ALIASES, resolve_columns
from .filters import apply_filters, cutoff_date, within_cutoff

logger = structlog.get_logger()

PRIORITY_LABELS = {
    "1": "1 - Critical",
    "2": "2 - High",
    "3": "3 - Moderate",
    "4": "4 - Low",
    "5": "5 - Planning",
}

SERVICENOW_TABLE_TYPES = {
    "incident": TicketType.INCIDENT,
    "change_request": TicketType.CHANGE_REQUEST,
    "problem": TicketType.PROBLEM,
    "sc_request": TicketType.SERVICE_REQUEST,
    "sc_req_item": TicketType.REQUESTED_ITEM,
}
TYPE_TABLES = {ticket_type.value: table for table, ticket_type in SERVICENOW_TABLE_TYPES.items()}

# Numeric state codes per table, used when display values were not requested
SERVICENOW_STATES = {
    "incident": {
        "1": "New", "2": "In Progress", "3": "On Hold",
        "6": "Resolved", "7": "Closed", "8": "Canceled",
    },
    "change_request": {
        "-5": "New", "-4": "Assess", "-3": "Authorize", "-2": "Scheduled",
        "-1": "Implement", "0": "Review", "3": "Closed", "4": "Canceled",
    },
    "problem": {
        "101": "New", "102": "Assess", "103": "Root Cause Analysis",
        "104": "Fix in Progress", "106": "Resolved", "107": "Closed",
    },
    "sc_request": {
        "1": "Open", "2": "Work in Progress", "3": "Closed Complete",
        "4": "Closed Incomplete", "7": "Closed Skipped",
    },
    "sc_req_item": {
        "-5": "Pending", "1": "Open", "2": "Work in Progress",
        "3": "Closed Complete", "4": "Closed Incomplete", "7": "Closed Skipped",
    },
}

# Requester field differs per ServiceNow table
SERVICENOW_CALLER_FIELDS = ("caller_id", "requested_for", "requested_by", "opened_by")

JIRA_ISSUE_TYPES = {
    "incident": TicketType.INCIDENT,
    "change": TicketType.CHANGE_REQUEST,
    "change request": TicketType.CHANGE_REQUEST,
    "problem": TicketType.PROBLEM,
    "service request": TicketType.SERVICE_REQUEST,
    "service request with approvals": TicketType.SERVICE_REQUEST,
}

JIRA_PRIORITIES = {
    "highest": "1 - Critical",
    "blocker": "1 - Critical",
    "critical": "1 - Critical",
    "high": "2 - High",
    "major": "2 - High",
    "medium": "3 - Moderate",
    "low": "4 - Low",
    "minor": "4 - Low",
    "lowest": "5 - Planning",
    "trivial": "5 - Planning",
}

# Export type cells, compared with case, spaces, underscores and dashes removed
EXPORT_TYPE_NAMES = {
    "incident": TicketType.INCIDENT,
    "inc": TicketType.INCIDENT,
    "changerequest": TicketType.CHANGE_REQUEST,
    "change": TicketType.CHANGE_REQUEST,
    "chg": TicketType.CHANGE_REQUEST,
    "problem": TicketType.PROBLEM,
    "prb": TicketType.PROBLEM,
    "servicerequest": TicketType.SERVICE_REQUEST,
    "screquest": TicketType.SERVICE_REQUEST,
    "request": TicketType.SERVICE_REQUEST,
    "req": TicketType.SERVICE_REQUEST,
    "requesteditem": TicketType.REQUESTED_ITEM,
    "screqitem": TicketType.REQUESTED_ITEM,
    "ritm": TicketType.REQUESTED_ITEM,
}


def _text(value: Any) -> str:
    """Scalar cell value as text, None as empty string"""
    if value is None:
        return ""
    return str(value)


def _display(value: Any) -> str:
    """Display text of a reference field given as a string or an object"""
    if isinstance(value, dict):
        for key in ("display_value", "displayName", "name", "value"):
            if value.get(key):
                return str(value[key])
        return ""
    return _text(value)


def _flatten_adf(node: Any) -> str:
    """Flatten Jira rich text (Atlassian Document Format) to plain text"""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(_flatten_adf(child) for child in node)
    if isinstance(node, dict):
        if node.get("type") == "text":
            return node.get("text", "")
        if node.get("type") == "hardBreak":
            return "\n"
        inner = _flatten_adf(node.get("content", []))
        if node.get("type") in ("paragraph", "heading", "listItem", "codeBlock"):
            return inner + "\n"
        return inner
    return str(node)


def normalize_priority(value: Any) -> str:
    """Best-effort "N - Label" for numeric codes, anything else unchanged"""
    text = _display(value).strip()
    return PRIORITY_LABELS.get(text, text)


def normalize_export_type(value: Any) -> str:
    text = _text(value).strip()
    if not text:
        return TicketType.INCIDENT.value
    key = text.lower().replace(" ", "").replace("_", "").replace("-", "")
    known = EXPORT_TYPE_NAMES.get(key)
    return known.value if known else text


class TicketNormalizer:
    """
    Normalizes raw ticket records from any source to CanonicalTicket.

    Features:
    - Fixed lookup tables for ServiceNow and Jira native schemas
    - Header alias inference for export files
    - Age cutoff and optional CI / user filters
    """

    def __init__(
        self,
        months_back: Optional[int] = None,
        now: Optional[datetime] = None,
        aliases: list[tuple[str, list[str]]] = FIELD_ALIASES,
    ):
        self.months_back = months_back
        self.now = now
        self.aliases = aliases

    def normalize_servicenow(self, raw: dict, table: str = "") -> CanonicalTicket:
        """
        Normalize one ServiceNow Table API record.

        Args:
            raw: Record as returned by the Table API (display values or codes)
            table: Source table; falls back to sys_class_name

        Returns:
            Normalized CanonicalTicket
        """
        table = table or _display(raw.get("sys_class_name"))
        if table in SERVICENOW_TABLE_TYPES:
            ticket_type = SERVICENOW_TABLE_TYPES[table].value
        else:
            # Display value of sys_class_name, e.g. "Change Request"
            ticket_type = normalize_export_type(table)
            table = TYPE_TABLES.get(ticket_type, table)

        state = _display(raw.get("state"))
        state = SERVICENOW_STATES.get(table, {}).get(state, state)

        caller = ""
        for field in SERVICENOW_CALLER_FIELDS:
            caller = _display(raw.get(field))
            if caller:
                break

        return CanonicalTicket(
            number=_display(raw.get("number")),
            ticket_type=ticket_type,
            source=TicketSource.SERVICENOW.value,
            short_description=_display(raw.get("short_description")),
            description=_display(raw.get("description")),
            state=state,
            priority=normalize_priority(raw.get("priority")),
            category=_display(raw.get("category")),
            subcategory=_display(raw.get("subcategory")),
            opened_at=_display(raw.get("opened_at")),
            closed_at=_display(raw.get("closed_at")),
            resolved_at=_display(raw.get("resolved_at")),
            assigned_to=_display(raw.get("assigned_to")),
            caller_name=caller,
            close_notes=_display(raw.get("close_notes")),
            work_notes=_display(raw.get("work_notes")),
            ci_name=_display(raw.get("cmdb_ci")),
        )

    def normalize_jira(self, raw: dict) -> CanonicalTicket:
        """Normalize one Jira issue from the search API"""
        fields = raw.get("fields", {}) or {}

        issue_type = _display(fields.get("issuetype"))
        ticket_type = JIRA_ISSUE_TYPES.get(issue_type.lower(), issue_type or TicketType.INCIDENT)

        priority = _display(fields.get("priority"))
        priority = JIRA_PRIORITIES.get(priority.lower(), priority)

        status = fields.get("status") or {}
        status_category = ""
        if isinstance(status, dict):
            status_category = (status.get("statusCategory") or {}).get("key", "")

        components = [_display(c) for c in fields.get("components") or []]
        components = [c for c in components if c]
        labels = fields.get("labels") or []

        comment_block = fields.get("comment") or {}
        comments = comment_block.get("comments", []) if isinstance(comment_block, dict) else []
        work_notes = "\n\n".join(
            _flatten_adf(c.get("body")).strip() for c in comments if isinstance(c, dict)
        )

        resolved = _text(fields.get("resolutiondate"))

        return CanonicalTicket(
            number=_text(raw.get("key")),
            ticket_type=ticket_type,
            source=TicketSource.JIRA.value,
            short_description=_text(fields.get("summary")),
            description=_flatten_adf(fields.get("description")).strip(),
            state=_display(status),
            priority=priority,
            category=components[0] if components else "",
            subcategory=str(labels[0]) if labels else "",
            opened_at=_text(fields.get("created")),
            closed_at=resolved if status_category == "done" else "",
            resolved_at=resolved,
            assigned_to=_display(fields.get("assignee")),
            caller_name=_display(fields.get("reporter")),
            close_notes=_display(fields.get("resolution")),
            work_notes=work_notes,
            ci_name=", ".join(components),
        )

    def normalize_export_row(self, row: dict, columns: dict[str, str]) -> CanonicalTicket:
        """Normalize one export row with an already-resolved column mapping"""
        values = {field: _text(row.get(key)) for field, key in columns.items()}
        values["ticket_type"] = normalize_export_type(values.get("ticket_type"))
        values.setdefault("number", "")
        return CanonicalTicket(source=TicketSource.FILE.value, **values)

    def normalize_export(self, rows: list[dict]) -> list[CanonicalTicket]:
        """
        Normalize export rows using the headers of the first row only.

        Later rows with different header spellings normalize their unmapped
        fields to empty strings.
        """
        if not rows:
            return []
        columns = resolve_columns(rows[0].keys(), self.aliases)
        logger.debug("Resolved export columns", columns=columns)
        return [self.normalize_export_row(row, columns) for row in rows]

    def normalize(self, record: RawTicketRecord) -> CanonicalTicket:
        """Normalize a single tagged raw record"""
        if record.source == TicketSource.SERVICENOW:
            return self.normalize_servicenow(record.raw_payload, record.table)
        if record.source == TicketSource.JIRA:
            return self.normalize_jira(record.raw_payload)
        columns = resolve_columns(record.raw_payload.keys(), self.aliases)
        return self.normalize_export_row(record.raw_payload, columns)

    def normalize_records(
        self,
        records: Iterable[RawTicketRecord],
        ci_name: Optional[str] = None,
        user: Optional[str] = None,
        role: UserRole = UserRole.BOTH,
    ) -> list[CanonicalTicket]:
        """
        Normalize a batch of raw records, then apply cutoff and filters.

        Export rows in the batch share one column mapping resolved from the
        first export row. Output order follows input order.
        """
        records = list(records)
        export_rows = [r.raw_payload for r in records if r.source == TicketSource.FILE]
        columns = resolve_columns(export_rows[0].keys(), self.aliases) if export_rows else {}

        tickets = []
        for record in records:
            if record.source == TicketSource.FILE:
                tickets.append(self.normalize_export_row(record.raw_payload, columns))
            else:
                tickets.append(self.normalize(record))

        tickets = self.apply_cutoff(tickets)
        tickets = apply_filters(tickets, ci_name=ci_name, user=user, role=role)

        if not tickets:
            logger.warning(
                "No tickets left after normalization",
                raw_records=len(records),
                months_back=self.months_back,
                ci_name=ci_name,
                user=user,
            )
        return tickets

    def apply_cutoff(self, tickets: list[CanonicalTicket]) -> list[CanonicalTicket]:
        """Drop tickets opened before now - months_back (inclusive boundary); 0 disables"""
        if not self.months_back:
            return tickets
        cutoff = cutoff_date(self.months_back, self.now)
        kept = [t for t in tickets if within_cutoff(t, cutoff)]
        if len(kept) < len(tickets):
            logger.info(
                "Applied age cutoff",
                cutoff=cutoff.isoformat(),
                dropped=len(tickets) - len(kept),
            )
        return kept


def normalize_export_rows(
    rows: list[dict],
    months_back: Optional[int] = None,
    now: Optional[datetime] = None,
    ci_name: Optional[str] = None,
    user: Optional[str] = None,
    role: UserRole = UserRole.BOTH,
) -> list[CanonicalTicket]:
    """Convenience function for the export-file path"""
    normalizer = TicketNormalizer(months_back=months_back, now=now)
    records = [RawTicketRecord(source=TicketSource.FILE, raw_payload=row) for row in rows]
    return normalizer.normalize_records(records, ci_name=ci_name, user=user, role=role)
