"""
ServiceNow Table API Client
Fetches tickets and knowledge articles, and pushes KB drafts
"""

from datetime import datetime
from typing import Iterable, Optional

import httpx
import structlog

from shared.dates import subtract_months, utcnow
from shared.errors import ConfigurationError
from shared.schemas.report import DRAFT_WORKFLOW_STATE, KBDraft, RoleBucket
from shared.schemas.ticket import KBArticle, RawTicketRecord, TicketSource

from .base import BaseRestClient

logger = structlog.get_logger()

TICKET_TABLES = ("incident", "change_request", "problem", "sc_request", "sc_req_item")

# Requester reference field per table
CALLER_FIELDS = {
    "incident": "caller_id",
    "change_request": "requested_by",
    "problem": "opened_by",
    "sc_request": "requested_for",
    "sc_req_item": "requested_for",
}

TICKET_FIELDS = (
    "number,sys_class_name,short_description,description,state,priority,"
    "category,subcategory,opened_at,closed_at,resolved_at,assigned_to,"
    "caller_id,requested_by,requested_for,opened_by,close_notes,work_notes,cmdb_ci"
)

KB_FIELDS = "number,short_description,text,kb_category,sys_updated_on,workflow_state"


class ServiceNowClient(BaseRestClient):
    """
    Client for the ServiceNow Table API.

    Records are requested with display values so reference fields arrive as
    names rather than sys_ids.
    """

    service_name = "ServiceNow"

    def __init__(
        self,
        instance: str,
        username: str,
        password: str,
        page_size: int = 500,
        **kwargs,
    ):
        if not instance:
            raise ConfigurationError("ServiceNow instance is required")
        base_url = instance if instance.startswith("http") else f"https://{instance}.service-now.com"
        super().__init__(base_url, auth=httpx.BasicAuth(username, password), **kwargs)
        self.page_size = page_size

    def fetch_table(
        self,
        table: str,
        query: str = "",
        fields: str = TICKET_FIELDS,
    ) -> list[dict]:
        """Fetch every record matching an encoded query, page by page"""
        records: list[dict] = []
        offset = 0
        while True:
            data = self._request(
                "GET",
                f"/api/now/table/{table}",
                params={
                    "sysparm_query": query,
                    "sysparm_fields": fields,
                    "sysparm_limit": self.page_size,
                    "sysparm_offset": offset,
                    "sysparm_display_value": "true",
                    "sysparm_exclude_reference_link": "true",
                },
            )
            page = data.get("result", []) if isinstance(data, dict) else []
            records.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        logger.info("Fetched ServiceNow records", table=table, count=len(records))
        return records

    @staticmethod
    def _since_clause(months_back: Optional[int], now: Optional[datetime] = None) -> str:
        if not months_back:
            return ""
        cutoff = subtract_months(now or utcnow(), months_back)
        return f"opened_at>={cutoff.strftime('%Y-%m-%d %H:%M:%S')}"

    @staticmethod
    def _join(*clauses: str) -> str:
        return "^".join([c for c in clauses if c] + ["ORDERBYopened_at"])

    def fetch_tickets(
        self,
        tables: Iterable[str] = TICKET_TABLES,
        query: str = "",
        months_back: Optional[int] = None,
    ) -> list[RawTicketRecord]:
        """Fetch tickets from several tables as tagged raw records"""
        since = self._since_clause(months_back)
        records = []
        for table in tables:
            for raw in self.fetch_table(table, self._join(query, since)):
                records.append(RawTicketRecord(
                    source=TicketSource.SERVICENOW, table=table, raw_payload=raw,
                ))
        return records

    def fetch_for_ci(
        self,
        ci_name: str,
        tables: Iterable[str] = TICKET_TABLES,
        months_back: Optional[int] = None,
    ) -> list[RawTicketRecord]:
        """Tickets whose CI, short description or description mention ci_name"""
        query = (
            f"cmdb_ci.nameLIKE{ci_name}"
            f"^ORshort_descriptionLIKE{ci_name}"
            f"^ORdescriptionLIKE{ci_name}"
        )
        return self.fetch_tickets(tables, query, months_back)

    def fetch_for_user(
        self,
        user: str,
        tables: Iterable[str] = TICKET_TABLES,
        months_back: Optional[int] = None,
    ) -> dict[RoleBucket, list[RawTicketRecord]]:
        """
        Tickets per role for a user, keyed in merge order
        Requester -> Assignee -> Mentioned.
        """
        since = self._since_clause(months_back)
        buckets: dict[RoleBucket, list[RawTicketRecord]] = {
            RoleBucket.REQUESTER: [],
            RoleBucket.ASSIGNEE: [],
            RoleBucket.MENTIONED: [],
        }
        for table in tables:
            role_queries = {
                RoleBucket.REQUESTER: f"{CALLER_FIELDS.get(table, 'opened_by')}.nameLIKE{user}",
                RoleBucket.ASSIGNEE: f"assigned_to.nameLIKE{user}",
                RoleBucket.MENTIONED: f"descriptionLIKE{user}^ORwork_notesLIKE{user}",
            }
            for role, role_query in role_queries.items():
                for raw in self.fetch_table(table, self._join(role_query, since)):
                    buckets[role].append(RawTicketRecord(
                        source=TicketSource.SERVICENOW, table=table, raw_payload=raw,
                    ))
        return buckets

    def fetch_kb_articles(self, query: str = "") -> list[KBArticle]:
        """Fetch knowledge articles from kb_knowledge"""
        articles = []
        for raw in self.fetch_table("kb_knowledge", query, fields=KB_FIELDS):
            category = raw.get("kb_category", "")
            if isinstance(category, dict):
                category = category.get("display_value", "")
            articles.append(KBArticle(
                number=str(raw.get("number", "")),
                title=str(raw.get("short_description", "") or ""),
                content=str(raw.get("text", "") or ""),
                category=str(category or ""),
                last_updated=str(raw.get("sys_updated_on", "") or ""),
                workflow_state=str(raw.get("workflow_state", "") or ""),
            ))
        return articles

    def create_kb_draft(self, draft: KBDraft) -> dict:
        """
        Create an unpublished knowledge article.
        workflow_state is always sent as draft regardless of the input.
        """
        payload = {
            "short_description": draft.suggested_title,
            "text": draft.suggested_content,
            "workflow_state": DRAFT_WORKFLOW_STATE,
        }
        if draft.category:
            payload["kb_category"] = draft.category
        data = self._request("POST", "/api/now/table/kb_knowledge", json=payload)
        result = data.get("result", {}) if isinstance(data, dict) else {}
        logger.info(
            "Created KB draft",
            number=result.get("number"),
            title=draft.suggested_title[:80],
        )
        return result
