"""
Jira REST Client
Fetches issues via the search API and tags them as raw Jira records
"""

from typing import Optional

import httpx
import structlog

from shared.errors import ConfigurationError
from shared.schemas.report import RoleBucket
from shared.schemas.ticket import RawTicketRecord, TicketSource

from .base import BaseRestClient

logger = structlog.get_logger()

ISSUE_FIELDS = [
    "summary", "description", "issuetype", "status", "priority", "components",
    "labels", "created", "resolutiondate", "assignee", "reporter", "resolution",
    "comment",
]


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class JiraClient(BaseRestClient):
    """Client for the Jira Cloud/Server REST API (v2 search)"""

    service_name = "Jira"

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        page_size: int = 100,
        **kwargs,
    ):
        if not base_url:
            raise ConfigurationError("Jira base URL is required")
        super().__init__(base_url, auth=httpx.BasicAuth(email, api_token), **kwargs)
        self.page_size = page_size

    def search(self, jql: str) -> list[dict]:
        """Run a JQL search and page through every result"""
        issues: list[dict] = []
        start_at = 0
        while True:
            data = self._request(
                "POST",
                "/rest/api/2/search",
                json={
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": self.page_size,
                    "fields": ISSUE_FIELDS,
                },
            )
            page = data.get("issues", []) if isinstance(data, dict) else []
            issues.extend(page)
            total = data.get("total", 0) if isinstance(data, dict) else 0
            start_at += len(page)
            if not page or start_at >= total:
                break

        logger.info("Fetched Jira issues", jql=jql[:120], count=len(issues))
        return issues

    @staticmethod
    def _with_window(clause: str, months_back: Optional[int]) -> str:
        # Over-fetch by whole 31-day months; the normalizer applies the exact cutoff
        parts = [f"({clause})"] if clause else []
        if months_back:
            parts.append(f"created >= -{int(months_back) * 31}d")
        return (" AND ".join(parts) + " ORDER BY created ASC").strip()

    def _records(self, jql: str) -> list[RawTicketRecord]:
        return [
            RawTicketRecord(source=TicketSource.JIRA, raw_payload=issue)
            for issue in self.search(jql)
        ]

    def fetch_tickets(
        self,
        project: Optional[str] = None,
        months_back: Optional[int] = None,
    ) -> list[RawTicketRecord]:
        clause = f"project = {_quote(project)}" if project else ""
        return self._records(self._with_window(clause, months_back))

    def fetch_for_ci(self, ci_name: str, months_back: Optional[int] = None) -> list[RawTicketRecord]:
        """Issues whose component or text mention the configuration item"""
        clause = f"component = {_quote(ci_name)} OR text ~ {_quote(ci_name)}"
        return self._records(self._with_window(clause, months_back))

    def fetch_for_user(
        self,
        user: str,
        months_back: Optional[int] = None,
    ) -> dict[RoleBucket, list[RawTicketRecord]]:
        """Issues per role for a user, keyed in merge order"""
        role_clauses = {
            RoleBucket.REQUESTER: f"reporter = {_quote(user)}",
            RoleBucket.ASSIGNEE: f"assignee = {_quote(user)}",
            RoleBucket.MENTIONED: f"text ~ {_quote(user)}",
        }
        return {
            role: self._records(self._with_window(clause, months_back))
            for role, clause in role_clauses.items()
        }
