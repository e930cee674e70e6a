"""
Ticket Sources
Dispatches fetches to ServiceNow, Jira or an export file and normalizes the result
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import structlog

from services.ingest import JiraClient, ServiceNowClient, load_export
from services.normalize import TicketNormalizer
from shared.config import Settings
from shared.errors import ConfigurationError
from shared.schemas.report import RoleBucket
from shared.schemas.ticket import (
    CanonicalTicket,
    KBArticle,
    RawTicketRecord,
    TicketSource,
    UserRole,
)

logger = structlog.get_logger()

# Local role filter used for each bucket when reading an export file
FILE_ROLE_FILTERS = {
    RoleBucket.REQUESTER: UserRole.REQUESTER,
    RoleBucket.ASSIGNEE: UserRole.ASSIGNEE,
    RoleBucket.MENTIONED: UserRole.ALL,
}


class TicketLoader:
    """
    One ticket source for one invocation.

    Remote sources filter server-side and are normalized without further
    CI/user filtering. Export files are read whole and filtered locally.
    """

    def __init__(
        self,
        settings: Settings,
        source: Union[str, TicketSource] = TicketSource.FILE,
        file_path: Optional[Union[str, Path]] = None,
        months_back: Optional[int] = None,
        now: Optional[datetime] = None,
        **client_kwargs,
    ):
        self.settings = settings
        self.source = TicketSource(source)
        self.file_path = file_path
        self.months_back = settings.months_back if months_back is None else months_back
        self.normalizer = TicketNormalizer(months_back=self.months_back, now=now)
        self.client_kwargs = client_kwargs
        self._client = None

        if self.source == TicketSource.FILE and not file_path:
            raise ConfigurationError("--file is required when the source is an export file")

    @property
    def client(self):
        """Lazily built REST client for the configured remote source"""
        if self._client is None:
            if self.source == TicketSource.SERVICENOW:
                self.settings.require_servicenow()
                self._client = ServiceNowClient(
                    self.settings.servicenow_instance,
                    self.settings.servicenow_username,
                    self.settings.servicenow_password,
                    timeout=self.settings.request_timeout,
                    **self.client_kwargs,
                )
            elif self.source == TicketSource.JIRA:
                self.settings.require_jira()
                self._client = JiraClient(
                    self.settings.jira_url,
                    self.settings.jira_email,
                    self.settings.jira_api_token,
                    timeout=self.settings.request_timeout,
                    **self.client_kwargs,
                )
            else:
                raise ConfigurationError("Export files have no REST client")
        return self._client

    def _file_records(self) -> list[RawTicketRecord]:
        rows = load_export(self.file_path)
        return [RawTicketRecord(source=TicketSource.FILE, raw_payload=row) for row in rows]

    def fetch_all(
        self,
        project: Optional[str] = None,
        ci_name: Optional[str] = None,
        user: Optional[str] = None,
        role: UserRole = UserRole.BOTH,
    ) -> list[CanonicalTicket]:
        """Every ticket inside the age window, optionally filtered locally"""
        if self.source == TicketSource.FILE:
            records = self._file_records()
        elif self.source == TicketSource.JIRA:
            records = self.client.fetch_tickets(project=project, months_back=self.months_back)
        else:
            records = self.client.fetch_tickets(months_back=self.months_back)
        tickets = self.normalizer.normalize_records(records, ci_name=ci_name, user=user, role=role)
        logger.info("Loaded tickets", source=self.source.value, count=len(tickets))
        return tickets

    def fetch_for_ci(self, ci_name: str) -> list[CanonicalTicket]:
        if self.source == TicketSource.FILE:
            return self.normalizer.normalize_records(self._file_records(), ci_name=ci_name)
        records = self.client.fetch_for_ci(ci_name, months_back=self.months_back)
        return self.normalizer.normalize_records(records)

    def fetch_for_user(self, user: str) -> dict[RoleBucket, list[CanonicalTicket]]:
        """Tickets per role bucket; overlaps are resolved later by the assembler"""
        if self.source == TicketSource.FILE:
            records = self._file_records()
            return {
                bucket: self.normalizer.normalize_records(records, user=user, role=role)
                for bucket, role in FILE_ROLE_FILTERS.items()
            }
        raw_buckets = self.client.fetch_for_user(user, months_back=self.months_back)
        return {
            bucket: self.normalizer.normalize_records(raw_buckets.get(bucket, []))
            for bucket in FILE_ROLE_FILTERS
        }

    def fetch_kb_articles(self) -> list[KBArticle]:
        """Existing KB articles; only ServiceNow has a knowledge base"""
        if self.source != TicketSource.SERVICENOW:
            logger.info("No knowledge base for source, gap analysis runs without articles",
                        source=self.source.value)
            return []
        return self.client.fetch_kb_articles()

    def close(self):
        if self._client is not None:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
