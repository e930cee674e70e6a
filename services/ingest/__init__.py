"""
Ingest Service
Pulls raw ticket records from ServiceNow, Jira, or export files

Components:
- servicenow.py: ServiceNow Table API client (tickets, KB articles, KB drafts)
- jira.py: Jira search API client
- export_loader.py: CSV/TSV/JSON export reader
- base.py: shared HTTP client with rate-limit retry
"""

from .export_loader import load_export
from .jira import JiraClient
from .servicenow import ServiceNowClient

__all__ = ["ServiceNowClient", "JiraClient", "load_export"]
