"""
Unit tests for the ServiceNow and Jira REST clients

Tests:
- Pagination (sysparm_offset, startAt/total)
- Retry on HTTP 429 only
- Immediate failure on 401
- KB drafts always sent as draft
"""
import json

import httpx
import pytest

from services.ingest import JiraClient, ServiceNowClient
from shared.errors import ConfigurationError, RateLimitedError, UpstreamRequestError
from shared.schemas.report import KBDraft, RoleBucket


def servicenow(handler, **kwargs) -> ServiceNowClient:
    return ServiceNowClient(
        "acme", "user", "secret",
        transport=httpx.MockTransport(handler),
        backoff_multiplier=0,
        **kwargs,
    )


class TestServiceNowClient:
    """Test the Table API client"""

    def test_instance_name_expands_to_url(self):
        client = servicenow(lambda request: httpx.Response(200, json={"result": []}))
        assert client.base_url == "https://acme.service-now.com"

    def test_missing_instance(self):
        with pytest.raises(ConfigurationError):
            ServiceNowClient("", "user", "secret")

    def test_pages_until_short_page(self):
        offsets = []

        def handler(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["sysparm_offset"])
            offsets.append(offset)
            records = [{"number": f"INC{i}"} for i in range(offset, min(offset + 2, 5))]
            return httpx.Response(200, json={"result": records})

        records = servicenow(handler, page_size=2).fetch_table("incident")
        assert [r["number"] for r in records] == ["INC0", "INC1", "INC2", "INC3", "INC4"]
        assert offsets == [0, 2, 4]

    def test_rate_limit_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(429)
            return httpx.Response(200, json={"result": [{"number": "INC1"}]})

        records = servicenow(handler).fetch_table("incident")
        assert len(calls) == 3
        assert records == [{"number": "INC1"}]

    def test_rate_limit_gives_up(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429)

        with pytest.raises(RateLimitedError):
            servicenow(handler, max_attempts=2).fetch_table("incident")
        assert len(calls) == 2

    def test_unauthorized_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401)

        with pytest.raises(UpstreamRequestError) as exc_info:
            servicenow(handler).fetch_table("incident")
        assert exc_info.value.status_code == 401
        assert len(calls) == 1

    def test_user_buckets_use_role_queries(self):
        queries = []

        def handler(request: httpx.Request) -> httpx.Response:
            queries.append(request.url.params["sysparm_query"])
            return httpx.Response(200, json={"result": [{"number": "INC1"}]})

        buckets = servicenow(handler).fetch_for_user("Lee Park", tables=["incident"])
        assert list(buckets) == [RoleBucket.REQUESTER, RoleBucket.ASSIGNEE, RoleBucket.MENTIONED]
        assert queries[0].startswith("caller_id.nameLIKELee Park")
        assert queries[1].startswith("assigned_to.nameLIKELee Park")
        assert all(q.endswith("ORDERBYopened_at") for q in queries)

    def test_kb_draft_always_draft(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"result": {"number": "KB0010001"}})

        draft = KBDraft(gap_type="Missing", topic="VPN", suggested_title="Restoring VPN",
                        suggested_content="1. Reconnect", workflow_state="published")
        result = servicenow(handler).create_kb_draft(draft)
        assert result["number"] == "KB0010001"
        assert bodies[0]["workflow_state"] == "draft"
        assert bodies[0]["short_description"] == "Restoring VPN"

    def test_kb_articles(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/now/table/kb_knowledge"
            return httpx.Response(200, json={"result": [{
                "number": "KB001", "short_description": "VPN setup",
                "kb_category": {"display_value": "Network"}, "workflow_state": "published",
            }]})

        articles = servicenow(handler).fetch_kb_articles()
        assert articles[0].title == "VPN setup"
        assert articles[0].category == "Network"


class TestJiraClient:
    """Test the Jira search client"""

    def test_pages_until_total(self):
        starts = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            starts.append(body["startAt"])
            issues = [{"key": f"OPS-{i}"} for i in range(body["startAt"], min(body["startAt"] + 2, 3))]
            return httpx.Response(200, json={"issues": issues, "total": 3})

        client = JiraClient("https://acme.atlassian.net", "me@acme.test", "token",
                            page_size=2, transport=httpx.MockTransport(handler), backoff_multiplier=0)
        records = client.fetch_tickets(project="OPS", months_back=6)
        assert [r.raw_payload["key"] for r in records] == ["OPS-0", "OPS-1", "OPS-2"]
        assert starts == [0, 2]

    def test_window_clause(self):
        assert JiraClient._with_window('project = "OPS"', 2) == \
            '(project = "OPS") AND created >= -62d ORDER BY created ASC'
        assert JiraClient._with_window("", None) == "ORDER BY created ASC"
