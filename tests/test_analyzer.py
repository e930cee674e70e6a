"""
Unit tests for the analyzer and its AI fallback
"""
import httpx
import pytest

from services.analyze import CompletionClient, TicketAnalyzer
from shared.errors import ConfigurationError, UpstreamRequestError

PATTERN_RESPONSE = """### Pattern 1: VPN disconnects after sleep
- Occurrences: 4
- Tickets: INC0010001, INC0010002, INC0010003, INC0010004
- Suggested Fix: Update the VPN client.
"""


class StubCompleter:
    """Completion client double returning canned text or raising"""

    def __init__(self, response: str = "", error: Exception = None):
        self.response = response
        self.error = error
        self.prompts = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


class TestFallback:
    """Test basic detection when AI is unavailable"""

    def test_no_client_uses_basic_detection(self, vpn_tickets):
        result = TicketAnalyzer(min_occurrences=3).find_patterns(vpn_tickets)
        assert not result.used_ai
        assert result.warnings == []
        assert result.patterns[0].pattern_label == "Category: Network > VPN"

    def test_upstream_error_falls_back_with_warning(self, vpn_tickets):
        stub = StubCompleter(error=UpstreamRequestError("ollama request failed (HTTP 500)", status_code=500))
        analyzer = TicketAnalyzer(stub, min_occurrences=3)

        result = analyzer.find_patterns(vpn_tickets)
        assert not result.used_ai
        assert len(result.warnings) == 1
        assert "HTTP 500" in result.warnings[0]
        assert result.patterns[0].pattern_label == "Category: Network > VPN"

    def test_ai_stays_off_after_failure(self, vpn_tickets):
        stub = StubCompleter(error=UpstreamRequestError("timeout"))
        analyzer = TicketAnalyzer(stub, min_occurrences=3)
        analyzer.find_patterns(vpn_tickets)
        gaps = analyzer.find_gaps(vpn_tickets, [])

        assert len(stub.prompts) == 1
        assert "skipped" in gaps.warnings[0]
        assert [g.topic for g in gaps.gaps] == ["Network"]

    @pytest.mark.parametrize("reply", ["", "  \n"])
    def test_blank_completion_uses_basic_detection(self, vpn_tickets, reply):
        analyzer = TicketAnalyzer(StubCompleter(reply), min_occurrences=3)

        patterns = analyzer.find_patterns(vpn_tickets)
        assert not patterns.used_ai
        assert "no text" in patterns.warnings[0]
        assert patterns.patterns[0].pattern_label == "Category: Network > VPN"

        gaps = analyzer.find_gaps(vpn_tickets, [])
        assert not gaps.used_ai
        assert [g.topic for g in gaps.gaps] == ["Network"]

    @pytest.mark.parametrize("body, warning", [
        ({"content": None}, "no text"),
        ({"content": ["text"]}, "unexpected body"),
    ])
    def test_malformed_body_falls_back(self, vpn_tickets, body, warning):
        client = CompletionClient(
            "anthropic", api_key="k",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
        )
        result = TicketAnalyzer(client, min_occurrences=3).find_patterns(vpn_tickets)
        assert not result.used_ai
        assert warning in result.warnings[0]
        assert result.patterns[0].pattern_label == "Category: Network > VPN"

    def test_empty_ticket_set_warns(self):
        result = TicketAnalyzer(StubCompleter("unused")).find_patterns([])
        assert result.patterns == []
        assert result.warnings


class TestAIPath:
    """Test parsing of successful completions"""

    def test_patterns_from_completion(self, vpn_tickets):
        stub = StubCompleter(PATTERN_RESPONSE)
        result = TicketAnalyzer(stub).find_patterns(vpn_tickets)
        assert result.used_ai
        assert result.patterns[0].pattern_label == "VPN disconnects after sleep"
        assert "INC0010001 |" in stub.prompts[0]

    def test_analyze_merges_summary_and_patterns(self, vpn_tickets):
        stub = StubCompleter(PATTERN_RESPONSE)
        result = TicketAnalyzer(stub).analyze(vpn_tickets, subject="VPN")
        assert result.used_ai
        assert len(stub.prompts) == 2
        assert result.summary.startswith("### Pattern 1")

    def test_blank_summary_uses_basic_text(self, vpn_tickets):
        result = TicketAnalyzer(StubCompleter("  ")).summarize(vpn_tickets, subject="the network team")
        assert result.summary.startswith("6 tickets for the network team")


class TestCompletionClient:
    """Test provider payloads and error mapping"""

    def test_ollama_generate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"response": "hello"})

        client = CompletionClient("ollama", transport=httpx.MockTransport(handler))
        assert client.complete("hi") == "hello"
        assert seen["url"] == "http://localhost:11434/api/generate"

    def test_anthropic_text_blocks(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["x-api-key"] == "k"
            return httpx.Response(200, json={"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]})

        client = CompletionClient("anthropic", api_key="k", transport=httpx.MockTransport(handler))
        assert client.complete("hi") == "ab"

    def test_null_ollama_response_is_empty_text(self):
        client = CompletionClient(
            "ollama", transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"response": None})),
        )
        assert client.complete("hi") == ""

    def test_null_anthropic_content_is_empty_text(self):
        client = CompletionClient(
            "anthropic", api_key="k",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"content": None})),
        )
        assert client.complete("hi") == ""

    @pytest.mark.parametrize("body", [{"content": ["text"]}, ["not", "a", "dict"]])
    def test_unexpected_anthropic_body(self, body):
        client = CompletionClient(
            "anthropic", api_key="k",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
        )
        with pytest.raises(UpstreamRequestError, match="unexpected body"):
            client.complete("hi")

    def test_server_error_is_upstream_error(self):
        client = CompletionClient(
            "openai", api_key="k",
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
        )
        with pytest.raises(UpstreamRequestError) as exc_info:
            client.complete("hi")
        assert exc_info.value.status_code == 500

    def test_hosted_provider_needs_key(self):
        with pytest.raises(ConfigurationError):
            CompletionClient("openai")

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            CompletionClient("watson")
