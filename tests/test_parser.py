"""
Unit tests for the Free-Text Response Parser

Tests:
- Structured markdown responses
- Bold-label responses with the title on the next line
- Occurrence defaults and impact heuristics
- Unstructured responses falling back to one raw-text record
- Gap classification
"""
from services.analyze import ResponseParser
from services.analyze.parser import FALLBACK_LABEL, extract_ticket_numbers, split_sections

STRUCTURED_PATTERNS = """Here is my analysis of the tickets.

### Pattern 1: VPN disconnects after sleep
- Occurrences: 4
- Tickets: INC0010001, INC0010002, INC0010003, INC0010004
- Impact: Medium, remote workers lose connectivity
- Suggested Fix: Update the VPN client and disable adapter power saving.

### Pattern 2: Printer queue stuck
- Occurrences: 2
- Tickets: INC0010005, INC0010006
- Suggested Fix: Restart the spooler service.
"""

BOLD_PATTERNS = """**Pattern 1:**
Printer queue stuck on floor two
**Occurrences:** 2
**Tickets:** INC0010005, INC0010006
**Suggested Fix:**
Restart the spooler service.
Clear the queue folder.
"""

NO_COUNT_PATTERN = """## Recurring VPN drops
Tickets INC0010001 and INC0010003 both lost the tunnel after standby.
Users reconnect manually every morning.
"""

PROSE = (
    "The tickets show a general mix of hardware and network problems with no single dominant "
    "cause across the period reviewed."
)

STRUCTURED_GAPS = """### Missing: VPN reconnect procedure
- Tickets: INC0010001, INC0010002
- Suggested Title: How to restore VPN after sleep
- Suggested Content: Reinstall the client and disable power saving.

### Stale: Printer driver article
- Tickets: INC0010005
- Suggested Title: Updating printer drivers
- Suggested Content:
1. Download driver 4.1 from the vendor portal.
2. Remove the old driver package.
"""

WORDED_GAPS = """**Missing Documentation:** VPN reconnect procedure
- Tickets: INC0010001, INC0010002
- Suggested Title: Restoring VPN after sleep

**Stale Article:** Printer driver install
- Tickets: INC0010005
- Suggested Content: Download driver 4.1 from the vendor portal.
"""


class TestSplitSections:
    """Test heading segmentation"""

    def test_preamble_dropped(self):
        sections = split_sections(STRUCTURED_PATTERNS)
        assert len(sections) == 2
        assert sections[0].startswith("### Pattern 1")

    def test_no_headings_no_sections(self):
        assert split_sections(PROSE) == []

    def test_ticket_numbers_deduplicated_in_order(self):
        text = "INC0010002 then OPS-12345 then INC0010002 again, not INC12"
        assert extract_ticket_numbers(text) == ["INC0010002", "OPS-12345"]


class TestParsePatterns:
    """Test pattern parsing"""

    def test_structured_response(self, vpn_tickets):
        patterns = ResponseParser(vpn_tickets).parse_patterns(STRUCTURED_PATTERNS)
        assert [p.pattern_label for p in patterns] == ["VPN disconnects after sleep", "Printer queue stuck"]

        vpn = patterns[0]
        assert vpn.occurrence_count == 4
        assert vpn.ticket_numbers == ["INC0010001", "INC0010002", "INC0010003", "INC0010004"]
        assert vpn.first_seen == "2026-02-20 14:00:00"
        assert vpn.last_seen == "2026-05-05 16:45:00"
        assert vpn.estimated_impact == "Medium, remote workers lose connectivity"
        assert vpn.suggested_resolution == "Update the VPN client and disable adapter power saving."

        printer = patterns[1]
        assert printer.occurrence_count == 2
        assert printer.estimated_impact == "Low (2 tickets)"
        assert printer.suggested_resolution == "Restart the spooler service."

    def test_bold_label_with_title_on_next_line(self, vpn_tickets):
        patterns = ResponseParser(vpn_tickets).parse_patterns(BOLD_PATTERNS)
        assert len(patterns) == 1
        assert patterns[0].pattern_label == "Printer queue stuck on floor two"
        assert patterns[0].occurrence_count == 2
        assert patterns[0].suggested_resolution == "Restart the spooler service.\nClear the queue folder."

    def test_count_defaults_to_ticket_ids(self, vpn_tickets):
        patterns = ResponseParser(vpn_tickets).parse_patterns(NO_COUNT_PATTERN)
        assert len(patterns) == 1
        assert patterns[0].pattern_label == "Recurring VPN drops"
        assert patterns[0].occurrence_count == 2
        # No labeled block: the last body lines stand in for the resolution
        assert "Users reconnect manually" in patterns[0].suggested_resolution

    def test_count_floor_is_one(self, vpn_tickets):
        text = "### Printer queue stuck on floor two\nRestart the spooler service each morning.\n"
        patterns = ResponseParser(vpn_tickets).parse_patterns(text)
        assert patterns[0].ticket_numbers == []
        assert patterns[0].occurrence_count == 1

    def test_unstructured_prose_kept_verbatim(self, vpn_tickets):
        patterns = ResponseParser(vpn_tickets).parse_patterns(PROSE)
        assert len(patterns) == 1
        assert patterns[0].pattern_label == FALLBACK_LABEL
        assert patterns[0].suggested_resolution == PROSE
        assert patterns[0].ticket_numbers == [t.number for t in vpn_tickets]

    def test_fallback_lists_at_most_ten_tickets(self, make_ticket):
        tickets = [make_ticket(f"INC{i:07d}") for i in range(15)]
        patterns = ResponseParser(tickets).parse_patterns(PROSE)
        assert len(patterns[0].ticket_numbers) == 10

    def test_blank_response_yields_nothing(self, vpn_tickets):
        parser = ResponseParser(vpn_tickets)
        assert parser.parse_patterns("") == []
        assert parser.parse_patterns("   \n") == []
        assert parser.parse_gaps(None) == []


class TestParseGaps:
    """Test knowledge-gap parsing"""

    def test_structured_gaps(self, vpn_tickets):
        gaps = ResponseParser(vpn_tickets).parse_gaps(STRUCTURED_GAPS)
        assert [g.gap_type for g in gaps] == ["Missing", "Stale"]

        missing = gaps[0]
        assert missing.topic == "VPN reconnect procedure"
        assert missing.related_ticket_numbers == ["INC0010001", "INC0010002"]
        assert missing.suggested_title == "How to restore VPN after sleep"
        assert missing.suggested_content == "Reinstall the client and disable power saving."

        stale = gaps[1]
        assert stale.topic == "Printer driver article"
        assert stale.suggested_content.startswith("1. Download driver 4.1")
        assert "2. Remove the old driver package." in stale.suggested_content

    def test_bold_labels_with_words(self, vpn_tickets):
        gaps = ResponseParser(vpn_tickets).parse_gaps(WORDED_GAPS)
        assert [g.gap_type for g in gaps] == ["Missing", "Stale"]
        assert [g.topic for g in gaps] == ["VPN reconnect procedure", "Printer driver install"]
        assert gaps[0].suggested_title == "Restoring VPN after sleep"

    def test_incomplete_gap(self, vpn_tickets):
        text = (
            "### Incomplete: Password reset article\n"
            "- Tickets: INC0010004\n"
            "- Suggested Content: Add the MFA re-enrolment step.\n"
        )
        gaps = ResponseParser(vpn_tickets).parse_gaps(text)
        assert len(gaps) == 1
        assert gaps[0].gap_type == "Incomplete"
        assert gaps[0].topic == "Password reset article"

    def test_unstructured_gap_response(self, vpn_tickets):
        gaps = ResponseParser(vpn_tickets).parse_gaps(PROSE)
        assert len(gaps) == 1
        assert gaps[0].gap_type == "Missing"
        assert gaps[0].suggested_content == PROSE
