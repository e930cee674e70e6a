"""
Unit tests for the Basic Pattern Detector
"""
import pytest

from services.analyze import BasicPatternDetector, description_signature
from services.analyze.detector import impact_estimate, seen_range
from shared.schemas.ticket import KBArticle


@pytest.fixture
def disk_tickets(make_ticket) -> list:
    return [
        make_ticket("INC1", category="Hardware", subcategory="Disk",
                    short_description="Disk full on server alpha", opened_at="2026-05-03 10:00:00"),
        make_ticket("INC2", category="Hardware", subcategory="Disk",
                    short_description="Cannot write files to volume", opened_at="2026-04-01 10:00:00",
                    close_notes="Extended the data volume"),
        make_ticket("INC3", category="Hardware", subcategory="Disk",
                    short_description="Storage alert triggered overnight", opened_at="2026-06-12 10:00:00"),
    ]


class TestDescriptionSignature:
    """Test the short-description signature"""

    def test_keeps_first_five_long_words(self):
        sig = description_signature("The VPN is down for all users in the Berlin office today")
        assert sig == "down users berlin office today"

    def test_case_and_spacing_insensitive(self):
        assert description_signature("Printer   JAM on floor") == description_signature("printer jam ON FLOOR")

    def test_short_words_only(self):
        assert description_signature("a b c") == ""


class TestPatternDetection:
    """Test category and description grouping"""

    def test_category_group_found_once(self, disk_tickets):
        patterns = BasicPatternDetector(min_occurrences=2).detect_patterns(disk_tickets)
        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.pattern_label == "Category: Hardware > Disk"
        assert pattern.occurrence_count == 3
        assert pattern.ticket_numbers == ["INC1", "INC2", "INC3"]
        assert pattern.first_seen == "2026-04-01 10:00:00"
        assert pattern.last_seen == "2026-06-12 10:00:00"
        assert pattern.suggested_resolution == "Extended the data volume"
        assert pattern.estimated_impact == "Low (3 tickets)"

    def test_below_threshold_never_reported(self, make_ticket):
        tickets = [
            make_ticket(f"INC{i}", category=f"Cat{i % 4}", subcategory="X",
                        short_description=f"Issue number {i % 3} happened again")
            for i in range(10)
        ]
        for min_occurrences in (1, 2, 3, 4, 5):
            patterns = BasicPatternDetector(min_occurrences).detect_patterns(tickets)
            assert all(p.occurrence_count >= min_occurrences for p in patterns)

    def test_sorted_by_count_with_category_first_on_ties(self, make_ticket):
        vpn = [
            make_ticket(f"VPN{i}", category="Network", subcategory="VPN",
                        short_description="VPN connection drops frequently")
            for i in range(3)
        ]
        mail = [
            make_ticket(f"MAIL{i}", category="Software", subcategory="Email",
                        short_description=f"Mailbox issue {word}")
            for i, word in enumerate(["alpha", "bravo", "charlie", "delta"])
        ]
        patterns = BasicPatternDetector(min_occurrences=3).detect_patterns(vpn + mail)
        assert [p.pattern_label for p in patterns] == [
            "Category: Software > Email",
            "Category: Network > VPN",
            "Similar: VPN connection drops frequently",
        ]
        assert [p.occurrence_count for p in patterns] == [4, 3, 3]

    def test_empty_input(self):
        assert BasicPatternDetector().detect_patterns([]) == []

    def test_impact_bands(self):
        assert impact_estimate(4) == "Low (4 tickets)"
        assert impact_estimate(5) == "Medium (5 tickets)"
        assert impact_estimate(10) == "High (10 tickets)"

    def test_seen_range_unparseable_first(self, make_ticket):
        tickets = [make_ticket("A", opened_at="2026-01-01"), make_ticket("B", opened_at="unknown")]
        assert seen_range(tickets) == ("unknown", "2026-01-01")


class TestGapDetection:
    """Test basic KB gap detection"""

    def test_missing_gap_for_uncovered_category(self, disk_tickets):
        gaps = BasicPatternDetector(min_occurrences=3).detect_gaps(disk_tickets, [])
        assert len(gaps) == 1
        gap = gaps[0]
        assert gap.gap_type == "Missing"
        assert gap.topic == "Hardware"
        assert gap.related_ticket_numbers == ["INC1", "INC2", "INC3"]
        assert gap.suggested_title == "Troubleshooting Hardware issues"
        assert "Extended the data volume" in gap.suggested_content

    def test_existing_article_closes_gap(self, disk_tickets):
        articles = [KBArticle(number="KB001", title="Hardware troubleshooting guide")]
        assert BasicPatternDetector(min_occurrences=3).detect_gaps(disk_tickets, articles) == []
