"""
Pytest configuration and fixtures
"""
from datetime import datetime

import pytest

from shared.schemas.ticket import CanonicalTicket


@pytest.fixture
def now() -> datetime:
    """Fixed clock for age-cutoff tests"""
    return datetime(2026, 7, 15, 12, 0, 0)


@pytest.fixture
def make_ticket():
    """Factory for CanonicalTicket with sensible defaults"""
    def _make(number: str, **fields) -> CanonicalTicket:
        defaults = {
            "short_description": f"Ticket {number}",
            "state": "New",
            "opened_at": "2026-06-01 09:00:00",
        }
        defaults.update(fields)
        return CanonicalTicket(number=number, **defaults)
    return _make


@pytest.fixture
def vpn_tickets(make_ticket) -> list:
    """Four VPN tickets and two printer tickets, referenced by the parser tests"""
    return [
        make_ticket("INC0010001", short_description="VPN drops after laptop sleep",
                    category="Network", subcategory="VPN", opened_at="2026-03-02 08:00:00"),
        make_ticket("INC0010002", short_description="VPN disconnects on resume",
                    category="Network", subcategory="VPN", opened_at="2026-04-10 10:30:00"),
        make_ticket("INC0010003", short_description="Lost VPN after standby",
                    category="Network", subcategory="VPN", opened_at="2026-02-20 14:00:00"),
        make_ticket("INC0010004", short_description="VPN tunnel closes when lid shut",
                    category="Network", subcategory="VPN", opened_at="2026-05-05 16:45:00"),
        make_ticket("INC0010005", short_description="Printer queue stuck",
                    category="Hardware", subcategory="Printer", opened_at="2026-05-06 09:00:00"),
        make_ticket("INC0010006", short_description="Print jobs never leave queue",
                    category="Hardware", subcategory="Printer", opened_at="2026-05-07 09:00:00"),
    ]


@pytest.fixture
def servicenow_incident() -> dict:
    """Incident as returned by the Table API with display values"""
    return {
        "number": "INC0010042",
        "sys_class_name": "Incident",
        "short_description": "Outlook crashes on startup",
        "description": "Outlook closes immediately after the splash screen.",
        "state": "In Progress",
        "priority": "2 - High",
        "category": "Software",
        "subcategory": "Email",
        "opened_at": "2026-06-20 08:15:00",
        "closed_at": "",
        "resolved_at": "",
        "assigned_to": {"display_value": "Dana Smith", "link": "https://x/api/now/table/sys_user/1"},
        "caller_id": {"display_value": "Lee Park"},
        "close_notes": "",
        "work_notes": "Collected crash dump",
        "cmdb_ci": {"display_value": "MAIL-SRV-01"},
    }
