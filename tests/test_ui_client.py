"""Tests for the httpx client shared by the Streamlit pages, and the dashboard filters."""

import json
from typing import Any

import httpx
import pytest
import respx

from cerebro.ui.client import HelpdeskClient, filter_tickets

API = "http://api.test"


def _ticket(number: int, status: str = "new", application: str = "Finance App", **extra: Any) -> dict[str, Any]:
    return {
        "id": f"id-{number}",
        "ticket_number": number,
        "application": application,
        "description": extra.get("description", "Invoice approval fails"),
        "user_name": extra.get("user_name", "Demo User"),
        "status": status,
    }


@pytest.fixture
def client() -> HelpdeskClient:
    return HelpdeskClient(API)


# ---------------------------------------------------------------------------
# HelpdeskClient
# ---------------------------------------------------------------------------


class TestChatCalls:
    @respx.mock
    def test_send_message_form(self, client: HelpdeskClient) -> None:
        route = respx.post(f"{API}/api/send-message").mock(
            return_value=httpx.Response(200, json={"success": True, "messages": [{"role": "user"}]})
        )

        messages = client.send_message("conv-1", "hello")

        assert messages == [{"role": "user"}]
        body = route.calls.last.request.content.decode()
        assert "conversation_id=conv-1" in body
        assert "content=hello" in body

    @respx.mock
    def test_send_message_with_file(self, client: HelpdeskClient) -> None:
        route = respx.post(f"{API}/api/send-message").mock(
            return_value=httpx.Response(200, json={"success": True, "messages": []})
        )

        client.send_message("conv-1", "", file=("data.csv", b"a,b\n"))

        request = route.calls.last.request
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'filename="data.csv"' in request.read()

    @respx.mock
    def test_mark_helpful(self, client: HelpdeskClient) -> None:
        route = respx.post(f"{API}/api/mark-helpful").mock(return_value=httpx.Response(200, json={"success": True}))

        client.mark_helpful("conv-1", "article-1")

        assert json.loads(route.calls.last.request.content) == {"conversation_id": "conv-1", "article_id": "article-1"}

    @respx.mock
    def test_conversation_without_ticket(self, client: HelpdeskClient) -> None:
        respx.get(f"{API}/api/conversation-ticket/conv-1").mock(
            return_value=httpx.Response(200, content=b"null", headers={"content-type": "application/json"})
        )
        assert client.conversation_ticket("conv-1") is None


class TestTicketCalls:
    @respx.mock
    def test_update_status(self, client: HelpdeskClient) -> None:
        route = respx.patch(f"{API}/api/tickets/t1/status").mock(
            return_value=httpx.Response(200, json=_ticket(48205, status="resolved"))
        )

        ticket = client.update_status("t1", "resolved")

        assert ticket["status"] == "resolved"
        assert json.loads(route.calls.last.request.content) == {"status": "resolved"}

    @respx.mock
    def test_request_info(self, client: HelpdeskClient) -> None:
        route = respx.post(f"{API}/api/tickets/t1/request-info").mock(
            return_value=httpx.Response(200, json={"success": True})
        )
        client.request_info("t1", "Which invoice?")
        assert json.loads(route.calls.last.request.content) == {"message": "Which invoice?"}

    @respx.mock
    def test_not_found_raises(self, client: HelpdeskClient) -> None:
        respx.get(f"{API}/api/tickets/missing").mock(
            return_value=httpx.Response(404, json={"detail": "Ticket not found"})
        )
        with pytest.raises(httpx.HTTPStatusError):
            client.ticket("missing")

    @respx.mock
    def test_connection_refused(self, client: HelpdeskClient) -> None:
        respx.get(f"{API}/api/tickets").mock(side_effect=httpx.ConnectError("Connection refused"))
        with pytest.raises(httpx.ConnectError):
            client.tickets()


class TestSearch:
    @respx.mock
    def test_params(self, client: HelpdeskClient) -> None:
        route = respx.get(f"{API}/api/kb/search").mock(return_value=httpx.Response(200, json=[]))

        client.search_kb("encoding", "Data Import")

        params = route.calls.last.request.url.params
        assert params["q"] == "encoding"
        assert params["app"] == "Data Import"

    @respx.mock
    def test_application_omitted(self, client: HelpdeskClient) -> None:
        route = respx.get(f"{API}/api/kb/search").mock(return_value=httpx.Response(200, json=[]))

        client.search_kb("sync")

        assert "app" not in route.calls.last.request.url.params


# ---------------------------------------------------------------------------
# filter_tickets
# ---------------------------------------------------------------------------


class TestFilterTickets:
    TICKETS = [
        _ticket(48205, status="log_analysis"),
        _ticket(48201, status="resolved", application="Inventory App", description="Logged out on Android"),
        _ticket(48202, status="resolved", application="Payroll App", user_name="Bob Johnson"),
    ]

    def test_no_filters(self) -> None:
        assert filter_tickets(self.TICKETS) == self.TICKETS

    def test_numbers(self) -> None:
        result = filter_tickets(self.TICKETS, numbers=[48201, 48320])
        assert [t["ticket_number"] for t in result] == [48201]

    def test_status(self) -> None:
        result = filter_tickets(self.TICKETS, status="resolved")
        assert [t["ticket_number"] for t in result] == [48201, 48202]

    def test_search_case_insensitive(self) -> None:
        assert [t["ticket_number"] for t in filter_tickets(self.TICKETS, search="ANDROID")] == [48201]
        assert [t["ticket_number"] for t in filter_tickets(self.TICKETS, search="bob")] == [48202]

    def test_search_by_number(self) -> None:
        assert [t["ticket_number"] for t in filter_tickets(self.TICKETS, search="48205")] == [48205]

    def test_combined(self) -> None:
        assert filter_tickets(self.TICKETS, numbers=[48205], status="resolved") == []
