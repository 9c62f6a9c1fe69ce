"""Thin httpx client for the helpdesk API, shared by the Streamlit pages."""

from typing import Any

import httpx

DEFAULT_TIMEOUT = 10.0


class HelpdeskClient:
    """Calls the FastAPI backend and returns decoded JSON.

    HTTP errors surface as ``httpx.HTTPStatusError``; connection failures as
    ``httpx.ConnectError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, **params: Any) -> Any:
        resp = self._client.get(path, params={k: v for k, v in params.items() if v is not None})
        resp.raise_for_status()
        return resp.json()

    def _send(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        resp = self._client.request(method, path, json=json)
        resp.raise_for_status()
        return resp.json()

    # --- Chat ---

    def messages(self, conversation_id: str) -> list[dict[str, Any]]:
        return self._get(f"/api/messages/{conversation_id}")  # type: ignore[no-any-return]

    def send_message(
        self,
        conversation_id: str,
        content: str,
        file: tuple[str, bytes] | None = None,
    ) -> list[dict[str, Any]]:
        """Post a chat message (multipart). Returns the updated conversation."""
        files = {"file": file} if file is not None else None
        resp = self._client.post(
            "/api/send-message",
            data={"conversation_id": conversation_id, "content": content},
            files=files,
        )
        resp.raise_for_status()
        return resp.json()["messages"]  # type: ignore[no-any-return]

    def kb_suggestions(self, conversation_id: str) -> dict[str, Any]:
        return self._get(f"/api/kb-suggestions/{conversation_id}")  # type: ignore[no-any-return]

    def mark_helpful(self, conversation_id: str, article_id: str | None) -> None:
        self._send("POST", "/api/mark-helpful", {"conversation_id": conversation_id, "article_id": article_id})

    def conversation_ticket(self, conversation_id: str) -> dict[str, Any] | None:
        return self._get(f"/api/conversation-ticket/{conversation_id}")  # type: ignore[no-any-return]

    # --- Tickets ---

    def tickets(self) -> list[dict[str, Any]]:
        return self._get("/api/tickets")  # type: ignore[no-any-return]

    def ticket(self, ticket_id: str) -> dict[str, Any]:
        return self._get(f"/api/tickets/{ticket_id}")  # type: ignore[no-any-return]

    def ticket_messages(self, ticket_id: str) -> list[dict[str, Any]]:
        return self._get(f"/api/ticket-messages/{ticket_id}")  # type: ignore[no-any-return]

    def ticket_analysis(self, ticket_id: str) -> dict[str, Any] | None:
        return self._get(f"/api/ticket-analysis/{ticket_id}")  # type: ignore[no-any-return]

    def technician_message(self, ticket_id: str, content: str, technician_name: str | None = None) -> None:
        self._send(
            "POST",
            f"/api/tickets/{ticket_id}/message",
            {"content": content, "technician_name": technician_name},
        )

    def update_status(self, ticket_id: str, status: str) -> dict[str, Any]:
        return self._send("PATCH", f"/api/tickets/{ticket_id}/status", {"status": status})  # type: ignore[no-any-return]

    def run_analysis(self, ticket_id: str) -> None:
        self._send("POST", f"/api/tickets/{ticket_id}/run-analysis")

    def apply_fix(self, ticket_id: str) -> None:
        self._send("POST", f"/api/tickets/{ticket_id}/apply-fix")

    def request_info(self, ticket_id: str, message: str) -> None:
        self._send("POST", f"/api/tickets/{ticket_id}/request-info", {"message": message})

    # --- Misc ---

    def search_kb(self, query: str = "", application: str | None = None) -> list[dict[str, Any]]:
        return self._get("/api/kb/search", q=query, app=application)  # type: ignore[no-any-return]

    def health(self) -> dict[str, Any]:
        return self._get("/health")  # type: ignore[no-any-return]


def filter_tickets(
    tickets: list[dict[str, Any]],
    *,
    numbers: list[int] | None = None,
    status: str | None = None,
    search: str = "",
) -> list[dict[str, Any]]:
    """Dashboard filtering: ticket numbers, exact status, and a free-text search."""
    needle = search.strip().lower()
    result = []
    for ticket in tickets:
        if numbers and ticket["ticket_number"] not in numbers:
            continue
        if status and ticket["status"] != status:
            continue
        if needle:
            haystack = f"{ticket['ticket_number']} {ticket['application']} {ticket['description']} {ticket['user_name']}"
            if needle not in haystack.lower():
                continue
        result.append(ticket)
    return result
