"""Streamlit IT support dashboard.

Ticket list with filters, a detail view with the simulated log analysis,
and the technician actions. Run with:
    streamlit run cerebro/ui/dashboard.py
"""

import httpx
import streamlit as st

from cerebro.config import get_settings
from cerebro.store.models import TicketStatus
from cerebro.ui.client import HelpdeskClient, filter_tickets

st.set_page_config(page_title="Cerebro IT Dashboard", layout="wide")

settings = get_settings()
client = HelpdeskClient(settings.api_url)

# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

with st.sidebar:
    st.title("IT Support")
    show_all = st.toggle("Show all tickets", value=False)
    status_filter = st.selectbox("Status", ["all", *[s.value for s in TicketStatus]])
    search = st.text_input("Search")
    if st.button("Refresh"):
        st.rerun()

try:
    tickets = client.tickets()
except httpx.ConnectError:
    st.error("Cannot reach the API server. Start it with `uvicorn cerebro.api.main:app`.")
    st.stop()

visible = filter_tickets(
    tickets,
    # TODO: 48320 is never issued by any flow; confirm the intended demo ticket numbers.
    numbers=None if show_all else settings.scripted_ticket_number_list,
    status=None if status_filter == "all" else status_filter,
    search=search,
)

# ---------------------------------------------------------------------------
# Ticket list
# ---------------------------------------------------------------------------

list_col, detail_col = st.columns([1, 2])

with list_col:
    st.subheader(f"Tickets ({len(visible)})")
    if not visible:
        st.caption("No tickets match the current filters.")
    for ticket in visible:
        label = f"#{ticket['ticket_number']} · {ticket['application']} · {ticket['status'].replace('_', ' ')}"
        if st.button(label, key=f"ticket-{ticket['id']}", use_container_width=True):
            st.session_state.selected_ticket = ticket["id"]

# ---------------------------------------------------------------------------
# Ticket detail
# ---------------------------------------------------------------------------

selected = st.session_state.get("selected_ticket")
with detail_col:
    if not selected:
        st.caption("Select a ticket to see its details.")
        st.stop()

    try:
        ticket = client.ticket(selected)
    except httpx.HTTPStatusError:
        st.warning("Ticket not found.")
        st.stop()

    st.subheader(f"Ticket #{ticket['ticket_number']}")
    st.markdown(
        f"**Application:** {ticket['application']}  \n"
        f"**User:** {ticket['user_name']}  \n"
        f"**Severity:** {ticket['severity']}  \n"
        f"**Status:** {ticket['status'].replace('_', ' ')}  \n"
        f"**Error code:** {ticket['error_code'] or '-'}"
    )
    st.markdown(f"> {ticket['description']}")

    analysis = client.ticket_analysis(selected)
    with st.container(border=True):
        st.markdown("**Automated log analysis**")
        if analysis is None:
            st.caption("No analysis yet.")
            if st.button("Run analysis"):
                client.run_analysis(selected)
                st.rerun()
        else:
            st.markdown(f"**Error pattern:** `{analysis['error_pattern']}`")
            st.markdown(f"**Root cause:** {analysis['root_cause']}")
            st.markdown(f"**Suggested fix:** {analysis['suggested_fix']}")
            if analysis.get("correlated_event"):
                st.markdown(f"**Correlated event:** {analysis['correlated_event']}")
            st.code(analysis["log_excerpt"], language="log")

    action_cols = st.columns(2)
    with action_cols[0]:
        if st.button("Apply fix", disabled=ticket["status"] in ("fix_applied", "resolved")):
            client.apply_fix(selected)
            st.rerun()
    with action_cols[1]:
        if st.button("Mark resolved", disabled=ticket["status"] == "resolved"):
            client.update_status(selected, TicketStatus.RESOLVED.value)
            st.rerun()

    with st.form("request-info", clear_on_submit=True):
        question = st.text_area("Request more information from the user")
        if st.form_submit_button("Send request") and question:
            try:
                client.request_info(selected, question)
            except httpx.HTTPStatusError as exc:
                st.error(exc.response.json().get("detail", "Request failed"))
            else:
                st.rerun()

    with st.form("technician-message", clear_on_submit=True):
        reply = st.text_area("Message the user")
        if st.form_submit_button("Send message") and reply:
            client.technician_message(selected, reply)
            st.rerun()

    st.markdown("**Conversation**")
    for msg in client.ticket_messages(selected):
        st.markdown(f"_{msg['role']}_: {msg['content']}")
