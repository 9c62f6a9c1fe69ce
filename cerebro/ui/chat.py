"""Streamlit chat UI for Cerebro.

Talks to the FastAPI backend via httpx. Run with:
    streamlit run cerebro/ui/chat.py
"""

from uuid import uuid4

import httpx
import streamlit as st

from cerebro.config import get_settings
from cerebro.ui.client import HelpdeskClient

st.set_page_config(page_title="Cerebro", layout="centered")

client = HelpdeskClient(get_settings().api_url)

_AVATARS = {"user": "user", "cerebro": "assistant", "system": "assistant", "technician": "assistant"}

# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

if "conversation_id" not in st.session_state:
    st.session_state.conversation_id = uuid4().hex

conversation_id: str = st.session_state.conversation_id

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

with st.sidebar:
    st.title("Cerebro")
    st.caption("IT helpdesk assistant")

    if st.button("New conversation"):
        st.session_state.conversation_id = uuid4().hex
        st.rerun()

    st.divider()
    st.caption(f"Conversation: `{conversation_id[:8]}`")

    uploaded = st.file_uploader("Attach a file", type=None, key=f"upload-{conversation_id}")
    if uploaded is not None and st.button("Send file"):
        try:
            client.send_message(conversation_id, "", file=(uploaded.name, uploaded.getvalue()))
        except httpx.HTTPError as exc:
            st.error(f"Upload failed: {exc}")
        st.rerun()

# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

try:
    messages = client.messages(conversation_id)
    ticket = client.conversation_ticket(conversation_id)
    suggestions = client.kb_suggestions(conversation_id)
except httpx.ConnectError:
    st.error("Cannot reach the API server. Start it with `uvicorn cerebro.api.main:app`.")
    st.stop()

if ticket:
    status = str(ticket["status"]).replace("_", " ")
    st.info(f"Ticket #{ticket['ticket_number']} · {ticket['application']} · Status: {status}")

for msg in messages:
    with st.chat_message(_AVATARS.get(msg["role"], "assistant")):
        if msg["role"] == "system":
            st.caption(msg["content"])
        else:
            st.markdown(msg["content"])

for article in suggestions.get("articles", []):
    with st.container(border=True):
        st.markdown(f"**{article['title']}**  \n_{article['application']}_")
        st.markdown(f"**Cause:** {article['cause']}")
        st.markdown("\n".join(f"{i}. {step}" for i, step in enumerate(article["steps"], 1)))
        if st.button("This solved my issue", key=f"helpful-{article['id']}"):
            client.mark_helpful(conversation_id, article["id"])
            st.rerun()

similar = suggestions.get("similar_tickets", [])
if similar:
    with st.container(border=True):
        st.markdown("**Similar past tickets**")
        for item in similar:
            st.markdown(f"- #{item['ticket_number']}: {item['description']}")

# ---------------------------------------------------------------------------
# User input
# ---------------------------------------------------------------------------

if prompt := st.chat_input("Describe your issue..."):
    with st.spinner("Cerebro is typing..."):
        try:
            client.send_message(conversation_id, prompt)
        except httpx.HTTPStatusError as exc:
            st.error(f"API error (HTTP {exc.response.status_code}): {exc.response.text}")
        except httpx.HTTPError as exc:
            st.error(f"Unexpected error: {exc}")
    st.rerun()
