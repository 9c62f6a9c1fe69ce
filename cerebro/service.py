"""Helpdesk service: owns the store, dialogue engine, simulator and notifier.

Built once per process (``HelpdeskService.build``) and shared by the API and
the CLI.  Every chat mutation for a conversation runs under that
conversation's asyncio lock, so two requests for the same conversation never
interleave inside the dialogue engine.
"""

import asyncio
import logging

from cerebro.analysis.simulator import AnalysisSimulator
from cerebro.api.notifier import Notifier
from cerebro.config import Settings, get_settings
from cerebro.dialogue.engine import DialogueEngine
from cerebro.store.models import (
    Attachment,
    KBArticle,
    KBSuggestions,
    LogAnalysis,
    Message,
    MessageRole,
    Ticket,
    TicketStatus,
)
from cerebro.store.store import HelpdeskStore

logger = logging.getLogger(__name__)

ON_DEMAND_FALLBACK_APPLICATION = "Inventory App"
RESOLVED_MESSAGE = "Issue resolved! Closing this interaction."

CONVERTED_CSV = """\
Name,Email,Department,Start Date
John Doe,john.doe@example.com,Engineering,2025-01-15
Jane Smith,jane.smith@example.com,Marketing,2025-02-01
Bob Johnson,bob.johnson@example.com,Sales,2025-02-10"""
CONVERTED_FILE_NAME = "converted_utf8.csv"


class HelpdeskError(Exception):
    """Base class for errors the API turns into client responses."""


class InvalidRequestError(HelpdeskError):
    pass


class TicketNotFoundError(HelpdeskError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__("Ticket not found")
        self.ticket_id = ticket_id


class ConversationNotFoundError(HelpdeskError):
    def __init__(self, ticket_id: str) -> None:
        super().__init__("Conversation not found for ticket")
        self.ticket_id = ticket_id


class HelpdeskService:
    def __init__(
        self,
        *,
        store: HelpdeskStore,
        engine: DialogueEngine,
        simulator: AnalysisSimulator,
        notifier: Notifier,
        settings: Settings,
    ) -> None:
        self.store = store
        self.engine = engine
        self.simulator = simulator
        self.notifier = notifier
        self.settings = settings
        self._conversation_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def build(cls, settings: Settings | None = None) -> "HelpdeskService":
        """Wire up a fresh store, notifier, simulator and engine."""
        settings = settings or get_settings()
        store = HelpdeskStore(settings.store_db_path, ticket_number_seed=settings.ticket_number_seed)
        notifier = Notifier()
        simulator = AnalysisSimulator(
            store,
            delay_seconds=settings.analysis_delay_seconds,
            on_ticket_update=notifier.ticket_updated,
        )
        engine = DialogueEngine(store, simulator)
        return cls(store=store, engine=engine, simulator=simulator, notifier=notifier, settings=settings)

    def start(self) -> None:
        self.simulator.start()
        logger.info("Helpdesk service started")

    def shutdown(self) -> None:
        self.simulator.shutdown()
        self.store.close()
        logger.info("Helpdesk service stopped")

    def _conversation_lock(self, conversation_id: str) -> asyncio.Lock:
        return self._conversation_locks.setdefault(conversation_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def send_message(
        self,
        conversation_id: str,
        content: str = "",
        attachment: Attachment | None = None,
    ) -> list[Message]:
        """Handle one user message end to end.

        Stores the message, runs the dialogue engine, stores its reply,
        opens a ticket if the dialogue asked for one, and notifies
        subscribers.

        Returns:
            Every message in the conversation, in arrival order.

        Raises:
            InvalidRequestError: No conversation id, or neither text nor file.
        """
        if not conversation_id:
            raise InvalidRequestError("Missing conversation_id")
        if not content and attachment is not None:
            content = f"Uploaded file: {attachment.filename}"
        if not content:
            raise InvalidRequestError("Missing content or file")

        async with self._conversation_lock(conversation_id):
            self.store.create_message(conversation_id=conversation_id, role=MessageRole.USER, content=content)

            reply = self.engine.process_message(conversation_id, content, attachment)
            if reply:
                self.store.create_message(conversation_id=conversation_id, role=MessageRole.CEREBRO, content=reply)

            ticket = self.engine.should_create_ticket(
                conversation_id, self.settings.demo_user_id, self.settings.demo_user_name
            )
            if ticket is not None:
                status = ticket.status.value.replace("_", " ", 1)
                self.store.create_message(
                    conversation_id=conversation_id,
                    role=MessageRole.SYSTEM,
                    content=f"Ticket #{ticket.ticket_number} created - Status: {status}",
                    ticket_id=ticket.id,
                )
                await self.notifier.ticket_updated(ticket.id)

            messages = self.store.get_messages(conversation_id)

        await self.notifier.messages_updated(conversation_id)
        return messages

    def get_messages(self, conversation_id: str) -> list[Message]:
        return self.store.get_messages(conversation_id)

    def kb_suggestions(self, conversation_id: str) -> KBSuggestions | None:
        return self.engine.should_show_kb(conversation_id)

    def conversation_ticket(self, conversation_id: str) -> Ticket | None:
        return self.store.get_ticket_by_conversation_id(conversation_id)

    async def mark_helpful(self, conversation_id: str, article_id: str | None = None) -> Ticket | None:
        """Close the conversation and resolve its ticket, if it has one."""
        if not conversation_id:
            raise InvalidRequestError("Missing conversation_id")

        async with self._conversation_lock(conversation_id):
            self.engine.mark_resolved(conversation_id)
            self.store.create_message(conversation_id=conversation_id, role=MessageRole.SYSTEM, content=RESOLVED_MESSAGE)
            ticket = self.store.get_ticket_by_conversation_id(conversation_id)
            if ticket is not None:
                ticket = self.store.update_ticket_status(ticket.id, TicketStatus.RESOLVED)

        logger.info("Conversation %s marked helpful (article %s)", conversation_id, article_id)
        if ticket is not None:
            await self.notifier.ticket_updated(ticket.id)
        await self.notifier.messages_updated(conversation_id)
        return ticket

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def list_tickets(self) -> list[Ticket]:
        return self.store.get_tickets()

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = self.store.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def ticket_messages(self, ticket_id: str) -> list[Message]:
        return self.store.get_ticket_messages(ticket_id)

    def ticket_analysis(self, ticket_id: str) -> LogAnalysis | None:
        return self.store.get_log_analysis_by_ticket_id(ticket_id)

    async def post_technician_message(
        self,
        ticket_id: str,
        content: str,
        technician_name: str | None = None,
    ) -> Message | None:
        """Relay a technician reply into the ticket's conversation.

        Returns None when the ticket has no linked conversation (seed tickets).
        """
        self.get_ticket(ticket_id)
        if not content:
            raise InvalidRequestError("Missing content")

        message = None
        conversation_id = self.store.get_conversation_id_by_ticket(ticket_id)
        if conversation_id is not None:
            name = technician_name or self.settings.technician_default_name
            message = self.store.create_message(
                conversation_id=conversation_id,
                role=MessageRole.TECHNICIAN,
                content=f"**{name}:** {content}",
                ticket_id=ticket_id,
            )
            await self.notifier.messages_updated(conversation_id)

        await self.notifier.ticket_updated(ticket_id)
        return message

    async def update_ticket_status(self, ticket_id: str, status: TicketStatus) -> Ticket:
        ticket = self.store.update_ticket_status(ticket_id, status)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        logger.info("Ticket #%d status set to %s", ticket.ticket_number, status)
        await self.notifier.ticket_updated(ticket_id)
        return ticket

    async def run_analysis(self, ticket_id: str) -> str:
        """Start an on-demand log analysis. Returns the scheduler job id."""
        ticket = self.get_ticket(ticket_id)
        self.store.update_ticket_status(ticket_id, TicketStatus.LOG_ANALYSIS)
        job_id = self.simulator.schedule(
            ticket_id,
            ticket.application,
            delay_seconds=self.settings.on_demand_analysis_delay_seconds,
            fallback_application=ON_DEMAND_FALLBACK_APPLICATION,
            set_status=False,
            trigger="on_demand",
        )
        await self.notifier.ticket_updated(ticket_id)
        return job_id

    async def apply_fix(self, ticket_id: str) -> Ticket:
        self.get_ticket(ticket_id)
        return await self.update_ticket_status(ticket_id, TicketStatus.FIX_APPLIED)

    async def request_info(self, ticket_id: str, message: str) -> Ticket:
        """Ask the user for more detail and move the ticket to in_progress.

        Raises:
            TicketNotFoundError: Unknown ticket.
            ConversationNotFoundError: The ticket has no linked conversation.
        """
        self.get_ticket(ticket_id)
        if not message:
            raise InvalidRequestError("Missing message")

        conversation_id = self.store.get_conversation_id_by_ticket(ticket_id)
        if conversation_id is None:
            raise ConversationNotFoundError(ticket_id)

        self.store.create_message(
            conversation_id=conversation_id,
            role=MessageRole.TECHNICIAN,
            content=message,
            ticket_id=ticket_id,
        )
        ticket = await self.update_ticket_status(ticket_id, TicketStatus.IN_PROGRESS)
        await self.notifier.messages_updated(conversation_id)
        return ticket

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def search_kb(self, query: str = "", application: str | None = None) -> list[KBArticle]:
        return self.store.search_kb(query, application)

    def find_similar_tickets(self, description: str) -> list[Ticket]:
        return self.store.find_similar_tickets(description)

    def converted_file(self) -> tuple[str, str]:
        """Canned UTF-8 CSV offered after an encoding failure: (filename, content)."""
        return CONVERTED_FILE_NAME, CONVERTED_CSV
