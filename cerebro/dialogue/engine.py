"""Scripted dialogue engine.

Each conversation owns one ``ConversationState``, created on first use and
kept for the life of the process.  A message goes through a fixed sequence:
global intercepts (ticket status, how-to questions, file uploads), pending
yes/no confirmations, scenario detection and finally the active scenario's
step handler.  Store errors propagate to the caller untouched.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from cerebro.analysis.simulator import AnalysisSimulator
from cerebro.dialogue import replies
from cerebro.dialogue.classifier import (
    Scenario,
    classify_scenario,
    extract_error_code,
    extract_keywords,
    extract_ticket_number,
    is_affirmative,
    is_how_to_question,
    is_negative,
    looks_like_application_name,
    looks_like_device,
    looks_like_period,
    looks_like_time_response,
    parse_selection,
    resolve_application,
)
from cerebro.dialogue.state import (
    Confirmation,
    ConversationState,
    DashboardNoDataState,
    DashboardNoDataStep,
    DataImportState,
    DataImportStep,
    GeneralState,
    GeneralStep,
    InvoiceApprovalState,
    InvoiceApprovalStep,
    MobileLogoutState,
    MobileLogoutStep,
    OnboardingState,
    PayrollSummaryState,
    PayrollSummaryStep,
    SalesReportState,
    SalesReportStep,
    ScenarioState,
)
from cerebro.observability.metrics import MESSAGES_PROCESSED_TOTAL, TICKETS_CREATED_TOTAL
from cerebro.store.models import Attachment, KBArticle, KBSuggestions, MessageRole, Ticket
from cerebro.store.store import MAX_DESCRIPTION_LENGTH, HelpdeskStore

logger = logging.getLogger(__name__)

UNKNOWN_APPLICATION = "Unknown"
DATA_IMPORT_APPLICATION = "Data Import"
PAYROLL_APPLICATION = "Payroll App"

_SCENARIO_TYPES: dict[Scenario, type[ScenarioState]] = {
    Scenario.SALES_REPORT: SalesReportState,
    Scenario.PAYROLL_SUMMARY: PayrollSummaryState,
    Scenario.DATA_IMPORT: DataImportState,
    Scenario.INVOICE_APPROVAL: InvoiceApprovalState,
    Scenario.MOBILE_LOGOUT: MobileLogoutState,
    Scenario.DASHBOARD_NO_DATA: DashboardNoDataState,
}

# Applications implied by the scenario itself.
_SCENARIO_APPLICATIONS: dict[Scenario, str] = {
    Scenario.PAYROLL_SUMMARY: PAYROLL_APPLICATION,
    Scenario.DATA_IMPORT: DATA_IMPORT_APPLICATION,
}


class DialogueEngine:
    """Keyword-driven conversation state machine."""

    def __init__(self, store: HelpdeskStore, simulator: AnalysisSimulator | None = None) -> None:
        self._store = store
        self._simulator = simulator
        self._states: dict[str, ConversationState] = {}
        self._lock = threading.Lock()
        self._handlers: dict[Scenario, Callable[[ConversationState, Any, str], str]] = {
            Scenario.SALES_REPORT: self._continue_sales_report,
            Scenario.PAYROLL_SUMMARY: self._continue_payroll_summary,
            Scenario.DATA_IMPORT: self._continue_data_import,
            Scenario.INVOICE_APPROVAL: self._continue_invoice_approval,
            Scenario.MOBILE_LOGOUT: self._continue_mobile_logout,
            Scenario.DASHBOARD_NO_DATA: self._continue_dashboard,
            Scenario.ONBOARDING: self._continue_onboarding,
            Scenario.GENERAL: self._continue_general,
        }

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def get_state(self, conversation_id: str) -> ConversationState:
        """State for a conversation, created on first access."""
        with self._lock:
            state = self._states.get(conversation_id)
            if state is None:
                state = ConversationState()
                self._states[conversation_id] = state
            return state

    def peek_state(self, conversation_id: str) -> ConversationState | None:
        """State for a conversation if one exists. Never creates it."""
        with self._lock:
            return self._states.get(conversation_id)

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def process_message(self, conversation_id: str, text: str, attachment: Attachment | None = None) -> str:
        """Produce the scripted reply to one user message.

        An empty reply means the answer is a KB article, surfaced through
        ``should_show_kb`` rather than as chat text.
        """
        ticket_number = extract_ticket_number(text)
        if ticket_number is not None:
            MESSAGES_PROCESSED_TOTAL.labels(scenario="ticket_status").inc()
            return self._ticket_status(ticket_number)

        state = self.get_state(conversation_id)
        reply = self._advance(conversation_id, state, text, attachment)

        MESSAGES_PROCESSED_TOTAL.labels(scenario=str(state.scenario_kind or "none")).inc()
        logger.debug(
            "Conversation %s: scenario=%s waiting=%s ticket=%s",
            conversation_id,
            state.scenario_kind,
            state.waiting_for_confirmation,
            state.will_create_ticket,
        )
        return reply

    def should_show_kb(self, conversation_id: str) -> KBSuggestions | None:
        """KB article (or similar tickets) the chat should display. Read-only."""
        state = self.peek_state(conversation_id)
        if state is None:
            return None

        scenario = state.scenario
        if state.waiting_for_confirmation == Confirmation.SIMILAR_TICKET and isinstance(scenario, PayrollSummaryState):
            return KBSuggestions(similar_tickets=list(scenario.similar_tickets))
        if state.found_kb_article is not None:
            return KBSuggestions(articles=[state.found_kb_article])
        return None

    def mark_resolved(self, conversation_id: str) -> None:
        """Finish the conversation after the user accepted a KB article."""
        state = self.peek_state(conversation_id)
        if state is None:
            return
        state.found_kb_article = None
        state.waiting_for_confirmation = None
        if state.scenario is not None:
            state.scenario.finished = True

    def should_create_ticket(self, conversation_id: str, user_id: str, user_name: str) -> Ticket | None:
        """Open the conversation's ticket if the dialogue asked for one.

        Creates at most one ticket per conversation, links it, and schedules
        the simulated log analysis.
        """
        state = self.peek_state(conversation_id)
        if state is None or not state.will_create_ticket or state.ticket_created:
            return None

        user_messages = [m.content for m in self._store.get_messages(conversation_id) if m.role == MessageRole.USER]
        description = " ".join(user_messages)[:MAX_DESCRIPTION_LENGTH]
        scenario = state.scenario

        ticket = self._store.create_ticket(
            user_id=user_id,
            user_name=user_name,
            application=state.application or UNKNOWN_APPLICATION,
            description=description,
            error_code=scenario.ticket_error_code() if scenario is not None else None,
            severity=str(scenario.severity) if scenario is not None else "medium",
        )
        self._store.link_conversation_to_ticket(conversation_id, ticket.id)

        state.ticket_created = True
        state.ticket_id = ticket.id
        state.ticket_number = ticket.ticket_number
        TICKETS_CREATED_TOTAL.labels(application=ticket.application).inc()

        if self._simulator is not None:
            self._simulator.schedule(ticket.id, ticket.application)
        return ticket

    # ------------------------------------------------------------------
    # Intercepts and dispatch
    # ------------------------------------------------------------------

    def _ticket_status(self, number: str) -> str:
        ticket = self._store.get_ticket_by_number(int(number))
        if ticket is None:
            return replies.ticket_not_found(number)
        analysis = self._store.get_log_analysis_by_ticket_id(ticket.id)
        return replies.ticket_status(ticket, analysis, applied_at=datetime.now().strftime("%I:%M:%S %p"))

    def _advance(
        self,
        conversation_id: str,
        state: ConversationState,
        text: str,
        attachment: Attachment | None,
    ) -> str:
        scenario = state.scenario

        if is_how_to_question(text):
            return self._start_onboarding(state, text)

        if attachment is not None and state.in_progress:
            if isinstance(scenario, OnboardingState):
                scenario.finished = True
                scenario = DataImportState()
                state.scenario = scenario
                state.application = DATA_IMPORT_APPLICATION
                state.found_kb_article = None
                state.waiting_for_confirmation = None
            if isinstance(scenario, DataImportState) and scenario.step == DataImportStep.AWAIT_FILE:
                return self._check_import_file(state, scenario, attachment)

        if state.waiting_for_confirmation in (Confirmation.KB_HELPFUL, Confirmation.FIX_CONFIRMED):
            if is_affirmative(text):
                return self._close(state)
            if is_negative(text):
                state.escalate()
                return replies.NOT_HELPFUL

        if scenario is None:
            return self._detect(conversation_id, state, text)

        if scenario.finished:
            if state.ticket_number is not None:
                return replies.TICKET_FOLLOW_UP.format(number=state.ticket_number)
            return replies.ANYTHING_ELSE

        return self._handlers[scenario.kind](state, scenario, text)

    def _close(self, state: ConversationState) -> str:
        confirmation = state.waiting_for_confirmation
        state.waiting_for_confirmation = None
        if state.scenario is not None:
            state.scenario.finished = True
        if confirmation == Confirmation.KB_HELPFUL:
            return replies.KB_CLOSED
        return replies.FIX_CLOSED

    def _detect(self, conversation_id: str, state: ConversationState, text: str) -> str:
        state.problem_statement = text

        if len(self._store.get_messages(conversation_id)) <= 1:
            kind = classify_scenario(text)
            if kind is not None:
                state.scenario = _SCENARIO_TYPES[kind]()
                if kind in _SCENARIO_APPLICATIONS:
                    state.application = _SCENARIO_APPLICATIONS[kind]
                logger.info("Conversation %s classified as %s", conversation_id, kind)
                return replies.INITIAL_REPLIES[kind]

        application = resolve_application(text)
        if application is not None:
            state.application = application
            state.scenario = GeneralState(step=GeneralStep.ASK_TIME)
            return replies.APPLICATION_DETECTED.format(application=application)

        state.scenario = GeneralState()
        return replies.ASK_APPLICATION

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _first_article(self, application: str | None) -> KBArticle | None:
        if not application:
            return None
        articles = self._store.search_kb("", application)
        return articles[0] if articles else None

    @staticmethod
    def _take_application(state: ConversationState, text: str) -> bool:
        """Record the application named in ``text``. False if it names none."""
        if not looks_like_application_name(text):
            return False
        state.application = resolve_application(text) or text.strip().rstrip(".")
        return True

    # ------------------------------------------------------------------
    # Scenario handlers
    # ------------------------------------------------------------------

    def _continue_sales_report(self, state: ConversationState, scenario: SalesReportState, text: str) -> str:
        if scenario.step == SalesReportStep.ASK_APPLICATION:
            if not self._take_application(state, text):
                return replies.ASK_APPLICATION_AGAIN
            scenario.step = SalesReportStep.ASK_TIME
            return replies.ASK_TIME

        if scenario.step == SalesReportStep.ASK_TIME:
            if looks_like_time_response(text):
                scenario.time_occurred = text
                article = self._first_article(state.application)
                if article is None:
                    state.escalate()
                    return replies.NO_KB_MATCH
                scenario.step = SalesReportStep.KB_SHOWN
                state.show_article(article)
                return f"{replies.format_article(article)}\n\n{replies.DID_THAT_SOLVE}"
            if self._take_application(state, text):
                return replies.ASK_TIME
            return replies.ASK_TIME_AGAIN

        return replies.DID_THAT_SOLVE

    def _continue_payroll_summary(self, state: ConversationState, scenario: PayrollSummaryState, text: str) -> str:
        if scenario.step == PayrollSummaryStep.ASK_PERIOD:
            if not looks_like_period(text):
                return replies.ASK_PERIOD_AGAIN
            scenario.payroll_period = text.strip()
            similar = self._store.find_similar_tickets(state.problem_statement or text)
            if not similar:
                state.escalate()
                return replies.NO_SIMILAR
            scenario.similar_tickets = similar
            scenario.step = PayrollSummaryStep.CHOOSE_SIMILAR
            state.waiting_for_confirmation = Confirmation.SIMILAR_TICKET
            return replies.format_similar_tickets(similar)

        if scenario.step == PayrollSummaryStep.CHOOSE_SIMILAR:
            index = parse_selection(text, len(scenario.similar_tickets))
            if index is not None:
                return self._offer_past_resolution(state, scenario, index)
            if is_negative(text):
                state.escalate()
                return replies.SIMILAR_REJECTED
            return replies.format_similar_tickets(scenario.similar_tickets)

        return replies.DID_THAT_SOLVE

    def _offer_past_resolution(self, state: ConversationState, scenario: PayrollSummaryState, index: int) -> str:
        chosen = scenario.similar_tickets[index]
        scenario.selected_index = index
        scenario.step = PayrollSummaryStep.RESOLUTION_OFFERED
        state.waiting_for_confirmation = None

        articles = self._store.search_kb(chosen.description, chosen.application)
        if articles:
            state.show_article(articles[0])
            intro = f"Ticket #{chosen.ticket_number} was resolved with this article:"
            return f"{replies.format_article(articles[0], intro=intro)}\n\n{replies.DID_THAT_SOLVE}"

        state.waiting_for_confirmation = Confirmation.FIX_CONFIRMED
        return replies.PAST_CAUSE.format(number=chosen.ticket_number, cause=replies.past_cause(chosen))

    def _continue_data_import(self, state: ConversationState, scenario: DataImportState, text: str) -> str:
        if scenario.step == DataImportStep.AWAIT_FILE:
            return replies.ASK_FILE_AGAIN
        return replies.RETRY_IMPORT_AGAIN

    def _check_import_file(self, state: ConversationState, scenario: DataImportState, attachment: Attachment) -> str:
        scenario.file_name = attachment.filename
        scenario.file_type = attachment.extension or None
        if attachment.extension != "csv":
            return replies.NOT_A_CSV

        try:
            attachment.content.decode("utf-8")
        except UnicodeDecodeError:
            logger.info("Uploaded file %s is not UTF-8", attachment.filename)
        else:
            state.escalate()
            return replies.FILE_LOOKS_FINE

        scenario.step = DataImportStep.RETRY_IMPORT
        state.waiting_for_confirmation = Confirmation.FIX_CONFIRMED
        offer = replies.CONVERTED_FILE_OFFER.format(url=replies.CONVERTED_FILE_URL)

        articles = self._store.search_kb("encoding", DATA_IMPORT_APPLICATION)
        if not articles:
            return offer
        state.found_kb_article = articles[0]
        intro = "Your file isn't UTF-8 encoded, which is a known cause of import failures:"
        return f"{replies.format_article(articles[0], intro=intro)}\n\n{offer}"

    def _continue_invoice_approval(self, state: ConversationState, scenario: InvoiceApprovalState, text: str) -> str:
        if scenario.step == InvoiceApprovalStep.ASK_APPLICATION:
            if not self._take_application(state, text):
                return replies.ASK_APPLICATION_AGAIN
            scenario.step = InvoiceApprovalStep.ASK_TIME
            return replies.ASK_TIME

        if scenario.step == InvoiceApprovalStep.ASK_TIME:
            if looks_like_time_response(text):
                scenario.time_occurred = text
                scenario.step = InvoiceApprovalStep.ASK_ERROR
                return replies.ASK_ERROR
            if self._take_application(state, text):
                return replies.ASK_TIME
            return replies.ASK_TIME_AGAIN

        code = extract_error_code(text)
        scenario.error_code = code
        state.escalate()
        if code is None:
            return replies.NO_ERROR_CODE
        return replies.ERROR_NOTED.format(code=code)

    def _continue_mobile_logout(self, state: ConversationState, scenario: MobileLogoutState, text: str) -> str:
        if scenario.step == MobileLogoutStep.ASK_APPLICATION:
            if not self._take_application(state, text):
                return replies.ASK_APPLICATION_AGAIN
            scenario.step = MobileLogoutStep.ASK_DEVICE
            return replies.ASK_DEVICE

        if not looks_like_device(text):
            return replies.ASK_DEVICE
        scenario.device = text.strip()

        similar = self._store.find_similar_tickets(f"{state.problem_statement or ''} {text}")
        known = next((t for t in similar if t.error_code), None)
        state.escalate()
        if known is None:
            return replies.LOGOUT_TICKET.format(device=scenario.device)
        scenario.error_code = known.error_code
        return replies.KNOWN_LOGOUT_ISSUE.format(number=known.ticket_number, description=known.description)

    def _continue_dashboard(self, state: ConversationState, scenario: DashboardNoDataState, text: str) -> str:
        if scenario.step == DashboardNoDataStep.ASK_DASHBOARD:
            name = text.strip()
            if not name:
                return replies.ASK_DASHBOARD_AGAIN
            scenario.dashboard_name = name

            article = self._dashboard_article(name)
            if article is None:
                state.application = state.application or name
                state.escalate()
                return replies.NO_DASHBOARD_ARTICLE
            state.application = article.application
            scenario.step = DashboardNoDataStep.KB_SHOWN
            state.show_article(article)
            return f"{replies.format_article(article)}\n\n{replies.DID_THAT_SOLVE}"

        return replies.DID_THAT_SOLVE

    def _dashboard_article(self, text: str) -> KBArticle | None:
        lowered = text.lower()
        for article in self._store.search_kb(""):
            if "Dashboard" not in article.application:
                continue
            first_word = article.application.split()[0].lower()
            if first_word in lowered:
                return article
        return None

    def _start_onboarding(self, state: ConversationState, text: str) -> str:
        keywords = extract_keywords(text)
        best: KBArticle | None = None
        best_score = 0
        for article in self._store.search_kb(""):
            haystack = f"{article.title} {article.problem} {article.cause}".lower()
            score = sum(1 for keyword in keywords if keyword in haystack)
            if score > best_score:
                best, best_score = article, score

        state.problem_statement = text
        state.found_kb_article = None
        state.waiting_for_confirmation = None
        if best is None:
            state.scenario = GeneralState()
            return replies.ASK_APPLICATION

        state.scenario = OnboardingState(article_id=best.id)
        state.application = best.application
        state.show_article(best)
        guide = replies.format_article(best, intro="Here's a step-by-step guide:")
        return f"{guide}\n\n{replies.GUIDE_FOOTER}"

    def _continue_onboarding(self, state: ConversationState, scenario: OnboardingState, text: str) -> str:
        return replies.GUIDE_FOOTER

    def _continue_general(self, state: ConversationState, scenario: GeneralState, text: str) -> str:
        if scenario.step == GeneralStep.ASK_APPLICATION:
            if not self._take_application(state, text):
                return replies.ASK_APPLICATION_AGAIN
            scenario.step = GeneralStep.ASK_TIME
            return replies.ASK_TIME

        if scenario.step == GeneralStep.ASK_TIME:
            if looks_like_time_response(text):
                scenario.time_occurred = text
                article = self._first_article(state.application)
                if article is None:
                    state.escalate()
                    return replies.NO_KB_MATCH
                scenario.step = GeneralStep.KB_SHOWN
                state.show_article(article)
                return ""
            if self._take_application(state, text):
                return replies.ASK_TIME
            return replies.ASK_TIME_AGAIN

        return replies.DID_THAT_SOLVE
