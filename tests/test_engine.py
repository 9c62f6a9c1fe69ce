"""Tests for the scripted dialogue engine, walking each scenario turn by turn."""

import asyncio
from collections.abc import Callable

from cerebro.analysis.simulator import AnalysisSimulator
from cerebro.dialogue import replies
from cerebro.dialogue.classifier import Scenario
from cerebro.dialogue.engine import DialogueEngine
from cerebro.dialogue.state import Confirmation, DataImportState, DataImportStep, GeneralStep, PayrollSummaryStep
from cerebro.store.models import Attachment, TicketStatus
from cerebro.store.store import HelpdeskStore

LATIN1_CSV = "name,city\nJosé,Zürich\n".encode("latin-1")
UTF8_CSV = "name,city\nBob,Leeds\n".encode()

Say = Callable[..., str]


# ---------------------------------------------------------------------------
# Sales report (KB resolution)
# ---------------------------------------------------------------------------


class TestSalesReport:
    def test_full_flow_resolved_by_kb(self, say: Say, engine: DialogueEngine) -> None:
        assert say("c1", "The daily sales report won't generate") == replies.INITIAL_REPLIES[Scenario.SALES_REPORT]
        assert say("c1", "Sales App") == replies.ASK_TIME

        reply = say("c1", "just now")
        assert "**Daily Sales Report fails with Error 1203**" in reply
        assert "1. Go to Admin → Sync Status" in reply
        assert reply.endswith(replies.DID_THAT_SOLVE)

        suggestions = engine.should_show_kb("c1")
        assert suggestions is not None
        assert [a.application for a in suggestions.articles] == ["Sales App"]

        assert say("c1", "Yes, that worked") == replies.KB_CLOSED
        state = engine.get_state("c1")
        assert state.scenario is not None
        assert state.scenario.finished
        assert engine.should_create_ticket("c1", "u1", "Tester") is None

    def test_unrecognised_application_asked_again(self, say: Say) -> None:
        say("c1", "The daily sales report won't generate")
        assert say("c1", "no idea") == replies.ASK_APPLICATION_AGAIN

    def test_time_asked_again(self, say: Say) -> None:
        say("c1", "The daily sales report won't generate")
        say("c1", "Sales App")
        assert say("c1", "yesterday evening") == replies.ASK_TIME_AGAIN

    def test_negative_answer_escalates(self, say: Say, engine: DialogueEngine, store: HelpdeskStore) -> None:
        say("c1", "The daily sales report won't generate")
        say("c1", "Sales App")
        say("c1", "just now")

        assert say("c1", "No, it didn't help") == replies.NOT_HELPFUL
        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.application == "Sales App"
        assert ticket.error_code is None
        assert ticket.severity == "medium"
        assert ticket.description.startswith("The daily sales report won't generate Sales App just now")
        linked = store.get_ticket_by_conversation_id("c1")
        assert linked is not None
        assert linked.id == ticket.id


# ---------------------------------------------------------------------------
# Invoice approval (ticket + analysis)
# ---------------------------------------------------------------------------


class TestInvoiceApproval:
    def _escalate(self, say: Say) -> None:
        assert say("c1", "Invoice approval is failing") == replies.INITIAL_REPLIES[Scenario.INVOICE_APPROVAL]
        assert say("c1", "Finance App") == replies.ASK_TIME
        assert say("c1", "About 10 minutes ago") == replies.ASK_ERROR
        reply = say("c1", "APPROVAL_SERVICE_TIMEOUT")
        assert reply == replies.ERROR_NOTED.format(code="APPROVAL_SERVICE_TIMEOUT")

    def test_ticket_created_once(self, say: Say, engine: DialogueEngine, simulator: AnalysisSimulator) -> None:
        self._escalate(say)

        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.ticket_number == 48205
        assert ticket.application == "Finance App"
        assert ticket.error_code == "APPROVAL_SERVICE_TIMEOUT"
        assert ticket.severity == "high"
        assert ticket.status == TicketStatus.NEW
        assert f"analysis-{ticket.id}" in simulator.pending

        assert engine.should_create_ticket("c1", "u1", "Tester") is None
        state = engine.get_state("c1")
        assert state.ticket_number == 48205
        assert state.ticket_id == ticket.id

    def test_analysis_then_status_lookup(
        self, say: Say, engine: DialogueEngine, simulator: AnalysisSimulator, store: HelpdeskStore
    ) -> None:
        self._escalate(say)
        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None

        assert asyncio.run(simulator.flush()) == 1
        analysis = store.get_log_analysis_by_ticket_id(ticket.id)
        assert analysis is not None
        assert analysis.error_pattern == "APPROVAL_SERVICE_TIMEOUT"
        assert engine.process_message("c1", "check ticket #48205") == "Ticket #48205 status: log analysis"

        store.update_ticket_status(ticket.id, TicketStatus.FIX_APPLIED)
        reply = engine.process_message("c1", "check ticket #48205")
        assert reply.startswith("Latest update on ticket #48205:")
        assert "- Log Analysis Completed" in reply
        assert "- Root Cause: Misconfigured connection string" in reply
        assert "- Applied at: " in reply

    def test_missing_error_code(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "Invoice approval is failing")
        say("c1", "Finance App")
        say("c1", "just now")
        assert say("c1", "nothing on screen") == replies.NO_ERROR_CODE
        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.error_code is None

    def test_engine_without_simulator(self, store: HelpdeskStore) -> None:
        standalone = DialogueEngine(store)
        standalone.process_message("solo", "Invoice approval is failing")
        standalone.process_message("solo", "Finance App")
        standalone.process_message("solo", "just now")
        standalone.process_message("solo", "error 500")
        ticket = standalone.should_create_ticket("solo", "u1", "Tester")
        assert ticket is not None
        assert ticket.error_code == "500"


# ---------------------------------------------------------------------------
# Payroll summary (similar tickets)
# ---------------------------------------------------------------------------


class TestPayrollSummary:
    def _list_similar(self, say: Say) -> str:
        say("c1", "My payroll summary is blank")
        return say("c1", "November")

    def test_similar_tickets_listed(self, say: Say, engine: DialogueEngine) -> None:
        reply = self._list_similar(say)
        assert reply.startswith(replies.SIMILAR_HEADER)
        assert "1. #48202 - Payroll summary blank - missing period settings" in reply
        assert "3. #48204 - Payroll summary error 503 - server outage" in reply

        state = engine.get_state("c1")
        assert state.application == "Payroll App"
        assert state.waiting_for_confirmation == Confirmation.SIMILAR_TICKET
        suggestions = engine.should_show_kb("c1")
        assert suggestions is not None
        assert [t.ticket_number for t in suggestions.similar_tickets] == [48202, 48203, 48204]
        assert suggestions.articles == []

    def test_period_asked_again(self, say: Say) -> None:
        say("c1", "My payroll summary is blank")
        assert say("c1", "not sure") == replies.ASK_PERIOD_AGAIN

    def test_choice_with_matching_article(self, say: Say, engine: DialogueEngine) -> None:
        self._list_similar(say)
        reply = say("c1", "1")
        assert reply.startswith("Ticket #48202 was resolved with this article:")
        assert "**Payroll summary blank - missing period settings**" in reply
        assert engine.get_state("c1").waiting_for_confirmation == Confirmation.KB_HELPFUL

    def test_choice_without_article_offers_past_cause(self, say: Say, engine: DialogueEngine) -> None:
        self._list_similar(say)
        assert say("c1", "2") == replies.PAST_CAUSE.format(number=48203, cause="client cache issue")

        state = engine.get_state("c1")
        assert state.waiting_for_confirmation == Confirmation.FIX_CONFIRMED
        assert say("c1", "Yes") == replies.FIX_CLOSED

    def test_rejecting_all_escalates(self, say: Say, engine: DialogueEngine) -> None:
        self._list_similar(say)
        assert say("c1", "None of those") == replies.SIMILAR_REJECTED
        assert engine.get_state("c1").will_create_ticket

    def test_unclear_choice_relists(self, say: Say, engine: DialogueEngine) -> None:
        self._list_similar(say)
        assert say("c1", "hmm").startswith(replies.SIMILAR_HEADER)
        scenario = engine.get_state("c1").scenario
        assert scenario is not None
        assert scenario.step == PayrollSummaryStep.CHOOSE_SIMILAR  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Data import (attachments)
# ---------------------------------------------------------------------------


class TestDataImport:
    def test_asks_for_file(self, say: Say) -> None:
        assert say("c1", "The CSV import keeps failing") == replies.INITIAL_REPLIES[Scenario.DATA_IMPORT]
        assert say("c1", "here you go") == replies.ASK_FILE_AGAIN

    def test_non_csv_rejected(self, say: Say) -> None:
        say("c1", "The CSV import keeps failing")
        reply = say("c1", "", Attachment("notes.txt", b"hello", "text/plain"))
        assert reply == replies.NOT_A_CSV

    def test_non_utf8_file_converted(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The CSV import keeps failing")
        reply = say("c1", "", Attachment("customers.csv", LATIN1_CSV, "text/csv"))

        assert "**Data import fails - CSV encoding issue**" in reply
        assert replies.CONVERTED_FILE_URL in reply
        state = engine.get_state("c1")
        assert state.waiting_for_confirmation == Confirmation.FIX_CONFIRMED
        assert isinstance(state.scenario, DataImportState)
        assert state.scenario.step == DataImportStep.RETRY_IMPORT
        assert state.scenario.file_name == "customers.csv"

        assert say("c1", "Yes it worked") == replies.FIX_CLOSED

    def test_utf8_file_escalates(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The CSV import keeps failing")
        assert say("c1", "", Attachment("customers.csv", UTF8_CSV, "text/csv")) == replies.FILE_LOOKS_FINE

        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.application == "Data Import"


# ---------------------------------------------------------------------------
# Mobile logout and dashboard
# ---------------------------------------------------------------------------


class TestMobileLogout:
    def test_known_issue(self, say: Say, engine: DialogueEngine) -> None:
        assert say("c1", "The app keeps logging me out") == replies.INITIAL_REPLIES[Scenario.MOBILE_LOGOUT]
        assert say("c1", "Inventory App") == replies.ASK_DEVICE

        reply = say("c1", "Android phone")
        assert "ticket #48201" in reply

        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.application == "Inventory App"
        assert ticket.error_code == "SESSION_TIMEOUT"

    def test_device_asked_again(self, say: Say) -> None:
        say("c1", "The app keeps logging me out")
        say("c1", "Inventory App")
        assert say("c1", "no idea") == replies.ASK_DEVICE


class TestDashboard:
    def test_known_dashboard(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The operations dashboard shows no data")
        reply = say("c1", "Operations Dashboard")
        assert "**Operations Dashboard - No Data Showing**" in reply
        assert engine.get_state("c1").application == "Operations Dashboard"

    def test_unknown_dashboard(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The operations dashboard shows no data")
        assert say("c1", "Marketing dashboard") == replies.NO_DASHBOARD_ARTICLE
        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.application == "Marketing dashboard"


# ---------------------------------------------------------------------------
# Onboarding (how-to questions)
# ---------------------------------------------------------------------------


class TestOnboarding:
    def test_best_guide_shown(self, say: Say, engine: DialogueEngine) -> None:
        reply = say("c1", "How do I import employees?")
        assert reply.startswith("Here's a step-by-step guide:")
        assert "**Employee Import Guide**" in reply
        assert reply.endswith(replies.GUIDE_FOOTER)

        state = engine.get_state("c1")
        assert state.scenario_kind == Scenario.ONBOARDING
        assert state.application == "HR App"
        assert state.waiting_for_confirmation == Confirmation.KB_HELPFUL
        assert say("c1", "Yes thanks") == replies.KB_CLOSED

    def test_attachment_switches_to_import_check(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "How do I import employees?")
        reply = say("c1", "", Attachment("employees.csv", LATIN1_CSV, "text/csv"))

        assert replies.CONVERTED_FILE_URL in reply
        state = engine.get_state("c1")
        assert state.scenario_kind == Scenario.DATA_IMPORT
        assert state.application == "Data Import"

    def test_how_to_interrupts_scenario(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "Hi, I can't generate the daily sales report.")
        reply = say("c1", "How do I import employees?")

        assert "**Employee Import Guide**" in reply
        state = engine.get_state("c1")
        assert state.scenario_kind == Scenario.ONBOARDING
        assert state.application == "HR App"
        assert state.waiting_for_confirmation == Confirmation.KB_HELPFUL

    def test_no_matching_guide(self, say: Say, engine: DialogueEngine) -> None:
        assert say("c1", "how to fly") == replies.ASK_APPLICATION
        assert engine.get_state("c1").scenario_kind == Scenario.GENERAL


# ---------------------------------------------------------------------------
# General fallback
# ---------------------------------------------------------------------------


class TestGeneral:
    def test_kb_article_shown_without_text(self, say: Say, engine: DialogueEngine) -> None:
        assert say("c1", "My computer is making a noise") == replies.ASK_APPLICATION
        assert say("c1", "The Sales app") == replies.ASK_TIME
        assert say("c1", "around 9am") == ""

        suggestions = engine.should_show_kb("c1")
        assert suggestions is not None
        assert suggestions.articles[0].title == "Daily Sales Report fails with Error 1203"

    def test_application_named_in_first_message(self, say: Say, engine: DialogueEngine) -> None:
        assert say("c1", "Something is wrong with inventory") == replies.APPLICATION_DETECTED.format(
            application="Inventory App"
        )
        scenario = engine.get_state("c1").scenario
        assert scenario is not None
        assert scenario.step == GeneralStep.ASK_TIME  # type: ignore[attr-defined]

    def test_unknown_application_gets_ticket(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "My computer is making a noise")
        say("c1", "The CRM app")
        assert say("c1", "today") == replies.NO_KB_MATCH

        ticket = engine.should_create_ticket("c1", "u1", "Tester")
        assert ticket is not None
        assert ticket.application == "The CRM app"

    def test_scenario_only_classified_on_first_message(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "check ticket #48201")
        reply = say("c1", "The daily sales report won't generate")
        assert reply == replies.APPLICATION_DETECTED.format(application="Sales App")
        assert engine.get_state("c1").scenario_kind == Scenario.GENERAL


# ---------------------------------------------------------------------------
# Ticket status intercept and finished conversations
# ---------------------------------------------------------------------------


class TestTicketStatus:
    def test_unknown_ticket_creates_no_state(self, engine: DialogueEngine) -> None:
        assert engine.process_message("c1", "check ticket #99999") == replies.ticket_not_found("99999")
        assert engine.peek_state("c1") is None

    def test_oversized_number_not_found(self, engine: DialogueEngine) -> None:
        number = "99999999999999999999999"
        reply = engine.process_message("c1", f"Check ticket {number}.")
        assert reply == replies.ticket_not_found(number)

    def test_resolved_seed_ticket(self, engine: DialogueEngine) -> None:
        reply = engine.process_message("c1", "What's the ticket status 48201?")
        assert reply.startswith("Latest update on ticket #48201:")
        assert "- Status: Resolved" in reply

    def test_in_progress(self, engine: DialogueEngine, store: HelpdeskStore) -> None:
        ticket = store.create_ticket(user_id="u1", user_name="T", application="Sales App", description="x")
        store.update_ticket_status(ticket.id, TicketStatus.IN_PROGRESS)
        assert engine.process_message("c1", "check ticket 48205") == "Ticket #48205 status: in progress"

    def test_intercept_leaves_scenario_untouched(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The daily sales report won't generate")
        say("c1", "check ticket #48201")
        assert say("c1", "Sales App") == replies.ASK_TIME


class TestFinishedConversation:
    def test_follow_up_without_ticket(self, say: Say) -> None:
        say("c1", "The daily sales report won't generate")
        say("c1", "Sales App")
        say("c1", "just now")
        say("c1", "yes")
        assert say("c1", "thanks again") == replies.ANYTHING_ELSE

    def test_follow_up_names_ticket(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The CSV import keeps failing")
        say("c1", "", Attachment("customers.csv", UTF8_CSV, "text/csv"))
        engine.should_create_ticket("c1", "u1", "Tester")
        assert say("c1", "any news?") == replies.TICKET_FOLLOW_UP.format(number=48205)

    def test_mark_resolved_clears_article(self, say: Say, engine: DialogueEngine) -> None:
        say("c1", "The daily sales report won't generate")
        say("c1", "Sales App")
        say("c1", "just now")

        engine.mark_resolved("c1")

        state = engine.get_state("c1")
        assert state.waiting_for_confirmation is None
        assert state.found_kb_article is None
        assert engine.should_show_kb("c1") is None
        assert say("c1", "ok") == replies.ANYTHING_ELSE

    def test_mark_resolved_unknown_conversation(self, engine: DialogueEngine) -> None:
        engine.mark_resolved("nobody")
        assert engine.peek_state("nobody") is None


class TestIsolation:
    def test_conversations_do_not_share_state(self, say: Say, engine: DialogueEngine) -> None:
        say("a", "The daily sales report won't generate")
        say("a", "Sales App")
        assert engine.peek_state("b") is None
        assert say("b", "Sales App") == replies.APPLICATION_DETECTED.format(application="Sales App")
        assert engine.get_state("a").scenario_kind == Scenario.SALES_REPORT

    def test_show_kb_without_state(self, engine: DialogueEngine) -> None:
        assert engine.should_show_kb("nobody") is None
        assert engine.should_create_ticket("nobody", "u1", "Tester") is None
        assert engine.peek_state("nobody") is None
