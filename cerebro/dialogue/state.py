"""Per-conversation dialogue state.

``ConversationState`` holds what every scenario shares. The active scenario
is one of the ``*State`` dataclasses below, each with its own step enum and
only the scratch fields it uses.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar

from cerebro.dialogue.classifier import Scenario
from cerebro.store.models import KBArticle, Severity, Ticket


class Confirmation(StrEnum):
    KB_HELPFUL = "kb_helpful"
    SIMILAR_TICKET = "similar_ticket"
    FIX_CONFIRMED = "fix_confirmed"


# ---------------------------------------------------------------------------
# Scenario variants
# ---------------------------------------------------------------------------


@dataclass
class ScenarioState:
    kind: ClassVar[Scenario]
    severity: ClassVar[Severity] = Severity.MEDIUM

    finished: bool = False

    def ticket_error_code(self) -> str | None:
        return None


class SalesReportStep(StrEnum):
    ASK_APPLICATION = "ask_application"
    ASK_TIME = "ask_time"
    KB_SHOWN = "kb_shown"


@dataclass
class SalesReportState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.SALES_REPORT

    step: SalesReportStep = SalesReportStep.ASK_APPLICATION
    time_occurred: str | None = None


class PayrollSummaryStep(StrEnum):
    ASK_PERIOD = "ask_period"
    CHOOSE_SIMILAR = "choose_similar"
    RESOLUTION_OFFERED = "resolution_offered"


@dataclass
class PayrollSummaryState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.PAYROLL_SUMMARY

    step: PayrollSummaryStep = PayrollSummaryStep.ASK_PERIOD
    payroll_period: str | None = None
    similar_tickets: list[Ticket] = field(default_factory=list)
    selected_index: int | None = None


class DataImportStep(StrEnum):
    AWAIT_FILE = "await_file"
    RETRY_IMPORT = "retry_import"


@dataclass
class DataImportState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.DATA_IMPORT

    step: DataImportStep = DataImportStep.AWAIT_FILE
    file_name: str | None = None
    file_type: str | None = None


class InvoiceApprovalStep(StrEnum):
    ASK_APPLICATION = "ask_application"
    ASK_TIME = "ask_time"
    ASK_ERROR = "ask_error"


@dataclass
class InvoiceApprovalState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.INVOICE_APPROVAL
    severity: ClassVar[Severity] = Severity.HIGH

    step: InvoiceApprovalStep = InvoiceApprovalStep.ASK_APPLICATION
    time_occurred: str | None = None
    error_code: str | None = None

    def ticket_error_code(self) -> str | None:
        return self.error_code


class MobileLogoutStep(StrEnum):
    ASK_APPLICATION = "ask_application"
    ASK_DEVICE = "ask_device"


@dataclass
class MobileLogoutState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.MOBILE_LOGOUT

    step: MobileLogoutStep = MobileLogoutStep.ASK_APPLICATION
    device: str | None = None
    error_code: str | None = None

    def ticket_error_code(self) -> str | None:
        return self.error_code


class DashboardNoDataStep(StrEnum):
    ASK_DASHBOARD = "ask_dashboard"
    KB_SHOWN = "kb_shown"


@dataclass
class DashboardNoDataState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.DASHBOARD_NO_DATA

    step: DashboardNoDataStep = DashboardNoDataStep.ASK_DASHBOARD
    dashboard_name: str | None = None


class OnboardingStep(StrEnum):
    GUIDE_SHOWN = "guide_shown"


@dataclass
class OnboardingState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.ONBOARDING

    step: OnboardingStep = OnboardingStep.GUIDE_SHOWN
    article_id: str | None = None


class GeneralStep(StrEnum):
    ASK_APPLICATION = "ask_application"
    ASK_TIME = "ask_time"
    KB_SHOWN = "kb_shown"


@dataclass
class GeneralState(ScenarioState):
    kind: ClassVar[Scenario] = Scenario.GENERAL

    step: GeneralStep = GeneralStep.ASK_APPLICATION
    time_occurred: str | None = None


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------


@dataclass
class ConversationState:
    scenario: ScenarioState | None = None
    application: str | None = None
    problem_statement: str | None = None
    found_kb_article: KBArticle | None = None
    waiting_for_confirmation: Confirmation | None = None
    will_create_ticket: bool = False
    ticket_created: bool = False
    ticket_id: str | None = None
    ticket_number: int | None = None

    @property
    def scenario_kind(self) -> Scenario | None:
        return self.scenario.kind if self.scenario is not None else None

    @property
    def in_progress(self) -> bool:
        """True while an unfinished scenario owns the conversation."""
        return self.scenario is not None and not self.scenario.finished

    def show_article(self, article: KBArticle) -> None:
        self.found_kb_article = article
        self.waiting_for_confirmation = Confirmation.KB_HELPFUL

    def escalate(self) -> None:
        """Hand the conversation over to a ticket and close the scenario."""
        self.will_create_ticket = True
        self.waiting_for_confirmation = None
        if self.scenario is not None:
            self.scenario.finished = True
