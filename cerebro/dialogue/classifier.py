"""Keyword classification for chat messages.

Everything here is a pure function over the message text: case-insensitive
substring tests against fixed keyword tables, checked in order, first match
wins. No state is read or written.
"""

import re
from enum import StrEnum


class Scenario(StrEnum):
    SALES_REPORT = "sales_report"
    PAYROLL_SUMMARY = "payroll_summary"
    DATA_IMPORT = "data_import"
    INVOICE_APPROVAL = "invoice_approval"
    MOBILE_LOGOUT = "mobile_logout"
    DASHBOARD_NO_DATA = "dashboard_no_data"
    ONBOARDING = "onboarding"
    GENERAL = "general"


AFFIRMATIVE_WORDS = ("yes", "yeah", "yep", "sure", "works", "fixed", "solved", "ok", "okay", "it works")
TIME_WORDS = ("now", "ago", "am", "pm", "minute", "today")
APPLICATION_WORDS = ("sales", "finance", "inventory", "payroll", "hr", "app")
HOW_TO_PHRASES = ("how do i", "how to", "how can i")
TICKET_STATUS_PHRASES = ("check ticket", "ticket status")

DEVICE_WORDS = (
    "android",
    "iphone",
    "ios",
    "ipad",
    "tablet",
    "phone",
    "mobile",
    "laptop",
    "desktop",
    "windows",
    "mac",
    "browser",
    "chrome",
)

MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
PERIOD_WORDS = (*MONTH_NAMES, "period", "month", "week", "current", "last", "this")

# Checked in order; the first application with a matching keyword wins.
APPLICATION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Sales App": ("sales", "report", "revenue"),
    "Finance App": ("invoice", "payment", "approval", "finance"),
    "Inventory App": ("inventory", "stock", "logged out", "session"),
    "Payroll App": ("payroll", "summary", "salary"),
    "HR App": ("employee", "hr", "import"),
}

# Each rule is a list of phrase groups; every group must contribute a match.
SCENARIO_RULES: list[tuple[Scenario, list[tuple[str, ...]]]] = [
    (Scenario.SALES_REPORT, [("sales report", "daily sales", "sales figures")]),
    (Scenario.PAYROLL_SUMMARY, [("payroll",), ("summary", "loading", "blank")]),
    (Scenario.DATA_IMPORT, [("import",), ("fail", "csv", "error", "won't", "isn't working")]),
    (Scenario.INVOICE_APPROVAL, [("invoice", "approval", "approve")]),
    (Scenario.MOBILE_LOGOUT, [("logged out", "logging me out", "logs me out", "kicked out", "signed out")]),
    (Scenario.DASHBOARD_NO_DATA, [("dashboard",), ("no data", "blank", "empty", "not showing", "nothing")]),
]

SELECTION_WORDS = {"first": 0, "second": 1, "third": 2}

_NEGATIVE_RE = re.compile(r"\b(?:no|nope|not|didn't|doesn't|still|none)\b")
_CLOCK_TIME_RE = re.compile(r"\b\d{1,2}:\d{2}\b")
_TICKET_NUMBER_RE = re.compile(r"#?(\d+)")
_UPPER_SNAKE_RE = re.compile(r"\b[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)+\b")
_ERROR_NUMBER_RE = re.compile(r"error\s*#?\s*(\d+)", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+")
_WORD_RE = re.compile(r"[a-z0-9']+")


def _contains_any(text: str, phrases: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in phrases)


def is_affirmative(text: str) -> bool:
    return _contains_any(text, AFFIRMATIVE_WORDS)


def is_negative(text: str) -> bool:
    """Whole-word "no"-style answer. Callers check is_affirmative first."""
    return _NEGATIVE_RE.search(text.lower()) is not None


def looks_like_time_response(text: str) -> bool:
    return _contains_any(text, TIME_WORDS) or _CLOCK_TIME_RE.search(text) is not None


def looks_like_application_name(text: str) -> bool:
    return _contains_any(text, APPLICATION_WORDS)


def looks_like_device(text: str) -> bool:
    return _contains_any(text, DEVICE_WORDS)


def looks_like_period(text: str) -> bool:
    return _contains_any(text, PERIOD_WORDS) or _DIGITS_RE.search(text) is not None


def is_how_to_question(text: str) -> bool:
    return _contains_any(text, HOW_TO_PHRASES)


def resolve_application(text: str) -> str | None:
    """Map free text to a known application name via the keyword table."""
    lowered = text.lower()
    for application, keywords in APPLICATION_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return application
    return None


def extract_ticket_number(text: str) -> str | None:
    """Ticket number from a "check ticket #N" / "ticket status N" request.

    Returns None unless the text is a status request and carries digits.
    """
    if not _contains_any(text, TICKET_STATUS_PHRASES):
        return None
    match = _TICKET_NUMBER_RE.search(text)
    return match.group(1) if match else None


def classify_scenario(text: str) -> Scenario | None:
    lowered = text.lower()
    for scenario, groups in SCENARIO_RULES:
        if all(any(phrase in lowered for phrase in group) for group in groups):
            return scenario
    return None


def extract_error_code(text: str) -> str | None:
    """First UPPER_SNAKE token (APPROVAL_SERVICE_TIMEOUT), else the number after "error"."""
    match = _UPPER_SNAKE_RE.search(text)
    if match:
        return match.group(0)
    match = _ERROR_NUMBER_RE.search(text)
    return match.group(1) if match else None


def parse_selection(text: str, count: int) -> int | None:
    """Zero-based index of a choice from a numbered list of ``count`` items."""
    match = _DIGITS_RE.search(text)
    if match:
        choice = int(match.group(0))
        return choice - 1 if 1 <= choice <= count else None

    lowered = text.lower()
    for word, index in SELECTION_WORDS.items():
        if word in lowered and index < count:
            return index
    return None


def extract_keywords(text: str) -> list[str]:
    """Lower-cased words longer than 3 characters, punctuation stripped."""
    return [word.strip("'") for word in _WORD_RE.findall(text.lower()) if len(word.strip("'")) > 3]
