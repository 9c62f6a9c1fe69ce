"""Scripted reply texts and the formatters that fill them in."""

from cerebro.dialogue.classifier import Scenario
from cerebro.store.models import KBArticle, LogAnalysis, Ticket, TicketStatus

CONVERTED_FILE_URL = "/api/download-converted-file"

ASK_APPLICATION = "Sure, I can help. Which application were you using when this happened?"
ASK_APPLICATION_AGAIN = "Which application are you using?"
ASK_TIME = "Understood. When did the issue occur?"
ASK_TIME_AGAIN = "When did the issue occur? For example, \"just now\" or \"around 10:15 AM\"."
APPLICATION_DETECTED = "Got it, {application}. When did this start happening?"

NO_KB_MATCH = (
    "Thanks. I couldn't find a matching article in the knowledge base, so I'll log a ticket for investigation."
)
KB_CLOSED = "Great! I'll close this interaction. Let me know if you need anything else."
FIX_CLOSED = "Glad to hear it! Let me know if you need help with anything else."
NOT_HELPFUL = "Sorry that didn't solve it. I'll log a ticket so IT Support can investigate."
DID_THAT_SOLVE = "Did that solve the problem?"
ANYTHING_ELSE = "Is there anything else I can help you with?"
TICKET_FOLLOW_UP = (
    'Your ticket #{number} is with IT Support. Ask me to "check ticket {number}" any time for the latest status.'
)

INITIAL_REPLIES: dict[Scenario, str] = {
    Scenario.SALES_REPORT: "I can help with the sales report. Which application are you generating it from?",
    Scenario.PAYROLL_SUMMARY: (
        "Sorry to hear the payroll summary isn't loading. Which payroll period are you trying to view?"
    ),
    Scenario.DATA_IMPORT: "Let's get that import working. Please attach the CSV file you're trying to import.",
    Scenario.INVOICE_APPROVAL: "I can help with invoice approvals. Which application are you using?",
    Scenario.MOBILE_LOGOUT: "That sounds frustrating. Which application keeps logging you out?",
    Scenario.DASHBOARD_NO_DATA: "Let's take a look. Which dashboard isn't showing data?",
}

# Payroll
ASK_PERIOD_AGAIN = 'Which payroll period is it? For example "November" or "current period".'
SIMILAR_HEADER = "I found some similar past tickets:"
SIMILAR_FOOTER = 'Does one of these match what you\'re seeing? Reply with its number, or "none".'
NO_SIMILAR = "I couldn't find any similar past tickets, so I'll log a ticket for the payroll team."
SIMILAR_REJECTED = "No problem. I'll log a ticket so the payroll team can take a look."
PAST_CAUSE = "Ticket #{number} was caused by: {cause}. Applying the same fix should sort it out. Did that fix it?"

# Data import
ASK_FILE_AGAIN = "Please attach the CSV file you're trying to import so I can check it."
NOT_A_CSV = "That file doesn't look like a CSV. Please attach the .csv file you're trying to import."
FILE_LOOKS_FINE = (
    "The file is valid UTF-8, so the encoding isn't the problem. I'll log a ticket for the data team to investigate."
)
CONVERTED_FILE_OFFER = (
    "I've converted it to UTF-8 for you: [Download converted file]({url})\n\n"
    "Retry the import with the converted file. Did it work?"
)
RETRY_IMPORT_AGAIN = "Did the import work with the converted file?"

# Invoice approval
ASK_ERROR = "Do you see an error code or message? If so, please paste it here."
ERROR_NOTED = "Thanks. I've noted the error {code}. This needs investigation by IT Support, so I'll log a ticket."
NO_ERROR_CODE = "Thanks. I'll log a ticket so IT Support can investigate."

# Mobile logout
ASK_DEVICE = "Which device are you using? For example an Android phone, iPhone or laptop."
KNOWN_LOGOUT_ISSUE = (
    "This looks like a known issue: ticket #{number} ({description}) was traced to a session timeout. "
    "I'll log a ticket so IT Support can apply the fix for you."
)
LOGOUT_TICKET = "Thanks. I'll log a ticket so IT Support can look into the logouts on your {device}."

# Dashboard
ASK_DASHBOARD_AGAIN = 'Which dashboard is it? For example "Operations Dashboard".'
NO_DASHBOARD_ARTICLE = "I couldn't find a known issue for that dashboard, so I'll log a ticket for the data team."

# Onboarding
GUIDE_FOOTER = "Did that answer your question?"


def numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def format_article(article: KBArticle, *, intro: str = "I found a knowledge base article that should help:") -> str:
    """Article title plus its numbered steps."""
    return f"{intro}\n\n**{article.title}**\n\n{numbered(article.steps)}"


def format_similar_tickets(tickets: list[Ticket]) -> str:
    lines = [f"#{t.ticket_number} - {t.description}" for t in tickets]
    return f"{SIMILAR_HEADER}\n\n{numbered(lines)}\n\n{SIMILAR_FOOTER}"


def past_cause(ticket: Ticket) -> str:
    """The part of a past ticket's description after " - ", or the whole description."""
    _, sep, cause = ticket.description.partition(" - ")
    return cause if sep else ticket.description


def ticket_not_found(number: str) -> str:
    return f"I couldn't find ticket #{number}. Please check the ticket number."


def ticket_status(ticket: Ticket, analysis: LogAnalysis | None, *, applied_at: str) -> str:
    """Status reply for a "check ticket #N" request."""
    number = ticket.ticket_number
    if ticket.status == TicketStatus.RESOLVED:
        return f"Latest update on ticket #{number}:\n- Fix Applied\n- Status: Resolved\n\nIs the issue fixed on your side?"
    if ticket.status == TicketStatus.FIX_APPLIED and analysis is not None:
        return (
            f"Latest update on ticket #{number}:\n"
            "- Log Analysis Completed\n"
            "- Fix Applied\n"
            f"- Root Cause: {analysis.root_cause}\n"
            f"- Applied at: {applied_at}\n\n"
            "Is the issue fixed on your side?"
        )
    return f"Ticket #{number} status: {ticket.status.value.replace('_', ' ', 1)}"
