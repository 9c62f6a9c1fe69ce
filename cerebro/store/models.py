"""Pydantic models for store records and the payloads built from them."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class TicketStatus(StrEnum):
    NEW = "new"
    LOG_ANALYSIS = "log_analysis"
    IN_PROGRESS = "in_progress"
    FIX_APPLIED = "fix_applied"
    RESOLVED = "resolved"


class MessageRole(StrEnum):
    USER = "user"
    CEREBRO = "cerebro"
    SYSTEM = "system"
    TECHNICIAN = "technician"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Ticket(BaseModel):
    id: str
    ticket_number: int
    user_id: str
    user_name: str
    application: str
    description: str
    error_code: str | None = None
    status: TicketStatus = TicketStatus.NEW
    severity: Severity = Severity.MEDIUM
    created_at: datetime
    updated_at: datetime


class Message(BaseModel):
    id: str
    ticket_id: str | None = None
    conversation_id: str
    role: MessageRole
    content: str
    timestamp: datetime


class KBArticle(BaseModel):
    id: str
    title: str
    application: str
    problem: str
    cause: str
    solution: str
    steps: list[str] = Field(default_factory=list)


class LogAnalysis(BaseModel):
    id: str
    ticket_id: str
    error_pattern: str
    root_cause: str
    suggested_fix: str
    log_excerpt: str
    correlated_event: str | None = None
    created_at: datetime


class KBSuggestions(BaseModel):
    """What the chat should surface next to the conversation."""

    articles: list[KBArticle] = Field(default_factory=list)
    similar_tickets: list[Ticket] = Field(default_factory=list)


@dataclass(frozen=True)
class Attachment:
    """A file uploaded alongside a chat message."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        _, dot, ext = self.filename.rpartition(".")
        return ext.lower() if dot else ""
