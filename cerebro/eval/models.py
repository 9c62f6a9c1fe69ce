"""Pydantic models for scripted conversation cases and their results."""

from pydantic import BaseModel, Field


class AttachmentSpec(BaseModel):
    """A file to upload with a turn. ``text`` is encoded with ``encoding``."""

    filename: str
    text: str = ""
    encoding: str = "utf-8"

    def to_bytes(self) -> bytes:
        return self.text.encode(self.encoding)


class Turn(BaseModel):
    """One user message and what the dialogue should do with it."""

    user: str = ""
    attachment: AttachmentSpec | None = None
    reply_contains: list[str] = Field(default_factory=list)
    reply_empty: bool = False
    waiting_for: str | None = None
    kb_article: str | None = None
    ticket_created: bool | None = None


class ScenarioCase(BaseModel):
    """A scripted conversation loaded from YAML."""

    id: str
    description: str
    turns: list[Turn]
    expected_application: str | None = None
    expected_error_code: str | None = None
    expected_error_pattern: str | None = None


class TurnScore(BaseModel):
    index: int
    user: str
    reply: str
    passed: bool
    failures: list[str] = Field(default_factory=list)


class EvalResult(BaseModel):
    """Full result for a single scenario case."""

    case_id: str
    description: str
    turns: list[TurnScore]
    outcome_failures: list[str] = Field(default_factory=list)
    ticket_number: int | None = None
    passed: bool
