"""Core scenario runner: replays a case against a fresh helpdesk service and scores it."""

import logging

from cerebro.config import Settings
from cerebro.eval.models import EvalResult, ScenarioCase, Turn, TurnScore
from cerebro.service import HelpdeskService
from cerebro.store.models import Attachment, Message, MessageRole

logger = logging.getLogger(__name__)


def _build_service() -> HelpdeskService:
    """A service over its own in-memory store, so cases never share state."""
    return HelpdeskService.build(Settings(store_db_path=":memory:"))


def _reply_from(new_messages: list[Message]) -> str:
    replies = [m.content for m in new_messages if m.role == MessageRole.CEREBRO]
    return replies[-1] if replies else ""


def _score_turn(service: HelpdeskService, conversation_id: str, index: int, turn: Turn, reply: str) -> TurnScore:
    failures: list[str] = []

    for expected in turn.reply_contains:
        if expected not in reply:
            failures.append(f"reply missing {expected!r}")
    if turn.reply_empty and reply:
        failures.append("expected an empty reply")

    state = service.engine.peek_state(conversation_id)
    if turn.waiting_for is not None:
        waiting = state.waiting_for_confirmation if state is not None else None
        actual = str(waiting) if waiting is not None else "none"
        if actual != turn.waiting_for:
            failures.append(f"waiting_for is {actual!r}, expected {turn.waiting_for!r}")

    if turn.kb_article is not None:
        suggestions = service.kb_suggestions(conversation_id)
        titles = [a.title for a in suggestions.articles] if suggestions is not None else []
        if not any(turn.kb_article in title for title in titles):
            failures.append(f"KB article {turn.kb_article!r} not suggested (got {titles})")

    if turn.ticket_created is not None:
        created = state.ticket_created if state is not None else False
        if created != turn.ticket_created:
            failures.append(f"ticket_created is {created}, expected {turn.ticket_created}")

    return TurnScore(index=index, user=turn.user, reply=reply, passed=not failures, failures=failures)


async def run_case(case: ScenarioCase) -> EvalResult:
    """Replay every turn of a case and check the final ticket, if one is expected."""
    service = _build_service()
    conversation_id = f"eval-{case.id}"
    scores: list[TurnScore] = []
    outcome_failures: list[str] = []

    try:
        for index, turn in enumerate(case.turns, start=1):
            attachment = None
            if turn.attachment is not None:
                attachment = Attachment(filename=turn.attachment.filename, content=turn.attachment.to_bytes())

            seen = len(service.get_messages(conversation_id))
            messages = await service.send_message(conversation_id, turn.user, attachment)
            reply = _reply_from(messages[seen:])
            scores.append(_score_turn(service, conversation_id, index, turn, reply))

        ticket = service.conversation_ticket(conversation_id)
        if case.expected_application is not None and (ticket is None or ticket.application != case.expected_application):
            outcome_failures.append(f"ticket application is not {case.expected_application!r}")
        if case.expected_error_code is not None and (ticket is None or ticket.error_code != case.expected_error_code):
            outcome_failures.append(f"ticket error code is not {case.expected_error_code!r}")

        if case.expected_error_pattern is not None:
            await service.simulator.flush()
            analysis = service.ticket_analysis(ticket.id) if ticket is not None else None
            if analysis is None or analysis.error_pattern != case.expected_error_pattern:
                outcome_failures.append(f"log analysis pattern is not {case.expected_error_pattern!r}")
    finally:
        service.shutdown()

    passed = all(s.passed for s in scores) and not outcome_failures
    logger.info("Case %s %s", case.id, "passed" if passed else "failed")
    return EvalResult(
        case_id=case.id,
        description=case.description,
        turns=scores,
        outcome_failures=outcome_failures,
        ticket_number=ticket.ticket_number if ticket is not None else None,
        passed=passed,
    )
