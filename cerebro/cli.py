"""Simple CLI REPL for chatting with Cerebro in-process.

Usage:
    python -m cerebro.cli
"""

import asyncio
import logging
import uuid

from cerebro.config import get_settings
from cerebro.service import HelpdeskError, HelpdeskService
from cerebro.store.models import KBSuggestions, Message, MessageRole

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)

_ROLE_LABELS = {
    MessageRole.CEREBRO: "Cerebro",
    MessageRole.SYSTEM: "System",
    MessageRole.TECHNICIAN: "Technician",
}


def _print_messages(messages: list[Message]) -> None:
    for message in messages:
        if message.role == MessageRole.USER:
            continue
        print(f"\n{_ROLE_LABELS[message.role]}: {message.content}")


def _print_suggestions(suggestions: KBSuggestions | None) -> None:
    if suggestions is None:
        return
    for article in suggestions.articles:
        print(f"\n[KB] {article.title} ({article.application})")
        for i, step in enumerate(article.steps, 1):
            print(f"     {i}. {step}")


async def _chat(service: HelpdeskService) -> None:
    conversation_id = uuid.uuid4().hex[:8]
    print(f"Conversation: {conversation_id}\n")
    shown_article: str | None = None

    while True:
        try:
            text = (await asyncio.to_thread(input, "You: ")).strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not text:
            continue
        if text.lower() in ("quit", "exit", "q"):
            print("Goodbye!")
            break

        seen = len(service.get_messages(conversation_id))
        try:
            messages = await service.send_message(conversation_id, text)
        except HelpdeskError as e:
            print(f"\nError: {e}\n")
            continue
        _print_messages(messages[seen + 1 :])

        suggestions = service.kb_suggestions(conversation_id)
        article = suggestions.articles[0].id if suggestions is not None and suggestions.articles else None
        if article != shown_article:
            _print_suggestions(suggestions)
            shown_article = article
        print()


async def _run() -> None:
    service = HelpdeskService.build(get_settings())
    service.start()
    try:
        await _chat(service)
    finally:
        service.shutdown()


def main() -> None:
    """Run the interactive CLI loop."""
    print("Cerebro Helpdesk (type 'quit' or Ctrl+C to exit)")
    print("=" * 50)
    asyncio.run(_run())


if __name__ == "__main__":
    main()
