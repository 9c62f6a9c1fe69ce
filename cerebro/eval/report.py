"""Report formatting for scenario results."""

import sys

from cerebro.eval.models import EvalResult

_PASS = "\033[32mPASS\033[0m"
_FAIL = "\033[31mFAIL\033[0m"


def print_case_result(result: EvalResult) -> None:
    """Print a single case result to stderr."""
    status = _PASS if result.passed else _FAIL
    print(f"[{status}] {result.case_id}: {result.description}", file=sys.stderr)

    for turn in result.turns:
        turn_status = _PASS if turn.passed else _FAIL
        print(f"  Turn {turn.index} [{turn_status}]: {turn.user!r}", file=sys.stderr)
        for failure in turn.failures:
            print(f"    - {failure}", file=sys.stderr)
            reply_preview = turn.reply[:200]
            if len(turn.reply) > 200:
                reply_preview += "..."
            print(f"      Reply: {reply_preview!r}", file=sys.stderr)

    for failure in result.outcome_failures:
        print(f"  Outcome: {failure}", file=sys.stderr)
    if result.ticket_number is not None:
        print(f"  Ticket: #{result.ticket_number}", file=sys.stderr)
    print(file=sys.stderr, flush=True)


def print_summary(results: list[EvalResult]) -> None:
    """Print overall summary to stderr."""
    total = len(results)
    passed = sum(1 for r in results if r.passed)
    turns_total = sum(len(r.turns) for r in results)
    turns_passed = sum(1 for r in results for t in r.turns if t.passed)

    print(f"\n{'=' * 70}", file=sys.stderr)
    print(f"SCENARIO SUMMARY: {passed}/{total} passed", file=sys.stderr)
    print(f"  Turns: {turns_passed}/{turns_total} passed", file=sys.stderr)
    print(f"{'=' * 70}", file=sys.stderr)

    if passed < total:
        print("\nFailed cases:", file=sys.stderr)
        for r in results:
            if r.passed:
                continue
            reasons: list[str] = [f"turn {t.index}" for t in r.turns if not t.passed]
            if r.outcome_failures:
                reasons.append("outcome")
            print(f"  - {r.case_id} ({', '.join(reasons)})", file=sys.stderr)
