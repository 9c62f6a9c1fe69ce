"""Entry point for replaying the scripted conversation cases.

Usage:
    python -m scripts.run_eval                                # Run all cases
    python -m scripts.run_eval --case sales-report-kb-resolved  # Single case
"""

import argparse
import asyncio
import logging
import sys

from cerebro.eval.loader import load_cases
from cerebro.eval.report import print_case_result, print_summary
from cerebro.eval.runner import run_case


async def _run_all(case_ids: list[str] | None) -> bool:
    """Run scenario cases and return True if all passed."""
    cases = load_cases(case_ids)
    print(f"Running {len(cases)} scenario case(s)...\n", file=sys.stderr, flush=True)

    results = []
    for i, case in enumerate(cases, 1):
        print(f"[{i}/{len(cases)}] Running: {case.id}...", file=sys.stderr, flush=True)
        result = await run_case(case)
        print_case_result(result)
        results.append(result)

    print_summary(results)
    return all(r.passed for r in results)


def main() -> None:
    """Parse args and run the scenario suite."""
    parser = argparse.ArgumentParser(description="Replay Cerebro scenario cases")
    parser.add_argument(
        "--case",
        type=str,
        action="append",
        default=None,
        help="Run specific case(s) by ID (can be repeated)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log engine decisions")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    all_passed = asyncio.run(_run_all(args.case))
    sys.exit(0 if all_passed else 1)


if __name__ == "__main__":
    main()
