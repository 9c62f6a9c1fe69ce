"""Load scenario replay cases from YAML.

A case file holds either one case mapping or a list of them, so closely
related conversations (say, the happy path and the escalation of one
scenario) can share a file. Case IDs must be unique across the whole
directory; the runner and the report key everything on them.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cerebro.eval.models import ScenarioCase

logger = logging.getLogger(__name__)

CASES_DIR = Path(__file__).parent / "cases"


def _read_file(path: Path) -> list[ScenarioCase]:
    raw: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        logger.debug("Skipping empty case file %s", path.name)
        return []

    entries = raw if isinstance(raw, list) else [raw]
    try:
        return [ScenarioCase.model_validate(entry) for entry in entries]
    except ValidationError as exc:
        msg = f"Failed to parse {path.name}: {exc}"
        raise ValueError(msg) from exc


def _index_cases(cases_dir: Path) -> dict[str, ScenarioCase]:
    if not cases_dir.is_dir():
        msg = f"Scenario cases directory not found: {cases_dir}"
        raise FileNotFoundError(msg)

    yaml_files = sorted(cases_dir.glob("*.yaml"))
    if not yaml_files:
        msg = f"No YAML files found in {cases_dir}"
        raise FileNotFoundError(msg)

    index: dict[str, ScenarioCase] = {}
    origin: dict[str, str] = {}
    for path in yaml_files:
        for case in _read_file(path):
            if case.id in index:
                msg = f"Duplicate scenario case ID {case.id!r} in {path.name} (first defined in {origin[case.id]})"
                raise ValueError(msg)
            index[case.id] = case
            origin[case.id] = path.name
    return index


def load_cases(case_ids: list[str] | None = None, cases_dir: Path = CASES_DIR) -> list[ScenarioCase]:
    """Load scenario cases, all of them or just the requested IDs.

    Requested cases come back in the order they were asked for; otherwise in
    file order.

    Raises:
        FileNotFoundError: The directory is missing or empty, or a requested ID is unknown.
        ValueError: A case fails validation or reuses another case's ID.
    """
    index = _index_cases(cases_dir)
    if case_ids is None:
        return list(index.values())

    missing = sorted(set(case_ids) - index.keys())
    if missing:
        msg = f"Scenario case IDs not found: {', '.join(missing)}"
        raise FileNotFoundError(msg)
    return [index[case_id] for case_id in dict.fromkeys(case_ids)]
