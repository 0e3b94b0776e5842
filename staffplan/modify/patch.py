from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

PLAN_UPDATE_MARKER = "PLAN_UPDATE:"


@dataclass
class PlanUpdateBlock:
    """The raw JSON payload following the marker, and the explanation after it."""

    payload: str
    explanation: str


def _balanced_object_end(text: str, start: int) -> int:
    """
    Index just past the `}` that closes the object opened at `start`, or -1.
    Braces inside JSON string literals are not counted.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def extract_plan_update(content: str) -> Optional[PlanUpdateBlock]:
    """
    Split a reply that follows the PLAN_UPDATE grammar.

    Returns None when the marker is absent. When the marker is present but no
    balanced JSON object follows it, the payload is empty and the caller is
    expected to treat the update as unparseable.
    """
    idx = content.find(PLAN_UPDATE_MARKER)
    if idx == -1:
        return None

    after = content[idx + len(PLAN_UPDATE_MARKER):]
    start = after.find("{")
    if start == -1:
        return PlanUpdateBlock(payload="", explanation=after.strip())

    end = _balanced_object_end(after, start)
    if end == -1:
        return PlanUpdateBlock(payload="", explanation=after.strip())

    return PlanUpdateBlock(payload=after[start:end], explanation=after[end:].strip())


def current_lines(plan_data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Staffing lines of a plan's finalStaffingPlan."""
    if not isinstance(plan_data, dict):
        return []
    final = plan_data.get("finalStaffingPlan") or {}
    tasks = final.get("tasks") if isinstance(final, dict) else None
    return [t for t in tasks if isinstance(t, dict)] if isinstance(tasks, list) else []


def _line_key(line: Dict[str, Any]) -> tuple:
    return (line.get("taskId"), line.get("lcat"))


def apply_plan_update(
    plan_data: Optional[Dict[str, Any]], new_lines: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Return a copy of `plan_data` whose finalStaffingPlan is replaced wholesale by
    `new_lines`. Lines absent from the update are not carried over.
    """
    previous = {_line_key(line) for line in current_lines(plan_data)}
    dropped = previous - {_line_key(line) for line in new_lines}
    if dropped:
        logger.warning("plan_update_dropped_lines", dropped=sorted(f"{t}/{l}" for t, l in dropped))

    updated = copy.deepcopy(plan_data) if isinstance(plan_data, dict) else {}
    updated["finalStaffingPlan"] = {"tasks": copy.deepcopy(new_lines)}
    return updated
