from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Type

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from staffplan.api.database.database_dto import FinalStaffingPlan, TaskTree
from staffplan.utils.errors import StructuralValidationError

logger = structlog.get_logger(__name__)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _tasks_list(data: Any, failures: List[str], allow_empty: bool) -> List[Any] | None:
    if not isinstance(data, dict):
        failures.append("top-level value must be an object")
        return None
    tasks = data.get("tasks")
    if not isinstance(tasks, list):
        failures.append("missing tasks array")
        return None
    if not tasks and not allow_empty:
        failures.append("tasks array must not be empty")
    return tasks


def _check_against_model(model: Type[BaseModel], data: Any, message: str) -> None:
    """Enforce the field types of the stored record model."""
    try:
        model.model_validate(data)
    except PydanticValidationError as e:
        failures = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise StructuralValidationError(message, data, failures) from e


def _lcats_ok(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(_non_empty_str(v) for v in value)


def validate_task_tree(data: Any, require_lcats: bool = False) -> Dict[str, Any]:
    """
    Check a stage 1 / stage 2 task tree.

    With `require_lcats`, every leaf (a sub-task, or a task without sub-tasks)
    must carry recommendedLCATs. Task-level LCATs on a task that has sub-tasks
    are dropped: the sub-tasks carry the assignment.
    """
    failures: List[str] = []
    tasks = _tasks_list(data, failures, allow_empty=False)
    if tasks is None:
        raise StructuralValidationError("Task tree validation failed", data, failures)

    for idx, task in enumerate(tasks):
        if not isinstance(task, dict):
            failures.append(f"tasks[{idx}] must be an object")
            continue
        if not _non_empty_str(task.get("taskId")):
            failures.append(f"tasks[{idx}] missing taskId")

        sub_tasks = task.get("subTasks")
        if sub_tasks is None:
            sub_tasks = []
            task["subTasks"] = sub_tasks
        if not isinstance(sub_tasks, list):
            failures.append(f"tasks[{idx}].subTasks must be a list")
            continue

        for s_idx, sub in enumerate(sub_tasks):
            if not isinstance(sub, dict):
                failures.append(f"tasks[{idx}].subTasks[{s_idx}] must be an object")
                continue
            if not _non_empty_str(sub.get("subTaskId")):
                failures.append(f"tasks[{idx}].subTasks[{s_idx}] missing subTaskId")
            if require_lcats and not _lcats_ok(sub.get("recommendedLCATs")):
                failures.append(
                    f"tasks[{idx}].subTasks[{s_idx}] needs a non-empty recommendedLCATs list"
                )

        if not require_lcats:
            continue
        if sub_tasks:
            if task.pop("recommendedLCATs", None):
                logger.info("dropped_task_level_lcats", task_id=task.get("taskId"))
        elif not _lcats_ok(task.get("recommendedLCATs")):
            failures.append(f"tasks[{idx}] needs a non-empty recommendedLCATs list")

    if failures:
        raise StructuralValidationError(
            f"Task tree validation failed with {len(failures)} issues", data, failures
        )
    _check_against_model(TaskTree, data, "Task tree validation failed")
    return data


def validate_staffing_lines(
    data: Any,
    require_rationale: bool = False,
    require_basis: bool = False,
    allow_empty: bool = True,
) -> Dict[str, Any]:
    """Check a `{tasks: [StaffingLine, ...]}` payload."""
    failures: List[str] = []
    lines = _tasks_list(data, failures, allow_empty=allow_empty)
    if lines is None:
        raise StructuralValidationError("Staffing plan validation failed", data, failures)

    for idx, line in enumerate(lines):
        if not isinstance(line, dict):
            failures.append(f"tasks[{idx}] must be an object")
            continue
        if not _non_empty_str(line.get("taskId")):
            failures.append(f"tasks[{idx}] missing taskId")
        if not _non_empty_str(line.get("lcat")):
            failures.append(f"tasks[{idx}] missing lcat")
        hours = line.get("hours")
        if not _is_number(hours):
            failures.append(f"tasks[{idx}].hours must be a number")
        elif hours < 0:
            failures.append(f"tasks[{idx}].hours must be non-negative")
        if require_rationale and not _non_empty_str(line.get("mathRationale")):
            failures.append(f"tasks[{idx}] missing mathRationale")
        if require_basis and not _non_empty_str(line.get("basis")):
            failures.append(f"tasks[{idx}] missing basis")

    if failures:
        raise StructuralValidationError(
            f"Staffing plan validation failed with {len(failures)} issues", data, failures
        )
    _check_against_model(FinalStaffingPlan, data, "Staffing plan validation failed")
    return data


def total_hours(lines: Iterable[Dict[str, Any]]) -> float:
    return float(sum(line.get("hours", 0) for line in lines))
