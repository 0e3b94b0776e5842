from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import structlog

from staffplan.generate import prompts
from staffplan.generate.sanity import total_hours, validate_staffing_lines, validate_task_tree
from staffplan.run_utils.json_repair import DEFAULT_REPAIR_ATTEMPTS, recover_json
from staffplan.run_utils.llm import LLMClient
from staffplan.utils.errors import ValidationError

logger = structlog.get_logger(__name__)

APPROACHES = ("top_down", "bottom_up")
DEFAULT_HOURS_PER_FTE = 1880.0


def _check_inputs(
    rfp_text: str, approach: str, total_fte: Optional[float], hours_per_fte: float
) -> None:
    if not rfp_text or not rfp_text.strip():
        raise ValidationError("RFP text is required")
    if approach not in APPROACHES:
        raise ValidationError(f"approach must be one of {', '.join(APPROACHES)}")
    if approach == "top_down" and (total_fte is None or total_fte <= 0):
        raise ValidationError("totalFTE must be a positive number for the top_down approach")
    if hours_per_fte <= 0:
        raise ValidationError("hoursPerFte must be a positive number")


async def _run_stage(
    llm: LLMClient,
    stage: str,
    reasoning_prompt: str,
    parser_system: str,
    max_repair_attempts: int,
    reasoning_max_tokens: Optional[int] = None,
) -> Any:
    """
    One reason-then-extract stage: a free-form reasoning call, then a parser call
    that turns the reasoning into JSON, then JSON recovery on the parser output.
    """
    logger.info("stage_started", stage=stage)
    reasoning = await llm.reason(
        reasoning_prompt, op=f"{stage}.reasoning", max_tokens=reasoning_max_tokens
    )
    logger.debug("stage_reasoning", stage=stage, text=reasoning)

    parser_messages: List[Dict[str, Any]] = [
        {"role": "system", "content": parser_system},
        {"role": "user", "content": reasoning},
    ]
    parsed = await llm.extract_structured(parser_messages, op=f"{stage}.parser")
    logger.debug("stage_parser_output", stage=stage, text=parsed)

    data = await recover_json(
        llm, parsed, parser_messages, max_attempts=max_repair_attempts, op=f"{stage}.repair"
    )
    logger.info("stage_finished", stage=stage)
    return data


async def generate_staffing_plan(
    llm: LLMClient,
    rfp_text: str,
    approach: str,
    total_fte: Optional[float] = None,
    hours_per_fte: float = DEFAULT_HOURS_PER_FTE,
    max_repair_attempts: int = DEFAULT_REPAIR_ATTEMPTS,
    hours_max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Generate a multi-level staffing plan in three dependent steps:
      (1) identify tasks/subTasks
      (2) assign recommended labor categories
      (3) estimate hours (top_down or bottom_up)

    Each step embeds the previous step's parsed JSON in its prompt, so the steps
    run strictly in sequence. Any unrecoverable failure aborts the whole run.
    Nothing is persisted here.
    """
    _check_inputs(rfp_text, approach, total_fte, hours_per_fte)
    logger.info(
        "generating_staffing_plan", approach=approach, total_fte=total_fte, rfp_chars=len(rfp_text)
    )

    step1 = await _run_stage(
        llm,
        "step1",
        prompts.step1_reasoning_prompt(rfp_text),
        prompts.step1_parser_system(),
        max_repair_attempts,
    )
    step1_tasks = validate_task_tree(step1)

    step2 = await _run_stage(
        llm,
        "step2",
        prompts.step2_reasoning_prompt(json.dumps(step1_tasks, indent=2)),
        prompts.step2_parser_system(),
        max_repair_attempts,
    )
    step2_tasks = validate_task_tree(step2, require_lcats=True)

    step3 = await _run_stage(
        llm,
        "step3",
        prompts.step3_reasoning_prompt(
            json.dumps(step2_tasks, indent=2), approach, total_fte, hours_per_fte
        ),
        prompts.step3_parser_system(),
        max_repair_attempts,
        reasoning_max_tokens=hours_max_tokens,
    )
    final_plan = validate_staffing_lines(
        step3,
        require_rationale=True,
        require_basis=approach == "bottom_up",
        allow_empty=False,
    )

    hours = total_hours(final_plan["tasks"])
    summary: Dict[str, Any] = {"lines": len(final_plan["tasks"]), "total_hours": hours}
    if approach == "top_down":
        summary["target_hours"] = float(total_fte) * hours_per_fte
    logger.info("staffing_plan_generated", **summary)

    return {
        "step1Tasks": step1_tasks,
        "step2TasksWithLCATs": step2_tasks,
        "finalStaffingPlan": final_plan,
    }
