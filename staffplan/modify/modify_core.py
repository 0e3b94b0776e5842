from __future__ import annotations

import structlog
from starlette.concurrency import run_in_threadpool

from staffplan.api.database.database_dto import FinalStaffingPlan
from staffplan.api.database.database_service import DatabaseService
from staffplan.config import Settings
from staffplan.modify.interpret import ChatResult, interpret_chat_message
from staffplan.run_utils.llm import LLMClient

logger = structlog.get_logger(__name__)


async def run_plan_chat(
    db: DatabaseService,
    llm: LLMClient,
    plan_id: str,
    message: str,
    settings: Settings,
) -> ChatResult:
    """
    Chat turn against a stored plan. Both turns are stored only once the model
    has answered; an accepted update replaces the stored final plan first.
    """
    plan = await run_in_threadpool(db.get_plan, plan_id)
    stored = await run_in_threadpool(db.list_messages, plan_id)
    history = [{"role": m.role, "content": m.content} for m in stored]

    result = await interpret_chat_message(
        llm,
        message,
        plan.model_dump(mode="json"),
        plan.rfpText,
        history,
        history_window=settings.chat_history_window,
        rfp_excerpt_chars=settings.rfp_excerpt_chars,
    )

    updated = result.get("updatedPlan")
    if updated is not None:
        final_plan = FinalStaffingPlan.model_validate(updated["finalStaffingPlan"])
        await run_in_threadpool(db.replace_final_plan, plan_id, final_plan)
        logger.info("stored_plan_updated_from_chat", plan_id=plan_id, lines=len(final_plan.tasks))

    await run_in_threadpool(db.add_message, plan_id, "user", message)
    await run_in_threadpool(db.add_message, plan_id, "assistant", result["message"])
    return result
