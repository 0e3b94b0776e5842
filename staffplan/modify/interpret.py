from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional, TypedDict

import structlog

from staffplan.generate.sanity import validate_staffing_lines
from staffplan.modify.patch import (
    PLAN_UPDATE_MARKER,
    apply_plan_update,
    current_lines,
    extract_plan_update,
)
from staffplan.run_utils.llm import LLMClient
from staffplan.utils.errors import StructuralValidationError, TransportError, TransportErrorKind

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_WINDOW = 5
DEFAULT_RFP_EXCERPT_CHARS = 1000

EMPTY_REPLY_MESSAGE = "I'm sorry, I couldn't generate a response."
UPDATE_APPLIED_MESSAGE = "Plan updated successfully"
UPDATE_UNPARSEABLE_MESSAGE = (
    "I understood your request to update the plan, but I need you to be more specific "
    "about what changes you want to make. Please specify which task(s) you want to modify "
    "and what values should be changed."
)
UPDATE_UNPARSEABLE_ERROR = "Failed to parse plan update"
TOO_LONG_MESSAGE = (
    "I apologize, but the plan and conversation history are too long for me to process. "
    "Could you try breaking down your request into smaller parts?"
)
TOO_LONG_ERROR = "Message too long"

LINE_FIELDS = ("taskId", "lcat", "hours", "mathRationale", "basis")


class HistoryTurn(TypedDict):
    role: Literal["user", "assistant"]
    content: str


class ChatResult(TypedDict, total=False):
    message: str
    updatedPlan: Dict[str, Any]
    error: str


def build_plan_snapshot(plan_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Lightweight view of the plan for the prompt: only staffing-line fields,
    without the step1/step2 task trees.
    """
    lines = current_lines(plan_data)
    if not lines:
        return None
    return {
        "finalStaffingPlan": {
            "tasks": [{k: line.get(k) for k in LINE_FIELDS} for line in lines]
        }
    }


def _build_system_prompt(
    rfp_text: str, snapshot: Optional[Dict[str, Any]], rfp_excerpt_chars: int
) -> str:
    context: List[str] = []
    if rfp_text:
        context.append(f"1. RFP Text: {rfp_text[:rfp_excerpt_chars]}...")
    if snapshot:
        context.append(f"2. Current Staffing Plan: {json.dumps(snapshot, indent=2)}")

    return (
        "You are an AI assistant helping with staffing plans.\n\n"
        "When a user requests changes to the staffing plan, follow these steps:\n"
        "1. Parse the user's request carefully\n"
        "2. Identify which tasks need modification\n"
        "3. Update the values while maintaining data consistency\n\n"
        "Your response MUST be in this exact format when making changes:\n"
        f"{PLAN_UPDATE_MARKER}\n"
        "{\n"
        '  "tasks": [\n'
        "    {\n"
        '      "taskId": "string",\n'
        '      "lcat": "string",\n'
        '      "hours": number,\n'
        '      "mathRationale": "string",\n'
        '      "basis": "string"\n'
        "    }\n"
        "  ]\n"
        "}\n\n"
        "[Your explanation of the changes made]\n\n"
        "For all tasks in the plan that are not being modified, you must include them EXACTLY "
        "as they are in the current plan. DO NOT CHANGE THEM AT ALL!\n"
        "If the user is only asking a question, answer it without the "
        f"{PLAN_UPDATE_MARKER} block.\n\n"
        "Context:\n" + "\n".join(context)
    )


def build_chat_messages(
    message: str,
    plan_data: Optional[Dict[str, Any]],
    rfp_text: str,
    history: List[HistoryTurn],
    history_window: int = DEFAULT_HISTORY_WINDOW,
    rfp_excerpt_chars: int = DEFAULT_RFP_EXCERPT_CHARS,
) -> List[Dict[str, str]]:
    snapshot = build_plan_snapshot(plan_data)
    recent = history[-history_window:] if history_window > 0 else []
    messages = [
        {"role": "system", "content": _build_system_prompt(rfp_text, snapshot, rfp_excerpt_chars)},
        *({"role": turn["role"], "content": turn.get("content") or ""} for turn in recent),
        {"role": "user", "content": message or ""},
    ]
    return [m for m in messages if m["content"].strip()]


async def interpret_chat_message(
    llm: LLMClient,
    message: str,
    plan_data: Optional[Dict[str, Any]],
    rfp_text: str,
    history: List[HistoryTurn],
    history_window: int = DEFAULT_HISTORY_WINDOW,
    rfp_excerpt_chars: int = DEFAULT_RFP_EXCERPT_CHARS,
) -> ChatResult:
    """
    Answer a chat message about the plan, applying a plan update when the model
    replies with a PLAN_UPDATE block.

    Bad updates are reported back as a soft failure (`error` set, no
    `updatedPlan`). A context-length failure becomes a user-facing message;
    any other transport failure propagates.
    """
    messages = build_chat_messages(
        message, plan_data, rfp_text or "", history, history_window, rfp_excerpt_chars
    )

    try:
        content = await llm.chat(messages)
    except TransportError as e:
        if e.kind is TransportErrorKind.CONTEXT_LENGTH:
            logger.warning("chat_context_length_exceeded")
            return {"message": TOO_LONG_MESSAGE, "error": TOO_LONG_ERROR}
        raise

    if not content:
        return {"message": EMPTY_REPLY_MESSAGE}

    block = extract_plan_update(content)
    if block is None:
        return {"message": content}

    logger.debug("plan_update_extracted", payload=block.payload)
    try:
        update = json.loads(block.payload)
        validate_staffing_lines(update)
    except (json.JSONDecodeError, StructuralValidationError) as e:
        logger.error("plan_update_rejected", error=str(e), raw_content=content)
        return {"message": UPDATE_UNPARSEABLE_MESSAGE, "error": UPDATE_UNPARSEABLE_ERROR}

    return {
        "message": block.explanation or UPDATE_APPLIED_MESSAGE,
        "updatedPlan": apply_plan_update(plan_data, update["tasks"]),
    }
