from typing import Any, Dict, Optional, Union

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from staffplan.api.database.database_controller import get_database_service
from staffplan.api.database.database_dto import PlanCreateRequest, StaffingPlanRecord
from staffplan.api.database.database_service import DatabaseService
from staffplan.api.staffing.staffing_dto import (
    ChatRequest,
    ChatResponse,
    GeneratePlanRequest,
    PlanChatRequest,
    UploadResponse,
)
from staffplan.config import Settings
from staffplan.generate.planner import generate_staffing_plan
from staffplan.modify.interpret import interpret_chat_message
from staffplan.modify.modify_core import run_plan_chat
from staffplan.run_utils.llm import LLMClient
from staffplan.run_utils.text_extract import extract_text

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Staffing"])


def get_llm(request: Request) -> LLMClient:
    return request.app.state.llm


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/health", summary="Liveness probe")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.post(
    "/generate-plan",
    response_model=None,
    summary="Generate a three-step staffing plan from RFP text",
)
async def generate_plan(
    body: GeneratePlanRequest,
    llm: LLMClient = Depends(get_llm),
    settings: Settings = Depends(get_app_settings),
    db_service: DatabaseService = Depends(get_database_service),
) -> Union[Dict[str, Any], StaffingPlanRecord]:
    if not body.rfpText or not body.rfpText.strip():
        raise HTTPException(status_code=400, detail="RFP text is required")

    plan = await generate_staffing_plan(
        llm,
        body.rfpText,
        body.approach,
        total_fte=body.totalFTE,
        hours_per_fte=body.hoursPerFte or settings.hours_per_fte,
        max_repair_attempts=settings.json_repair_attempts,
        hours_max_tokens=settings.hours_max_tokens,
    )
    if not body.save:
        return plan

    record = PlanCreateRequest(ownerId=body.ownerId, rfpText=body.rfpText, **plan)
    return await run_in_threadpool(db_service.save_plan, record)


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    summary="Discuss or revise a staffing plan held by the client",
)
async def chat(
    body: ChatRequest,
    llm: LLMClient = Depends(get_llm),
    settings: Settings = Depends(get_app_settings),
) -> ChatResponse:
    if not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    result = await interpret_chat_message(
        llm,
        body.message,
        body.planData,
        body.rfpText,
        [turn.model_dump() for turn in body.history],
        history_window=settings.chat_history_window,
        rfp_excerpt_chars=settings.rfp_excerpt_chars,
    )
    return ChatResponse(**result)


@router.post(
    "/plans/{plan_id}/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    summary="Discuss or revise a stored staffing plan",
)
async def chat_with_stored_plan(
    plan_id: str,
    body: PlanChatRequest,
    llm: LLMClient = Depends(get_llm),
    settings: Settings = Depends(get_app_settings),
    db_service: DatabaseService = Depends(get_database_service),
) -> ChatResponse:
    if not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    result = await run_plan_chat(db_service, llm, plan_id, body.message, settings)
    return ChatResponse(**result)


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Extract text from an uploaded RFP document",
)
async def upload(file: Optional[UploadFile] = File(default=None)) -> UploadResponse:
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    data = await file.read()
    logger.info(
        "upload_received", filename=file.filename, mime_type=file.content_type, size=len(data)
    )
    text = await run_in_threadpool(extract_text, data, file.content_type, file.filename)
    return UploadResponse(text=text)
