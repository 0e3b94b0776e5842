from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from staffplan.api.database.database_dto import (
    ChatMessageRecord,
    FinalPlanReplaceRequest,
    ListMessagesResponse,
    ListPlansResponse,
    MessageCreateRequest,
    PlanCreateRequest,
    StaffingPlanRecord,
)
from staffplan.api.database.database_service import DatabaseService

router = APIRouter(
    tags=["Database"],
    prefix="/database",
)


def get_database_service(request: Request) -> DatabaseService:
    return request.app.state.db


@router.post(
    "/plans",
    response_model=StaffingPlanRecord,
    summary="Create or overwrite a staffing plan",
)
async def create_plan(
    body: PlanCreateRequest,
    db_service: DatabaseService = Depends(get_database_service),
) -> StaffingPlanRecord:
    return await run_in_threadpool(db_service.save_plan, body)


@router.get(
    "/plans",
    response_model=ListPlansResponse,
    summary="List staffing plans, newest first",
)
async def list_plans(
    ownerId: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    db_service: DatabaseService = Depends(get_database_service),
) -> ListPlansResponse:
    plans = await run_in_threadpool(db_service.list_plans, ownerId, limit)
    return ListPlansResponse(plans=plans)


@router.get(
    "/plans/latest",
    response_model=StaffingPlanRecord,
    summary="Get the most recently created staffing plan",
)
async def get_latest_plan(
    ownerId: Optional[str] = None,
    db_service: DatabaseService = Depends(get_database_service),
) -> StaffingPlanRecord:
    return await run_in_threadpool(db_service.get_latest_plan, ownerId)


@router.get(
    "/plans/{plan_id}",
    response_model=StaffingPlanRecord,
    summary="Get a staffing plan by id",
)
async def get_plan(
    plan_id: str,
    db_service: DatabaseService = Depends(get_database_service),
) -> StaffingPlanRecord:
    return await run_in_threadpool(db_service.get_plan, plan_id)


@router.put(
    "/plans/{plan_id}/final-plan",
    response_model=StaffingPlanRecord,
    summary="Replace the final staffing plan of a stored plan",
)
async def replace_final_plan(
    plan_id: str,
    body: FinalPlanReplaceRequest,
    db_service: DatabaseService = Depends(get_database_service),
) -> StaffingPlanRecord:
    return await run_in_threadpool(db_service.replace_final_plan, plan_id, body.finalStaffingPlan)


@router.delete(
    "/plans/{plan_id}",
    response_model=None,
    summary="Delete a staffing plan and its chat messages",
)
async def delete_plan(
    plan_id: str,
    db_service: DatabaseService = Depends(get_database_service),
) -> None:
    await run_in_threadpool(db_service.delete_plan, plan_id)


@router.post(
    "/plans/{plan_id}/messages",
    response_model=ChatMessageRecord,
    summary="Append a chat message to a plan",
)
async def add_message(
    plan_id: str,
    body: MessageCreateRequest,
    db_service: DatabaseService = Depends(get_database_service),
) -> ChatMessageRecord:
    return await run_in_threadpool(db_service.add_message, plan_id, body.role, body.content)


@router.get(
    "/plans/{plan_id}/messages",
    response_model=ListMessagesResponse,
    summary="List the chat messages of a plan in order",
)
async def list_messages(
    plan_id: str,
    db_service: DatabaseService = Depends(get_database_service),
) -> ListMessagesResponse:
    await run_in_threadpool(db_service.get_plan, plan_id)
    messages = await run_in_threadpool(db_service.list_messages, plan_id)
    return ListMessagesResponse(messages=messages)
