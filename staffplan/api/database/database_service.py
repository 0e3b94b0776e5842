import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

from staffplan.api.database.database_dto import (
    ChatMessageRecord,
    FinalStaffingPlan,
    PlanCreateRequest,
    StaffingPlanRecord,
)
from staffplan.config import Settings
from staffplan.utils.errors import PlanNotFoundError

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_plan(doc: Dict[str, Any]) -> StaffingPlanRecord:
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return StaffingPlanRecord(**data)


def _to_message(doc: Dict[str, Any]) -> ChatMessageRecord:
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return ChatMessageRecord(**data)


class DatabaseService:
    """
    Staffing plans and their chat messages, one MongoDB collection each.
    Plans are only ever written as whole records or by replacing
    finalStaffingPlan; messages are append-only.
    """

    def __init__(self, plans: Collection, messages: Collection, client: Optional[MongoClient] = None):
        self.plans = plans
        self.messages = messages
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseService":
        client = MongoClient(settings.mongo_url)
        db = client[settings.mongo_db]
        return cls(db["staffing_plans"], db["chat_messages"], client=client)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def save_plan(self, data: PlanCreateRequest) -> StaffingPlanRecord:
        """
        Upsert a plan by id. createdAt is set only on first insert.
        """
        plan_id = data.id or str(uuid.uuid4())
        now = _now()
        fields = {
            "ownerId": data.ownerId,
            "rfpText": data.rfpText,
            "step1Tasks": data.step1Tasks.model_dump() if data.step1Tasks else None,
            "step2TasksWithLCATs": (
                data.step2TasksWithLCATs.model_dump() if data.step2TasksWithLCATs else None
            ),
            "finalStaffingPlan": data.finalStaffingPlan.model_dump(),
            "updatedAt": now,
        }
        self.plans.update_one(
            {"_id": plan_id},
            {"$set": fields, "$setOnInsert": {"createdAt": now}},
            upsert=True,
        )
        logger.info("staffing_plan_saved", plan_id=plan_id)
        return self.get_plan(plan_id)

    def get_plan(self, plan_id: str) -> StaffingPlanRecord:
        doc = self.plans.find_one({"_id": plan_id})
        if not doc:
            raise PlanNotFoundError(plan_id)
        return _to_plan(doc)

    def list_plans(self, owner_id: Optional[str] = None, limit: int = 50) -> List[StaffingPlanRecord]:
        """Plans, newest first."""
        query = {"ownerId": owner_id} if owner_id else {}
        docs = self.plans.find(query, sort=[("createdAt", DESCENDING)], limit=limit)
        return [_to_plan(d) for d in docs]

    def get_latest_plan(self, owner_id: Optional[str] = None) -> StaffingPlanRecord:
        plans = self.list_plans(owner_id, limit=1)
        if not plans:
            raise PlanNotFoundError("latest")
        return plans[0]

    def replace_final_plan(self, plan_id: str, final_plan: FinalStaffingPlan) -> StaffingPlanRecord:
        res = self.plans.update_one(
            {"_id": plan_id},
            {"$set": {"finalStaffingPlan": final_plan.model_dump(), "updatedAt": _now()}},
        )
        if res.matched_count == 0:
            raise PlanNotFoundError(plan_id)
        logger.info("final_plan_replaced", plan_id=plan_id, lines=len(final_plan.tasks))
        return self.get_plan(plan_id)

    def delete_plan(self, plan_id: str) -> None:
        """Delete a plan and, with it, its chat messages."""
        res = self.plans.delete_one({"_id": plan_id})
        if res.deleted_count == 0:
            raise PlanNotFoundError(plan_id)
        self.messages.delete_many({"staffingPlanId": plan_id})
        logger.info("staffing_plan_deleted", plan_id=plan_id)

    def add_message(self, plan_id: str, role: str, content: str) -> ChatMessageRecord:
        if not self.plans.find_one({"_id": plan_id}):
            raise PlanNotFoundError(plan_id)
        doc = {
            "_id": str(uuid.uuid4()),
            "staffingPlanId": plan_id,
            "role": role,
            "content": content,
            "seq": self.messages.count_documents({"staffingPlanId": plan_id}),
            "createdAt": _now(),
        }
        self.messages.insert_one(doc)
        return _to_message(doc)

    def list_messages(self, plan_id: str) -> List[ChatMessageRecord]:
        """Messages of a plan in conversation order."""
        docs = self.messages.find({"staffingPlanId": plan_id}, sort=[("seq", ASCENDING)])
        return [_to_message(d) for d in docs]
