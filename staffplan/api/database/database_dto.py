from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubTask(BaseModel):
    model_config = ConfigDict(extra="allow")

    subTaskId: str = Field(..., description="Identifier of the sub-task, e.g. C.5.1.2.")
    title: Optional[str] = Field(default="", description="Short title of the sub-task.")
    description: Optional[str] = Field(default="", description="What the sub-task covers.")
    recommendedLCATs: List[str] = Field(
        default_factory=list, description="Labor categories assigned to the sub-task."
    )


class Task(BaseModel):
    model_config = ConfigDict(extra="allow")

    taskId: str = Field(..., description="Identifier of the task, e.g. C.5.1.")
    title: Optional[str] = Field(default="", description="Short title of the task.")
    description: Optional[str] = Field(default="", description="What the task covers.")
    subTasks: List[SubTask] = Field(default_factory=list, description="Decomposed sub-work.")
    recommendedLCATs: List[str] = Field(
        default_factory=list,
        description="Labor categories, only when the task has no sub-tasks.",
    )


class TaskTree(BaseModel):
    model_config = ConfigDict(extra="allow")

    tasks: List[Task] = Field(default_factory=list)


class StaffingLine(BaseModel):
    model_config = ConfigDict(extra="allow")

    taskId: str = Field(..., min_length=1, description="Task or sub-task identifier.")
    lcat: str = Field(..., min_length=1, description="Labor category.")
    hours: float = Field(..., ge=0, description="Estimated hours for this line.")
    mathRationale: Optional[str] = Field(default="", description="How the hours were derived.")
    basis: Optional[str] = Field(default="", description="Evidence or assumption behind the hours.")


class FinalStaffingPlan(BaseModel):
    tasks: List[StaffingLine] = Field(default_factory=list)


class StaffingPlanRecord(BaseModel):
    id: str = Field(..., description="The unique identifier of the staffing plan.")
    createdAt: datetime
    updatedAt: datetime
    ownerId: str = Field(default="anonymous", description="Who generated the plan.")
    rfpText: str = Field(default="", description="Text extracted from the RFP.")
    step1Tasks: Optional[TaskTree] = Field(default=None)
    step2TasksWithLCATs: Optional[TaskTree] = Field(default=None)
    finalStaffingPlan: FinalStaffingPlan = Field(default_factory=FinalStaffingPlan)


class ChatMessageRecord(BaseModel):
    id: str = Field(..., description="Unique identifier for the message.")
    createdAt: datetime
    staffingPlanId: str = Field(..., description="The plan this message belongs to.")
    role: Literal["user", "assistant"]
    content: str
    seq: int = Field(default=0, description="Position of the message within its plan.")


class PlanCreateRequest(BaseModel):
    id: Optional[str] = Field(default=None, description="Client-chosen id; generated if absent.")
    ownerId: str = Field(default="anonymous")
    rfpText: str = Field(default="")
    step1Tasks: Optional[TaskTree] = None
    step2TasksWithLCATs: Optional[TaskTree] = None
    finalStaffingPlan: FinalStaffingPlan = Field(default_factory=FinalStaffingPlan)


class FinalPlanReplaceRequest(BaseModel):
    finalStaffingPlan: FinalStaffingPlan


class MessageCreateRequest(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ListPlansResponse(BaseModel):
    plans: List[StaffingPlanRecord]


class ListMessagesResponse(BaseModel):
    messages: List[ChatMessageRecord]
