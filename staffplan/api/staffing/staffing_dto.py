from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class GeneratePlanRequest(BaseModel):
    rfpText: Optional[str] = Field(default=None, description="Full RFP text.")
    approach: Literal["top_down", "bottom_up"] = Field(default="bottom_up")
    totalFTE: Optional[float] = Field(
        default=None, description="Required for top_down: total full-time equivalents."
    )
    hoursPerFte: Optional[float] = Field(default=None, gt=0)
    save: bool = Field(default=False, description="Store the generated plan.")
    ownerId: str = Field(default="anonymous")


class HistoryTurnModel(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""


class ChatRequest(BaseModel):
    message: Optional[str] = None
    planData: Optional[Dict[str, Any]] = None
    rfpText: str = ""
    history: List[HistoryTurnModel] = Field(default_factory=list)


class ChatResponse(BaseModel):
    message: str
    updatedPlan: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class PlanChatRequest(BaseModel):
    message: Optional[str] = None


class UploadResponse(BaseModel):
    text: str
