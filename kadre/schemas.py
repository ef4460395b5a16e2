from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Classification = Literal["progress", "blocker", "communication", "insight", "admin"]
Priority = Literal["high", "medium", "low"]

CLASSIFICATIONS = ("progress", "blocker", "communication", "insight", "admin")
PRIORITIES = ("high", "medium", "low")


class ActionItem(BaseModel):
    title: str
    priority: Priority = "medium"


class ClientHighlight(BaseModel):
    client_id: str
    company: str


class ActivitySample(BaseModel):
    reflection_count: int = Field(default=0, ge=0)
    update_count: int = Field(default=0, ge=0)
    tasks_completed: int = Field(default=0, ge=0)
    tasks_total: int = Field(default=0, ge=0)


class EngagementReport(BaseModel):
    updated: int
    total: int


class TriageResult(BaseModel):
    update_id: str
    classification: Classification
    client_id: Optional[str] = None
    action_items: List[ActionItem] = []
    tasks_created: int = 0


class AssistantIn(BaseModel):
    message: str = ""


class AssistantOut(BaseModel):
    response: str


class SynthesisOut(BaseModel):
    coach_id: str
    synthesis_date: date
    content: str


class CoachJobResult(BaseModel):
    coach_id: str
    status: Literal["ok", "error"]
    error: Optional[str] = None
