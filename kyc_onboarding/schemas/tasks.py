"""
Task Schemas
Review tasks from the task-list backend and the requests that act on them
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TaskView(BaseModel):
    """A review task shaped for display"""
    id: str
    task_name: str
    task_status: str = Field(..., description="assigned or unassigned")
    assigned_to: Optional[str] = None
    is_assigned: bool = False
    creation_time: Optional[str] = None
    completion_time: Optional[str] = None
    submission_date: Optional[str] = Field(None, description="YYYY-MM-DD, absent when no timestamp is known")
    process_instance_key: Optional[str] = None
    process_definition_id: Optional[str] = None
    process_name: Optional[str] = None
    state: Optional[str] = None
    priority: Optional[int] = None
    due_date: Optional[str] = None
    follow_up_date: Optional[str] = None
    form_key: Optional[str] = None
    candidate_groups: List[str] = []
    candidate_users: List[str] = []
    customer_name: str = "Unknown Customer"
    customer_data: Dict[str, Any] = {}
    completed_steps: str = "0/4"
    income_band: str = "Not specified"
    pep: bool = False
    source: str = Field("tasklist", description="tasklist or cache")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "2251799813685249",
                "task_name": "Manual Review",
                "task_status": "unassigned",
                "customer_name": "Ramesh Kumar",
                "completed_steps": "4/4",
                "submission_date": "2024-05-14",
                "source": "tasklist"
            }
        }


class TaskBoardResponse(BaseModel):
    """Open tasks plus where they came from"""
    tasks: List[TaskView]
    source: str
    refreshed_at: Optional[str] = None
    error: Optional[str] = None


class AssignTaskRequest(BaseModel):
    assignee: str = Field(..., min_length=1)
    allow_override_assignment: bool = True


class CompleteTaskRequest(BaseModel):
    variables: Dict[str, Any] = {}


class TaskVariable(BaseModel):
    name: str
    value: Any = None


class UpdateVariablesRequest(BaseModel):
    variables: List[TaskVariable]


class TaskActionResponse(BaseModel):
    """Plain-text confirmation from the task-list backend"""
    success: bool = True
    message: str
