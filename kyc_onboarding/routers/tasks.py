"""
Tasks Router
Human review tasks proxied from the task-list backend
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, HTTPException, Query, status

from kyc_onboarding.schemas.tasks import (
    AssignTaskRequest, CompleteTaskRequest, TaskActionResponse, TaskBoardResponse,
    TaskView, UpdateVariablesRequest
)
from kyc_onboarding.services.task_board import task_board
from kyc_onboarding.services.tasklist_client import build_task_view, tasklist_client


router = APIRouter()


@router.get("", response_model=TaskBoardResponse)
async def list_tasks(
    assignee: Optional[str] = Query(None, description="Only tasks assigned to this user"),
    unassigned: bool = Query(False, description="Only tasks nobody is assigned to"),
    cached: bool = Query(False, description="Return the last background refresh instead of querying")
):
    """
    Open review tasks

    Without filters the board is refreshed from the task-list backend and
    falls back to locally cached applications if the backend is unavailable.
    """
    if assignee:
        tasks = await tasklist_client.get_tasks_assigned_to(assignee)
        return TaskBoardResponse(tasks=[build_task_view(t) for t in tasks], source="tasklist")
    if unassigned:
        tasks = await tasklist_client.get_unassigned_tasks()
        return TaskBoardResponse(tasks=[build_task_view(t) for t in tasks], source="tasklist")
    if cached and task_board.refreshed_at is not None:
        return task_board.snapshot()
    return await task_board.refresh()


@router.get("/{task_id}", response_model=TaskView)
async def get_task(task_id: str):
    task = await tasklist_client.get_task(task_id)
    return build_task_view(task)


@router.post("/{task_id}/assign", response_model=TaskActionResponse)
async def assign_task(task_id: str, request: AssignTaskRequest):
    assignee = request.assignee.strip()
    if not assignee:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter an assignee name")
    result = await tasklist_client.assign_task(task_id, assignee, request.allow_override_assignment)
    return TaskActionResponse(**result)


@router.delete("/{task_id}/assignment")
async def unassign_task(task_id: str) -> Dict[str, Any]:
    """Returns the refreshed task, or the backend's confirmation if it cannot be fetched"""
    result = await tasklist_client.unassign_task(task_id)
    if result.task is None:
        return TaskActionResponse(message=result.message).model_dump()
    return build_task_view(result.task).model_dump()


@router.post("/{task_id}/complete", response_model=TaskActionResponse)
async def complete_task(task_id: str, request: Optional[CompleteTaskRequest] = None):
    variables = request.variables if request else {}
    result = await tasklist_client.complete_task(task_id, variables)
    return TaskActionResponse(**result)


@router.post("/{task_id}/variables/search")
async def search_task_variables(task_id: str, search_request: Optional[Dict[str, Any]] = None):
    return await tasklist_client.search_task_variables(task_id, search_request)


@router.post("/{task_id}/variables")
async def update_task_variables(task_id: str, request: UpdateVariablesRequest):
    variables = [variable.model_dump() for variable in request.variables]
    return await tasklist_client.update_task_variables(task_id, variables)
