"""
Task-list Client
Search, assign, complete and update human review tasks on the task-list backend
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Union

import httpx
from loguru import logger

from kyc_onboarding.config import settings
from kyc_onboarding.schemas.tasks import TaskView
from kyc_onboarding.services.exceptions import TasklistServiceError


class UnassignResult(NamedTuple):
    """Outcome of an unassign: the refetched task, or None if it could not be loaded"""
    task: Optional[Dict[str, Any]]
    message: str


class TasklistClient:
    """Client for the task-list backend"""

    TASKS_PATH = "/tasklist/tasks"
    OPEN_STATE = "CREATED"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.TASKLIST_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT_SECONDS
        self.page_size = page_size or settings.TASK_PAGE_SIZE
        self.transport = transport

    async def _request(self, method: str, path: str, json_body: Any = None) -> httpx.Response:
        url = f"{self.base_url}{self.TASKS_PATH}{path}"
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    json=json_body,
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout
                )
            except httpx.HTTPError as e:
                logger.error(f"Tasklist {method} {path} failed: {e}")
                raise TasklistServiceError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            logger.error(f"Tasklist {method} {path} returned {response.status_code}: {response.text}")
            raise TasklistServiceError(response.text or "request failed", response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TasklistServiceError("response is not valid JSON", response.status_code) from e

    async def search_tasks(self, task_filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Search tasks with a filter such as {state, pageSize, assignee, assigned}"""
        response = await self._request("POST", "/search", task_filter or {})
        tasks = self._json(response)
        logger.info(f"Tasklist search returned {len(tasks) if isinstance(tasks, list) else 0} tasks")
        return tasks if isinstance(tasks, list) else []

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/{task_id}")
        return self._json(response)

    async def assign_task(
        self,
        task_id: str,
        assignee: str,
        allow_override_assignment: bool = True
    ) -> Dict[str, Any]:
        """Assign a task; the backend answers with a plain-text confirmation"""
        response = await self._request(
            "POST",
            f"/{task_id}/assign",
            {"assignee": assignee, "allowOverrideAssignment": allow_override_assignment}
        )
        logger.info(f"Task {task_id} assigned to {assignee}")
        return {"success": True, "message": response.text}

    async def unassign_task(self, task_id: str) -> UnassignResult:
        """
        Unassign a task and refetch it.

        The plain-text confirmation is always kept; `task` is None when the
        task cannot be fetched afterwards.
        """
        response = await self._request("DELETE", f"/{task_id}/unassign")
        logger.info(f"Task {task_id} unassigned")

        try:
            task = await self.get_task(task_id)
        except TasklistServiceError as e:
            logger.warning(f"Could not refetch task {task_id} after unassign: {e}")
            task = None
        return UnassignResult(task=task, message=response.text)

    async def complete_task(self, task_id: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/{task_id}/complete",
            {"variables": variables or {}, "action": "complete"}
        )
        logger.info(f"Task {task_id} completed")
        return {"success": True, "message": response.text}

    async def search_task_variables(
        self,
        task_id: str,
        search_request: Optional[Dict[str, Any]] = None
    ) -> Any:
        response = await self._request("POST", f"/{task_id}/variables/search", search_request or {})
        return self._json(response)

    async def update_task_variables(self, task_id: str, variables: List[Dict[str, Any]]) -> Any:
        """Update variables given as a [{name, value}] list"""
        variables_map = {variable["name"]: variable.get("value") for variable in variables}
        response = await self._request(
            "POST",
            f"/{task_id}/variables",
            {"variables": variables_map, "action": "update"}
        )
        logger.info(f"Updated {len(variables_map)} variables on task {task_id}")
        return self._json(response)

    async def get_open_tasks(self) -> List[Dict[str, Any]]:
        return await self.search_tasks({"state": self.OPEN_STATE, "pageSize": self.page_size})

    async def get_unassigned_tasks(self) -> List[Dict[str, Any]]:
        return await self.search_tasks({
            "state": self.OPEN_STATE,
            "assigned": False,
            "pageSize": self.page_size
        })

    async def get_tasks_assigned_to(self, assignee: str) -> List[Dict[str, Any]]:
        return await self.search_tasks({
            "state": self.OPEN_STATE,
            "assignee": assignee,
            "pageSize": self.page_size
        })


def _decode_value(value: Any) -> Any:
    # Variable values often arrive JSON-encoded ('"Ramesh"', '{"line1": ...}')
    if isinstance(value, str) and value[:1] in ('{', '[', '"'):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def variables_to_map(variables: Union[Dict[str, Any], List[Dict[str, Any]], None]) -> Dict[str, Any]:
    """
    Flatten task variables to {name: value}.

    Accepts the {name: {value: ...}} shape embedded in tasks as well as the
    [{name, value}] list returned by variable search.
    """
    result: Dict[str, Any] = {}
    if isinstance(variables, list):
        for variable in variables:
            if isinstance(variable, dict) and "name" in variable:
                result[variable["name"]] = _decode_value(variable.get("value"))
    elif isinstance(variables, dict):
        for name, variable in variables.items():
            if isinstance(variable, dict) and "value" in variable:
                result[name] = _decode_value(variable["value"])
            else:
                result[name] = _decode_value(variable)
    return result


def _to_iso_date(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            text = str(value).strip().replace("Z", "+00:00")
            # Zone offsets like +0000 are not accepted by fromisoformat before 3.11
            if len(text) > 5 and text[-5] in "+-" and text[-4:].isdigit():
                text = f"{text[:-2]}:{text[-2:]}"
            parsed = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError):
        logger.warning(f"Invalid timestamp on task: {value!r}")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def submission_date(task: Dict[str, Any], variables: Dict[str, Any]) -> Optional[str]:
    """userInfo.submissionTimestamp, then submissionTimestamp, then creationTime"""
    user_info = variables.get("userInfo")
    candidates = [
        user_info.get("submissionTimestamp") if isinstance(user_info, dict) else None,
        variables.get("submissionTimestamp"),
        task.get("creationTime"),
    ]
    for candidate in candidates:
        date = _to_iso_date(candidate)
        if date:
            return date
    return None


def completed_steps(variables: Dict[str, Any]) -> str:
    """Count of contact, address, documents and product sections that are filled"""
    steps = 0
    if variables.get("fullName") and variables.get("email") and variables.get("mobile"):
        steps += 1

    address = variables.get("address")
    if isinstance(address, dict) and address.get("line1") and address.get("city") and address.get("state"):
        steps += 1

    if variables.get("documents"):
        steps += 1

    product = variables.get("product")
    if isinstance(product, dict) and product.get("desired_account"):
        steps += 1

    return f"{steps}/4"


def customer_data(variables: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "fullName": variables.get("fullName") or variables.get("customerName") or "",
        "dob": variables.get("dob") or "",
        "mobile": variables.get("mobile") or "",
        "email": variables.get("email") or "",
        "occupation": variables.get("occupation") or "",
        "income_band": variables.get("income_band") or "",
        "pep": bool(variables.get("pep")),
        "address": variables.get("address") or {},
        "product": variables.get("product") or {},
        "ids": variables.get("ids") or {},
    }


def build_task_view(task: Dict[str, Any]) -> TaskView:
    """Shape a raw task from the backend for display"""
    variables = variables_to_map(task.get("variables"))
    assignee = task.get("assignee") or None

    def _str(key: str) -> Optional[str]:
        value = task.get(key)
        return None if value is None else str(value)

    return TaskView(
        id=str(task.get("id")),
        task_name=task.get("name") or task.get("taskDefinitionId") or "Manual Review",
        task_status="assigned" if assignee else "unassigned",
        assigned_to=assignee,
        is_assigned=bool(assignee),
        creation_time=_str("creationTime"),
        completion_time=_str("completionTime"),
        submission_date=submission_date(task, variables),
        process_instance_key=_str("processInstanceKey"),
        process_definition_id=_str("processDefinitionId"),
        process_name=task.get("processName"),
        state=task.get("state") or task.get("taskState"),
        priority=task.get("priority"),
        due_date=_str("dueDate"),
        follow_up_date=_str("followUpDate"),
        form_key=_str("formKey"),
        candidate_groups=task.get("candidateGroups") or [],
        candidate_users=task.get("candidateUsers") or [],
        customer_name=variables.get("customerName") or variables.get("fullName") or "Unknown Customer",
        customer_data=customer_data(variables),
        completed_steps=completed_steps(variables),
        income_band=variables.get("income_band") or "Not specified",
        pep=bool(variables.get("pep")),
        source="tasklist",
    )


# Singleton instance
tasklist_client = TasklistClient()
