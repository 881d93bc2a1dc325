"""
Task Board
Open review tasks, refreshed from the task-list backend with the local
application cache as fallback
"""
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from kyc_onboarding.database import AsyncSessionLocal
from kyc_onboarding.models.application import SubmittedApplication
from kyc_onboarding.schemas.tasks import TaskBoardResponse, TaskView
from kyc_onboarding.services.application_store import ApplicationStore
from kyc_onboarding.services.exceptions import UpstreamServiceError
from kyc_onboarding.services.tasklist_client import (
    TasklistClient, build_task_view, completed_steps, customer_data, tasklist_client
)


def application_to_task_view(application: SubmittedApplication) -> TaskView:
    """Present a cached application as a manual review task"""
    customer = application.customer or {}
    variables = {
        **customer,
        "address": application.address or {},
        "product": application.product or {},
        "ids": application.ids or {},
        "documents": application.documents or [],
    }
    submitted = application.submission_timestamp
    return TaskView(
        id=application.id,
        task_name="Manual Review",
        task_status="assigned" if application.assigned_to else "unassigned",
        assigned_to=application.assigned_to,
        is_assigned=bool(application.assigned_to),
        creation_time=submitted,
        submission_date=submitted[:10] if submitted else None,
        process_instance_key=application.id,
        state=application.workflow_status,
        customer_name=customer.get("fullName") or "Unknown Customer",
        customer_data=customer_data(variables),
        completed_steps=completed_steps(variables),
        income_band=customer.get("income_band") or "Not specified",
        pep=bool(customer.get("pep")),
        source="cache",
    )


class TaskBoard:
    """Latest snapshot of open tasks"""

    def __init__(
        self,
        client: Optional[TasklistClient] = None,
        session_factory: Callable = AsyncSessionLocal,
    ):
        self.client = client or tasklist_client
        self.session_factory = session_factory
        self.tasks: List[TaskView] = []
        self.source = "empty"
        self.refreshed_at: Optional[datetime] = None
        self.error: Optional[str] = None

    async def refresh(self) -> TaskBoardResponse:
        """Reload open tasks; fall back to cached applications if the backend fails"""
        try:
            raw_tasks = await self.client.get_open_tasks()
            self.tasks = [build_task_view(task) for task in raw_tasks]
            self.source = "tasklist"
            self.error = None
        except UpstreamServiceError as e:
            logger.warning(f"Error loading tasks from tasklist backend, using local cache: {e}")
            async with self.session_factory() as db:
                applications = await ApplicationStore(db).list_open()
            self.tasks = [application_to_task_view(application) for application in applications]
            self.source = "cache"
            self.error = e.user_message()

        self.refreshed_at = datetime.utcnow()
        logger.debug(f"Task board refreshed: {len(self.tasks)} tasks from {self.source}")
        return self.snapshot()

    def snapshot(self) -> TaskBoardResponse:
        return TaskBoardResponse(
            tasks=list(self.tasks),
            source=self.source,
            refreshed_at=self.refreshed_at.isoformat() if self.refreshed_at else None,
            error=self.error,
        )


# Singleton instance
task_board = TaskBoard()
