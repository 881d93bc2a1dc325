"""
Application Store
Local cache of submitted applications and the review actions taken on them
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from kyc_onboarding.models.application import SubmittedApplication, ApplicationStatus, WorkflowStatus


DEFAULT_REVIEWER = "Admin User"


def history_entry(step: str, status: str, description: str) -> Dict[str, str]:
    return {
        "step": step,
        "status": status,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "description": description,
    }


class ApplicationStore:
    """Persistence for SubmittedApplication rows"""

    OPEN_WORKFLOW_STATUSES = (WorkflowStatus.MANUAL_REVIEW.value, WorkflowStatus.IN_PROGRESS.value)
    OPEN_STATUSES = (ApplicationStatus.PENDING_REVIEW.value, ApplicationStatus.SUBMITTED.value)

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, application: SubmittedApplication) -> SubmittedApplication:
        """Insert or replace the application with the same process instance key"""
        existing = await self.get(application.id)
        if existing:
            logger.warning(f"Replacing cached application {application.id}")
            await self.db.delete(existing)
            await self.db.flush()

        self.db.add(application)
        await self.db.commit()
        await self.db.refresh(application)
        logger.info(f"Cached application {application.id} ({application.status})")
        return application

    async def get(self, process_id: str) -> Optional[SubmittedApplication]:
        result = await self.db.execute(
            select(SubmittedApplication).where(SubmittedApplication.id == process_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> List[SubmittedApplication]:
        result = await self.db.execute(
            select(SubmittedApplication).order_by(SubmittedApplication.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_open(self) -> List[SubmittedApplication]:
        """Applications still waiting on a human or the workflow"""
        result = await self.db.execute(
            select(SubmittedApplication)
            .where(or_(
                SubmittedApplication.workflow_status.in_(self.OPEN_WORKFLOW_STATUSES),
                SubmittedApplication.status.in_(self.OPEN_STATUSES),
            ))
            .order_by(SubmittedApplication.created_at.desc())
        )
        return list(result.scalars().all())

    async def review(
        self,
        process_id: str,
        approve: bool,
        reviewer: Optional[str] = None,
        notes: Optional[str] = None
    ) -> SubmittedApplication:
        """Approve or reject an application"""
        application = await self.get(process_id)
        if not application:
            raise LookupError(f"Application {process_id} not found")

        action = "approved" if approve else "rejected"
        reviewer = reviewer or DEFAULT_REVIEWER
        description = f"Task {action} by {reviewer}"
        if notes:
            description = f"{description}: {notes}"

        history: List[Dict[str, Any]] = list(application.workflow_history or [])
        history.append(history_entry("Task Review", "completed", description))

        if approve:
            application.status = ApplicationStatus.APPROVED.value
            application.workflow_status = WorkflowStatus.ACCOUNT_SETUP.value
            history.append(history_entry(
                "Account Setup", "in_progress", "Account creation in progress after approval"
            ))
        else:
            application.status = ApplicationStatus.REJECTED.value
            application.workflow_status = WorkflowStatus.REJECTED.value

        application.workflow_history = history
        application.reviewer = reviewer
        application.review_date = datetime.utcnow().date().isoformat()

        await self.db.commit()
        await self.db.refresh(application)
        logger.info(f"Application {process_id} {action} by {reviewer}")
        return application

    async def set_assignment(self, process_id: str, assignee: Optional[str]) -> SubmittedApplication:
        """Assign the application locally, or unassign it when assignee is empty"""
        application = await self.get(process_id)
        if not application:
            raise LookupError(f"Application {process_id} not found")

        assignee = (assignee or "").strip() or None
        if assignee:
            description = f"Task assigned to {assignee}"
        else:
            description = f"Task unassigned from {application.assigned_to or 'user'}"

        history = list(application.workflow_history or [])
        history.append(history_entry("Task Assignment", "completed", description))
        application.workflow_history = history
        application.assigned_to = assignee

        await self.db.commit()
        await self.db.refresh(application)
        logger.info(f"Application {process_id}: {description}")
        return application
