"""
Submitted Application Model
Local cache of applications handed to the workflow engine
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
import enum

from kyc_onboarding.database import Base


class ApplicationStatus(str, enum.Enum):
    """Review status of a submitted application"""
    SUBMITTED = "submitted"
    PENDING_REVIEW = "pending_review"
    ACCOUNT_SETUP = "account_setup"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowStatus(str, enum.Enum):
    """Where the application sits in the onboarding workflow"""
    IN_PROGRESS = "in_progress"
    MANUAL_REVIEW = "manual_review"
    ACCOUNT_SETUP = "account_setup"
    REJECTED = "rejected"


class SubmittedApplication(Base):
    """One submitted application, keyed by its process instance key"""
    __tablename__ = "submitted_applications"

    id = Column(String(64), primary_key=True)  # processInstanceKey
    local_id = Column(String(64), nullable=True, index=True)  # PROC-<epoch ms>

    # userInfo sections as submitted
    customer = Column(JSON, nullable=False, default=dict)
    address = Column(JSON, nullable=False, default=dict)
    ids = Column(JSON, nullable=False, default=dict)
    product = Column(JSON, nullable=False, default=dict)
    documents = Column(JSON, nullable=False, default=list)

    # Status values stored as plain strings
    status = Column(String(30), nullable=False, default=ApplicationStatus.SUBMITTED.value, index=True)
    workflow_status = Column(String(30), nullable=False, default=WorkflowStatus.IN_PROGRESS.value, index=True)
    risk_level = Column(String(10), nullable=True)
    ai_triage_result = Column(String(10), nullable=True)
    workflow_history = Column(JSON, nullable=False, default=list)
    assigned_to = Column(String(255), nullable=True)
    reviewer = Column(String(255), nullable=True)
    review_date = Column(String(10), nullable=True)  # YYYY-MM-DD

    # Timestamps
    submission_timestamp = Column(String(40), nullable=True)  # ISO string sent in userInfo
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<SubmittedApplication {self.id} - {self.status}>"

    def to_dict(self):
        """Convert application to dictionary"""
        return {
            "id": self.id,
            "local_id": self.local_id,
            "customer": self.customer or {},
            "address": self.address or {},
            "ids": self.ids or {},
            "product": self.product or {},
            "documents": self.documents or [],
            "status": self.status,
            "workflow_status": self.workflow_status,
            "risk_level": self.risk_level,
            "ai_triage_result": self.ai_triage_result,
            "workflow_history": self.workflow_history or [],
            "assigned_to": self.assigned_to,
            "reviewer": self.reviewer,
            "review_date": self.review_date,
            "submission_timestamp": self.submission_timestamp,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
