# Models Package
from kyc_onboarding.models.application import (
    SubmittedApplication, ApplicationStatus, WorkflowStatus
)

__all__ = ["SubmittedApplication", "ApplicationStatus", "WorkflowStatus"]
