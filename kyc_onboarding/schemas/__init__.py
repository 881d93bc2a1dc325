# Schemas Package
from kyc_onboarding.schemas.extraction import ExtractionResult, ExtractTextRequest, IdType
from kyc_onboarding.schemas.onboarding import (
    Alert, AlertType, OnboardingForm, OnboardingSessionResponse, FieldUpdateRequest,
    ApplicationResponse, SubmitResponse, ReviewRequest, AssignmentRequest
)
from kyc_onboarding.schemas.tasks import (
    TaskView, TaskBoardResponse, AssignTaskRequest, CompleteTaskRequest, UpdateVariablesRequest
)

__all__ = [
    "ExtractionResult", "ExtractTextRequest", "IdType",
    "Alert", "AlertType", "OnboardingForm", "OnboardingSessionResponse", "FieldUpdateRequest",
    "ApplicationResponse", "SubmitResponse", "ReviewRequest", "AssignmentRequest",
    "TaskView", "TaskBoardResponse", "AssignTaskRequest", "CompleteTaskRequest", "UpdateVariablesRequest"
]
