"""
Onboarding Schemas
Application draft, session views and submitted application records
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from kyc_onboarding.schemas.extraction import ExtractionResult


class AlertType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Alert(BaseModel):
    """User-facing notice that dismisses itself after a few seconds"""
    id: str
    message: str
    type: AlertType = AlertType.INFO
    created_at: datetime
    expires_at: datetime


class CustomerInfo(BaseModel):
    full_name: str = Field("", alias="fullName")
    dob: str = ""
    mobile: str = ""
    email: str = ""
    pep: bool = False
    income_band: str = "Not provided"
    occupation: str = ""

    class Config:
        populate_by_name = True
        validate_assignment = True


class AddressInfo(BaseModel):
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    pin: str = ""
    country: str = ""

    class Config:
        validate_assignment = True


class IdInfo(BaseModel):
    id_type: str = Field("", alias="idType", description="aadhaar, pan, passport or voter")
    id_number: str = Field("", alias="idNumber")

    class Config:
        populate_by_name = True
        validate_assignment = True


class ProductInfo(BaseModel):
    desired_account: str = ""
    expected_mab_range: str = ""

    class Config:
        validate_assignment = True


class UploadedDocument(BaseModel):
    """A file attached to the draft; the stored path never leaves the server"""
    id: str
    name: str
    size: int
    content_type: str
    path: str = Field(..., exclude=True)
    uploaded_at: datetime


class OnboardingForm(BaseModel):
    """The application draft being collected across the wizard steps"""
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    address: AddressInfo = Field(default_factory=AddressInfo)
    ids: IdInfo = Field(default_factory=IdInfo)
    product: ProductInfo = Field(default_factory=ProductInfo)
    documents: List[UploadedDocument] = []
    kyc_status: str = Field("pending", alias="kycStatus")
    risk_assessment: str = Field("pending", alias="riskAssessment")

    class Config:
        populate_by_name = True


FormSection = Literal["customer", "address", "ids", "product"]


class FieldUpdate(BaseModel):
    """Set one form field, addressed as section + field name"""
    section: FormSection
    field: str = Field(..., description="Field name, camelCase alias or snake_case")
    value: Any = None


class FieldUpdateRequest(BaseModel):
    updates: List[FieldUpdate] = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "updates": [
                    {"section": "customer", "field": "mobile", "value": "9876543210"},
                    {"section": "address", "field": "city", "value": "Kanpur"}
                ]
            }
        }


class OnboardingSessionResponse(BaseModel):
    """Current state of one onboarding draft"""
    session_id: str
    process_id: str
    current_step: int
    total_steps: int
    form: OnboardingForm
    alerts: List[Alert] = []
    ocr_processing: bool = False
    last_extraction: Optional[ExtractionResult] = None
    submitted: bool = False
    created_at: datetime
    updated_at: datetime


class ApplicationResponse(BaseModel):
    """A submitted application as kept in the local cache"""
    id: str = Field(..., description="Workflow process instance key")
    local_id: Optional[str] = None
    customer: Dict[str, Any] = {}
    address: Dict[str, Any] = {}
    ids: Dict[str, Any] = {}
    product: Dict[str, Any] = {}
    documents: List[Dict[str, Any]] = []
    status: str
    workflow_status: str
    risk_level: Optional[str] = None
    ai_triage_result: Optional[str] = None
    workflow_history: List[Dict[str, Any]] = []
    assigned_to: Optional[str] = None
    reviewer: Optional[str] = None
    review_date: Optional[str] = None
    submission_timestamp: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SubmitResponse(BaseModel):
    process_instance_key: str
    risk_level: str
    triage_passed: bool
    message: str
    application: ApplicationResponse


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ReviewRequest(BaseModel):
    action: ReviewAction
    reviewer: Optional[str] = None
    notes: Optional[str] = None


class AssignmentRequest(BaseModel):
    """Empty or missing assignee removes the local assignment"""
    assignee: Optional[str] = None
