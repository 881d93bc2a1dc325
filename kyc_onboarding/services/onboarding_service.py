"""
Onboarding Service
Application drafts, OCR autofill, step validation and workflow submission
"""
import asyncio
import random
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from kyc_onboarding.config import settings
from kyc_onboarding.models.application import SubmittedApplication, ApplicationStatus, WorkflowStatus
from kyc_onboarding.schemas.extraction import ExtractionResult
from kyc_onboarding.schemas.onboarding import (
    AlertType, FieldUpdate, OnboardingForm, OnboardingSessionResponse, UploadedDocument
)
from kyc_onboarding.services.alerts import AlertBoard
from kyc_onboarding.services.application_store import ApplicationStore, history_entry
from kyc_onboarding.services.exceptions import OCRServiceError, WorkflowServiceError
from kyc_onboarding.services.extraction_service import FieldExtractor, field_extractor
from kyc_onboarding.services.ocr_client import OCRClient, ocr_client
from kyc_onboarding.services.workflow_client import WorkflowClient, workflow_client
from kyc_onboarding.utils.file_utils import (
    cleanup_session_files, delete_session_file, read_session_file, save_session_file,
    sanitize_filename, validate_upload
)


TOTAL_STEPS = 2
RISK_LEVELS = ("low", "medium", "high")
REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields marked with *"
NO_DOCUMENTS_MESSAGE = "Please upload at least one document"

# (section, field, message) checked before leaving each step
STEP_REQUIREMENTS: Dict[int, List[Tuple[str, str, str]]] = {
    1: [
        ("customer", "full_name", "Full name is required"),
        ("customer", "dob", "Date of birth is required"),
        ("address", "line1", "Address line 1 is required"),
        ("ids", "id_type", "ID type is required"),
        ("ids", "id_number", "ID number is required"),
    ],
    2: [
        ("customer", "mobile", "Mobile number is required"),
        ("customer", "email", "Email is required"),
        ("address", "city", "City is required"),
        ("address", "state", "State is required"),
        ("address", "pin", "PIN code is required"),
        ("address", "country", "Country is required"),
        ("product", "desired_account", "Account type is required"),
        ("product", "expected_mab_range", "Expected MAB range is required"),
    ],
}


class StepValidationError(ValueError):
    """Required fields are missing for the current step"""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(REQUIRED_FIELDS_MESSAGE)


class OCRInProgressError(RuntimeError):
    """Another document is already being processed for this session"""


class OnboardingSession:
    """One customer's draft as it moves through the wizard"""

    def __init__(self, alert_ttl_seconds: Optional[int] = None):
        now = datetime.utcnow()
        self.session_id = uuid.uuid4().hex
        self.process_id = f"PROC-{int(time.time() * 1000)}"
        self.form = OnboardingForm()
        self.current_step = 1
        self.alerts = AlertBoard(alert_ttl_seconds)
        self.lock = asyncio.Lock()
        self.last_extraction: Optional[ExtractionResult] = None
        self.submitted = False
        self.created_at = now
        self.updated_at = now

    @property
    def ocr_processing(self) -> bool:
        return self.lock.locked()

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()

    def to_response(self) -> OnboardingSessionResponse:
        return OnboardingSessionResponse(
            session_id=self.session_id,
            process_id=self.process_id,
            current_step=self.current_step,
            total_steps=TOTAL_STEPS,
            form=self.form,
            alerts=self.alerts.active(),
            ocr_processing=self.ocr_processing,
            last_extraction=self.last_extraction,
            submitted=self.submitted,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def merge_extraction(form: OnboardingForm, result: ExtractionResult, prefer_extracted: bool) -> List[str]:
    """
    Copy extracted values into the draft.

    With prefer_extracted every present value overwrites the draft;
    otherwise only blank draft fields are filled. Returns the names of the
    fields that changed.
    """
    candidates = [
        ("customer", "full_name", result.full_name),
        ("customer", "dob", result.dob),
        ("ids", "id_type", result.id_type.value if result.id_type else None),
        ("ids", "id_number", result.id_number),
        ("address", "line1", result.address),
    ]

    updated = []
    for section_name, field_name, value in candidates:
        if not value:
            continue
        section = getattr(form, section_name)
        current = getattr(section, field_name)
        if prefer_extracted or not current:
            if current != value:
                setattr(section, field_name, value)
                updated.append(f"{section_name}.{field_name}")
    return updated


def set_field(form: OnboardingForm, section_name: str, field_name: str, value: Any) -> None:
    """Set a draft field addressed by section and either its name or its alias"""
    section = getattr(form, section_name)
    for name, info in type(section).model_fields.items():
        if field_name in (name, info.alias):
            setattr(section, name, value if value is not None else info.default)
            return
    raise KeyError(f"Unknown field {section_name}.{field_name}")


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    return not value


def validate_step(form: OnboardingForm, step: int) -> List[str]:
    """Per-field messages for everything missing before leaving `step`"""
    errors = []
    if step == 1 and not form.documents:
        errors.append(NO_DOCUMENTS_MESSAGE)
    for section_name, field_name, message in STEP_REQUIREMENTS.get(step, []):
        if _is_blank(getattr(getattr(form, section_name), field_name)):
            errors.append(message)
    return errors


def build_user_info(form: OnboardingForm, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
    """The userInfo payload sent to the workflow engine"""
    timestamp = timestamp or datetime.utcnow()
    return {
        "customer": form.customer.model_dump(by_alias=True),
        "address": form.address.model_dump(by_alias=True),
        "ids": form.ids.model_dump(by_alias=True),
        "product": form.product.model_dump(by_alias=True),
        "submissionTimestamp": timestamp.isoformat(timespec="milliseconds") + "Z",
    }


def assess_risk(rng: random.Random) -> str:
    """Placeholder triage: a random risk level, only 'low' passes automatically"""
    return rng.choice(RISK_LEVELS)


class OnboardingService:
    """In-memory onboarding sessions and the operations on them"""

    def __init__(
        self,
        ocr: Optional[OCRClient] = None,
        workflow: Optional[WorkflowClient] = None,
        extractor: Optional[FieldExtractor] = None,
        rng: Optional[random.Random] = None,
        prefer_extracted: Optional[bool] = None,
        session_ttl_hours: Optional[int] = None,
    ):
        self.ocr = ocr or ocr_client
        self.workflow = workflow or workflow_client
        self.extractor = extractor or field_extractor
        self.rng = rng or random.Random()
        self.prefer_extracted = settings.PREFER_EXTRACTED if prefer_extracted is None else prefer_extracted
        self.session_ttl = timedelta(
            hours=settings.SESSION_TTL_HOURS if session_ttl_hours is None else session_ttl_hours
        )
        self.sessions: Dict[str, OnboardingSession] = {}

    def create_session(self) -> OnboardingSession:
        session = OnboardingSession()
        self.sessions[session.session_id] = session
        logger.info(f"Onboarding session {session.session_id} created ({session.process_id})")
        return session

    def get_session(self, session_id: str) -> OnboardingSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise LookupError(f"Onboarding session {session_id} not found")
        return session

    def update_fields(self, session: OnboardingSession, updates: List[FieldUpdate]) -> None:
        """Apply all updates or none of them"""
        if session.submitted:
            raise ValueError("Application already submitted")
        form = session.form.model_copy(deep=True)
        for update in updates:
            set_field(form, update.section, update.field, update.value)
        session.form = form
        session.touch()

    async def upload_documents(
        self,
        session: OnboardingSession,
        files: List[Tuple[str, str, bytes]],
        prefer_extracted: Optional[bool] = None
    ) -> List[UploadedDocument]:
        """
        Attach documents to the draft and autofill from the first one

        Args:
            session: Target session
            files: (filename, content_type, content) per uploaded file
            prefer_extracted: Override of the merge policy for this upload

        Raises:
            ValueError: session already submitted, or a file fails validation
            OCRInProgressError: an OCR cycle is already running for the session
        """
        if session.submitted:
            raise ValueError("Application already submitted")
        if session.lock.locked():
            raise OCRInProgressError("A document is already being processed for this session")
        if not files:
            raise ValueError("No files uploaded")

        for filename, content_type, content in files:
            is_valid, error = validate_upload(filename, content_type, content)
            if not is_valid:
                raise ValueError(f"{filename}: {error}")

        prefer = self.prefer_extracted if prefer_extracted is None else prefer_extracted

        async with session.lock:
            documents = []
            for filename, content_type, content in files:
                path = await save_session_file(content, filename, session.session_id)
                documents.append(UploadedDocument(
                    id=uuid.uuid4().hex,
                    name=sanitize_filename(filename),
                    size=len(content),
                    content_type=content_type,
                    path=path,
                    uploaded_at=datetime.utcnow(),
                ))
            session.form.documents.extend(documents)
            session.alerts.add(f"{len(documents)} document(s) uploaded successfully", AlertType.SUCCESS)

            filename, content_type, content = files[0]
            session.alerts.add("Processing document with OCR...", AlertType.INFO)
            try:
                text = await self.ocr.extract_text(content, filename, content_type)
            except OCRServiceError as e:
                logger.error(f"OCR extraction error for session {session.session_id}: {e}")
                session.alerts.add(
                    f"Failed to extract details from document: {e}. Please fill manually.",
                    AlertType.ERROR
                )
                session.touch()
                return documents

            result = self.extractor.extract(text)
            session.last_extraction = result

            if result.has_any_field():
                updated = merge_extraction(session.form, result, prefer)
                logger.info(f"Session {session.session_id} autofilled: {updated}")
                session.alerts.add(
                    "Details autofilled from document. Please verify and complete the form.",
                    AlertType.SUCCESS
                )
            else:
                session.alerts.add(
                    "No recognizable data found in document. Please fill manually.",
                    AlertType.WARNING
                )

            session.touch()
            return documents

    async def remove_document(self, session: OnboardingSession, document_id: str) -> None:
        if session.submitted:
            raise ValueError("Application already submitted")
        if session.lock.locked():
            raise OCRInProgressError("Another request is already being processed for this session")
        for document in session.form.documents:
            if document.id == document_id:
                session.form.documents.remove(document)
                await delete_session_file(document.path)
                session.touch()
                return
        raise LookupError(f"Document {document_id} not found")

    def next_step(self, session: OnboardingSession) -> int:
        errors = validate_step(session.form, session.current_step)
        if errors:
            message = NO_DOCUMENTS_MESSAGE if errors[0] == NO_DOCUMENTS_MESSAGE else REQUIRED_FIELDS_MESSAGE
            session.alerts.add(message, AlertType.ERROR)
            raise StepValidationError(errors)

        if session.current_step == 1:
            session.alerts.add(
                "Document information saved. Proceed to fill contact and additional details.",
                AlertType.SUCCESS
            )
        session.current_step = min(session.current_step + 1, TOTAL_STEPS)
        session.touch()
        return session.current_step

    def previous_step(self, session: OnboardingSession) -> int:
        session.current_step = max(session.current_step - 1, 1)
        session.touch()
        return session.current_step

    async def submit(self, session: OnboardingSession, db: AsyncSession) -> SubmittedApplication:
        """
        Validate the whole draft, start the workflow process, triage and
        cache the application locally.

        Raises:
            ValueError: already submitted
            OCRInProgressError: an upload or another submission holds the session
            StepValidationError: required fields missing
            WorkflowServiceError: the workflow engine refused or was unreachable
        """
        if session.lock.locked():
            raise OCRInProgressError("Another request is already being processed for this session")

        async with session.lock:
            return await self._submit_locked(session, db)

    async def _submit_locked(self, session: OnboardingSession, db: AsyncSession) -> SubmittedApplication:
        if session.submitted:
            raise ValueError("Application already submitted")

        errors = validate_step(session.form, 1) + validate_step(session.form, 2)
        if errors:
            session.alerts.add(REQUIRED_FIELDS_MESSAGE, AlertType.ERROR)
            raise StepValidationError(errors)

        user_info = build_user_info(session.form)
        primary = session.form.documents[0]
        content = await read_session_file(primary.path)

        try:
            process_key = await self.workflow.start_onboarding(
                user_info, (primary.name, content, primary.content_type)
            )
        except WorkflowServiceError as e:
            logger.error(f"Onboarding start failed for session {session.session_id}: {e}")
            session.alerts.add(f"Failed to start onboarding process: {e.user_message()}", AlertType.ERROR)
            raise

        risk_level = assess_risk(self.rng)
        triage_passed = risk_level == "low"

        history = [
            history_entry("Application Submitted", "completed", "Customer submitted onboarding application"),
            history_entry(
                "Initial Triage", "completed",
                f"AI Agent completed initial triage - {risk_level} risk detected"
            ),
        ]
        if triage_passed:
            history.append(history_entry("Account Setup", "in_progress", "Account creation in progress"))
        else:
            history.append(history_entry(
                "Manual Review", "pending", "Application requires manual review due to risk level"
            ))

        application = SubmittedApplication(
            id=process_key,
            local_id=session.process_id,
            customer=user_info["customer"],
            address=user_info["address"],
            ids=user_info["ids"],
            product=user_info["product"],
            documents=[document.model_dump(mode="json") for document in session.form.documents],
            status=(ApplicationStatus.ACCOUNT_SETUP if triage_passed else ApplicationStatus.PENDING_REVIEW).value,
            workflow_status=(WorkflowStatus.ACCOUNT_SETUP if triage_passed else WorkflowStatus.MANUAL_REVIEW).value,
            risk_level=risk_level,
            ai_triage_result="passed" if triage_passed else "failed",
            workflow_history=history,
            submission_timestamp=user_info["submissionTimestamp"],
        )
        application = await ApplicationStore(db).save(application)

        session.submitted = True
        session.process_id = process_key
        session.touch()

        if triage_passed:
            session.alerts.add(f"BPMN Process Started! Process ID: {process_key}", AlertType.SUCCESS)
        else:
            session.alerts.add(
                f"Application submitted successfully! Risk level: {risk_level.upper()}. "
                "Manual review required.",
                AlertType.INFO
            )
        logger.info(f"Session {session.session_id} submitted as {process_key} ({risk_level} risk)")
        return application

    async def delete_session(self, session_id: str) -> None:
        session = self.sessions.pop(session_id, None)
        if session is not None:
            await cleanup_session_files(session_id)

    async def sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Drop expired alerts, then sessions idle for longer than the session TTL"""
        now = now or datetime.utcnow()
        alerts_removed = sum(session.alerts.sweep(now) for session in self.sessions.values())

        expired = [
            session_id for session_id, session in self.sessions.items()
            if now - session.updated_at > self.session_ttl and not session.ocr_processing
        ]
        for session_id in expired:
            await self.delete_session(session_id)
            logger.info(f"Onboarding session {session_id} expired")

        return {"alerts": alerts_removed, "sessions": len(expired)}


# Singleton instance
onboarding_service = OnboardingService()
