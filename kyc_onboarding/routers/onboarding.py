"""
Onboarding Router
Endpoints for the two-step onboarding wizard: draft, documents, steps and submission
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status, UploadFile, File
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from kyc_onboarding.database import get_db
from kyc_onboarding.routers.dependencies import get_onboarding_session
from kyc_onboarding.schemas.onboarding import (
    ApplicationResponse, FieldUpdateRequest, OnboardingSessionResponse, SubmitResponse
)
from kyc_onboarding.services.onboarding_service import (
    OCRInProgressError, OnboardingSession, StepValidationError, onboarding_service
)


router = APIRouter()


def _step_error(e: StepValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": str(e), "errors": e.errors}
    )


@router.post("/sessions", response_model=OnboardingSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session():
    """Start a new, empty application draft"""
    session = onboarding_service.create_session()
    return session.to_response()


@router.get("/sessions/{session_id}", response_model=OnboardingSessionResponse)
async def get_session(session: OnboardingSession = Depends(get_onboarding_session)):
    """Current draft, step and active alerts"""
    return session.to_response()


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session: OnboardingSession = Depends(get_onboarding_session)):
    """Discard a draft and its uploaded documents"""
    await onboarding_service.delete_session(session.session_id)


@router.patch("/sessions/{session_id}/fields", response_model=OnboardingSessionResponse)
async def update_fields(
    request: FieldUpdateRequest,
    session: OnboardingSession = Depends(get_onboarding_session)
):
    """
    Set form fields

    Fields are addressed by section (customer, address, ids, product) and
    name; camelCase names such as `fullName` and `idNumber` are accepted.
    """
    try:
        onboarding_service.update_fields(session, request.updates)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.args[0])
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]} for err in e.errors()]
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return session.to_response()


@router.post("/sessions/{session_id}/documents", response_model=OnboardingSessionResponse)
async def upload_documents(
    files: List[UploadFile] = File(..., description="Identity document images or PDFs"),
    prefer_extracted: Optional[bool] = Query(
        None, description="Overwrite filled fields with extracted values (default from settings)"
    ),
    session: OnboardingSession = Depends(get_onboarding_session)
):
    """
    Upload one or more documents

    The first file is sent to the OCR service and the recognised name, date
    of birth, ID and address are merged into the draft.

    **Supported file formats:** JPEG, PNG, PDF (max 10MB)
    """
    uploads = []
    for upload in files:
        content = await upload.read()
        uploads.append((upload.filename or "document", upload.content_type or "application/octet-stream", content))

    try:
        await onboarding_service.upload_documents(session, uploads, prefer_extracted)
    except OCRInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return session.to_response()


@router.delete("/sessions/{session_id}/documents/{document_id}", response_model=OnboardingSessionResponse)
async def remove_document(
    document_id: str,
    session: OnboardingSession = Depends(get_onboarding_session)
):
    try:
        await onboarding_service.remove_document(session, document_id)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    except OCRInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return session.to_response()


@router.post("/sessions/{session_id}/next", response_model=OnboardingSessionResponse)
async def next_step(session: OnboardingSession = Depends(get_onboarding_session)):
    """Validate the current step and move forward"""
    try:
        onboarding_service.next_step(session)
    except StepValidationError as e:
        raise _step_error(e)
    return session.to_response()


@router.post("/sessions/{session_id}/previous", response_model=OnboardingSessionResponse)
async def previous_step(session: OnboardingSession = Depends(get_onboarding_session)):
    onboarding_service.previous_step(session)
    return session.to_response()


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit_application(
    session: OnboardingSession = Depends(get_onboarding_session),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit the application

    Starts the onboarding process in the workflow engine with the first
    uploaded document, runs initial triage and caches the result locally.
    """
    try:
        application = await onboarding_service.submit(session, db)
    except StepValidationError as e:
        raise _step_error(e)
    except OCRInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    triage_passed = application.ai_triage_result == "passed"
    if triage_passed:
        message = f"Onboarding process started. Process ID: {application.id}"
    else:
        message = f"Application submitted. Risk level: {application.risk_level.upper()}. Manual review required."

    return SubmitResponse(
        process_instance_key=application.id,
        risk_level=application.risk_level,
        triage_passed=triage_passed,
        message=message,
        application=ApplicationResponse(**application.to_dict())
    )


@router.delete("/sessions/{session_id}/alerts/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_alert(
    alert_id: str,
    session: OnboardingSession = Depends(get_onboarding_session)
):
    if not session.alerts.dismiss(alert_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")
