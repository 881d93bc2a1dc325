"""
Applications Router
Locally cached submissions and the review actions taken on them
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from kyc_onboarding.database import get_db
from kyc_onboarding.schemas.onboarding import (
    ApplicationResponse, AssignmentRequest, ReviewAction, ReviewRequest
)
from kyc_onboarding.services.application_store import ApplicationStore


router = APIRouter()


@router.get("", response_model=List[ApplicationResponse])
async def list_applications(db: AsyncSession = Depends(get_db)):
    applications = await ApplicationStore(db).list_all()
    return [ApplicationResponse(**application.to_dict()) for application in applications]


@router.get("/open", response_model=List[ApplicationResponse])
async def list_open_applications(db: AsyncSession = Depends(get_db)):
    """Applications still in manual review, in progress, pending review or submitted"""
    applications = await ApplicationStore(db).list_open()
    return [ApplicationResponse(**application.to_dict()) for application in applications]


@router.get("/{process_id}", response_model=ApplicationResponse)
async def get_application(process_id: str, db: AsyncSession = Depends(get_db)):
    application = await ApplicationStore(db).get(process_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return ApplicationResponse(**application.to_dict())


@router.post("/{process_id}/review", response_model=ApplicationResponse)
async def review_application(
    process_id: str,
    request: ReviewRequest,
    db: AsyncSession = Depends(get_db)
):
    """Approve (moves to account setup) or reject an application"""
    try:
        application = await ApplicationStore(db).review(
            process_id,
            approve=request.action == ReviewAction.APPROVE,
            reviewer=request.reviewer,
            notes=request.notes
        )
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return ApplicationResponse(**application.to_dict())


@router.post("/{process_id}/assignment", response_model=ApplicationResponse)
async def assign_application(
    process_id: str,
    request: AssignmentRequest,
    db: AsyncSession = Depends(get_db)
):
    """Assign locally, or unassign when no assignee is given"""
    try:
        application = await ApplicationStore(db).set_assignment(process_id, request.assignee)
    except LookupError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return ApplicationResponse(**application.to_dict())
