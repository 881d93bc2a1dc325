"""
Router Dependencies
Shared lookups injected into onboarding endpoints
"""
from fastapi import HTTPException, status

from kyc_onboarding.services.onboarding_service import OnboardingSession, onboarding_service


async def get_onboarding_session(session_id: str) -> OnboardingSession:
    """Resolve the session in the path or fail with 404"""
    try:
        return onboarding_service.get_session(session_id)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Onboarding session not found or expired"
        )
