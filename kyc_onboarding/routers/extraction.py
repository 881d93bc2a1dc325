"""
Extraction Router
Run the document field extractor on raw OCR text
"""
from fastapi import APIRouter

from kyc_onboarding.schemas.extraction import ExtractionResult, ExtractTextRequest
from kyc_onboarding.services.extraction_service import extract_fields


router = APIRouter()


@router.post("/text", response_model=ExtractionResult)
async def extract_from_text(request: ExtractTextRequest):
    """
    Extract name, date of birth, ID type/number and address from OCR text

    Every field is optional in the response; nothing is stored.
    """
    return extract_fields(request.text)
