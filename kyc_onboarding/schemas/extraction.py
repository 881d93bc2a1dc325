"""
Extraction Schemas
Structured result of parsing raw OCR text from an identity document
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class IdType(str, Enum):
    """ID categories offered by the onboarding form"""
    AADHAAR = "aadhaar"
    PAN = "pan"
    PASSPORT = "passport"
    VOTER = "voter"


class ExtractionResult(BaseModel):
    """Best-effort fields recovered from one OCR text blob"""
    full_name: Optional[str] = Field(None, alias="fullName")
    dob: Optional[str] = Field(None, description="YYYY-MM-DD when recognizable, raw match otherwise")
    id_type: Optional[IdType] = Field(None, alias="idType")
    id_number: Optional[str] = Field(None, alias="idNumber")
    address: Optional[str] = None
    raw_text: str = Field("", alias="rawText")

    class Config:
        frozen = True
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "fullName": "Ramesh Kumar",
                "dob": "1990-08-15",
                "idType": "aadhaar",
                "idNumber": "2345 6789 0123",
                "address": "12 MG Road, Bengaluru, Karnataka - 560001",
                "rawText": "Ramesh Kumar\nDOB: 15/08/1990\n2345 6789 0123"
            }
        }

    def has_any_field(self) -> bool:
        """True when at least one of the extracted fields is present"""
        return any([self.full_name, self.dob, self.id_type, self.id_number, self.address])


class ExtractTextRequest(BaseModel):
    """Raw OCR text submitted for field extraction"""
    text: str = Field(..., description="Raw text returned by the OCR service")
