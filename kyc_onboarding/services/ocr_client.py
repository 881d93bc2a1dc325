"""
OCR Client
Sends an uploaded document to the external OCR endpoint and returns its raw text
"""
from typing import Optional

import httpx
from loguru import logger

from kyc_onboarding.config import settings
from kyc_onboarding.services.exceptions import OCRServiceError


class OCRClient:
    """Client for the text-extraction endpoint of the primary API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        extract_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.extract_path = extract_path or settings.OCR_EXTRACT_PATH
        self.timeout = timeout if timeout is not None else settings.OCR_TIMEOUT_SECONDS
        self.transport = transport

    async def extract_text(self, content: bytes, filename: str, content_type: str) -> str:
        """
        Upload one document and return the text the OCR service read from it

        Args:
            content: Raw file bytes
            filename: Original file name
            content_type: MIME type sent with the multipart part

        Returns:
            The `text` field of the OCR response

        Raises:
            OCRServiceError: on network failure, timeout, non-2xx status or
                a response without a text field
        """
        url = f"{self.base_url}{self.extract_path}"
        logger.info(f"Sending {filename} ({len(content)} bytes) to OCR service")

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    url,
                    files={"file": (filename, content, content_type)},
                    timeout=self.timeout
                )
            except httpx.TimeoutException as e:
                logger.error(f"OCR request for {filename} timed out after {self.timeout}s")
                raise OCRServiceError(f"request timed out after {self.timeout:g}s") from e
            except httpx.HTTPError as e:
                logger.error(f"OCR request for {filename} failed: {e}")
                raise OCRServiceError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            logger.error(f"OCR API error: {response.status_code} {response.text}")
            raise OCRServiceError(response.text, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise OCRServiceError("response is not valid JSON", response.status_code) from e

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise OCRServiceError("response has no text field", response.status_code)

        logger.info(f"OCR returned {len(text)} characters for {filename}")
        return text


# Singleton instance
ocr_client = OCRClient()
