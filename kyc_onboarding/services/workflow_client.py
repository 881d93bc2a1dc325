"""
Workflow Client
Starts the BPMN onboarding process for a completed application
"""
import json
from typing import Any, Dict, Optional, Tuple

import httpx
from loguru import logger

from kyc_onboarding.config import settings
from kyc_onboarding.services.exceptions import WorkflowServiceError


class WorkflowClient:
    """Client for the workflow start endpoint of the primary API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        start_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.start_path = start_path or settings.WORKFLOW_START_PATH
        self.timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT_SECONDS
        self.transport = transport

    async def start_onboarding(
        self,
        user_info: Dict[str, Any],
        document: Tuple[str, bytes, str],
    ) -> str:
        """
        Start an onboarding process instance

        Args:
            user_info: customer, address, ids, product and submissionTimestamp
            document: (filename, content, content_type) of the primary document

        Returns:
            The processInstanceKey assigned by the workflow engine
        """
        url = f"{self.base_url}{self.start_path}"
        logger.info(f"Starting onboarding process with document {document[0]}")

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    url,
                    data={"userInfo": json.dumps(user_info)},
                    files={"document": document},
                    timeout=self.timeout
                )
            except httpx.HTTPError as e:
                logger.error(f"Workflow start request failed: {e}")
                raise WorkflowServiceError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            logger.error(f"Workflow start failed: {response.status_code} {response.text}")
            raise WorkflowServiceError(response.text or "start failed", response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise WorkflowServiceError("response is not valid JSON", response.status_code) from e

        process_key = data.get("processInstanceKey") if isinstance(data, dict) else None
        if process_key is None:
            raise WorkflowServiceError("response has no processInstanceKey", response.status_code)

        logger.info(f"Onboarding process started: {process_key}")
        return str(process_key)


# Singleton instance
workflow_client = WorkflowClient()
