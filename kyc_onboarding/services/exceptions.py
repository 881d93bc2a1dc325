"""
Upstream Service Errors
Raised by the HTTP clients for the OCR, workflow and task-list backends
"""
from typing import Optional


class UpstreamServiceError(Exception):
    """An external backend returned a non-2xx response or could not be reached"""

    service = "upstream"

    def __init__(self, detail: str, status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.service}: {self.detail}"
        return f"{self.service}: HTTP {self.status_code} - {self.detail}"

    def user_message(self) -> str:
        """Short message suitable for showing to the operator"""
        if self.status_code == 400:
            return f"The {self.service} rejected the request as invalid."
        if self.status_code == 404:
            return f"The requested item was not found in the {self.service}."
        if self.status_code is not None and self.status_code >= 500:
            return f"The {self.service} is currently unavailable. Please try again later."
        return f"Could not communicate with the {self.service}."


class OCRServiceError(UpstreamServiceError):
    service = "OCR service"


class WorkflowServiceError(UpstreamServiceError):
    service = "workflow engine"


class TasklistServiceError(UpstreamServiceError):
    service = "task-list backend"
