from typing import Optional


class ReportEngineError(Exception):
    """Base class for errors surfaced by the report engine."""


class ValidationError(ReportEngineError):
    """Required input is missing or unusable. Raised before any remote call."""


class TransportError(ReportEngineError):
    """Non-success response (or network failure) from the telemetry API."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        suffix = f" ({status})" if status is not None else ""
        super().__init__(f"Wirespeed API error: {message}{suffix}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401
