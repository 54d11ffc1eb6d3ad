"""VendorConnect exceptions.

Jobs distinguish three failure classes: configuration errors that abort a
whole invocation, per-item errors that are logged and skipped, and anything
unexpected, which the command's outer handler reports with exit code 1.
"""

from typing import Optional
from uuid import UUID


class VendorConnectError(Exception):
    """Base exception for VendorConnect errors."""

    def __init__(self, message: str, code: str = "VENDORCONNECT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigurationError(VendorConnectError):
    """Required reference data or settings are missing or invalid.

    Fatal for the job invocation that raised it; no partial work is attempted.
    """

    def __init__(self, message: str):
        super().__init__(message=message, code="CONFIGURATION_ERROR")


class MaterializationError(VendorConnectError):
    """Creating an occurrence for a repeating task failed."""

    def __init__(self, series_id: UUID, message: str):
        self.series_id = series_id
        super().__init__(
            message=f"[series {series_id}] {message}",
            code="MATERIALIZATION_FAILED",
        )


class EmailDeliveryError(VendorConnectError):
    """The mail transport rejected or failed to deliver a message."""

    def __init__(self, recipient: str, message: str):
        self.recipient = recipient
        super().__init__(
            message=f"[{recipient}] {message}",
            code="EMAIL_DELIVERY_FAILED",
        )


class EmailNotConfiguredError(ConfigurationError):
    """SMTP credentials are not set."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "SMTP credentials are not configured")
