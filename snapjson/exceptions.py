"""
Error taxonomy for capture, selection and the remote OCR stages.
"""


class SnapJsonError(Exception):
    """Base class for every error raised by this package."""


class PermissionDenied(SnapJsonError):
    """Camera permission has not been granted for this user."""


class CaptureFailure(SnapJsonError):
    """The camera photo could not be fetched."""


class SelectionFailure(SnapJsonError):
    """The gallery image could not be fetched or decoded."""


class RemoteAPIError(SnapJsonError):
    """
    Non-2xx response from the chat-completions endpoint.
    status_code is None when no HTTP response was received at all.
    """

    def __init__(self, status_code: int | None, body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"API error: connection failed - {body}")
        else:
            super().__init__(f"API error: {status_code} - {body}")


class MalformedResponse(SnapJsonError):
    """The remote model answered with something we cannot use."""
