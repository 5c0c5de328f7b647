"""Exception hierarchy for the toolkit helpers.

Every failure a helper reports to its caller is an ``HTTPException`` subclass,
so route handlers can either let it propagate or turn it into an error
envelope with ``error_json``. ``message`` is the caller-visible text and is
meant to be forwarded verbatim.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class ToolkitError(HTTPException):
    """Base class for all toolkit errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def message(self) -> str:
        return str(self.detail)

    def __str__(self) -> str:
        return self.message


# Upload errors
class UploadError(ToolkitError):
    """A multipart upload failed; files written before the failure are kept."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        uploaded_files: Optional[List[Any]] = None,
    ):
        super().__init__(detail=detail, status_code=status_code)
        self.uploaded_files = list(uploaded_files or [])


class PayloadTooLarge(UploadError):
    def __init__(self, detail: str = "uploaded file is too big"):
        super().__init__(detail=detail, status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)


class FileTypeNotAllowed(UploadError):
    def __init__(
        self,
        content_type: str,
        uploaded_files: Optional[List[Any]] = None,
    ):
        super().__init__(detail="uploaded file type not allowed", uploaded_files=uploaded_files)
        self.content_type = content_type


class NoFileUploaded(UploadError):
    def __init__(self):
        super().__init__(detail="no file was uploaded")


# JSON errors
class BadJSONRequest(ToolkitError):
    """The request body could not be decoded into the target model."""


class JSONTargetError(ToolkitError):
    """The decode target is not something a body can be decoded into."""

    def __init__(self, detail: str):
        super().__init__(
            detail=f"error unmarshalling JSON: {detail}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class JSONEncodeFailure(ToolkitError):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# Outbound / file errors
class RemoteRelayError(ToolkitError):
    def __init__(self, uri: str, reason: str):
        super().__init__(
            detail=f"failed to push JSON to {uri}: {reason}",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )
        self.uri = uri


class FileNotFound(ToolkitError):
    def __init__(self, path: str):
        super().__init__(detail="file not found", status_code=status.HTTP_404_NOT_FOUND)
        self.path = path
