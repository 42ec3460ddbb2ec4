"""Error kinds raised by the I/O adapter and how they map to HTTP statuses."""

from __future__ import annotations

from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500
    prefix = "Internal server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"


class InvalidInputError(AppError):
    status_code = 400
    prefix = "Invalid input"


class ImageDownloadError(AppError):
    status_code = 400
    prefix = "Image download failed"


class Base64DecodeError(AppError):
    status_code = 400
    prefix = "Base64 decode failed"


class ImageProcessingError(AppError):
    status_code = 500
    prefix = "Image processing failed"


class InternalError(AppError):
    pass


def error_response(message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    return {"data": data, "message": message, "code": -1}


def success_response(data: Any) -> Dict[str, Any]:
    return {"data": data, "message": "success", "code": 0}
