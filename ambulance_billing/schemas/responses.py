"""Response envelopes shared by every endpoint"""

from typing import Generic, TypeVar
from pydantic import BaseModel


T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """
    Envelope for successful calls.

    Example:
        {"success": true, "data": {...}, "message": "Bill submitted"}
    """
    success: bool = True
    data: T
    message: str = "Operation successful"


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """
    Envelope for rejected calls. ``code`` is one of VALIDATION_ERROR,
    NOT_FOUND, NOT_AUTHORIZED, CONFLICT or STORE_ERROR.

    Example:
        {
            "success": false,
            "error": {
                "code": "NOT_AUTHORIZED",
                "message": "LEVEL2 may not move a PENDING_L1 bill to PENDING_PAYMENT"
            }
        }
    """
    success: bool = False
    error: ErrorDetail
