"""
業務異常 → HTTP 狀態碼
"""
from fastapi import HTTPException

from core.exceptions import (
    FriendsNFundsException,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    AlreadyJoinedError,
    StoreUnavailableError
)

# detail 為 None 時回傳異常訊息本身
STATUS_CODES = [
    (ValidationError, 400, None),
    (NotFoundError, 404, None),
    (InvalidStateError, 409, None),
    (AlreadyJoinedError, 409, None),
    (StoreUnavailableError, 503, "Storage temporarily unavailable"),
]


def to_http_exception(exc: FriendsNFundsException) -> HTTPException:
    for exc_type, status_code, detail in STATUS_CODES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=detail or str(exc))
    return HTTPException(status_code=500, detail="Internal error")
