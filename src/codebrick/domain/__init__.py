"""
Domain layer: 상수, 에러, 스키마.

다른 레이어에 의존하지 않는다.
"""

from .errors import (
    AlreadyExistsError,
    BrickError,
    ErrorCodes,
    InvalidArchiveError,
    InvalidTemplateNameError,
    IOFailureError,
    NotFoundError,
    NotInitializedError,
    OperationCancelledError,
    RemoteFetchError,
    UnsupportedTypeError,
)

__all__ = [
    "BrickError",
    "ErrorCodes",
    "NotFoundError",
    "AlreadyExistsError",
    "InvalidArchiveError",
    "UnsupportedTypeError",
    "RemoteFetchError",
    "IOFailureError",
    "InvalidTemplateNameError",
    "NotInitializedError",
    "OperationCancelledError",
]
