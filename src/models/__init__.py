"""Models package exports."""

from src.models.auth import LoginRequest, RegisterRequest, SessionPayload
from src.models.response import ApiResponse, ErrorResponse
from src.models.result import Err, ErrorKind, Ok, Result, ServiceError
from src.models.user import ChannelProfile, User, UserRecord

__all__ = [
    "ApiResponse",
    "ChannelProfile",
    "Err",
    "ErrorKind",
    "ErrorResponse",
    "LoginRequest",
    "Ok",
    "RegisterRequest",
    "Result",
    "ServiceError",
    "SessionPayload",
    "User",
    "UserRecord",
]
