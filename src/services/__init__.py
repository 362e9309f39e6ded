"""Services package exports."""

from src.services.auth_guard import AuthGuard
from src.services.logging_service import configure_logging, get_logger
from src.services.session_manager import SessionManager
from src.services.token_service import TokenService

__all__ = [
    "AuthGuard",
    "SessionManager",
    "TokenService",
    "configure_logging",
    "get_logger",
]
