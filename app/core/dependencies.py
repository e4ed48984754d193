from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.core.exceptions import ForbiddenError, UnauthenticatedError
from app.db.core import get_session
from app.db.schema import User, UserRole
from app.services.authorization import Permission, has_permission
from app.services.dashboard import DashboardService
from app.services.dpp import DPPService
from app.services.ledger import LedgerClient
from app.services.project import ProjectService
from app.services.storage import IPFSStorageClient
from app.services.user import UserService

bearer_scheme = HTTPBearer(auto_error=False)


def get_storage_client(request: Request) -> IPFSStorageClient:
    """The storage client built once at startup."""
    return request.app.state.storage


def get_ledger_client(request: Request) -> LedgerClient:
    return request.app.state.ledger


def get_user_service(session: Session = Depends(get_session)) -> UserService:
    """Creates a UserService instance using the active DB session."""
    return UserService(session)


def get_project_service(
    session: Session = Depends(get_session),
    storage: IPFSStorageClient = Depends(get_storage_client),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> ProjectService:
    return ProjectService(session, storage=storage, ledger=ledger)


def get_dpp_service(
    session: Session = Depends(get_session),
    storage: IPFSStorageClient = Depends(get_storage_client),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> DPPService:
    return DPPService(session, storage=storage, ledger=ledger)


def get_dashboard_service(session: Session = Depends(get_session)) -> DashboardService:
    return DashboardService(session)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: UserService = Depends(get_user_service)
) -> User:
    """
    Validates the bearer token and retrieves the user.
    This is the gatekeeper for protected routes.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Not authorized to access this route. No token provided.")

    return service.authenticate(credentials.credentials)


def require_roles(*roles: UserRole):
    """Route dependency admitting only the listed roles."""
    allowed = ", ".join(r.value for r in roles)

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise ForbiddenError(
                f"User role '{current_user.role.value}' is not authorized to access this route. "
                f"Required roles: {allowed}"
            )
        return current_user

    return checker


def require_permission(permission: Permission):
    """Route dependency checking the role permission table."""

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if not has_permission(current_user.role, permission):
            raise ForbiddenError(
                f"Your role '{current_user.role.value}' does not have permission to {permission.value}"
            )
        return current_user

    return checker
