from typing import List, Optional
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlmodel import Session, col, select

from app.core.config import settings
from app.core.exceptions import (
    ConflictError, InvalidInputError, NotFoundError, UnauthenticatedError
)
from app.db.schema import Project, User
from app.models.auth import AuthSession, TokenData, WalletLogin
from app.models.user import (
    ProjectSummary, UserCreate, UserProfile, UserRead, UserUpdate
)
from app.utils.wallet import normalize_identity, recover_signer, same_identity


class UserService:
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def _create_jwt(self, user: User, expires_delta: timedelta) -> str:
        to_encode = {
            "sub": user.wallet_address,
            "role": user.role.value,
            "exp": datetime.utcnow() + expires_delta,
            "type": "access",
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

    def generate_access_token(self, user: User) -> str:
        return self._create_jwt(
            user,
            timedelta(minutes=settings.access_token_expire_minutes),
        )

    def verify_access_token(self, token: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
            identity = payload.get("sub")
            role = payload.get("role")

            if not identity or payload.get("type") != "access":
                return None

            return TokenData(wallet_address=identity, role=role or "")
        except jwt.PyJWTError:
            return None

    def get_user_by_identity(self, identity: str) -> Optional[User]:
        try:
            identity = normalize_identity(identity)
        except ValueError:
            return None
        return self.session.exec(
            select(User).where(User.wallet_address == identity)
        ).first()

    def require_user(self, identity: str) -> User:
        user = self.get_user_by_identity(identity)
        if not user:
            raise NotFoundError("User not found")
        return user

    def register(self, user_in: UserCreate) -> AuthSession:
        """
        Creates the user for a new identity and opens a session.
        One identity maps to exactly one role; re-registration is refused
        whatever role is requested.
        """
        if self.get_user_by_identity(user_in.wallet_address):
            raise ConflictError("User with this wallet address already exists")

        user = User(
            wallet_address=user_in.wallet_address,
            role=user_in.role,
            name=user_in.name,
            company=user_in.company,
            email=user_in.email,
            phone_number=user_in.phone_number,
        )
        try:
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Registration failed: {str(e)}")
            raise e

        logger.info(f"Registered {user.role.value} {user.wallet_address}")
        return AuthSession(
            user=UserRead.model_validate(user),
            token=self.generate_access_token(user),
        )

    def login(self, data: WalletLogin) -> AuthSession:
        """
        Issues a session for an existing, active identity.
        Never creates a user. When signature evidence is supplied the
        recovered signer must match the claimed identity.
        """
        user = self.get_user_by_identity(data.wallet_address)
        if not user:
            raise NotFoundError("User not found. Please register first.")

        if not user.is_active:
            raise UnauthenticatedError("Your account has been deactivated")

        if data.signature and data.message:
            try:
                signer = recover_signer(data.message, data.signature)
            except Exception as e:
                logger.warning(f"Signature recovery failed for {user.wallet_address}: {e}")
                raise UnauthenticatedError("Signature verification failed")

            if not same_identity(signer, user.wallet_address):
                logger.warning(f"Signature mismatch for {user.wallet_address}")
                raise UnauthenticatedError("Invalid signature")

        user.last_login_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)

        logger.info(f"User logged in: {user.wallet_address}")
        return AuthSession(
            user=UserRead.model_validate(user),
            token=self.generate_access_token(user),
        )

    def authenticate(self, token: str) -> User:
        """
        Resolves a bearer token to its user. The active flag is checked at
        login only.
        """
        token_data = self.verify_access_token(token)
        if not token_data:
            raise UnauthenticatedError(
                "Not authorized to access this route. Token is invalid or expired."
            )

        user = self.get_user_by_identity(token_data.wallet_address)
        if user is None:
            raise UnauthenticatedError("User not found. Token may be invalid.")
        return user

    def get_profile(self, user: User) -> UserProfile:
        projects: List[Project] = []
        if user.assigned_projects:
            projects = self.session.exec(
                select(Project).where(col(Project.project_id).in_(user.assigned_projects))
            ).all()

        return UserProfile(
            **UserRead.model_validate(user).model_dump(),
            assigned_projects=[
                ProjectSummary(
                    project_id=p.project_id,
                    project_name=p.project_name,
                    status=p.status.value,
                )
                for p in projects
            ],
        )

    def update_profile(self, user: User, data: UserUpdate) -> User:
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidInputError("No profile fields supplied")

        for key, value in update_data.items():
            setattr(user, key, value)

        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def assign_project(self, user: User, project_id: str) -> None:
        """Adds project_id to the user's assigned set. Idempotent."""
        if project_id in (user.assigned_projects or []):
            return
        user.assigned_projects = [*(user.assigned_projects or []), project_id]
        self.session.add(user)
        self.session.commit()
