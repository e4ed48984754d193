from typing import Optional
from pydantic import field_validator

from app.models.common import ApiModel
from app.models.user import UserRead
from app.utils.wallet import normalize_identity


class WalletField(ApiModel):
    wallet_address: str

    @field_validator("wallet_address")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_identity(value)


class WalletLogin(WalletField):
    """
    Session request. When both signature and message are supplied the
    recovered signer must equal wallet_address.
    """
    signature: Optional[str] = None
    message: Optional[str] = None


class WalletCheck(WalletField):
    pass


class WalletCheckResult(ApiModel):
    exists: bool
    user: Optional[UserRead] = None


class TokenData(ApiModel):
    wallet_address: str
    role: str


class AuthSession(ApiModel):
    user: UserRead
    token: str
    token_type: str = "bearer"
