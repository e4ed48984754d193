import hmac
import re

from eth_account import Account
from eth_account.messages import encode_defunct


ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_address(value: str) -> bool:
    return bool(value) and bool(ADDRESS_PATTERN.match(value.strip()))


def normalize_identity(value: str) -> str:
    """
    Canonical form of a wallet identity: trimmed and lowercase.
    Every lookup, comparison and write goes through this.
    """
    if not isinstance(value, str) or not is_valid_address(value):
        raise ValueError("Invalid Ethereum address")
    return value.strip().lower()


def same_identity(left: str, right: str) -> bool:
    """Constant-time comparison of two identities after normalization."""
    return hmac.compare_digest(
        left.strip().lower().encode(), right.strip().lower().encode()
    )


def recover_signer(message: str, signature: str) -> str:
    """
    Recovers the address that produced an EIP-191 personal_sign
    signature over `message`. Raises ValueError on malformed input.
    """
    signable = encode_defunct(text=message)
    return Account.recover_message(signable, signature=signature)
