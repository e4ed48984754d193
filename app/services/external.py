from typing import Callable, Optional, TypeVar

from loguru import logger

from app.core.exceptions import ExternalServiceError


T = TypeVar("T")


def best_effort(label: str, call: Callable[[], T]) -> Optional[T]:
    """
    Runs an optional storage or ledger side effect. An ExternalServiceError is
    logged as a warning and turned into None; anything else propagates.
    """
    try:
        return call()
    except ExternalServiceError as e:
        logger.warning(f"{label} skipped (non-critical): {e.message}")
        return None
