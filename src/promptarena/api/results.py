"""Turn service results into return values or HTTP errors."""

from typing import TypeVar

from promptarena.errors.exceptions import NotFoundError, error_class_for
from promptarena.services.results import NOT_FOUND, ServiceResult

T = TypeVar("T")


def unwrap(result: ServiceResult[T]) -> T:
    """``result.data`` on success; otherwise raise the error matching ``result.code``."""
    if result.ok:
        return result.data
    if result.code == NOT_FOUND:
        raise NotFoundError(result.message.removesuffix(" not found"))
    raise error_class_for(result.code)(result.message, result.details)
