"""Operation boundary for mutating services.

Every write exposed to callers goes through :func:`operation`: the wrapped
function runs inside the caller's session, the session commits on success
and rolls back on any failure, and the outcome is reported as an
:class:`~supply_ledger.schemas.OperationResult` instead of an exception.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar

from sqlalchemy.orm import Session

from ..errors import ServiceError
from ..schemas import OperationResult

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Сталася помилка. Спробуйте пізніше."

F = TypeVar("F", bound=Callable[..., Any])


def failure_result(exc: ServiceError) -> OperationResult:
    return OperationResult(
        success=False,
        message=exc.message,
        error=exc.kind,
        reason=exc.reason,
        data=exc.details,
    )


def operation(failure_message: str = GENERIC_FAILURE_MESSAGE, success_message: str | None = None):
    def decorator(func: F) -> Callable[..., OperationResult]:
        @functools.wraps(func)
        def wrapper(session: Session, *args: Any, **kwargs: Any) -> OperationResult:
            try:
                data = func(session, *args, **kwargs)
                session.commit()
            except ServiceError as exc:
                session.rollback()
                logger.info("%s rejected (%s): %s", func.__name__, exc.kind.value, exc.message)
                return failure_result(exc)
            except Exception:
                session.rollback()
                logger.exception("%s failed", func.__name__)
                return OperationResult(success=False, message=failure_message)
            return OperationResult.ok(data, success_message)

        return wrapper

    return decorator
