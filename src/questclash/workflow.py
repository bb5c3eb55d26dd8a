"""Single-transaction execution of mutating commands.

Each multi-step command (create quest, join, submit, vote) runs inside
``workflow``: every step shares one database transaction which is committed
only after the last step succeeds. Any failure rolls the whole transaction
back, which is the compensating action for every earlier step, and leaves a
``failed_operations`` row for later reconciliation.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from questclash.db.models import FailedOperation
from questclash.errors import QuestClashError

logger = structlog.get_logger()


async def _record_failure(
    db: AsyncSession,
    operation: str,
    exc: BaseException,
    context: dict[str, Any],
) -> None:
    """Persist a FailedOperation row in a fresh transaction; log if that fails too."""
    if isinstance(exc, QuestClashError):
        error_kind, detail = exc.code, exc.detail
    else:
        error_kind, detail = exc.__class__.__name__, str(exc)
    try:
        db.add(FailedOperation(
            operation=operation,
            user_id=context.get("user_id"),
            quest_id=context.get("quest_id"),
            submission_id=context.get("submission_id"),
            error_kind=error_kind,
            detail=detail[:1000] if detail else None,
            context={k: v for k, v in context.items() if isinstance(v, (str, int, float, bool))},
        ))
        await db.commit()
    except SQLAlchemyError:
        logger.error("failed_operation_not_recorded", operation=operation, exc_info=True)
        await db.rollback()


@asynccontextmanager
async def workflow(db: AsyncSession, operation: str, **context: Any) -> AsyncIterator[None]:  # noqa: ANN401
    """Commit on success; roll back, record and re-raise on failure."""
    try:
        yield
        await db.commit()
    except Exception as exc:
        try:
            await db.rollback()
        except SQLAlchemyError:
            logger.error(
                "workflow_rollback_failed",
                operation=operation,
                error=str(exc),
                exc_info=True,
                **context,
            )
            raise exc from None
        if isinstance(exc, QuestClashError) and exc.status_code < 500:
            logger.info("workflow_rejected", operation=operation, code=exc.code, **context)
        else:
            logger.warning("workflow_failed", operation=operation, error=str(exc), **context)
        await _record_failure(db, operation, exc, context)
        raise
