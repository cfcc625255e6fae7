from __future__ import annotations

from fastapi import HTTPException, status
from loguru import logger


def log_db_error(context: str, exc: Exception) -> None:
    logger.error("Database error in {}: {}", context, exc)


def database_unavailable(context: str, exc: Exception) -> HTTPException:
    log_db_error(context, exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Database unavailable. Try again shortly.",
    )
