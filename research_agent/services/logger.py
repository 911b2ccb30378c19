"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from research_agent.config import settings

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)


def add_file_sink(log_dir: str | Path) -> int:
    """Daily rotating file sink. loguru creates the directory on first write."""
    return logger.add(
        Path(log_dir) / "research_agent_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
    )


if settings.log_file_enabled:
    add_file_sink(settings.log_dir)

# Reduce noise from framework/network libraries
for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "asyncpg",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_job_event(job_id: str, event: str, **kwargs: Any) -> None:
    """Log a queue lifecycle event (submitted, started, completed, ...)."""
    job_data = {
        "timestamp": _now(),
        "job_id": job_id,
        "event": event,
        **kwargs,
    }
    if event == "failed":
        logger.error(f"JOB_FAILED: {job_data}")
    else:
        logger.info(f"JOB: {job_data}")


def log_pipeline_step(
    job_id: str,
    step: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log a research pipeline step."""
    step_data = {
        "timestamp": _now(),
        "job_id": job_id,
        "step": step,
        "status": status,
        "data": data,
    }
    if status in ("fallback", "error"):
        logger.warning(f"PIPELINE_STEP: {step_data}")
    else:
        logger.info(f"PIPELINE_STEP: {step_data}")


def log_provider_call(
    provider: str,
    topic: str,
    status: str,
    results: int = 0,
    duration_ms: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log a search provider call."""
    call_data = {
        "timestamp": _now(),
        "provider": provider,
        "topic": topic[:100],
        "status": status,
        "results": results,
        "duration_ms": duration_ms,
        "error": error,
    }
    if error:
        logger.warning(f"PROVIDER_CALL_FAILED: {call_data}")
    else:
        logger.info(f"PROVIDER_CALL: {call_data}")


def log_db_operation(
    operation: str,
    table: str,
    status: str,
    details: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    """Log a database operation."""
    op_data = {
        "timestamp": _now(),
        "operation": operation,
        "table": table,
        "status": status,
        "details": details,
        "error": error,
    }
    if error:
        logger.error(f"DB_OPERATION_FAILED: {op_data}")
    else:
        logger.debug(f"DB_OPERATION: {op_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
