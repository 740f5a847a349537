"""Centralized logging for the research network."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

LOGGER_NAME = "research_network"

NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "openai._base_client",
    "anthropic._base_client",
    "asyncio",
)

logger = logging.getLogger(LOGGER_NAME)


def configure_logging(level: str = "INFO", noisy_level: str = "WARNING") -> None:
    """Configure root handlers once and quiet framework/network libraries."""
    app_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=app_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(app_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(getattr(logging, noisy_level.upper(), logging.WARNING))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log a completion or search provider call."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if status == "success":
        logger.info(f"LLM_CALL: {json.dumps(call_data)}")
    else:
        logger.warning(f"LLM_CALL: {json.dumps(call_data)}")


def log_research_step(
    session_id: str,
    step_type: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log a research step."""
    step_data = {
        "timestamp": _now(),
        "session_id": session_id,
        "step_type": step_type,
        "status": status,
        "data": data,
    }
    logger.info(f"RESEARCH_STEP: {json.dumps(step_data, default=str)}")


def log_db_operation(
    operation: str,
    table: str,
    status: str,
    details: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    """Log a record store operation. Failures are logged at warning level."""
    op_data = {
        "timestamp": _now(),
        "operation": operation,
        "table": table,
        "status": status,
        "details": details,
        "error": error,
    }
    if error:
        logger.warning(f"DB_OPERATION: {json.dumps(op_data)}")
    else:
        logger.debug(f"DB_OPERATION: {json.dumps(op_data)}")


def log_event(event_type: str, message: str, **kwargs: Any) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {json.dumps(event_data, default=str)}")
