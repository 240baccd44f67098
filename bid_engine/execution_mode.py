"""
Execution mode switch: SHADOW records recommendations only, APPLY also
pushes them to the ad platform
"""

from enum import Enum
from typing import Optional

from .config import settings
from .logger import get_logger

logger = get_logger(__name__)


class ExecutionMode(str, Enum):
    SHADOW = "SHADOW"
    APPLY = "APPLY"


def get_execution_mode(value: Optional[str] = None) -> ExecutionMode:
    raw = value if value is not None else settings.execution_mode
    if not raw:
        logger.warning("EXECUTION_MODE not set, defaulting to SHADOW")
        return ExecutionMode.SHADOW
    try:
        return ExecutionMode(raw.strip().upper())
    except ValueError:
        logger.warning(f"Unknown EXECUTION_MODE '{raw}', defaulting to SHADOW")
        return ExecutionMode.SHADOW
