"""
SharedContext - 파이프라인 스테이지 간 공유 상태

한 번의 파이프라인 실행 동안 스테이지들이 결과를 주고받는 유일한 통로입니다.
"""

from .shared_context import (
    ContextKey,
    KEY_TYPES,
    NOT_FOUND,
    SharedContext,
    ContextView,
)
from .processing_log import ProcessingLogEntry, ProcessingLog
from .warnings import Warning, WarningCollector

__all__ = [
    # Main context
    "ContextKey",
    "KEY_TYPES",
    "NOT_FOUND",
    "SharedContext",
    "ContextView",
    # Log
    "ProcessingLogEntry",
    "ProcessingLog",
    # Warnings
    "Warning",
    "WarningCollector",
]
