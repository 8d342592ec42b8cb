"""
Processing Log - 파이프라인 처리 이력

스테이지 이벤트를 시간 순서대로 기록합니다.
append-only: 항목은 추가만 가능하며 수정/삭제되지 않습니다.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingLogEntry:
    """
    처리 이력 항목

    event: "stage_started", "stage_succeeded", "stage_failed", "gate_warning",
           "cancelled", "pipeline_completed", ...
    """
    stage: str
    event: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def format(self) -> str:
        """사람이 읽을 수 있는 한 줄 형식"""
        return f"[{self.stage}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "event": self.event,
            "message": self.message,
            "details": self._serialize(self.details),
            "timestamp": self.timestamp.isoformat(),
        }

    @staticmethod
    def _serialize(details: Dict[str, Any]) -> Dict[str, Any]:
        """큰 값은 요약"""
        result = {}
        for key, value in details.items():
            if isinstance(value, str) and len(value) > 200:
                result[key] = value[:200] + "..."
            elif isinstance(value, bytes):
                result[key] = f"<bytes: {len(value)} bytes>"
            else:
                result[key] = value
        return result


class ProcessingLog:
    """append-only 처리 이력"""

    def __init__(self):
        self._entries: List[ProcessingLogEntry] = []

    def append(
        self,
        stage: str,
        event: str,
        message: str,
        **details
    ) -> ProcessingLogEntry:
        entry = ProcessingLogEntry(
            stage=stage,
            event=event,
            message=message,
            details=details,
        )
        self._entries.append(entry)
        logger.debug(f"[ProcessingLog] {entry.format()}")
        return entry

    @property
    def entries(self) -> Tuple[ProcessingLogEntry, ...]:
        return tuple(self._entries)

    def last(self) -> Optional[ProcessingLogEntry]:
        return self._entries[-1] if self._entries else None

    def by_stage(self, stage: str) -> List[ProcessingLogEntry]:
        return [e for e in self._entries if e.stage == stage]

    def messages(self) -> List[str]:
        return [e.format() for e in self._entries]

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(tuple(self._entries))
