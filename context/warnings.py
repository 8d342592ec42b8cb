"""
Warning Collector - 권고성 가드레일 결과 수집

AllowExecution=True 이면서 tripwire가 발동한 verdict는 실행을 막지 않지만,
실행 결과와 함께 사용자에게 전달됩니다.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, TYPE_CHECKING
from dataclasses import dataclass, field

if TYPE_CHECKING:
    from guardrails.base import GuardrailVerdict

logger = logging.getLogger(__name__)


@dataclass
class Warning:
    """
    파이프라인 경고

    사용자에게 표시할 권고 메시지입니다.
    """
    code: str  # violation_type
    message: str
    stage_name: str
    check_name: str = ""
    severity: str = "warning"  # "info", "warning"
    details: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "stage_name": self.stage_name,
            "check_name": self.check_name,
            "severity": self.severity,
            "details": self.details,
            "recommendations": self.recommendations,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def to_user_message(self) -> str:
        return f"{self.message} ({self.stage_name})"


class WarningCollector:
    """실행 중 발생한 권고성 경고 수집기"""

    def __init__(self):
        self.warnings: List[Warning] = []

    def add(
        self,
        code: str,
        message: str,
        stage_name: str,
        check_name: str = "",
        severity: str = "warning",
        recommendations: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Warning:
        warning = Warning(
            code=code,
            message=message,
            stage_name=stage_name,
            check_name=check_name,
            severity=severity,
            details=dict(details or {}),
            recommendations=list(recommendations or []),
        )
        self.warnings.append(warning)

        if severity == "warning":
            logger.warning(f"[WarningCollector] {stage_name}/{code}: {message}")
        else:
            logger.info(f"[WarningCollector] {stage_name}/{code}: {message}")

        return warning

    def add_from_verdict(self, verdict: "GuardrailVerdict", stage_name: str) -> Warning:
        """권고성 verdict를 경고로 변환"""
        return self.add(
            code=verdict.violation_type,
            message=verdict.message,
            stage_name=stage_name,
            check_name=verdict.check_name,
            recommendations=verdict.recommendations,
            details=verdict.details,
        )

    def get_all(self) -> List[Warning]:
        return list(self.warnings)

    def get_by_stage(self, stage_name: str) -> List[Warning]:
        return [w for w in self.warnings if w.stage_name == stage_name]

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def get_summary(self) -> Dict[str, Any]:
        by_code: Dict[str, int] = {}
        for w in self.warnings:
            by_code[w.code] = by_code.get(w.code, 0) + 1
        return {
            "total": len(self.warnings),
            "by_code": by_code,
        }

    def to_list(self) -> List[Dict[str, Any]]:
        return [w.to_dict() for w in self.warnings]
