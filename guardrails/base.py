"""
Guardrail Check 기본 타입

하나의 체크는 스테이지 입력(PreStage) 또는 출력(PostStage) 중 하나만 검사하고
GuardrailVerdict를 반환합니다.

규칙:
- 체크는 payload와 읽기 전용 ContextView만 사용하며 컨텍스트를 변경하지 않음
- allow_execution은 체크가 선언한 정책(BLOCK/WARN)에서만 결정됨
- 체크 내부 예외는 Gate가 GuardrailError verdict로 변환
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from context.shared_context import ContextView

logger = logging.getLogger(__name__)


class GateDirection(str, Enum):
    """게이트 방향"""
    PRE_STAGE = "pre_stage"    # 스테이지 입력 검사
    POST_STAGE = "post_stage"  # 스테이지 출력 검사


class GuardrailPolicy(str, Enum):
    """tripwire 발동 시 실행 허용 여부"""
    BLOCK = "block"  # 실행 중단
    WARN = "warn"    # 경고만 남기고 진행


GUARDRAIL_ERROR = "GuardrailError"


@dataclass(frozen=True)
class GuardrailVerdict:
    """
    가드레일 판정

    allow_execution이 제어 흐름의 기준이며,
    tripwire_triggered는 allow_execution=True일 때 로깅/메트릭에만 쓰입니다.
    """
    check_name: str
    priority: int
    tripwire_triggered: bool = False
    allow_execution: bool = True
    violation_type: str = ""
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    @property
    def is_blocking(self) -> bool:
        return not self.allow_execution

    @property
    def is_advisory(self) -> bool:
        return self.tripwire_triggered and self.allow_execution

    @classmethod
    def guardrail_error(cls, check_name: str, priority: int, error: BaseException) -> "GuardrailVerdict":
        """체크 내부 오류 → 실패 verdict"""
        return cls(
            check_name=check_name,
            priority=priority,
            tripwire_triggered=True,
            allow_execution=False,
            violation_type=GUARDRAIL_ERROR,
            message=f"Error in guardrail {check_name}: {error}",
            details={"error_type": type(error).__name__},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "check_name": self.check_name,
            "priority": self.priority,
            "tripwire_triggered": self.tripwire_triggered,
            "allow_execution": self.allow_execution,
            "violation_type": self.violation_type,
            "message": self.message,
            "details": self.details,
            "recommendations": self.recommendations,
        }


class GuardrailCheck(ABC):
    """
    가드레일 체크 인터페이스

    하위 클래스는 name, priority, policy를 선언하고 evaluate()를 구현합니다.
    violation_type마다 정책이 다르면 violation_policies에 명시합니다.
    """

    name: str = "GuardrailCheck"
    priority: int = 100  # 낮을수록 먼저 보고
    policy: GuardrailPolicy = GuardrailPolicy.BLOCK
    violation_policies: Dict[str, GuardrailPolicy] = {}

    @abstractmethod
    async def evaluate(
        self,
        direction: GateDirection,
        payload: Any,
        context: "ContextView",
    ) -> GuardrailVerdict:
        """payload 검사 후 verdict 반환"""

    def policy_for(self, violation_type: str) -> GuardrailPolicy:
        return self.violation_policies.get(violation_type, self.policy)

    def passed(self, **details) -> GuardrailVerdict:
        return GuardrailVerdict(
            check_name=self.name,
            priority=self.priority,
            details=details,
        )

    def trip(
        self,
        violation_type: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recommendations: Optional[List[str]] = None,
    ) -> GuardrailVerdict:
        """tripwire 발동 verdict (허용 여부는 선언된 정책으로 결정)"""
        policy = self.policy_for(violation_type)
        if policy is GuardrailPolicy.BLOCK:
            logger.warning(f"[{self.name}] {violation_type}: {message}")
        else:
            logger.info(f"[{self.name}] advisory {violation_type}: {message}")
        return GuardrailVerdict(
            check_name=self.name,
            priority=self.priority,
            tripwire_triggered=True,
            allow_execution=policy is GuardrailPolicy.WARN,
            violation_type=violation_type,
            message=message,
            details=details or {},
            recommendations=list(recommendations or []),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, priority={self.priority})"
