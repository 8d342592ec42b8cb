"""
Guardrail Gate - 체크 fan-out / fan-in

한 스테이지 방향(Pre/Post)에 등록된 체크를 모두 동시에 실행하고
전부 끝날 때까지 기다린 뒤 하나의 GateDecision으로 합칩니다.

- short-circuit 없음: 빠른 실패가 느린 체크의 결과를 가리지 않음
- allow_execution = 모든 verdict의 AND
- 위반 순서: priority 오름차순, 같으면 등록 순서
- 체크 내부 예외는 GuardrailError verdict로 변환 (게이트는 throw 하지 않음)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from exceptions import ProgrammingInvariantViolation
from .base import GateDirection, GuardrailCheck, GuardrailVerdict

if TYPE_CHECKING:
    from context.shared_context import ContextView
    from services.metrics_service import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class GateDecision:
    """게이트 판정 (저장되지 않는 파생 값)"""
    direction: GateDirection
    stage_name: str
    allow_execution: bool
    verdicts: List[GuardrailVerdict] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def check_count(self) -> int:
        return len(self.verdicts)

    @property
    def violations(self) -> List[GuardrailVerdict]:
        """실행을 막은 verdict (보고 순서)"""
        return [v for v in self.verdicts if not v.allow_execution]

    @property
    def warnings(self) -> List[GuardrailVerdict]:
        """권고성 verdict (보고 순서)"""
        return [v for v in self.verdicts if v.is_advisory]

    @property
    def violation_types(self) -> List[str]:
        return [v.violation_type for v in self.violations]

    @property
    def summary(self) -> str:
        """'TypeA, TypeB: message A; message B'"""
        violations = self.violations
        if not violations:
            return ""
        types = ", ".join(v.violation_type for v in violations)
        messages = "; ".join(v.message for v in violations)
        return f"{types}: {messages}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "stage_name": self.stage_name,
            "allow_execution": self.allow_execution,
            "check_count": self.check_count,
            "violation_types": self.violation_types,
            "summary": self.summary,
            "verdicts": [v.to_dict() for v in self.verdicts],
            "duration_ms": self.duration_ms,
        }


class GuardrailGate:
    """
    게이트 실행기

    체크 간 실행 순서는 보장하지 않으며, 결과 순서만 결정적입니다.
    """

    def __init__(self, metrics: Optional["MetricsCollector"] = None):
        self.metrics = metrics

    async def run_gate(
        self,
        direction: GateDirection,
        payload: Any,
        context: "ContextView",
        checks: Sequence[GuardrailCheck],
        stage_name: str = "",
    ) -> GateDecision:
        if not checks:
            return GateDecision(direction=direction, stage_name=stage_name, allow_execution=True)

        start = time.perf_counter()
        verdicts = await asyncio.gather(
            *(self._evaluate_one(check, direction, payload, context) for check in checks)
        )
        duration_ms = int((time.perf_counter() - start) * 1000)

        # (priority, 등록 순서)로 정렬
        ordered = [
            v for _, v in sorted(enumerate(verdicts), key=lambda iv: (iv[1].priority, iv[0]))
        ]
        decision = GateDecision(
            direction=direction,
            stage_name=stage_name,
            allow_execution=all(v.allow_execution for v in verdicts),
            verdicts=ordered,
            duration_ms=duration_ms,
        )

        self._record(decision)

        if decision.allow_execution:
            logger.debug(
                f"[GuardrailGate] {stage_name} {direction.value} passed "
                f"({decision.check_count} checks, {len(decision.warnings)} warnings, {duration_ms}ms)"
            )
        else:
            logger.warning(
                f"[GuardrailGate] {stage_name} {direction.value} rejected: {decision.summary}"
            )
        return decision

    async def _evaluate_one(
        self,
        check: GuardrailCheck,
        direction: GateDirection,
        payload: Any,
        context: "ContextView",
    ) -> GuardrailVerdict:
        name = getattr(check, "name", type(check).__name__)
        priority = getattr(check, "priority", 100)
        try:
            verdict = await check.evaluate(direction, payload, context)
        except ProgrammingInvariantViolation:
            raise
        except Exception as e:
            logger.error(f"[GuardrailGate] Check {name} raised: {e}", exc_info=True)
            return GuardrailVerdict.guardrail_error(name, priority, e)

        if not isinstance(verdict, GuardrailVerdict):
            return GuardrailVerdict.guardrail_error(
                name, priority, TypeError(f"expected GuardrailVerdict, got {type(verdict).__name__}")
            )
        return verdict

    def _record(self, decision: GateDecision):
        if self.metrics is None:
            return
        for verdict in decision.verdicts:
            if verdict.tripwire_triggered:
                self.metrics.record_guardrail_trip(
                    check_name=verdict.check_name,
                    violation_type=verdict.violation_type,
                    blocking=verdict.is_blocking,
                )
