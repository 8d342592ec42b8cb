"""
Pipeline Stage - pre-gate → body → post-gate → context write

상태 머신:
    NotStarted → PreGateRunning → (PreGateFailed | BodyRunning)
    BodyRunning → (BodyFailed | PostGateRunning)
    PostGateRunning → (PostGateFailed | Succeeded)

- 실패 상태는 모두 종료 상태이며 재시도하지 않음
- 가드레일 거부/본문 실패는 예외가 아닌 StageResult로 반환
- InfrastructureError, ProgrammingInvariantViolation은 오케스트레이터로 전파
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Sequence

from context.shared_context import ContextKey, ContextView, SharedContext
from exceptions import InfrastructureError, ProgrammingInvariantViolation
from guardrails.base import GateDirection, GuardrailCheck
from guardrails.gate import GateDecision, GuardrailGate

logger = logging.getLogger(__name__)


class StageState(str, Enum):
    NOT_STARTED = "NotStarted"
    PRE_GATE_RUNNING = "PreGateRunning"
    PRE_GATE_FAILED = "PreGateFailed"
    BODY_RUNNING = "BodyRunning"
    BODY_FAILED = "BodyFailed"
    POST_GATE_RUNNING = "PostGateRunning"
    POST_GATE_FAILED = "PostGateFailed"
    SUCCEEDED = "Succeeded"

    @property
    def is_terminal(self) -> bool:
        return not STAGE_TRANSITIONS[self]

    @property
    def is_guardrail_failure(self) -> bool:
        return self in (StageState.PRE_GATE_FAILED, StageState.POST_GATE_FAILED)


STAGE_TRANSITIONS: Dict[StageState, FrozenSet[StageState]] = {
    StageState.NOT_STARTED: frozenset({StageState.PRE_GATE_RUNNING}),
    StageState.PRE_GATE_RUNNING: frozenset({StageState.PRE_GATE_FAILED, StageState.BODY_RUNNING}),
    StageState.BODY_RUNNING: frozenset({StageState.BODY_FAILED, StageState.POST_GATE_RUNNING}),
    StageState.POST_GATE_RUNNING: frozenset({StageState.POST_GATE_FAILED, StageState.SUCCEEDED}),
    StageState.PRE_GATE_FAILED: frozenset(),
    StageState.BODY_FAILED: frozenset(),
    StageState.POST_GATE_FAILED: frozenset(),
    StageState.SUCCEEDED: frozenset(),
}


@dataclass
class StageResult:
    """스테이지 실행 결과"""
    stage_name: str
    state: StageState
    duration_ms: int = 0
    pre_gate: Optional[GateDecision] = None
    post_gate: Optional[GateDecision] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    violation_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    output_keys: List[ContextKey] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is StageState.SUCCEEDED

    @property
    def warnings(self) -> list:
        result = []
        for decision in (self.pre_gate, self.post_gate):
            if decision is not None:
                result.extend(decision.warnings)
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "state": self.state.value,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "pre_gate": self.pre_gate.to_dict() if self.pre_gate else None,
            "post_gate": self.post_gate.to_dict() if self.post_gate else None,
            "error": self.error,
            "error_type": self.error_type,
            "violation_type": self.violation_type,
            "metadata": self.metadata,
            "output_keys": [k.value for k in self.output_keys],
        }


# (view) -> 스테이지 입력
InputSelector = Callable[[ContextView], Any]
# (view, 스테이지 입력) -> 스테이지 출력
StageBody = Callable[[ContextView, Any], Awaitable[Any]]


class PipelineStage:
    """
    게이트로 감싼 작업 단위

    Args:
        name: 스테이지 이름 (StageName 값)
        input_selector: 컨텍스트에서 입력을 고르는 함수 (pre-gate payload)
        body: 입력 → 출력 코루틴 (단일 시도)
        output_key: 출력을 쓸 ContextKey (post-gate payload)
        pre_checks / post_checks: 등록된 가드레일 체크
        timeout: 본문 타임아웃 (초)
        describe: 출력 → metadata 카운트 (선택)
        on_rejected: post-gate가 거부한 출력 정리 코루틴 (선택, 예: 저장된 blob 삭제)
    """

    def __init__(
        self,
        name: str,
        input_selector: InputSelector,
        body: StageBody,
        output_key: ContextKey,
        pre_checks: Sequence[GuardrailCheck] = (),
        post_checks: Sequence[GuardrailCheck] = (),
        timeout: float = 120.0,
        describe: Optional[Callable[[Any], Dict[str, Any]]] = None,
        on_rejected: Optional[Callable[[Any], Awaitable[None]]] = None,
    ):
        self.name = str(getattr(name, "value", name))
        self.input_selector = input_selector
        self.body = body
        self.output_key = output_key
        self.pre_checks = tuple(pre_checks)
        self.post_checks = tuple(post_checks)
        self.timeout = timeout
        self.describe = describe
        self.on_rejected = on_rejected
        self.state = StageState.NOT_STARTED

    def _transition(self, target: StageState):
        if target not in STAGE_TRANSITIONS[self.state]:
            raise ProgrammingInvariantViolation(
                f"Illegal stage transition {self.state.value} → {target.value} ({self.name})"
            )
        self.state = target

    async def execute(self, context: SharedContext, gate: GuardrailGate) -> StageResult:
        """
        스테이지 1회 실행

        같은 인스턴스를 다시 실행하면 ProgrammingInvariantViolation.
        """
        start = time.perf_counter()
        view = context.view()

        def finish(**kwargs) -> StageResult:
            return StageResult(
                stage_name=self.name,
                state=self.state,
                duration_ms=int((time.perf_counter() - start) * 1000),
                **kwargs,
            )

        # ─────────────────────────────────────────────────
        # Pre-gate
        # ─────────────────────────────────────────────────
        self._transition(StageState.PRE_GATE_RUNNING)
        stage_input = self.input_selector(view)
        pre = await gate.run_gate(GateDirection.PRE_STAGE, stage_input, view, self.pre_checks, self.name)
        self._collect_warnings(context, pre)

        if not pre.allow_execution:
            self._transition(StageState.PRE_GATE_FAILED)
            return finish(
                pre_gate=pre,
                error=pre.summary,
                violation_type=pre.violations[0].violation_type,
                metadata={"pre_checks": pre.check_count},
            )

        # ─────────────────────────────────────────────────
        # Body (단일 시도, 타임아웃)
        # ─────────────────────────────────────────────────
        self._transition(StageState.BODY_RUNNING)
        try:
            output = await asyncio.wait_for(self.body(view, stage_input), timeout=self.timeout)
        except (InfrastructureError, ProgrammingInvariantViolation):
            raise
        except asyncio.TimeoutError:
            self._transition(StageState.BODY_FAILED)
            logger.warning(f"[PipelineStage] {self.name} timed out after {self.timeout}s")
            return finish(
                pre_gate=pre,
                error=f"Stage {self.name} timed out after {self.timeout:g}s",
                error_type="TimeoutError",
                metadata={"pre_checks": pre.check_count, "timeout_seconds": self.timeout},
            )
        except Exception as e:
            self._transition(StageState.BODY_FAILED)
            logger.warning(f"[PipelineStage] {self.name} body failed: {type(e).__name__}: {e}")
            return finish(
                pre_gate=pre,
                error=getattr(e, "message", None) or str(e),
                error_type=type(e).__name__,
                metadata={"pre_checks": pre.check_count, **getattr(e, "details", {})},
            )

        # ─────────────────────────────────────────────────
        # Post-gate
        # ─────────────────────────────────────────────────
        self._transition(StageState.POST_GATE_RUNNING)
        post = await gate.run_gate(GateDirection.POST_STAGE, output, view, self.post_checks, self.name)
        self._collect_warnings(context, post)

        metadata = {"pre_checks": pre.check_count, "post_checks": post.check_count}
        if self.describe is not None:
            metadata.update(self.describe(output))

        if not post.allow_execution:
            self._transition(StageState.POST_GATE_FAILED)
            if self.on_rejected is not None:
                await self.on_rejected(output)
            return finish(
                pre_gate=pre,
                post_gate=post,
                error=post.summary,
                violation_type=post.violations[0].violation_type,
                metadata=metadata,
            )

        context.set(self.output_key, output)
        self._transition(StageState.SUCCEEDED)
        return finish(
            pre_gate=pre,
            post_gate=post,
            metadata=metadata,
            output_keys=[self.output_key],
        )

    def _collect_warnings(self, context: SharedContext, decision: GateDecision):
        for verdict in decision.warnings:
            context.warnings.add_from_verdict(verdict, self.name)

    def __repr__(self) -> str:
        return f"PipelineStage(name={self.name!r}, state={self.state.value})"
