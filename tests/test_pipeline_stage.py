"""
PipelineStage 테스트

테스트 대상:
- 상태 머신 (Succeeded / PreGateFailed / BodyFailed / PostGateFailed)
- post-gate 실패 시 컨텍스트 미기록
- 타임아웃 → BodyFailed
- InfrastructureError / ProgrammingInvariantViolation 전파
- 같은 인스턴스 재실행 금지
- 권고성 verdict → WarningCollector
"""

import asyncio

import pytest

from context import ContextKey, NOT_FOUND, SharedContext
from exceptions import (
    InfrastructureError,
    KeyAlreadyWrittenError,
    ProgrammingInvariantViolation,
    ProviderError,
    ErrorCode,
)
from guardrails.base import GuardrailCheck, GuardrailPolicy
from guardrails.gate import GuardrailGate
from orchestrator.stage import STAGE_TRANSITIONS, PipelineStage, StageState
from schemas.pipeline_types import MatchResult


class ScoreCheck(GuardrailCheck):
    """payload.match_score가 기준 미만이면 trip"""

    def __init__(self, name="ScoreCheck", minimum=50, policy=GuardrailPolicy.BLOCK, priority=2):
        self.name = name
        self.minimum = minimum
        self.policy = policy
        self.priority = priority
        self.payloads = []

    async def evaluate(self, direction, payload, context):
        self.payloads.append(payload)
        score = getattr(payload, "match_score", payload)
        if score < self.minimum:
            return self.trip("LowScore", f"score {score} below {self.minimum}")
        return self.passed()


def make_stage(body=None, pre_checks=(), post_checks=(), timeout=1.0, output_key=ContextKey.MATCHING):
    async def default_body(view, stage_input):
        return MatchResult(match_score=80)

    return PipelineStage(
        name="Match",
        input_selector=lambda view: 70,
        body=body or default_body,
        output_key=output_key,
        pre_checks=pre_checks,
        post_checks=post_checks,
        timeout=timeout,
        describe=lambda output: {"match_score": output.match_score},
    )


@pytest.fixture
def context():
    return SharedContext("session-1", "token-1")


@pytest.fixture
def gate():
    return GuardrailGate()


class TestStateMachine:
    """전이 테이블"""

    def test_terminal_states(self):
        terminal = {s for s in StageState if s.is_terminal}
        assert terminal == {
            StageState.PRE_GATE_FAILED,
            StageState.BODY_FAILED,
            StageState.POST_GATE_FAILED,
            StageState.SUCCEEDED,
        }

    def test_guardrail_failures(self):
        assert StageState.PRE_GATE_FAILED.is_guardrail_failure
        assert StageState.POST_GATE_FAILED.is_guardrail_failure
        assert not StageState.BODY_FAILED.is_guardrail_failure

    def test_no_path_skips_gates(self):
        assert StageState.BODY_RUNNING not in STAGE_TRANSITIONS[StageState.NOT_STARTED]
        assert StageState.SUCCEEDED not in STAGE_TRANSITIONS[StageState.BODY_RUNNING]


class TestExecute:
    """execute 경로별 결과"""

    @pytest.mark.asyncio
    async def test_success_writes_output(self, context, gate):
        pre = ScoreCheck("PreCheck", minimum=60)
        post = ScoreCheck("PostCheck", minimum=60)
        stage = make_stage(pre_checks=[pre], post_checks=[post])

        result = await stage.execute(context, gate)

        assert result.state is StageState.SUCCEEDED
        assert result.success is True
        assert result.output_keys == [ContextKey.MATCHING]
        assert context.get(ContextKey.MATCHING).match_score == 80
        assert result.metadata == {"pre_checks": 1, "post_checks": 1, "match_score": 80}
        # pre-gate는 선택된 입력, post-gate는 출력을 검사
        assert pre.payloads == [70]
        assert post.payloads[0].match_score == 80

    @pytest.mark.asyncio
    async def test_pre_gate_failure_skips_body(self, context, gate):
        calls = []

        async def body(view, stage_input):
            calls.append(stage_input)
            return MatchResult(match_score=80)

        stage = make_stage(body=body, pre_checks=[ScoreCheck(minimum=90)])
        result = await stage.execute(context, gate)

        assert result.state is StageState.PRE_GATE_FAILED
        assert result.violation_type == "LowScore"
        assert result.error == "LowScore: score 70 below 90"
        assert result.post_gate is None
        assert calls == []
        assert context.find(ContextKey.MATCHING) is NOT_FOUND

    @pytest.mark.asyncio
    async def test_post_gate_failure_does_not_write(self, context, gate):
        async def body(view, stage_input):
            return MatchResult(match_score=20)

        stage = make_stage(body=body, post_checks=[ScoreCheck(minimum=50)])
        result = await stage.execute(context, gate)

        assert result.state is StageState.POST_GATE_FAILED
        assert result.violation_type == "LowScore"
        assert result.output_keys == []
        assert context.find(ContextKey.MATCHING) is NOT_FOUND

    @pytest.mark.asyncio
    async def test_body_failure(self, context, gate):
        async def body(view, stage_input):
            raise ProviderError(
                "OpenAI returned 503",
                code=ErrorCode.PROVIDER_UNAVAILABLE,
                details={"status_code": 503},
            )

        stage = make_stage(body=body)
        result = await stage.execute(context, gate)

        assert result.state is StageState.BODY_FAILED
        assert result.error == "OpenAI returned 503"
        assert result.error_type == "ProviderError"
        assert result.metadata["status_code"] == 503
        assert result.violation_type is None
        assert context.find(ContextKey.MATCHING) is NOT_FOUND

    @pytest.mark.asyncio
    async def test_plain_exception_body_failure(self, context, gate):
        async def body(view, stage_input):
            raise ValueError("unexpected payload")

        result = await make_stage(body=body).execute(context, gate)

        assert result.state is StageState.BODY_FAILED
        assert result.error == "unexpected payload"
        assert result.error_type == "ValueError"

    @pytest.mark.asyncio
    async def test_timeout(self, context, gate):
        async def body(view, stage_input):
            await asyncio.sleep(1)
            return MatchResult(match_score=80)

        result = await make_stage(body=body, timeout=0.05).execute(context, gate)

        assert result.state is StageState.BODY_FAILED
        assert result.error_type == "TimeoutError"
        assert result.error == "Stage Match timed out after 0.05s"
        assert context.find(ContextKey.MATCHING) is NOT_FOUND


class TestPropagation:
    """오케스트레이터로 전파되는 예외"""

    @pytest.mark.asyncio
    async def test_infrastructure_error_propagates(self, context, gate):
        async def body(view, stage_input):
            raise InfrastructureError("session store unreachable")

        with pytest.raises(InfrastructureError):
            await make_stage(body=body).execute(context, gate)

    @pytest.mark.asyncio
    async def test_double_write_propagates(self, context, gate):
        context.set(ContextKey.MATCHING, MatchResult(match_score=10))

        with pytest.raises(KeyAlreadyWrittenError):
            await make_stage().execute(context, gate)

    @pytest.mark.asyncio
    async def test_reexecute_is_invariant_violation(self, context, gate):
        stage = make_stage()
        await stage.execute(context, gate)

        with pytest.raises(ProgrammingInvariantViolation, match="Illegal stage transition"):
            await stage.execute(SharedContext("session-2", "token-2"), gate)


class TestWarnings:
    """권고성 verdict 수집"""

    @pytest.mark.asyncio
    async def test_advisory_collected_and_stage_succeeds(self, context, gate):
        advisory = ScoreCheck("Advisory", minimum=90, policy=GuardrailPolicy.WARN)
        stage = make_stage(post_checks=[advisory])

        result = await stage.execute(context, gate)

        assert result.success is True
        assert [w.violation_type for w in result.warnings] == ["LowScore"]
        (warning,) = context.warnings.get_all()
        assert warning.stage_name == "Match"
        assert warning.check_name == "Advisory"

    @pytest.mark.asyncio
    async def test_to_dict(self, context, gate):
        result = await make_stage().execute(context, gate)
        data = result.to_dict()

        assert data["state"] == "Succeeded"
        assert data["success"] is True
        assert data["output_keys"] == ["matching"]
        assert data["pre_gate"]["check_count"] == 0


class TestRejectedOutputCleanup:
    """post-gate가 거부한 출력은 on_rejected로 전달"""

    @pytest.mark.asyncio
    async def test_rejected_output_handed_to_cleanup(self, context, gate):
        rejected = []

        async def body(view, stage_input):
            return MatchResult(match_score=20)

        async def on_rejected(output):
            rejected.append(output.match_score)

        stage = PipelineStage(
            name="Match",
            input_selector=lambda view: 70,
            body=body,
            output_key=ContextKey.MATCHING,
            post_checks=[ScoreCheck(minimum=50)],
            on_rejected=on_rejected,
        )
        result = await stage.execute(context, gate)

        assert result.state is StageState.POST_GATE_FAILED
        assert rejected == [20]

    @pytest.mark.asyncio
    async def test_cleanup_not_called_on_success(self, context, gate):
        rejected = []

        async def on_rejected(output):
            rejected.append(output)

        stage = make_stage(post_checks=[ScoreCheck(minimum=50)])
        stage.on_rejected = on_rejected
        result = await stage.execute(context, gate)

        assert result.success is True
        assert rejected == []
