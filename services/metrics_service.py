"""
Metrics Service - 파이프라인 성능, 가드레일, LLM 비용 메트릭 수집

파이프라인 실행 시간, 스테이지별 성공률, 가드레일 발동 횟수, LLM 호출 비용을
인메모리로 수집하고 집계합니다.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Tuple
from dataclasses import dataclass, field
from collections import defaultdict
import threading

logger = logging.getLogger(__name__)


@dataclass
class PipelineMetrics:
    """단일 파이프라인 실행 메트릭"""
    pipeline_id: str
    candidate_ref: str = ""
    job_ref: str = ""

    # 타이밍
    start_time: float = 0.0
    end_time: float = 0.0
    total_duration_ms: int = 0

    # 스테이지별
    stage_durations: Dict[str, int] = field(default_factory=dict)
    failed_stage: Optional[str] = None

    # 결과
    success: bool = False
    error_category: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_id": self.pipeline_id,
            "candidate_ref": self.candidate_ref,
            "job_ref": self.job_ref,
            "total_duration_ms": self.total_duration_ms,
            "stage_durations": self.stage_durations,
            "failed_stage": self.failed_stage,
            "success": self.success,
            "error_category": self.error_category,
        }


@dataclass
class AggregatedMetrics:
    """집계된 메트릭"""
    # 카운터
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0

    # 실패 카테고리별 / 실패 스테이지별
    errors_by_category: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    failures_by_stage: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    # 처리 시간 통계
    total_duration_sum_ms: int = 0
    total_duration_count: int = 0
    total_duration_min_ms: int = 0
    total_duration_max_ms: int = 0

    # 스테이지별 처리 시간
    stage_duration_sums: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    stage_duration_counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    # 시간 범위
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None

    def get_avg_duration_ms(self) -> float:
        if self.total_duration_count == 0:
            return 0.0
        return self.total_duration_sum_ms / self.total_duration_count

    def get_success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests

    def get_stage_avg_duration(self, stage: str) -> float:
        count = self.stage_duration_counts.get(stage, 0)
        if count == 0:
            return 0.0
        return self.stage_duration_sums.get(stage, 0) / count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": round(self.get_success_rate() * 100, 2),
            "avg_duration_ms": round(self.get_avg_duration_ms(), 2),
            "min_duration_ms": self.total_duration_min_ms,
            "max_duration_ms": self.total_duration_max_ms,
            "errors_by_category": dict(self.errors_by_category),
            "failures_by_stage": dict(self.failures_by_stage),
            "stage_avg_durations": {
                stage: round(self.get_stage_avg_duration(stage), 2)
                for stage in self.stage_duration_sums.keys()
            },
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
        }


# LLM 비용 테이블 (USD per 1M tokens)
LLM_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
}
DEFAULT_PRICING = {"input": 2.50, "output": 10.00}


def calculate_llm_cost(model: str, tokens_input: int, tokens_output: int) -> float:
    """LLM 비용 계산 (가장 긴 모델명 prefix 매칭)"""
    model_lower = (model or "").lower()
    pricing = DEFAULT_PRICING
    for name in sorted(LLM_PRICING, key=len, reverse=True):
        if model_lower.startswith(name):
            pricing = LLM_PRICING[name]
            break

    input_cost = (tokens_input / 1_000_000) * pricing["input"]
    output_cost = (tokens_output / 1_000_000) * pricing["output"]
    return input_cost + output_cost


class MetricsCollector:
    """
    메트릭 수집기

    여러 파이프라인이 동시에 기록할 수 있도록 lock으로 보호합니다.
    오케스트레이터/게이트/프로바이더에 주입해서 사용합니다.
    """

    def __init__(self, max_history: int = 1000):
        """
        Args:
            max_history: 보관할 최대 메트릭 수
        """
        self.max_history = max_history
        self._metrics: List[PipelineMetrics] = []
        self._lock = threading.Lock()

        # 현재 진행 중인 파이프라인
        self._active_pipelines: Dict[str, PipelineMetrics] = {}

        # 가드레일 발동: (check_name, violation_type) -> {"blocking": n, "advisory": n}
        self._guardrail_trips: Dict[Tuple[str, str], Dict[str, int]] = defaultdict(
            lambda: {"blocking": 0, "advisory": 0}
        )

        # LLM 호출
        self._llm_calls = 0
        self._llm_tokens_input = 0
        self._llm_tokens_output = 0
        self._llm_cost_usd = 0.0
        self._llm_calls_by_model: Dict[str, int] = defaultdict(int)

    # ─────────────────────────────────────────────────
    # 파이프라인
    # ─────────────────────────────────────────────────

    def start_pipeline(
        self,
        pipeline_id: str,
        candidate_ref: str = "",
        job_ref: str = "",
    ) -> PipelineMetrics:
        """파이프라인 시작 기록"""
        metrics = PipelineMetrics(
            pipeline_id=pipeline_id,
            candidate_ref=candidate_ref,
            job_ref=job_ref,
            start_time=time.time(),
        )

        with self._lock:
            self._active_pipelines[pipeline_id] = metrics

        logger.debug(f"[Metrics] Pipeline started: {pipeline_id}")
        return metrics

    def record_stage(
        self,
        pipeline_id: str,
        stage_name: str,
        duration_ms: int,
        success: bool = True,
    ):
        """스테이지 완료 기록"""
        with self._lock:
            metrics = self._active_pipelines.get(pipeline_id)
            if metrics is None:
                return
            metrics.stage_durations[stage_name] = duration_ms
            if not success and metrics.failed_stage is None:
                metrics.failed_stage = stage_name

    def complete_pipeline(
        self,
        pipeline_id: str,
        success: bool,
        error_category: Optional[str] = None,
    ):
        """파이프라인 완료 기록"""
        with self._lock:
            if pipeline_id not in self._active_pipelines:
                logger.warning(f"[Metrics] Unknown pipeline: {pipeline_id}")
                return

            metrics = self._active_pipelines.pop(pipeline_id)
            metrics.end_time = time.time()
            metrics.total_duration_ms = int((metrics.end_time - metrics.start_time) * 1000)
            metrics.success = success
            metrics.error_category = error_category

            self._metrics.append(metrics)

            # 최대 수 초과 시 오래된 것 제거
            if len(self._metrics) > self.max_history:
                self._metrics = self._metrics[-self.max_history:]

        logger.debug(
            f"[Metrics] Pipeline completed: {pipeline_id}, "
            f"success={success}, duration={metrics.total_duration_ms}ms"
        )

    # ─────────────────────────────────────────────────
    # 가드레일 / LLM
    # ─────────────────────────────────────────────────

    def record_guardrail_trip(
        self,
        check_name: str,
        violation_type: str,
        blocking: bool,
    ):
        """가드레일 tripwire 기록 (권고성 포함)"""
        with self._lock:
            bucket = self._guardrail_trips[(check_name, violation_type)]
            bucket["blocking" if blocking else "advisory"] += 1

    def record_llm_call(
        self,
        model: str,
        tokens_input: int,
        tokens_output: int,
    ) -> float:
        """LLM 호출 기록, 추정 비용 반환"""
        cost = calculate_llm_cost(model, tokens_input, tokens_output)
        with self._lock:
            self._llm_calls += 1
            self._llm_tokens_input += tokens_input
            self._llm_tokens_output += tokens_output
            self._llm_cost_usd += cost
            self._llm_calls_by_model[model] += 1
        return cost

    # ─────────────────────────────────────────────────
    # 조회
    # ─────────────────────────────────────────────────

    def get_aggregated(self, minutes: int = 60) -> AggregatedMetrics:
        """최근 N분 집계"""
        now = datetime.now()
        cutoff = now - timedelta(minutes=minutes)
        cutoff_timestamp = cutoff.timestamp()

        aggregated = AggregatedMetrics(period_start=cutoff, period_end=now)

        with self._lock:
            for metrics in self._metrics:
                if metrics.start_time < cutoff_timestamp:
                    continue

                aggregated.total_requests += 1
                if metrics.success:
                    aggregated.successful_requests += 1
                else:
                    aggregated.failed_requests += 1
                    if metrics.error_category:
                        aggregated.errors_by_category[metrics.error_category] += 1
                    if metrics.failed_stage:
                        aggregated.failures_by_stage[metrics.failed_stage] += 1

                aggregated.total_duration_sum_ms += metrics.total_duration_ms
                aggregated.total_duration_count += 1

                if aggregated.total_duration_count == 1:
                    aggregated.total_duration_min_ms = metrics.total_duration_ms
                else:
                    aggregated.total_duration_min_ms = min(
                        aggregated.total_duration_min_ms,
                        metrics.total_duration_ms
                    )
                aggregated.total_duration_max_ms = max(
                    aggregated.total_duration_max_ms,
                    metrics.total_duration_ms
                )

                for stage, duration in metrics.stage_durations.items():
                    aggregated.stage_duration_sums[stage] += duration
                    aggregated.stage_duration_counts[stage] += 1

        return aggregated

    def get_guardrail_summary(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        """check_name → violation_type → {blocking, advisory}"""
        summary: Dict[str, Dict[str, Dict[str, int]]] = {}
        with self._lock:
            for (check_name, violation_type), counts in self._guardrail_trips.items():
                summary.setdefault(check_name, {})[violation_type] = dict(counts)
        return summary

    def get_llm_summary(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "calls": self._llm_calls,
                "tokens_input": self._llm_tokens_input,
                "tokens_output": self._llm_tokens_output,
                "cost_usd": round(self._llm_cost_usd, 4),
                "calls_by_model": dict(self._llm_calls_by_model),
            }

    def get_recent(self, count: int = 10) -> List[Dict[str, Any]]:
        """최근 메트릭 조회"""
        with self._lock:
            recent = self._metrics[-count:]
            return [m.to_dict() for m in reversed(recent)]

    def get_active_count(self) -> int:
        """현재 진행 중인 파이프라인 수"""
        with self._lock:
            return len(self._active_pipelines)

    def get_system_health(self) -> Dict[str, Any]:
        """헬스 상태 반환 (최근 5분 에러율 기준)"""
        aggregated = self.get_aggregated(minutes=5)

        # 가드레일 거부는 시스템 문제가 아니므로 에러율에서 제외
        system_failures = (
            aggregated.errors_by_category.get("collaborator_error", 0)
            + aggregated.errors_by_category.get("infrastructure_error", 0)
        )
        error_rate = 0.0
        if aggregated.total_requests > 0:
            error_rate = system_failures / aggregated.total_requests

        status = "healthy"
        if error_rate > 0.5:
            status = "unhealthy"
        elif error_rate > 0.1:
            status = "degraded"

        return {
            "status": status,
            "error_rate": round(error_rate * 100, 2),
            "avg_duration_ms": round(aggregated.get_avg_duration_ms(), 2),
            "active_pipelines": self.get_active_count(),
            "total_requests_5min": aggregated.total_requests,
        }

    def to_dict(self, minutes: int = 60) -> Dict[str, Any]:
        return {
            "pipelines": self.get_aggregated(minutes).to_dict(),
            "guardrails": self.get_guardrail_summary(),
            "llm": self.get_llm_summary(),
        }
