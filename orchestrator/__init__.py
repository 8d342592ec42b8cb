"""
Pipeline Orchestrator - 맞춤 이력서/커버레터 파이프라인 통합 관리

PipelineStage(게이트 + 본문)를 순서대로 실행하고 세션 상태를 관리합니다.
"""

from .stage import StageState, StageResult, PipelineStage, STAGE_TRANSITIONS
from .stages import PipelineAgents, build_default_stages
from .pipeline_orchestrator import (
    CANCELLED_LOG_ENTRY,
    PipelineRunResult,
    PipelineOrchestrator,
    build_pipeline_orchestrator,
)

__all__ = [
    # Stage
    "StageState",
    "StageResult",
    "PipelineStage",
    "STAGE_TRANSITIONS",
    # Default stages
    "PipelineAgents",
    "build_default_stages",
    # Orchestrator
    "CANCELLED_LOG_ENTRY",
    "PipelineRunResult",
    "PipelineOrchestrator",
    "build_pipeline_orchestrator",
]
