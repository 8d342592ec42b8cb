"""
Pipeline Orchestrator - 맞춤 이력서/커버레터 파이프라인 통합 관리

선언된 스테이지 목록을 하나의 SharedContext에 대해 순서대로 실행하고
세션 상태 전이와 실행 결과를 관리합니다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, TYPE_CHECKING

from context.shared_context import NOT_FOUND, ContextKey, SharedContext
from exceptions import (
    CollaboratorError,
    ErrorCategory,
    GuardrailViolationError,
    InfrastructureError,
    ProgrammingInvariantViolation,
    TailorError,
)
from guardrails.gate import GuardrailGate
from schemas.enums import SessionStatus
from schemas.pipeline_types import GeneratedDocument, PipelineRequest, Session, SessionStatusView
from services.interfaces import SessionStore
from utils.structured_logger import log_context, report_exception
from .stage import PipelineStage, StageResult

if TYPE_CHECKING:
    from config import Settings
    from guardrails.registry import GuardrailRegistry
    from services.interfaces import (
        BlobStore,
        DocumentRenderer,
        DocumentTextExtractor,
        JobContentFetcher,
        TextGenerationProvider,
    )
    from services.metrics_service import MetricsCollector

logger = logging.getLogger(__name__)

CANCELLED_LOG_ENTRY = "Workflow cancelled by caller"

StageFactory = Callable[[], Sequence[PipelineStage]]
# 실패한 실행이 이미 저장한 문서 정리
DocumentDiscarder = Callable[[List[GeneratedDocument]], Awaitable[None]]


@dataclass
class PipelineRunResult:
    """오케스트레이터 실행 결과"""
    success: bool
    session: Optional[SessionStatusView] = None
    stage_outcomes: List[StageResult] = field(default_factory=list)
    documents: List[GeneratedDocument] = field(default_factory=list)

    # 실패
    error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None

    # 권고성 판정 (실행 전체)
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    processing_time_ms: int = 0

    @property
    def failed_stage(self) -> Optional[StageResult]:
        for outcome in self.stage_outcomes:
            if not outcome.success:
                return outcome
        return None

    def raise_for_error(self) -> "PipelineRunResult":
        """실패 결과를 카테고리에 맞는 예외로 변환 (성공이면 그대로 반환)"""
        if self.success:
            return self
        message = self.error or "Pipeline failed"
        failed = self.failed_stage
        if self.error_category is ErrorCategory.GUARDRAIL_VIOLATION:
            raise GuardrailViolationError(
                message,
                violation_type=failed.violation_type if failed else "",
                details={"stage": failed.stage_name} if failed else {},
            )
        if self.error_category is ErrorCategory.COLLABORATOR_ERROR:
            raise CollaboratorError(message, details={"stage": failed.stage_name} if failed else {})
        if self.error_category is ErrorCategory.INFRASTRUCTURE_ERROR:
            raise InfrastructureError(message)
        raise TailorError(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "session": self.session.to_dict() if self.session else None,
            "stage_outcomes": [o.to_dict() for o in self.stage_outcomes],
            "documents": [d.to_dict() for d in self.documents],
            "error": self.error,
            "error_category": self.error_category.value if self.error_category else None,
            "warnings": self.warnings,
            "processing_time_ms": self.processing_time_ms,
        }


class PipelineOrchestrator:
    """
    파이프라인 오케스트레이터

    Stages (기본 구성):
    1. Parse - 이력서 텍스트 추출 + 구조화
    2. ExtractJob - 채용공고 페치 + 구조화
    3. Match - 지원자/공고 매칭
    4. GenerateDocument(CV)
    5. GenerateDocument(CoverLetter)
    6. Review - 진실성/품질 리뷰
    7. Format&Store - DOCX 렌더링 + 저장

    - 첫 실패에서 중단, 세션은 Failed
    - 취소는 스테이지 경계에서만 관찰
    - 세션 상태는 이 오케스트레이터만 변경
    """

    def __init__(
        self,
        session_store: SessionStore,
        stage_factory: StageFactory,
        gate: Optional[GuardrailGate] = None,
        metrics: Optional["MetricsCollector"] = None,
        discard_documents: Optional[DocumentDiscarder] = None,
    ):
        self.session_store = session_store
        self.stage_factory = stage_factory
        self.metrics = metrics
        self.gate = gate or GuardrailGate(metrics=metrics)
        self.discard_documents = discard_documents
        # session_id → 취소 플래그 (이 프로세스에서 실행 중인 run만)
        self._in_flight: Dict[str, asyncio.Event] = {}
        # 마지막 취소 확인을 지나 완료 처리 중인 session_id (취소 불가)
        self._finalizing: Set[str] = set()

    # ─────────────────────────────────────────────────
    # run_pipeline
    # ─────────────────────────────────────────────────

    async def run_pipeline(self, request: PipelineRequest) -> PipelineRunResult:
        start = time.perf_counter()

        try:
            session = await self.session_store.create(request.candidate_ref, request.job_ref)
        except InfrastructureError as e:
            logger.error(f"[Orchestrator] Session creation failed: {e}")
            report_exception(e, operation="create_session")
            return PipelineRunResult(
                success=False,
                error=e.message,
                error_category=ErrorCategory.INFRASTRUCTURE_ERROR,
                processing_time_ms=self._elapsed_ms(start),
            )

        context = SharedContext(session.id, session.token)
        context.set(ContextKey.REQUEST, request)

        cancel_event = asyncio.Event()
        self._in_flight[session.id] = cancel_event
        if self.metrics:
            self.metrics.start_pipeline(session.id, request.candidate_ref, request.job_ref)

        outcomes: List[StageResult] = []
        try:
            with log_context(session_id=session.id, token=session.token):
                logger.info(f"[Orchestrator] Pipeline started: {request.resume_filename} → {request.job_url}")
                return await self._run_stages(session, context, cancel_event, outcomes, start)

        except InfrastructureError as e:
            return await self._infrastructure_failure(session, context, outcomes, e, start)

        except ProgrammingInvariantViolation as e:
            logger.critical(f"[Orchestrator] Invariant violated (session={session.id})", exc_info=True)
            await self._discard_documents(context)
            await self._mark_failed_quietly(session.id, f"Invariant violated: {e.message}")
            self._complete_metrics(session.id, False, None)
            raise

        except asyncio.CancelledError:
            logger.warning(f"[Orchestrator] Task cancelled (session={session.id})")
            await self._discard_documents(context)
            await self._mark_failed_quietly(session.id, CANCELLED_LOG_ENTRY)
            self._complete_metrics(session.id, False, ErrorCategory.CANCELLED)
            raise

        finally:
            self._in_flight.pop(session.id, None)
            self._finalizing.discard(session.id)

    async def _run_stages(
        self,
        session: Session,
        context: SharedContext,
        cancel_event: asyncio.Event,
        outcomes: List[StageResult],
        start: float,
    ) -> PipelineRunResult:
        if not await self.session_store.update_status(
            session.id, SessionStatus.PROCESSING, "Pipeline started"
        ):
            raise InfrastructureError(
                f"Session {session.id} could not be moved to processing",
                details={"session_id": session.id},
            )

        for stage in self.stage_factory():
            if cancel_event.is_set():
                return await self._cancelled(session, context, outcomes, start, before=stage.name)

            with log_context(stage=stage.name):
                context.append_log(stage.name, "stage_started", f"{stage.name} started")
                result = await stage.execute(context, self.gate)
                outcomes.append(result)
                if self.metrics:
                    self.metrics.record_stage(session.id, stage.name, result.duration_ms, result.success)

                if not result.success:
                    return await self._stage_failure(session, context, outcomes, result, start)

                context.append_log(
                    stage.name, "stage_succeeded",
                    f"{stage.name} completed ({result.duration_ms}ms)",
                    **result.metadata,
                )
                await self.session_store.append_log(
                    session.id, f"[{stage.name}] completed ({result.duration_ms}ms)"
                )
                logger.info(f"[Orchestrator] {stage.name} succeeded ({result.duration_ms}ms)")

        if cancel_event.is_set():
            return await self._cancelled(session, context, outcomes, start)

        # 이후 도착한 cancel()은 False
        self._finalizing.add(session.id)
        return await self._complete(session, context, outcomes, start)

    # ─────────────────────────────────────────────────
    # 종료 처리
    # ─────────────────────────────────────────────────

    async def _complete(
        self,
        session: Session,
        context: SharedContext,
        outcomes: List[StageResult],
        start: float,
    ) -> PipelineRunResult:
        documents = context.find(ContextKey.DOCUMENTS)
        documents = list(documents) if documents is not NOT_FOUND else []

        if not await self.session_store.attach_documents(session.id, documents):
            raise InfrastructureError(
                f"Documents could not be attached to session {session.id}",
                details={"session_id": session.id, "documents": len(documents)},
            )
        if not await self.session_store.mark_completed(session.id, "Pipeline completed"):
            raise InfrastructureError(
                f"Session {session.id} could not be marked completed",
                details={"session_id": session.id},
            )

        summary = self._completion_summary(context, documents)
        await self.session_store.append_log(session.id, summary)
        context.append_log("Pipeline", "pipeline_completed", summary)

        elapsed = self._elapsed_ms(start)
        self._complete_metrics(session.id, True, None)
        logger.info(f"[Orchestrator] Pipeline completed in {elapsed}ms ({summary})")

        return PipelineRunResult(
            success=True,
            session=await self._snapshot(session.token),
            stage_outcomes=outcomes,
            documents=documents,
            warnings=context.warnings.to_list(),
            processing_time_ms=elapsed,
        )

    async def _stage_failure(
        self,
        session: Session,
        context: SharedContext,
        outcomes: List[StageResult],
        result: StageResult,
        start: float,
    ) -> PipelineRunResult:
        if result.state.is_guardrail_failure:
            category = ErrorCategory.GUARDRAIL_VIOLATION
        else:
            category = ErrorCategory.COLLABORATOR_ERROR

        entry = f"[{result.stage_name}] {result.error}"
        context.append_log(
            result.stage_name, "stage_failed", entry,
            state=result.state.value,
            error_type=result.error_type,
            violation_type=result.violation_type,
        )
        logger.warning(f"[Orchestrator] {result.stage_name} failed ({result.state.value}): {result.error}")

        await self._require_failed(session.id, entry)

        self._complete_metrics(session.id, False, category)
        return PipelineRunResult(
            success=False,
            session=await self._snapshot(session.token),
            stage_outcomes=outcomes,
            error=result.error,
            error_category=category,
            warnings=context.warnings.to_list(),
            processing_time_ms=self._elapsed_ms(start),
        )

    async def _cancelled(
        self,
        session: Session,
        context: SharedContext,
        outcomes: List[StageResult],
        start: float,
        before: Optional[str] = None,
    ) -> PipelineRunResult:
        context.append_log(before or "Pipeline", "cancelled", CANCELLED_LOG_ENTRY)
        logger.info(f"[Orchestrator] Cancellation observed{f' before {before}' if before else ''}")

        await self._require_failed(session.id, CANCELLED_LOG_ENTRY)
        await self._discard_documents(context)

        self._complete_metrics(session.id, False, ErrorCategory.CANCELLED)
        return PipelineRunResult(
            success=False,
            session=await self._snapshot(session.token),
            stage_outcomes=outcomes,
            error=CANCELLED_LOG_ENTRY,
            error_category=ErrorCategory.CANCELLED,
            warnings=context.warnings.to_list(),
            processing_time_ms=self._elapsed_ms(start),
        )

    async def _infrastructure_failure(
        self,
        session: Session,
        context: SharedContext,
        outcomes: List[StageResult],
        error: InfrastructureError,
        start: float,
    ) -> PipelineRunResult:
        logger.error(f"[Orchestrator] Infrastructure error (session={session.id}): {error}")
        report_exception(error, session_id=session.id, token=session.token)

        await self._discard_documents(context)
        await self._mark_failed_quietly(session.id, f"Infrastructure error: {error.message}")
        self._complete_metrics(session.id, False, ErrorCategory.INFRASTRUCTURE_ERROR)

        try:
            snapshot = await self._snapshot(session.token)
        except InfrastructureError:
            snapshot = None

        return PipelineRunResult(
            success=False,
            session=snapshot,
            stage_outcomes=outcomes,
            error=error.message,
            error_category=ErrorCategory.INFRASTRUCTURE_ERROR,
            warnings=context.warnings.to_list(),
            processing_time_ms=self._elapsed_ms(start),
        )

    async def _require_failed(self, session_id: str, log_entry: str):
        """Failed 전이 (거부되면 세션이 종료 상태가 아니므로 InfrastructureError)"""
        if not await self.session_store.update_status(session_id, SessionStatus.FAILED, log_entry):
            raise InfrastructureError(
                f"Session {session_id} could not be moved to failed",
                details={"session_id": session_id},
            )

    async def _discard_documents(self, context: SharedContext):
        documents = context.find(ContextKey.DOCUMENTS)
        if self.discard_documents is None or documents is NOT_FOUND or not documents:
            return
        await self.discard_documents(list(documents))
        logger.info(f"[Orchestrator] Discarded {len(documents)} stored documents")

    async def _mark_failed_quietly(self, session_id: str, log_entry: str):
        """best-effort Failed 전이 (저장소 오류는 로그만)"""
        try:
            await self.session_store.update_status(session_id, SessionStatus.FAILED, log_entry)
        except InfrastructureError as e:
            logger.error(f"[Orchestrator] Could not mark session {session_id} failed: {e}")

    # ─────────────────────────────────────────────────
    # 조회 / 취소 / 만료
    # ─────────────────────────────────────────────────

    async def get_status(self, token: str) -> Optional[SessionStatusView]:
        session = await self.session_store.find(token)
        return session.to_status_view() if session else None

    async def cancel(self, token: str) -> bool:
        """
        실행 취소 요청

        - 알 수 없거나 종료된 세션: False
        - 완료 처리에 들어간 실행: False (Completed로 끝남)
        - 이 프로세스에서 실행 중: 플래그 설정 후 True (다음 스테이지 경계에서 Failed)
        - 실행 중이 아님: 바로 Failed 전이
        """
        session = await self.session_store.find(token)
        if session is None or session.status.is_terminal:
            return False
        if session.id in self._finalizing:
            logger.info(f"[Orchestrator] Cancellation refused, run is finalizing (session={session.id})")
            return False

        event = self._in_flight.get(session.id)
        if event is not None:
            event.set()
            logger.info(f"[Orchestrator] Cancellation requested (session={session.id})")
            return True

        cancelled = await self.session_store.update_status(
            session.id, SessionStatus.FAILED, CANCELLED_LOG_ENTRY
        )
        if cancelled:
            logger.info(f"[Orchestrator] Idle session cancelled (session={session.id})")
        return cancelled

    def is_in_flight(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def expire_sessions(self, now: Optional[datetime] = None) -> int:
        expired = await self.session_store.expire_sessions(now)
        if expired:
            logger.info(f"[Orchestrator] Expired {expired} sessions")
        return expired

    # ─────────────────────────────────────────────────
    # 헬퍼
    # ─────────────────────────────────────────────────

    async def _snapshot(self, token: str) -> Optional[SessionStatusView]:
        return await self.get_status(token)

    def _complete_metrics(self, session_id: str, success: bool, category: Optional[ErrorCategory]):
        if self.metrics:
            self.metrics.complete_pipeline(
                session_id, success, error_category=category.value if category else None
            )

    @staticmethod
    def _completion_summary(context: SharedContext, documents: List[GeneratedDocument]) -> str:
        matching = context.find(ContextKey.MATCHING)
        review = context.find(ContextKey.REVIEW)
        parts = []
        if matching is not NOT_FOUND:
            parts.append(f"matchScore={matching.match_score:g}")
        if review is not NOT_FOUND:
            parts.append(f"cvQualityScore={review.cv.quality_score:g}")
            parts.append(f"coverLetterQualityScore={review.cover_letter.quality_score:g}")
        parts.append(f"documentsGenerated={len(documents)}")
        return ", ".join(parts)

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)


# ─────────────────────────────────────────────────
# 조립
# ─────────────────────────────────────────────────

def build_pipeline_orchestrator(
    settings: Optional["Settings"] = None,
    *,
    session_store: Optional[SessionStore] = None,
    blob_store: Optional["BlobStore"] = None,
    extractor: Optional["DocumentTextExtractor"] = None,
    provider: Optional["TextGenerationProvider"] = None,
    fetcher: Optional["JobContentFetcher"] = None,
    renderer: Optional["DocumentRenderer"] = None,
    metrics: Optional["MetricsCollector"] = None,
    registry: Optional["GuardrailRegistry"] = None,
) -> PipelineOrchestrator:
    """
    설정으로부터 오케스트레이터 조립

    주입하지 않은 협력자는 기본 어댑터로 생성합니다.
    STORAGE_BACKEND=supabase면 Supabase 세션/Blob 저장소를 사용합니다.
    """
    from config import StorageBackend, get_settings
    from guardrails.registry import build_default_registry
    from services.blob_store import InMemoryBlobStore, SupabaseBlobStore
    from services.document_extractor import PlumberDocxTextExtractor
    from services.document_renderer import DocxDocumentRenderer
    from services.job_fetcher import HttpJobContentFetcher
    from services.llm_provider import OpenAITextProvider
    from services.session_store import InMemorySessionStore, SupabaseSessionStore
    from .stages import PipelineAgents, build_default_stages

    settings = settings or get_settings()

    if settings.STORAGE_BACKEND is StorageBackend.SUPABASE:
        session_store = session_store or SupabaseSessionStore.from_credentials(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY,
            table=settings.SUPABASE_SESSION_TABLE,
            ttl_hours=settings.SESSION_TTL_HOURS,
        )
        blob_store = blob_store or SupabaseBlobStore.from_credentials(
            settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY, settings.SUPABASE_BUCKET
        )
    else:
        session_store = session_store or InMemorySessionStore(ttl_hours=settings.SESSION_TTL_HOURS)
        blob_store = blob_store or InMemoryBlobStore()

    agents = PipelineAgents.from_collaborators(
        extractor=extractor or PlumberDocxTextExtractor(),
        provider=provider or OpenAITextProvider.from_settings(settings, metrics=metrics),
        fetcher=fetcher or HttpJobContentFetcher(timeout=settings.HTTP_FETCH_TIMEOUT),
        renderer=renderer or DocxDocumentRenderer(),
        blob_store=blob_store,
    )
    registry = registry or build_default_registry(settings)

    logger.info(
        f"[Orchestrator] Built (storage={settings.STORAGE_BACKEND.value}, "
        f"guardrails={len(registry)})"
    )
    return PipelineOrchestrator(
        session_store=session_store,
        stage_factory=lambda: build_default_stages(registry, agents, settings),
        gate=GuardrailGate(metrics=metrics),
        metrics=metrics,
        discard_documents=agents.formatter.discard,
    )


__all__ = [
    "CANCELLED_LOG_ENTRY",
    "PipelineRunResult",
    "PipelineOrchestrator",
    "build_pipeline_orchestrator",
]
