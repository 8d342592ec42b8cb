"""
PipelineOrchestrator 테스트

테스트 대상:
- 전체 성공 (세션 Completed + 문서 2개)
- 첫 실패에서 중단 (이후 스테이지 미실행, Processing → Failed)
- 실패 카테고리 (guardrail / collaborator / infrastructure / cancelled)
- 스테이지 경계 취소 / 완료 처리 중 취소 거부
- 실패한 실행의 저장 문서 정리
- 세션 상태 전진만 허용
"""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import SAMPLE_CV, SAMPLE_JOB_URL, FakeRenderer, make_request
from context import ContextKey
from exceptions import (
    CollaboratorError,
    ErrorCategory,
    ErrorCode,
    GuardrailViolationError,
    InfrastructureError,
    KeyAlreadyWrittenError,
    ProviderError,
    StorageError,
)
from orchestrator import CANCELLED_LOG_ENTRY, PipelineOrchestrator
from orchestrator.stage import PipelineStage, StageState
from schemas.enums import STAGE_ORDER, DocumentType, SessionStatus, StageName
from services.session_store import InMemorySessionStore


STATUS_ORDER = [SessionStatus.CREATED, SessionStatus.PROCESSING, SessionStatus.COMPLETED]


class TestSuccessfulRun:
    """전체 스테이지 통과"""

    @pytest.mark.asyncio
    async def test_completed_with_two_documents(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.success is True
        assert result.error is None
        assert result.error_category is None
        assert [o.stage_name for o in result.stage_outcomes] == [s.value for s in STAGE_ORDER]
        assert all(o.state is StageState.SUCCEEDED for o in result.stage_outcomes)

        status = await harness.orchestrator.get_status(result.session.token)
        assert status.status is SessionStatus.COMPLETED
        assert status.completed_at is not None
        assert sorted(d.document_type for d in status.documents) == [
            DocumentType.CV, DocumentType.COVER_LETTER
        ]

    @pytest.mark.asyncio
    async def test_documents_stored_in_blob_store(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert len(harness.blob_store) == 2
        names = {d.document_type: d.file_name for d in result.documents}
        assert names[DocumentType.CV] == "CV_Jane_Doe_Senior_Backend_Engineer.docx"
        assert names[DocumentType.COVER_LETTER] == "CoverLetter_Jane_Doe_Initech.docx"

        cv = next(d for d in result.documents if d.document_type is DocumentType.CV)
        data = await harness.blob_store.download(cv.blob_reference)
        assert data.startswith(b"CV\n")
        assert cv.file_size_bytes == len(data)
        assert cv.session_id == result.session.session_id

    @pytest.mark.asyncio
    async def test_processing_log(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        log = list(result.session.processing_log)

        assert log[0] == "Pipeline started"
        for stage in STAGE_ORDER:
            assert any(entry.startswith(f"[{stage.value}] completed (") for entry in log)
        assert "Pipeline completed" in log
        assert log[-1] == (
            "matchScore=82, cvQualityScore=85, coverLetterQualityScore=80, documentsGenerated=2"
        )

    @pytest.mark.asyncio
    async def test_collaborators_called_once_each(self, harness, pipeline_request):
        await harness.orchestrator.run_pipeline(pipeline_request)

        assert harness.extractor.calls == 1
        assert harness.fetcher.urls == [SAMPLE_JOB_URL]
        assert sorted(harness.provider.calls) == sorted(
            ["parse", "job", "match", "cv", "cover_letter", "review_cv", "review_cover_letter"]
        )

    @pytest.mark.asyncio
    async def test_stage_metadata(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        by_name = {o.stage_name: o for o in result.stage_outcomes}

        assert by_name[StageName.MATCH.value].metadata["match_score"] == 82
        assert by_name[StageName.FORMAT_STORE.value].metadata["documents"] == 2
        assert by_name[StageName.PARSE.value].metadata["skills"] == 6

    @pytest.mark.asyncio
    async def test_advisory_warnings_reported(self, harness, pipeline_request):
        harness.provider.responses["match"] = {
            **harness.provider.responses["match"], "match_score": 20,
        }

        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.success is True
        codes = [w["code"] for w in result.warnings]
        assert "LowMatchScore" in codes
        assert next(w for w in result.warnings if w["code"] == "LowMatchScore")["stage_name"] == "Match"

    @pytest.mark.asyncio
    async def test_company_name_fallback(self, harness):
        harness.provider.responses["job"] = {**harness.provider.responses["job"], "company": ""}

        result = await harness.orchestrator.run_pipeline(make_request(company_name="Initech Corp"))

        assert result.success is True
        cover = next(d for d in result.documents if d.document_type is DocumentType.COVER_LETTER)
        assert cover.file_name == "CoverLetter_Jane_Doe_Initech_Corp.docx"

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, harness, pipeline_request):
        await harness.orchestrator.run_pipeline(pipeline_request)

        aggregated = harness.metrics.get_aggregated()
        assert aggregated.successful_requests == 1
        assert set(aggregated.stage_duration_counts) == {s.value for s in STAGE_ORDER}
        assert harness.metrics.get_active_count() == 0

    @pytest.mark.asyncio
    async def test_not_in_flight_after_run(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        assert harness.orchestrator.is_in_flight(result.session.session_id) is False


class TestShortCircuit:
    """첫 실패 이후 스테이지 미실행"""

    @pytest.mark.asyncio
    async def test_malformed_url_rejected_by_pre_gate(self, harness):
        result = await harness.orchestrator.run_pipeline(make_request(job_url="not a url"))

        assert result.success is False
        assert result.error_category is ErrorCategory.GUARDRAIL_VIOLATION
        assert len(result.stage_outcomes) == 2
        failed = result.failed_stage
        assert failed.stage_name == StageName.EXTRACT_JOB.value
        assert failed.state is StageState.PRE_GATE_FAILED
        assert failed.violation_type == "InvalidUrlFormat"

        status = await harness.orchestrator.get_status(result.session.token)
        assert status.status is SessionStatus.FAILED
        assert any("InvalidUrlFormat" in entry for entry in status.processing_log)
        assert status.last_log_entry.startswith("[ExtractJob] InvalidUrlFormat")

        # 페치/매칭은 실행되지 않음
        assert harness.fetcher.urls == []
        assert harness.provider.calls == ["parse"]

    @pytest.mark.asyncio
    async def test_fabricated_skill_rejected_by_post_gate(self, harness, pipeline_request):
        harness.provider.responses["cv"] = SAMPLE_CV.replace(
            "Docker, AWS", "Docker, AWS, Kubernetes"
        )

        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.success is False
        assert result.error_category is ErrorCategory.GUARDRAIL_VIOLATION
        assert len(result.stage_outcomes) == 4
        failed = result.failed_stage
        assert failed.stage_name == StageName.GENERATE_CV.value
        assert failed.state is StageState.POST_GATE_FAILED
        assert failed.violation_type == "FabricatedContent"
        assert "Kubernetes" in result.error

        # 문서 레코드 없음
        assert result.documents == []
        assert len(harness.blob_store) == 0
        status = await harness.orchestrator.get_status(result.session.token)
        assert status.documents == ()
        assert "cover_letter" not in harness.provider.calls

    @pytest.mark.asyncio
    async def test_sensitive_identifier_blocks_generated_document(self, harness, pipeline_request):
        harness.provider.responses["cover_letter"] = (
            harness.provider.responses["cover_letter"] + "\nSSN: 123-45-6789\n"
        )

        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.failed_stage.stage_name == StageName.GENERATE_COVER_LETTER.value
        assert result.failed_stage.violation_type == "SensitiveIdentifier"

    @pytest.mark.asyncio
    async def test_empty_file_rejected_before_extraction(self, harness):
        result = await harness.orchestrator.run_pipeline(make_request(resume_bytes=b""))

        assert result.failed_stage.violation_type == "EmptyContent"
        assert len(result.stage_outcomes) == 1
        assert harness.extractor.calls == 0

    @pytest.mark.asyncio
    async def test_reviewer_flags_fabrication(self, harness, pipeline_request):
        harness.provider.responses["review_cv"] = {
            **harness.provider.responses["review_cv"],
            "is_truthful": False,
            "fabricated_content": ["Led a team of 40 engineers"],
        }

        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.failed_stage.stage_name == StageName.REVIEW.value
        assert result.failed_stage.violation_type == "FabricatedContent"
        assert len(result.stage_outcomes) == 6

    @pytest.mark.asyncio
    async def test_guardrail_failure_goes_straight_to_failed(self, harness):
        statuses = []
        original = harness.session_store.update_status

        async def recording_update(session_id, status, log_entry=None):
            statuses.append(status)
            return await original(session_id, status, log_entry)

        with patch.object(harness.session_store, "update_status", side_effect=recording_update):
            await harness.orchestrator.run_pipeline(make_request(job_url="ftp://example"))

        assert statuses == [SessionStatus.PROCESSING, SessionStatus.FAILED]

    @pytest.mark.asyncio
    async def test_stage_failure_metrics(self, harness):
        await harness.orchestrator.run_pipeline(make_request(job_url="not a url"))

        aggregated = harness.metrics.get_aggregated()
        assert aggregated.failed_requests == 1
        assert aggregated.errors_by_category == {"guardrail_violation": 1}
        assert aggregated.failures_by_stage == {"ExtractJob": 1}
        summary = harness.metrics.get_guardrail_summary()
        assert summary["JobUrlGuardrail"]["InvalidUrlFormat"]["blocking"] == 1


class TestFailureCategories:
    """실패 카테고리"""

    @pytest.mark.asyncio
    async def test_provider_error_is_collaborator_error(self, harness, pipeline_request):
        harness.provider.responses["match"] = ProviderError(
            "OpenAI returned 503", code=ErrorCode.PROVIDER_UNAVAILABLE
        )

        result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.COLLABORATOR_ERROR
        assert result.failed_stage.state is StageState.BODY_FAILED
        assert result.failed_stage.error_type == "ProviderError"
        assert result.error == "OpenAI returned 503"
        assert len(result.stage_outcomes) == 3
        status = await harness.orchestrator.get_status(result.session.token)
        assert status.status is SessionStatus.FAILED
        assert status.last_log_entry == "[Match] OpenAI returned 503"

    @pytest.mark.asyncio
    async def test_storage_error_is_infrastructure_error(self, harness, pipeline_request):
        with patch.object(
            harness.blob_store, "upload",
            AsyncMock(side_effect=StorageError("Upload failed: bucket unavailable")),
        ):
            result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.success is False
        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert len(result.stage_outcomes) == 6
        assert result.session.status is SessionStatus.FAILED
        assert result.session.last_log_entry == "Infrastructure error: Upload failed: bucket unavailable"
        assert harness.metrics.get_active_count() == 0

    @pytest.mark.asyncio
    async def test_session_create_failure(self, harness, pipeline_request):
        with patch.object(
            harness.session_store, "create",
            AsyncMock(side_effect=InfrastructureError("database unreachable")),
        ):
            result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.success is False
        assert result.session is None
        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert result.error == "database unreachable"
        assert harness.extractor.calls == 0

    @pytest.mark.asyncio
    async def test_processing_transition_rejected(self, harness, pipeline_request):
        with patch.object(harness.session_store, "update_status", AsyncMock(return_value=False)):
            result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert result.stage_outcomes == []

    @pytest.mark.asyncio
    async def test_raise_for_error(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(make_request(job_url="not a url"))
        with pytest.raises(GuardrailViolationError) as exc_info:
            result.raise_for_error()
        assert exc_info.value.violation_type == "InvalidUrlFormat"
        assert exc_info.value.details == {"stage": "ExtractJob"}

        harness.provider.responses["parse"] = ProviderError("timeout")
        failed = await harness.orchestrator.run_pipeline(pipeline_request)
        with pytest.raises(CollaboratorError):
            failed.raise_for_error()

    @pytest.mark.asyncio
    async def test_raise_for_error_on_success_returns_self(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        assert result.raise_for_error() is result

    @pytest.mark.asyncio
    async def test_to_dict(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(make_request(job_url="not a url"))
        data = result.to_dict()

        assert data["success"] is False
        assert data["error_category"] == "guardrail_violation"
        assert data["session"]["status"] == "failed"
        assert len(data["stage_outcomes"]) == 2


class TestCancellation:
    """스테이지 경계 취소"""

    @pytest.mark.asyncio
    async def test_cancel_during_stage_three(self, harness, pipeline_request):
        orchestrator = harness.orchestrator
        cancel_results = []

        async def cancel_mid_match():
            (session_id,) = list(orchestrator._in_flight)
            session = await harness.session_store.get(session_id)
            cancel_results.append(await orchestrator.cancel(session.token))

        harness.provider.hooks["match"] = cancel_mid_match

        result = await orchestrator.run_pipeline(pipeline_request)

        assert cancel_results == [True]
        # 3번째 스테이지는 끝까지 실행, 4번째는 시작하지 않음
        assert len(result.stage_outcomes) == 3
        assert result.stage_outcomes[-1].stage_name == StageName.MATCH.value
        assert result.stage_outcomes[-1].success is True
        assert "cv" not in harness.provider.calls

        assert result.success is False
        assert result.error_category is ErrorCategory.CANCELLED
        status = await orchestrator.get_status(result.session.token)
        assert status.status is SessionStatus.FAILED
        assert status.last_log_entry == CANCELLED_LOG_ENTRY

        aggregated = harness.metrics.get_aggregated()
        assert aggregated.errors_by_category == {"cancelled": 1}

    @pytest.mark.asyncio
    async def test_cancel_completed_session_returns_false(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        token = result.session.token

        assert await harness.orchestrator.cancel(token) is False

        status = await harness.orchestrator.get_status(token)
        assert status.status is SessionStatus.COMPLETED
        assert status.processing_log == result.session.processing_log

    @pytest.mark.asyncio
    async def test_cancel_unknown_token(self, harness):
        assert await harness.orchestrator.cancel("no-such-token") is False

    @pytest.mark.asyncio
    async def test_cancel_idle_session(self, harness):
        session = await harness.session_store.create("resume.pdf", SAMPLE_JOB_URL)

        assert await harness.orchestrator.cancel(session.token) is True

        status = await harness.orchestrator.get_status(session.token)
        assert status.status is SessionStatus.FAILED
        assert status.last_log_entry == CANCELLED_LOG_ENTRY


class TestStatusMonotonicity:
    """세션 상태는 전진만"""

    @pytest.mark.asyncio
    async def test_status_observed_during_run_never_regresses(self, harness, pipeline_request):
        orchestrator = harness.orchestrator
        observed = []

        async def observe():
            (session_id,) = list(orchestrator._in_flight)
            session = await harness.session_store.get(session_id)
            view = await orchestrator.get_status(session.token)
            observed.append((view.status, len(view.processing_log)))

        for kind in harness.provider.responses:
            harness.provider.hooks[kind] = observe

        result = await orchestrator.run_pipeline(pipeline_request)
        final = await orchestrator.get_status(result.session.token)
        observed.append((final.status, len(final.processing_log)))

        ranks = [STATUS_ORDER.index(status) for status, _ in observed]
        assert ranks == sorted(ranks)
        assert all(status is SessionStatus.PROCESSING for status, _ in observed[:-1])
        log_sizes = [size for _, size in observed]
        assert log_sizes == sorted(log_sizes)

    @pytest.mark.asyncio
    async def test_completed_cannot_move_back(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        session_id = result.session.session_id

        assert await harness.session_store.update_status(session_id, SessionStatus.PROCESSING) is False
        assert await harness.session_store.update_status(session_id, SessionStatus.FAILED) is False
        status = await harness.orchestrator.get_status(result.session.token)
        assert status.status is SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_status_view_is_snapshot(self, harness, pipeline_request):
        result = await harness.orchestrator.run_pipeline(pipeline_request)
        before = result.session

        await harness.session_store.append_log(before.session_id, "later entry")

        assert "later entry" not in before.processing_log

    @pytest.mark.asyncio
    async def test_get_status_unknown_token(self, harness):
        assert await harness.orchestrator.get_status("missing") is None


class TestIsolationAndExpiry:
    """실행 간 격리 / 만료"""

    @pytest.mark.asyncio
    async def test_runs_do_not_share_context(self, harness, pipeline_request):
        first = await harness.orchestrator.run_pipeline(pipeline_request)
        second = await harness.orchestrator.run_pipeline(pipeline_request)

        assert first.success and second.success
        assert first.session.session_id != second.session.session_id
        assert len(harness.blob_store) == 4

    @pytest.mark.asyncio
    async def test_expire_sessions(self, harness):
        from datetime import datetime, timedelta, timezone

        session = await harness.session_store.create("resume.pdf", SAMPLE_JOB_URL)
        later = datetime.now(timezone.utc) + timedelta(hours=25)

        assert await harness.orchestrator.expire_sessions(now=later) == 1
        status = await harness.orchestrator.get_status(session.token)
        assert status.status is SessionStatus.EXPIRED
        assert await harness.orchestrator.expire_sessions(now=later) == 0

    @pytest.mark.asyncio
    async def test_custom_stage_factory(self):
        store = InMemorySessionStore()
        orchestrator = PipelineOrchestrator(session_store=store, stage_factory=lambda: [])

        result = await orchestrator.run_pipeline(make_request())

        assert result.success is True
        assert result.documents == []
        assert result.session.last_log_entry == "documentsGenerated=0"


class TestTerminalGuarantees:
    """실패한 실행은 항상 종료 상태 세션"""

    @pytest.mark.asyncio
    async def test_cancel_during_finalization_refused(self, harness, pipeline_request):
        orchestrator = harness.orchestrator
        store = harness.session_store
        real_attach = store.attach_documents
        cancel_results = []

        async def attach_after_cancel(session_id, documents):
            session = await store.get(session_id)
            cancel_results.append(await orchestrator.cancel(session.token))
            return await real_attach(session_id, documents)

        with patch.object(store, "attach_documents", attach_after_cancel):
            result = await orchestrator.run_pipeline(pipeline_request)

        assert cancel_results == [False]
        assert result.success is True
        assert result.session.status is SessionStatus.COMPLETED
        assert CANCELLED_LOG_ENTRY not in result.session.processing_log
        assert len(harness.blob_store) == 2

    @pytest.mark.asyncio
    async def test_invariant_violation_marks_session_failed(self):
        store = InMemorySessionStore()

        async def rewrite_request(view, stage_input):
            return stage_input

        def stages():
            return [PipelineStage(
                name=StageName.PARSE.value,
                input_selector=lambda view: view.get(ContextKey.REQUEST),
                body=rewrite_request,
                output_key=ContextKey.REQUEST,
            )]

        orchestrator = PipelineOrchestrator(session_store=store, stage_factory=stages)

        with pytest.raises(KeyAlreadyWrittenError):
            await orchestrator.run_pipeline(make_request())

        (session,) = store._sessions.values()
        assert session.status is SessionStatus.FAILED
        assert session.processing_log[-1].startswith("Invariant violated: ")
        assert orchestrator.is_in_flight(session.id) is False

    @pytest.mark.asyncio
    async def test_refused_failed_transition_is_infrastructure_error(self, harness):
        store = harness.session_store
        real_update = store.update_status

        async def refuse_failed(session_id, status, log_entry=None):
            if status is SessionStatus.FAILED:
                return False
            return await real_update(session_id, status, log_entry)

        with patch.object(store, "update_status", refuse_failed):
            result = await harness.orchestrator.run_pipeline(make_request(job_url="not a url"))

        assert result.success is False
        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert "could not be moved to failed" in result.error
        assert len(result.stage_outcomes) == 2
        assert harness.metrics.get_aggregated().errors_by_category == {"infrastructure_error": 1}

    @pytest.mark.asyncio
    async def test_refused_cancel_transition_is_infrastructure_error(self, harness, pipeline_request):
        orchestrator = harness.orchestrator
        store = harness.session_store
        real_update = store.update_status

        async def refuse_failed(session_id, status, log_entry=None):
            if status is SessionStatus.FAILED:
                return False
            return await real_update(session_id, status, log_entry)

        async def cancel_mid_match():
            (session_id,) = list(orchestrator._in_flight)
            session = await store.get(session_id)
            await orchestrator.cancel(session.token)

        harness.provider.hooks["match"] = cancel_mid_match

        with patch.object(store, "update_status", refuse_failed):
            result = await orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert len(result.stage_outcomes) == 3


class TestStoredDocumentCleanup:
    """Format&Store 이후 실패하면 저장된 blob 삭제"""

    @pytest.mark.asyncio
    async def test_cancel_during_format_store(self, harness, pipeline_request):
        orchestrator = harness.orchestrator
        real_upload = harness.blob_store.upload

        async def upload_after_cancel(data, name, content_type):
            (session_id,) = list(orchestrator._in_flight)
            session = await harness.session_store.get(session_id)
            await orchestrator.cancel(session.token)
            return await real_upload(data, name, content_type)

        with patch.object(harness.blob_store, "upload", upload_after_cancel):
            result = await orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.CANCELLED
        assert len(result.stage_outcomes) == len(STAGE_ORDER)
        assert result.session.status is SessionStatus.FAILED
        assert len(harness.blob_store) == 0

    @pytest.mark.asyncio
    async def test_attach_failure(self, harness, pipeline_request):
        with patch.object(harness.session_store, "attach_documents", AsyncMock(return_value=False)):
            result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert result.session.status is SessionStatus.FAILED
        assert len(harness.blob_store) == 0

    @pytest.mark.asyncio
    async def test_document_set_rejected_by_post_gate(self, harness, pipeline_request):
        async def empty_cover_letter(self, text, document_type):
            if document_type is DocumentType.COVER_LETTER:
                return b""
            return f"{document_type.value}\n{text}".encode("utf-8")

        with patch.object(FakeRenderer, "render", empty_cover_letter):
            result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.GUARDRAIL_VIOLATION
        assert result.failed_stage.stage_name == StageName.FORMAT_STORE.value
        assert result.failed_stage.state is StageState.POST_GATE_FAILED
        assert result.failed_stage.violation_type == "IncompleteDocumentSet"
        assert len(harness.blob_store) == 0

    @pytest.mark.asyncio
    async def test_storage_error_leaves_no_blobs(self, harness, pipeline_request):
        real_upload = harness.blob_store.upload
        calls = {"n": 0}

        async def second_upload_fails(data, name, content_type):
            calls["n"] += 1
            if calls["n"] == 2:
                raise StorageError("Upload failed: quota exceeded")
            return await real_upload(data, name, content_type)

        with patch.object(harness.blob_store, "upload", second_upload_fails):
            result = await harness.orchestrator.run_pipeline(pipeline_request)

        assert result.error_category is ErrorCategory.INFRASTRUCTURE_ERROR
        assert len(harness.blob_store) == 0
