"""
기본 스테이지 구성

Parse → ExtractJob → Match → GenerateDocument(CV) → GenerateDocument(CoverLetter)
→ Review → Format&Store

PipelineStage는 실행마다 상태를 가지므로 run_pipeline마다 새로 만듭니다.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from agents import (
    DocumentWriterAgent,
    FormattingAgent,
    JobExtractionAgent,
    MatchingAgent,
    ResumeParserAgent,
    ReviewAgent,
)
from context.shared_context import ContextKey, ContextView
from guardrails.base import GateDirection
from guardrails.registry import GuardrailRegistry
from schemas.enums import StageName
from schemas.pipeline_types import (
    GeneratedText,
    MatchResult,
    ParsedCandidate,
    ParsedJob,
    ReviewResult,
)
from services.interfaces import (
    BlobStore,
    DocumentRenderer,
    DocumentTextExtractor,
    JobContentFetcher,
    TextGenerationProvider,
)
from .stage import PipelineStage

if TYPE_CHECKING:
    from config import Settings

logger = logging.getLogger(__name__)


@dataclass
class PipelineAgents:
    """스테이지 본문 에이전트 묶음"""
    parser: ResumeParserAgent
    job_extractor: JobExtractionAgent
    matcher: MatchingAgent
    writer: DocumentWriterAgent
    reviewer: ReviewAgent
    formatter: FormattingAgent

    @classmethod
    def from_collaborators(
        cls,
        extractor: DocumentTextExtractor,
        provider: TextGenerationProvider,
        fetcher: JobContentFetcher,
        renderer: DocumentRenderer,
        blob_store: BlobStore,
    ) -> "PipelineAgents":
        return cls(
            parser=ResumeParserAgent(extractor, provider),
            job_extractor=JobExtractionAgent(fetcher, provider),
            matcher=MatchingAgent(provider),
            writer=DocumentWriterAgent(provider),
            reviewer=ReviewAgent(provider),
            formatter=FormattingAgent(renderer, blob_store),
        )


# ─────────────────────────────────────────────────
# metadata 카운트
# ─────────────────────────────────────────────────

def _describe_candidate(candidate: ParsedCandidate) -> Dict[str, Any]:
    return {
        "text_length": len(candidate.raw_text),
        "skills": len(candidate.skills),
        "work_experiences": len(candidate.work_experiences),
    }


def _describe_job(job: ParsedJob) -> Dict[str, Any]:
    return {
        "required_skills": len(job.required_skills),
        "requirements": len(job.requirements),
    }


def _describe_match(matching: MatchResult) -> Dict[str, Any]:
    return {
        "match_score": matching.match_score,
        "matching_skills": len(matching.matching_skills),
        "skill_gaps": len(matching.skill_gaps),
    }


def _describe_text(text: GeneratedText) -> Dict[str, Any]:
    return {"word_count": text.word_count, "length": len(text.content)}


def _describe_review(review: ReviewResult) -> Dict[str, Any]:
    return {
        "cv_quality_score": review.cv.quality_score,
        "cover_letter_quality_score": review.cover_letter.quality_score,
    }


def _describe_documents(documents: Any) -> Dict[str, Any]:
    documents = list(documents or [])
    return {
        "documents": len(documents),
        "total_bytes": sum(d.file_size_bytes for d in documents),
    }


def build_default_stages(
    registry: GuardrailRegistry,
    agents: PipelineAgents,
    settings: Optional["Settings"] = None,
) -> List[PipelineStage]:
    """
    7개 기본 스테이지 생성

    입력 선택자가 고른 값이 pre-gate payload, 본문 반환값이 post-gate payload입니다.
    """
    if settings is None:
        from config import get_settings
        settings = get_settings()

    def stage(
        name: StageName, input_selector, body, output_key: ContextKey, describe, on_rejected=None
    ) -> PipelineStage:
        return PipelineStage(
            name=name.value,
            input_selector=input_selector,
            body=body,
            output_key=output_key,
            pre_checks=registry.checks_for(name, GateDirection.PRE_STAGE),
            post_checks=registry.checks_for(name, GateDirection.POST_STAGE),
            timeout=settings.stage_timeout(name.value),
            describe=describe,
            on_rejected=on_rejected,
        )

    def request(view: ContextView):
        return view.get(ContextKey.REQUEST)

    def candidate(view: ContextView):
        return view.get(ContextKey.CANDIDATE)

    async def parse(view: ContextView, pipeline_request):
        return await agents.parser.parse(pipeline_request)

    async def extract_job(view: ContextView, job_url: str):
        return await agents.job_extractor.extract(
            job_url, company_name=view.get(ContextKey.REQUEST).company_name
        )

    async def match(view: ContextView, parsed_candidate):
        return await agents.matcher.match(parsed_candidate, view.get(ContextKey.JOB))

    async def write_cv(view: ContextView, parsed_candidate):
        return await agents.writer.write_cv(
            parsed_candidate, view.get(ContextKey.JOB), view.get(ContextKey.MATCHING)
        )

    async def write_cover_letter(view: ContextView, parsed_candidate):
        return await agents.writer.write_cover_letter(
            parsed_candidate, view.get(ContextKey.JOB), view.get(ContextKey.MATCHING)
        )

    async def review(view: ContextView, parsed_candidate):
        return await agents.reviewer.review(
            parsed_candidate,
            view.get(ContextKey.JOB),
            view.get(ContextKey.CV_TEXT),
            view.get(ContextKey.COVER_LETTER_TEXT),
        )

    async def format_and_store(view: ContextView, parsed_candidate):
        return await agents.formatter.format_and_store(
            view.session_id,
            parsed_candidate,
            view.get(ContextKey.JOB),
            [view.get(ContextKey.CV_TEXT), view.get(ContextKey.COVER_LETTER_TEXT)],
        )

    stages = [
        stage(StageName.PARSE, request, parse, ContextKey.CANDIDATE, _describe_candidate),
        stage(StageName.EXTRACT_JOB, lambda view: request(view).job_url, extract_job,
              ContextKey.JOB, _describe_job),
        stage(StageName.MATCH, candidate, match, ContextKey.MATCHING, _describe_match),
        stage(StageName.GENERATE_CV, candidate, write_cv, ContextKey.CV_TEXT, _describe_text),
        stage(StageName.GENERATE_COVER_LETTER, candidate, write_cover_letter,
              ContextKey.COVER_LETTER_TEXT, _describe_text),
        stage(StageName.REVIEW, candidate, review, ContextKey.REVIEW, _describe_review),
        stage(StageName.FORMAT_STORE, candidate, format_and_store, ContextKey.DOCUMENTS,
              _describe_documents, on_rejected=agents.formatter.discard),
    ]
    logger.debug(f"[Stages] Built {len(stages)} stages: {[s.name for s in stages]}")
    return stages


__all__ = [
    "PipelineAgents",
    "build_default_stages",
]
